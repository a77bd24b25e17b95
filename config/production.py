import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "campus_db"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

GST_RATE = os.getenv("GST_RATE", "0.09")
DEFAULT_GRACE_MONTHS = int(os.getenv("DEFAULT_GRACE_MONTHS", "5"))
DEFAULT_GRACE_FEE = os.getenv("DEFAULT_GRACE_FEE", "500")

RECENT_UPDATE_SECONDS = float(os.getenv("RECENT_UPDATE_SECONDS", "3"))
