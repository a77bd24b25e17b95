import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "campus_db"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo students and accounts on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

# Fee ledger defaults
GST_RATE = os.getenv("GST_RATE", "0.09")
DEFAULT_GRACE_MONTHS = int(os.getenv("DEFAULT_GRACE_MONTHS", "5"))
DEFAULT_GRACE_FEE = os.getenv("DEFAULT_GRACE_FEE", "500")

# How long a remotely updated student stays highlighted, in seconds
RECENT_UPDATE_SECONDS = float(os.getenv("RECENT_UPDATE_SECONDS", "3"))
