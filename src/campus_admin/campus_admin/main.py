from __future__ import annotations

import importlib
import logging
from decimal import Decimal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .common.web import register_error_handlers
from .container import Container, build_container
from .core.constants import DEFAULT_GRACE_FEE, DEFAULT_GRACE_MONTHS, DEFAULT_GST_RATE, RECENT_UPDATE_SECONDS
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .fees.controller import register as register_fees
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["GST_RATE"] = Decimal(str(getattr(settings, "GST_RATE", DEFAULT_GST_RATE)))
    app.config["DEFAULT_GRACE_MONTHS"] = int(getattr(settings, "DEFAULT_GRACE_MONTHS", DEFAULT_GRACE_MONTHS))
    app.config["DEFAULT_GRACE_FEE"] = str(getattr(settings, "DEFAULT_GRACE_FEE", DEFAULT_GRACE_FEE))
    app.config["RECENT_UPDATE_SECONDS"] = float(getattr(settings, "RECENT_UPDATE_SECONDS", RECENT_UPDATE_SECONDS))

    if container is None:
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
            logger.info("Schema ready (tables=%d)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("Demo seed ready")

        container = build_container(
            db_config=db_config,
            gst_rate=app.config["GST_RATE"],
            recent_update_seconds=app.config["RECENT_UPDATE_SECONDS"],
        )

    app.extensions["campus_admin"] = container
    register_error_handlers(app)
    register_users(app, container)
    register_attendance(app, container)
    register_fees(app, container)

    return app
