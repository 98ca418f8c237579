from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .container import build_container
from .core.constants import DEFAULT_HISTORY_LIMIT, OWNER_EDIT_REASON
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .entries.controller import register as register_entries

_DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def create_app() -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))

    # Helpful startup info to avoid "connected but no tables" confusion.
    if app.config["DEBUG"]:
        app.logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=_DATABASE_DIR / "schema.sql")
        app.logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        apply_seed_sql(db_config, seed_path=_DATABASE_DIR / "seed.sql")
        ensure_demo_users(db_config)
        app.logger.info("demo seed ready")

    container = build_container(
        db_config=db_config,
        owner_edit_reason=getattr(settings, "OWNER_EDIT_REASON", OWNER_EDIT_REASON),
        history_limit=int(getattr(settings, "HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)),
    )
    app.extensions["timesheet_approval"] = container

    register_entries(app, container)

    return app
