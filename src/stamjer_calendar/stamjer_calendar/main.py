from __future__ import annotations

import importlib
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, request

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import Container, build_container
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables, seed_demo_users
from .database.connection import DBConfig
from .events.controller import register as register_events
from .roster.controller import register as register_roster
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def setup_logging(level_name: str = "INFO") -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def create_app(*, container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    if not app.config["TESTING"]:
        setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        backend = getattr(settings, "STORAGE_BACKEND", "mysql")
        db_config = getattr(settings, "DB_CONFIG", None)

        if backend == "mysql" and bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
            logger.info("Schema ready (tables=%d)", len(list_tables(db_config)))
        if backend == "mysql" and bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("Demo seed ready")

        container = build_container(
            db_config=db_config,
            backend=backend,
            opkomst_title=getattr(settings, "OPKOMST_TITLE", None),
        )
        if backend == "memory" and bool(getattr(settings, "AUTO_SEED_DB", False)):
            logger.info("Demo users added: %d", seed_demo_users(container.users_repo))
        if backend == "mysql":
            logger.info("Started with settings=%s db=%s", settings_module, DBConfig.from_dict(db_config).describe())
        else:
            logger.info("Started with settings=%s backend=%s", settings_module, backend)

    app.extensions["stamjer_container"] = container

    @app.before_request
    def _log_request():
        logger.debug("%s %s", request.method, request.path)

    register_users(app, container)
    register_events(app, container)
    register_roster(app, container)
    register_attendance(app, container)

    return app


def run() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=app.config["DEBUG"])
