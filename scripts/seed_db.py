from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
for entry in (REPO_ROOT, REPO_ROOT / "src" / "stamjer_calendar"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from dotenv import load_dotenv

from config import get_settings_module

from stamjer_calendar.database.bootstrap import apply_seed_sql, ensure_demo_users
from stamjer_calendar.database.connection import DBConfig
from stamjer_calendar.main import setup_logging

logger = logging.getLogger("stamjer_calendar.scripts.seed_db")


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    db_config = dict(settings.DB_CONFIG)

    apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
    ensure_demo_users(db_config)
    logger.info("Seeded database -> %s", DBConfig.from_dict(db_config).describe())


if __name__ == "__main__":
    main()
