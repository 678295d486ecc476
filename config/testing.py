from config.config import *  # noqa: F401,F403
from config.config import db_config

SECRET_KEY = "test-secret"

DB_CONFIG = db_config()
STORAGE_BACKEND = "memory"

DEBUG = False
TESTING = True

AUTO_INIT_DB = False
AUTO_SEED_DB = False
