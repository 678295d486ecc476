"""Settings shared by every environment, read from the process environment.

``.env`` is loaded by ``create_app`` before the settings module is imported
for the first time, so values placed there are picked up too.
"""

import os


def env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def db_config(default_password: str = "") -> dict:
    return {
        "host": os.getenv("DB_HOST", "localhost"),
        "port": int(os.getenv("DB_PORT", "3306")),
        "user": os.getenv("DB_USER", "root"),
        "password": os.getenv("DB_PASSWORD", default_password),
        "database": os.getenv("DB_NAME", "stamjer"),
    }


# "mysql" or "memory"
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mysql")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Title that triggers auto-enrollment of all active members.
OPKOMST_TITLE = os.getenv("OPKOMST_TITLE", "Stam opkomst")

# Used by the Python API client / mutation gateway.
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
READ_RETRIES = int(os.getenv("READ_RETRIES", "2"))
READ_BACKOFF_SECONDS = float(os.getenv("READ_BACKOFF_SECONDS", "0.5"))
