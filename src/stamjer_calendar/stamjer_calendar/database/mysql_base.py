from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def load_json_column(value: Any) -> Dict[str, Any]:
    """Normalize MySQL JSON column values across connector implementations.

    mysql-connector can return JSON as:
    - str
    - bytes / bytearray
    - already decoded dict (some C-extension builds)
    """

    if value is None:
        return {}

    if isinstance(value, dict):
        return value

    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")

    if isinstance(value, str):
        decoded = json.loads(value) if value.strip() else {}
        if not isinstance(decoded, dict):
            raise ValueError(f"Expected a JSON object, got {type(decoded).__name__}")
        return decoded

    raise TypeError(f"Unsupported MySQL JSON value type: {type(value)!r}")


def dump_json_column(doc: Dict[str, Any]) -> str:
    return json.dumps(doc, ensure_ascii=False, sort_keys=True)
