from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

from werkzeug.security import generate_password_hash

from ..users.repository import UserRepository
from .connection import DBConfig, DatabaseConnection

DEMO_USERS = (
    # first_name, last_name, email, password, is_admin
    ("Admin", "Stamjer", "admin@stamjer.local", "admin123", True),
    ("Sanne", "de Vries", "sanne@stamjer.local", "lid12345", False),
    ("Bram", "Jansen", "bram@stamjer.local", "lid12345", False),
)


def _connection(db_config: dict) -> DatabaseConnection:
    # Not the shared instance: bootstrap may run before the app container exists.
    return DatabaseConnection(DBConfig.from_dict(db_config))


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql usable regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema/seed files (handles ';' inside quotes and -- comments).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False
    in_comment = False

    for i, ch in enumerate(sql):
        if in_comment:
            if ch == "\n":
                in_comment = False
                buf.append(ch)
            continue

        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "-" and not in_single and not in_double and sql[i : i + 2] == "--":
            in_comment = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: str | Path) -> None:
    sql = _strip_create_db_and_use(Path(path).read_text(encoding="utf-8"))
    conn = _connection(db_config).connect()
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    factory = _connection(db_config)
    conn = factory.connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{factory.config.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    _run_script(db_config, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    _run_script(db_config, seed_path)


def ensure_demo_users(db_config: dict) -> None:
    """Upsert the demo accounts with real password hashes.

    seed.sql cannot carry hashes, so passwords are (re)set here.
    """

    conn = _connection(db_config).connect()
    try:
        cur = conn.cursor(dictionary=True)
        for first_name, last_name, email, password, is_admin in DEMO_USERS:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
            if cur.fetchone():
                cur.execute(
                    """
                    UPDATE users
                    SET first_name=%s, last_name=%s, password_hash=%s, is_admin=%s, active=1
                    WHERE email=%s
                    """,
                    (first_name, last_name, password_hash, int(is_admin), email),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (first_name, last_name, email, password_hash, active, is_admin)
                    VALUES (%s, %s, %s, %s, 1, %s)
                    """,
                    (first_name, last_name, email, password_hash, int(is_admin)),
                )
        conn.commit()
    finally:
        conn.close()


def seed_demo_users(users_repo: UserRepository) -> int:
    """Add the demo accounts a repository does not have yet; returns how many were added.

    Used for the memory backend, which starts empty on every run.
    """

    added = 0
    for first_name, last_name, email, password, is_admin in DEMO_USERS:
        if users_repo.get_by_email(email):
            continue
        users_repo.create_user(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=generate_password_hash(password),
            is_admin=is_admin,
        )
        added += 1
    return added


def list_tables(db_config: dict) -> list[str]:
    conn = _connection(db_config).connect()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
