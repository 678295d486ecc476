from __future__ import annotations

from typing import Optional, Sequence

import mysql.connector

from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_USER_COLUMNS = "user_id, first_name, last_name, email, password_hash, active, is_admin"


def _row_to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        first_name=row["first_name"],
        last_name=row.get("last_name") or "",
        email=row["email"],
        password_hash=row["password_hash"],
        active=bool(row.get("active", True)),
        is_admin=bool(row.get("is_admin", False)),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE LOWER(email)=LOWER(%s)", (email.strip(),))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def list_all(self) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY user_id")
            return [_row_to_user(r) for r in fetchall(cur)]

    def create_user(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        password_hash: str,
        active: bool = True,
        is_admin: bool = False,
    ) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO users(first_name, last_name, email, password_hash, active, is_admin)
                    VALUES(%s,%s,%s,%s,%s,%s)
                    """,
                    (first_name, last_name, email, password_hash, int(active), int(is_admin)),
                )
                return int(cur.lastrowid)
        except mysql.connector.IntegrityError:
            raise ValidationError("Email already registered")

    def set_active(self, user_id: int, *, active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT user_id FROM users WHERE user_id=%s", (int(user_id),))
            if not fetchone(cur):
                return False
            cur.execute("UPDATE users SET active=%s WHERE user_id=%s", (int(bool(active)), int(user_id)))
            return True
