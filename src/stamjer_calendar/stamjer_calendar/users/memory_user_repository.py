from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, Optional, Sequence

from ..core.exceptions import ValidationError
from .model import User
from .repository import UserRepository


class InMemoryUserRepository(UserRepository):
    """Dict-backed user store for tests and local development.

    All data is lost on process exit.
    """

    def __init__(self, users: Sequence[User] = ()) -> None:
        self._lock = threading.RLock()
        self._users: Dict[int, User] = {}
        self._next_id = 1
        for u in users:
            self._users[u.user_id] = u
            self._next_id = max(self._next_id, u.user_id + 1)

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        needle = (email or "").strip().lower()
        with self._lock:
            for u in self._users.values():
                if u.email.lower() == needle:
                    return u
        return None

    def list_all(self) -> Sequence[User]:
        with self._lock:
            return [self._users[k] for k in sorted(self._users)]

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
        with self._lock:
            if self.get_by_email(email):
                raise ValidationError("Email already registered")
            user_id = self._next_id
            self._next_id += 1
            self._users[user_id] = User(
                user_id=user_id,
                first_name=first_name,
                last_name=last_name,
                email=email,
                password_hash=password_hash,
                active=active,
                is_admin=is_admin,
            )
            return user_id

    def set_active(self, user_id: int, *, active: bool) -> bool:
        with self._lock:
            user = self._users.get(int(user_id))
            if not user:
                return False
            self._users[user.user_id] = replace(user, active=bool(active))
            return True

    def clear(self) -> None:
        with self._lock:
            self._users.clear()
            self._next_id = 1
