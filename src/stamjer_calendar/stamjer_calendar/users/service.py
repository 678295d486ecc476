from __future__ import annotations

import logging
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..attendance.streepjes import compute_streepjes
from ..common.validators import require_non_empty
from ..core.exceptions import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from ..events.repository import EventRepository
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)


def require_current_user(users: UserRepository, actor_id: Optional[int]) -> User:
    if actor_id is None:
        raise AuthenticationError("Login required")
    user = users.get_by_id(int(actor_id))
    if not user:
        raise AuthenticationError("Login required")
    return user


def require_admin(users: UserRepository, actor_id: Optional[int]) -> User:
    user = require_current_user(users, actor_id)
    if not user.is_admin:
        raise AuthorizationError("Admins only")
    return user


class AuthService:
    """Use case: authenticate user (login)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def authenticate(self, email: str, password: str) -> User:
        email = require_non_empty(email, "email")
        require_non_empty(password, "password")

        user = self._users.get_by_email(email)
        if not user:
            raise AuthenticationError("Invalid email or password")

        try:
            ok = check_password_hash(user.password_hash, password)
        except ValueError:
            # placeholder or corrupted hashes
            ok = False

        if not ok:
            raise AuthenticationError("Invalid email or password")
        return user


class UserService:
    """Use cases: member listings and self-service profile edits."""

    def __init__(self, users: UserRepository, events: EventRepository):
        self._users = users
        self._events = events

    def list_basic(self) -> list[dict]:
        return [{"id": u.user_id, "firstName": u.first_name} for u in self._users.list_all()]

    def list_full(self) -> list[dict]:
        """Profiles plus a freshly computed ``streepjes`` count.

        Recomputed on every call so late attendance edits are never stale.
        """

        users = self._users.list_all()
        counts = compute_streepjes(users, self._events.list_all())
        return [{**u.to_public_dict(), "streepjes": counts.get(u.user_id, 0)} for u in users]

    def get_profile(self, user_id: int) -> User:
        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, *, actor_id: Optional[int], user_id: int, active: Optional[bool]) -> User:
        actor = require_current_user(self._users, actor_id)
        if actor.user_id != int(user_id) and not actor.is_admin:
            raise AuthorizationError("You can only edit your own profile")

        target = self.get_profile(int(user_id))
        if active is None:
            return target
        if not isinstance(active, bool):
            raise ValidationError("active must be a boolean")

        if not self._users.set_active(target.user_id, active=active):
            raise NotFoundError("User not found")
        logger.info("User %s set active=%s (by %s)", target.user_id, active, actor.user_id)
        return self.get_profile(target.user_id)

    def create_account(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        active: bool = True,
        is_admin: bool = False,
    ) -> int:
        first_name = require_non_empty(first_name, "firstName")
        email = require_non_empty(email, "email").lower()
        if password is None or len(password) < 6:
            raise ValidationError("password must be at least 6 characters")
        if self._users.get_by_email(email):
            raise ValidationError("Email already registered")

        return self._users.create_user(
            first_name=first_name,
            last_name=(last_name or "").strip(),
            email=email,
            password_hash=generate_password_hash(password),
            active=active,
            is_admin=is_admin,
        )
