from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """Domain entity: club member.

    Note: plain data object, no persistence code. ``streepjes`` is deliberately
    absent; it is always derived from events.
    """

    user_id: int
    first_name: str
    last_name: str
    email: str
    password_hash: str
    active: bool = True
    is_admin: bool = False

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_public_dict(self) -> dict:
        return {
            "id": self.user_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "active": self.active,
            "isAdmin": self.is_admin,
        }
