from __future__ import annotations

import uuid
from typing import Optional, Protocol, Sequence

from .model import Event


def generate_event_id() -> str:
    return uuid.uuid4().hex[:10]


class EventRepository(Protocol):
    """Document store for events.

    Every write is an atomic replace of one document and bumps its revision.
    """

    def get_by_id(self, event_id: str) -> Optional[Event]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Event]:
        raise NotImplementedError

    def insert(self, event: Event) -> Event:
        """Store a new event; the store assigns ``event_id`` and revision 1."""

        raise NotImplementedError

    def save(self, event: Event, *, expected_revision: Optional[int] = None) -> Event:
        """Replace the stored document.

        Raises ConflictError when ``expected_revision`` is given and differs
        from the stored revision, NotFoundError when the event is gone.
        """

        raise NotImplementedError

    def delete_by_id(self, event_id: str) -> Optional[Event]:
        raise NotImplementedError
