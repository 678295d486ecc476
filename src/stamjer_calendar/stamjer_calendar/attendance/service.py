from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..core.exceptions import NotFoundError
from ..events.model import Event, normalize_attendance
from ..events.repository import EventRepository
from ..users.repository import UserRepository
from ..users.service import require_admin
from .ledger import LedgerRow, build_ledger
from .streepjes import compute_streepjes

logger = logging.getLogger(__name__)


class AttendanceService:
    """Use case: admin records who actually showed up."""

    def __init__(self, events: EventRepository, users: UserRepository):
        self._events = events
        self._users = users

    def _get(self, event_id: str) -> Event:
        event = self._events.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def ledger_view(self, *, event_id: str, actor_id: Optional[int]) -> tuple[Event, list[LedgerRow]]:
        require_admin(self._users, actor_id)
        event = self._get(event_id)
        users = list(self._users.list_all())
        counts = compute_streepjes(users, self._events.list_all())
        return event, build_ledger(event, users, streepjes=counts)

    def save_attendance(
        self,
        *,
        event_id: str,
        ledger: Mapping[Any, Any],
        actor_id: Optional[int],
        expected_revision: Optional[int] = None,
    ) -> Event:
        """Replace the event's whole attendance map.

        Without ``expected_revision`` the last full map wins; with it a stale
        editor gets a ConflictError instead of silently overwriting.
        """

        require_admin(self._users, actor_id)
        attendance, legacy = normalize_attendance(ledger)
        if legacy:
            logger.debug("Normalized legacy-shaped ledger for event %s", event_id)

        event = self._get(event_id)
        saved = self._events.save(event.with_attendance(attendance), expected_revision=expected_revision)
        logger.info("Saved attendance for event %s (%d entries, revision %d)", event_id, len(attendance), saved.revision)
        return saved
