from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import can_change_attendance, today_local
from ..core.constants import RSVP_CONFLICT_ATTEMPTS, UNKNOWN_USER_NAME
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, WindowClosedError
from ..events.model import Event
from ..events.repository import EventRepository
from ..users.model import User
from ..users.repository import UserRepository
from ..users.service import require_current_user

logger = logging.getLogger(__name__)


def participant_names(event: Event, users: Iterable[User]) -> list[str]:
    by_id = {u.user_id: u for u in users}
    names = [by_id[uid].first_name if uid in by_id else UNKNOWN_USER_NAME for uid in event.participants]
    return sorted(names, key=str.casefold)


class RosterService:
    """Use case: self-service RSVP for an event.

    Only the participant set changes; the attendance ledger is never touched.
    """

    def __init__(
        self,
        events: EventRepository,
        users: UserRepository,
        *,
        attempts: int = RSVP_CONFLICT_ATTEMPTS,
        today: Callable[[], date] = today_local,
    ):
        self._events = events
        self._users = users
        self._today = today
        self._attempts = max(1, int(attempts))

    def set_attending(
        self,
        *,
        event_id: str,
        user_id: int,
        attending: bool,
        actor_id: Optional[int],
        today: Optional[date] = None,
    ) -> Event:
        actor = require_current_user(self._users, actor_id)
        if actor.user_id != int(user_id) and not actor.is_admin:
            raise AuthorizationError("You can only change your own attendance")
        if not self._users.get_by_id(int(user_id)):
            raise NotFoundError("User not found")

        today = today or self._today()

        # Target-state operation: safe to re-run on a fresh copy after a lost race.
        for attempt in range(1, self._attempts + 1):
            event = self._events.get_by_id(event_id)
            if not event:
                raise NotFoundError("Event not found")
            if not can_change_attendance(event.start, today):
                raise WindowClosedError("Attendance can only be changed before the day of the event")

            updated = event.with_participant(int(user_id), bool(attending))
            if updated is event:
                return event

            try:
                saved = self._events.save(updated, expected_revision=event.revision)
            except ConflictError:
                if attempt == self._attempts:
                    raise
                logger.info("RSVP on event %s lost a race (attempt %d), retrying", event_id, attempt)
                continue

            logger.info("User %s attending=%s for event %s", user_id, attending, event_id)
            return saved

        raise ConflictError("Event changed concurrently")
