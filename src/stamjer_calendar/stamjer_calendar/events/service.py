from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Mapping, Optional, Sequence

from ..common.datetime_utils import event_day
from ..common.validators import require_non_empty
from ..core.exceptions import NotFoundError
from ..notifications.notifier import LoggingNotifier, Notifier, notify_safely
from ..users.repository import UserRepository
from ..users.service import require_admin
from .enrollment import AutoEnrollmentRule
from .model import EDITABLE_FIELDS, Event, normalize_attendance
from .repository import EventRepository

logger = logging.getLogger(__name__)


def upcoming_opkomsten(events: Sequence[Event], today: date) -> list[Event]:
    """Opkomsten from today onwards, earliest first."""

    out = [e for e in events if e.is_opkomst and event_day(e.start) >= today]
    out.sort(key=lambda e: e.start)
    return out


class EventService:
    """Use cases: create / update / delete events (admin) and listing."""

    def __init__(
        self,
        events: EventRepository,
        users: UserRepository,
        *,
        enrollment: Optional[AutoEnrollmentRule] = None,
        notifier: Optional[Notifier] = None,
    ):
        self._events = events
        self._users = users
        self._enrollment = enrollment or AutoEnrollmentRule()
        self._notifier = notifier or LoggingNotifier()

    def list_events(self) -> Sequence[Event]:
        return self._events.list_all()

    def list_opkomsten(self, *, upcoming_from: Optional[date] = None) -> list[Event]:
        events = self._events.list_all()
        if upcoming_from is not None:
            return upcoming_opkomsten(events, upcoming_from)
        return [e for e in events if e.is_opkomst]

    def get_event(self, event_id: str) -> Event:
        event = self._events.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def create_event(self, *, actor_id: Optional[int], data: Mapping[str, Any]) -> Event:
        require_admin(self._users, actor_id)

        title = require_non_empty(data.get("title"), "title")
        start = require_non_empty(data.get("start"), "start")
        event_day(start)
        end = str(data.get("end") or start)
        is_opkomst = bool(data.get("isOpkomst", False))

        participants = self._enrollment.initial_participants(
            title=title,
            is_opkomst=is_opkomst,
            members=((u.user_id, u.active) for u in self._users.list_all()),
        )

        fields = {k: v for k, v in data.items() if k not in ("id", "participants", "attendance", "revision")}
        draft, _ = Event.from_document({**fields, "title": title, "start": start, "end": end})
        draft = replace(draft, participants=participants, attendance={}, revision=0)

        created = self._events.insert(draft)
        logger.info(
            "Created event %s (%s, opkomst=%s, participants=%d)",
            created.event_id, created.title, created.is_opkomst, len(created.participants),
        )
        notify_safely(self._notifier, created, "created")
        return created

    def update_event(
        self,
        *,
        actor_id: Optional[int],
        event_id: str,
        changes: Mapping[str, Any],
        expected_revision: Optional[int] = None,
    ) -> Event:
        """Full replace of the provided fields.

        ``attendance`` is replaced as a whole map, never merged per user.
        ``participants`` is not editable here; it belongs to the RSVP toggle.
        """

        require_admin(self._users, actor_id)
        current = self.get_event(event_id)

        updates: dict[str, Any] = {}
        for wire_name, attr in EDITABLE_FIELDS.items():
            if wire_name not in changes or wire_name == "participants":
                continue
            value = changes[wire_name]
            if wire_name == "attendance":
                value, _ = normalize_attendance(value)
            elif wire_name in ("allDay", "isOpkomst"):
                value = bool(value)
            elif wire_name in ("title", "start"):
                value = require_non_empty(value, wire_name)
            else:
                value = "" if value is None else str(value)
            updates[attr] = value

        if "start" in updates:
            event_day(updates["start"])
        if "end" in updates and not updates["end"]:
            updates["end"] = updates.get("start", current.start)

        if "participants" in changes:
            logger.debug("Ignoring participants in update of event %s", event_id)

        saved = self._events.save(replace(current, **updates), expected_revision=expected_revision)
        logger.info("Updated event %s fields=%s revision=%d", saved.event_id, sorted(updates), saved.revision)
        if set(updates) - {"attendance"}:
            notify_safely(self._notifier, saved, "updated")
        return saved

    def delete_event(self, *, actor_id: Optional[int], event_id: str) -> Event:
        require_admin(self._users, actor_id)
        removed = self._events.delete_by_id(event_id)
        if not removed:
            raise NotFoundError("Event not found")
        logger.info("Deleted event %s", event_id)
        notify_safely(self._notifier, removed, "deleted")
        return removed
