"""Optimistic mutation gateway.

Every write goes through the same protocol:

1. validate locally (current user, admin rights, required fields, RSVP
   window); a request that cannot succeed never touches the cache;
2. snapshot the affected partition and write the expected result into the
   cache right away;
3. send the request once;
4. on success reconcile the cache with the server record, on failure put the
   entity back the way the snapshot had it and re-raise;
5. always invalidate the affected partitions so the next read refetches them.

Mutations for the same entity go through a FIFO queue, so a second edit of an
event starts from the state the first one left behind.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Callable, Dict, Mapping, Optional

from ..attendance.ledger import default_ledger, toggle
from ..common.datetime_utils import can_change_attendance, today_local
from ..common.validators import require_non_empty
from ..core.constants import TEMP_ID_PREFIX
from ..core.exceptions import AuthenticationError, AuthorizationError, NotFoundError, WindowClosedError
from ..events.enrollment import AutoEnrollmentRule
from ..events.model import EDITABLE_FIELDS, Event, normalize_attendance
from ..users.model import User
from . import query_keys as qk
from .api import ApiClient
from .cache import MISSING, QueryCache
from .queue import EntityMutationQueue
from .transaction import (
    MutationState,
    MutationTransaction,
    append_entity,
    find_entity,
    remove_entity,
    replace_entity,
    restore_entities,
    update_entity,
)

logger = logging.getLogger(__name__)


def _event_key(event_id: Any) -> str:
    return f"event:{event_id}"


def _user_key(user_id: Any) -> str:
    return f"user:{user_id}"


def _profile_to_user(profile: Mapping[str, Any]) -> User:
    return User(
        user_id=int(profile["id"]),
        first_name=str(profile.get("firstName") or ""),
        last_name=str(profile.get("lastName") or ""),
        email=str(profile.get("email") or ""),
        password_hash="",
        active=bool(profile.get("active", False)),
        is_admin=bool(profile.get("isAdmin", False)),
    )


class MutationGateway:
    def __init__(
        self,
        api: ApiClient,
        *,
        cache: Optional[QueryCache] = None,
        queue: Optional[EntityMutationQueue] = None,
        enrollment: Optional[AutoEnrollmentRule] = None,
        today: Callable[[], date] = today_local,
    ) -> None:
        self.api = api
        self.cache = cache or QueryCache()
        self.queue = queue or EntityMutationQueue()
        self._enrollment = enrollment or AutoEnrollmentRule()
        self._today = today

        self.cache.register_fetcher(qk.EVENTS_LIST, lambda _key: self.api.get_events())
        self.cache.register_fetcher(qk.EVENTS_OPKOMSTEN, lambda _key: self.api.get_opkomsten())
        self.cache.register_fetcher(qk.EVENTS_DETAILS, lambda key: self.api.get_event(key[-1]))
        self.cache.register_fetcher(qk.USERS_LIST, lambda _key: self.api.get_users())
        self.cache.register_fetcher(qk.USERS_FULL, lambda _key: self.api.get_users_full())
        self.cache.register_fetcher(qk.EVENTS_LEDGERS, self._fetch_ledger)

    # -- session ------------------------------------------------------------

    def login(self, email: str, password: str) -> dict:
        user = self.api.login(email, password)
        self.cache.clear()
        self.cache.set(qk.USERS_PROFILE, user)
        return user

    def logout(self) -> None:
        try:
            self.api.logout()
        finally:
            self.cache.clear()

    @property
    def current_user(self) -> Optional[dict]:
        return self.cache.get(qk.USERS_PROFILE)

    def _require_user(self) -> dict:
        user = self.current_user
        if not user:
            raise AuthenticationError("Login required")
        return user

    def _require_admin(self) -> dict:
        user = self._require_user()
        if not user.get("isAdmin"):
            raise AuthorizationError("Admins only")
        return user

    # -- reads --------------------------------------------------------------

    def events(self) -> list[dict]:
        return self.cache.ensure(qk.EVENTS_LIST)

    def opkomsten(self) -> list[dict]:
        return self.cache.ensure(qk.EVENTS_OPKOMSTEN)

    def event(self, event_id: str) -> dict:
        cached = find_entity(self.cache.get(qk.EVENTS_LIST), event_id)
        if cached is not None and not self.cache.is_stale(qk.EVENTS_LIST):
            return cached
        return self.cache.ensure(qk.event_detail(event_id))

    def users(self) -> list[dict]:
        return self.cache.ensure(qk.USERS_LIST)

    def users_with_streepjes(self) -> list[dict]:
        return self.cache.ensure(qk.USERS_FULL)

    def ledger(self, event_id: str, *, query: str = "", participants: bool = False, changed: bool = False) -> dict:
        """Admin attendance sheet for one opkomst: ``{"event", "rows"}``."""

        self._require_admin()
        return self.cache.ensure(qk.event_ledger(event_id, query=query, participants=participants, changed=changed))

    def _fetch_ledger(self, key: qk.QueryKey) -> dict:
        event_id, query, participants, changed = key[len(qk.EVENTS_LEDGERS) :]
        return self.api.get_ledger(event_id, query=query, participants=participants == "1", changed=changed == "1")

    # -- protocol -----------------------------------------------------------

    def run(self, tx: MutationTransaction) -> Any:
        """Execute one transaction in its entity's queue; returns the server result."""

        with self.queue.turn(tx.entity_id):
            return self._execute(tx)

    def _execute(self, tx: MutationTransaction) -> Any:
        cache = self.cache
        tx.snapshot = cache.snapshot(tx.partition)
        cache.set(tx.partition, tx.apply)
        tx.transition(MutationState.OPTIMISTIC_APPLIED)

        # Reconciling is part of the mutation: if it fails the entity goes back
        # to the snapshot and the refetch below picks up the server state.
        try:
            result = tx.request()
            tx.result = result
            cache.set(tx.partition, lambda current: tx.confirm(current, result))
            if tx.on_confirmed is not None:
                tx.on_confirmed(result)
        except Exception as exc:
            tx.error = exc
            restored = cache.set(tx.partition, lambda current: tx.rollback(current, tx.snapshot))
            if tx.snapshot is MISSING and not restored:
                cache.remove(tx.partition)
            tx.transition(MutationState.ROLLED_BACK)
            logger.warning("%s on %s failed, rolled back: %s", tx.name, tx.entity_id, exc)
            raise
        else:
            tx.transition(MutationState.CONFIRMED)
            logger.debug("%s on %s confirmed", tx.name, tx.entity_id)
            return result
        finally:
            for key in tx.invalidates:
                cache.invalidate(key)
            tx.transition(MutationState.SETTLED)

    def _store_detail(self, event: Mapping[str, Any]) -> None:
        if event and event.get("id"):
            self.cache.set(qk.event_detail(event["id"]), dict(event))

    def _event_for_validation(self, event_id: str) -> dict:
        event = find_entity(self.cache.get(qk.EVENTS_LIST), event_id)
        if event is None:
            event = self.cache.get(qk.event_detail(event_id))
        if event is None:
            # A read is fine here; nothing has been written yet.
            event = self.cache.fetch(qk.event_detail(event_id))
        if not event:
            raise NotFoundError("Event not found")
        return event

    # -- events -------------------------------------------------------------

    def create_event(self, data: Mapping[str, Any]) -> dict:
        self._require_admin()
        title = require_non_empty(data.get("title"), "title")
        start = require_non_empty(data.get("start"), "start")

        temp_id = f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:8]}"
        profiles = self.cache.get(qk.USERS_FULL) or []
        participants = self._enrollment.initial_participants(
            title=title,
            is_opkomst=bool(data.get("isOpkomst", False)),
            members=((p["id"], bool(p.get("active", False))) for p in profiles),
        )
        fields = {k: v for k, v in data.items() if k not in ("id", "participants", "attendance", "revision")}
        optimistic, _ = Event.from_document({**fields, "title": title, "start": start})
        optimistic_doc = {
            **optimistic.to_dict(),
            "id": temp_id,
            "participants": list(participants),
            "revision": 0,
        }

        def confirm(current, server_event):
            return replace_entity(current, temp_id, server_event)

        def on_confirmed(server_event):
            self._store_detail(server_event)

        tx = MutationTransaction(
            name="create_event",
            entity_id=_event_key(temp_id),
            partition=qk.EVENTS_LIST,
            apply=lambda current: append_entity(current, optimistic_doc),
            request=lambda: self.api.create_event(dict(data)),
            confirm=confirm,
            rollback=lambda current, snapshot: restore_entities(current, snapshot, {temp_id}),
            invalidates=(qk.EVENTS_LIST, qk.EVENTS_OPKOMSTEN, qk.EVENTS_LEDGERS),
            on_confirmed=on_confirmed,
        )
        return self.run(tx)

    def update_event(self, event_id: str, changes: Mapping[str, Any]) -> dict:
        self._require_admin()
        if "title" in changes:
            require_non_empty(changes.get("title"), "title")
        if "start" in changes:
            require_non_empty(changes.get("start"), "start")

        seen: Dict[str, Any] = {}
        body = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and k != "participants"}

        def merge(item: dict) -> dict:
            merged = {**item, **body}
            if "attendance" in body:
                attendance, _ = normalize_attendance(body["attendance"])
                merged["attendance"] = {str(uid): rec.to_dict() for uid, rec in attendance.items()}
            return merged

        def apply(current):
            existing = find_entity(current, event_id)
            seen["revision"] = existing.get("revision") if existing else None
            return update_entity(current, event_id, merge)

        tx = MutationTransaction(
            name="update_event",
            entity_id=_event_key(event_id),
            partition=qk.EVENTS_LIST,
            apply=apply,
            request=lambda: self.api.update_event(event_id, body, revision=seen.get("revision")),
            confirm=lambda current, server_event: replace_entity(current, event_id, server_event)
            if current is not None
            else None,
            rollback=lambda current, snapshot: restore_entities(current, snapshot, {event_id}),
            invalidates=(qk.EVENTS_LIST, qk.event_detail(event_id), qk.EVENTS_OPKOMSTEN, qk.EVENTS_LEDGERS),
            on_confirmed=self._store_detail,
        )
        return self.run(tx)

    def delete_event(self, event_id: str) -> dict:
        self._require_admin()

        tx = MutationTransaction(
            name="delete_event",
            entity_id=_event_key(event_id),
            partition=qk.EVENTS_LIST,
            apply=lambda current: remove_entity(current, event_id),
            request=lambda: self.api.delete_event(event_id),
            confirm=lambda current, _removed: remove_entity(current, event_id),
            rollback=lambda current, snapshot: restore_entities(current, snapshot, {event_id}),
            invalidates=(qk.EVENTS_LIST, qk.EVENTS_OPKOMSTEN, qk.EVENTS_LEDGERS),
            on_confirmed=lambda _removed: self.cache.remove(qk.event_detail(event_id)),
        )
        return self.run(tx)

    # -- roster ---------------------------------------------------------------

    def set_attending(self, event_id: str, attending: bool, *, user_id: Optional[int] = None) -> dict:
        user = self._require_user()
        target = int(user_id) if user_id is not None else int(user["id"])
        if target != int(user["id"]) and not user.get("isAdmin"):
            raise AuthorizationError("You can only change your own attendance")

        event = self._event_for_validation(event_id)
        if not can_change_attendance(event.get("start", ""), self._today()):
            raise WindowClosedError("Attendance can only be changed before the day of the event")

        def flip(item: dict) -> dict:
            participants = [int(p) for p in item.get("participants") or []]
            if attending and target not in participants:
                participants.append(target)
            elif not attending and target in participants:
                participants = [p for p in participants if p != target]
            item["participants"] = participants
            return item

        tx = MutationTransaction(
            name="set_attending",
            entity_id=_event_key(event_id),
            partition=qk.EVENTS_LIST,
            apply=lambda current: update_entity(current, event_id, flip),
            request=lambda: self.api.set_attending(event_id, target, attending),
            confirm=lambda current, server_event: replace_entity(current, event_id, server_event)
            if current is not None
            else None,
            rollback=lambda current, snapshot: restore_entities(current, snapshot, {event_id}),
            invalidates=(
                qk.EVENTS_LIST,
                qk.event_detail(event_id),
                qk.EVENTS_OPKOMSTEN,
                qk.USERS_FULL,
                qk.EVENTS_LEDGERS,
            ),
            on_confirmed=self._store_detail,
        )
        return self.run(tx)

    # -- attendance ledger ----------------------------------------------------

    def save_attendance(self, event_id: str, ledger: Mapping[Any, Any]) -> dict:
        """Replace the whole attendance map of an event."""

        self._require_admin()
        attendance, _ = normalize_attendance(ledger)
        canonical = {str(uid): rec.to_dict() for uid, rec in attendance.items()}
        return self._run_attendance(event_id, lambda _item: canonical)

    def toggle_presence(self, event_id: str, user_id: int) -> dict:
        """Flip one member on the sheet and save the resulting full map.

        The map is built inside the event's queue turn, from whatever the
        previous save left in the cache. Recorded entries are kept even for
        ids missing from the cached user list; they still count for streepjes.
        """

        self._require_admin()
        profiles = self.cache.get(qk.USERS_FULL)
        if profiles is None:
            profiles = self.cache.fetch(qk.USERS_FULL)
        users = [_profile_to_user(p) for p in profiles]
        self._event_for_validation(event_id)

        def next_map(item: dict) -> dict:
            event = Event.from_dict(item)
            ledger = {uid: rec.present for uid, rec in event.attendance.items()}
            for uid, present in default_ledger(event, users).items():
                ledger.setdefault(uid, present)
            flipped = toggle(ledger, int(user_id))
            return {str(uid): {"present": present} for uid, present in flipped.items()}

        return self._run_attendance(event_id, next_map)

    def _run_attendance(self, event_id: str, build: Callable[[dict], dict]) -> dict:
        seen: Dict[str, Any] = {}

        def apply(current):
            existing = find_entity(current, event_id)
            if existing is None:
                existing = self.cache.get(qk.event_detail(event_id)) or {}
            seen["revision"] = existing.get("revision")
            seen["attendance"] = build(existing)

            def set_map(item: dict) -> dict:
                item["attendance"] = seen["attendance"]
                return item

            return update_entity(current, event_id, set_map)

        tx = MutationTransaction(
            name="save_attendance",
            entity_id=_event_key(event_id),
            partition=qk.EVENTS_LIST,
            apply=apply,
            request=lambda: self.api.save_attendance(event_id, seen["attendance"], revision=seen.get("revision")),
            confirm=lambda current, server_event: replace_entity(current, event_id, server_event)
            if current is not None
            else None,
            rollback=lambda current, snapshot: restore_entities(current, snapshot, {event_id}),
            invalidates=(
                qk.EVENTS_LIST,
                qk.event_detail(event_id),
                qk.EVENTS_OPKOMSTEN,
                qk.USERS_FULL,
                qk.EVENTS_LEDGERS,
            ),
            on_confirmed=self._store_detail,
        )
        return self.run(tx)

    # -- profile --------------------------------------------------------------

    def update_profile(self, *, active: bool, user_id: Optional[int] = None) -> dict:
        user = self._require_user()
        target = int(user_id) if user_id is not None else int(user["id"])
        if target != int(user["id"]) and not user.get("isAdmin"):
            raise AuthorizationError("You can only edit your own profile")

        def set_active(item: dict) -> dict:
            item["active"] = bool(active)
            return item

        def merge_server(current, server_user):
            if current is None:
                return None
            return update_entity(current, target, lambda item: {**item, **server_user})

        def on_confirmed(server_user):
            if target == int(user["id"]):
                self.cache.set(qk.USERS_PROFILE, server_user)

        tx = MutationTransaction(
            name="update_profile",
            entity_id=_user_key(target),
            partition=qk.USERS_FULL,
            apply=lambda current: update_entity(current, target, set_active),
            request=lambda: self.api.update_profile(target, active=active),
            confirm=merge_server,
            rollback=lambda current, snapshot: restore_entities(current, snapshot, {target}),
            invalidates=(qk.USERS_LIST, qk.USERS_FULL),
            on_confirmed=on_confirmed,
        )
        return self.run(tx)
