from __future__ import annotations

import copy
import logging
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from ..core.exceptions import ConflictError, NotFoundError
from .model import Event
from .repository import EventRepository, generate_event_id

logger = logging.getLogger(__name__)


class InMemoryEventRepository(EventRepository):
    """In-memory document store for events.

    Documents are kept as plain dicts (the wire/document shape) so legacy
    attendance shapes can be seeded and are migrated on first read, same as
    the MySQL store. Insertion order is preserved for listing.
    """

    def __init__(self, documents: Sequence[dict] = ()) -> None:
        self._lock = threading.RLock()
        self._docs: Dict[str, dict] = {}
        for doc in documents:
            self.put_document(doc)

    def put_document(self, doc: dict) -> None:
        """Seed a raw document as-is (no normalization)."""

        with self._lock:
            stored = copy.deepcopy(dict(doc))
            stored.setdefault("revision", 1)
            self._docs[str(stored["id"])] = stored

    def raw_document(self, event_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._docs.get(str(event_id))
            return copy.deepcopy(doc) if doc is not None else None

    def _load(self, event_id: str) -> Optional[Event]:
        doc = self._docs.get(event_id)
        if doc is None:
            return None
        event, legacy = Event.from_document(doc)
        if legacy:
            logger.info("Migrating legacy attendance ledger for event %s", event_id)
            self._docs[event_id] = event.to_dict()
        return event

    def get_by_id(self, event_id: str) -> Optional[Event]:
        with self._lock:
            return self._load(str(event_id))

    def list_all(self) -> Sequence[Event]:
        with self._lock:
            out: List[Event] = []
            for event_id in list(self._docs):
                event = self._load(event_id)
                if event is not None:
                    out.append(event)
            return out

    def insert(self, event: Event) -> Event:
        with self._lock:
            event_id = generate_event_id()
            while event_id in self._docs:
                event_id = generate_event_id()
            stored = replace(event, event_id=event_id, revision=1)
            self._docs[event_id] = stored.to_dict()
            return stored

    def save(self, event: Event, *, expected_revision: Optional[int] = None) -> Event:
        with self._lock:
            current = self._docs.get(event.event_id)
            if current is None:
                raise NotFoundError("Event not found")
            current_revision = int(current.get("revision") or 0)
            if expected_revision is not None and int(expected_revision) != current_revision:
                raise ConflictError(
                    f"Event {event.event_id} changed (revision {current_revision}, expected {expected_revision})"
                )
            stored = replace(event, revision=current_revision + 1)
            self._docs[event.event_id] = stored.to_dict()
            return stored

    def delete_by_id(self, event_id: str) -> Optional[Event]:
        with self._lock:
            event = self._load(str(event_id))
            if event is None:
                return None
            del self._docs[str(event_id)]
            return event

    def clear(self) -> None:
        with self._lock:
            self._docs.clear()
