from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

import mysql.connector

from ..core.exceptions import ConflictError, NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json_column, fetchall, fetchone, load_json_column
from .model import Event
from .repository import EventRepository, generate_event_id

logger = logging.getLogger(__name__)


class MySQLEventRepository(EventRepository):
    """Events stored as one JSON document per row plus a revision column.

    The document never contains the id or revision; both live in columns and
    are merged in on read.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _document(event: Event) -> str:
        doc = event.to_dict()
        doc.pop("id", None)
        doc.pop("revision", None)
        return dump_json_column(doc)

    def _from_row(self, cur, row: dict) -> Event:
        doc = load_json_column(row["doc"])
        doc["id"] = row["event_id"]
        doc["revision"] = int(row["revision"])
        event, legacy = Event.from_document(doc)
        if legacy:
            # One-time migration; the revision is left alone since the content is unchanged.
            logger.info("Migrating legacy attendance ledger for event %s", event.event_id)
            cur.execute(
                "UPDATE events SET doc=%s WHERE event_id=%s AND revision=%s",
                (self._document(event), event.event_id, event.revision),
            )
        return event

    def get_by_id(self, event_id: str) -> Optional[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT event_id, doc, revision FROM events WHERE event_id=%s", (str(event_id),))
            row = fetchone(cur)
            return self._from_row(cur, row) if row else None

    def list_all(self) -> Sequence[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT event_id, doc, revision FROM events ORDER BY seq")
            rows = fetchall(cur)
            return [self._from_row(cur, r) for r in rows]

    def insert(self, event: Event) -> Event:
        for _ in range(5):
            stored = replace(event, event_id=generate_event_id(), revision=1)
            try:
                with db_cursor(self._conn_factory) as (_, cur):
                    cur.execute(
                        "INSERT INTO events(event_id, doc, revision, is_opkomst) VALUES(%s,%s,%s,%s)",
                        (stored.event_id, self._document(stored), stored.revision, int(stored.is_opkomst)),
                    )
                return stored
            except mysql.connector.IntegrityError:
                logger.warning("Event id collision on %s, retrying", stored.event_id)
        raise RuntimeError("Could not allocate a unique event id")

    def save(self, event: Event, *, expected_revision: Optional[int] = None) -> Event:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT revision FROM events WHERE event_id=%s FOR UPDATE", (event.event_id,))
            row = fetchone(cur)
            if not row:
                raise NotFoundError("Event not found")
            current_revision = int(row["revision"])
            if expected_revision is not None and int(expected_revision) != current_revision:
                raise ConflictError(
                    f"Event {event.event_id} changed (revision {current_revision}, expected {expected_revision})"
                )
            stored = replace(event, revision=current_revision + 1)
            cur.execute(
                "UPDATE events SET doc=%s, revision=%s, is_opkomst=%s WHERE event_id=%s",
                (self._document(stored), stored.revision, int(stored.is_opkomst), stored.event_id),
            )
            return stored

    def delete_by_id(self, event_id: str) -> Optional[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT event_id, doc, revision FROM events WHERE event_id=%s FOR UPDATE", (str(event_id),))
            row = fetchone(cur)
            if not row:
                return None
            event = self._from_row(cur, row)
            cur.execute("DELETE FROM events WHERE event_id=%s", (str(event_id),))
            return event
