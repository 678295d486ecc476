from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class PresenceRecord:
    """Canonical attendance ledger entry: ``{"present": bool}``."""

    present: bool

    def to_dict(self) -> dict:
        return {"present": self.present}


def normalize_presence(value: Any) -> Tuple[PresenceRecord, bool]:
    """Coerce any known ledger shape into a :class:`PresenceRecord`.

    Returns the record and whether the input was in a legacy shape.

    Accepted shapes:
    - ``True`` / ``False`` (written by older admin pages)
    - ``{"present": bool}`` (canonical)
    - ``{"present": bool, "absent": bool}``: ``present`` wins
    - ``{"absent": bool}``: present is the negation
    - ``None`` / ``{}``: not present
    """

    if isinstance(value, PresenceRecord):
        return value, False

    if isinstance(value, bool):
        return PresenceRecord(present=value), True

    if value is None:
        return PresenceRecord(present=False), True

    if isinstance(value, Mapping):
        keys = set(value.keys())
        if "present" in value and value["present"] is not None:
            return PresenceRecord(present=bool(value["present"])), keys != {"present"}
        if "absent" in value and value["absent"] is not None:
            return PresenceRecord(present=not bool(value["absent"])), True
        return PresenceRecord(present=False), True

    raise ValidationError(f"Unsupported attendance value: {value!r}")


def normalize_attendance(raw: Optional[Mapping[Any, Any]]) -> Tuple[Dict[int, PresenceRecord], bool]:
    """Normalize a whole ledger; keys become ``int`` user ids."""

    out: Dict[int, PresenceRecord] = {}
    legacy = False
    for key, value in (raw or {}).items():
        try:
            user_id = int(key)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid user id in attendance: {key!r}")
        record, was_legacy = normalize_presence(value)
        out[user_id] = record
        legacy = legacy or was_legacy
    return out, legacy


def unique_ids(values: Optional[Iterable[Any]]) -> Tuple[int, ...]:
    """Participants as a set, kept in first-seen order."""

    seen: Dict[int, None] = {}
    for v in values or ():
        try:
            seen.setdefault(int(v), None)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid user id in participants: {v!r}")
    return tuple(seen)


@dataclass(frozen=True)
class Event:
    """Domain entity: calendar event (optionally an opkomst)."""

    event_id: str
    title: str
    start: str
    end: str
    all_day: bool = False
    location: str = ""
    description: str = ""
    is_opkomst: bool = False
    opkomstmakers: str = ""
    participants: Tuple[int, ...] = ()
    attendance: Dict[int, PresenceRecord] = field(default_factory=dict)
    revision: int = 0

    def is_participant(self, user_id: int) -> bool:
        return int(user_id) in self.participants

    def with_participant(self, user_id: int, attending: bool) -> "Event":
        uid = int(user_id)
        if attending and uid not in self.participants:
            return replace(self, participants=self.participants + (uid,))
        if not attending and uid in self.participants:
            return replace(self, participants=tuple(p for p in self.participants if p != uid))
        return self

    def with_attendance(self, attendance: Mapping[int, PresenceRecord]) -> "Event":
        return replace(self, attendance=dict(attendance))

    def to_dict(self) -> dict:
        return {
            "id": self.event_id,
            "title": self.title,
            "start": self.start,
            "end": self.end,
            "allDay": self.all_day,
            "location": self.location,
            "description": self.description,
            "isOpkomst": self.is_opkomst,
            "opkomstmakers": self.opkomstmakers,
            "participants": list(self.participants),
            "attendance": {str(uid): rec.to_dict() for uid, rec in self.attendance.items()},
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, doc: Mapping[str, Any]) -> "Event":
        event, _ = cls.from_document(doc)
        return event

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> Tuple["Event", bool]:
        """Build an event from a stored/wire document.

        The flag tells whether the attendance ledger was in a legacy shape and
        should be written back.
        """

        attendance, legacy = normalize_attendance(doc.get("attendance"))
        start = str(doc.get("start") or "")
        return (
            cls(
                event_id=str(doc.get("id") or ""),
                title=str(doc.get("title") or ""),
                start=start,
                end=str(doc.get("end") or start),
                all_day=bool(doc.get("allDay", False)),
                location=str(doc.get("location") or ""),
                description=str(doc.get("description") or ""),
                is_opkomst=bool(doc.get("isOpkomst", False)),
                opkomstmakers=_as_text(doc.get("opkomstmakers")),
                participants=unique_ids(doc.get("participants")),
                attendance=attendance,
                revision=int(doc.get("revision") or 0),
            ),
            legacy,
        )


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


# Wire field name -> dataclass attribute, for partial updates.
EDITABLE_FIELDS = {
    "title": "title",
    "start": "start",
    "end": "end",
    "allDay": "all_day",
    "location": "location",
    "description": "description",
    "isOpkomst": "is_opkomst",
    "opkomstmakers": "opkomstmakers",
    "participants": "participants",
    "attendance": "attendance",
}
