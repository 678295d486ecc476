from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from ..common.datetime_utils import event_day
from ..events.model import Event
from ..users.model import User


@dataclass(frozen=True)
class LedgerRow:
    """One line of the admin attendance sheet for an opkomst."""

    user_id: int
    name: str
    is_participant: bool
    present: bool
    streepjes: int = 0

    @property
    def changed(self) -> bool:
        return self.present != self.is_participant

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "name": self.name,
            "isParticipant": self.is_participant,
            "present": self.present,
            "changed": self.changed,
            "streepjes": self.streepjes,
        }


def default_ledger(event: Event, users: Iterable[User]) -> dict[int, bool]:
    """Working copy of the ledger for editing.

    Users without a recorded override default to their RSVP. Nothing here is
    persisted until the whole map is saved.
    """

    out: dict[int, bool] = {}
    for u in users:
        record = event.attendance.get(u.user_id)
        out[u.user_id] = record.present if record is not None else event.is_participant(u.user_id)
    return out


def order_roster(rows: Iterable[LedgerRow]) -> list[LedgerRow]:
    # Participants first, then by name ignoring case.
    return sorted(rows, key=lambda r: (not r.is_participant, r.name.casefold()))


def build_ledger(
    event: Event,
    users: Sequence[User],
    *,
    streepjes: Optional[Mapping[int, int]] = None,
) -> list[LedgerRow]:
    ledger = default_ledger(event, users)
    counts = streepjes or {}
    rows = [
        LedgerRow(
            user_id=u.user_id,
            name=u.name,
            is_participant=event.is_participant(u.user_id),
            present=ledger[u.user_id],
            streepjes=int(counts.get(u.user_id, 0)),
        )
        for u in users
    ]
    return order_roster(rows)


def filter_rows(
    rows: Iterable[LedgerRow],
    *,
    query: str = "",
    only_participants: bool = False,
    only_changed: bool = False,
) -> list[LedgerRow]:
    needle = (query or "").strip().casefold()
    out = []
    for r in rows:
        if needle and needle not in r.name.casefold():
            continue
        if only_participants and not r.is_participant:
            continue
        if only_changed and not r.changed:
            continue
        out.append(r)
    return out


def toggle(ledger: Mapping[int, bool], user_id: int) -> dict[int, bool]:
    """Flip one member; returns the full map that is to be saved."""

    out = dict(ledger)
    out[int(user_id)] = not bool(out.get(int(user_id), False))
    return out


def default_opkomst(events: Iterable[Event], today: date) -> Optional[Event]:
    """Opkomst to open the sheet on: today's, else the next one, else the last one."""

    opkomsten = sorted((e for e in events if e.is_opkomst), key=lambda e: e.start)
    if not opkomsten:
        return None
    for e in opkomsten:
        if event_day(e.start) == today:
            return e
    for e in opkomsten:
        if event_day(e.start) >= today:
            return e
    return opkomsten[-1]
