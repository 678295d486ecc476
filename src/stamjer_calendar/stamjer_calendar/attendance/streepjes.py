"""Penalty points ("streepjes") derived from RSVP vs. recorded attendance.

A member earns one streepje per opkomst where the two disagree:
signed up but recorded absent, or not signed up but recorded present.

Everything here is a pure function of the given users and events; nothing
is cached between calls.
"""

from __future__ import annotations

from typing import Dict, Iterable

from ..events.model import Event
from ..users.model import User


def is_violation(*, is_participant: bool, present: bool) -> bool:
    return (is_participant and not present) or (not is_participant and present)


def violation_flags(event: Event) -> Dict[int, bool]:
    """Per ledger entry: does the recorded presence contradict the RSVP?

    Non-opkomst events and events without a ledger yield an empty mapping.
    """

    if not event.is_opkomst or not event.attendance:
        return {}
    return {
        user_id: is_violation(is_participant=event.is_participant(user_id), present=record.present)
        for user_id, record in event.attendance.items()
    }


def compute_streepjes(users: Iterable[User], events: Iterable[Event]) -> Dict[int, int]:
    counts: Dict[int, int] = {u.user_id: 0 for u in users}
    for event in events:
        for user_id, violated in violation_flags(event).items():
            if violated:
                counts[user_id] = counts.get(user_id, 0) + 1
    return counts
