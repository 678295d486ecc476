from __future__ import annotations

from datetime import date

import pytest

from conftest import ADMIN_ID, BRAM_ID, LOTTE_ID, SANNE_ID, TODAY
from stamjer_calendar.common.datetime_utils import can_change_attendance
from stamjer_calendar.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    WindowClosedError,
)
from stamjer_calendar.events.model import Event
from stamjer_calendar.roster.service import RosterService, participant_names


@pytest.mark.parametrize(
    "start, expected",
    [
        ("2026-03-11", True),
        ("2026-03-11T00:00:00Z", True),
        ("2026-03-10T23:59:00", False),
        ("2026-03-10", False),
        ("2026-03-09", False),
    ],
)
def test_window_closes_on_the_day_itself(start, expected):
    assert can_change_attendance(start, TODAY) is expected


def test_sign_up_and_sign_off(container, events_repo):
    roster = container.roster_service

    event = roster.set_attending(event_id="weekend", user_id=SANNE_ID, attending=True, actor_id=SANNE_ID)
    assert event.participants == (SANNE_ID,)

    event = roster.set_attending(event_id="weekend", user_id=SANNE_ID, attending=False, actor_id=SANNE_ID)
    assert event.participants == ()
    assert events_repo.raw_document("weekend")["participants"] == []


def test_set_attending_is_idempotent(container):
    roster = container.roster_service
    first = roster.set_attending(event_id="opk-next", user_id=SANNE_ID, attending=True, actor_id=SANNE_ID)
    again = roster.set_attending(event_id="opk-next", user_id=SANNE_ID, attending=True, actor_id=SANNE_ID)

    assert first.participants == again.participants == (ADMIN_ID, SANNE_ID, LOTTE_ID)
    # nothing was written
    assert again.revision == first.revision == 1


def test_rsvp_never_touches_the_attendance_ledger(container, events_repo):
    events_repo.put_document(
        {
            "id": "opk-later",
            "title": "Stam opkomst",
            "start": "2026-03-24",
            "isOpkomst": True,
            "participants": [SANNE_ID],
            "attendance": {"2": {"present": True}},
        }
    )

    event = container.roster_service.set_attending(
        event_id="opk-later", user_id=SANNE_ID, attending=False, actor_id=SANNE_ID
    )

    assert event.participants == ()
    assert events_repo.raw_document("opk-later")["attendance"] == {"2": {"present": True}}


@pytest.mark.parametrize("event_id", ["bier-today", "opk-past"])
def test_today_and_past_events_are_closed(container, events_repo, event_id):
    before = events_repo.raw_document(event_id)

    with pytest.raises(WindowClosedError):
        container.roster_service.set_attending(event_id=event_id, user_id=SANNE_ID, attending=False, actor_id=SANNE_ID)

    assert events_repo.raw_document(event_id)["participants"] == before["participants"]


def test_window_applies_to_admins_too(container):
    with pytest.raises(WindowClosedError):
        container.roster_service.set_attending(
            event_id="bier-today", user_id=SANNE_ID, attending=False, actor_id=ADMIN_ID
        )


def test_login_required(container):
    with pytest.raises(AuthenticationError):
        container.roster_service.set_attending(event_id="weekend", user_id=SANNE_ID, attending=True, actor_id=None)


def test_members_cannot_sign_up_others(container):
    with pytest.raises(AuthorizationError):
        container.roster_service.set_attending(event_id="weekend", user_id=LOTTE_ID, attending=True, actor_id=SANNE_ID)


def test_admin_can_sign_up_others(container):
    event = container.roster_service.set_attending(
        event_id="weekend", user_id=BRAM_ID, attending=True, actor_id=ADMIN_ID
    )
    assert event.participants == (BRAM_ID,)


def test_unknown_event_or_user(container):
    with pytest.raises(NotFoundError):
        container.roster_service.set_attending(event_id="nope", user_id=SANNE_ID, attending=True, actor_id=SANNE_ID)
    with pytest.raises(NotFoundError):
        container.roster_service.set_attending(event_id="weekend", user_id=99, attending=True, actor_id=ADMIN_ID)


class RacingEvents:
    """Wraps a repository; the first ``losses`` saves lose to a concurrent writer."""

    def __init__(self, inner, losses: int):
        self._inner = inner
        self._losses = losses
        self.saves = 0

    def get_by_id(self, event_id):
        return self._inner.get_by_id(event_id)

    def save(self, event, *, expected_revision=None):
        self.saves += 1
        if self._losses:
            self._losses -= 1
            # somebody else RSVP'd in between
            current = self._inner.get_by_id(event.event_id)
            self._inner.save(current.with_participant(LOTTE_ID, True))
        return self._inner.save(event, expected_revision=expected_revision)


def test_lost_race_is_retried_on_fresh_state(events_repo, users_repo):
    racing = RacingEvents(events_repo, losses=1)
    roster = RosterService(racing, users_repo, today=lambda: TODAY)

    event = roster.set_attending(event_id="weekend", user_id=SANNE_ID, attending=True, actor_id=SANNE_ID)

    assert racing.saves == 2
    assert set(event.participants) == {LOTTE_ID, SANNE_ID}


def test_gives_up_after_repeated_conflicts(events_repo, users_repo):
    racing = RacingEvents(events_repo, losses=5)
    roster = RosterService(racing, users_repo, attempts=3, today=lambda: TODAY)

    with pytest.raises(ConflictError):
        roster.set_attending(event_id="weekend", user_id=SANNE_ID, attending=True, actor_id=SANNE_ID)
    assert racing.saves == 3


def test_explicit_today_overrides_clock(container):
    with pytest.raises(WindowClosedError):
        container.roster_service.set_attending(
            event_id="weekend", user_id=SANNE_ID, attending=True, actor_id=SANNE_ID, today=date(2026, 4, 3)
        )


def test_participant_names_sorted_with_unknown_fallback(users_repo):
    event = Event(event_id="e", title="x", start="2026-03-20", end="2026-03-20", participants=(LOTTE_ID, 42, SANNE_ID))

    assert participant_names(event, users_repo.list_all()) == ["lotte", "Onbekende gebruiker", "Sanne"]
