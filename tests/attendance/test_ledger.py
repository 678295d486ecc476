from __future__ import annotations

import pytest

from conftest import ADMIN_ID, BRAM_ID, LOTTE_ID, SANNE_ID, TODAY
from stamjer_calendar.attendance.ledger import (
    LedgerRow,
    build_ledger,
    default_ledger,
    default_opkomst,
    filter_rows,
    order_roster,
    toggle,
)
from stamjer_calendar.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from stamjer_calendar.events.model import Event


def test_default_ledger_falls_back_to_rsvp(events_repo, users_repo):
    event = events_repo.get_by_id("opk-next")

    ledger = default_ledger(event, users_repo.list_all())

    assert ledger == {ADMIN_ID: True, SANNE_ID: True, BRAM_ID: False, LOTTE_ID: True}


def test_recorded_presence_overrides_rsvp(events_repo, users_repo):
    event = events_repo.get_by_id("opk-past")

    ledger = default_ledger(event, users_repo.list_all())

    assert ledger == {ADMIN_ID: True, SANNE_ID: False, BRAM_ID: False, LOTTE_ID: True}


def test_roster_lists_participants_first_then_by_name_ignoring_case():
    rows = [
        LedgerRow(1, "zeno", False, False),
        LedgerRow(2, "Bart", True, True),
        LedgerRow(3, "anna", False, False),
        LedgerRow(4, "Yara", True, True),
    ]

    assert [r.user_id for r in order_roster(rows)] == [2, 4, 3, 1]


def test_build_ledger_carries_streepjes_and_changed(events_repo, users_repo):
    event = events_repo.get_by_id("opk-past")

    rows = build_ledger(event, users_repo.list_all(), streepjes={SANNE_ID: 1, LOTTE_ID: 1})

    by_id = {r.user_id: r for r in rows}
    assert [r.user_id for r in rows[:2]] == [ADMIN_ID, SANNE_ID]
    assert by_id[SANNE_ID].changed and by_id[SANNE_ID].streepjes == 1
    assert by_id[LOTTE_ID].changed and by_id[LOTTE_ID].present
    assert not by_id[ADMIN_ID].changed


def test_filter_rows():
    rows = [
        LedgerRow(1, "Sanne de Vries", True, False),
        LedgerRow(2, "Bram Jansen", False, False),
        LedgerRow(3, "Lotte Bakker", False, True),
    ]

    assert [r.user_id for r in filter_rows(rows, query="  SAN ")] == [1]
    assert [r.user_id for r in filter_rows(rows, only_participants=True)] == [1]
    assert [r.user_id for r in filter_rows(rows, only_changed=True)] == [1, 3]
    assert [r.user_id for r in filter_rows(rows, query="jansen", only_changed=True)] == []


def test_toggle_returns_a_new_full_map():
    ledger = {1: True, 2: False}

    flipped = toggle(ledger, 2)

    assert flipped == {1: True, 2: True}
    assert ledger == {1: True, 2: False}
    assert toggle(flipped, 5) == {1: True, 2: True, 5: True}


def _opk(event_id: str, start: str) -> Event:
    return Event(event_id=event_id, title="Stam opkomst", start=start, end=start, is_opkomst=True)


def test_default_opkomst_prefers_today_then_next_then_last():
    past = _opk("past", "2026-03-03T20:00:00")
    same_day = _opk("today", "2026-03-10T20:00:00")
    upcoming = _opk("next", "2026-03-17T20:00:00")
    party = Event(event_id="party", title="Feest", start="2026-03-11", end="2026-03-11")

    assert default_opkomst([upcoming, past, same_day, party], TODAY).event_id == "today"
    assert default_opkomst([upcoming, past, party], TODAY).event_id == "next"
    assert default_opkomst([past], TODAY).event_id == "past"
    assert default_opkomst([party], TODAY) is None


def test_save_attendance_replaces_whole_map(container, events_repo):
    saved = container.attendance_service.save_attendance(
        event_id="opk-past",
        ledger={"2": {"present": True}},
        actor_id=ADMIN_ID,
    )

    assert {uid: rec.present for uid, rec in saved.attendance.items()} == {SANNE_ID: True}
    assert events_repo.raw_document("opk-past")["attendance"] == {"2": {"present": True}}
    # the RSVP side is untouched
    assert saved.participants == (ADMIN_ID, SANNE_ID)


def test_save_attendance_with_stale_revision_conflicts(container):
    event = container.event_service.get_event("opk-next")
    container.attendance_service.save_attendance(
        event_id="opk-next", ledger={"1": True}, actor_id=ADMIN_ID, expected_revision=event.revision
    )

    with pytest.raises(ConflictError):
        container.attendance_service.save_attendance(
            event_id="opk-next", ledger={"2": True}, actor_id=ADMIN_ID, expected_revision=event.revision
        )


def test_ledger_view_is_admin_only(container):
    with pytest.raises(AuthorizationError):
        container.attendance_service.ledger_view(event_id="opk-past", actor_id=SANNE_ID)
    with pytest.raises(NotFoundError):
        container.attendance_service.ledger_view(event_id="nope", actor_id=ADMIN_ID)


def test_ledger_view_rows(container):
    event, rows = container.attendance_service.ledger_view(event_id="opk-past", actor_id=ADMIN_ID)

    assert event.event_id == "opk-past"
    assert {r.user_id: r.streepjes for r in rows} == {ADMIN_ID: 0, SANNE_ID: 1, BRAM_ID: 0, LOTTE_ID: 1}
