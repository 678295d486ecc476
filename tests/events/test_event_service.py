from __future__ import annotations

import pytest

from conftest import ADMIN_ID, LOTTE_ID, SANNE_ID, TODAY, RecordingNotifier
from stamjer_calendar.container import wire_services
from stamjer_calendar.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MissingRequiredFieldError,
    NotFoundError,
    ValidationError,
)
from stamjer_calendar.events.service import upcoming_opkomsten


def test_create_stam_opkomst_enrolls_active_members(container, notifier):
    event = container.event_service.create_event(
        actor_id=ADMIN_ID,
        data={"title": "Stam opkomst", "start": "2026-03-31T20:00:00", "isOpkomst": True, "opkomstmakers": "Lotte"},
    )

    # Bram is inactive
    assert event.participants == (ADMIN_ID, SANNE_ID, LOTTE_ID)
    assert event.attendance == {}
    assert event.revision == 1
    assert event.end == "2026-03-31T20:00:00"
    assert notifier.sent == [("created", event.event_id)]


def test_roster_is_a_snapshot_at_creation(container, users_repo):
    first = container.event_service.create_event(
        actor_id=ADMIN_ID, data={"title": "Stam opkomst", "start": "2026-03-31", "isOpkomst": True}
    )
    users_repo.set_active(LOTTE_ID, active=False)
    second = container.event_service.create_event(
        actor_id=ADMIN_ID, data={"title": "Stam opkomst", "start": "2026-04-07", "isOpkomst": True}
    )

    assert LOTTE_ID in container.event_service.get_event(first.event_id).participants
    assert LOTTE_ID not in second.participants


def test_client_supplied_roster_and_ledger_are_ignored_on_create(container):
    event = container.event_service.create_event(
        actor_id=ADMIN_ID,
        data={
            "id": "mine",
            "title": "Borrel",
            "start": "2026-03-20",
            "participants": [SANNE_ID],
            "attendance": {"2": True},
        },
    )

    assert event.event_id != "mine"
    assert event.participants == ()
    assert event.attendance == {}


@pytest.mark.parametrize("data", [{"start": "2026-03-20"}, {"title": "  ", "start": "2026-03-20"}, {"title": "x"}])
def test_missing_title_or_start(container, data):
    with pytest.raises(MissingRequiredFieldError):
        container.event_service.create_event(actor_id=ADMIN_ID, data=data)


def test_invalid_start(container):
    with pytest.raises(ValidationError):
        container.event_service.create_event(actor_id=ADMIN_ID, data={"title": "x", "start": "morgen"})


def test_only_admins_write_events(container):
    with pytest.raises(AuthorizationError):
        container.event_service.create_event(actor_id=SANNE_ID, data={"title": "x", "start": "2026-03-20"})
    with pytest.raises(AuthenticationError):
        container.event_service.delete_event(actor_id=None, event_id="weekend")
    with pytest.raises(AuthorizationError):
        container.event_service.update_event(actor_id=SANNE_ID, event_id="weekend", changes={"title": "y"})


def test_update_replaces_given_fields_only(container, notifier):
    event = container.event_service.update_event(
        actor_id=ADMIN_ID,
        event_id="weekend",
        changes={"title": "Weekend Ardennen", "location": None, "participants": [SANNE_ID]},
    )

    assert event.title == "Weekend Ardennen"
    assert event.location == ""
    assert event.start == "2026-04-03"
    assert event.participants == ()
    assert event.revision == 2
    assert notifier.sent == [("updated", "weekend")]


def test_attendance_only_update_replaces_the_map_and_does_not_notify(container, notifier):
    event = container.event_service.update_event(
        actor_id=ADMIN_ID, event_id="opk-past", changes={"attendance": {"4": {"absent": True}}}
    )

    assert {uid: rec.present for uid, rec in event.attendance.items()} == {LOTTE_ID: False}
    assert notifier.sent == []


def test_update_with_stale_revision(container):
    container.event_service.update_event(actor_id=ADMIN_ID, event_id="weekend", changes={"title": "A"}, expected_revision=1)

    with pytest.raises(ConflictError):
        container.event_service.update_event(
            actor_id=ADMIN_ID, event_id="weekend", changes={"title": "B"}, expected_revision=1
        )


def test_delete(container, notifier):
    removed = container.event_service.delete_event(actor_id=ADMIN_ID, event_id="weekend")

    assert removed.event_id == "weekend"
    assert notifier.sent == [("deleted", "weekend")]
    with pytest.raises(NotFoundError):
        container.event_service.get_event("weekend")
    with pytest.raises(NotFoundError):
        container.event_service.delete_event(actor_id=ADMIN_ID, event_id="weekend")


def test_failing_notifier_does_not_undo_the_mutation(container):
    class Broken:
        def notify(self, event, action):
            raise RuntimeError("smtp down")

    container.event_service._notifier = Broken()

    event = container.event_service.create_event(actor_id=ADMIN_ID, data={"title": "Borrel", "start": "2026-03-20"})

    assert container.event_service.get_event(event.event_id).title == "Borrel"


def test_every_wired_notifier_hears_about_a_change_even_if_one_fails(users_repo, events_repo, caplog):
    class Broken:
        def notify(self, event, action):
            raise RuntimeError("smtp down")

    push = RecordingNotifier()
    container = wire_services(users_repo=users_repo, events_repo=events_repo, notifiers=[Broken(), push])

    with caplog.at_level("INFO", logger="stamjer_calendar.notifications.notifier"):
        container.event_service.delete_event(actor_id=ADMIN_ID, event_id="weekend")

    assert push.sent == [("deleted", "weekend")]
    assert "Notify deleted event weekend" in caplog.text
    assert "Notification for deleted event weekend failed" in caplog.text


def test_upcoming_opkomsten_skip_past_ones(container):
    events = container.event_service.list_events()

    assert [e.event_id for e in upcoming_opkomsten(events, TODAY)] == ["opk-next"]
    assert [e.event_id for e in container.event_service.list_opkomsten()] == ["opk-past", "opk-next"]
