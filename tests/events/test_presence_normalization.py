import pytest

from stamjer_calendar.core.exceptions import ValidationError
from stamjer_calendar.events.model import Event, PresenceRecord, normalize_attendance, normalize_presence


@pytest.mark.parametrize(
    "value, present, legacy",
    [
        (True, True, True),
        (False, False, True),
        ({"present": True}, True, False),
        ({"present": False}, False, False),
        ({"present": True, "absent": True}, True, True),
        ({"absent": True}, False, True),
        ({"absent": False}, True, True),
        (None, False, True),
        ({}, False, True),
    ],
)
def test_every_known_shape_normalizes(value, present, legacy):
    assert normalize_presence(value) == (PresenceRecord(present), legacy)


def test_unsupported_value_is_rejected():
    with pytest.raises(ValidationError):
        normalize_presence("yes")


def test_keys_become_int_user_ids():
    attendance, legacy = normalize_attendance({"3": {"present": True}, 7: {"present": False}})

    assert attendance == {3: PresenceRecord(True), 7: PresenceRecord(False)}
    assert not legacy


def test_non_numeric_key_is_rejected():
    with pytest.raises(ValidationError):
        normalize_attendance({"bram": True})


def test_legacy_ledger_is_rewritten_on_read(events_repo):
    event = events_repo.get_by_id("opk-past")

    assert {uid: rec.present for uid, rec in event.attendance.items()} == {1: True, 2: False, 4: True}
    assert events_repo.raw_document("opk-past")["attendance"] == {
        "1": {"present": True},
        "2": {"present": False},
        "4": {"present": True},
    }


def test_document_defaults():
    event = Event.from_dict({"id": "x", "title": "Borrel", "start": "2026-05-01", "opkomstmakers": ["Sanne", "Bram"]})

    assert event.end == "2026-05-01"
    assert event.participants == ()
    assert event.attendance == {}
    assert event.opkomstmakers == "Sanne, Bram"
    assert event.to_dict()["attendance"] == {}


def test_participants_are_a_set_in_first_seen_order():
    event = Event.from_dict({"id": "x", "title": "t", "start": "2026-05-01", "participants": [3, "1", 3, 1]})

    assert event.participants == (3, 1)
    assert event.with_participant(3, True) is event
