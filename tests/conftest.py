from __future__ import annotations

from datetime import date

import pytest
from werkzeug.security import generate_password_hash

from stamjer_calendar.container import wire_services
from stamjer_calendar.events.memory_event_repository import InMemoryEventRepository
from stamjer_calendar.main import create_app
from stamjer_calendar.users.memory_user_repository import InMemoryUserRepository
from stamjer_calendar.users.model import User

TODAY = date(2026, 3, 10)

PASSWORD = "geheim123"
# Cheap hash so the suite stays fast.
PASSWORD_HASH = generate_password_hash(PASSWORD, method="pbkdf2:sha256:1000")

ADMIN_ID = 1
SANNE_ID = 2
BRAM_ID = 3  # inactive
LOTTE_ID = 4


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    def notify(self, event, action):
        self.sent.append((action, event.event_id))


def make_users() -> list[User]:
    return [
        User(ADMIN_ID, "Admin", "Stamjer", "admin@stamjer.local", PASSWORD_HASH, active=True, is_admin=True),
        User(SANNE_ID, "Sanne", "de Vries", "sanne@stamjer.local", PASSWORD_HASH, active=True),
        User(BRAM_ID, "Bram", "Jansen", "bram@stamjer.local", PASSWORD_HASH, active=False),
        User(LOTTE_ID, "lotte", "Bakker", "lotte@stamjer.local", PASSWORD_HASH, active=True),
    ]


def make_event_documents() -> list[dict]:
    return [
        {
            "id": "opk-past",
            "title": "Stam opkomst",
            "start": "2026-03-03T20:00:00",
            "end": "2026-03-03T23:00:00",
            "isOpkomst": True,
            "opkomstmakers": "Sanne",
            "participants": [ADMIN_ID, SANNE_ID],
            # mixed shapes, the way older clients left them
            "attendance": {"1": {"present": True}, "2": {"absent": True}, "4": True},
        },
        {
            "id": "opk-next",
            "title": "Stam opkomst",
            "start": "2026-03-17T20:00:00",
            "end": "2026-03-17T23:00:00",
            "isOpkomst": True,
            "participants": [ADMIN_ID, SANNE_ID, LOTTE_ID],
            "attendance": {},
        },
        {
            "id": "bier-today",
            "title": "Bierproeverij",
            "start": "2026-03-10",
            "allDay": True,
            "participants": [SANNE_ID],
        },
        {
            "id": "weekend",
            "title": "Weekend weg",
            "start": "2026-04-03",
            "end": "2026-04-05",
            "allDay": True,
            "location": "Ardennen",
            "participants": [],
        },
    ]


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def users_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository(make_users())


@pytest.fixture
def events_repo() -> InMemoryEventRepository:
    return InMemoryEventRepository(make_event_documents())


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def container(users_repo, events_repo, notifier):
    return wire_services(
        users_repo=users_repo,
        events_repo=events_repo,
        notifiers=[notifier],
        today=lambda: TODAY,
    )


@pytest.fixture
def app(container):
    return create_app(container=container, settings_module="config.testing")


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, email: str, password: str = PASSWORD):
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(client):
    assert login(client, "admin@stamjer.local").status_code == 200
    return client


@pytest.fixture
def member_client(client):
    assert login(client, "sanne@stamjer.local").status_code == 200
    return client
