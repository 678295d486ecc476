from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from .attendance.service import AttendanceService
from .common.datetime_utils import today_local
from .database.connection import DBConfig, DatabaseConnection
from .events.enrollment import AutoEnrollmentRule
from .events.memory_event_repository import InMemoryEventRepository
from .events.mysql_event_repository import MySQLEventRepository
from .events.repository import EventRepository
from .events.service import EventService
from .notifications.notifier import CompositeNotifier, LoggingNotifier, Notifier
from .roster.service import RosterService
from .users.memory_user_repository import InMemoryUserRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    users_repo: UserRepository
    events_repo: EventRepository

    auth_service: AuthService
    user_service: UserService
    event_service: EventService
    roster_service: RosterService
    attendance_service: AttendanceService

    today: Callable[[], date] = today_local


def wire_services(
    *,
    users_repo: UserRepository,
    events_repo: EventRepository,
    notifiers: Sequence[Notifier] = (),
    opkomst_title: Optional[str] = None,
    today: Callable[[], date] = today_local,
) -> Container:
    """Wire services over the given repositories.

    Every event change is logged; extra ``notifiers`` (mail, push) are called
    after that, and a failing one does not stop the others.
    """

    enrollment = AutoEnrollmentRule(title=opkomst_title) if opkomst_title else AutoEnrollmentRule()
    return Container(
        users_repo=users_repo,
        events_repo=events_repo,
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo, events_repo),
        event_service=EventService(
            events_repo,
            users_repo,
            enrollment=enrollment,
            notifier=CompositeNotifier([LoggingNotifier(), *notifiers]),
        ),
        roster_service=RosterService(events_repo, users_repo, today=today),
        attendance_service=AttendanceService(events_repo, users_repo),
        today=today,
    )


def build_container(
    *,
    db_config: Optional[dict] = None,
    backend: str = "mysql",
    notifiers: Sequence[Notifier] = (),
    opkomst_title: Optional[str] = None,
) -> Container:
    """Construct repositories for the configured backend and wire services.

    ``memory`` keeps everything in process (tests, local demo); a fresh
    container means fresh state.
    """

    if backend == "memory":
        users_repo: UserRepository = InMemoryUserRepository()
        events_repo: EventRepository = InMemoryEventRepository()
    elif backend == "mysql":
        if not db_config:
            raise ValueError("DB_CONFIG is required for the mysql backend")
        conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
        users_repo = MySQLUserRepository(conn)
        events_repo = MySQLEventRepository(conn)
    else:
        raise ValueError(f"Unknown storage backend: {backend!r}")

    return wire_services(
        users_repo=users_repo,
        events_repo=events_repo,
        notifiers=notifiers,
        opkomst_title=opkomst_title,
    )
