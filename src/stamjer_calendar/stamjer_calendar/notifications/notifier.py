from __future__ import annotations

import logging
from typing import Protocol, Sequence

from ..events.model import Event

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Outbound mail/push transport. Delivery is somebody else's problem."""

    def notify(self, event: Event, action: str) -> None:
        raise NotImplementedError


class LoggingNotifier:
    """Default transport: records the notification in the log only."""

    def notify(self, event: Event, action: str) -> None:
        logger.info("Notify %s event %s (%s, %s)", action, event.event_id, event.title, event.start)


class CompositeNotifier:
    def __init__(self, notifiers: Sequence[Notifier]):
        self._notifiers = list(notifiers)

    def notify(self, event: Event, action: str) -> None:
        for n in self._notifiers:
            notify_safely(n, event, action)


def notify_safely(notifier: Notifier, event: Event, action: str) -> bool:
    """Fire and forget.

    A failed notification is logged and never retried; the event mutation that
    triggered it stands.
    """

    try:
        notifier.notify(event, action)
        return True
    except Exception:
        logger.warning("Notification for %s event %s failed", action, event.event_id, exc_info=True)
        return False
