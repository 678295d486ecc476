from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class EntityMutationQueue:
    """FIFO turnstile per entity id.

    Mutations against the same id run one at a time in submission order;
    different ids never wait on each other. Not re-entrant: a mutation must
    not submit another mutation for its own id while holding the turn.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._next_ticket: Dict[str, int] = {}
        self._serving: Dict[str, int] = {}

    @contextmanager
    def turn(self, entity_id: str) -> Iterator[int]:
        with self._cond:
            ticket = self._next_ticket.get(entity_id, 0)
            self._next_ticket[entity_id] = ticket + 1
            self._serving.setdefault(entity_id, 0)
            while self._serving[entity_id] != ticket:
                self._cond.wait()
        try:
            yield ticket
        finally:
            with self._cond:
                self._serving[entity_id] += 1
                if self._serving[entity_id] == self._next_ticket[entity_id]:
                    del self._serving[entity_id]
                    del self._next_ticket[entity_id]
                self._cond.notify_all()

    def pending(self, entity_id: str) -> int:
        """Mutations for ``entity_id`` running or waiting."""

        with self._cond:
            return self._next_ticket.get(entity_id, 0) - self._serving.get(entity_id, 0)
