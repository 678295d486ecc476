from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Sequence

from .query_keys import QueryKey


class MutationState(str, Enum):
    IDLE = "idle"
    OPTIMISTIC_APPLIED = "optimistic_applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    SETTLED = "settled"


_ALLOWED = {
    MutationState.IDLE: {MutationState.OPTIMISTIC_APPLIED},
    MutationState.OPTIMISTIC_APPLIED: {MutationState.CONFIRMED, MutationState.ROLLED_BACK},
    MutationState.CONFIRMED: {MutationState.SETTLED},
    MutationState.ROLLED_BACK: {MutationState.SETTLED},
    MutationState.SETTLED: set(),
}


@dataclass
class MutationTransaction:
    """One write, from optimistic apply to settlement.

    ``apply``/``confirm``/``rollback`` are pure functions over the partition
    data; the gateway owns the cache writes and the state transitions.
    """

    name: str
    entity_id: str
    partition: QueryKey
    apply: Callable[[Any], Any]
    request: Callable[[], Any]
    confirm: Callable[[Any, Any], Any]
    rollback: Callable[[Any, Any], Any]
    invalidates: Sequence[QueryKey] = ()
    on_confirmed: Optional[Callable[[Any], None]] = None

    snapshot: Any = None
    state: MutationState = MutationState.IDLE
    result: Any = None
    error: Optional[BaseException] = None
    history: List[MutationState] = field(default_factory=lambda: [MutationState.IDLE])

    def transition(self, new_state: MutationState) -> None:
        if new_state not in _ALLOWED[self.state]:
            raise RuntimeError(f"{self.name}: illegal transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


# Entity-level helpers for list partitions of ``{"id": ...}`` dicts.


def _same(item: dict, entity_id: Any) -> bool:
    return str(item.get("id")) == str(entity_id)


def append_entity(current: Optional[list], item: dict) -> list:
    return list(current or []) + [copy.deepcopy(item)]


def replace_entity(current: Optional[list], entity_id: Any, item: dict) -> Optional[list]:
    """Swap the entity for ``item``; appends when it is not there (no duplicates either way)."""

    if current is None:
        return None
    out = []
    placed = False
    for existing in current:
        if _same(existing, entity_id) or _same(existing, item.get("id")):
            if not placed:
                out.append(copy.deepcopy(item))
                placed = True
            continue
        out.append(existing)
    if not placed:
        out.append(copy.deepcopy(item))
    return out


def update_entity(current: Optional[list], entity_id: Any, updater: Callable[[dict], dict]) -> Optional[list]:
    if current is None:
        return None
    return [updater(copy.deepcopy(item)) if _same(item, entity_id) else item for item in current]


def remove_entity(current: Optional[list], entity_id: Any) -> Optional[list]:
    if current is None:
        return None
    return [item for item in current if not _same(item, entity_id)]


def find_entity(current: Optional[list], entity_id: Any) -> Optional[dict]:
    for item in current or []:
        if _same(item, entity_id):
            return item
    return None


def restore_entities(current: Optional[list], snapshot: Any, entity_ids: Iterable[Any]) -> Optional[list]:
    """Put the given entities back the way the snapshot had them.

    Everything else in ``current`` is kept, so an unrelated mutation that
    landed in the meantime survives. With no interleaving the result equals
    the snapshot.
    """

    ids = {str(i) for i in entity_ids}
    if current is None and not isinstance(snapshot, list):
        return None
    base = [item for item in (current or []) if str(item.get("id")) not in ids]
    if isinstance(snapshot, list):
        for index, item in enumerate(snapshot):
            if str(item.get("id")) in ids:
                base.insert(min(index, len(base)), copy.deepcopy(item))
    return base
