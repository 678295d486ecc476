from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from ..core.constants import OPKOMST_TITLE


@dataclass(frozen=True)
class AutoEnrollmentRule:
    """Seed the roster of the regular meeting with everyone currently active.

    Applied once, at creation. The roster is a snapshot: later (de)activation
    of a member only affects events created afterwards.
    """

    title: str = OPKOMST_TITLE

    def applies(self, *, title: str, is_opkomst: bool) -> bool:
        return bool(is_opkomst) and title == self.title

    def initial_participants(
        self,
        *,
        title: str,
        is_opkomst: bool,
        members: Iterable[Tuple[int, bool]],
    ) -> Tuple[int, ...]:
        """``members`` are ``(user_id, active)`` pairs."""

        if not self.applies(title=title, is_opkomst=is_opkomst):
            return ()
        seen: dict[int, None] = {}
        for user_id, active in members:
            if active:
                seen.setdefault(int(user_id), None)
        return tuple(seen)
