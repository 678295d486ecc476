"""Cache key factory.

Keys are tuples; invalidating a key invalidates every key it prefixes, so
``EVENTS_ALL`` covers lists, details and the opkomsten view at once.
"""

from __future__ import annotations

from typing import Tuple

QueryKey = Tuple[str, ...]

EVENTS_ALL: QueryKey = ("events",)
EVENTS_LIST: QueryKey = EVENTS_ALL + ("list",)
EVENTS_DETAILS: QueryKey = EVENTS_ALL + ("detail",)
EVENTS_OPKOMSTEN: QueryKey = EVENTS_ALL + ("opkomsten",)
EVENTS_LEDGERS: QueryKey = EVENTS_ALL + ("ledger",)

USERS_ALL: QueryKey = ("users",)
USERS_LIST: QueryKey = USERS_ALL + ("list",)
USERS_FULL: QueryKey = USERS_ALL + ("full",)
USERS_PROFILE: QueryKey = USERS_ALL + ("profile",)


def event_detail(event_id: str) -> QueryKey:
    return EVENTS_DETAILS + (str(event_id),)


def event_ledger(event_id: str, *, query: str = "", participants: bool = False, changed: bool = False) -> QueryKey:
    # One partition per filter combination.
    return EVENTS_LEDGERS + (str(event_id), query, "1" if participants else "0", "1" if changed else "0")


def is_prefix(prefix: QueryKey, key: QueryKey) -> bool:
    return key[: len(prefix)] == prefix
