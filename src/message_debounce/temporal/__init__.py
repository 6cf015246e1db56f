"""Temporal processing modules (debounce coordination, session keys, TTLs)."""

from message_debounce.temporal.coordinator import DebounceCoordinator
from message_debounce.temporal.helpers import SessionKeys, make_keys, to_ttl_seconds

__all__ = [
    "DebounceCoordinator",
    "SessionKeys",
    "make_keys",
    "to_ttl_seconds",
]
