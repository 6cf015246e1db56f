"""
Pure helpers for the debounce coordinator. No store I/O here.
"""
import logging
import math
import time
from typing import NamedTuple, Optional, Union

from pydantic import ValidationError

from message_debounce.core.errors import OperationError
from message_debounce.core.models import MessageEntry, TtlUnit
from message_debounce.temporal.constants import KEY_PREFIX, TTL_MULTIPLIERS

logger = logging.getLogger(__name__)


class SessionKeys(NamedTuple):
    """Store keys holding one session's state."""
    msg_key: str
    ts_key: str
    session_key: str


def make_keys(session_id: str) -> SessionKeys:
    """Return the message-list, start-time and session-marker keys for a session."""
    return SessionKeys(
        msg_key=f"{KEY_PREFIX}:{session_id}:msgs",
        ts_key=f"{KEY_PREFIX}:{session_id}:startTime",
        session_key=f"{KEY_PREFIX}:{session_id}:session",
    )


def to_ttl_seconds(value: float, unit: Union[TtlUnit, str]) -> int:
    """
    Convert a user-facing TTL to whole seconds.

    Returns 0 (no expiry) for ``never``. Unknown units use the minutes multiplier.
    """
    unit = unit.value if isinstance(unit, TtlUnit) else str(unit)
    if unit == TtlUnit.NEVER.value:
        return 0
    multiplier = TTL_MULTIPLIERS.get(unit, TTL_MULTIPLIERS["minutes"])
    return math.floor(value * multiplier + 0.5)


def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def encode_entry(entry: MessageEntry) -> str:
    return entry.model_dump_json()


def decode_entry(raw: str) -> Optional[MessageEntry]:
    """Parse a buffered entry; None if it is not a valid entry."""
    try:
        return MessageEntry.model_validate_json(raw)
    except ValidationError:
        return None


def entry_content(raw: str) -> str:
    """Content of a buffered entry. Unparseable entries pass through as the raw string."""
    entry = decode_entry(raw)
    if entry is None:
        logger.warning(f"Malformed buffered entry passed through raw: {raw[:50]!r}")
        return raw
    return entry.content


def wrap_store_error(err: BaseException) -> OperationError:
    """Wrap a store failure with the user-facing prefix."""
    return OperationError(f"Redis operation failed: {err}")
