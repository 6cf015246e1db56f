"""Core models and errors."""

from message_debounce.core.models import (
    DebounceOutput,
    DebounceRequest,
    DuplicateMode,
    FirstMessageBehavior,
    FlushReason,
    MessageEntry,
    ResolvedOptions,
    StoreConfig,
    TtlUnit,
)
from message_debounce.core.errors import (
    CommandError,
    DebounceError,
    InputValidationError,
    OperationError,
    ProtocolError,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
)

__all__ = [
    "DebounceOutput",
    "DebounceRequest",
    "DuplicateMode",
    "FirstMessageBehavior",
    "FlushReason",
    "MessageEntry",
    "ResolvedOptions",
    "StoreConfig",
    "TtlUnit",
    "CommandError",
    "DebounceError",
    "InputValidationError",
    "OperationError",
    "ProtocolError",
    "StoreConnectionError",
    "StoreError",
    "StoreTimeoutError",
]
