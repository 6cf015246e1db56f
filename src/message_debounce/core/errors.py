"""
Error taxonomy for message debouncing.

Store-originating failures derive from StoreError; the coordinator wraps them
into OperationError before they reach the invocation host.
"""


class DebounceError(Exception):
    """Base class for every error raised by this package."""


class InputValidationError(DebounceError, ValueError):
    """Missing or invalid invocation input, raised before any store I/O."""


class StoreError(DebounceError):
    """Base class for failures talking to the key-value store."""


class StoreConnectionError(StoreError, ConnectionError):
    """Handshake, authentication or transport failure."""


class ProtocolError(StoreError):
    """
    Malformed reply frame from the store.

    Attributes:
        recoverable: True when the bad frame could be skipped and the
            connection remains usable for the calls queued behind it.
    """

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class CommandError(StoreError):
    """The store answered a command with an explicit error reply."""


class StoreTimeoutError(StoreError, TimeoutError):
    """A single pending call exceeded its time budget."""


class OperationError(DebounceError):
    """A store operation failed while a debounce call was in progress."""
