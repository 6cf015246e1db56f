"""
Pydantic models for message debouncing.

Value objects shared by the store client, the coordinator and the invocation
host: buffered entries, resolved options, flush output and connection settings.
"""
import math
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FlushReason(str, Enum):
    """Reason that triggered a flush."""
    DEBOUNCE_WINDOW = "debounceWindow"
    MAX_MESSAGES = "maxMessages"
    MAX_WAIT_TIME = "maxWaitTime"
    KEYWORD = "keyword"
    FIRST_MESSAGE = "firstMessage"
    DUPLICATE = "duplicate"


class DuplicateMode(str, Enum):
    """What to do when a message equals the last buffered one."""
    INCLUDE = "include"  # Buffer it like any other message
    IGNORE = "ignore"  # Drop it, no output
    FLUSH = "flush"  # Treat it as a flush signal


class FirstMessageBehavior(str, Enum):
    """Special handling for the first message of a new or expired session."""
    NONE = "none"
    IMMEDIATE = "immediate"
    CUSTOM_WINDOW = "customWindow"


class TtlUnit(str, Enum):
    """Unit of the session inactivity TTL."""
    NEVER = "never"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


class MessageEntry(BaseModel):
    """
    Single buffered message as stored in the message list.

    Attributes:
        id: Unique token of the execution that appended this entry
        content: The message text
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str


class ResolvedOptions(BaseModel):
    """
    Debounce options resolved for a single call.

    Zero for max_messages or max_wait_time_sec disables that ceiling.
    Flush keywords are matched as case-insensitive substrings.
    """
    model_config = ConfigDict(frozen=True)

    max_messages: int = Field(default=0, ge=0)
    max_wait_time_sec: float = Field(default=0, ge=0)
    separator: str = "\n"
    on_duplicate: DuplicateMode = DuplicateMode.INCLUDE
    first_msg_behavior: FirstMessageBehavior = FirstMessageBehavior.NONE
    first_msg_custom_window: float = Field(default=3, gt=0)
    session_ttl_unit: TtlUnit = TtlUnit.NEVER
    session_ttl_value: float = Field(default=24, ge=0)
    flush_keywords: tuple[str, ...] = ()

    @field_validator('flush_keywords', mode='before')
    @classmethod
    def normalize_keywords(cls, v: Any) -> tuple[str, ...]:
        """Accept a ';'-separated string or a sequence; trim, lower-case, drop empties."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(';')
        return tuple(k.strip().lower() for k in v if k and k.strip())


class DebounceOutput(BaseModel):
    """Consolidated output emitted by the call that flushes."""
    model_config = ConfigDict(populate_by_name=True)

    full_message: str = Field(alias="fullMessage")
    message_count: int = Field(alias="messageCount")
    flush_reason: FlushReason = Field(alias="flushReason")

    def to_row(self) -> dict:
        """Return the output row in the host's camelCase shape."""
        return self.model_dump(mode="json", by_alias=True)


class DebounceRequest(BaseModel):
    """Validated invocation input. Built before any store interaction."""
    session_id: str
    message: str
    debounce_window: float

    @field_validator('session_id', mode='before')
    @classmethod
    def validate_session_id(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("Session ID is required")
        return str(v).strip()

    @field_validator('message', mode='before')
    @classmethod
    def validate_message(cls, v: Any) -> str:
        # "0" and other falsy-looking text is a valid message
        if v is None or v == "":
            raise ValueError("Message is required")
        return str(v)

    @field_validator('debounce_window', mode='before')
    @classmethod
    def validate_window(cls, v: Any) -> float:
        if v is None or v == "":
            raise ValueError("Debounce Window is required")
        try:
            window = float(v)
        except (TypeError, ValueError):
            window = math.nan
        if math.isnan(window) or window < 1:
            raise ValueError("Debounce Window must be a positive number (minimum 1 second)")
        return window


class StoreConfig(BaseModel):
    """Connection settings for the Redis-compatible store."""
    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    username: str = ""
    password: str = ""
    database: int = Field(default=0, ge=0)
    tls: bool = False

    @field_validator('host', mode='before')
    @classmethod
    def default_host(cls, v: Optional[str]) -> str:
        return v or "localhost"

    def __repr__(self) -> str:
        # Never print the password
        return (
            f"StoreConfig(host={self.host!r}, port={self.port}, "
            f"username={self.username!r}, database={self.database}, tls={self.tls})"
        )
