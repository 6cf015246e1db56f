"""
Invocation host - runs one debounce call per inbound message.

Validates the raw parameters before any store interaction, resolves options,
owns the store connection for the lifetime of the call and always releases it.

Usage:
    from message_debounce.host.runner import run_from_parameters
    from message_debounce.config import load_store_config

    rows = await run_from_parameters(
        {"sessionId": "chat-42", "message": "hello", "debounceWindow": 10},
        load_store_config(),
    )
    # rows == [] (absorbed) or [{"fullMessage": ..., "messageCount": ..., "flushReason": ...}]
"""

import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from message_debounce.core.errors import InputValidationError, StoreError
from message_debounce.core.models import DebounceRequest, ResolvedOptions, StoreConfig
from message_debounce.store.client import StoreClient
from message_debounce.temporal.coordinator import DebounceCoordinator

logger = logging.getLogger(__name__)

ClientFactory = Callable[[StoreConfig], StoreClient]


def _validation_message(exc: ValidationError) -> str:
    """Turn the first pydantic error into a readable message."""
    error = exc.errors()[0]
    original = (error.get("ctx") or {}).get("error")
    if original is not None:
        return str(original)
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]


def build_request(parameters: dict[str, Any]) -> DebounceRequest:
    """
    Validate the required invocation fields.

    Raises:
        InputValidationError: Missing session id or message, or a window below 1s.
    """
    try:
        return DebounceRequest(
            session_id=parameters.get("sessionId"),
            message=parameters.get("message"),
            debounce_window=parameters.get("debounceWindow"),
        )
    except ValidationError as e:
        raise InputValidationError(_validation_message(e)) from e


def resolve_options(parameters: dict[str, Any]) -> ResolvedOptions:
    """
    Resolve debounce options from host parameters.

    First-message and TTL settings are flat parameters; everything else comes
    from the ``options`` collection. Literal ``\\n`` and ``\\t`` in the separator
    become newline and tab, and flush keywords are ``;``-separated.

    Raises:
        InputValidationError: An option is out of range.
    """
    raw = parameters.get("options") or {}
    separator = str(raw.get("separator", "\\n")).replace("\\n", "\n").replace("\\t", "\t")

    custom_window = parameters.get("firstMessageCustomWindow", 3)
    try:
        custom_window = float(custom_window)
    except (TypeError, ValueError):
        raise InputValidationError("First Message Custom Window must be a number") from None
    if custom_window < 1:
        raise InputValidationError(
            "First Message Custom Window must be a positive number (minimum 1 second)"
        )

    try:
        return ResolvedOptions(
            max_messages=raw.get("maxMessages", 0),
            max_wait_time_sec=raw.get("maxWaitTime", 0),
            separator=separator,
            on_duplicate=raw.get("onDuplicateMessage", "include"),
            flush_keywords=raw.get("flushKeywords", ""),
            first_msg_behavior=parameters.get("firstMessageBehavior", "none"),
            first_msg_custom_window=custom_window,
            session_ttl_unit=parameters.get("sessionTtlUnit", "never"),
            session_ttl_value=parameters.get("sessionTtlValue", 24),
        )
    except ValidationError as e:
        raise InputValidationError(_validation_message(e)) from e


async def run_debounce(
    request: DebounceRequest,
    options: ResolvedOptions,
    store_config: StoreConfig,
    client_factory: ClientFactory = StoreClient,
) -> list[dict]:
    """
    Run one debounce call with its own store connection.

    Returns:
        Zero or one output row.

    Raises:
        StoreConnectionError: The connection could not be established.
        OperationError: A store operation failed during the call.
    """
    client = client_factory(store_config)
    await client.connect()
    try:
        coordinator = DebounceCoordinator(client)
        output = await coordinator.handle(
            request.session_id,
            request.message,
            request.debounce_window,
            options,
        )
    finally:
        await client.disconnect()

    if output is None:
        return []
    return [output.to_row()]


async def run_from_parameters(
    parameters: dict[str, Any],
    store_config: StoreConfig,
    client_factory: ClientFactory = StoreClient,
) -> list[dict]:
    """Validate raw host parameters, then run one debounce call."""
    request = build_request(parameters)
    options = resolve_options(parameters)
    logger.debug(
        f"Debounce call for {request.session_id}: window={request.debounce_window}s, "
        f"message={request.message[:50]!r}"
    )
    return await run_debounce(request, options, store_config, client_factory)


async def check_connection(
    store_config: StoreConfig,
    client_factory: ClientFactory = StoreClient,
) -> tuple[bool, str]:
    """
    Connect, authenticate and disconnect.

    Returns:
        (True, "Connection successful") or (False, reason)
    """
    client = client_factory(store_config)
    try:
        await client.connect()
    except StoreError as e:
        return False, str(e)
    await client.disconnect()
    return True, "Connection successful"


def describe_target(store_config: Optional[StoreConfig]) -> str:
    """Human-readable connection target, without credentials."""
    config = store_config or StoreConfig()
    scheme = "rediss" if config.tls else "redis"
    return f"{scheme}://{config.host}:{config.port}/{config.database}"
