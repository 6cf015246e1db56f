"""Invocation host: validation, option resolution and connection lifecycle."""

from message_debounce.host.runner import (
    build_request,
    check_connection,
    resolve_options,
    run_debounce,
    run_from_parameters,
)

__all__ = [
    "build_request",
    "check_connection",
    "resolve_options",
    "run_debounce",
    "run_from_parameters",
]
