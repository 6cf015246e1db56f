#!/usr/bin/env python3
"""
Message Debounce CLI.

Runs a single debounce invocation, or checks the store connection, using
connection settings from the environment / .env file.

Usage:
    message-debounce ping
    message-debounce push --session chat-42 --message "hello" --window 10
    message-debounce push --session chat-42 --message "urgent!" --keywords "urgent;stop"
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from message_debounce.config import load_options_file, load_store_config
from message_debounce.core.errors import DebounceError
from message_debounce.host.runner import check_connection, describe_target, run_from_parameters

console = Console()

# CLI flag -> (host parameter, lives in the "options" collection)
_PARAMETER_FLAGS: dict[str, tuple[str, bool]] = {
    "first_message": ("firstMessageBehavior", False),
    "first_window": ("firstMessageCustomWindow", False),
    "ttl_unit": ("sessionTtlUnit", False),
    "ttl_value": ("sessionTtlValue", False),
    "max_messages": ("maxMessages", True),
    "max_wait": ("maxWaitTime", True),
    "separator": ("separator", True),
    "on_duplicate": ("onDuplicateMessage", True),
    "keywords": ("flushKeywords", True),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="message-debounce",
        description="Coalesce bursts of session messages through a Redis-compatible store",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("ping", help="Check that the store is reachable and credentials work")

    push = sub.add_parser("push", help="Handle one inbound message")
    push.add_argument("--session", required=True, help="Session ID grouping the messages")
    push.add_argument("--message", required=True, help="Incoming message text")
    push.add_argument("--window", type=float, default=10, help="Silence window in seconds (default: 10)")
    push.add_argument("--options-file", type=Path, default=None, help="JSON file with debounce parameters")
    push.add_argument("--first-message", choices=["none", "immediate", "customWindow"], default=None)
    push.add_argument("--first-window", type=float, default=None, help="Custom first-message window (seconds)")
    push.add_argument("--ttl-unit", choices=["never", "minutes", "hours", "days"], default=None)
    push.add_argument("--ttl-value", type=float, default=None)
    push.add_argument("--max-messages", type=int, default=None, help="0 disables the limit")
    push.add_argument("--max-wait", type=float, default=None, help="Seconds; 0 disables the limit")
    push.add_argument("--separator", default=None, help=r"Join separator (\n and \t escapes allowed)")
    push.add_argument("--on-duplicate", choices=["include", "ignore", "flush"], default=None)
    push.add_argument("--keywords", default=None, help="Semicolon-separated flush keywords")
    push.add_argument("--json", action="store_true", help="Print the output row as JSON")
    return parser


def build_parameters(args: argparse.Namespace) -> dict[str, Any]:
    """Merge the options file with command-line flags; flags win."""
    parameters = load_options_file(args.options_file)
    options = dict(parameters.get("options") or {})
    for flag, (name, in_collection) in _PARAMETER_FLAGS.items():
        value = getattr(args, flag)
        if value is None:
            continue
        if in_collection:
            options[name] = value
        else:
            parameters[name] = value
    parameters["options"] = options
    parameters["sessionId"] = args.session
    parameters["message"] = args.message
    parameters["debounceWindow"] = args.window
    return parameters


async def _ping() -> int:
    store_config = load_store_config()
    ok, reason = await check_connection(store_config)
    target = describe_target(store_config)
    if ok:
        console.print(f"  [green]✓[/green] {target}: {reason}")
        return 0
    console.print(f"  [red]✗[/red] {target}: {reason}")
    return 1


async def _push(args: argparse.Namespace) -> int:
    rows = await run_from_parameters(build_parameters(args), load_store_config())

    if args.json:
        print(json.dumps(rows, ensure_ascii=False))
        return 0

    if not rows:
        console.print("[dim]Message absorbed - no output from this call[/dim]")
        return 0

    row = rows[0]
    table = Table(show_header=False)
    table.add_row("Messages", str(row["messageCount"]))
    table.add_row("Reason", row["flushReason"])
    console.print(Panel(row["fullMessage"], title=f"Flushed session {args.session}"))
    console.print(table)
    return 0


async def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "ping":
            return await _ping()
        return await _push(args)
    except DebounceError as e:
        console.print(f"[red bold]Error: {e}[/red bold]")
        return 1


def run() -> None:
    """Console-script wrapper."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
