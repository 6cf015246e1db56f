"""Shared fixtures for message debounce tests."""

import asyncio
import json
from typing import Any, Optional

import pytest

from message_debounce.core.errors import CommandError
from message_debounce.core.models import ResolvedOptions
from message_debounce.temporal.constants import DRAIN_SCRIPT, FLUSH_SCRIPT


class FakeStore:
    """
    In-memory stand-in for StoreClient.

    Every command yields to the event loop once (like a network round-trip)
    and then runs without further suspension, so each command, including the
    two scripts, is atomic with respect to concurrent executions. Expiry uses
    a manual clock moved forward with :meth:`advance`.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.data: dict[str, Any] = {}
        self.expiry: dict[str, float] = {}
        self.commands: list[str] = []
        self.fail_on: Optional[str] = None
        self.connects = 0
        self.disconnects = 0

    # -- test controls -------------------------------------------------

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def ttl(self, key: str) -> Optional[float]:
        self._purge(key)
        if key not in self.expiry:
            return None
        return self.expiry[key] - self.now

    def exists(self, key: str) -> bool:
        self._purge(key)
        return key in self.data

    def contents(self, key: str) -> list[str]:
        """Decoded contents of a buffered message list."""
        self._purge(key)
        return [json.loads(raw)["content"] for raw in self.data.get(key, [])]

    # -- connection ----------------------------------------------------

    async def connect(self) -> None:
        self.connects += 1

    async def disconnect(self) -> None:
        self.disconnects += 1

    # -- commands ------------------------------------------------------

    async def get(self, key: str) -> Optional[str]:
        await self._enter("GET")
        self._purge(key)
        return self.data.get(key)

    async def set(self, key: str, value: str, nx: bool = False, ex: Optional[int] = None) -> Optional[str]:
        await self._enter("SET")
        self._purge(key)
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.expiry.pop(key, None)
        if ex is not None:
            self.expiry[key] = self.now + ex
        return "OK"

    async def rpush(self, key: str, value: str) -> int:
        await self._enter("RPUSH")
        self._purge(key)
        self.data.setdefault(key, []).append(value)
        return len(self.data[key])

    async def llen(self, key: str) -> int:
        await self._enter("LLEN")
        self._purge(key)
        return len(self.data.get(key, []))

    async def lindex(self, key: str, index: int) -> Optional[str]:
        await self._enter("LINDEX")
        self._purge(key)
        items = self.data.get(key, [])
        try:
            return items[index]
        except IndexError:
            return None

    async def lrange(self, key: str, start: int, stop: int) -> list[str]:
        await self._enter("LRANGE")
        self._purge(key)
        items = self.data.get(key, [])
        return list(items[start:] if stop == -1 else items[start:stop + 1])

    async def delete(self, *keys: str) -> int:
        await self._enter("DEL")
        return sum(self._remove(key) for key in keys)

    async def expire(self, key: str, seconds: int) -> int:
        await self._enter("EXPIRE")
        self._purge(key)
        if key not in self.data:
            return 0
        self.expiry[key] = self.now + seconds
        return 1

    async def eval(self, script: str, keys: list[str], args: list[str] = ()) -> Any:
        await self._enter("EVAL")
        for key in keys:
            self._purge(key)
        msg_key, ts_key = keys

        if script == DRAIN_SCRIPT:
            entries = list(self.data.get(msg_key, []))
            self._remove(msg_key)
            self._remove(ts_key)
            return entries

        if script == FLUSH_SCRIPT:
            items = self.data.get(msg_key)
            if not items:
                return None
            try:
                last = json.loads(items[-1])
            except ValueError:
                return None
            if not isinstance(last, dict) or last.get("id") != args[0]:
                return None
            entries = list(items)
            self._remove(msg_key)
            self._remove(ts_key)
            return entries

        raise CommandError("NOSCRIPT unknown script")

    # -- internals -----------------------------------------------------

    async def _enter(self, command: str) -> None:
        await asyncio.sleep(0)
        self.commands.append(command)
        if self.fail_on == command:
            raise CommandError(f"ERR injected failure on {command}")

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= self.now:
            self._remove(key)

    def _remove(self, key: str) -> int:
        self.expiry.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def default_options():
    return ResolvedOptions()
