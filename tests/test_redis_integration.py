"""
Live tests against a real Redis server.

Run with RUN_REDIS_INTEGRATION=1; connection settings come from the REDIS_*
variables (see message_debounce.config). Every test uses its own session id
and removes its keys afterwards.
"""

import asyncio
import json
import os
import uuid

import pytest

if os.getenv("RUN_REDIS_INTEGRATION") != "1":
    pytest.skip("Set RUN_REDIS_INTEGRATION=1 to run live Redis integration tests.", allow_module_level=True)

from message_debounce.config import load_store_config
from message_debounce.core.models import FlushReason, ResolvedOptions
from message_debounce.store.client import StoreClient
from message_debounce.temporal.constants import DRAIN_SCRIPT, FLUSH_SCRIPT, SESSION_MARKER_VALUE
from message_debounce.temporal.coordinator import DebounceCoordinator
from message_debounce.temporal.helpers import make_keys


def entry(entry_id: str, content: str = "hi") -> str:
    return json.dumps({"id": entry_id, "content": content})


@pytest.fixture
async def client():
    async with StoreClient(load_store_config()) as store:
        yield store


@pytest.fixture
async def keys(client):
    session_keys = make_keys(f"it-{uuid.uuid4()}")
    yield session_keys
    await client.delete(*session_keys)


async def seed(client, keys, entries):
    for raw in entries:
        await client.rpush(keys.msg_key, raw)
    await client.set(keys.ts_key, "1000")
    await client.set(keys.session_key, SESSION_MARKER_VALUE)


class TestFlushScript:
    async def test_owner_of_last_entry_takes_everything(self, client, keys):
        entries = [entry("a", "one"), entry("b", "two")]
        await seed(client, keys, entries)

        result = await client.eval(FLUSH_SCRIPT, [keys.msg_key, keys.ts_key], ["b"])

        assert result == entries
        assert await client.llen(keys.msg_key) == 0
        assert await client.get(keys.ts_key) is None
        assert await client.get(keys.session_key) == SESSION_MARKER_VALUE

    async def test_older_execution_gets_nothing(self, client, keys):
        await seed(client, keys, [entry("a"), entry("b")])

        assert await client.eval(FLUSH_SCRIPT, [keys.msg_key, keys.ts_key], ["a"]) is None
        assert await client.llen(keys.msg_key) == 2
        assert await client.get(keys.ts_key) == "1000"

    async def test_empty_list(self, client, keys):
        assert await client.eval(FLUSH_SCRIPT, [keys.msg_key, keys.ts_key], ["a"]) is None

    @pytest.mark.parametrize("last", ["not json", "5", "null", '"text"'])
    async def test_unusable_last_entry_is_not_a_winner(self, client, keys, last):
        await seed(client, keys, [entry("a"), last])

        assert await client.eval(FLUSH_SCRIPT, [keys.msg_key, keys.ts_key], ["a"]) is None
        assert await client.llen(keys.msg_key) == 2


class TestDrainScript:
    async def test_reads_and_clears_but_keeps_marker(self, client, keys):
        entries = [entry("a"), "not json"]
        await seed(client, keys, entries)

        assert await client.eval(DRAIN_SCRIPT, [keys.msg_key, keys.ts_key]) == entries
        assert await client.llen(keys.msg_key) == 0
        assert await client.get(keys.ts_key) is None
        assert await client.get(keys.session_key) == SESSION_MARKER_VALUE


class TestCoordinator:
    async def test_only_last_message_execution_emits(self, client, keys):
        session_id = keys.msg_key.split(":")[1]
        options = ResolvedOptions()

        async def send(delay, message):
            await asyncio.sleep(delay)
            async with StoreClient(load_store_config()) as store:
                return await DebounceCoordinator(store).handle(session_id, message, 1, options)

        out_a, out_b = await asyncio.gather(send(0, "a"), send(0.2, "b"))

        assert out_a is None
        assert out_b.full_message == "a\nb"
        assert out_b.flush_reason == FlushReason.DEBOUNCE_WINDOW
