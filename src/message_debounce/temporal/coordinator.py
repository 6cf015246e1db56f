"""
Debounce Coordinator - Coalesces a session's messages across independent executions.

Each incoming message is handled by its own execution, possibly in another
process or on another machine, so nothing is kept in memory between calls.
All session state lives in the store under three keys (see ``make_keys``):

- message list: buffered ``{"id", "content"}`` entries, cleared on flush
- start time:   epoch ms of the first message since the last flush (SET NX)
- session marker: exists while the session is alive; only TTL removes it

The debounce pattern works as follows:
1. The message is appended to the session's list with a fresh id
2. The execution sleeps out the silence window (or the max-wait budget)
3. An atomic server-side script flushes the list only if the last entry still
   carries this execution's id; otherwise a newer message arrived and a newer
   execution owns the flush, so this one returns nothing
4. Overrides (first message, duplicates, keywords, max messages) flush at once
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from message_debounce.core.errors import StoreError
from message_debounce.core.models import (
    DebounceOutput,
    DuplicateMode,
    FirstMessageBehavior,
    FlushReason,
    MessageEntry,
    ResolvedOptions,
)
from message_debounce.store.client import StoreClient
from message_debounce.temporal.constants import DRAIN_SCRIPT, FLUSH_SCRIPT, SESSION_MARKER_VALUE
from message_debounce.temporal.helpers import (
    SessionKeys,
    decode_entry,
    encode_entry,
    entry_content,
    make_keys,
    now_ms,
    to_ttl_seconds,
    wrap_store_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DebounceCoordinator:
    """
    Runs the per-message debounce state machine against the store.

    The coordinator holds no session state; it can be created per call or
    shared. The only mutual exclusion is the store-side FLUSH_SCRIPT, which
    reads, verifies and clears the list as one indivisible operation.

    Attributes:
        store: Connected store client (or anything with the same commands)
        clock: Returns epoch milliseconds; used for the max-wait budget

    Example:
        async with StoreClient(config) as store:
            coordinator = DebounceCoordinator(store)
            output = await coordinator.handle(
                "chat-42", "hello", debounce_window=10, options=ResolvedOptions()
            )
            if output:
                print(output.full_message)
    """

    def __init__(self, store: StoreClient, clock: Callable[[], int] = now_ms):
        self.store = store
        self.clock = clock

    async def handle(
        self,
        session_id: str,
        message: str,
        debounce_window: float,
        options: ResolvedOptions,
    ) -> Optional[DebounceOutput]:
        """
        Buffer one message and decide whether this call emits the batch.

        Args:
            session_id: Opaque session key; all messages sharing it are grouped
            message: The incoming message text
            debounce_window: Silence window in seconds
            options: Resolved options for this call

        Returns:
            The consolidated output if this call flushed, otherwise None
            (absorbed, duplicate ignored, or lost the race to a newer message).

        Raises:
            OperationError: Any store operation failed. Partial buffering
                state is left as is; the next message or TTL expiry heals it.
        """
        keys = make_keys(session_id)
        ttl_seconds = to_ttl_seconds(options.session_ttl_value, options.session_ttl_unit)

        # Step 1 - a missing marker means a brand-new or expired session.
        # The marker is separate from the list so a flush does not reset it.
        marker = await self._call(self.store.get(keys.session_key))
        is_first_message = marker is None
        logger.debug(f"Session {session_id}: first_message={is_first_message}")

        # Step 2 - first message flushes immediately
        if is_first_message and options.first_msg_behavior == FirstMessageBehavior.IMMEDIATE:
            await self._call(self.store.set(
                keys.session_key,
                SESSION_MARKER_VALUE,
                ex=ttl_seconds if ttl_seconds > 0 else None,
            ))
            await self._append(keys, message)
            return await self._drain(keys, session_id, options, FlushReason.FIRST_MESSAGE)

        # Step 3 - duplicate of the last buffered message
        if options.on_duplicate != DuplicateMode.INCLUDE:
            last_raw = await self._call(self.store.lindex(keys.msg_key, -1))
            last_entry = decode_entry(last_raw) if last_raw is not None else None
            if last_entry is not None and last_entry.content == message:
                if options.on_duplicate == DuplicateMode.IGNORE:
                    logger.info(f"Ignoring duplicate message for {session_id}")
                    return None
                await self._append(keys, message)
                return await self._drain(keys, session_id, options, FlushReason.DUPLICATE)

        # Step 4 - flush keywords (case-insensitive substring)
        if options.flush_keywords:
            lowered = message.lower()
            if any(keyword.lower() in lowered for keyword in options.flush_keywords):
                await self._append(keys, message)
                return await self._drain(keys, session_id, options, FlushReason.KEYWORD)

        # Step 5 - buffer the message and record session metadata
        entry = MessageEntry(content=message)
        new_length = await self._call(self.store.rpush(keys.msg_key, encode_entry(entry)))
        await self._call(self.store.set(keys.ts_key, str(self.clock()), nx=True))
        await self._call(self.store.set(keys.session_key, SESSION_MARKER_VALUE, nx=True))
        if ttl_seconds > 0:
            # Inactivity timer: every message extends all three keys together
            for key in keys:
                await self._call(self.store.expire(key, ttl_seconds))
        logger.debug(
            f"Buffered message {entry.id} for {session_id}, buffer size: {new_length}"
        )

        # Step 6 - max messages reached, flush before sleeping
        if options.max_messages > 0 and new_length >= options.max_messages:
            logger.info(
                f"Buffer for {session_id} reached max size ({new_length}), forcing immediate flush"
            )
            return await self._drain(keys, session_id, options, FlushReason.MAX_MESSAGES)

        # Step 7 - silence window for this call
        if is_first_message and options.first_msg_behavior == FirstMessageBehavior.CUSTOM_WINDOW:
            window = options.first_msg_custom_window
        else:
            window = debounce_window

        # Step 8 - sleep, racing the max-wait budget when it ends first
        max_wait_remaining = await self._max_wait_remaining(keys, options)
        timed_out_by_max_wait = False
        if max_wait_remaining is not None and max_wait_remaining <= window:
            timed_out_by_max_wait = await _race_delays(window, max_wait_remaining)
        else:
            await asyncio.sleep(window)

        # Step 9 - resolve
        if timed_out_by_max_wait:
            logger.info(f"Buffer for {session_id} exceeded max wait time, forcing flush")
            return await self._drain(keys, session_id, options, FlushReason.MAX_WAIT_TIME)

        result = await self._call(
            self.store.eval(FLUSH_SCRIPT, [keys.msg_key, keys.ts_key], [entry.id])
        )
        if not isinstance(result, list):
            logger.info(f"Newer message arrived for {session_id}, skipping flush of {entry.id}")
            return None

        # Step 10 - this call appended the last message, so it owns the batch
        return self._build_output(session_id, result, options, FlushReason.DEBOUNCE_WINDOW)

    async def _max_wait_remaining(
        self, keys: SessionKeys, options: ResolvedOptions
    ) -> Optional[float]:
        """Seconds left in the max-wait budget, or None when there is no budget to race."""
        if options.max_wait_time_sec <= 0:
            return None
        start_raw = await self._call(self.store.get(keys.ts_key))
        if start_raw is None:
            # Another execution flushed meanwhile; the compare-and-flush decides
            return None
        try:
            started_at = int(start_raw)
        except ValueError:
            logger.warning(f"Ignoring malformed start time {start_raw!r} at {keys.ts_key}")
            return None
        elapsed_ms = self.clock() - started_at
        return max(0.0, options.max_wait_time_sec - elapsed_ms / 1000)

    async def _append(self, keys: SessionKeys, message: str) -> int:
        entry = MessageEntry(content=message)
        return await self._call(self.store.rpush(keys.msg_key, encode_entry(entry)))

    async def _drain(
        self,
        keys: SessionKeys,
        session_id: str,
        options: ResolvedOptions,
        reason: FlushReason,
    ) -> Optional[DebounceOutput]:
        """Atomically read and clear the list and start time. The marker is kept."""
        raw_entries = await self._call(
            self.store.eval(DRAIN_SCRIPT, [keys.msg_key, keys.ts_key])
        )
        return self._build_output(session_id, raw_entries or [], options, reason)

    def _build_output(
        self,
        session_id: str,
        raw_entries: list,
        options: ResolvedOptions,
        reason: FlushReason,
    ) -> Optional[DebounceOutput]:
        if not raw_entries:
            # Someone else already flushed everything
            logger.debug(f"No messages to flush for {session_id}")
            return None

        messages = [entry_content(raw) for raw in raw_entries]
        logger.info(f"Flushing buffer for {session_id}: {len(messages)} message(s), reason={reason.value}")
        return DebounceOutput(
            full_message=options.separator.join(messages),
            message_count=len(messages),
            flush_reason=reason,
        )

    async def _call(self, operation: Awaitable[T]) -> T:
        try:
            return await operation
        except StoreError as e:
            raise wrap_store_error(e) from e

    def __repr__(self) -> str:
        return f"DebounceCoordinator(store={self.store!r})"


async def _race_delays(window: float, max_wait: float) -> bool:
    """
    Sleep until the first of two delays elapses.

    Returns:
        True if the max-wait delay finished strictly first; a tie goes to
        the silence window so the compare-and-flush still decides
    """
    window_task = asyncio.ensure_future(asyncio.sleep(window))
    max_wait_task = asyncio.ensure_future(asyncio.sleep(max_wait))
    try:
        done, _ = await asyncio.wait(
            {window_task, max_wait_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        for task in (window_task, max_wait_task):
            if not task.done():
                task.cancel()
    return max_wait_task in done and window_task not in done
