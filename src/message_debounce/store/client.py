"""
Minimal asyncio client for Redis-compatible key-value stores.

Implements just the RESP2 commands the debounce coordinator needs:
AUTH, SELECT, RPUSH, LLEN, LINDEX, LRANGE, DEL, EXPIRE, SET, GET, EVAL.

Calls are pipelined: any number of commands may be in flight on the single
connection, and replies are matched strictly FIFO to the oldest pending call.
"""
import asyncio
import logging
import ssl
from collections import deque
from typing import Any, Optional, Sequence, Union

from message_debounce.core.errors import (
    CommandError,
    ProtocolError,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
)
from message_debounce.core.models import StoreConfig
from message_debounce.store.resp import RespError, RespParser, encode_command

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 10.0
COMMAND_TIMEOUT_SECONDS = 5.0
READ_CHUNK_SIZE = 65536

Arg = Union[str, int, float, bytes]


class StoreClient:
    """
    Pipelined RESP2 client over a plain or TLS stream.

    One client owns one connection. A background reader task feeds incoming
    bytes to the parser and settles pending calls in the order they were sent.
    A call that exceeds its time budget fails on its own; its slot stays queued
    so the late reply is discarded instead of being handed to the next call.

    Example:
        client = StoreClient(StoreConfig(host="localhost"))
        await client.connect()
        try:
            await client.rpush("debounce:chat-1:msgs", '{"id":"a","content":"hi"}')
        finally:
            await client.disconnect()
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        command_timeout: float = COMMAND_TIMEOUT_SECONDS,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
    ):
        self.config = config or StoreConfig()
        self._command_timeout = command_timeout
        self._connect_timeout = connect_timeout
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None
        self._parser = RespParser()
        self._pending: deque[asyncio.Future] = deque()

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        """
        Open the stream, authenticate and select the logical database.

        Raises:
            StoreConnectionError: Transport, TLS or authentication failure. The
                client is left disconnected.
        """
        ssl_context = ssl.create_default_context() if self.config.tls else None
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port, ssl=ssl_context),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError:
            raise StoreConnectionError(
                f"Redis connection timed out after {int(self._connect_timeout * 1000)}ms"
            ) from None
        except OSError as e:
            raise StoreConnectionError(f"Redis connection failed: {e}") from e

        self._parser = RespParser()
        self._pending = deque()
        self._read_task = asyncio.create_task(self._read_loop())
        logger.debug(f"Connected to {self.config.host}:{self.config.port} (tls={self.config.tls})")

        try:
            # Redis 6+ ACL: AUTH username password; older servers: AUTH password
            if self.config.password:
                if self.config.username:
                    await self.execute("AUTH", self.config.username, self.config.password)
                else:
                    await self.execute("AUTH", self.config.password)
            if self.config.database != 0:
                await self.execute("SELECT", self.config.database)
        except StoreError as e:
            await self.disconnect()
            raise StoreConnectionError(f"Redis connection failed: {e}") from e

    async def disconnect(self) -> None:
        """Tear down the stream. Safe to call repeatedly and after errors."""
        task, self._read_task = self._read_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        writer, self._writer = self._writer, None
        self._reader = None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ssl.SSLError) as e:
                logger.debug(f"Ignoring error while closing stream: {e}")

        self._fail_pending(StoreConnectionError("Redis connection closed"))

    async def __aenter__(self) -> "StoreClient":
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def rpush(self, key: str, value: str) -> int:
        """Append to a list; returns the list length after the push."""
        return await self.execute("RPUSH", key, value)

    async def llen(self, key: str) -> int:
        return await self.execute("LLEN", key)

    async def lindex(self, key: str, index: int) -> Optional[str]:
        return await self.execute("LINDEX", key, index)

    async def lrange(self, key: str, start: int, stop: int) -> list[str]:
        result = await self.execute("LRANGE", key, start, stop)
        return list(result or [])

    async def delete(self, *keys: str) -> int:
        """DEL one or more keys; returns how many existed."""
        return await self.execute("DEL", *keys)

    async def expire(self, key: str, seconds: int) -> int:
        return await self.execute("EXPIRE", key, seconds)

    async def set(
        self,
        key: str,
        value: str,
        nx: bool = False,
        ex: Optional[int] = None,
    ) -> Optional[str]:
        """
        SET with optional expiry and no-overwrite flag.

        Returns:
            "OK" on success, None when ``nx`` was requested and the key exists.
        """
        args: list[Arg] = ["SET", key, value]
        if ex is not None:
            args += ["EX", ex]
        if nx:
            args.append("NX")
        return await self.execute(*args)

    async def get(self, key: str) -> Optional[str]:
        return await self.execute("GET", key)

    async def eval(self, script: str, keys: Sequence[str], args: Sequence[Arg] = ()) -> Any:
        """Run a Lua script atomically on the server."""
        return await self.execute("EVAL", script, len(keys), *keys, *args)

    async def execute(self, *args: Arg) -> Any:
        """
        Send one command and wait for its reply.

        Raises:
            StoreConnectionError: Not connected, or the connection was lost.
            CommandError: The store replied with an error.
            ProtocolError: The reply frame was malformed.
            StoreTimeoutError: No reply within the command timeout.
        """
        if not self.connected:
            raise StoreConnectionError("Redis socket is not connected")

        command = str(args[0]).upper()
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        # Queue and write without yielding so queue order equals wire order
        self._pending.append(future)
        self._writer.write(encode_command(args))
        logger.debug(f"-> {command} ({len(self._pending)} pending)")

        try:
            await self._writer.drain()
        except (OSError, ssl.SSLError) as e:
            if not future.done():
                future.cancel()
            raise StoreConnectionError(f"Redis connection lost: {e}") from e

        try:
            return await asyncio.wait_for(future, timeout=self._command_timeout)
        except asyncio.TimeoutError:
            raise StoreTimeoutError(
                f"Redis command timed out after {int(self._command_timeout * 1000)}ms: {command}"
            ) from None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _read_loop(self) -> None:
        try:
            while True:
                data = await self._reader.read(READ_CHUNK_SIZE)
                if not data:
                    raise StoreConnectionError("Redis connection closed unexpectedly")
                self._parser.feed(data)
                self._dispatch_replies()
        except asyncio.CancelledError:
            raise
        except StoreError as e:
            self._drop(e)
        except (OSError, ssl.SSLError) as e:
            self._drop(StoreConnectionError(f"Redis connection lost: {e}"))

    def _dispatch_replies(self) -> None:
        """Settle pending calls, oldest first, with every complete reply in the buffer."""
        while self._pending:
            try:
                value = self._parser.parse_one()
            except ProtocolError as e:
                self._settle(self._pending.popleft(), e)
                if not e.recoverable:
                    raise
                logger.warning(f"Skipped malformed reply frame: {e}")
                continue

            if value is RespParser.INCOMPLETE:
                return

            future = self._pending.popleft()
            if isinstance(value, RespError):
                self._settle(future, CommandError(value.message))
            else:
                self._settle(future, result=value)

    @staticmethod
    def _settle(future: asyncio.Future, error: Optional[Exception] = None, result: Any = None) -> None:
        # Timed-out or cancelled calls keep their slot; their reply is dropped here
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _drop(self, error: StoreError) -> None:
        if self._pending:
            logger.error(f"Connection dropped with {len(self._pending)} pending call(s): {error}")
        self._fail_pending(error)
        if self._writer is not None:
            self._writer.close()

    def _fail_pending(self, error: StoreError) -> None:
        while self._pending:
            future = self._pending.popleft()
            if not future.done():
                future.set_exception(error)

    def __repr__(self) -> str:
        return (
            f"StoreClient(host={self.config.host!r}, port={self.config.port}, "
            f"connected={self.connected}, pending={len(self._pending)})"
        )
