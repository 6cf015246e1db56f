"""
RESP2 wire format - command encoding and incremental reply parsing.

A command is written as an array of bulk strings::

    *<argcount>\\r\\n
    $<bytelen>\\r\\n<bytes>\\r\\n      (once per argument)

Replies are discriminated by their first byte: ``+`` status, ``-`` error,
``:`` integer, ``$`` bulk string (``$-1`` is null) and ``*`` array
(``*-1`` is null), nested recursively.
"""
from typing import Iterable, Union

from message_debounce.core.errors import ProtocolError

CRLF = b"\r\n"

RespValue = Union[str, int, None, "RespError", list]


class RespError:
    """An error reply. Kept as a value so errors nested in arrays survive parsing."""

    __slots__ = ("message",)

    def __init__(self, message: str):
        self.message = message

    def __eq__(self, other: object) -> bool:
        return isinstance(other, RespError) and other.message == self.message

    def __repr__(self) -> str:
        return f"RespError({self.message!r})"


def encode_command(args: Iterable[Union[str, int, float, bytes]]) -> bytes:
    """Encode a command and its arguments as a RESP array of bulk strings."""
    parts = [arg if isinstance(arg, bytes) else str(arg).encode("utf-8") for arg in args]
    out = bytearray(b"*%d\r\n" % len(parts))
    for part in parts:
        out += b"$%d\r\n" % len(part)
        out += part
        out += CRLF
    return bytes(out)


class _Incomplete(Exception):
    """More bytes are needed before a full reply can be parsed."""


class _Malformed(Exception):
    def __init__(self, message: str, resume_at: int | None):
        super().__init__(message)
        # Offset of the next frame, or None when the boundary is lost
        self.resume_at = resume_at


class RespParser:
    """
    Incremental RESP2 reply parser.

    Bytes are fed as they arrive from the socket; :meth:`parse_one` returns one
    complete reply at a time, or :attr:`INCOMPLETE` when the buffer does not yet
    hold a whole reply.

    A malformed top-level single-line frame (unknown type byte, bad integer) is
    skipped and reported as a recoverable :class:`ProtocolError`, so exactly one
    call fails. A bad bulk or array length, corruption inside an array, or a
    bulk payload without its CRLF loses the frame boundary and is reported as
    unrecoverable.
    """

    INCOMPLETE = object()

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> None:
        self._buffer += data

    @property
    def buffered(self) -> int:
        """Number of bytes waiting to be parsed."""
        return len(self._buffer)

    def parse_one(self) -> RespValue:
        """
        Parse and consume one complete reply.

        Returns:
            The decoded reply, or ``RespParser.INCOMPLETE``.

        Raises:
            ProtocolError: The next frame is malformed.
        """
        try:
            value, end = self._parse(0, 0)
        except _Incomplete:
            return self.INCOMPLETE
        except _Malformed as e:
            if e.resume_at is None:
                raise ProtocolError(f"Malformed reply: {e}", recoverable=False) from None
            del self._buffer[:e.resume_at]
            raise ProtocolError(f"Malformed reply: {e}", recoverable=True) from None
        del self._buffer[:end]
        return value

    def _parse(self, pos: int, depth: int) -> tuple[RespValue, int]:
        buf = self._buffer
        if pos >= len(buf):
            raise _Incomplete()

        line_end = buf.find(CRLF, pos + 1)
        if line_end == -1:
            raise _Incomplete()

        lead = buf[pos]
        line = bytes(buf[pos + 1:line_end])
        after = line_end + 2
        # Only a single-line frame at the top level can be skipped; a bad
        # bulk or array header leaves its payload unaccounted for
        resume = after if depth == 0 else None

        if lead == 0x2B:  # '+'
            return line.decode("utf-8", errors="replace"), after

        if lead == 0x2D:  # '-'
            return RespError(line.decode("utf-8", errors="replace")), after

        if lead == 0x3A:  # ':'
            return self._to_int(line, resume), after

        if lead == 0x24:  # '$'
            length = self._to_int(line, None)
            if length == -1:
                return None, after
            if length < -1:
                raise _Malformed(f"invalid bulk length {length}", None)
            end = after + length
            if len(buf) < end + 2:
                raise _Incomplete()
            if buf[end:end + 2] != CRLF:
                raise _Malformed("bulk string not terminated by CRLF", None)
            return bytes(buf[after:end]).decode("utf-8", errors="replace"), end + 2

        if lead == 0x2A:  # '*'
            count = self._to_int(line, None)
            if count == -1:
                return None, after
            if count < -1:
                raise _Malformed(f"invalid array length {count}", None)
            items = []
            cur = after
            for _ in range(count):
                item, cur = self._parse(cur, depth + 1)
                items.append(item)
            return items, cur

        raise _Malformed(f"unknown RESP type byte {chr(lead)!r} ({lead})", resume)

    @staticmethod
    def _to_int(line: bytes, resume: int | None) -> int:
        try:
            return int(line)
        except ValueError:
            raise _Malformed(f"invalid integer {line!r}", resume) from None
