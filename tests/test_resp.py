"""Tests for RESP2 command encoding and reply parsing."""

import pytest

from message_debounce.core.errors import ProtocolError
from message_debounce.store.resp import RespError, RespParser, encode_command


def parse(data: bytes):
    parser = RespParser()
    parser.feed(data)
    return parser.parse_one()


class TestEncodeCommand:
    def test_array_of_bulk_strings(self):
        assert encode_command(["GET", "debounce:chat-1:session"]) == (
            b"*2\r\n$3\r\nGET\r\n$23\r\ndebounce:chat-1:session\r\n"
        )

    def test_length_counts_utf8_bytes(self):
        assert encode_command(["SET", "k", "héllo"]) == (
            b"*3\r\n$3\r\nSET\r\n$1\r\nk\r\n$6\r\nh\xc3\xa9llo\r\n"
        )

    def test_numbers_are_sent_as_text(self):
        assert encode_command(["EXPIRE", "k", 60]) == b"*3\r\n$6\r\nEXPIRE\r\n$1\r\nk\r\n$2\r\n60\r\n"

    def test_empty_argument(self):
        assert encode_command(["RPUSH", "k", ""]) == b"*3\r\n$5\r\nRPUSH\r\n$1\r\nk\r\n$0\r\n\r\n"


class TestParseReplies:
    def test_simple_string(self):
        assert parse(b"+OK\r\n") == "OK"

    def test_error_is_a_value(self):
        assert parse(b"-ERR wrong type\r\n") == RespError("ERR wrong type")

    def test_integer(self):
        assert parse(b":42\r\n") == 42
        assert parse(b":-1\r\n") == -1

    def test_bulk_string_and_null(self):
        assert parse(b"$5\r\nhello\r\n") == "hello"
        assert parse(b"$0\r\n\r\n") == ""
        assert parse(b"$-1\r\n") is None

    def test_bulk_string_may_contain_crlf(self):
        assert parse(b"$7\r\na\r\nb\r\nc\r\n") == "a\r\nb\r\nc"

    def test_arrays_nested_and_null(self):
        assert parse(b"*2\r\n$1\r\na\r\n*2\r\n:1\r\n$-1\r\n") == ["a", [1, None]]
        assert parse(b"*0\r\n") == []
        assert parse(b"*-1\r\n") is None

    def test_incomplete_until_all_bytes_arrive(self):
        parser = RespParser()
        chunks = [b"*2\r\n$3\r", b"\nfoo\r\n$3", b"\r\nbar", b"\r\n"]
        for chunk in chunks[:-1]:
            parser.feed(chunk)
            assert parser.parse_one() is RespParser.INCOMPLETE
        parser.feed(chunks[-1])
        assert parser.parse_one() == ["foo", "bar"]
        assert parser.buffered == 0

    def test_several_replies_in_one_chunk(self):
        parser = RespParser()
        parser.feed(b"+OK\r\n:3\r\n$-1\r\n")
        assert [parser.parse_one() for _ in range(3)] == ["OK", 3, None]
        assert parser.parse_one() is RespParser.INCOMPLETE


class TestMalformedReplies:
    def test_unknown_type_byte_is_skipped(self):
        parser = RespParser()
        parser.feed(b"!garbage\r\n+OK\r\n")

        with pytest.raises(ProtocolError) as exc_info:
            parser.parse_one()

        assert exc_info.value.recoverable is True
        assert parser.parse_one() == "OK"

    def test_bad_integer_is_skipped(self):
        parser = RespParser()
        parser.feed(b":abc\r\n:7\r\n")

        with pytest.raises(ProtocolError):
            parser.parse_one()
        assert parser.parse_one() == 7

    def test_bad_bulk_terminator_is_unrecoverable(self):
        with pytest.raises(ProtocolError) as exc_info:
            parse(b"$3\r\nfooXY")
        assert exc_info.value.recoverable is False

    def test_corruption_inside_array_is_unrecoverable(self):
        with pytest.raises(ProtocolError) as exc_info:
            parse(b"*2\r\n:1\r\n?\r\n")
        assert exc_info.value.recoverable is False

    @pytest.mark.parametrize(
        "frame",
        [b"$abc\r\nhello\r\n:1\r\n", b"*xx\r\n:1\r\n:2\r\n", b"$-5\r\nhello\r\n", b"*-3\r\n:1\r\n"],
    )
    def test_bad_bulk_or_array_length_is_unrecoverable(self, frame):
        parser = RespParser()
        parser.feed(frame)

        with pytest.raises(ProtocolError) as exc_info:
            parser.parse_one()

        # The payload is never re-read as replies of its own
        assert exc_info.value.recoverable is False
        assert parser.buffered == len(frame)
