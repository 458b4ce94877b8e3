"""Tests for the chat wire codec."""

import json
from datetime import UTC, datetime, timedelta, timezone

import pytest

from wschat.errors import ChatProtocolError
from wschat.protocol import (
    MessageCodec,
    MessageIdFactory,
    format_timestamp,
    parse_timestamp,
)
from wschat.types import ChatMessage


def _frame(**overrides):
    frame = {
        "id": "1",
        "username": "bob",
        "content": "hi",
        "timestamp": "2024-01-01T00:00:00Z",
    }
    frame.update(overrides)
    return json.dumps(frame)


class TestEncode:
    def test_wire_shape(self):
        msg = ChatMessage(
            "1704067200000", "alice", "hello", datetime(2024, 1, 1, tzinfo=UTC)
        )
        parsed = json.loads(MessageCodec().encode(msg))
        assert parsed == {
            "id": "1704067200000",
            "username": "alice",
            "content": "hello",
            "timestamp": "2024-01-01T00:00:00.000Z",
        }

    def test_non_utc_timestamp_converted(self):
        tz = timezone(timedelta(hours=2))
        msg = ChatMessage("1", "a", "b", datetime(2024, 1, 1, 2, 0, tzinfo=tz))
        parsed = json.loads(MessageCodec().encode(msg))
        assert parsed["timestamp"] == "2024-01-01T00:00:00.000Z"

    def test_unicode_body(self):
        msg = ChatMessage("1", "zoë", "héllo ✓", datetime(2024, 1, 1, tzinfo=UTC))
        parsed = json.loads(MessageCodec().encode(msg))
        assert parsed["username"] == "zoë"
        assert parsed["content"] == "héllo ✓"

    @pytest.mark.parametrize(
        "author, body", [("alice", "hi \ud800"), ("\udfff", "hello")]
    )
    def test_lone_surrogate_rejected(self, author, body):
        msg = ChatMessage("1", author, body, datetime(2024, 1, 1, tzinfo=UTC))
        with pytest.raises(ChatProtocolError):
            MessageCodec().encode(msg)


class TestDecode:
    def test_valid_frame(self):
        msg = MessageCodec().decode(_frame())
        assert msg == ChatMessage("1", "bob", "hi", datetime(2024, 1, 1, tzinfo=UTC))

    def test_millisecond_timestamp(self):
        msg = MessageCodec().decode(_frame(timestamp="2024-01-01T12:30:45.123Z"))
        assert msg.sent_at == datetime(2024, 1, 1, 12, 30, 45, 123000, tzinfo=UTC)

    def test_bytes_frame(self):
        msg = MessageCodec().decode(_frame().encode("utf-8"))
        assert msg.author == "bob"

    def test_content_trimmed(self):
        assert MessageCodec().decode(_frame(content="  hi  ")).body == "hi"

    def test_extra_fields_ignored(self):
        data = json.dumps(
            {
                "id": "1",
                "username": "bob",
                "content": "hi",
                "timestamp": "2024-01-01T00:00:00Z",
                "room": "general",
            }
        )
        assert MessageCodec().decode(data).body == "hi"

    @pytest.mark.parametrize(
        "data",
        [
            "not json",
            "",
            "[1, 2, 3]",
            '"just a string"',
            json.dumps({"id": "1", "username": "bob", "content": "hi"}),
            _frame(id=1),
            _frame(username=None),
            _frame(content=""),
            _frame(content="   "),
            _frame(timestamp="yesterday"),
            _frame(content="x" * 1001),
            b"\xff\xfe",
        ],
    )
    def test_malformed_frames_rejected(self, data):
        with pytest.raises(ChatProtocolError):
            MessageCodec().decode(data)

    def test_oversize_frame_rejected(self):
        codec = MessageCodec(max_frame_size=32)
        with pytest.raises(ChatProtocolError):
            codec.decode(_frame())


class TestTimestamps:
    def test_naive_read_as_utc(self):
        assert parse_timestamp("2024-01-01T00:00:00") == datetime(
            2024, 1, 1, tzinfo=UTC
        )

    def test_offset_preserved(self):
        parsed = parse_timestamp("2024-01-01T02:00:00+02:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=UTC)
        assert parsed.utcoffset() == timedelta(hours=2)

    def test_format_naive_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000Z"


class TestMessageIdFactory:
    def test_millisecond_clock(self):
        ids = MessageIdFactory(clock=lambda: 1704067200.5)
        assert ids() == "1704067200500"

    def test_same_millisecond_still_unique(self):
        ids = MessageIdFactory(clock=lambda: 1704067200.0)
        assert [ids(), ids(), ids()] == [
            "1704067200000",
            "1704067200001",
            "1704067200002",
        ]

    def test_clock_going_backwards(self):
        times = iter([10.0, 9.0])
        ids = MessageIdFactory(clock=lambda: next(times))
        first, second = ids(), ids()
        assert int(second) > int(first)
