# =============================================================================
# wschat -- Wire Protocol Codec
# =============================================================================
#
# One JSON object per text frame, same shape in both directions:
#
#   {"id": str, "username": str, "content": str, "timestamp": ISO-8601 str}
# =============================================================================

from __future__ import annotations

import json
import time
from datetime import UTC, datetime
from typing import Any, Callable

from .constants import MAX_FRAME_SIZE, MAX_MESSAGE_LENGTH
from .errors import ChatProtocolError
from .types import ChatMessage

_REQUIRED_FIELDS = ("id", "username", "content", "timestamp")

try:
    import orjson

    def _json_loads(data: str | bytes) -> Any:
        return orjson.loads(data)

    def _json_dumps(obj: Any) -> str:
        return orjson.dumps(obj).decode()

except ImportError:

    def _json_loads(data: str | bytes) -> Any:
        return json.loads(data)

    def _json_dumps(obj: Any) -> str:
        return json.dumps(obj, separators=(",", ":"))


class MessageIdFactory:
    """Mint message ids from the wall clock in milliseconds.

    Ids are strictly increasing within one factory: two calls in the
    same millisecond get consecutive values.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._last = 0

    def __call__(self) -> str:
        now = int(self._clock() * 1000)
        if now <= self._last:
            now = self._last + 1
        self._last = now
        return str(now)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    text = value.astimezone(UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware datetime (naive means UTC)."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ChatProtocolError(f"Invalid timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class MessageCodec:
    """Encode and decode chat frames.

    Args:
        max_frame_size: Inbound frames longer than this are rejected.
        max_body_length: Longest ``content`` accepted on decode.
    """

    def __init__(
        self,
        max_frame_size: int = MAX_FRAME_SIZE,
        max_body_length: int = MAX_MESSAGE_LENGTH,
    ) -> None:
        self._max_frame_size = max_frame_size
        self._max_body_length = max_body_length

    def encode(self, message: ChatMessage) -> str:
        """Encode one outbound frame.

        Raises:
            ChatProtocolError: If a field is not valid UTF-8 (lone
                surrogates) or the frame cannot be serialized.
        """
        for text in (message.id, message.author, message.body):
            try:
                text.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise ChatProtocolError(f"Text is not valid UTF-8: {exc}") from exc
        try:
            return _json_dumps(
                {
                    "id": message.id,
                    "username": message.author,
                    "content": message.body,
                    "timestamp": format_timestamp(message.sent_at),
                }
            )
        except (TypeError, ValueError) as exc:
            raise ChatProtocolError(f"Failed to encode frame: {exc}") from exc

    def decode(self, data: str | bytes) -> ChatMessage:
        """Decode one inbound frame.

        Raises:
            ChatProtocolError: If the frame is oversized, not JSON, or
                does not have the expected shape.
        """
        if len(data) > self._max_frame_size:
            raise ChatProtocolError(f"Frame exceeds {self._max_frame_size} bytes")
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ChatProtocolError("Binary frame is not UTF-8") from exc

        try:
            parsed = _json_loads(data)
        except (json.JSONDecodeError, ValueError, RecursionError) as exc:
            raise ChatProtocolError(f"Failed to parse JSON: {exc}") from exc

        if not isinstance(parsed, dict):
            raise ChatProtocolError(f"Expected a JSON object, got {type(parsed).__name__}")
        for name in _REQUIRED_FIELDS:
            if not isinstance(parsed.get(name), str):
                raise ChatProtocolError(f"Field {name!r} missing or not a string")

        body = parsed["content"].strip()
        if not body:
            raise ChatProtocolError("Empty message content")
        if len(body) > self._max_body_length:
            raise ChatProtocolError(
                f"Message content exceeds {self._max_body_length} characters"
            )

        return ChatMessage(
            id=parsed["id"],
            author=parsed["username"],
            body=body,
            sent_at=parse_timestamp(parsed["timestamp"]),
        )
