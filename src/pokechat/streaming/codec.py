"""Event codec: outbound events <-> server-sent-event records.

Each event is framed as::

    event: <tag>
    data: <json>

followed by a blank line. The JSON payload repeats the tag as ``type`` and
uses camelCase field names (``toolName``, ``callId``).

:class:`SSEDecoder` reassembles records that arrive split across reads and
silently drops malformed ones so a single bad record never ends the stream.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, assert_never

from pokechat.streaming.events import (
    EVENT_TAGS,
    DoneEvent,
    ErrorEvent,
    OutboundEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)

logger = logging.getLogger(__name__)

RECORD_DELIMITER = "\n\n"


def event_payload(event: OutboundEvent) -> dict[str, Any]:
    """Wire payload for *event* (exhaustive over the event union)."""
    if isinstance(event, TextEvent):
        return {"type": event.tag, "delta": event.delta}
    if isinstance(event, ToolCallEvent):
        payload: dict[str, Any] = {
            "type": event.tag,
            "toolName": event.tool_name,
            "input": event.input,
        }
        if event.call_id is not None:
            payload["callId"] = event.call_id
        return payload
    if isinstance(event, ToolResultEvent):
        payload = {"type": event.tag, "toolName": event.tool_name, "ok": event.ok}
        if event.data is not None:
            payload["data"] = event.data
        if event.error is not None:
            payload["error"] = event.error
        if event.call_id is not None:
            payload["callId"] = event.call_id
        return payload
    if isinstance(event, ErrorEvent):
        return {"type": event.tag, "message": event.message}
    if isinstance(event, DoneEvent):
        return {"type": event.tag}
    assert_never(event)


def encode_event(event: OutboundEvent) -> str:
    """Frame *event* as one SSE record, delimiter included."""
    data = json.dumps(event_payload(event), ensure_ascii=False, default=str)
    return f"event: {event.tag}\ndata: {data}{RECORD_DELIMITER}"


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(key)
    return value


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise TypeError(key)
    return value


def event_from_payload(tag: str, payload: dict[str, Any]) -> OutboundEvent:
    """Build an event from a decoded payload.

    Raises:
        ValueError: Unknown tag or tag/payload mismatch.
        TypeError: Missing or mistyped field.
    """
    if payload.get("type", tag) != tag:
        msg = f"tag {tag!r} does not match payload type {payload.get('type')!r}"
        raise ValueError(msg)
    if tag == "text":
        return TextEvent(delta=_required_str(payload, "delta"))
    if tag == "tool_call":
        return ToolCallEvent(
            tool_name=_required_str(payload, "toolName"),
            input=payload.get("input"),
            call_id=_optional_str(payload, "callId"),
        )
    if tag == "tool_result":
        ok = payload.get("ok")
        if not isinstance(ok, bool):
            raise TypeError("ok")
        return ToolResultEvent(
            tool_name=_required_str(payload, "toolName"),
            ok=ok,
            data=payload.get("data"),
            error=_optional_str(payload, "error"),
            call_id=_optional_str(payload, "callId"),
        )
    if tag == "error":
        return ErrorEvent(message=_required_str(payload, "message"))
    if tag == "done":
        return DoneEvent()
    msg = f"unknown event tag {tag!r}"
    raise ValueError(msg)


def decode_record(record: str) -> OutboundEvent | None:
    """Decode one record (without its delimiter); None if malformed."""
    tag = ""
    data_lines: list[str] = []
    for line in record.split("\n"):
        if line.startswith("event:"):
            tag = line[6:].removeprefix(" ")
        elif line.startswith("data:"):
            data_lines.append(line[5:].removeprefix(" "))

    if not tag or not data_lines or tag not in EVENT_TAGS:
        return None
    try:
        payload = json.loads("\n".join(data_lines))
        if not isinstance(payload, dict):
            return None
        return event_from_payload(tag, payload)
    except (ValueError, TypeError):
        return None


class SSEDecoder:
    """Incremental decoder for a stream of SSE records.

    Feed it raw chunks in arrival order; it returns the events completed by
    each chunk. Bytes are decoded as UTF-8 incrementally so multi-byte
    characters split across reads survive.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.dropped = 0

    def feed(self, chunk: str | bytes) -> list[OutboundEvent]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")

        events: list[OutboundEvent] = []
        while True:
            idx = self._buffer.find(RECORD_DELIMITER)
            if idx == -1:
                break
            record = self._buffer[:idx]
            self._buffer = self._buffer[idx + len(RECORD_DELIMITER) :]
            self._decode_into(record, events)
        return events

    def flush(self) -> list[OutboundEvent]:
        """Decode whatever remains once the stream has ended."""
        rest = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        events: list[OutboundEvent] = []
        self._decode_into(rest.replace("\r\n", "\n"), events)
        return events

    def _decode_into(self, record: str, events: list[OutboundEvent]) -> None:
        if not record.strip():
            return
        event = decode_record(record)
        if event is None:
            self.dropped += 1
            logger.debug("Dropped malformed SSE record: %.200r", record)
            return
        events.append(event)
