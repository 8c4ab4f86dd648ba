"""Outbound event union: the only data that crosses server -> client.

Closed set of five shapes. Every consumer must handle all of them;
``typing.assert_never`` enforces that at the encode and decode sites.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Literal

EventTag = Literal["text", "tool_call", "tool_result", "error", "done"]

EVENT_TAGS: frozenset[str] = frozenset(
    {"text", "tool_call", "tool_result", "error", "done"}
)


@dataclass(frozen=True, slots=True)
class TextEvent:
    delta: str

    tag: ClassVar[EventTag] = "text"


@dataclass(frozen=True, slots=True)
class ToolCallEvent:
    tool_name: str
    input: Any
    call_id: str | None = None

    tag: ClassVar[EventTag] = "tool_call"


@dataclass(frozen=True, slots=True)
class ToolResultEvent:
    tool_name: str
    ok: bool
    data: Any = None
    error: str | None = None
    call_id: str | None = None

    tag: ClassVar[EventTag] = "tool_result"


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    message: str

    tag: ClassVar[EventTag] = "error"


@dataclass(frozen=True, slots=True)
class DoneEvent:
    tag: ClassVar[EventTag] = "done"


OutboundEvent = TextEvent | ToolCallEvent | ToolResultEvent | ErrorEvent | DoneEvent
