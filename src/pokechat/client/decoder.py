"""Client stream decoder: folds outbound events into a message view.

The view is a pure projection of the event sequence: replaying the same
events into a fresh :class:`MessageFold` always yields an equal view.

Tool results are paired with their call by ``call_id`` when the server
sends one, otherwise with the earliest unresolved call of the same tool
name (FIFO). A result that matches nothing is orphaned: it is logged and,
if successful, still recorded in ``tool_results``.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, assert_never

from pokechat.streaming.events import (
    DoneEvent,
    ErrorEvent,
    OutboundEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from pokechat.tools.pokeapi import TOOL_NAME as POKEAPI_TOOL_NAME

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

LOOKUP_PLACEHOLDER = "Here's the Pokémon information you requested:"
ANALYSIS_PLACEHOLDER = "Here's the type effectiveness analysis:"


def placeholder_for(tool_name: str) -> str:
    """Content shown when a turn produced tool data but no text."""
    if tool_name == POKEAPI_TOOL_NAME:
        return LOOKUP_PLACEHOLDER
    return ANALYSIS_PLACEHOLDER


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    ok: bool
    error: str | None = None


@dataclass
class ToolCallView:
    tool_name: str
    input: Any
    call_id: str | None = None
    result: ToolOutcome | None = None


@dataclass
class ToolResultView:
    tool_name: str
    data: Any


@dataclass
class MessageView:
    """Display state of one assistant message."""

    id: str
    role: str = "assistant"
    content: str = ""
    tool_calls: list[ToolCallView] = field(default_factory=list)
    tool_results: list[ToolResultView] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    done: bool = False

    @property
    def failed(self) -> bool:
        return bool(self.errors)


class MessageFold:
    """Accumulator for one in-flight assistant message."""

    def __init__(self, message_id: str) -> None:
        self._view = MessageView(id=message_id)
        self.orphaned: list[ToolResultEvent] = []

    def apply(self, event: OutboundEvent) -> None:
        view = self._view
        if isinstance(event, TextEvent):
            view.content += event.delta
        elif isinstance(event, ToolCallEvent):
            view.tool_calls.append(
                ToolCallView(
                    tool_name=event.tool_name,
                    input=event.input,
                    call_id=event.call_id,
                )
            )
        elif isinstance(event, ToolResultEvent):
            self._apply_result(event)
        elif isinstance(event, ErrorEvent):
            view.errors.append(event.message)
        elif isinstance(event, DoneEvent):
            if not view.content and view.tool_results:
                view.content = placeholder_for(view.tool_results[0].tool_name)
            view.done = True
        else:
            assert_never(event)

    def apply_all(self, events: Iterable[OutboundEvent]) -> MessageFold:
        for event in events:
            self.apply(event)
        return self

    def view(self) -> MessageView:
        """Snapshot of the current state, detached from the fold."""
        return copy.deepcopy(self._view)

    def _apply_result(self, event: ToolResultEvent) -> None:
        view = self._view
        call = self._match(event)
        if call is None:
            self.orphaned.append(event)
            logger.warning("Orphaned tool result for %s", event.tool_name)
        else:
            call.result = ToolOutcome(ok=event.ok, error=event.error)

        if event.ok and event.data is not None:
            view.tool_results.append(
                ToolResultView(tool_name=event.tool_name, data=event.data)
            )

    def _match(self, event: ToolResultEvent) -> ToolCallView | None:
        unresolved = [c for c in self._view.tool_calls if c.result is None]
        if event.call_id is not None:
            for call in unresolved:
                if call.call_id == event.call_id:
                    return call
        for call in unresolved:
            if call.tool_name == event.tool_name:
                return call
        return None


def fold_events(events: Iterable[OutboundEvent], message_id: str) -> MessageView:
    """Fold a complete event sequence into a fresh view."""
    return MessageFold(message_id).apply_all(events).view()
