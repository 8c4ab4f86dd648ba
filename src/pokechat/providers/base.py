"""Generation backend interface and data classes.

A backend runs one model turn and yields generation events in real time:

- zero or more :class:`TextDelta` (concatenation = full text),
- one terminal :class:`FinalMessage` carrying the tool-use requests,
- or a :class:`GenerationError` if the call fails at any point.

End of turn is signalled by exhaustion of the async iterator.
Data classes are immutable (frozen dataclasses with slots).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from pokechat.routing import ToolChoice

Role = Literal["user", "assistant", "system", "tool"]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """One entry of the conversation history."""

    id: str
    role: Role
    content: str


@dataclass(frozen=True, slots=True)
class ToolUse:
    """A tool invocation requested by the model, input already parsed."""

    id: str
    name: str
    input: Any = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TextDelta:
    """A chunk of generated text."""

    text: str


@dataclass(frozen=True, slots=True)
class FinalMessage:
    """Terminal structured message of the turn."""

    tool_uses: tuple[ToolUse, ...] = ()
    stop_reason: str = "end_turn"


@dataclass(frozen=True, slots=True)
class GenerationError:
    """The backend call failed; the turn cannot continue."""

    message: str


GenerationEvent = TextDelta | FinalMessage | GenerationError


@runtime_checkable
class GenerationBackend(Protocol):
    """Protocol that all model backend adapters must satisfy.

    Implementations are stateless per turn: they hold connection config
    but no conversation state.
    """

    @property
    def provider_id(self) -> str:
        """Unique identifier for this backend (e.g. 'anthropic')."""
        ...

    def stream_turn(
        self,
        history: Sequence[ChatMessage],
        tools: Sequence[dict[str, Any]],
        *,
        system: str | None = None,
        tool_choice: ToolChoice | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        """Start one model turn and yield generation events as they arrive."""
        ...

    async def health_check(self) -> str | None:
        """Verify the backend is reachable and credentials are valid.

        Returns None when healthy, otherwise a short error message.
        Must not raise.
        """
        ...
