"""Tool-selection strategies.

A strategy looks at the conversation history and returns a
:class:`ToolChoice` hint for the backend. The hint only nudges the model
toward calling a tool instead of answering from memory; it is not a
guarantee that the tool will be called.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pokechat.config.schema import RoutingConfig
    from pokechat.providers.base import ChatMessage


@dataclass(frozen=True, slots=True)
class ToolChoice:
    """Backend tool-selection hint."""

    type: Literal["auto", "any", "tool"] = "auto"
    name: str | None = None

    def __post_init__(self) -> None:
        if (self.type == "tool") != (self.name is not None):
            msg = "ToolChoice needs a name exactly when type == 'tool'"
            raise ValueError(msg)

    @classmethod
    def auto(cls) -> ToolChoice:
        return cls("auto")

    @classmethod
    def force(cls, name: str) -> ToolChoice:
        return cls("tool", name)

    def to_param(self) -> dict[str, Any]:
        """Anthropic ``tool_choice`` request parameter."""
        if self.type == "tool":
            return {"type": "tool", "name": self.name}
        return {"type": self.type}


@runtime_checkable
class ToolChoiceStrategy(Protocol):
    """Pluggable routing strategy."""

    def choose_tool(self, history: Sequence[ChatMessage]) -> ToolChoice: ...


class AutoToolRouter:
    """Never forces a tool."""

    def choose_tool(self, history: Sequence[ChatMessage]) -> ToolChoice:
        return ToolChoice.auto()


def _compile(keywords: Sequence[str]) -> re.Pattern[str] | None:
    words = [k.strip() for k in keywords if k.strip()]
    if not words:
        return None
    alternation = "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


def latest_user_message(history: Sequence[ChatMessage]) -> ChatMessage | None:
    for msg in reversed(history):
        if msg.role == "user":
            return msg
    return None


class KeywordToolRouter:
    """Keyword-family routing on the latest user message.

    Comparison vocabulary wins over lookup vocabulary; anything else
    falls back to ``fallback`` (``auto`` or ``any``).
    """

    def __init__(
        self,
        *,
        comparison_tool: str,
        comparison_keywords: Sequence[str],
        lookup_tool: str,
        lookup_keywords: Sequence[str],
        fallback: Literal["auto", "any"] = "auto",
    ) -> None:
        self._comparison_tool = comparison_tool
        self._comparison = _compile(comparison_keywords)
        self._lookup_tool = lookup_tool
        self._lookup = _compile(lookup_keywords)
        self._fallback = ToolChoice(fallback)

    @classmethod
    def from_config(cls, config: RoutingConfig) -> KeywordToolRouter:
        return cls(
            comparison_tool=config.comparison_tool,
            comparison_keywords=config.comparison_keywords,
            lookup_tool=config.lookup_tool,
            lookup_keywords=config.lookup_keywords,
            fallback=config.fallback,
        )

    def choose_tool(self, history: Sequence[ChatMessage]) -> ToolChoice:
        msg = latest_user_message(history)
        if msg is None:
            return self._fallback
        if self._comparison is not None and self._comparison.search(msg.content):
            return ToolChoice.force(self._comparison_tool)
        if self._lookup is not None and self._lookup.search(msg.content):
            return ToolChoice.force(self._lookup_tool)
        return self._fallback


def build_router(config: RoutingConfig) -> ToolChoiceStrategy:
    """Select the routing strategy named in config."""
    if config.strategy == "auto":
        return AutoToolRouter()
    return KeywordToolRouter.from_config(config)
