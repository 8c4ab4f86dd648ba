"""Model backend adapters."""

from pokechat.providers.base import (
    ChatMessage,
    FinalMessage,
    GenerationBackend,
    GenerationError,
    GenerationEvent,
    TextDelta,
    ToolUse,
)

__all__ = [
    "ChatMessage",
    "FinalMessage",
    "GenerationBackend",
    "GenerationError",
    "GenerationEvent",
    "TextDelta",
    "ToolUse",
]
