"""Client-side stream decoding and the HTTP chat client."""

from pokechat.client.decoder import (
    MessageFold,
    MessageView,
    ToolCallView,
    ToolOutcome,
    ToolResultView,
    fold_events,
)
from pokechat.client.http import ChatAPIError, ChatClient, ChatOutcome

__all__ = [
    "ChatAPIError",
    "ChatClient",
    "ChatOutcome",
    "MessageFold",
    "MessageView",
    "ToolCallView",
    "ToolOutcome",
    "ToolResultView",
    "fold_events",
]
