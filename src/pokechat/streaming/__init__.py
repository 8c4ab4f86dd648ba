"""Turn orchestration and the outbound event stream."""

from pokechat.streaming.codec import SSEDecoder, decode_record, encode_event
from pokechat.streaming.events import (
    DoneEvent,
    ErrorEvent,
    OutboundEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from pokechat.streaming.orchestrator import (
    CancellationToken,
    OutboundChannel,
    StreamOrchestrator,
    TurnRequest,
    TurnState,
)

__all__ = [
    "CancellationToken",
    "DoneEvent",
    "ErrorEvent",
    "OutboundChannel",
    "OutboundEvent",
    "SSEDecoder",
    "StreamOrchestrator",
    "TextEvent",
    "ToolCallEvent",
    "ToolResultEvent",
    "TurnRequest",
    "TurnState",
    "decode_record",
    "encode_event",
]
