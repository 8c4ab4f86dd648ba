"""POST /api/chat -- stream one turn as server-sent events."""

from __future__ import annotations

import contextlib
import logging
import uuid
from typing import TYPE_CHECKING, Literal

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, Field

from pokechat.providers.base import ChatMessage
from pokechat.streaming.codec import encode_event
from pokechat.streaming.orchestrator import CancellationToken, TurnRequest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pokechat.streaming.orchestrator import StreamOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

INVALID_BODY = "Invalid body: messages[] required"


class MessageBody(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: Literal["user", "assistant", "system", "tool"]
    content: str


class ChatRequest(BaseModel):
    messages: list[MessageBody]


@router.post("/chat")
async def chat(request: Request) -> Response:
    """Stream a model turn, tool calls and results included."""
    try:
        body = ChatRequest.model_validate(await request.json())
    except ValueError as exc:
        logger.info("Rejected chat request: %s", exc)
        return JSONResponse(status_code=400, content={"error": INVALID_BODY})

    history = [ChatMessage(id=m.id, role=m.role, content=m.content) for m in body.messages]
    logger.debug("Chat request with %d message(s)", len(history))

    orchestrator: StreamOrchestrator = request.app.state.orchestrator
    turn = TurnRequest(history=history)

    async def records() -> AsyncIterator[str]:
        stream = orchestrator.stream(turn, CancellationToken())
        async with contextlib.aclosing(stream) as events:
            async for event in events:
                yield encode_event(event)

    return StreamingResponse(
        records(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
