"""ChatClient -- streaming client for the pokechat HTTP API."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, cast

import httpx

from pokechat.client.decoder import MessageFold, MessageView
from pokechat.streaming.codec import SSEDecoder

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from pokechat.providers.base import ChatMessage
    from pokechat.streaming.events import OutboundEvent
    from pokechat.streaming.orchestrator import CancellationToken

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error talking to AI service."
UNAVAILABLE_MESSAGE = "Chat service unavailable. Check server logs and network."

TurnStatus = Literal["completed", "error", "stopped"]


class ChatAPIError(Exception):
    """Non-success response from the chat endpoint."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


@dataclass
class ChatOutcome:
    """How a turn ended, plus the final message view."""

    view: MessageView
    status: TurnStatus
    error: str | None = None


class ChatClient:
    """Client for the pokechat streaming chat API.

    Usage::

        async with ChatClient("http://localhost:8080") as client:
            outcome = await client.chat(history)
            print(outcome.view.content)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 120.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            try:
                detail = response.json().get("error", response.text)
            except ValueError:
                detail = response.text
            raise ChatAPIError(response.status_code, str(detail))

    async def stream_events(
        self, messages: Sequence[ChatMessage]
    ) -> AsyncIterator[OutboundEvent]:
        """POST the history and yield decoded events as they arrive."""
        payload = {
            "messages": [
                {"id": m.id, "role": m.role, "content": m.content} for m in messages
            ]
        }
        async with self._client.stream(
            "POST",
            "/api/chat",
            json=payload,
            headers={"Accept": "text/event-stream"},
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                self._raise_for_status(response)
            decoder = SSEDecoder()
            async for chunk in response.aiter_bytes():
                for event in decoder.feed(chunk):
                    yield event
            for event in decoder.flush():
                yield event
            if decoder.dropped:
                logger.debug("Dropped %d malformed record(s)", decoder.dropped)

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        cancel: CancellationToken | None = None,
        on_update: Callable[[MessageView], None] | None = None,
        message_id: str | None = None,
    ) -> ChatOutcome:
        """Run one turn and fold it into an assistant message.

        A triggered *cancel* stops reading and ends the turn as ``stopped``
        without an error. Transport failures end it as ``error``.
        """
        fold = MessageFold(message_id or uuid.uuid4().hex)

        async def consume() -> None:
            async with contextlib.aclosing(self.stream_events(messages)) as events:
                async for event in events:
                    fold.apply(event)
                    if on_update is not None:
                        on_update(fold.view())

        reader = asyncio.create_task(consume())
        waiter = asyncio.create_task(cancel.wait()) if cancel is not None else None
        try:
            if waiter is not None:
                await asyncio.wait({reader, waiter}, return_when=asyncio.FIRST_COMPLETED)
            else:
                await asyncio.wait({reader})
        finally:
            if waiter is not None:
                waiter.cancel()
            if not reader.done():
                reader.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await reader

        if reader.cancelled():
            return ChatOutcome(view=fold.view(), status="stopped")

        exc = reader.exception()
        if isinstance(exc, ChatAPIError):
            logger.warning("Chat request rejected: %s", exc)
            return ChatOutcome(view=fold.view(), status="error", error=UNAVAILABLE_MESSAGE)
        if isinstance(exc, httpx.HTTPError):
            logger.warning("Chat stream failed: %s", exc)
            return ChatOutcome(
                view=fold.view(), status="error", error=NETWORK_ERROR_MESSAGE
            )
        if exc is not None:
            raise exc

        view = fold.view()
        if view.errors:
            return ChatOutcome(view=view, status="error", error=view.errors[-1])
        return ChatOutcome(view=view, status="completed")

    async def health(self) -> dict[str, Any]:
        """Dependency health as reported by the server."""
        resp = await self._client.get("/api/health/dependencies")
        self._raise_for_status(resp)
        return cast("dict[str, Any]", resp.json())
