"""Anthropic (Claude) generation backend."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

import anthropic

from pokechat.core.errors import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from pokechat.providers.base import (
    FinalMessage,
    GenerationError,
    TextDelta,
    ToolUse,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from pokechat.config.schema import BackendConfig
    from pokechat.providers.base import ChatMessage, GenerationEvent
    from pokechat.routing import ToolChoice

logger = logging.getLogger(__name__)

PROVIDER_ID = "anthropic"


def _map_error(e: anthropic.APIError) -> Exception:
    """Map Anthropic SDK errors to the pokechat error hierarchy."""
    if isinstance(e, anthropic.AuthenticationError):
        return ProviderAuthError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.RateLimitError):
        retry_after = None
        if hasattr(e, "response") and e.response is not None:
            raw = e.response.headers.get("retry-after")
            if raw is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(raw)
        return ProviderRateLimitError(PROVIDER_ID, retry_after=retry_after)
    if isinstance(e, anthropic.APITimeoutError):
        return ProviderTimeoutError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.InternalServerError):
        return ProviderOverloadedError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.NotFoundError):
        return ModelNotFoundError(PROVIDER_ID, str(e))
    return ProviderOverloadedError(PROVIDER_ID, str(e))


def _build_messages(
    history: Sequence[ChatMessage],
    system: str | None,
) -> tuple[str | anthropic.NotGiven, list[dict[str, str]]]:
    """Split history into Anthropic's system prompt + messages format.

    System-role entries are appended to *system*; tool-role entries are
    sent as user turns; empty messages are dropped.
    """
    system_parts: list[str] = [system] if system else []
    api_messages: list[dict[str, str]] = []

    for msg in history:
        if not msg.content.strip():
            continue
        if msg.role == "system":
            system_parts.append(msg.content)
        elif msg.role == "tool":
            api_messages.append({"role": "user", "content": msg.content})
        else:
            api_messages.append({"role": msg.role, "content": msg.content})

    joined = "\n\n".join(system_parts)
    return (joined or anthropic.NOT_GIVEN), api_messages


class AnthropicBackend:
    """Generation backend for Anthropic's Claude models."""

    def __init__(
        self,
        config: BackendConfig,
        *,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self._config = config
        self._client = client or anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            default_headers={"anthropic-version": config.anthropic_version},
        )

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    async def stream_turn(
        self,
        history: Sequence[ChatMessage],
        tools: Sequence[dict[str, Any]],
        *,
        system: str | None = None,
        tool_choice: ToolChoice | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        system_prompt, api_messages = _build_messages(history, system)

        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "system": system_prompt,
            "messages": api_messages,
        }
        if tools:
            kwargs["tools"] = list(tools)
            if tool_choice is not None:
                kwargs["tool_choice"] = tool_choice.to_param()

        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if hasattr(event, "type") and event.type == "content_block_delta":
                        text = getattr(event.delta, "text", "")
                        if text:
                            yield TextDelta(text=text)

                final = await stream.get_final_message()
        except anthropic.APIError as e:
            mapped = _map_error(e)
            logger.warning("Anthropic stream failed: %s", mapped)
            yield GenerationError(message=str(mapped))
            return

        tool_uses = tuple(
            ToolUse(id=block.id, name=block.name, input=block.input)
            for block in final.content
            if getattr(block, "type", None) == "tool_use"
        )
        yield FinalMessage(
            tool_uses=tool_uses,
            stop_reason=final.stop_reason or "end_turn",
        )

    async def health_check(self) -> str | None:
        try:
            await self._client.messages.create(
                model=self._config.model,
                max_tokens=1,
                system="healthcheck",
                messages=[{"role": "user", "content": "ping"}],
            )
        except Exception as e:
            return str(e) or type(e).__name__
        return None
