"""Health check endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request

from pokechat.tools.pokeapi import TOOL_NAME as POKEAPI_TOOL_NAME

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pokechat.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health() -> dict[str, str]:
    """Basic health check -- always returns quickly."""
    return {"status": "ok"}


async def probe(
    check: Callable[[], Awaitable[str | None]], timeout: float
) -> dict[str, Any]:
    """Run one dependency check under *timeout*; never raises."""
    try:
        error = await asyncio.wait_for(check(), timeout)
    except TimeoutError:
        error = f"timed out after {timeout:g}s"
    except Exception as e:
        error = str(e) or type(e).__name__
    if error is None:
        return {"ok": True}
    return {"ok": False, "error": error}


def _pokeapi_check(registry: ToolRegistry) -> Callable[[], Awaitable[str | None]]:
    async def check() -> str | None:
        if POKEAPI_TOOL_NAME not in registry:
            return "PokéAPI tool not registered"
        tool = registry.get(POKEAPI_TOOL_NAME)
        ping = getattr(tool, "ping", None)
        if ping is None:
            return None
        await ping()
        return None

    return check


@router.get("/api/health/dependencies")
async def health_dependencies(request: Request) -> dict[str, dict[str, Any]]:
    """Probe the model backend and PokéAPI concurrently."""
    state = request.app.state
    timeout = state.config.health.timeout

    anthropic_status, pokeapi_status = await asyncio.gather(
        probe(state.backend.health_check, timeout),
        probe(_pokeapi_check(state.registry), timeout),
    )
    for name, status in (("anthropic", anthropic_status), ("pokeapi", pokeapi_status)):
        if not status["ok"]:
            logger.warning("Dependency %s unhealthy: %s", name, status["error"])
    return {"anthropic": anthropic_status, "pokeapi": pokeapi_status}
