"""FastAPI application factory for the pokechat HTTP API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from pokechat.config.schema import PokechatConfig
    from pokechat.providers.base import GenerationBackend
    from pokechat.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build backend, tools and orchestrator on startup; release them on shutdown."""
    from pokechat.providers.anthropic import AnthropicBackend
    from pokechat.routing import build_router
    from pokechat.streaming.orchestrator import StreamOrchestrator
    from pokechat.tools.registry import build_registry

    config: PokechatConfig = app.state.config

    backend = app.state.backend
    if backend is None:
        backend = AnthropicBackend(config.backend)
        app.state.backend = backend

    owns_registry = app.state.registry is None
    if owns_registry:
        app.state.registry = build_registry(config.tools)
    registry: ToolRegistry = app.state.registry

    app.state.orchestrator = StreamOrchestrator(
        backend,
        registry,
        build_router(config.routing),
        system_instructions=config.chat.system_instructions,
    )
    logger.info(
        "pokechat ready: backend=%s tools=%s",
        backend.provider_id,
        ", ".join(registry.list_names()),
    )

    yield

    if owns_registry:
        await registry.aclose()


def create_app(
    config: PokechatConfig | None = None,
    *,
    backend: GenerationBackend | None = None,
    registry: ToolRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    *backend* and *registry* replace the configured ones when given.
    """
    from pokechat import __version__
    from pokechat.config.loader import load_config

    if config is None:
        config = load_config()

    app = FastAPI(
        title="pokechat",
        description="Streaming Pokédex chat with concurrent tool calls",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.backend = backend
    app.state.registry = registry

    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from pokechat.api.health import router as health_router
    from pokechat.api.routes.chat import router as chat_router

    app.include_router(chat_router)
    app.include_router(health_router)

    return app
