"""Main CLI application.

Click commands for pokechat: serve, tools, chat, health.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import uuid
from typing import TYPE_CHECKING

import click

from pokechat import __version__
from pokechat.config.loader import load_config
from pokechat.core.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pokechat.client.http import ChatOutcome
    from pokechat.config.schema import PokechatConfig
    from pokechat.streaming.orchestrator import CancellationToken


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> PokechatConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _server_url(config: PokechatConfig, url: str | None) -> str:
    if url:
        return url
    host = config.api.host
    if host in ("0.0.0.0", "::"):
        host = "127.0.0.1"
    return f"http://{host}:{config.api.port}"


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pokechat")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """pokechat - Pokédex chat with live tool calls.

    Streams model answers grounded in PokéAPI data.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides config).")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (overrides config)."
)
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the streaming chat API server."""
    import uvicorn

    from pokechat.api.app import create_app
    from pokechat.core.logging import configure_logging

    config = _load_config(ctx.obj["config_path"])
    configure_logging(config.logging)

    if not config.backend.api_key:
        click.echo(
            f"Warning: no API key found in ${config.backend.api_key_env}", err=True
        )

    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.api.host,
        port=port or config.api.port,
    )


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Print raw manifest.")
@click.pass_context
def tools(ctx: click.Context, as_json: bool) -> None:
    """List the tools offered to the model."""
    from pokechat.tools.registry import build_registry

    config = _load_config(ctx.obj["config_path"])
    registry = build_registry(config.tools)
    try:
        manifest = registry.manifest()
    finally:
        asyncio.run(registry.aclose())

    if as_json:
        import json

        click.echo(json.dumps(manifest, indent=2, ensure_ascii=False))
        return

    from pokechat.cli.display import render_tools

    render_tools(manifest)


# ── chat ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("question")
@click.option("--url", default=None, help="Server base URL (defaults to config api).")
@click.option(
    "--timeout", type=float, default=120.0, help="Request timeout in seconds."
)
@click.pass_context
def chat(ctx: click.Context, question: str, url: str | None, timeout: float) -> None:
    """Ask a single question against a running server."""
    config = _load_config(ctx.obj["config_path"])
    outcome = asyncio.run(_chat_async(_server_url(config, url), question, timeout))
    if outcome.status == "error":
        sys.exit(1)


@contextlib.contextmanager
def _interrupt_cancels(cancel: CancellationToken) -> Iterator[None]:
    """Route Ctrl-C to *cancel* so the turn ends as stopped, not a traceback."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel)
    except (NotImplementedError, RuntimeError):
        # No loop signal support here (Windows, or not the main thread).
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def _chat_async(base_url: str, question: str, timeout: float) -> ChatOutcome:
    from pokechat.cli.display import ChatDisplay
    from pokechat.client.http import ChatClient
    from pokechat.providers.base import ChatMessage
    from pokechat.streaming.orchestrator import CancellationToken

    display = ChatDisplay()
    history = [ChatMessage(id=uuid.uuid4().hex, role="user", content=question)]
    cancel = CancellationToken()
    with _interrupt_cancels(cancel):
        async with ChatClient(base_url, timeout=timeout) as client:
            outcome = await client.chat(
                history, cancel=cancel, on_update=display.update
            )
    display.finish(outcome)
    return outcome


# ── health ───────────────────────────────────────────────────────


@cli.command()
@click.option("--url", default=None, help="Server base URL (defaults to config api).")
@click.pass_context
def health(ctx: click.Context, url: str | None) -> None:
    """Check the server's model backend and PokéAPI reachability."""
    import httpx

    from pokechat.cli.display import render_health
    from pokechat.client.http import ChatAPIError

    config = _load_config(ctx.obj["config_path"])
    try:
        report = asyncio.run(_health_async(_server_url(config, url)))
    except (httpx.HTTPError, ChatAPIError) as e:
        _error(f"cannot reach server: {e}")
        return
    render_health(report)
    if not all(status.get("ok") for status in report.values()):
        sys.exit(1)


async def _health_async(base_url: str) -> dict[str, dict[str, object]]:
    from pokechat.client.http import ChatClient

    async with ChatClient(base_url, timeout=10.0) as client:
        return await client.health()
