"""Tests for the CLI commands: argument parsing, output formatting, errors."""

from __future__ import annotations

import asyncio
import io
import json
import signal
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from click.testing import CliRunner
from rich.console import Console

from pokechat.cli.app import cli
from pokechat.client.decoder import MessageView
from pokechat.client.http import ChatClient, ChatOutcome
from pokechat.streaming.codec import encode_event
from pokechat.streaming.events import (
    DoneEvent,
    ErrorEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """No user or project config files, no env overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("POKECHAT_CONFIG", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    return tmp_path


def _mock_client(wire: bytes) -> Any:
    """ChatClient factory whose transport replays *wire*."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=wire)

    def factory(base_url: str, timeout: float = 120.0) -> ChatClient:
        return ChatClient(base_url, timeout, transport=httpx.MockTransport(handler))

    return factory


# ── CLI group ────────────────────────────────────────────────────


class TestCliGroup:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli)
        assert result.exit_code == 0
        assert "Pokédex chat with live tool calls" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "pokechat" in result.output
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "tools", "chat", "health"):
            assert command in result.output

    def test_bad_config_file(self, runner: CliRunner, tmp_path) -> None:
        bad = tmp_path / "bad.toml"
        bad.write_text("[api\nport = ")
        result = runner.invoke(cli, ["--config", str(bad), "tools"])
        assert result.exit_code == 1
        assert "Invalid TOML" in result.output


# ── tools ────────────────────────────────────────────────────────


class TestToolsCommand:
    def test_json_manifest(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["tools", "--json"])
        assert result.exit_code == 0
        manifest = json.loads(result.output)
        names = [entry["name"] for entry in manifest]
        assert names == ["pokeapi_get_pokemon", "advice_move_recommender"]
        assert all("input_schema" in entry for entry in manifest)

    def test_table(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["tools"])
        assert result.exit_code == 0
        assert "pokeapi_get_pokemon" in result.output
        assert "advice_move_recommender" in result.output


# ── chat ─────────────────────────────────────────────────────────


class TestChatCommand:
    def test_missing_question(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["chat"])
        assert result.exit_code != 0
        assert "Missing argument" in result.output

    def test_streamed_turn(self, runner: CliRunner) -> None:
        wire = "".join(
            encode_event(e)
            for e in [
                TextEvent(delta="Pikachu is "),
                TextEvent(delta="Electric."),
                ToolCallEvent(
                    tool_name="pokeapi_get_pokemon",
                    input={"pokemon": "pikachu"},
                    call_id="c1",
                ),
                ToolResultEvent(
                    tool_name="pokeapi_get_pokemon",
                    ok=True,
                    data={"name": "pikachu", "types": ["electric"]},
                    call_id="c1",
                ),
                DoneEvent(),
            ]
        ).encode()
        with patch("pokechat.client.http.ChatClient", _mock_client(wire)):
            result = runner.invoke(cli, ["chat", "tell me about pikachu"])
        assert result.exit_code == 0
        assert "Pikachu is Electric." in result.output
        assert "pokeapi_get_pokemon" in result.output
        assert "electric" in result.output

    def test_error_event_exits_nonzero(self, runner: CliRunner) -> None:
        wire = (
            encode_event(ErrorEvent(message="[anthropic] overloaded"))
            + encode_event(DoneEvent())
        ).encode()
        with patch("pokechat.client.http.ChatClient", _mock_client(wire)):
            result = runner.invoke(cli, ["chat", "hi"])
        assert result.exit_code == 1
        assert "[anthropic] overloaded" in result.output

    def test_interrupt_stops_turn(self, runner: CliRunner) -> None:
        async def body():
            yield encode_event(TextEvent(delta="Pika")).encode()
            signal.raise_signal(signal.SIGINT)
            await asyncio.Event().wait()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body())

        def factory(base_url: str, timeout: float = 120.0) -> ChatClient:
            return ChatClient(base_url, timeout, transport=httpx.MockTransport(handler))

        with patch("pokechat.client.http.ChatClient", factory):
            result = runner.invoke(cli, ["chat", "hi"])
        assert result.exit_code == 0
        assert "Pika" in result.output
        assert "Stopped." in result.output

    def test_url_option(self, runner: CliRunner) -> None:
        outcome = ChatOutcome(view=MessageView(id="a1", done=True), status="completed")
        with patch("pokechat.cli.app._chat_async", new_callable=AsyncMock) as mock:
            mock.return_value = outcome
            result = runner.invoke(cli, ["chat", "hi", "--url", "http://example.test:9000"])
        assert result.exit_code == 0
        assert mock.call_args.args[:2] == ("http://example.test:9000", "hi")

    def test_default_url_from_config(self, runner: CliRunner, tmp_path) -> None:
        cfg = tmp_path / "pokechat.toml"
        cfg.write_text('[api]\nhost = "0.0.0.0"\nport = 9123\n')
        outcome = ChatOutcome(view=MessageView(id="a1"), status="stopped")
        with patch("pokechat.cli.app._chat_async", new_callable=AsyncMock) as mock:
            mock.return_value = outcome
            result = runner.invoke(cli, ["--config", str(cfg), "chat", "hi"])
        assert result.exit_code == 0
        assert mock.call_args.args[0] == "http://127.0.0.1:9123"


# ── health ───────────────────────────────────────────────────────


class TestHealthCommand:
    def test_all_ok(self, runner: CliRunner) -> None:
        report = {"anthropic": {"ok": True}, "pokeapi": {"ok": True}}
        with patch("pokechat.cli.app._health_async", new_callable=AsyncMock) as mock:
            mock.return_value = report
            result = runner.invoke(cli, ["health"])
        assert result.exit_code == 0
        assert "anthropic" in result.output
        assert "pokeapi" in result.output

    def test_unhealthy_dependency(self, runner: CliRunner) -> None:
        report = {
            "anthropic": {"ok": True},
            "pokeapi": {"ok": False, "error": "timed out after 4s"},
        }
        with patch("pokechat.cli.app._health_async", new_callable=AsyncMock) as mock:
            mock.return_value = report
            result = runner.invoke(cli, ["health"])
        assert result.exit_code == 1
        assert "timed out after 4s" in result.output

    def test_server_unreachable(self, runner: CliRunner) -> None:
        with patch("pokechat.cli.app._health_async", new_callable=AsyncMock) as mock:
            mock.side_effect = httpx.ConnectError("connection refused")
            result = runner.invoke(cli, ["health"])
        assert result.exit_code == 1
        assert "cannot reach server" in result.output


# ── display ──────────────────────────────────────────────────────


class TestChatDisplay:
    def test_tool_results_rendered_once(self) -> None:
        from pokechat.cli.display import ChatDisplay
        from pokechat.client.decoder import MessageFold

        buf = io.StringIO()
        display = ChatDisplay(Console(file=buf, width=100, no_color=True))
        fold = MessageFold("a1")
        for event in [
            ToolCallEvent(tool_name="advice_move_recommender", input={}, call_id="c1"),
            ToolCallEvent(tool_name="pokeapi_get_pokemon", input={}, call_id="c2"),
            ToolResultEvent(
                tool_name="advice_move_recommender", ok=False, error="bad input", call_id="c1"
            ),
            ToolResultEvent(tool_name="pokeapi_get_pokemon", ok=True, data={"id": 1}, call_id="c2"),
        ]:
            fold.apply(event)
            display.update(fold.view())
        display.update(fold.view())

        output = buf.getvalue()
        assert output.count("failed advice_move_recommender: bad input") == 1
        assert output.count("ok pokeapi_get_pokemon") == 1
