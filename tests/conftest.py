"""Shared test fixtures for pokechat."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pytest

from pokechat.config.schema import PokechatConfig
from pokechat.providers.base import ChatMessage

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def config() -> PokechatConfig:
    """Default config with a dummy API key."""
    cfg = PokechatConfig()
    cfg.backend.api_key = "sk-test"
    return cfg


@pytest.fixture
def make_history() -> Any:
    """Factory fixture: history from ``(role, content)`` pairs."""

    def _make(*turns: tuple[str, str]) -> list[ChatMessage]:
        return [
            ChatMessage(id=f"m{i}", role=role, content=content)  # type: ignore[arg-type]
            for i, (role, content) in enumerate(turns)
        ]

    return _make


@pytest.fixture
def pokechat_logs(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    """caplog that also sees records from the non-propagating pokechat logger."""
    logger = logging.getLogger("pokechat")
    previous = logger.propagate
    logger.propagate = True
    caplog.set_level(logging.DEBUG, logger="pokechat")
    yield caplog
    logger.propagate = previous
