"""Tool registry: fixed set of tools available to a turn.

Built once at startup from an iterable of tools and read-only afterwards.
Provides lookup, the manifest handed to the model backend, and a
non-raising ``execute``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pokechat.tools.base import ToolDefinition, ToolResult, definition_of

if TYPE_CHECKING:
    from collections.abc import Iterable

    import httpx

    from pokechat.config.schema import ToolsConfig
    from pokechat.tools.base import Tool

logger = logging.getLogger(__name__)

UNKNOWN_TOOL_ERROR = "unknown tool"


class ToolRegistry:
    """Immutable name -> tool mapping.

    Raises:
        ValueError: If two tools share a name.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        registered: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in registered:
                msg = f"Tool already registered: {tool.name}"
                raise ValueError(msg)
            registered[tool.name] = tool
        self._tools = registered

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            KeyError: If the tool is not found.
        """
        if name not in self._tools:
            msg = f"Tool not found: {name}"
            raise KeyError(msg)
        return self._tools[name]

    def list_definitions(self) -> list[ToolDefinition]:
        """Return manifest entries for all registered tools, in order."""
        return [definition_of(t) for t in self._tools.values()]

    def manifest(self) -> list[dict[str, Any]]:
        """Return ``{name, description, input_schema}`` dicts for the backend."""
        return [d.to_manifest() for d in self.list_definitions()]

    async def execute(self, name: str, tool_input: Any) -> ToolResult:
        """Execute a tool by name.

        Unknown names produce ``ToolResult(ok=False, error="unknown tool")``.
        A tool that breaks the no-raise contract is converted to a failed
        result rather than propagating.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.failure(UNKNOWN_TOOL_ERROR)
        try:
            return await tool.execute(tool_input)
        except Exception as exc:
            logger.exception("Tool %s raised instead of returning a result", name)
            return ToolResult.failure(f"Tool execution error: {exc}")

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def list_names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())

    async def aclose(self) -> None:
        """Release resources held by tools that own any (HTTP clients)."""
        for tool in self._tools.values():
            close = getattr(tool, "aclose", None)
            if close is not None:
                await close()


def build_registry(
    config: ToolsConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ToolRegistry:
    """Construct the default registry from config."""
    from pokechat.tools.move_recommender import MoveRecommenderTool
    from pokechat.tools.pokeapi import PokeApiTool

    return ToolRegistry(
        [
            PokeApiTool(config.pokeapi, client=http_client),
            MoveRecommenderTool(config.move_recommender),
        ]
    )
