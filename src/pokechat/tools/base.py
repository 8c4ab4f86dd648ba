"""Tool protocol and data types.

Defines the ``Tool`` protocol that all tool implementations must
satisfy, plus data classes for results and manifest entries.

Executors never raise across the ``execute`` boundary: input is
validated inside the tool and any failure is reported as
``ToolResult(ok=False, error=...)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ValidationError

from pokechat.core.errors import ToolValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Manifest entry for a tool, as exposed to the model backend."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_manifest(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Settled outcome of one tool execution."""

    ok: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def success(cls, data: Any) -> ToolResult:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> ToolResult:
        return cls(ok=False, error=error)


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool implementations must satisfy."""

    @property
    def name(self) -> str:
        """Unique, stable name for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's input object."""
        ...

    async def execute(self, tool_input: Any) -> ToolResult:
        """Validate *tool_input* and run the tool.

        Returns:
            A successful or failed :class:`ToolResult`. Never raises.
        """
        ...


def parse_input(model: type[ModelT], tool_name: str, tool_input: Any) -> ModelT:
    """Validate raw tool input against a pydantic model.

    Raises:
        ToolValidationError: If the input does not match the model.
    """
    if not isinstance(tool_input, dict):
        msg = f"expected an object, got {type(tool_input).__name__}"
        raise ToolValidationError(tool_name, msg)
    try:
        return model.model_validate(tool_input)
    except ValidationError as e:
        raise ToolValidationError(tool_name, _summarize(e)) from e


def _summarize(error: ValidationError) -> str:
    """Flatten pydantic errors to ``loc: message`` pairs."""
    parts: list[str] = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "input"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def definition_of(tool: Tool) -> ToolDefinition:
    """Build the manifest entry for *tool*."""
    return ToolDefinition(
        name=tool.name,
        description=tool.description,
        input_schema=dict(tool.input_schema),
    )

