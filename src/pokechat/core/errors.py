"""Exception hierarchy for pokechat.

Every module imports from here. The hierarchy is:

    PokechatError
    ├── ProviderError(provider_id)
    │   ├── ProviderAuthError
    │   ├── ProviderRateLimitError(retry_after)
    │   ├── ProviderTimeoutError
    │   ├── ProviderOverloadedError
    │   └── ModelNotFoundError
    ├── ToolError
    │   ├── ToolValidationError(tool_name)
    │   └── UnknownToolError(tool_name)
    ├── StreamError
    │   └── InvalidTransitionError(current, target)
    └── ConfigError
"""

from __future__ import annotations


class PokechatError(Exception):
    """Base exception for all pokechat errors."""


# ─── Provider Errors ──────────────────────────────────────────


class ProviderError(PokechatError):
    """Base for model backend errors."""

    def __init__(self, provider_id: str, message: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class ProviderAuthError(ProviderError):
    """Invalid or missing API key."""


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(self, provider_id: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(provider_id, msg)


class ProviderTimeoutError(ProviderError):
    """Model call timed out."""


class ProviderOverloadedError(ProviderError):
    """Backend is overloaded (529, 503) or failed internally."""


class ModelNotFoundError(ProviderError):
    """Requested model not available from this backend."""


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(PokechatError):
    """Base for tool execution errors."""


class ToolValidationError(ToolError):
    """Tool input failed schema validation."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Invalid input for {tool_name}: {message}")


class UnknownToolError(ToolError):
    """The backend requested a tool that is not registered."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"unknown tool: {tool_name}")


# ─── Streaming Errors ─────────────────────────────────────────


class StreamError(PokechatError):
    """Base for stream orchestration errors."""


class InvalidTransitionError(StreamError):
    """Attempted a backwards or skipped turn state transition."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition: {current} -> {target}")


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(PokechatError):
    """Invalid configuration."""
