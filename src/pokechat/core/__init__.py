"""Core errors and shared utilities."""

from pokechat.core.errors import (
    ConfigError,
    InvalidTransitionError,
    ModelNotFoundError,
    PokechatError,
    ProviderAuthError,
    ProviderError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    StreamError,
    ToolError,
    ToolValidationError,
    UnknownToolError,
)
from pokechat.core.logging import configure_logging

__all__ = [
    "ConfigError",
    "InvalidTransitionError",
    "ModelNotFoundError",
    "PokechatError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderOverloadedError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "StreamError",
    "ToolError",
    "ToolValidationError",
    "UnknownToolError",
    "configure_logging",
]
