"""Configuration loading and validation."""

from pokechat.config.loader import load_config
from pokechat.config.schema import (
    APIConfig,
    BackendConfig,
    ChatConfig,
    HealthConfig,
    LoggingConfig,
    PokechatConfig,
    RoutingConfig,
    ToolsConfig,
)

__all__ = [
    "APIConfig",
    "BackendConfig",
    "ChatConfig",
    "HealthConfig",
    "LoggingConfig",
    "PokechatConfig",
    "RoutingConfig",
    "ToolsConfig",
    "load_config",
]
