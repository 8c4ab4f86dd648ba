"""Pydantic models for pokechat configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_SYSTEM_INSTRUCTIONS = " \n".join(
    [
        "You are PokéChat, a helpful Pokédex assistant.",
        "CRITICAL: For any Pokémon facts (types, stats, abilities, evolutions, "
        "sprites), ALWAYS call the 'pokeapi_get_pokemon' tool and ground the "
        "answer in its returned data. Do not rely on memory.",
        "For matchup advice, prefer calling 'advice_move_recommender' with the "
        "opponent types and summarize the top results.",
        "Be concise and format lists clearly.",
    ]
)


class BackendConfig(BaseModel):
    """Model backend connection and sampling settings."""

    provider: Literal["anthropic"] = "anthropic"
    api_key: str | None = None
    api_key_env: str | None = "ANTHROPIC_API_KEY"
    base_url: str | None = None
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 1024
    temperature: float = 0.3
    anthropic_version: str = "2023-06-01"


class ChatConfig(BaseModel):
    """Per-turn chat settings."""

    system_instructions: str = DEFAULT_SYSTEM_INSTRUCTIONS


class RoutingConfig(BaseModel):
    """Tool-selection heuristic.

    ``strategy = "keyword"`` nudges the backend toward a specific tool when
    the latest user message matches one of the keyword families;
    ``"auto"`` never forces a tool.
    """

    strategy: Literal["keyword", "auto"] = "keyword"
    fallback: Literal["auto", "any"] = "auto"
    comparison_tool: str = "advice_move_recommender"
    comparison_keywords: list[str] = Field(
        default_factory=lambda: [
            "vs",
            "versus",
            "against",
            "matchup",
            "match-up",
            "counter",
            "super effective",
            "super-effective",
            "weak to",
            "weakness",
            "resist",
        ]
    )
    lookup_tool: str = "pokeapi_get_pokemon"
    lookup_keywords: list[str] = Field(
        default_factory=lambda: [
            "show me",
            "tell me about",
            "stats",
            "base stat",
            "ability",
            "abilities",
            "evolve",
            "evolution",
            "sprite",
            "what type",
            "pokedex",
            "pokédex",
        ]
    )


class PokeApiConfig(BaseModel):
    """PokéAPI lookup tool settings."""

    base_url: str = "https://pokeapi.co/api/v2"
    timeout: float = 10.0
    user_agent: str = "pokechat/0.1"
    cache_capacity: int = 200
    cache_ttl: float = 300.0


class MoveRecommenderConfig(BaseModel):
    """Move recommender tool settings."""

    default_top_k: int = Field(default=5, ge=1, le=10)


class ToolsConfig(BaseModel):
    """Tool framework configuration."""

    pokeapi: PokeApiConfig = Field(default_factory=PokeApiConfig)
    move_recommender: MoveRecommenderConfig = Field(
        default_factory=MoveRecommenderConfig
    )


class APIConfig(BaseModel):
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class HealthConfig(BaseModel):
    """Dependency probe settings."""

    timeout: float = 4.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class PokechatConfig(BaseModel):
    """Top-level configuration for pokechat."""

    backend: BackendConfig = Field(default_factory=BackendConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
