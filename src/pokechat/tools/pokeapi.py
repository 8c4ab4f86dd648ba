"""PokéAPI lookup tool: normalized Pokémon data by name or id.

Responses are cached per ``(pokemon, includeEvolution)`` in a
:class:`~pokechat.tools.cache.TTLCache` owned by the tool instance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated, Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from pokechat.core.errors import ToolValidationError
from pokechat.tools.base import ToolResult, parse_input
from pokechat.tools.cache import TTLCache

if TYPE_CHECKING:
    from pokechat.config.schema import PokeApiConfig

logger = logging.getLogger(__name__)

TOOL_NAME = "pokeapi_get_pokemon"

_STAT_KEYS = {
    "hp": "hp",
    "attack": "atk",
    "defense": "def",
    "special-attack": "spa",
    "special-defense": "spd",
    "speed": "spe",
}


class GetPokemonInput(BaseModel):
    """Validated input for :class:`PokeApiTool`."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    pokemon: (
        Annotated[str, StringConstraints(strict=True, min_length=1)]
        | Annotated[int, Field(strict=True, ge=0)]
    )
    include_evolution: bool = Field(default=False, alias="includeEvolution")

    @property
    def cache_key(self) -> str:
        return f"{self.pokemon}|{1 if self.include_evolution else 0}"


INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "pokemon": {
            "anyOf": [
                {"type": "string", "minLength": 1},
                {"type": "integer", "minimum": 0},
            ],
            "description": "Name (string) or id (integer) of the Pokémon",
        },
        "includeEvolution": {
            "type": "boolean",
            "description": "Include evolution chain data",
        },
    },
    "required": ["pokemon"],
    "additionalProperties": False,
}


def map_base_stats(stats: list[dict[str, Any]]) -> dict[str, int]:
    """Map PokéAPI ``stats`` entries to the short stat names (missing = 0)."""
    lookup: dict[str, int] = {}
    for s in stats:
        name = (s.get("stat") or {}).get("name")
        if name in _STAT_KEYS:
            lookup[_STAT_KEYS[name]] = s.get("base_stat", 0)
    return {short: lookup.get(short, 0) for short in _STAT_KEYS.values()}


def pick_sprite(sprites: dict[str, Any] | None) -> str | None:
    """Prefer official artwork, then the default front sprite."""
    if not sprites:
        return None
    artwork = (sprites.get("other") or {}).get("official-artwork") or {}
    return artwork.get("front_default") or sprites.get("front_default") or None


def flatten_chain(node: dict[str, Any]) -> list[dict[str, Any]]:
    """Depth-first flatten of an evolution chain into ``{name, evolvesTo}``."""
    result: list[dict[str, Any]] = []

    def visit(n: dict[str, Any]) -> None:
        children = n.get("evolves_to") or []
        result.append(
            {
                "name": n["species"]["name"],
                "evolvesTo": [c["species"]["name"] for c in children],
            }
        )
        for child in children:
            visit(child)

    visit(node)
    return result


class PokeApiTool:
    """Entity lookup tool backed by PokéAPI.

    Implements the :class:`~pokechat.tools.base.Tool` protocol.
    """

    def __init__(
        self,
        config: PokeApiConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        cache: TTLCache[dict[str, Any]] | None = None,
    ) -> None:
        from pokechat.config.schema import PokeApiConfig as _PokeApiConfig

        self._config = config or _PokeApiConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._config.base_url,
            headers={"User-Agent": self._config.user_agent},
            timeout=self._config.timeout,
        )
        self._cache: TTLCache[dict[str, Any]] = cache if cache is not None else TTLCache(
            capacity=self._config.cache_capacity,
            ttl=self._config.cache_ttl,
        )

    @property
    def name(self) -> str:
        return TOOL_NAME

    @property
    def description(self) -> str:
        return (
            "Fetch normalized Pokémon data (types, abilities, base stats, "
            "sprite) by name or id, with an optional evolution chain."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return INPUT_SCHEMA

    @property
    def cache(self) -> TTLCache[dict[str, Any]]:
        return self._cache

    async def execute(self, tool_input: Any) -> ToolResult:
        try:
            params = parse_input(GetPokemonInput, TOOL_NAME, tool_input)
            data = await self.get_pokemon(params)
        except ToolValidationError as e:
            return ToolResult.failure(str(e))
        except httpx.HTTPError as e:
            logger.warning("PokéAPI request failed: %s", e)
            return ToolResult.failure(str(e) or type(e).__name__)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Unexpected PokéAPI payload: %s", e)
            return ToolResult.failure(f"Unexpected PokéAPI response: {e}")
        return ToolResult.success(data)

    async def get_pokemon(self, params: GetPokemonInput) -> dict[str, Any]:
        """Fetch and normalize one Pokémon, consulting the cache first.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response.
        """
        key = params.cache_key
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        id_or_name = str(params.pokemon).lower()
        p = await self._fetch_json(f"/pokemon/{quote(id_or_name, safe='')}")

        normalized: dict[str, Any] = {
            "id": p["id"],
            "name": p["name"],
            "types": [
                t["type"]["name"] for t in p.get("types") or [] if t.get("type")
            ],
            "abilities": [
                a["ability"]["name"]
                for a in p.get("abilities") or []
                if a.get("ability")
            ],
            "baseStats": map_base_stats(p.get("stats") or []),
            "sprite": pick_sprite(p.get("sprites")),
        }

        if params.include_evolution:
            chain = await self._evolution_chain(p)
            if chain is not None:
                normalized["evolutionChain"] = chain

        self._cache.set(key, normalized)
        return normalized

    async def _evolution_chain(
        self, pokemon: dict[str, Any]
    ) -> list[dict[str, Any]] | None:
        """Best-effort evolution chain; any failure yields None."""
        species_url = (pokemon.get("species") or {}).get("url")
        if not species_url:
            return None
        try:
            species = await self._fetch_json(species_url)
            chain_url = (species.get("evolution_chain") or {}).get("url")
            if not chain_url:
                return None
            data = await self._fetch_json(chain_url)
            return flatten_chain(data["chain"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.info("Evolution chain unavailable for %s: %s", pokemon.get("name"), e)
            return None

    async def _fetch_json(self, url: str) -> Any:
        resp = await self._client.get(url)
        resp.raise_for_status()
        return resp.json()

    async def ping(self) -> None:
        """Fetch a known entry to verify reachability.

        Raises:
            httpx.HTTPError: If PokéAPI is unreachable or returns an error.
        """
        resp = await self._client.get("/pokemon/1")
        resp.raise_for_status()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
