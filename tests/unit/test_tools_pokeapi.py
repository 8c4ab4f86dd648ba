"""Tests for the PokéAPI lookup tool (httpx.MockTransport)."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from pokechat.config.schema import PokeApiConfig
from pokechat.tools.cache import TTLCache
from pokechat.tools.pokeapi import (
    TOOL_NAME,
    GetPokemonInput,
    PokeApiTool,
    flatten_chain,
    map_base_stats,
    pick_sprite,
)

BASE = "https://pokeapi.test/api/v2"

PIKACHU: dict[str, Any] = {
    "id": 25,
    "name": "pikachu",
    "types": [{"slot": 1, "type": {"name": "electric"}}],
    "abilities": [
        {"ability": {"name": "static"}},
        {"ability": {"name": "lightning-rod"}},
    ],
    "stats": [
        {"base_stat": 35, "stat": {"name": "hp"}},
        {"base_stat": 55, "stat": {"name": "attack"}},
        {"base_stat": 40, "stat": {"name": "defense"}},
        {"base_stat": 50, "stat": {"name": "special-attack"}},
        {"base_stat": 50, "stat": {"name": "special-defense"}},
        {"base_stat": 90, "stat": {"name": "speed"}},
    ],
    "sprites": {
        "other": {"official-artwork": {"front_default": "https://img/pika.png"}},
        "front_default": "https://img/fallback.png",
    },
}

BULBASAUR: dict[str, Any] = {
    "id": 1,
    "name": "bulbasaur",
    "types": [{"type": {"name": "grass"}}, {"type": {"name": "poison"}}],
    "abilities": [{"ability": {"name": "overgrow"}}],
    "stats": [],
    "sprites": {"front_default": None},
    "species": {"url": f"{BASE}/pokemon-species/1/"},
}

SPECIES = {"evolution_chain": {"url": f"{BASE}/evolution-chain/1/"}}

CHAIN = {
    "chain": {
        "species": {"name": "bulbasaur"},
        "evolves_to": [
            {
                "species": {"name": "ivysaur"},
                "evolves_to": [{"species": {"name": "venusaur"}, "evolves_to": []}],
            }
        ],
    }
}


class Router:
    """Maps request paths to canned responses and records hits."""

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path not in self.routes:
            return httpx.Response(404, json={"detail": "Not found"})
        route = self.routes[path]
        if isinstance(route, Exception):
            raise route
        return httpx.Response(200, json=route)


def _tool(router: Router, **kwargs: Any) -> PokeApiTool:
    client = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(router))
    return PokeApiTool(PokeApiConfig(base_url=BASE), client=client, **kwargs)


# ─── Helpers ──────────────────────────────────────────────────


class TestNormalizers:
    def test_base_stats(self) -> None:
        assert map_base_stats(PIKACHU["stats"]) == {
            "hp": 35,
            "atk": 55,
            "def": 40,
            "spa": 50,
            "spd": 50,
            "spe": 90,
        }

    def test_missing_stats_are_zero(self) -> None:
        assert map_base_stats([]) == dict.fromkeys(
            ["hp", "atk", "def", "spa", "spd", "spe"], 0
        )

    def test_sprite_prefers_artwork(self) -> None:
        assert pick_sprite(PIKACHU["sprites"]) == "https://img/pika.png"

    def test_sprite_fallback_and_none(self) -> None:
        assert pick_sprite({"front_default": "https://img/f.png"}) == "https://img/f.png"
        assert pick_sprite({}) is None
        assert pick_sprite(None) is None

    def test_flatten_chain_depth_first(self) -> None:
        assert flatten_chain(CHAIN["chain"]) == [
            {"name": "bulbasaur", "evolvesTo": ["ivysaur"]},
            {"name": "ivysaur", "evolvesTo": ["venusaur"]},
            {"name": "venusaur", "evolvesTo": []},
        ]


# ─── Input validation ─────────────────────────────────────────


class TestInput:
    def test_name_and_id(self) -> None:
        assert GetPokemonInput.model_validate({"pokemon": "pikachu"}).pokemon == "pikachu"
        assert GetPokemonInput.model_validate({"pokemon": 25}).pokemon == 25

    def test_cache_key(self) -> None:
        params = GetPokemonInput.model_validate(
            {"pokemon": "pikachu", "includeEvolution": True}
        )
        assert params.cache_key == "pikachu|1"

    @pytest.mark.parametrize(
        "payload",
        [{}, {"pokemon": ""}, {"pokemon": -1}, {"pokemon": "x", "extra": 1}],
    )
    async def test_invalid_input_is_failure(self, payload: dict[str, Any]) -> None:
        router = Router({})
        result = await _tool(router).execute(payload)
        assert result.ok is False
        assert TOOL_NAME in (result.error or "")
        assert router.requests == []


# ─── Fetching ─────────────────────────────────────────────────


class TestExecute:
    async def test_normalizes_core_fields(self) -> None:
        router = Router({"/api/v2/pokemon/pikachu": PIKACHU})
        result = await _tool(router).execute({"pokemon": "Pikachu"})
        assert result.ok is True
        assert result.data == {
            "id": 25,
            "name": "pikachu",
            "types": ["electric"],
            "abilities": ["static", "lightning-rod"],
            "baseStats": {"hp": 35, "atk": 55, "def": 40, "spa": 50, "spd": 50, "spe": 90},
            "sprite": "https://img/pika.png",
        }
        assert len(router.requests) == 1

    async def test_default_client_from_config(self) -> None:
        tool = PokeApiTool(PokeApiConfig(base_url=BASE, user_agent="pokechat-test"))
        try:
            assert tool._client.headers["user-agent"] == "pokechat-test"
            assert str(tool._client.base_url).rstrip("/") == BASE
        finally:
            await tool.aclose()

    async def test_evolution_chain_and_cache(self) -> None:
        router = Router(
            {
                "/api/v2/pokemon/bulbasaur": BULBASAUR,
                "/api/v2/pokemon-species/1/": SPECIES,
                "/api/v2/evolution-chain/1/": CHAIN,
            }
        )
        tool = _tool(router)
        first = await tool.execute({"pokemon": "bulbasaur", "includeEvolution": True})
        names = [e["name"] for e in first.data["evolutionChain"]]
        assert names == ["bulbasaur", "ivysaur", "venusaur"]

        second = await tool.execute({"pokemon": "bulbasaur", "includeEvolution": True})
        assert second.data == first.data
        assert len(router.requests) == 3

    async def test_evolution_flag_is_part_of_cache_key(self) -> None:
        router = Router({"/api/v2/pokemon/pikachu": PIKACHU})
        tool = _tool(router)
        await tool.execute({"pokemon": "pikachu"})
        await tool.execute({"pokemon": "pikachu", "includeEvolution": True})
        assert len(router.requests) == 2

    async def test_evolution_failure_is_ignored(self) -> None:
        router = Router(
            {
                "/api/v2/pokemon/bulbasaur": BULBASAUR,
                "/api/v2/pokemon-species/1/": httpx.ConnectError("network fail"),
            }
        )
        result = await _tool(router).execute(
            {"pokemon": "bulbasaur", "includeEvolution": True}
        )
        assert result.ok is True
        assert result.data["name"] == "bulbasaur"
        assert "evolutionChain" not in result.data

    async def test_http_404_is_failure(self) -> None:
        result = await _tool(Router({})).execute({"pokemon": "missingno"})
        assert result.ok is False
        assert result.error

    async def test_transport_error_is_failure(self) -> None:
        router = Router({"/api/v2/pokemon/pikachu": httpx.ConnectError("down")})
        result = await _tool(router).execute({"pokemon": "pikachu"})
        assert result.ok is False
        assert "down" in (result.error or "")

    async def test_injected_cache_with_clock(self) -> None:
        now = [0.0]
        cache: TTLCache[dict[str, Any]] = TTLCache(capacity=1, ttl=60, clock=lambda: now[0])
        router = Router({"/api/v2/pokemon/pikachu": PIKACHU})
        tool = _tool(router, cache=cache)
        assert tool.cache is cache

        await tool.execute({"pokemon": "pikachu"})
        await tool.execute({"pokemon": "pikachu"})
        assert len(router.requests) == 1

        now[0] = 61
        await tool.execute({"pokemon": "pikachu"})
        assert len(router.requests) == 2


class TestPing:
    async def test_ping_ok(self) -> None:
        router = Router({"/api/v2/pokemon/1": BULBASAUR})
        await _tool(router).ping()
        assert router.requests[0].url.path == "/api/v2/pokemon/1"

    async def test_ping_raises_on_error(self) -> None:
        with pytest.raises(httpx.HTTPStatusError):
            await _tool(Router({})).ping()
