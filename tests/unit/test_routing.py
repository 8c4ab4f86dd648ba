"""Tests for tool-selection strategies."""

from __future__ import annotations

import pytest

from pokechat.config.schema import RoutingConfig
from pokechat.routing import (
    AutoToolRouter,
    KeywordToolRouter,
    ToolChoice,
    ToolChoiceStrategy,
    build_router,
    latest_user_message,
)


@pytest.fixture
def router() -> KeywordToolRouter:
    return KeywordToolRouter.from_config(RoutingConfig())


class TestToolChoice:
    def test_auto_param(self):
        assert ToolChoice.auto().to_param() == {"type": "auto"}

    def test_any_param(self):
        assert ToolChoice("any").to_param() == {"type": "any"}

    def test_force_param(self):
        assert ToolChoice.force("lookup").to_param() == {"type": "tool", "name": "lookup"}

    def test_name_required_for_tool(self):
        with pytest.raises(ValueError, match=r"name"):
            ToolChoice("tool")

    def test_name_rejected_for_auto(self):
        with pytest.raises(ValueError, match=r"name"):
            ToolChoice("auto", "lookup")


class TestKeywordRouter:
    def test_lookup_vocabulary(self, router, make_history):
        choice = router.choose_tool(make_history(("user", "show me pikachu")))
        assert choice == ToolChoice.force("pokeapi_get_pokemon")

    def test_comparison_vocabulary(self, router, make_history):
        choice = router.choose_tool(make_history(("user", "Pikachu vs Gyarados?")))
        assert choice == ToolChoice.force("advice_move_recommender")

    def test_comparison_wins_over_lookup(self, router, make_history):
        history = make_history(("user", "show me what beats water types, matchup wise"))
        assert router.choose_tool(history).name == "advice_move_recommender"

    def test_case_insensitive(self, router, make_history):
        history = make_history(("user", "TELL ME ABOUT eevee"))
        assert router.choose_tool(history).name == "pokeapi_get_pokemon"

    def test_word_boundaries(self, router, make_history):
        # "vs" inside another word must not match
        history = make_history(("user", "my cvs receipt"))
        assert router.choose_tool(history) == ToolChoice.auto()

    def test_fallback_auto(self, router, make_history):
        assert router.choose_tool(make_history(("user", "hello"))) == ToolChoice.auto()

    def test_fallback_any(self, make_history):
        router = KeywordToolRouter.from_config(RoutingConfig(fallback="any"))
        assert router.choose_tool(make_history(("user", "hello"))) == ToolChoice("any")

    def test_uses_latest_user_message(self, router, make_history):
        history = make_history(
            ("user", "show me pikachu"),
            ("assistant", "Here it is"),
            ("user", "what about against water?"),
        )
        assert router.choose_tool(history).name == "advice_move_recommender"

    def test_no_user_message(self, router, make_history):
        history = make_history(("system", "show me everything"))
        assert router.choose_tool(history) == ToolChoice.auto()

    def test_custom_keywords(self, make_history):
        router = KeywordToolRouter(
            comparison_tool="cmp",
            comparison_keywords=["duel"],
            lookup_tool="look",
            lookup_keywords=[" ", "find"],
        )
        assert router.choose_tool(make_history(("user", "a duel"))).name == "cmp"
        assert router.choose_tool(make_history(("user", "find it"))).name == "look"


class TestStrategies:
    def test_auto_router(self, make_history):
        router = AutoToolRouter()
        assert router.choose_tool(make_history(("user", "show me pikachu"))) == ToolChoice.auto()

    def test_protocol(self):
        assert isinstance(AutoToolRouter(), ToolChoiceStrategy)
        assert isinstance(KeywordToolRouter.from_config(RoutingConfig()), ToolChoiceStrategy)

    def test_build_router(self):
        assert isinstance(build_router(RoutingConfig()), KeywordToolRouter)
        assert isinstance(build_router(RoutingConfig(strategy="auto")), AutoToolRouter)

    def test_latest_user_message(self, make_history):
        history = make_history(("user", "a"), ("assistant", "b"), ("user", "c"))
        msg = latest_user_message(history)
        assert msg is not None
        assert msg.content == "c"
        assert latest_user_message([]) is None
