"""Move recommender: best attacking types against a defending type combo."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from pokechat.core.errors import ToolValidationError
from pokechat.tools.base import ToolResult, parse_input

if TYPE_CHECKING:
    from pokechat.config.schema import MoveRecommenderConfig

TOOL_NAME = "advice_move_recommender"

# Attacking type -> defending type -> multiplier. Omitted pairs are 1x.
TYPE_CHART: dict[str, dict[str, float]] = {
    "normal": {"rock": 0.5, "ghost": 0.0, "steel": 0.5},
    "fire": {
        "fire": 0.5, "water": 0.5, "grass": 2.0, "ice": 2.0,
        "bug": 2.0, "rock": 0.5, "dragon": 0.5, "steel": 2.0,
    },
    "water": {
        "fire": 2.0, "water": 0.5, "grass": 0.5, "ground": 2.0,
        "rock": 2.0, "dragon": 0.5,
    },
    "electric": {
        "water": 2.0, "electric": 0.5, "grass": 0.5, "ground": 0.0,
        "flying": 2.0, "dragon": 0.5,
    },
    "grass": {
        "fire": 0.5, "water": 2.0, "grass": 0.5, "poison": 0.5, "ground": 2.0,
        "flying": 0.5, "bug": 0.5, "rock": 2.0, "dragon": 0.5, "steel": 0.5,
    },
    "ice": {
        "fire": 0.5, "water": 0.5, "grass": 2.0, "ice": 0.5, "ground": 2.0,
        "flying": 2.0, "dragon": 2.0, "steel": 0.5,
    },
    "fighting": {
        "normal": 2.0, "ice": 2.0, "poison": 0.5, "flying": 0.5, "psychic": 0.5,
        "bug": 0.5, "rock": 2.0, "ghost": 0.0, "dark": 2.0, "steel": 2.0,
        "fairy": 0.5,
    },
    "poison": {
        "grass": 2.0, "poison": 0.5, "ground": 0.5, "rock": 0.5, "ghost": 0.5,
        "steel": 0.0, "fairy": 2.0,
    },
    "ground": {
        "fire": 2.0, "electric": 2.0, "grass": 0.5, "poison": 2.0,
        "flying": 0.0, "bug": 0.5, "rock": 2.0, "steel": 2.0,
    },
    "flying": {
        "electric": 0.5, "grass": 2.0, "fighting": 2.0, "bug": 2.0,
        "rock": 0.5, "steel": 0.5,
    },
    "psychic": {
        "fighting": 2.0, "poison": 2.0, "psychic": 0.5, "dark": 0.0,
        "steel": 0.5,
    },
    "bug": {
        "fire": 0.5, "grass": 2.0, "fighting": 0.5, "poison": 0.5,
        "flying": 0.5, "psychic": 2.0, "ghost": 0.5, "dark": 2.0,
        "steel": 0.5, "fairy": 0.5,
    },
    "rock": {
        "fire": 2.0, "ice": 2.0, "fighting": 0.5, "ground": 0.5,
        "flying": 2.0, "bug": 2.0, "steel": 0.5,
    },
    "ghost": {"normal": 0.0, "psychic": 2.0, "ghost": 2.0, "dark": 0.5},
    "dragon": {"dragon": 2.0, "steel": 0.5, "fairy": 0.0},
    "dark": {
        "fighting": 0.5, "psychic": 2.0, "ghost": 2.0, "dark": 0.5,
        "fairy": 0.5,
    },
    "steel": {
        "fire": 0.5, "water": 0.5, "electric": 0.5, "ice": 2.0, "rock": 2.0,
        "steel": 0.5, "fairy": 2.0,
    },
    "fairy": {
        "fire": 0.5, "fighting": 2.0, "poison": 0.5, "dragon": 2.0,
        "dark": 2.0, "steel": 0.5,
    },
}

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class MoveRecommenderInput(BaseModel):
    """Validated input for :class:`MoveRecommenderTool`."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    opponent_types: list[NonEmptyStr] = Field(alias="opponentTypes", min_length=1)
    top_k: int | None = Field(default=None, alias="topK", ge=1, le=10)


INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "opponentTypes": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "minItems": 1,
            "description": "Defending types, e.g. ['fire', 'flying']",
        },
        "topK": {
            "type": "integer",
            "minimum": 1,
            "maximum": 10,
            "description": "Top-N attacking types to return",
        },
    },
    "required": ["opponentTypes"],
    "additionalProperties": False,
}


def effectiveness(attacking: str, defending: list[str]) -> float:
    """Combined multiplier of *attacking* against all *defending* types."""
    row = TYPE_CHART[attacking]
    multiplier = 1.0
    for d in defending:
        multiplier *= row.get(d, 1.0)
    return multiplier


def _rationale(attacking: str, multiplier: float, defending: list[str]) -> str:
    against = "/".join(defending)
    if multiplier > 1:
        return f"{attacking} is super-effective ({multiplier:g}x) against {against}"
    if multiplier < 1:
        return f"{attacking} is not very effective ({multiplier:g}x) against {against}"
    return f"{attacking} is neutral (1x) against {against}"


def recommend(opponent_types: list[str], top_k: int) -> list[dict[str, Any]]:
    """Rank attacking types against *opponent_types*, dropping immunities.

    Unknown defending types are treated as neutral.
    """
    defending = [t.lower() for t in opponent_types]
    known = [t for t in defending if t in TYPE_CHART]
    scored = [
        (attacking, effectiveness(attacking, known)) for attacking in TYPE_CHART
    ]
    ranked = sorted(
        (pair for pair in scored if pair[1] > 0),
        key=lambda pair: pair[1],
        reverse=True,
    )
    return [
        {
            "type": attacking,
            "multiplier": multiplier,
            "rationale": _rationale(attacking, multiplier, defending),
        }
        for attacking, multiplier in ranked[:top_k]
    ]


class MoveRecommenderTool:
    """Comparison tool: recommends attacking types.

    Implements the :class:`~pokechat.tools.base.Tool` protocol.
    """

    def __init__(self, config: MoveRecommenderConfig | None = None) -> None:
        self._default_top_k = config.default_top_k if config is not None else 5

    @property
    def name(self) -> str:
        return TOOL_NAME

    @property
    def description(self) -> str:
        return (
            "Recommend the best attacking types vs the opponent's defending "
            "types, ranked by damage multiplier."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return INPUT_SCHEMA

    async def execute(self, tool_input: Any) -> ToolResult:
        try:
            params = parse_input(MoveRecommenderInput, TOOL_NAME, tool_input)
        except ToolValidationError as e:
            return ToolResult.failure(str(e))
        top_k = params.top_k or self._default_top_k
        return ToolResult.success(recommend(params.opponent_types, top_k))
