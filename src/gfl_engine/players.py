"""Player catalog lookups backed by a cached ``players.json`` document."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import TypeAdapter, ValidationError

from .errors import GFLError
from .rules import GameRules, load_rules
from .types import POSITIONS, Player, Position, Squad

logger = logging.getLogger(__name__)

_PLAYER_LIST = TypeAdapter(list[Player])


SquadStrategy = Literal["balanced", "stars", "spread"]

# Share of the budget spent on each position.
BUDGET_SPLITS: dict[SquadStrategy, dict[Position, float]] = {
    "balanced": {"GK": 0.10, "DEF": 0.28, "MID": 0.37, "FWD": 0.25},
    "stars": {"GK": 0.09, "DEF": 0.25, "MID": 0.40, "FWD": 0.26},
    "spread": {"GK": 0.10, "DEF": 0.30, "MID": 0.35, "FWD": 0.25},
}
PREMIUM_FACTOR = 1.5
BUDGET_FACTOR = 0.8


class SquadBuildError(GFLError):
    """Raised when the catalog cannot supply a full squad."""


@dataclass(slots=True)
class RecommendedSquad:
    squad: Squad
    strategy: SquadStrategy
    budget: float

    @property
    def total_cost(self) -> float:
        return self.squad.total_value()


def _by_points(players: list[Player]) -> list[Player]:
    return sorted(players, key=lambda p: p.points, reverse=True)


def _points_per_million(player: Player) -> float:
    return player.points / player.price if player.price else 0.0


def _select_for_position(
    pool: list[Player],
    count: int,
    allocation: float,
    clubs: Counter[str],
    team_limit: int,
) -> list[Player]:
    """Pick *count* players: value picks for the first half, budget picks after.

    Slots the allocation cannot cover are filled with the cheapest players left.
    """

    if count <= 0:
        return []
    by_value = sorted(pool, key=_points_per_million, reverse=True)
    average = allocation / count
    selected: list[Player] = []
    spent = 0.0

    def eligible(p: Player) -> bool:
        return p not in selected and clubs[p.team] < team_limit

    for slot in range(count):
        cap = average * (PREMIUM_FACTOR if slot < count / 2 else BUDGET_FACTOR)
        pick = next(
            (
                p
                for p in by_value
                if eligible(p) and p.price <= cap and spent + p.price <= allocation
            ),
            None,
        )
        if pick is not None:
            selected.append(pick)
            clubs[pick.team] += 1
            spent += pick.price

    for p in sorted(by_value, key=lambda p: p.price):
        if len(selected) == count:
            break
        if eligible(p):
            selected.append(p)
            clubs[p.team] += 1

    return selected


class PlayerCatalog:
    """Read-only view over the player database.

    The document is read on first use and cached for the life of the object.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._players: list[Player] | None = None

    def load_players(self) -> list[Player]:
        if self._players is not None:
            return self._players
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            self._players = _PLAYER_LIST.validate_python(payload.get("players", []))
        except (OSError, json.JSONDecodeError, AttributeError, ValidationError) as exc:
            logger.error("Error loading players database %s: %s", self.path, exc)
            self._players = []
        return self._players

    def get_by_id(self, player_id: str) -> Player | None:
        return next((p for p in self.load_players() if p.id == player_id), None)

    def get_by_position(self, position: Position) -> list[Player]:
        return _by_points(
            [
                p
                for p in self.load_players()
                if p.position == position and p.status == "available"
            ]
        )

    def search(self, query: str) -> list[Player]:
        needle = query.lower()
        return [
            p
            for p in self.load_players()
            if needle in p.name.lower() or needle in p.team.lower()
        ]

    def get_by_team(self, team_code: str) -> list[Player]:
        return [p for p in self.load_players() if p.team == team_code]

    def get_by_price_range(
        self, min_price: float, max_price: float, position: Position | None = None
    ) -> list[Player]:
        return _by_points(
            [
                p
                for p in self.load_players()
                if min_price <= p.price <= max_price
                and (position is None or p.position == position)
                and p.status == "available"
            ]
        )

    def get_top_players(
        self, limit: int = 10, position: Position | None = None
    ) -> list[Player]:
        pool = [
            p
            for p in self.load_players()
            if p.status == "available" and (position is None or p.position == position)
        ]
        return _by_points(pool)[:limit]

    def get_budget_players(self, max_price: float = 5.0) -> list[Player]:
        return _by_points(
            [
                p
                for p in self.load_players()
                if p.price <= max_price and p.status == "available"
            ]
        )

    def recommended_squad(
        self,
        budget: float = 100.0,
        strategy: SquadStrategy = "balanced",
        rules: GameRules | None = None,
    ) -> RecommendedSquad:
        """Build a full squad by splitting *budget* across positions.

        Only available players are considered and the club limit is honoured
        across the whole squad. The squad can still cost more than *budget*
        when the catalog is short of cheap players.
        """

        rules = rules or load_rules()
        if strategy not in BUDGET_SPLITS:
            raise SquadBuildError(f"Unknown squad strategy: {strategy}")

        split = BUDGET_SPLITS[strategy]
        clubs: Counter[str] = Counter()
        squad = Squad()
        for position in POSITIONS:
            count = rules.squad.composition.for_position(position)
            pool = [
                p
                for p in self.load_players()
                if p.position == position and p.status == "available"
            ]
            picked = _select_for_position(
                pool, count, budget * split[position], clubs, rules.squad.team_limit
            )
            if len(picked) < count:
                raise SquadBuildError(
                    f"Not enough available {position} players: need {count}, "
                    f"found {len(picked)}"
                )
            squad.bucket(position).extend(picked)

        result = RecommendedSquad(squad=squad, strategy=strategy, budget=budget)
        if result.total_cost > budget:
            logger.warning(
                "Recommended %s squad costs £%.1fm, over the £%.1fm budget",
                strategy,
                result.total_cost,
                budget,
            )
        else:
            logger.info("Built %s squad for £%.1fm", strategy, result.total_cost)
        return result


__all__ = [
    "BUDGET_SPLITS",
    "PlayerCatalog",
    "RecommendedSquad",
    "SquadBuildError",
    "SquadStrategy",
]
