"""Shared fixtures: a legal 2/5/5/3 squad and the default ruleset."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from gfl_engine import rules as rules_module
from gfl_engine.rules import GameRules, default_rules
from gfl_engine.types import Budget, Manager, Player, Position, Squad, Team

PlayerFactory = Callable[..., Player]

# (id, position, club, price); the XI is listed first, bench last.
SQUAD_ROWS: list[tuple[str, Position, str, float]] = [
    ("gk1", "GK", "ARS", 5.0),
    ("def1", "DEF", "LIV", 6.0),
    ("def2", "DEF", "MCI", 5.5),
    ("def3", "DEF", "TOT", 5.0),
    ("def4", "DEF", "NEW", 4.5),
    ("mid1", "MID", "ARS", 12.0),
    ("mid2", "MID", "CHE", 8.0),
    ("mid3", "MID", "LIV", 7.5),
    ("mid4", "MID", "MCI", 6.5),
    ("fwd1", "FWD", "TOT", 9.0),
    ("fwd2", "FWD", "NEW", 7.5),
    ("gk2", "GK", "CHE", 4.5),
    ("def5", "DEF", "BRE", 4.5),
    ("mid5", "MID", "AVL", 5.0),
    ("fwd3", "FWD", "BRE", 6.0),
]
STARTING_XI = [row[0] for row in SQUAD_ROWS[:11]]
BENCH = [row[0] for row in SQUAD_ROWS[11:]]


def player(
    player_id: str,
    position: Position = "MID",
    club: str = "ARS",
    price: float = 5.0,
    **extra: object,
) -> Player:
    return Player(
        id=player_id,
        name=player_id.upper(),
        team=club,
        position=position,
        price=price,
        **extra,
    )


def build_team(players: list[Player], **overrides: object) -> Team:
    squad = Squad()
    for p in players:
        squad.bucket(p.position).append(p)
    spent = round(sum(p.price for p in players), 1)
    fields: dict[str, object] = {
        "manager": Manager(github="octocat", team_name="Octo FC"),
        "squad": squad,
        "formation": "4-4-2",
        "starting_xi": list(STARTING_XI),
        "bench": list(BENCH),
        "captain": "mid1",
        "vice_captain": "fwd1",
        "budget": Budget(total=100.0, spent=spent, remaining=round(100.0 - spent, 1)),
    }
    fields.update(overrides)
    return Team(**fields)  # type: ignore[arg-type]


@pytest.fixture(autouse=True)
def _isolate_rules_cache() -> Iterator[None]:
    rules_module.clear_cache()
    yield
    rules_module.clear_cache()


@pytest.fixture
def rules() -> GameRules:
    return default_rules()


@pytest.fixture
def make_player() -> PlayerFactory:
    return player


@pytest.fixture
def squad_players() -> list[Player]:
    return [player(pid, pos, club, price) for pid, pos, club, price in SQUAD_ROWS]


@pytest.fixture
def team(squad_players: list[Player]) -> Team:
    return build_team(squad_players)


@pytest.fixture
def make_team(squad_players: list[Player]) -> Callable[..., Team]:
    def _make(players: list[Player] | None = None, **overrides: object) -> Team:
        return build_team(players if players is not None else squad_players, **overrides)

    return _make
