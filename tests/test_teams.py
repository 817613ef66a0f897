"""Tests for building a new team around a squad."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from gfl_engine.errors import GFLError
from gfl_engine.rules import GameRules
from gfl_engine.teams import new_team, pick_lineup
from gfl_engine.types import Player, Squad
from gfl_engine.validation import validate_team

NOW = datetime(2024, 8, 1, tzinfo=UTC)


def _squad(players: list[Player]) -> Squad:
    squad = Squad()
    for p in players:
        squad.bucket(p.position).append(p)
    return squad


def test_lineup_starts_most_expensive_players_when_points_are_level(
    squad_players: list[Player],
) -> None:
    starting, bench = pick_lineup(_squad(squad_players), "4-4-2")

    assert starting == [
        "gk1",
        "def1", "def2", "def3", "def4",
        "mid1", "mid2", "mid3", "mid4",
        "fwd1", "fwd2",
    ]
    assert bench == ["gk2", "def5", "mid5", "fwd3"]


def test_lineup_prefers_points(squad_players: list[Player]) -> None:
    players = [
        p.model_copy(update={"points": 90}) if p.id == "fwd3" else p for p in squad_players
    ]

    starting, bench = pick_lineup(_squad(players), "4-3-3")

    assert starting[-3:] == ["fwd3", "fwd1", "fwd2"]
    assert bench == ["gk2", "def5", "mid4", "mid5"]


def test_lineup_rejects_malformed_formation(squad_players: list[Player]) -> None:
    with pytest.raises(GFLError, match="Invalid formation"):
        pick_lineup(_squad(squad_players), "four-four-two")


def test_new_team_is_valid_and_stamped(
    squad_players: list[Player], rules: GameRules
) -> None:
    team = new_team("octocat", "Octo FC", _squad(squad_players), rules=rules, now=NOW)

    assert validate_team(team, rules).valid
    assert (team.captain, team.vice_captain) == ("mid1", "fwd1")
    assert team.budget.total == 100.0
    assert team.budget.spent == 96.5
    assert team.budget.remaining == 3.5
    assert team.transfers.free == 1
    assert team.chips.used_count() == 0
    assert team.metadata.created == NOW.isoformat()
    assert team.manager.joined == NOW.isoformat()


def test_new_team_copies_the_squad(squad_players: list[Player], rules: GameRules) -> None:
    squad = _squad(squad_players)

    team = new_team("octocat", "Octo FC", squad, budget=98.0, rules=rules, now=NOW)
    team.squad.forwards.clear()

    assert len(squad.forwards) == 3
    assert team.budget.remaining == 1.5
