"""Tests for the player catalog."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path

import pytest

from gfl_engine.players import PlayerCatalog, SquadBuildError
from gfl_engine.rules import GameRules, PositionValues, SquadRules

SHIPPED = Path(__file__).resolve().parents[1] / "data" / "players" / "players.json"


@pytest.fixture
def catalog(tmp_path: Path) -> PlayerCatalog:
    players = [
        {"id": "a", "name": "Alpha One", "team": "ARS", "position": "MID", "price": 9.0, "points": 40},
        {"id": "b", "name": "Bravo Two", "team": "LIV", "position": "MID", "price": 6.0, "points": 55},
        {"id": "c", "name": "Charlie", "team": "ARS", "position": "FWD", "price": 4.5, "points": 12},
        {"id": "d", "name": "Delta", "team": "CHE", "position": "MID", "price": 5.0, "points": 70, "status": "injured"},
    ]
    path = tmp_path / "players.json"
    path.write_text(json.dumps({"players": players}), encoding="utf-8")
    return PlayerCatalog(path)


def test_lookup_by_id(catalog: PlayerCatalog) -> None:
    player = catalog.get_by_id("b")
    assert player is not None and player.name == "Bravo Two"
    assert catalog.get_by_id("zz") is None


def test_position_lists_available_players_by_points(catalog: PlayerCatalog) -> None:
    assert [p.id for p in catalog.get_by_position("MID")] == ["b", "a"]


def test_search_matches_name_or_club(catalog: PlayerCatalog) -> None:
    assert [p.id for p in catalog.search("ars")] == ["a", "c"]
    assert [p.id for p in catalog.search("bravo")] == ["b"]


def test_price_filters(catalog: PlayerCatalog) -> None:
    assert [p.id for p in catalog.get_by_price_range(5.0, 9.0)] == ["b", "a"]
    assert [p.id for p in catalog.get_by_price_range(4.0, 9.0, "FWD")] == ["c"]
    assert [p.id for p in catalog.get_budget_players()] == ["c"]


def test_top_players_respects_limit(catalog: PlayerCatalog) -> None:
    assert [p.id for p in catalog.get_top_players(limit=2)] == ["b", "a"]
    assert [p.id for p in catalog.get_by_team("ARS")] == ["a", "c"]


def test_players_are_cached(catalog: PlayerCatalog) -> None:
    first = catalog.load_players()
    catalog.path.write_text(json.dumps({"players": []}), encoding="utf-8")
    assert catalog.load_players() is first


def test_unreadable_catalog_is_empty(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "players.json"
    path.write_text("not json", encoding="utf-8")

    assert PlayerCatalog(path).load_players() == []
    assert PlayerCatalog(tmp_path / "missing.json").load_players() == []
    assert "Error loading players database" in caplog.text


def test_shipped_catalog_loads() -> None:
    catalog = PlayerCatalog(SHIPPED)
    assert len(catalog.load_players()) > 15
    assert all(p.status == "available" for p in catalog.get_by_position("FWD"))


def _mids_only(team_limit: int = 3) -> GameRules:
    return GameRules(
        squad=SquadRules(
            composition=PositionValues(GK=0, DEF=0, MID=2, FWD=0), team_limit=team_limit
        )
    )


@pytest.fixture
def value_catalog(tmp_path: Path) -> PlayerCatalog:
    rows = [
        ("a", "ARS", 10.0, 50),
        ("b", "LIV", 5.0, 40),
        ("c", "CHE", 4.0, 12),
        ("d", "MCI", 12.0, 120),
        ("e", "MCI", 14.0, 130),
        ("f", "TOT", 15.0, 140),
    ]
    players = [
        {"id": pid, "name": pid.upper(), "team": club, "position": "MID", "price": price, "points": pts}
        for pid, club, price, pts in rows
    ]
    path = tmp_path / "players.json"
    path.write_text(json.dumps({"players": players}), encoding="utf-8")
    return PlayerCatalog(path)


class TestRecommendedSquad:
    def test_shipped_catalog_builds_a_legal_squad(self, rules: GameRules) -> None:
        result = PlayerCatalog(SHIPPED).recommended_squad(rules=rules)

        players = result.squad.all_players()
        assert result.squad.composition() == {"GK": 2, "DEF": 5, "MID": 5, "FWD": 3}
        assert result.total_cost == 94.0
        assert result.total_cost <= result.budget
        assert max(Counter(p.team for p in players).values()) <= rules.squad.team_limit
        assert all(p.status == "available" for p in players)
        assert "mid-saka" not in {p.id for p in players}

    def test_value_picks_then_budget_picks(self, value_catalog: PlayerCatalog) -> None:
        result = value_catalog.recommended_squad(rules=_mids_only())

        # f has more points than e but is over the budget-slot price cap.
        assert [p.id for p in result.squad.midfielders] == ["d", "e"]

    def test_club_limit_applies(self, value_catalog: PlayerCatalog) -> None:
        result = value_catalog.recommended_squad(rules=_mids_only(team_limit=1))
        assert [p.id for p in result.squad.midfielders] == ["d", "b"]

    def test_cheapest_players_fill_a_tight_budget(self, value_catalog: PlayerCatalog) -> None:
        result = value_catalog.recommended_squad(10.0, rules=_mids_only())

        assert [p.id for p in result.squad.midfielders] == ["c", "b"]
        assert result.total_cost == 9.0

    def test_short_catalog_is_an_error(self, catalog: PlayerCatalog, rules: GameRules) -> None:
        with pytest.raises(SquadBuildError, match="Not enough available GK players"):
            catalog.recommended_squad(rules=rules)

    def test_unknown_strategy(self, catalog: PlayerCatalog, rules: GameRules) -> None:
        with pytest.raises(SquadBuildError, match="Unknown squad strategy"):
            catalog.recommended_squad(strategy="random", rules=rules)  # type: ignore[arg-type]
