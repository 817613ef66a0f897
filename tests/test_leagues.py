"""Tests for league standings, head-to-head play and the cup."""

from __future__ import annotations

import json
import random
from datetime import UTC, datetime
from pathlib import Path

import pytest

from gfl_engine.leagues import (
    DRAW,
    LeagueError,
    LeagueService,
    build_standing,
    create_cup_draw,
    cup_qualifiers,
    generate_h2h_fixtures,
    h2h_records,
    nearest_power_of_two_below,
    rank_classic_standings,
    resolve_cup_round,
    settle_fixture,
)
from gfl_engine.rules import GameRules, LeagueRules
from gfl_engine.storage import LeagueStore, TeamStore
from gfl_engine.types import (
    HeadToHeadFixture,
    League,
    LeagueStanding,
    PlayerGameweekStats,
    Team,
)

NOW = datetime(2024, 9, 1, tzinfo=UTC)


def _standing(manager: str, points: float, **extra: object) -> LeagueStanding:
    return LeagueStanding(
        team_name=f"{manager} FC", manager=manager, total_points=points, **extra  # type: ignore[arg-type]
    )


def _played(team: Team) -> list[PlayerGameweekStats]:
    return [PlayerGameweekStats(player_id=p.id, minutes=90) for p in team.all_players()]


class TestClassicRanking:
    def test_tiebreaks(self) -> None:
        entries = [
            _standing("a", 50, transfers=2, team_value=100.0),
            _standing("b", 50, transfers=1, team_value=99.0),
            _standing("c", 60),
            _standing("d", 50, transfers=1, team_value=101.0),
        ]

        ranked = rank_classic_standings(entries)

        assert [(s.manager, s.rank) for s in ranked] == [
            ("c", 1),
            ("d", 2),
            ("b", 3),
            ("a", 4),
        ]

    def test_previous_rank_is_carried(self) -> None:
        previous = rank_classic_standings([_standing("a", 10), _standing("b", 5)])

        ranked = rank_classic_standings([_standing("a", 10), _standing("b", 20)], previous)

        assert [(s.manager, s.previous_rank) for s in ranked] == [("b", 2), ("a", 1)]

    def test_average_scoring(self, team: Team) -> None:
        standing = build_standing(
            team,
            "octocat",
            gameweek=3,
            gameweek_points=40,
            total_points=100,
            transfers=2,
            scoring_type="average",
        )

        assert standing.total_points == 33.3
        assert standing.team_value == 96.5
        assert standing.team_name == "Octo FC"


class TestHeadToHead:
    def test_fixtures_pair_members_each_gameweek(self) -> None:
        fixtures = generate_h2h_fixtures(["a", "b", "c", "d"], gameweeks=2)

        assert [(f.gameweek, f.home, f.away) for f in fixtures] == [
            (1, "a", "b"),
            (1, "c", "d"),
            (2, "a", "b"),
            (2, "c", "d"),
        ]

    def test_odd_member_sits_out(self) -> None:
        fixtures = generate_h2h_fixtures(["a", "b", "c"], gameweeks=1)
        assert [(f.home, f.away) for f in fixtures] == [("a", "b")]

    def test_settle(self) -> None:
        fixture = HeadToHeadFixture(gameweek=1, home="a", away="b")

        assert settle_fixture(fixture, 60, 50).winner == "a"
        assert settle_fixture(fixture, 40, 50).winner == "b"
        drawn = settle_fixture(fixture, 50, 50)
        assert drawn.winner == DRAW
        assert drawn.played and drawn.home_score == 50
        assert not fixture.played

    def test_records_award_three_for_win_one_for_draw(self) -> None:
        base = HeadToHeadFixture(gameweek=1, home="a", away="b")
        fixtures = [
            settle_fixture(base, 60, 50),
            settle_fixture(base.model_copy(update={"gameweek": 2}), 50, 50),
            base.model_copy(update={"gameweek": 3}),
        ]

        records = h2h_records(["a", "b"], fixtures)

        assert (records["a"].points, records["a"].wins, records["a"].draws) == (4, 1, 1)
        assert (records["b"].points, records["b"].losses, records["b"].played) == (1, 1, 2)


class TestCup:
    @pytest.mark.parametrize(
        ("n", "expected"), [(0, 0), (1, 1), (2, 2), (7, 4), (8, 8), (10, 8)]
    )
    def test_nearest_power_of_two(self, n: int, expected: int) -> None:
        assert nearest_power_of_two_below(n) == expected

    def test_qualifiers_by_gameweek_points(self) -> None:
        standings = [
            _standing(name, 0, gameweek_points=points)
            for name, points in [("a", 30), ("b", 70), ("c", 50), ("d", 10), ("e", 60)]
        ]

        assert cup_qualifiers(standings) == ["b", "e", "c", "a"]

    def test_draw_uses_round_gameweek(self, rules: GameRules) -> None:
        draw = create_cup_draw(["a", "b", "c", "d"], 2, rules, random.Random(7))

        assert draw.round == 2
        assert {f.gameweek for f in draw.fixtures} == {18}
        paired = sorted(name for f in draw.fixtures for name in (f.home, f.away))
        assert paired == ["a", "b", "c", "d"]

    def test_resolve_with_tiebreaks(self) -> None:
        draw = create_cup_draw(["a", "b"], 1, GameRules(), random.Random(0))
        home, away = draw.fixtures[0].home, draw.fixtures[0].away

        outright, winners = resolve_cup_round(draw, {home: 40, away: 55}, {})
        assert winners == [away]
        assert outright.eliminated == [home]

        _, winners = resolve_cup_round(draw, {home: 50, away: 50}, {home: 900, away: 950})
        assert winners == [away]

        _, winners = resolve_cup_round(draw, {home: 50, away: 50}, {home: 900, away: 900})
        assert winners == [home]

    def test_unscored_fixtures_are_left_open(self) -> None:
        draw = create_cup_draw(["a", "b"], 1, GameRules(), random.Random(0))

        resolved, winners = resolve_cup_round(draw, {}, {})

        assert winners == []
        assert not resolved.fixtures[0].played


@pytest.fixture
def stores(tmp_path: Path) -> tuple[LeagueStore, TeamStore]:
    return LeagueStore(tmp_path / "leagues"), TeamStore(tmp_path / "teams")


@pytest.fixture
def service(stores: tuple[LeagueStore, TeamStore], rules: GameRules) -> LeagueService:
    return LeagueService(*stores, rules=rules)


class TestLeagueService:
    def test_private_league_membership(self, service: LeagueService) -> None:
        league = service.create_league("Office League", "alice", now=NOW)

        assert league.id.startswith("office-league-")
        assert league.members == ["alice"]
        assert league.settings.join_code is not None
        assert league.created == NOW.isoformat()

        with pytest.raises(LeagueError, match="Invalid join code"):
            service.join_league(league.id, "bob", "WRONG")
        with pytest.raises(LeagueError, match="Already a member"):
            service.join_league(league.id, "alice", league.settings.join_code)

        joined = service.join_league(league.id, "bob", league.settings.join_code)
        assert joined.members == ["alice", "bob"]
        assert service.leagues.load_league(league.id) == joined

    def test_unknown_league(self, service: LeagueService) -> None:
        with pytest.raises(LeagueError, match="League not found"):
            service.join_league("nope", "bob")

    def test_full_league(self, stores: tuple[LeagueStore, TeamStore]) -> None:
        service = LeagueService(
            *stores, rules=GameRules(leagues=LeagueRules(max_teams_per_league=2))
        )
        league = service.create_league("Tiny", "alice", public=True)
        service.join_league(league.id, "bob")

        with pytest.raises(LeagueError, match="League is full"):
            service.join_league(league.id, "carol")

    def test_head_to_head_fixtures_regenerate_on_join(self, service: LeagueService) -> None:
        league = service.create_league("Duel", "alice", "head-to-head", public=True)
        assert league.fixtures == []

        joined = service.join_league(league.id, "bob")

        assert joined.fixtures is not None and len(joined.fixtures) == 38
        assert (joined.fixtures[0].home, joined.fixtures[0].away) == ("alice", "bob")

    def test_update_standings_ranks_by_history(
        self, service: LeagueService, team: Team
    ) -> None:
        league = service.create_league("Office", "alice", public=True)
        service.join_league(league.id, "bob")
        for name in ("alice", "bob"):
            service.teams.save_team(name, team)
        service.teams.save_gameweek_history("alice", 1, {"points": 60})
        service.teams.save_gameweek_history("bob", 1, {"points": 70})

        first = service.update_standings(league.id, 1, now=NOW)
        assert [s.manager for s in first.standings] == ["bob", "alice"]
        assert service.user_position(league.id, "alice").rank == 2

        service.teams.save_gameweek_history("alice", 2, {"points": 80})
        service.teams.save_gameweek_history("bob", 2, {"points": 50})
        second = service.update_standings(league.id, 2, now=NOW)

        top = second.standings[0]
        assert (top.manager, top.total_points, top.gameweek_points) == ("alice", 140, 80)
        position = service.user_position(league.id, "alice")
        assert (position.rank, position.total, position.change) == (1, 2, 1)
        assert second.metadata.last_updated == NOW.isoformat()

    def test_transfer_hits_reduce_totals(self, service: LeagueService, team: Team) -> None:
        hit = team.model_copy(deep=True)
        hit.transfers.cost = 8
        service.teams.save_team("alice", hit)
        service.teams.save_gameweek_history("alice", 1, {"points": 60})

        assert service.total_points("alice", 1) == 52

    def test_user_position_without_standings(self, service: LeagueService) -> None:
        league = service.create_league("Empty", "alice", public=True)
        position = service.user_position(league.id, "alice")
        assert (position.rank, position.total, position.change) == (0, 0, 0)

    def test_head_to_head_gameweek(self, service: LeagueService, team: Team) -> None:
        league = service.create_league("Duel", "alice", "head-to-head", public=True)
        service.join_league(league.id, "bob")
        for name in ("alice", "bob"):
            service.teams.save_team(name, team)

        result = service.process_head_to_head_gameweek(
            league.id, 1, {"alice": _played(team), "bob": []}
        )

        assert result.fixtures is not None
        settled = result.fixtures[0]
        assert (settled.winner, settled.home_score, settled.away_score) == ("alice", 24, 0)
        assert not result.fixtures[1].played
        assert [(s.manager, s.total_points) for s in result.standings] == [
            ("alice", 3),
            ("bob", 0),
        ]

    def test_classic_league_rejects_head_to_head_processing(
        self, service: LeagueService
    ) -> None:
        league = service.create_league("Office", "alice", public=True)
        with pytest.raises(LeagueError):
            service.process_head_to_head_gameweek(league.id, 1, {})

    def test_cup_from_qualification_to_winner(
        self, service: LeagueService, team: Team
    ) -> None:
        service.leagues.save_league(
            League(
                id="global",
                name="Global",
                members=["a", "b", "c"],
                standings=[
                    _standing("a", 0, gameweek_points=50),
                    _standing("b", 0, gameweek_points=40),
                    _standing("c", 0, gameweek_points=30),
                ],
            )
        )
        for name in ("a", "b"):
            service.teams.save_team(name, team)

        assert service.process_cup_qualification(15) is None
        draw = service.process_cup_qualification(16, rng=random.Random(3))

        assert draw is not None
        assert sorted(draw.qualified) == ["a", "b"]
        assert draw.fixtures[0].gameweek == 17

        winners = service.process_cup_round(1, {"a": _played(team), "b": []})

        assert winners == ["a"]
        winner_doc = service.leagues.leagues_dir / "cup" / "winner.json"
        assert json.loads(winner_doc.read_text())["winner"] == "a"
        stored = service.leagues.load_cup_draw(1)
        assert stored is not None and stored.eliminated == ["b"]

    def test_user_leagues(self, service: LeagueService) -> None:
        first = service.create_league("One", "alice", public=True)
        service.create_league("Two", "bob", public=True)

        assert [league.id for league in service.user_leagues("alice")] == [first.id]
