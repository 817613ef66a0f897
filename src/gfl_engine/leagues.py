"""League standings, head-to-head fixtures and the knockout cup."""

from __future__ import annotations

import logging
import random
import re
import secrets
import string
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from .errors import GFLError
from .rules import GameRules, load_rules
from .scoring import calculate_team_gameweek_points
from .storage import LeagueStore, TeamStore
from .types import (
    CupDraw,
    HeadToHeadFixture,
    League,
    LeagueSettings,
    LeagueStanding,
    LeagueType,
    PlayerGameweekStats,
    Team,
)

logger = logging.getLogger(__name__)

DRAW = "draw"
WIN_POINTS = 3
DRAW_POINTS = 1


class LeagueError(GFLError):
    """Raised when a league membership change is not allowed."""


# =============================================================================
# Pure helpers
# =============================================================================


def rank_classic_standings(
    entries: Iterable[LeagueStanding],
    previous: Sequence[LeagueStanding] = (),
) -> list[LeagueStanding]:
    """Order by total points, then fewest transfers, then team value, and rank 1..n."""

    previous_ranks = {standing.manager: standing.rank for standing in previous}
    ordered = sorted(
        entries, key=lambda s: (-s.total_points, s.transfers, -s.team_value)
    )
    return [
        standing.model_copy(
            update={
                "rank": index,
                "previous_rank": previous_ranks.get(standing.manager, 0),
            }
        )
        for index, standing in enumerate(ordered, start=1)
    ]


def team_value(team: Team) -> float:
    return team.squad.total_value()


def build_standing(
    team: Team,
    manager: str,
    *,
    gameweek: int,
    gameweek_points: int,
    total_points: float,
    transfers: int,
    scoring_type: str = "points",
) -> LeagueStanding:
    if scoring_type == "average" and gameweek > 0:
        total_points = round(total_points / gameweek, 1)
    return LeagueStanding(
        team_name=team.manager.team_name,
        manager=manager,
        gameweek_points=gameweek_points,
        total_points=total_points,
        gameweeks_played=gameweek,
        transfers=transfers,
        chips_used=team.chips.used_count(),
        team_value=team_value(team),
    )


def generate_h2h_fixtures(
    members: Sequence[str], gameweeks: int = 38
) -> list[HeadToHeadFixture]:
    """Pair members in order, two at a time, every gameweek; an odd member sits out."""

    return [
        HeadToHeadFixture(gameweek=gameweek, home=members[i], away=members[i + 1])
        for gameweek in range(1, gameweeks + 1)
        for i in range(0, len(members) - 1, 2)
    ]


def settle_fixture(
    fixture: HeadToHeadFixture, home_points: int, away_points: int
) -> HeadToHeadFixture:
    if home_points > away_points:
        winner = fixture.home
    elif away_points > home_points:
        winner = fixture.away
    else:
        winner = DRAW
    return fixture.model_copy(
        update={
            "home_score": home_points,
            "away_score": away_points,
            "winner": winner,
            "played": True,
        }
    )


@dataclass(slots=True)
class H2HRecord:
    wins: int = 0
    draws: int = 0
    losses: int = 0
    points: int = 0

    @property
    def played(self) -> int:
        return self.wins + self.draws + self.losses


def h2h_records(
    members: Sequence[str], fixtures: Iterable[HeadToHeadFixture]
) -> dict[str, H2HRecord]:
    records = {member: H2HRecord() for member in members}
    for fixture in fixtures:
        if not fixture.played:
            continue
        home = records.setdefault(fixture.home, H2HRecord())
        away = records.setdefault(fixture.away, H2HRecord())
        if fixture.winner == fixture.home:
            home.wins += 1
            home.points += WIN_POINTS
            away.losses += 1
        elif fixture.winner == fixture.away:
            away.wins += 1
            away.points += WIN_POINTS
            home.losses += 1
        else:
            home.draws += 1
            away.draws += 1
            home.points += DRAW_POINTS
            away.points += DRAW_POINTS
    return records


def h2h_standings(league: League, team_names: Mapping[str, str]) -> list[LeagueStanding]:
    """Rank members of a head-to-head league by match points."""

    records = h2h_records(league.members, league.fixtures or [])
    previous_ranks = {s.manager: s.rank for s in league.standings}
    entries = [
        LeagueStanding(
            previous_rank=previous_ranks.get(member, 0),
            team_name=team_names[member],
            manager=member,
            total_points=records[member].points,
            gameweeks_played=records[member].played,
        )
        for member in league.members
        if member in team_names
    ]
    entries.sort(key=lambda s: -s.total_points)
    return [
        entry.model_copy(update={"rank": index})
        for index, entry in enumerate(entries, start=1)
    ]


def nearest_power_of_two_below(n: int) -> int:
    """Largest power of two that does not exceed *n* (0 when *n* < 1)."""
    if n < 1:
        return 0
    power = 1
    while power * 2 <= n:
        power *= 2
    return power


def cup_qualifiers(standings: Sequence[LeagueStanding]) -> list[str]:
    """Top managers by gameweek points, trimmed to a power of two."""

    ranked = sorted(standings, key=lambda s: -s.gameweek_points)
    size = nearest_power_of_two_below(len(ranked))
    return [standing.manager for standing in ranked[:size]]


def create_cup_draw(
    teams: Sequence[str],
    round_number: int,
    rules: GameRules,
    rng: random.Random | None = None,
) -> CupDraw:
    shuffled = list(teams)
    (rng or random.Random()).shuffle(shuffled)
    gameweek = rules.leagues.cup_qualification_week + round_number
    fixtures = [
        HeadToHeadFixture(gameweek=gameweek, home=shuffled[i], away=shuffled[i + 1])
        for i in range(0, len(shuffled) - 1, 2)
    ]
    return CupDraw(round=round_number, fixtures=fixtures, qualified=list(teams))


def resolve_cup_round(
    draw: CupDraw,
    scores: Mapping[str, int],
    season_totals: Mapping[str, float],
) -> tuple[CupDraw, list[str]]:
    """Settle every fixture with known scores.

    A drawn tie goes to the higher season total; the home side wins if
    that is level too.
    """

    fixtures: list[HeadToHeadFixture] = []
    winners: list[str] = []
    eliminated: list[str] = []
    for fixture in draw.fixtures:
        if fixture.home not in scores or fixture.away not in scores:
            fixtures.append(fixture)
            continue
        home_score, away_score = scores[fixture.home], scores[fixture.away]
        winner: str
        if home_score == away_score:
            home_total = season_totals.get(fixture.home, 0)
            away_total = season_totals.get(fixture.away, 0)
            winner = fixture.home if home_total >= away_total else fixture.away
        else:
            winner = fixture.home if home_score > away_score else fixture.away
        settled = settle_fixture(fixture, home_score, away_score).model_copy(
            update={"winner": winner}
        )
        loser = fixture.away if winner == fixture.home else fixture.home
        winners.append(winner)
        eliminated.append(loser)
        fixtures.append(settled)

    return draw.model_copy(update={"fixtures": fixtures, "eliminated": eliminated}), winners


def generate_join_code(length: int = 8) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "league"


# =============================================================================
# Service
# =============================================================================


@dataclass(slots=True)
class UserPosition:
    rank: int
    total: int
    change: int


class LeagueService:
    """League membership and standings over the JSON stores."""

    def __init__(
        self,
        leagues: LeagueStore,
        teams: TeamStore,
        rules: GameRules | None = None,
    ) -> None:
        self.leagues = leagues
        self.teams = teams
        self.rules = rules or load_rules()

    def _require(self, league_id: str) -> League:
        league = self.leagues.load_league(league_id)
        if league is None:
            raise LeagueError(f"League not found: {league_id}")
        return league

    def create_league(
        self,
        name: str,
        creator: str,
        league_type: LeagueType = "classic",
        *,
        public: bool = False,
        now: datetime | None = None,
    ) -> League:
        stamp = (now or datetime.now(UTC)).isoformat()
        settings = LeagueSettings(
            max_teams=self.rules.leagues.max_teams_per_league,
            public=public,
            join_code=None if public else generate_join_code(),
            end_gameweek=self.rules.season.total_gameweeks,
        )
        league = League(
            id=f"{slugify(name)}-{secrets.token_hex(4)}",
            name=name,
            type=league_type,
            created=stamp,
            creator=creator,
            members=[creator],
            settings=settings,
            fixtures=generate_h2h_fixtures([creator], self.rules.season.total_gameweeks)
            if league_type == "head-to-head"
            else None,
        )
        league.metadata.last_updated = stamp
        self.leagues.save_league(league)
        logger.info("Created %s league %s", league_type, league.id)
        return league

    def join_league(
        self, league_id: str, username: str, join_code: str | None = None
    ) -> League:
        league = self._require(league_id)
        if username in league.members:
            raise LeagueError("Already a member of this league")
        if len(league.members) >= league.settings.max_teams:
            raise LeagueError("League is full")
        if not league.settings.public and league.settings.join_code != join_code:
            raise LeagueError("Invalid join code")

        league.members.append(username)
        if league.type == "head-to-head":
            league.fixtures = generate_h2h_fixtures(
                league.members, self.rules.season.total_gameweeks
            )
        self.leagues.save_league(league)
        return league

    def total_points(self, username: str, up_to_gameweek: int) -> int:
        """Season points from stored gameweek history, minus transfer hits."""
        total = 0
        for gameweek in range(1, up_to_gameweek + 1):
            history = self.teams.get_gameweek_history(username, gameweek)
            if history:
                total += int(history.get("points", 0))
        team = self.teams.load_team(username)
        if team is not None:
            total -= team.transfers.cost
        return total

    def update_standings(
        self, league_id: str, gameweek: int, *, now: datetime | None = None
    ) -> League:
        league = self._require(league_id)
        entries: list[LeagueStanding] = []
        for member in league.members:
            team = self.teams.load_team(member)
            if team is None:
                continue
            history = self.teams.get_gameweek_history(member, gameweek) or {}
            entries.append(
                build_standing(
                    team,
                    member,
                    gameweek=gameweek,
                    gameweek_points=int(history.get("points", 0)),
                    total_points=self.total_points(member, gameweek),
                    transfers=len(self.teams.get_transfer_history(member)),
                    scoring_type=league.settings.scoring_type,
                )
            )

        league.standings = rank_classic_standings(entries, league.standings)
        league.metadata.last_updated = (now or datetime.now(UTC)).isoformat()
        self.leagues.save_league(league)
        return league

    def team_gameweek_points(
        self, team: Team, stats: Sequence[PlayerGameweekStats]
    ) -> int:
        result = calculate_team_gameweek_points(
            team.all_players(),
            stats,
            team.captain,
            team.vice_captain,
            team.starting_xi,
            team.bench,
            rules=self.rules,
        )
        return result.total_points

    def process_head_to_head_gameweek(
        self,
        league_id: str,
        gameweek: int,
        stats_by_manager: Mapping[str, Sequence[PlayerGameweekStats]],
    ) -> League:
        league = self._require(league_id)
        if league.type != "head-to-head":
            raise LeagueError(f"{league_id} is not a head-to-head league")

        settled: list[HeadToHeadFixture] = []
        for fixture in league.fixtures or []:
            if fixture.gameweek != gameweek:
                settled.append(fixture)
                continue
            home = self.teams.load_team(fixture.home)
            away = self.teams.load_team(fixture.away)
            if home is None or away is None:
                settled.append(fixture)
                continue
            settled.append(
                settle_fixture(
                    fixture,
                    self.team_gameweek_points(home, stats_by_manager.get(fixture.home, [])),
                    self.team_gameweek_points(away, stats_by_manager.get(fixture.away, [])),
                )
            )
        league.fixtures = settled

        team_names: dict[str, str] = {}
        for member in league.members:
            team = self.teams.load_team(member)
            if team is not None:
                team_names[member] = team.manager.team_name
        league.standings = h2h_standings(league, team_names)
        self.leagues.save_league(league)
        return league

    def process_cup_qualification(
        self,
        gameweek: int,
        global_league_id: str = "global",
        rng: random.Random | None = None,
    ) -> CupDraw | None:
        if gameweek != self.rules.leagues.cup_qualification_week:
            return None
        league = self.leagues.load_league(global_league_id)
        if league is None:
            return None
        draw = create_cup_draw(cup_qualifiers(league.standings), 1, self.rules, rng)
        self.leagues.save_cup_draw(draw)
        return draw

    def process_cup_round(
        self,
        round_number: int,
        stats_by_manager: Mapping[str, Sequence[PlayerGameweekStats]],
        rng: random.Random | None = None,
    ) -> list[str]:
        """Play a cup round and draw the next one; returns the winners."""

        draw = self.leagues.load_cup_draw(round_number)
        if draw is None:
            return []

        scores: dict[str, int] = {}
        for fixture in draw.fixtures:
            for manager in (fixture.home, fixture.away):
                team = self.teams.load_team(manager)
                if team is not None:
                    scores[manager] = self.team_gameweek_points(
                        team, stats_by_manager.get(manager, [])
                    )
        totals = {
            manager: self.total_points(manager, self.rules.season.total_gameweeks)
            for manager in scores
        }
        resolved, winners = resolve_cup_round(draw, scores, totals)
        self.leagues.save_cup_draw(resolved)

        if len(winners) > 1:
            self.leagues.save_cup_draw(
                create_cup_draw(winners, round_number + 1, self.rules, rng)
            )
        elif len(winners) == 1:
            self.leagues.record_cup_winner(winners[0])
            logger.info("Cup winner: %s", winners[0])
        return winners

    def user_position(self, league_id: str, username: str) -> UserPosition:
        league = self.leagues.load_league(league_id)
        if league is None or not league.standings:
            return UserPosition(rank=0, total=0, change=0)
        standing = next((s for s in league.standings if s.manager == username), None)
        if standing is None:
            return UserPosition(rank=0, total=len(league.standings), change=0)
        change = standing.previous_rank - standing.rank if standing.previous_rank else 0
        return UserPosition(rank=standing.rank, total=len(league.standings), change=change)

    def user_leagues(self, username: str) -> list[League]:
        return [league for league in self.leagues.list_leagues() if username in league.members]


__all__ = [
    "DRAW",
    "H2HRecord",
    "LeagueError",
    "LeagueService",
    "UserPosition",
    "build_standing",
    "create_cup_draw",
    "cup_qualifiers",
    "generate_h2h_fixtures",
    "generate_join_code",
    "h2h_records",
    "h2h_standings",
    "nearest_power_of_two_below",
    "rank_classic_standings",
    "resolve_cup_round",
    "settle_fixture",
    "team_value",
]
