"""Shared record types for squads, scoring, transfers and leagues."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Position = Literal["GK", "DEF", "MID", "FWD"]
PlayerStatus = Literal["available", "injured", "suspended", "doubtful", "unavailable"]
LeagueType = Literal["classic", "head-to-head", "cup"]

POSITIONS: tuple[Position, ...] = ("GK", "DEF", "MID", "FWD")


class Record(BaseModel):
    """Base for persisted records; documents on disk use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Players and squads
# =============================================================================


class Player(Record):
    """A player as listed in the catalog or held in a squad."""

    id: str
    name: str
    team: str  # club code, e.g. "ARS"
    position: Position
    price: float
    points: int = 0
    purchase_price: float | None = None
    purchase_date: str | None = None
    status: PlayerStatus = "available"


_BUCKETS: dict[Position, str] = {
    "GK": "goalkeepers",
    "DEF": "defenders",
    "MID": "midfielders",
    "FWD": "forwards",
}


class Squad(Record):
    """Fifteen players partitioned by position."""

    goalkeepers: list[Player] = Field(default_factory=list)
    defenders: list[Player] = Field(default_factory=list)
    midfielders: list[Player] = Field(default_factory=list)
    forwards: list[Player] = Field(default_factory=list)

    @staticmethod
    def bucket_for(position: Position) -> str:
        return _BUCKETS[position]

    def bucket(self, position: Position) -> list[Player]:
        return getattr(self, _BUCKETS[position])  # type: ignore[no-any-return]

    def all_players(self) -> list[Player]:
        return [*self.goalkeepers, *self.defenders, *self.midfielders, *self.forwards]

    def composition(self) -> dict[str, int]:
        return {position: len(self.bucket(position)) for position in POSITIONS}

    def find(self, player_id: str) -> Player | None:
        return next((p for p in self.all_players() if p.id == player_id), None)

    def total_value(self) -> float:
        return round(sum(p.price for p in self.all_players()), 1)


# =============================================================================
# Team
# =============================================================================


class Manager(Record):
    github: str
    team_name: str
    email: str | None = None
    joined: str = ""


class Budget(Record):
    """Spend snapshot; ``remaining`` is always ``total - spent``."""

    total: float = 100.0
    spent: float = 0.0
    remaining: float = 100.0


class TransferAllowance(Record):
    free: int = 1
    made: int = 0
    cost: int = 0


class ChipStatus(Record):
    """Used-flags for each one-off chip."""

    wildcard1: bool = False
    wildcard2: bool = False
    free_hit: bool = False
    triple_captain: bool = False
    bench_boost: bool = False
    mystery: bool = False

    def used_count(self) -> int:
        return sum(1 for used in self.model_dump().values() if used)


class TeamMetadata(Record):
    created: str = ""
    last_modified: str = ""
    gameweek_locked: int | None = None
    version: str = "1.0.0"


class Team(Record):
    """A manager's full team document."""

    manager: Manager
    squad: Squad
    formation: str = "4-4-2"
    starting_xi: list[str] = Field(default_factory=list, alias="startingXI")
    bench: list[str] = Field(default_factory=list)
    captain: str = ""
    vice_captain: str = ""
    budget: Budget = Field(default_factory=Budget)
    transfers: TransferAllowance = Field(default_factory=TransferAllowance)
    chips: ChipStatus = Field(default_factory=ChipStatus)
    metadata: TeamMetadata = Field(default_factory=TeamMetadata)

    def all_players(self) -> list[Player]:
        return self.squad.all_players()

    def is_locked(self, gameweek: int) -> bool:
        locked = self.metadata.gameweek_locked
        return locked is not None and gameweek >= locked


# =============================================================================
# Validation
# =============================================================================


class ValidationIssue(BaseModel):
    """A single hard validation failure."""

    code: str
    message: str
    field: str | None = None
    value: Any = None
    fix: str | None = None


class ValidationWarning(BaseModel):
    code: str
    message: str
    suggestion: str | None = None


class CheckResult(BaseModel):
    """Outcome of one independent check."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    details: str | None = None
    cost: int | None = None


class SquadInfo(BaseModel):
    valid: bool
    composition: dict[str, int]


class ValidationInfo(BaseModel):
    budget: Budget
    squad: SquadInfo
    formation: str | None = None


class ValidationResult(BaseModel):
    """Aggregated outcome of the canonical team gate."""

    valid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationWarning]
    info: ValidationInfo

    def codes(self) -> list[str]:
        return [error.code for error in self.errors]


# =============================================================================
# Scoring
# =============================================================================


class PlayerGameweekStats(Record):
    """Raw match facts for one player in one gameweek."""

    player_id: str
    minutes: int = 0
    goals: int = 0
    assists: int = 0
    clean_sheet: bool = False
    yellow_cards: int = 0
    red_cards: int = 0
    own_goals: int = 0
    penalties_missed: int = 0
    penalties_saved: int = 0
    saves: int = 0
    goals_conceded: int = 0
    bonus_points: int = 0
    defensive_actions: int | None = None


class PointsBreakdown(Record):
    appearance: int = 0
    goals: int = 0
    assists: int = 0
    clean_sheet: int = 0
    saves: int = 0
    penalty_saves: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    own_goals: int = 0
    penalties_missed: int = 0
    goals_conceded: int = 0
    bonus: int = 0
    defensive: int = 0

    def total(self) -> int:
        return sum(self.model_dump().values())


class GameweekPoints(Record):
    """Scored output for one player; ``final_points = total * multiplier``."""

    player_id: str
    player_name: str
    position: Position
    breakdown: PointsBreakdown
    total: int
    multiplier: int = 1
    final_points: int


class AutoSubstitution(Record):
    out_id: str
    in_id: str


class TeamGameweekPoints(Record):
    player_points: list[GameweekPoints]
    total_points: int
    bench_points: int
    substitutions: list[AutoSubstitution] = Field(default_factory=list)

    def for_player(self, player_id: str) -> GameweekPoints | None:
        return next((p for p in self.player_points if p.player_id == player_id), None)


# =============================================================================
# Transfers
# =============================================================================


class TransferPair(Record):
    player_out: Player = Field(alias="out")
    player_in: Player = Field(alias="in")


class TransferRecord(Record):
    """One executed transfer window; never modified once written."""

    model_config = ConfigDict(frozen=True)

    gameweek: int
    timestamp: str
    transfers: tuple[TransferPair, ...]
    chip: str | None = None
    cost: int = 0
    free_transfers_used: int = 0
    extra_transfers: int = 0
    budget_before: float
    budget_after: float


class TransferValidation(Record):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cost: int = 0
    budget_after: float = 0.0
    team_limit_violations: list[str] = Field(default_factory=list)


# =============================================================================
# Leagues
# =============================================================================


class LeagueStanding(Record):
    rank: int = 0
    previous_rank: int = 0
    team_name: str
    manager: str
    gameweek_points: int = 0
    total_points: float = 0
    gameweeks_played: int = 0
    transfers: int = 0
    chips_used: int = 0
    team_value: float = 0.0


class HeadToHeadFixture(Record):
    gameweek: int
    home: str
    away: str
    home_score: int | None = None
    away_score: int | None = None
    winner: str | None = None
    played: bool = False


class CupDraw(Record):
    round: int
    fixtures: list[HeadToHeadFixture] = Field(default_factory=list)
    qualified: list[str] = Field(default_factory=list)
    eliminated: list[str] = Field(default_factory=list)


class LeagueSettings(Record):
    max_teams: int = 20
    public: bool = False
    join_code: str | None = None
    start_gameweek: int = 1
    end_gameweek: int = 38
    scoring_type: Literal["points", "average"] = "points"


class LeagueMetadata(Record):
    last_updated: str = ""
    total_prize_pool: float | None = None
    description: str | None = None


class League(Record):
    id: str
    name: str
    type: LeagueType = "classic"
    created: str = ""
    creator: str = ""
    members: list[str] = Field(default_factory=list)
    settings: LeagueSettings = Field(default_factory=LeagueSettings)
    standings: list[LeagueStanding] = Field(default_factory=list)
    fixtures: list[HeadToHeadFixture] | None = None
    metadata: LeagueMetadata = Field(default_factory=LeagueMetadata)


__all__ = [
    "POSITIONS",
    "AutoSubstitution",
    "Budget",
    "ChipStatus",
    "CheckResult",
    "CupDraw",
    "GameweekPoints",
    "HeadToHeadFixture",
    "League",
    "LeagueMetadata",
    "LeagueSettings",
    "LeagueStanding",
    "LeagueType",
    "Manager",
    "Player",
    "PlayerGameweekStats",
    "PlayerStatus",
    "PointsBreakdown",
    "Position",
    "Record",
    "Squad",
    "SquadInfo",
    "Team",
    "TeamGameweekPoints",
    "TeamMetadata",
    "TransferAllowance",
    "TransferPair",
    "TransferRecord",
    "TransferValidation",
    "ValidationInfo",
    "ValidationIssue",
    "ValidationResult",
    "ValidationWarning",
]
