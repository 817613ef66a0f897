"""Declarative game rules and the cached repository that loads them."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .types import Position, Record

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path("data") / "rules" / "rules.yaml"


class RuleSection(Record):
    model_config = ConfigDict(frozen=True)


class PositionValues(BaseModel):
    """A scoring value per position, keyed GK/DEF/MID/FWD in the document."""

    model_config = ConfigDict(frozen=True)

    GK: int
    DEF: int
    MID: int
    FWD: int

    def for_position(self, position: Position) -> int:
        return int(getattr(self, position))


class BudgetRules(RuleSection):
    initial: float = 100.0
    max: float = 100.0


class SquadRules(RuleSection):
    size: int = 15
    composition: PositionValues = Field(
        default_factory=lambda: PositionValues(GK=2, DEF=5, MID=5, FWD=3)
    )
    team_limit: int = 3  # per club


class TransferRules(RuleSection):
    free_per_week: int = 1
    max_accumulated: int = 5
    cost_per_extra: int = 4
    max_per_gameweek: int = 20


class PenaltyRules(RuleSection):
    yellow_card: int = -1
    red_card: int = -3
    own_goal: int = -2
    penalty_miss: int = -2
    goals_conceded: int = -1  # per 2 conceded


class BonusRules(RuleSection):
    first: int = 3
    second: int = 2
    third: int = 1


class GoalkeepingRules(RuleSection):
    penalty_save: int = 5
    saves_per3: int = Field(default=1, alias="savesPer3")


class AppearanceRules(RuleSection):
    full: int = 2  # 60+ minutes
    partial: int = 1


class DefensiveTier(RuleSection):
    actions: int
    threshold: int


class DefensiveRules(RuleSection):
    defenders: DefensiveTier = Field(
        default_factory=lambda: DefensiveTier(actions=2, threshold=10)
    )
    others: DefensiveTier = Field(
        default_factory=lambda: DefensiveTier(actions=2, threshold=12)
    )


class ScoringRules(RuleSection):
    goals: PositionValues = Field(
        default_factory=lambda: PositionValues(GK=10, DEF=6, MID=5, FWD=4)
    )
    assists: int = 3
    clean_sheets: PositionValues = Field(
        default_factory=lambda: PositionValues(GK=4, DEF=4, MID=1, FWD=0)
    )
    penalties: PenaltyRules = Field(default_factory=PenaltyRules)
    bonus: BonusRules = Field(default_factory=BonusRules)
    goalkeeping: GoalkeepingRules = Field(default_factory=GoalkeepingRules)
    appearance: AppearanceRules = Field(default_factory=AppearanceRules)
    defensive: DefensiveRules = Field(default_factory=DefensiveRules)


class ChipRule(RuleSection):
    available: int = 1
    effect: str = ""


class WildcardRule(ChipRule):
    available: int = 2
    first_half_deadline: int = 19  # gameweek
    effect: str = "Unlimited free transfers for one gameweek"


class MysteryChipRule(ChipRule):
    reveal_date: str = "2025-01-01"
    effect: str = "To be revealed"


class ChipRules(RuleSection):
    wildcard: WildcardRule = Field(default_factory=WildcardRule)
    free_hit: ChipRule = Field(
        default_factory=lambda: ChipRule(
            effect="Unlimited transfers for one gameweek, team reverts after"
        )
    )
    triple_captain: ChipRule = Field(
        default_factory=lambda: ChipRule(effect="Captain scores triple points")
    )
    bench_boost: ChipRule = Field(
        default_factory=lambda: ChipRule(effect="All 15 players score points")
    )
    mystery: MysteryChipRule = Field(default_factory=MysteryChipRule)


class DeadlineRules(RuleSection):
    transfer_window_close_minutes: int = 90
    auto_substitution_after: str = "all_matches_complete"


class PriceRules(RuleSection):
    min: float = 4.0
    max: float = 15.0
    max_change_per_week: float = 0.3
    sell_profit_percentage: float = 0.5


class LeagueRules(RuleSection):
    max_private_leagues: int = 20
    max_teams_per_league: int = 20
    cup_qualification_week: int = 16


class SeasonRules(RuleSection):
    start_date: str = "2024-08-16"
    end_date: str = "2025-05-25"
    total_gameweeks: int = 38
    current_gameweek: int | None = 1


class GameRules(RuleSection):
    """The authoritative, read-only ruleset."""

    budget: BudgetRules = Field(default_factory=BudgetRules)
    squad: SquadRules = Field(default_factory=SquadRules)
    transfers: TransferRules = Field(default_factory=TransferRules)
    formations: tuple[str, ...] = (
        "4-4-2",
        "4-3-3",
        "3-5-2",
        "3-4-3",
        "5-4-1",
        "5-3-2",
        "4-5-1",
    )
    scoring: ScoringRules = Field(default_factory=ScoringRules)
    chips: ChipRules = Field(default_factory=ChipRules)
    deadlines: DeadlineRules = Field(default_factory=DeadlineRules)
    prices: PriceRules = Field(default_factory=PriceRules)
    leagues: LeagueRules = Field(default_factory=LeagueRules)
    season: SeasonRules = Field(default_factory=SeasonRules)


def default_rules() -> GameRules:
    """Return the built-in ruleset used when no rules document is available."""

    return GameRules()


class RulesRepository:
    """Loads the rules document once and caches the parsed result."""

    def __init__(self, path: Path | str = DEFAULT_RULES_PATH) -> None:
        self.path = Path(path)
        self._rules: GameRules | None = None

    def load_rules(self) -> GameRules:
        if self._rules is not None:
            logger.debug("Rules cache hit for %s", self.path)
            return self._rules

        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("rules document must be a mapping")
            self._rules = GameRules.model_validate(raw)
            logger.info("Loaded rules from %s", self.path)
        except (OSError, yaml.YAMLError, ValueError, ValidationError) as exc:
            logger.warning("Using default rules (%s): %s", self.path, exc)
            self._rules = default_rules()
        return self._rules

    def reload(self) -> GameRules:
        self._rules = None
        return self.load_rules()


_REPOSITORIES: dict[Path, RulesRepository] = {}


def get_repository(path: Path | str | None = None) -> RulesRepository:
    """Return the process-wide repository for *path*."""

    key = Path(path) if path is not None else DEFAULT_RULES_PATH
    repository = _REPOSITORIES.get(key)
    if repository is None:
        repository = RulesRepository(key)
        _REPOSITORIES[key] = repository
    return repository


def load_rules(path: Path | str | None = None) -> GameRules:
    return get_repository(path).load_rules()


def clear_cache() -> None:
    _REPOSITORIES.clear()


__all__ = [
    "DEFAULT_RULES_PATH",
    "GameRules",
    "PositionValues",
    "RuleSection",
    "RulesRepository",
    "clear_cache",
    "default_rules",
    "get_repository",
    "load_rules",
]
