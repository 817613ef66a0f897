"""Gameweek scoring: per-player points, team totals and automatic substitution."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from .rules import GameRules, load_rules
from .types import (
    AutoSubstitution,
    GameweekPoints,
    Player,
    PlayerGameweekStats,
    PointsBreakdown,
    TeamGameweekPoints,
)

logger = logging.getLogger(__name__)

FULL_APPEARANCE_MINUTES = 60


class ChipFlags(Protocol):
    """Anything exposing the two chips that affect scoring."""

    triple_captain: bool
    bench_boost: bool


@dataclass(slots=True)
class ActiveChips:
    """Chips played in the gameweek being scored."""

    triple_captain: bool = False
    bench_boost: bool = False


StatsInput = Iterable[PlayerGameweekStats] | Mapping[str, PlayerGameweekStats]


def _stats_by_id(stats: StatsInput) -> dict[str, PlayerGameweekStats]:
    if isinstance(stats, Mapping):
        return dict(stats)
    return {entry.player_id: entry for entry in stats}


def _with_appearance(points: GameweekPoints, appearance: int) -> GameweekPoints:
    breakdown = points.breakdown.model_copy(update={"appearance": appearance})
    total = breakdown.total()
    return points.model_copy(
        update={
            "breakdown": breakdown,
            "total": total,
            "final_points": total * points.multiplier,
        }
    )


def calculate_player_points(
    player: Player,
    stats: PlayerGameweekStats,
    is_captain: bool = False,
    is_triple_captain: bool = False,
    rules: GameRules | None = None,
) -> GameweekPoints:
    """Score one player's gameweek from raw match stats."""

    scoring = (rules or load_rules()).scoring
    position = player.position
    minutes = stats.minutes
    played_full = minutes >= FULL_APPEARANCE_MINUTES

    appearance = 0
    if played_full:
        appearance = scoring.appearance.full
    elif minutes > 0:
        appearance = scoring.appearance.partial

    clean_sheet = 0
    if stats.clean_sheet and played_full:
        clean_sheet = scoring.clean_sheets.for_position(position)

    saves = penalty_saves = 0
    if position == "GK":
        penalty_saves = stats.penalties_saved * scoring.goalkeeping.penalty_save
        saves = (stats.saves // 3) * scoring.goalkeeping.saves_per3

    defensive = 0
    actions = stats.defensive_actions or 0
    if position == "DEF":
        tier = scoring.defensive.defenders
        if actions >= tier.threshold:
            defensive = tier.actions
    elif position in ("MID", "FWD"):
        tier = scoring.defensive.others
        if actions >= tier.threshold:
            defensive = tier.actions

    goals_conceded = 0
    if position in ("GK", "DEF") and played_full:
        goals_conceded = (stats.goals_conceded // 2) * scoring.penalties.goals_conceded

    penalties = scoring.penalties
    breakdown = PointsBreakdown(
        appearance=appearance,
        goals=stats.goals * scoring.goals.for_position(position),
        assists=stats.assists * scoring.assists,
        clean_sheet=clean_sheet,
        saves=saves,
        penalty_saves=penalty_saves,
        yellow_cards=stats.yellow_cards * penalties.yellow_card,
        red_cards=stats.red_cards * penalties.red_card,
        own_goals=stats.own_goals * penalties.own_goal,
        penalties_missed=stats.penalties_missed * penalties.penalty_miss,
        goals_conceded=goals_conceded,
        bonus=stats.bonus_points,
        defensive=defensive,
    )
    total = breakdown.total()

    multiplier = 1
    if is_triple_captain:
        multiplier = 3
    elif is_captain:
        multiplier = 2

    return GameweekPoints(
        player_id=player.id,
        player_name=player.name,
        position=position,
        breakdown=breakdown,
        total=total,
        multiplier=multiplier,
        final_points=total * multiplier,
    )


def _can_substitute(out_position: str, in_position: str) -> bool:
    # Keepers only swap with keepers; formation shape is not re-checked.
    if out_position == "GK":
        return in_position == "GK"
    return in_position != "GK"


def apply_auto_substitutions(
    players: Sequence[Player],
    stats: StatsInput,
    starting_xi: Sequence[str],
    bench: Sequence[str],
    points: Sequence[GameweekPoints],
) -> tuple[list[GameweekPoints], list[AutoSubstitution]]:
    """Bring on playing bench players for starters who recorded no minutes.

    Returns a new points list and the substitutions made, in bench order.
    The outgoing starter's appearance points are zeroed; the substitute's
    entry keeps its own appearance value. The input sequence is not modified.
    """

    stats_by_id = _stats_by_id(stats)
    by_id = {p.id: p for p in players}
    non_players = [
        player_id
        for player_id in starting_xi
        if player_id not in stats_by_id or stats_by_id[player_id].minutes == 0
    ]
    result = list(points)
    substitutions: list[AutoSubstitution] = []
    if not non_players:
        return result, substitutions

    index_of = {entry.player_id: i for i, entry in enumerate(result)}

    for bench_id in bench:
        if not non_players:
            break
        bench_player = by_id.get(bench_id)
        bench_stats = stats_by_id.get(bench_id)
        if bench_player is None or bench_stats is None or bench_stats.minutes == 0:
            continue

        for slot, out_id in enumerate(non_players):
            out_player = by_id.get(out_id)
            if out_player is None:
                continue
            if not _can_substitute(out_player.position, bench_player.position):
                continue

            out_index = index_of.get(out_id)
            if out_index is not None:
                result[out_index] = _with_appearance(result[out_index], 0)
            substitutions.append(AutoSubstitution(out_id=out_id, in_id=bench_id))
            logger.debug("Auto-sub: %s replaces %s", bench_id, out_id)
            del non_players[slot]
            break

    return result, substitutions


def calculate_team_gameweek_points(
    players: Sequence[Player],
    stats: StatsInput,
    captain: str,
    vice_captain: str,
    starting_xi: Sequence[str],
    bench: Sequence[str],
    chips: ChipFlags | Mapping[str, bool] | None = None,
    rules: GameRules | None = None,
) -> TeamGameweekPoints:
    """Score a full squad for one gameweek."""

    rules = rules or load_rules()
    stats_by_id = _stats_by_id(stats)
    if isinstance(chips, Mapping):
        active = ActiveChips(
            triple_captain=bool(chips.get("triple_captain")),
            bench_boost=bool(chips.get("bench_boost")),
        )
    elif chips is None:
        active = ActiveChips()
    else:
        active = ActiveChips(chips.triple_captain, chips.bench_boost)

    xi = set(starting_xi)
    bench_ids = set(bench)
    captain_stats = stats_by_id.get(captain)
    captain_absent = captain_stats is None or captain_stats.minutes == 0

    player_points: list[GameweekPoints] = []
    for player in players:
        player_stats = stats_by_id.get(player.id)
        if player_stats is None:
            continue
        if player.id not in xi and player.id not in bench_ids:
            continue

        if captain_absent:
            effective_captain = player.id == vice_captain
        else:
            effective_captain = player.id == captain
        player_points.append(
            calculate_player_points(
                player,
                player_stats,
                is_captain=effective_captain,
                is_triple_captain=effective_captain and active.triple_captain,
                rules=rules,
            )
        )

    substitutions: list[AutoSubstitution] = []
    if not active.bench_boost:
        player_points, substitutions = apply_auto_substitutions(
            players, stats_by_id, starting_xi, bench, player_points
        )

    subbed_out = {sub.out_id for sub in substitutions}
    subbed_in = {sub.in_id for sub in substitutions}

    total_points = 0
    bench_points = 0
    for entry in player_points:
        if active.bench_boost:
            total_points += entry.final_points
        elif entry.player_id in xi and entry.player_id not in subbed_out:
            total_points += entry.final_points
        elif entry.player_id in subbed_in:
            total_points += entry.final_points
        elif entry.player_id in bench_ids:
            bench_points += entry.final_points

    return TeamGameweekPoints(
        player_points=player_points,
        total_points=total_points,
        bench_points=bench_points,
        substitutions=substitutions,
    )


def _bps(stats: PlayerGameweekStats) -> int:
    return (
        stats.goals * 24
        + stats.assists * 9
        + (12 if stats.clean_sheet else 0)
        - stats.yellow_cards * 3
        - stats.red_cards * 9
        - stats.own_goals * 6
    )


def calculate_bonus_points(
    match_stats: Sequence[PlayerGameweekStats],
    rules: GameRules | None = None,
) -> dict[str, int]:
    """Award first/second/third bonus by a simplified Bonus Points Score.

    Ties keep input order (stable sort).
    """

    bonus = (rules or load_rules()).scoring.bonus
    ranked = sorted(match_stats, key=_bps, reverse=True)
    awards = (bonus.first, bonus.second, bonus.third)
    return {entry.player_id: value for entry, value in zip(ranked, awards)}


_BASE_PROJECTION = {"GK": 3.0, "DEF": 3.5, "MID": 4.0, "FWD": 4.5}


@dataclass(slots=True)
class FixtureOutlook:
    home: bool
    opponent: str
    difficulty: int  # 1 (easiest) to 5


def project_gameweek_points(
    player: Player, fixtures: Sequence[FixtureOutlook]
) -> float:
    """Rough expected points from position and fixture difficulty."""
    projected = _BASE_PROJECTION.get(player.position, 0.0)
    for fixture in fixtures:
        projected *= (6 - fixture.difficulty) / 5 * (1.1 if fixture.home else 1.0)
    return round(projected, 1)


__all__ = [
    "ActiveChips",
    "FixtureOutlook",
    "apply_auto_substitutions",
    "calculate_bonus_points",
    "calculate_player_points",
    "calculate_team_gameweek_points",
    "project_gameweek_points",
]
