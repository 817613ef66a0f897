"""Building a fresh team document around a squad."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from .errors import GFLError
from .rules import GameRules, load_rules
from .types import (
    Budget,
    Manager,
    Player,
    Squad,
    Team,
    TeamMetadata,
    TransferAllowance,
)
from .validation import parse_formation

logger = logging.getLogger(__name__)

DEFAULT_FORMATION = "4-4-2"


def _ranked(players: list[Player]) -> list[Player]:
    return sorted(players, key=lambda p: (p.points, p.price), reverse=True)


def pick_lineup(squad: Squad, formation: str = DEFAULT_FORMATION) -> tuple[list[str], list[str]]:
    """Split *squad* into a starting XI for *formation* and an ordered bench.

    The strongest players by points, then price, start. The spare keeper
    heads the bench.
    """

    shape = parse_formation(formation)
    if shape is None:
        raise GFLError(f"Invalid formation: {formation}")
    defenders, midfielders, forwards = shape

    starting: list[str] = []
    bench: list[str] = []
    for players, starters in (
        (squad.goalkeepers, 1),
        (squad.defenders, defenders),
        (squad.midfielders, midfielders),
        (squad.forwards, forwards),
    ):
        ranked = _ranked(players)
        starting.extend(p.id for p in ranked[:starters])
        bench.extend(p.id for p in ranked[starters:])
    return starting, bench


def new_team(
    username: str,
    team_name: str,
    squad: Squad,
    *,
    budget: float | None = None,
    formation: str = DEFAULT_FORMATION,
    rules: GameRules | None = None,
    now: datetime | None = None,
) -> Team:
    """Return a new team for *username* with a picked lineup and captaincy."""

    rules = rules or load_rules()
    total = budget if budget is not None else rules.budget.initial
    stamp = (now or datetime.now(UTC)).isoformat()

    starting_xi, bench = pick_lineup(squad, formation)
    by_id = {p.id: p for p in squad.all_players()}
    leaders = _ranked([by_id[pid] for pid in starting_xi if by_id[pid].position != "GK"])
    spent = squad.total_value()

    team = Team(
        manager=Manager(github=username, team_name=team_name, joined=stamp),
        squad=squad.model_copy(deep=True),
        formation=formation,
        starting_xi=starting_xi,
        bench=bench,
        captain=leaders[0].id if leaders else "",
        vice_captain=leaders[1].id if len(leaders) > 1 else "",
        budget=Budget(total=total, spent=spent, remaining=round(total - spent, 1)),
        transfers=TransferAllowance(free=rules.transfers.free_per_week),
        metadata=TeamMetadata(created=stamp, last_modified=stamp),
    )
    logger.info("Created team %s for %s (£%.1fm spent)", team_name, username, spent)
    return team


__all__ = ["DEFAULT_FORMATION", "new_team", "pick_lineup"]
