"""Transfer validation, execution and sell-price economics."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from .errors import GFLError
from .rules import GameRules, load_rules
from .types import (
    POSITIONS,
    Budget,
    Player,
    Team,
    TransferAllowance,
    TransferPair,
    TransferRecord,
    TransferValidation,
)
from .validation.squad import (
    CHIP_NAMES,
    UNLIMITED_TRANSFER_CHIPS,
    WILDCARD,
    is_chip_available,
    parse_formation,
    validate_squad_composition,
    validate_team_limits,
    validate_transfer_limits,
)

logger = logging.getLogger(__name__)

_CHIP_FLAGS = {
    "free-hit": "free_hit",
    "triple-captain": "triple_captain",
    "bench-boost": "bench_boost",
    "mystery": "mystery",
}


class TransferError(GFLError):
    """Raised when a transfer fails re-validation at execution time."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Transfer validation failed: {', '.join(self.errors)}")


@dataclass(slots=True)
class TransferOutcome:
    """The post-transfer team and the history record to persist."""

    team: Team
    record: TransferRecord


def calculate_sell_price(
    purchase_price: float, current_price: float, rules: GameRules
) -> float:
    """Sell value under the profit-sharing rule.

    Losses are taken in full; profit is shared at the configured percentage
    and rounded down to one decimal.
    """
    if current_price <= purchase_price:
        return current_price
    profit = current_price - purchase_price
    # round() first so 2.0 * 0.5 * 10 does not floor to 9.999...
    share = math.floor(round(profit * rules.prices.sell_profit_percentage * 10, 6)) / 10
    return round(purchase_price + share, 1)


def calculate_sell_value(
    team: Team, players_out: Sequence[Player], rules: GameRules
) -> float:
    total = 0.0
    for player in players_out:
        owned = team.squad.find(player.id)
        if owned is not None and owned.purchase_price is not None:
            total += calculate_sell_price(owned.purchase_price, player.price, rules)
        else:
            total += player.price
    return round(total, 1)


def apply_transfers(
    team: Team,
    players_out: Sequence[Player],
    players_in: Sequence[Player],
    *,
    purchased_at: datetime | None = None,
) -> Team:
    """Return a copy of *team* with each out/in pair swapped.

    Incoming players are stamped with their purchase price and date and placed
    in the bucket for their position. An incoming player takes the outgoing
    player's slot in the XI or bench. A captain or vice-captain who leaves is
    cleared, not reassigned.
    """
    stamp = (purchased_at or datetime.now(UTC)).isoformat()
    new_team = team.model_copy(deep=True)
    squad = new_team.squad

    for player_out, player_in in zip(players_out, players_in):
        for position in POSITIONS:
            bucket = squad.bucket(position)
            index = next(
                (i for i, p in enumerate(bucket) if p.id == player_out.id), None
            )
            if index is not None:
                del bucket[index]
                break

        signed = player_in.model_copy(
            update={"purchase_price": player_in.price, "purchase_date": stamp}
        )
        squad.bucket(signed.position).append(signed)

        new_team.starting_xi = [
            player_in.id if pid == player_out.id else pid
            for pid in new_team.starting_xi
        ]
        new_team.bench = [
            player_in.id if pid == player_out.id else pid for pid in new_team.bench
        ]
        if new_team.captain == player_out.id:
            new_team.captain = ""
        if new_team.vice_captain == player_out.id:
            new_team.vice_captain = ""

    return new_team


def formation_still_valid(team: Team) -> bool:
    shape = parse_formation(team.formation)
    if shape is None:
        return False
    xi = set(team.starting_xi)
    counts = {"GK": 0, "DEF": 0, "MID": 0, "FWD": 0}
    for player in team.all_players():
        if player.id in xi:
            counts[player.position] += 1
    return counts["GK"] == 1 and (counts["DEF"], counts["MID"], counts["FWD"]) == shape


def validate_transfer(
    team: Team,
    players_out: Sequence[Player],
    players_in: Sequence[Player],
    gameweek: int,
    chip: str | None = None,
    rules: GameRules | None = None,
) -> TransferValidation:
    """Check a batch of swaps without changing anything."""

    rules = rules or load_rules()
    errors: list[str] = []
    warnings: list[str] = []

    squad_ids = {p.id for p in team.all_players()}

    if len(players_out) != len(players_in):
        errors.append(
            f"Transfers must be paired: {len(players_out)} out, {len(players_in)} in"
        )

    for player in players_out:
        if player.id not in squad_ids:
            errors.append(f"{player.name} is not in your team")

    in_ids = [p.id for p in players_in]
    if len(set(in_ids)) != len(in_ids):
        errors.append("Cannot sign the same player multiple times")

    for player in players_in:
        if player.id in squad_ids:
            errors.append(f"{player.name} is already in your team")

    if chip is not None:
        if chip not in CHIP_NAMES:
            errors.append(f"Unknown chip: {chip}")
        elif not is_chip_available(team, chip, rules, gameweek=gameweek):
            errors.append(f"Chip {chip} is not available")

    sell_value = calculate_sell_value(team, players_out, rules)
    buy_value = sum(p.price for p in players_in)
    budget_after = round(team.budget.remaining + sell_value - buy_value, 1)
    if budget_after < 0:
        errors.append(f"Insufficient budget: £{abs(budget_after):.1f}m short")

    new_team = apply_transfers(team, players_out, players_in)

    composition = validate_squad_composition(new_team, rules)
    errors.extend(composition.errors)

    club_limits = validate_team_limits(new_team.all_players(), rules)
    errors.extend(club_limits.errors)

    limits = validate_transfer_limits(
        len(players_out), team.transfers.free, rules, chip
    )
    errors.extend(limits.errors)

    if not formation_still_valid(new_team):
        warnings.append("You may need to adjust your formation after these transfers")

    out_ids = {p.id for p in players_out}
    if team.captain in out_ids:
        warnings.append("Your captain is being transferred out - select a new captain")
    if team.vice_captain in out_ids:
        warnings.append(
            "Your vice-captain is being transferred out - select a new vice-captain"
        )

    return TransferValidation(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        cost=limits.cost or 0,
        budget_after=budget_after,
        team_limit_violations=club_limits.errors,
    )


def execute_transfer(
    team: Team,
    players_out: Sequence[Player],
    players_in: Sequence[Player],
    gameweek: int,
    chip: str | None = None,
    rules: GameRules | None = None,
    *,
    now: datetime | None = None,
) -> TransferOutcome:
    """Re-validate and apply a batch of swaps.

    Raises :class:`TransferError` carrying every validation error when the
    batch is not legal. Persisting the returned team and record is left to
    the caller.
    """

    rules = rules or load_rules()
    validation = validate_transfer(team, players_out, players_in, gameweek, chip, rules)
    if not validation.valid:
        raise TransferError(validation.errors)

    now = now or datetime.now(UTC)
    new_team = apply_transfers(team, players_out, players_in, purchased_at=now)

    remaining = validation.budget_after
    new_team.budget = Budget(
        total=team.budget.total,
        spent=round(team.budget.total - remaining, 1),
        remaining=remaining,
    )

    count = len(players_out)
    free = team.transfers.free
    free_used = min(count, free)
    extra = max(0, count - free)
    if chip in UNLIMITED_TRANSFER_CHIPS:
        free_used = extra = 0
        new_team.transfers = team.transfers.model_copy(
            update={"made": team.transfers.made + count}
        )
    else:
        new_team.transfers = TransferAllowance(
            free=free - free_used,
            made=team.transfers.made + count,
            cost=team.transfers.cost + extra * rules.transfers.cost_per_extra,
        )

    if chip == WILDCARD:
        if gameweek <= rules.chips.wildcard.first_half_deadline:
            new_team.chips.wildcard1 = True
        else:
            new_team.chips.wildcard2 = True
    elif chip is not None:
        setattr(new_team.chips, _CHIP_FLAGS[chip], True)

    new_team.metadata.last_modified = now.isoformat()

    record = TransferRecord(
        gameweek=gameweek,
        timestamp=now.isoformat(),
        transfers=tuple(
            TransferPair(
                player_out=out, player_in=new_team.squad.find(incoming.id) or incoming
            )
            for out, incoming in zip(players_out, players_in)
        ),
        chip=chip,
        cost=validation.cost,
        free_transfers_used=free_used,
        extra_transfers=extra,
        budget_before=team.budget.remaining,
        budget_after=remaining,
    )
    logger.info(
        "Executed %d transfer(s) for gameweek %d (cost %d pts)",
        count,
        gameweek,
        validation.cost,
    )
    return TransferOutcome(team=new_team, record=record)


def accumulated_free_transfers(
    current_free: int, gameweeks_since_last_transfer: int, rules: GameRules
) -> int:
    accumulated = current_free + gameweeks_since_last_transfer
    return min(accumulated, rules.transfers.max_accumulated)


__all__ = [
    "TransferError",
    "TransferOutcome",
    "accumulated_free_transfers",
    "apply_transfers",
    "calculate_sell_price",
    "calculate_sell_value",
    "execute_transfer",
    "formation_still_valid",
    "validate_transfer",
]
