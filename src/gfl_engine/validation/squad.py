"""Independent rule checks run against a team snapshot."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date

from dateutil.parser import parse as parse_datetime  # type: ignore[import-untyped]

from ..rules import GameRules
from ..types import CheckResult, Player, Team

WILDCARD = "wildcard"
FREE_HIT = "free-hit"
TRIPLE_CAPTAIN = "triple-captain"
BENCH_BOOST = "bench-boost"
MYSTERY = "mystery"

CHIP_NAMES = (WILDCARD, FREE_HIT, TRIPLE_CAPTAIN, BENCH_BOOST, MYSTERY)
UNLIMITED_TRANSFER_CHIPS = frozenset({WILDCARD, FREE_HIT})


def _result(errors: list[str], details: str | None = None) -> CheckResult:
    return CheckResult(valid=not errors, errors=errors, details=details)


def validate_budget(team: Team, rules: GameRules) -> CheckResult:
    """Fail when spend exceeds the cap or is negative."""
    errors: list[str] = []
    spent = team.budget.spent
    cap = rules.budget.max

    if spent > cap:
        over = round(spent - cap, 1)
        errors.append(f"Budget exceeded: £{spent}m > £{cap}m (over by £{over}m)")
    if spent < 0:
        errors.append("Invalid budget: Cannot be negative")

    return _result(errors)


def validate_squad_composition(team: Team, rules: GameRules) -> CheckResult:
    """Every position count must match the required composition exactly."""
    errors: list[str] = []
    composition = team.squad.composition()
    required = rules.squad.composition.model_dump()

    for position, count in required.items():
        actual = composition.get(position, 0)
        if actual != count:
            errors.append(f"{position}: {actual} players (need exactly {count})")

    total = sum(composition.values())
    if total != rules.squad.size:
        errors.append(
            f"Squad size: {total} players (need exactly {rules.squad.size})"
        )

    return _result(errors)


def validate_team_limits(players: Iterable[Player], rules: GameRules) -> CheckResult:
    """No club may supply more than the configured number of players."""
    limit = rules.squad.team_limit
    club_counts = Counter(player.team for player in players)
    errors = [
        f"{club}: {count} players (max {limit} per club)"
        for club, count in club_counts.items()
        if count > limit
    ]
    return _result(errors)


def validate_formation(formation: str, rules: GameRules) -> CheckResult:
    if formation in rules.formations:
        return _result([])
    valid = ", ".join(rules.formations)
    return _result([f"Invalid formation: {formation}. Valid: {valid}"])


def parse_formation(formation: str) -> tuple[int, int, int] | None:
    """Split ``"D-M-F"`` into its three counts, or ``None`` if malformed."""
    parts = formation.split("-")
    if len(parts) != 3:
        return None
    try:
        defenders, midfielders, forwards = (int(part) for part in parts)
    except ValueError:
        return None
    return defenders, midfielders, forwards


def validate_starting_xi(
    formation: str,
    starting_xi: Sequence[str],
    players: Iterable[Player],
) -> CheckResult:
    """Check the XI size, its keeper, and its shape against the formation."""
    errors: list[str] = []

    if len(starting_xi) != 11:
        errors.append(
            f"Starting XI must have exactly 11 players (has {len(starting_xi)})"
        )

    xi_ids = set(starting_xi)
    counts = Counter(p.position for p in players if p.id in xi_ids)
    gk, defenders, midfielders, forwards = (
        counts["GK"],
        counts["DEF"],
        counts["MID"],
        counts["FWD"],
    )

    if gk != 1:
        errors.append(f"Must have exactly 1 goalkeeper (has {gk})")

    shape = parse_formation(formation)
    if shape is None:
        errors.append(f"Cannot parse formation '{formation}'")
    else:
        need_def, need_mid, need_fwd = shape
        if defenders != need_def:
            errors.append(
                f"Formation {formation} requires {need_def} defenders (has {defenders})"
            )
        if midfielders != need_mid:
            errors.append(
                f"Formation {formation} requires {need_mid} midfielders (has {midfielders})"
            )
        if forwards != need_fwd:
            errors.append(
                f"Formation {formation} requires {need_fwd} forwards (has {forwards})"
            )

    # Absolute minimums apply whatever the formation string says.
    if defenders < 3:
        errors.append("Must have at least 3 defenders")
    if midfielders < 2:
        errors.append("Must have at least 2 midfielders")
    if forwards < 1:
        errors.append("Must have at least 1 forward")

    return _result(errors)


def validate_captains(
    captain: str, vice_captain: str, starting_xi: Sequence[str]
) -> CheckResult:
    errors: list[str] = []

    if not captain:
        errors.append("Captain must be selected")
    elif captain not in starting_xi:
        errors.append("Captain must be in starting XI")

    if not vice_captain:
        errors.append("Vice-captain must be selected")
    elif vice_captain not in starting_xi:
        errors.append("Vice-captain must be in starting XI")

    if captain == vice_captain:
        errors.append("Captain and vice-captain must be different players")

    return _result(errors)


def _current_gameweek(rules: GameRules, gameweek: int | None) -> int:
    if gameweek is not None:
        return gameweek
    return rules.season.current_gameweek or 1


def _mystery_revealed(rules: GameRules, today: date | None) -> bool:
    reveal = parse_datetime(rules.chips.mystery.reveal_date).date()
    return (today or date.today()) >= reveal


def is_chip_available(
    team: Team,
    chip: str,
    rules: GameRules,
    *,
    gameweek: int | None = None,
    today: date | None = None,
) -> bool:
    """Return whether *chip* may still be played by *team*."""
    used = team.chips
    if chip == WILDCARD:
        if _current_gameweek(rules, gameweek) <= rules.chips.wildcard.first_half_deadline:
            return not used.wildcard1
        return not used.wildcard2
    if chip == FREE_HIT:
        return not used.free_hit
    if chip == TRIPLE_CAPTAIN:
        return not used.triple_captain
    if chip == BENCH_BOOST:
        return not used.bench_boost
    if chip == MYSTERY:
        return _mystery_revealed(rules, today) and not used.mystery
    return False


def available_chips(
    team: Team,
    rules: GameRules,
    *,
    gameweek: int | None = None,
    today: date | None = None,
) -> list[str]:
    return [
        chip
        for chip in CHIP_NAMES
        if is_chip_available(team, chip, rules, gameweek=gameweek, today=today)
    ]


def validate_chip_usage(
    team: Team,
    rules: GameRules,
    *,
    gameweek: int | None = None,
    today: date | None = None,
) -> CheckResult:
    """Informational: list the chips that can still be played."""
    chips = available_chips(team, rules, gameweek=gameweek, today=today)
    details = f"Available: {', '.join(chips)}" if chips else "No chips available"
    return _result([], details)


def validate_transfer_limits(
    transfer_count: int,
    free_transfers: int,
    rules: GameRules,
    chip: str | None = None,
) -> CheckResult:
    """Price a batch of transfers and enforce the per-gameweek cap."""
    if chip in UNLIMITED_TRANSFER_CHIPS:
        return CheckResult(valid=True, cost=0, details=f"{chip} active: no cost")

    errors: list[str] = []
    cap = rules.transfers.max_per_gameweek
    if transfer_count > cap:
        errors.append(f"Too many transfers: {transfer_count} (max {cap})")

    extra = max(0, transfer_count - free_transfers)
    cost = extra * rules.transfers.cost_per_extra
    return CheckResult(
        valid=not errors,
        errors=errors,
        cost=cost,
        details=f"{free_transfers} free, cost {cost} pts",
    )


__all__ = [
    "BENCH_BOOST",
    "CHIP_NAMES",
    "FREE_HIT",
    "MYSTERY",
    "TRIPLE_CAPTAIN",
    "UNLIMITED_TRANSFER_CHIPS",
    "WILDCARD",
    "available_chips",
    "is_chip_available",
    "parse_formation",
    "validate_budget",
    "validate_captains",
    "validate_chip_usage",
    "validate_formation",
    "validate_squad_composition",
    "validate_starting_xi",
    "validate_team_limits",
    "validate_transfer_limits",
]
