"""Validation checks for squads and teams."""

from .squad import (
    CHIP_NAMES,
    available_chips,
    is_chip_available,
    parse_formation,
    validate_budget,
    validate_captains,
    validate_chip_usage,
    validate_formation,
    validate_squad_composition,
    validate_starting_xi,
    validate_team_limits,
    validate_transfer_limits,
)
from .team import (
    AutoFixOutcome,
    auto_fix,
    formation_issue,
    run_all_checks,
    validate_team,
)

__all__ = [
    "CHIP_NAMES",
    "AutoFixOutcome",
    "auto_fix",
    "available_chips",
    "formation_issue",
    "is_chip_available",
    "parse_formation",
    "run_all_checks",
    "validate_budget",
    "validate_captains",
    "validate_chip_usage",
    "validate_formation",
    "validate_squad_composition",
    "validate_starting_xi",
    "validate_team",
    "validate_team_limits",
    "validate_transfer_limits",
]
