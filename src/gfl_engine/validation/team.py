"""Composite team validation and the opt-in auto-fix policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from ..rules import GameRules
from ..types import (
    CheckResult,
    SquadInfo,
    Team,
    ValidationInfo,
    ValidationIssue,
    ValidationResult,
    ValidationWarning,
)
from .squad import (
    validate_budget,
    validate_captains,
    validate_chip_usage,
    validate_formation,
    validate_squad_composition,
    validate_starting_xi,
    validate_team_limits,
    validate_transfer_limits,
)

logger = logging.getLogger(__name__)

LOW_BUDGET_THRESHOLD = 1.0
DEFAULT_FORMATION = "4-4-2"

BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
INVALID_BUDGET = "INVALID_BUDGET"
INVALID_SQUAD_COMPOSITION = "INVALID_SQUAD_COMPOSITION"
TEAM_LIMIT_EXCEEDED = "TEAM_LIMIT_EXCEEDED"
CAPTAIN_NOT_IN_XI = "CAPTAIN_NOT_IN_XI"
VICE_CAPTAIN_NOT_IN_XI = "VICE_CAPTAIN_NOT_IN_XI"
CAPTAIN_VICE_SAME = "CAPTAIN_VICE_SAME"
INVALID_FORMATION = "INVALID_FORMATION"
LOW_BUDGET = "LOW_BUDGET"

AUTO_FIXABLE = frozenset({CAPTAIN_NOT_IN_XI, INVALID_FORMATION})


def _budget_issues(team: Team, rules: GameRules) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    spent = team.budget.spent
    cap = rules.budget.max
    if spent > cap:
        issues.append(
            ValidationIssue(
                code=BUDGET_EXCEEDED,
                message=f"Budget exceeded: £{spent}m > £{cap}m",
                field="budget.spent",
                value=spent,
                fix=f"Remove players worth £{spent - cap:.1f}m",
            )
        )
    if spent < 0:
        issues.append(
            ValidationIssue(
                code=INVALID_BUDGET,
                message="Invalid budget: Cannot be negative",
                field="budget.spent",
                value=spent,
            )
        )
    return issues


def _composition_issues(team: Team, rules: GameRules) -> list[ValidationIssue]:
    composition = team.squad.composition()
    issues = [
        ValidationIssue(
            code=INVALID_SQUAD_COMPOSITION,
            message=f"{position}: {composition[position]} players (need {count})",
            field=f"squad.{position.lower()}",
            value=composition[position],
        )
        for position, count in rules.squad.composition.model_dump().items()
        if composition[position] != count
    ]
    total = sum(composition.values())
    if total != rules.squad.size:
        issues.append(
            ValidationIssue(
                code=INVALID_SQUAD_COMPOSITION,
                message=f"Squad size: {total} players (need {rules.squad.size})",
                field="squad",
                value=total,
            )
        )
    return issues


def _club_issues(team: Team, rules: GameRules) -> list[ValidationIssue]:
    limit = rules.squad.team_limit
    counts: dict[str, int] = {}
    for player in team.all_players():
        counts[player.team] = counts.get(player.team, 0) + 1
    return [
        ValidationIssue(
            code=TEAM_LIMIT_EXCEEDED,
            message=f"Too many players from {club}: {count} > {limit}",
            field="squad",
            value=count,
        )
        for club, count in counts.items()
        if count > limit
    ]


def _captain_issues(team: Team) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if team.captain not in team.starting_xi:
        issues.append(
            ValidationIssue(
                code=CAPTAIN_NOT_IN_XI,
                message="Captain must be in starting XI",
                field="captain",
                value=team.captain,
            )
        )
    if team.vice_captain not in team.starting_xi:
        issues.append(
            ValidationIssue(
                code=VICE_CAPTAIN_NOT_IN_XI,
                message="Vice-captain must be in starting XI",
                field="viceCaptain",
                value=team.vice_captain,
            )
        )
    if team.captain and team.captain == team.vice_captain:
        issues.append(
            ValidationIssue(
                code=CAPTAIN_VICE_SAME,
                message="Captain and vice-captain must be different players",
                field="viceCaptain",
                value=team.vice_captain,
            )
        )
    return issues


def validate_team(team: Team, rules: GameRules) -> ValidationResult:
    """Run the hard gate: budget, composition, club limit and captaincy."""

    errors = [
        *_budget_issues(team, rules),
        *_composition_issues(team, rules),
        *_club_issues(team, rules),
        *_captain_issues(team),
    ]

    warnings: list[ValidationWarning] = []
    if team.budget.remaining < LOW_BUDGET_THRESHOLD:
        warnings.append(
            ValidationWarning(
                code=LOW_BUDGET,
                message=f"Low remaining budget: £{team.budget.remaining}m",
                suggestion="Consider keeping some budget for future transfers",
            )
        )

    return ValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        info=ValidationInfo(
            budget=team.budget,
            squad=SquadInfo(valid=not errors, composition=team.squad.composition()),
            formation=team.formation,
        ),
    )


def formation_issue(team: Team, rules: GameRules) -> ValidationIssue | None:
    """Return an ``INVALID_FORMATION`` issue when the formation is not allowed."""

    check = validate_formation(team.formation, rules)
    if check.valid:
        return None
    return ValidationIssue(
        code=INVALID_FORMATION,
        message=check.errors[0],
        field="formation",
        value=team.formation,
    )


def run_all_checks(
    team: Team,
    rules: GameRules,
    *,
    gameweek: int | None = None,
    today: date | None = None,
) -> dict[str, CheckResult]:
    """Run every independent check, keyed by display name."""

    players = team.all_players()
    return {
        "Budget": validate_budget(team, rules),
        "Squad composition": validate_squad_composition(team, rules),
        "Team limits": validate_team_limits(players, rules),
        "Formation": validate_formation(team.formation, rules),
        "Captain selection": validate_captains(
            team.captain, team.vice_captain, team.starting_xi
        ),
        "Starting XI": validate_starting_xi(team.formation, team.starting_xi, players),
        "Chip usage": validate_chip_usage(team, rules, gameweek=gameweek, today=today),
        "Transfer limits": validate_transfer_limits(
            team.transfers.made, team.transfers.free, rules
        ),
    }


@dataclass(slots=True)
class AutoFixOutcome:
    """Result of :func:`auto_fix`; ``team`` is a new object when anything changed."""

    team: Team
    fixed: list[str] = field(default_factory=list)
    unfixable: list[ValidationIssue] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.fixed)


def auto_fix(
    team: Team,
    issues: list[ValidationIssue],
    *,
    default_formation: str = DEFAULT_FORMATION,
    now: datetime | None = None,
) -> AutoFixOutcome:
    """Apply the fixes that are safe to make without asking the manager."""

    updates: dict[str, object] = {}
    fixed: list[str] = []
    unfixable: list[ValidationIssue] = []

    for issue in issues:
        if issue.code == CAPTAIN_NOT_IN_XI and team.starting_xi:
            updates["captain"] = team.starting_xi[0]
            fixed.append("Captain set to first player in starting XI")
        elif issue.code == INVALID_FORMATION:
            updates["formation"] = default_formation
            fixed.append(f"Formation set to {default_formation}")
        else:
            unfixable.append(issue)

    if not updates:
        return AutoFixOutcome(team=team, unfixable=unfixable)

    stamp = (now or datetime.now(UTC)).isoformat()
    metadata = team.metadata.model_copy(update={"last_modified": stamp})
    updates["metadata"] = metadata
    new_team = team.model_copy(update=updates, deep=True)
    for message in fixed:
        logger.info("Auto-fix: %s", message)
    return AutoFixOutcome(team=new_team, fixed=fixed, unfixable=unfixable)


__all__ = [
    "AUTO_FIXABLE",
    "BUDGET_EXCEEDED",
    "CAPTAIN_NOT_IN_XI",
    "CAPTAIN_VICE_SAME",
    "DEFAULT_FORMATION",
    "INVALID_BUDGET",
    "INVALID_FORMATION",
    "INVALID_SQUAD_COMPOSITION",
    "LOW_BUDGET",
    "TEAM_LIMIT_EXCEEDED",
    "VICE_CAPTAIN_NOT_IN_XI",
    "AutoFixOutcome",
    "auto_fix",
    "formation_issue",
    "run_all_checks",
    "validate_team",
]
