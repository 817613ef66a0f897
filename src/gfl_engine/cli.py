"""Command-line interface for validating, scoring and managing fantasy teams."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import TypeAdapter, ValidationError

from .config import Settings
from .errors import GFLError
from .leagues import LeagueService
from .players import BUDGET_SPLITS, PlayerCatalog, SquadStrategy
from .rules import GameRules, RulesRepository
from .scoring import ActiveChips, calculate_team_gameweek_points
from .storage import LeagueStore, TeamStore
from .teams import DEFAULT_FORMATION, new_team
from .transfers import execute_transfer, validate_transfer
from .types import LeagueType, Player, PlayerGameweekStats, Team, ValidationIssue
from .validation import auto_fix, available_chips, formation_issue, run_all_checks, validate_team
from .validation.squad import BENCH_BOOST, CHIP_NAMES, TRIPLE_CAPTAIN

LogLevel = Literal["info", "success", "warning", "error", "debug"]


class LogCallback(Protocol):
    def __call__(self, message: str, level: LogLevel = ...) -> None: ...


_STATS_LIST = TypeAdapter(list[PlayerGameweekStats])


# =============================================================================
# Options
# =============================================================================


@dataclass(slots=True)
class CommonOptions:
    data_root: Path | None = None
    verbose: bool = False
    json: bool = False


@dataclass(slots=True)
class ValidateOptions(CommonOptions):
    username: str | None = None
    fix: bool = False


@dataclass(slots=True)
class ScoreOptions(CommonOptions):
    username: str = ""
    stats: Path = Path("stats.json")
    gameweek: int | None = None
    chip: str | None = None
    save: bool = False


@dataclass(slots=True)
class TransferOptions(CommonOptions):
    username: str = ""
    players_out: list[str] = field(default_factory=list)
    players_in: list[str] = field(default_factory=list)
    gameweek: int = 1
    chip: str | None = None
    dry_run: bool = False


@dataclass(slots=True)
class ChipOptions(CommonOptions):
    username: str = ""
    gameweek: int | None = None


@dataclass(slots=True)
class HistoryOptions(CommonOptions):
    username: str = ""


@dataclass(slots=True)
class StandingsOptions(CommonOptions):
    league: str = ""


@dataclass(slots=True)
class CreateTeamOptions(CommonOptions):
    username: str = ""
    team_name: str = ""
    budget: float | None = None
    strategy: SquadStrategy = "balanced"
    formation: str = DEFAULT_FORMATION
    force: bool = False


@dataclass(slots=True)
class LeagueCreateOptions(CommonOptions):
    username: str = ""
    name: str = ""
    league_type: LeagueType = "classic"
    public: bool = False


@dataclass(slots=True)
class LeagueJoinOptions(CommonOptions):
    username: str = ""
    league: str = ""
    code: str | None = None


@dataclass(slots=True)
class LeagueUpdateOptions(CommonOptions):
    league: str = ""
    gameweek: int = 1
    stats_dir: Path | None = None


def _common(args: argparse.Namespace) -> dict[str, Any]:
    return {"data_root": args.data_root, "verbose": args.verbose, "json": args.json}


# =============================================================================
# Parser
# =============================================================================


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--data-root",
        type=Path,
        default=None,
        help="Directory holding data/, teams/ and leagues/ (default: $GFL_HOME or cwd)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gfl",
        description="Validate, score and manage fantasy football teams",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser(
        "validate", help="Run every rule check against a team"
    )
    validate_parser.add_argument(
        "--username", help="Team owner (default: every team under teams/)"
    )
    validate_parser.add_argument(
        "--fix",
        action="store_true",
        help="Apply safe automatic fixes and save the team",
    )
    _add_common_arguments(validate_parser)

    score_parser = subparsers.add_parser(
        "score", help="Score a gameweek from a player stats file"
    )
    score_parser.add_argument("--username", required=True, help="Team owner")
    score_parser.add_argument(
        "--stats", type=Path, required=True, help="JSON list of player gameweek stats"
    )
    score_parser.add_argument("--gameweek", type=int, default=None, help="Gameweek number")
    score_parser.add_argument(
        "--chip",
        choices=(TRIPLE_CAPTAIN, BENCH_BOOST),
        default=None,
        help="Scoring chip played this gameweek",
    )
    score_parser.add_argument(
        "--save",
        action="store_true",
        help="Store the result in the team's gameweek history (needs --gameweek)",
    )
    _add_common_arguments(score_parser)

    transfer_parser = subparsers.add_parser(
        "transfer", help="Validate and execute transfers"
    )
    transfer_parser.add_argument("--username", required=True, help="Team owner")
    transfer_parser.add_argument(
        "--out", dest="players_out", nargs="+", required=True, help="Player ids leaving"
    )
    transfer_parser.add_argument(
        "--in", dest="players_in", nargs="+", required=True, help="Player ids arriving"
    )
    transfer_parser.add_argument("--gameweek", type=int, required=True, help="Gameweek number")
    transfer_parser.add_argument("--chip", choices=CHIP_NAMES, default=None, help="Chip to play")
    transfer_parser.add_argument(
        "--dry-run", action="store_true", help="Validate only; do not save anything"
    )
    _add_common_arguments(transfer_parser)

    chips_parser = subparsers.add_parser("chips", help="List the chips still available")
    chips_parser.add_argument("--username", required=True, help="Team owner")
    chips_parser.add_argument("--gameweek", type=int, default=None, help="Gameweek number")
    _add_common_arguments(chips_parser)

    history_parser = subparsers.add_parser("history", help="Show transfer history")
    history_parser.add_argument("--username", required=True, help="Team owner")
    _add_common_arguments(history_parser)

    standings_parser = subparsers.add_parser("standings", help="Show league standings")
    standings_parser.add_argument("--league", required=True, help="League id")
    _add_common_arguments(standings_parser)

    create_parser = subparsers.add_parser(
        "create-team", help="Build a new squad from the player catalog"
    )
    create_parser.add_argument("--username", required=True, help="Team owner")
    create_parser.add_argument("--name", dest="team_name", required=True, help="Team name")
    create_parser.add_argument(
        "--budget", type=float, default=None, help="Budget in millions (default: rules)"
    )
    create_parser.add_argument(
        "--strategy",
        choices=tuple(BUDGET_SPLITS),
        default="balanced",
        help="How the budget is split across positions",
    )
    create_parser.add_argument(
        "--formation", default=DEFAULT_FORMATION, help="Starting formation"
    )
    create_parser.add_argument(
        "--force", action="store_true", help="Replace an existing team"
    )
    _add_common_arguments(create_parser)

    league_parser = subparsers.add_parser("league", help="Create, join and update leagues")
    league_subparsers = league_parser.add_subparsers(dest="league_command", required=True)

    league_create = league_subparsers.add_parser("create", help="Create a league")
    league_create.add_argument("--username", required=True, help="League creator")
    league_create.add_argument("--name", required=True, help="League name")
    league_create.add_argument(
        "--type",
        dest="league_type",
        choices=("classic", "head-to-head"),
        default="classic",
        help="League format",
    )
    league_create.add_argument(
        "--public", action="store_true", help="Allow joining without a code"
    )
    _add_common_arguments(league_create)

    league_join = league_subparsers.add_parser("join", help="Join a league")
    league_join.add_argument("--username", required=True, help="Joining manager")
    league_join.add_argument("--league", required=True, help="League id")
    league_join.add_argument("--code", default=None, help="Join code for private leagues")
    _add_common_arguments(league_join)

    league_update = league_subparsers.add_parser(
        "update", help="Recompute standings for a gameweek"
    )
    league_update.add_argument("--league", required=True, help="League id")
    league_update.add_argument("--gameweek", type=int, required=True, help="Gameweek number")
    league_update.add_argument(
        "--stats-dir",
        type=Path,
        default=None,
        help="Directory of <username>.json stats files (head-to-head leagues)",
    )
    _add_common_arguments(league_update)

    return parser


def _make_console_logger(verbose: bool) -> LogCallback:
    """Create a logging callback that writes user-facing events to the console."""

    prefixes: dict[LogLevel, str] = {
        "success": "✅ ",
        "warning": "⚠️ ",
        "error": "❌ ",
        "debug": "[debug] ",
    }

    def _log(message: str, level: LogLevel = "info") -> None:
        if level == "debug" and not verbose:
            return
        prefix = prefixes.get(level, "")
        stream = sys.stderr if level == "error" else sys.stdout
        print(f"{prefix}{message}", file=stream)

    return _log


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


@dataclass(slots=True)
class _Context:
    settings: Settings
    rules: GameRules
    teams: TeamStore
    log: LogCallback

    @classmethod
    def build(cls, options: CommonOptions) -> _Context:
        settings = Settings.from_env(options.data_root)
        return cls(
            settings=settings,
            rules=RulesRepository(settings.rules_path).load_rules(),
            teams=TeamStore(settings.teams_dir),
            log=_make_console_logger(options.verbose),
        )

    def require_team(self, username: str) -> Team:
        team = self.teams.load_team(username)
        if team is None:
            raise GFLError(f"No team found for {username}")
        return team

    def league_service(self) -> LeagueService:
        return LeagueService(LeagueStore(self.settings.leagues_dir), self.teams, self.rules)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


# =============================================================================
# Commands
# =============================================================================


def _usernames(ctx: _Context, username: str | None) -> list[str]:
    if username:
        return [username]
    teams_dir = ctx.settings.teams_dir
    if not teams_dir.is_dir():
        return []
    return sorted(p.name for p in teams_dir.iterdir() if (p / "team.json").is_file())


def _run_validate(options: ValidateOptions) -> int:
    ctx = _Context.build(options)
    usernames = _usernames(ctx, options.username)
    if not usernames:
        ctx.log("No teams found to validate", "warning")
        return 1

    all_valid = True
    report: dict[str, Any] = {}
    for username in usernames:
        team = ctx.require_team(username)
        result = validate_team(team, ctx.rules)
        checks = run_all_checks(team, ctx.rules)
        valid = result.valid and all(check.valid for check in checks.values())

        fixes: list[str] = []
        if options.fix and not valid:
            issues: list[ValidationIssue] = list(result.errors)
            bad_formation = formation_issue(team, ctx.rules)
            if bad_formation is not None:
                issues.append(bad_formation)
            outcome = auto_fix(team, issues)
            if outcome.changed:
                team = ctx.teams.save_team(username, outcome.team)
                fixes = outcome.fixed
                result = validate_team(team, ctx.rules)
                checks = run_all_checks(team, ctx.rules)
                valid = result.valid and all(check.valid for check in checks.values())

        all_valid = all_valid and valid
        if options.json:
            report[username] = {
                "valid": valid,
                "checks": {name: check.model_dump() for name, check in checks.items()},
                "warnings": [w.model_dump() for w in result.warnings],
                "fixed": fixes,
            }
            continue

        ctx.log(f"{username} ({team.manager.team_name})")
        for name, check in checks.items():
            if check.valid:
                detail = f" - {check.details}" if check.details else ""
                ctx.log(f"  {name}{detail}", "success")
            else:
                ctx.log(f"  {name}: {'; '.join(check.errors)}", "error")
        for warning in result.warnings:
            ctx.log(f"  {warning.message}", "warning")
        for fix in fixes:
            ctx.log(f"  Fixed: {fix}", "success")

    if options.json:
        _print_json(report)
    return 0 if all_valid else 1


def _load_stats(path: Path) -> list[PlayerGameweekStats]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return _STATS_LIST.validate_python(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise GFLError(f"Could not read stats file {path}: {exc}") from exc


def _run_score(options: ScoreOptions) -> int:
    ctx = _Context.build(options)
    team = ctx.require_team(options.username)
    stats = _load_stats(options.stats)
    chips = ActiveChips(
        triple_captain=options.chip == TRIPLE_CAPTAIN,
        bench_boost=options.chip == BENCH_BOOST,
    )
    result = calculate_team_gameweek_points(
        team.all_players(),
        stats,
        team.captain,
        team.vice_captain,
        team.starting_xi,
        team.bench,
        chips=chips,
        rules=ctx.rules,
    )

    if options.save:
        if options.gameweek is None:
            ctx.log("--save needs --gameweek", "error")
            return 1
        ctx.teams.save_gameweek_history(
            options.username,
            options.gameweek,
            {
                "gameweek": options.gameweek,
                "points": result.total_points,
                "benchPoints": result.bench_points,
                "chip": options.chip,
            },
        )

    if options.json:
        _print_json(result.model_dump(mode="json", by_alias=True))
        return 0

    label = f"Gameweek {options.gameweek}" if options.gameweek else "Gameweek"
    ctx.log(f"{label}: {result.total_points} pts (bench {result.bench_points})", "success")
    for entry in result.player_points:
        marker = f" x{entry.multiplier}" if entry.multiplier > 1 else ""
        ctx.log(f"  {entry.player_name:<24} {entry.final_points:>3}{marker}")
    for sub in result.substitutions:
        ctx.log(f"  Auto-sub: {sub.out_id} -> {sub.in_id}", "debug")
    return 0


def _resolve_players(
    ids: Sequence[str], lookup: Callable[[str], Player | None]
) -> list[Player]:
    players: list[Player] = []
    missing: list[str] = []
    for player_id in ids:
        player = lookup(player_id)
        if player is None:
            missing.append(player_id)
        else:
            players.append(player)
    if missing:
        raise GFLError(f"Unknown player id(s): {', '.join(missing)}")
    return players


def _run_transfer(options: TransferOptions) -> int:
    ctx = _Context.build(options)
    team = ctx.require_team(options.username)
    catalog = PlayerCatalog(ctx.settings.players_path)

    def _current(player_id: str) -> Player | None:
        return catalog.get_by_id(player_id) or team.squad.find(player_id)

    players_out = _resolve_players(options.players_out, _current)
    players_in = _resolve_players(options.players_in, catalog.get_by_id)

    validation = validate_transfer(
        team, players_out, players_in, options.gameweek, options.chip, ctx.rules
    )
    if options.json and (options.dry_run or not validation.valid):
        _print_json(validation.model_dump(mode="json", by_alias=True))
        return 0 if validation.valid else 1

    for warning in validation.warnings:
        ctx.log(warning, "warning")
    if not validation.valid:
        for error in validation.errors:
            ctx.log(error, "error")
        return 1
    if options.dry_run:
        ctx.log(
            f"Transfers valid: cost {validation.cost} pts, "
            f"£{validation.budget_after:.1f}m remaining",
            "success",
        )
        return 0

    outcome = execute_transfer(
        team, players_out, players_in, options.gameweek, options.chip, ctx.rules
    )
    ctx.teams.save_team(options.username, outcome.team)
    ctx.teams.save_transfer_record(options.username, outcome.record)

    if options.json:
        _print_json(outcome.record.model_dump(mode="json", by_alias=True))
        return 0
    for pair in outcome.record.transfers:
        ctx.log(f"{pair.player_out.name} -> {pair.player_in.name}", "success")
    ctx.log(
        f"Cost {outcome.record.cost} pts, £{outcome.record.budget_after:.1f}m remaining"
    )
    return 0


def _run_chips(options: ChipOptions) -> int:
    ctx = _Context.build(options)
    team = ctx.require_team(options.username)
    chips = available_chips(team, ctx.rules, gameweek=options.gameweek)
    if options.json:
        _print_json({"available": chips})
    elif chips:
        for chip in chips:
            ctx.log(chip, "success")
    else:
        ctx.log("No chips available", "warning")
    return 0


def _run_history(options: HistoryOptions) -> int:
    ctx = _Context.build(options)
    records = ctx.teams.get_transfer_history(options.username)
    if options.json:
        _print_json([r.model_dump(mode="json", by_alias=True) for r in records])
        return 0
    if not records:
        ctx.log("No transfers made yet")
        return 0
    for record in records:
        chip = f" [{record.chip}]" if record.chip else ""
        ctx.log(f"Gameweek {record.gameweek}{chip}: cost {record.cost} pts")
        for pair in record.transfers:
            ctx.log(f"  {pair.player_out.name} -> {pair.player_in.name}")
    return 0


def _run_standings(options: StandingsOptions) -> int:
    ctx = _Context.build(options)
    league = LeagueStore(ctx.settings.leagues_dir).load_league(options.league)
    if league is None:
        ctx.log(f"League not found: {options.league}", "error")
        return 1
    if options.json:
        _print_json([s.model_dump(mode="json", by_alias=True) for s in league.standings])
        return 0
    ctx.log(f"{league.name} ({league.type})")
    for standing in league.standings:
        ctx.log(
            f"{standing.rank:>3}. {standing.team_name:<24} "
            f"{standing.manager:<16} {standing.total_points:>6}"
        )
    return 0


def _run_create_team(options: CreateTeamOptions) -> int:
    ctx = _Context.build(options)
    if ctx.teams.load_team(options.username) is not None and not options.force:
        raise GFLError(
            f"Team already exists for {options.username} (use --force to replace it)"
        )

    budget = options.budget if options.budget is not None else ctx.rules.budget.initial
    catalog = PlayerCatalog(ctx.settings.players_path)
    recommended = catalog.recommended_squad(budget, options.strategy, ctx.rules)
    team = new_team(
        options.username,
        options.team_name,
        recommended.squad,
        budget=budget,
        formation=options.formation,
        rules=ctx.rules,
    )

    result = validate_team(team, ctx.rules)
    if not result.valid:
        if options.json:
            _print_json(result.model_dump(mode="json"))
        for error in result.errors:
            ctx.log(error.message, "error")
        return 1

    team = ctx.teams.save_team(options.username, team)
    if options.json:
        _print_json(team.model_dump(mode="json", by_alias=True))
        return 0
    ctx.log(f'Team "{team.manager.team_name}" created for {options.username}', "success")
    ctx.log(f"Budget spent: £{team.budget.spent:.1f}m, remaining £{team.budget.remaining:.1f}m")
    ctx.log(f"Captain: {team.captain}, vice-captain: {team.vice_captain}")
    return 0


def _run_league_create(options: LeagueCreateOptions) -> int:
    ctx = _Context.build(options)
    league = ctx.league_service().create_league(
        options.name, options.username, options.league_type, public=options.public
    )
    if options.json:
        _print_json(league.model_dump(mode="json", by_alias=True))
        return 0
    ctx.log(f"Created {league.type} league {league.name} ({league.id})", "success")
    if league.settings.join_code:
        ctx.log(f"Join code: {league.settings.join_code}")
    return 0


def _run_league_join(options: LeagueJoinOptions) -> int:
    ctx = _Context.build(options)
    league = ctx.league_service().join_league(options.league, options.username, options.code)
    if options.json:
        _print_json(league.model_dump(mode="json", by_alias=True))
        return 0
    ctx.log(f"{options.username} joined {league.name} ({len(league.members)} members)", "success")
    return 0


def _load_manager_stats(
    stats_dir: Path, members: Sequence[str]
) -> dict[str, list[PlayerGameweekStats]]:
    stats: dict[str, list[PlayerGameweekStats]] = {}
    for member in members:
        path = stats_dir / f"{member}.json"
        if path.is_file():
            stats[member] = _load_stats(path)
    return stats


def _run_league_update(options: LeagueUpdateOptions) -> int:
    ctx = _Context.build(options)
    service = ctx.league_service()
    league = service.leagues.load_league(options.league)
    if league is None:
        raise GFLError(f"League not found: {options.league}")

    if league.type == "head-to-head":
        if options.stats_dir is None:
            raise GFLError("Head-to-head leagues need --stats-dir")
        stats = _load_manager_stats(options.stats_dir, league.members)
        league = service.process_head_to_head_gameweek(
            options.league, options.gameweek, stats
        )
    else:
        league = service.update_standings(options.league, options.gameweek)

    if options.json:
        _print_json([s.model_dump(mode="json", by_alias=True) for s in league.standings])
        return 0
    ctx.log(f"{league.name}: standings updated for gameweek {options.gameweek}", "success")
    for standing in league.standings:
        ctx.log(f"{standing.rank:>3}. {standing.manager:<16} {standing.total_points:>6}")
    return 0


def _run_league(args: argparse.Namespace) -> int:
    if args.league_command == "create":
        return _run_league_create(
            LeagueCreateOptions(
                **_common(args),
                username=args.username,
                name=args.name,
                league_type=args.league_type,
                public=args.public,
            )
        )
    if args.league_command == "join":
        return _run_league_join(
            LeagueJoinOptions(
                **_common(args), username=args.username, league=args.league, code=args.code
            )
        )
    return _run_league_update(
        LeagueUpdateOptions(
            **_common(args),
            league=args.league,
            gameweek=args.gameweek,
            stats_dir=args.stats_dir,
        )
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "validate":
            return _run_validate(
                ValidateOptions(**_common(args), username=args.username, fix=args.fix)
            )
        if args.command == "score":
            return _run_score(
                ScoreOptions(
                    **_common(args),
                    username=args.username,
                    stats=args.stats,
                    gameweek=args.gameweek,
                    chip=args.chip,
                    save=args.save,
                )
            )
        if args.command == "transfer":
            return _run_transfer(
                TransferOptions(
                    **_common(args),
                    username=args.username,
                    players_out=args.players_out,
                    players_in=args.players_in,
                    gameweek=args.gameweek,
                    chip=args.chip,
                    dry_run=args.dry_run,
                )
            )
        if args.command == "chips":
            return _run_chips(
                ChipOptions(**_common(args), username=args.username, gameweek=args.gameweek)
            )
        if args.command == "history":
            return _run_history(HistoryOptions(**_common(args), username=args.username))
        if args.command == "standings":
            return _run_standings(StandingsOptions(**_common(args), league=args.league))
        if args.command == "create-team":
            return _run_create_team(
                CreateTeamOptions(
                    **_common(args),
                    username=args.username,
                    team_name=args.team_name,
                    budget=args.budget,
                    strategy=args.strategy,
                    formation=args.formation,
                    force=args.force,
                )
            )
        if args.command == "league":
            return _run_league(args)
    except GFLError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command {args.command}")
    return 1


if __name__ == "__main__":  # pragma: no cover - entry point
    raise SystemExit(main())
