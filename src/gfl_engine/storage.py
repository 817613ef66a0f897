"""JSON persistence for teams, transfer history, gameweek history and leagues.

Missing or unreadable documents read as "no data"; failed writes raise
:class:`StorageError`.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, ValidationError

from .errors import GFLError
from .types import CupDraw, League, Team, TransferRecord

logger = logging.getLogger(__name__)


class StorageError(GFLError):
    """Raised when a document cannot be written."""


def _read_json(path: Path) -> Any | None:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return None


def _write_json(path: Path, payload: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Failed to write {path}: {exc}") from exc


def _dump(model: BaseModel) -> Any:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


class TeamStore:
    """Team documents live at ``<teams_dir>/<username>/team.json``."""

    def __init__(self, teams_dir: Path | str) -> None:
        self.teams_dir = Path(teams_dir)

    def _user_dir(self, username: str) -> Path:
        return self.teams_dir / username

    def load_team(self, username: str) -> Team | None:
        payload = _read_json(self._user_dir(username) / "team.json")
        if payload is None:
            return None
        try:
            return Team.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed team document for %s: %s", username, exc)
            return None

    def save_team(
        self, username: str, team: Team, *, now: datetime | None = None
    ) -> Team:
        """Write *team* and return the saved copy with ``lastModified`` stamped."""

        stamp = (now or datetime.now(UTC)).isoformat()
        saved = team.model_copy(
            update={
                "metadata": team.metadata.model_copy(update={"last_modified": stamp})
            }
        )
        _write_json(self._user_dir(username) / "team.json", _dump(saved))
        return saved

    def save_transfer_record(self, username: str, record: TransferRecord) -> Path:
        path = (
            self._user_dir(username) / "transfers" / f"gameweek-{record.gameweek}.json"
        )
        _write_json(path, _dump(record))
        return path

    def get_transfer_history(self, username: str) -> list[TransferRecord]:
        """Return every transfer record for *username*, newest gameweek first."""

        transfers_dir = self._user_dir(username) / "transfers"
        if not transfers_dir.is_dir():
            return []
        records: list[TransferRecord] = []
        for path in sorted(transfers_dir.glob("*.json")):
            payload = _read_json(path)
            if payload is None:
                continue
            try:
                records.append(TransferRecord.model_validate(payload))
            except ValidationError as exc:
                logger.warning("Skipping malformed transfer record %s: %s", path, exc)
        return sorted(records, key=lambda r: r.gameweek, reverse=True)

    def get_gameweek_history(
        self, username: str, gameweek: int
    ) -> dict[str, Any] | None:
        path = self._user_dir(username) / "history" / f"gameweek-{gameweek}.json"
        return cast("dict[str, Any] | None", _read_json(path))

    def save_gameweek_history(
        self, username: str, gameweek: int, payload: dict[str, Any]
    ) -> Path:
        path = self._user_dir(username) / "history" / f"gameweek-{gameweek}.json"
        _write_json(path, payload)
        return path


class LeagueStore:
    """League documents live at ``<leagues_dir>/<id>.json``; cup draws under ``cup/``."""

    def __init__(self, leagues_dir: Path | str) -> None:
        self.leagues_dir = Path(leagues_dir)

    def load_league(self, league_id: str) -> League | None:
        payload = _read_json(self.leagues_dir / f"{league_id}.json")
        if payload is None:
            return None
        try:
            return League.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed league document %s: %s", league_id, exc)
            return None

    def save_league(self, league: League) -> None:
        _write_json(self.leagues_dir / f"{league.id}.json", _dump(league))

    def list_leagues(self) -> list[League]:
        if not self.leagues_dir.is_dir():
            return []
        leagues = (self.load_league(path.stem) for path in sorted(self.leagues_dir.glob("*.json")))
        return [league for league in leagues if league is not None]

    def load_cup_draw(self, round_number: int) -> CupDraw | None:
        payload = _read_json(self.leagues_dir / "cup" / f"round-{round_number}.json")
        if payload is None:
            return None
        try:
            return CupDraw.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed cup draw for round %d: %s", round_number, exc)
            return None

    def save_cup_draw(self, draw: CupDraw) -> None:
        _write_json(self.leagues_dir / "cup" / f"round-{draw.round}.json", _dump(draw))

    def record_cup_winner(self, winner: str, *, now: datetime | None = None) -> None:
        stamp = (now or datetime.now(UTC)).isoformat()
        _write_json(
            self.leagues_dir / "cup" / "winner.json", {"winner": winner, "date": stamp}
        )


__all__ = ["LeagueStore", "StorageError", "TeamStore"]
