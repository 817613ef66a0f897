"""Filesystem layout and environment configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

ENV_PREFIX = "GFL_"

_ENV_LOADED: set[Path] = set()


def _load_env_file(path: Path) -> None:
    """Copy ``GFL_*`` assignments from *path* into ``os.environ``.

    Variables already set in the environment win.
    """

    if not path.is_file():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key.startswith(ENV_PREFIX):
            continue
        os.environ.setdefault(key, value.strip().strip("'\""))


def _ensure_env_loaded(root: Path) -> None:
    """Load ``root/.env`` once per interpreter session."""

    resolved = root.resolve()
    if resolved in _ENV_LOADED:
        return
    _load_env_file(resolved / ".env")
    _ENV_LOADED.add(resolved)


@dataclass(frozen=True, slots=True)
class Settings:
    """Where rules, players, teams and leagues live on disk."""

    data_root: Path = field(default_factory=Path.cwd)
    rules_file: Path | None = None
    players_file: Path | None = None

    @property
    def rules_path(self) -> Path:
        return self.rules_file or self.data_root / "data" / "rules" / "rules.yaml"

    @property
    def players_path(self) -> Path:
        return self.players_file or self.data_root / "data" / "players" / "players.json"

    @property
    def teams_dir(self) -> Path:
        return self.data_root / "teams"

    @property
    def leagues_dir(self) -> Path:
        return self.data_root / "leagues"

    @classmethod
    def from_env(cls, data_root: Path | None = None) -> Settings:
        """Build settings from ``GFL_*`` environment variables.

        An explicit *data_root* beats ``GFL_HOME``; a ``.env`` file in the
        resolved root is read first.
        """

        root = data_root or Path(os.environ.get("GFL_HOME") or Path.cwd())
        _ensure_env_loaded(root)

        rules = os.environ.get("GFL_RULES_PATH")
        players = os.environ.get("GFL_PLAYERS_PATH")
        return cls(
            data_root=root,
            rules_file=Path(rules) if rules else None,
            players_file=Path(players) if players else None,
        )


__all__ = ["ENV_PREFIX", "Settings"]
