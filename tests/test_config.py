"""Tests for settings resolution and ``.env`` loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from gfl_engine import config
from gfl_engine.config import Settings

if TYPE_CHECKING:
    from pytest import MonkeyPatch


def test_default_layout(tmp_path: Path) -> None:
    settings = Settings(data_root=tmp_path)

    assert settings.rules_path == tmp_path / "data" / "rules" / "rules.yaml"
    assert settings.players_path == tmp_path / "data" / "players" / "players.json"
    assert settings.teams_dir == tmp_path / "teams"
    assert settings.leagues_dir == tmp_path / "leagues"


def test_environment_overrides(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("GFL_HOME", str(tmp_path))
    monkeypatch.setenv("GFL_RULES_PATH", str(tmp_path / "custom.yaml"))
    monkeypatch.delenv("GFL_PLAYERS_PATH", raising=False)

    settings = Settings.from_env()

    assert settings.data_root == tmp_path
    assert settings.rules_path == tmp_path / "custom.yaml"
    assert settings.players_path == tmp_path / "data" / "players" / "players.json"


def test_explicit_root_beats_environment(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("GFL_HOME", "/nowhere")
    monkeypatch.delenv("GFL_RULES_PATH", raising=False)
    monkeypatch.delenv("GFL_PLAYERS_PATH", raising=False)

    assert Settings.from_env(tmp_path).data_root == tmp_path


def test_env_file_is_loaded_without_overriding(
    tmp_path: Path, monkeypatch: MonkeyPatch
) -> None:
    (tmp_path / ".env").write_text(
        "# comment\n"
        "GFL_PLAYERS_PATH='players/list.json'\n"
        "GFL_TEST_EXISTING=from-file\n"
        "OTHER_TOOL_TOKEN=secret\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(config, "_ENV_LOADED", set())
    monkeypatch.delenv("GFL_PLAYERS_PATH", raising=False)
    monkeypatch.delenv("GFL_RULES_PATH", raising=False)
    monkeypatch.delenv("OTHER_TOOL_TOKEN", raising=False)
    monkeypatch.setenv("GFL_TEST_EXISTING", "from-env")

    settings = Settings.from_env(tmp_path)

    assert settings.players_path == Path("players/list.json")
    assert os.environ["GFL_TEST_EXISTING"] == "from-env"
    assert "OTHER_TOOL_TOKEN" not in os.environ
