"""Tests for settings management."""

import json
import stat
from pathlib import Path

import pytest
from pydantic import ValidationError

from scriptflow.core.settings import (
    DEFAULT_MODEL,
    CompilerSettings,
    ScriptflowSettings,
    SettingsManager,
)


@pytest.fixture
def settings_manager(tmp_path: Path) -> SettingsManager:
    """Create a SettingsManager with temporary directory."""
    return SettingsManager(settings_path=tmp_path / ".scriptflow" / "settings.json")


class TestDefaults:
    def test_defaults_without_file(self, settings_manager: SettingsManager) -> None:
        settings = settings_manager.load()

        assert settings.llm.model == DEFAULT_MODEL
        assert settings.orchestrator.max_fix_attempts == 3
        assert settings.orchestrator.max_questions == 7
        assert settings.compiler.runtime_version == "V8"
        assert settings.catalog.extra_dirs == []

    def test_only_v8_runtime(self) -> None:
        with pytest.raises(ValidationError):
            CompilerSettings(runtime_version="RHINO")

    def test_fix_attempts_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ScriptflowSettings.model_validate({"orchestrator": {"max_fix_attempts": 11}})


class TestPersistence:
    def test_save_and_load(self, settings_manager: SettingsManager) -> None:
        settings = ScriptflowSettings()
        settings.llm.model = "gpt-4o-mini"

        settings_manager.save(settings)

        assert settings_manager.reload().llm.model == "gpt-4o-mini"

    def test_saved_file_is_private(self, settings_manager: SettingsManager) -> None:
        settings_manager.save(ScriptflowSettings())

        mode = settings_manager.settings_path.stat().st_mode
        assert stat.S_IMODE(mode) == 0o600

    def test_corrupt_file_falls_back_to_defaults(self, settings_manager: SettingsManager) -> None:
        settings_manager.settings_path.parent.mkdir(parents=True)
        settings_manager.settings_path.write_text("{not json")

        assert settings_manager.load() == ScriptflowSettings()

    def test_load_returns_copies(self, settings_manager: SettingsManager) -> None:
        first = settings_manager.load()
        first.llm.model = "changed"

        assert settings_manager.load().llm.model == DEFAULT_MODEL


class TestEnvOverrides:
    def test_model_and_timeout(self, settings_manager: SettingsManager, monkeypatch) -> None:
        monkeypatch.setenv("SCRIPTFLOW_MODEL", "claude-haiku")
        monkeypatch.setenv("SCRIPTFLOW_TOOL_TIMEOUT", "5")

        settings = settings_manager.load()

        assert settings.llm.model == "claude-haiku"
        assert settings.llm.tool_timeout_seconds == 5.0

    def test_invalid_values_keep_defaults(self, settings_manager: SettingsManager, monkeypatch) -> None:
        monkeypatch.setenv("SCRIPTFLOW_TOOL_TIMEOUT", "-1")
        monkeypatch.setenv("SCRIPTFLOW_MAX_FIX_ATTEMPTS", "many")

        settings = settings_manager.load()

        assert settings.llm.tool_timeout_seconds == 60
        assert settings.orchestrator.max_fix_attempts == 3

    def test_catalog_dirs_are_appended(self, settings_manager: SettingsManager, monkeypatch, tmp_path) -> None:
        settings_manager.set_value("catalog.extra_dirs", "/opt/connectors")
        monkeypatch.setenv("SCRIPTFLOW_CATALOG_DIRS", str(tmp_path))

        settings = settings_manager.load()

        assert settings.catalog.extra_dirs == ["/opt/connectors", str(tmp_path)]

    def test_overrides_are_not_persisted(self, settings_manager: SettingsManager, monkeypatch) -> None:
        settings_manager.save(ScriptflowSettings())
        monkeypatch.setenv("SCRIPTFLOW_MODEL", "from-env")
        settings_manager.load()

        data = json.loads(settings_manager.settings_path.read_text())
        assert data["llm"]["model"] == DEFAULT_MODEL


class TestSetValue:
    def test_set_scalar(self, settings_manager: SettingsManager) -> None:
        updated = settings_manager.set_value("orchestrator.max_fix_attempts", "5")

        assert updated.orchestrator.max_fix_attempts == 5
        assert settings_manager.reload().orchestrator.max_fix_attempts == 5

    def test_set_list(self, settings_manager: SettingsManager) -> None:
        updated = settings_manager.set_value("catalog.extra_dirs", "a,b,")
        assert updated.catalog.extra_dirs == ["a", "b"]

    def test_unknown_key(self, settings_manager: SettingsManager) -> None:
        with pytest.raises(KeyError):
            settings_manager.set_value("llm.colour", "blue")

    def test_invalid_value(self, settings_manager: SettingsManager) -> None:
        with pytest.raises(ValueError):
            settings_manager.set_value("orchestrator.max_questions", "20")
        assert not settings_manager.settings_path.exists()
