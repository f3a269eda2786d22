"""Settings management for scriptflow with environment variable override support."""

import json
import logging
import os
import stat
import tempfile
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "anthropic/claude-sonnet-4-5"


class LLMSettings(BaseModel):
    """Text-generation tool configuration.

    The model name is anything ``llm.get_model`` accepts, so any installed
    ``llm`` plugin can back the planner.
    """

    model: str = Field(default=DEFAULT_MODEL)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    tool_timeout_seconds: float = Field(default=60.0, gt=0)


class OrchestratorSettings(BaseModel):
    """Bounds for the clarify/plan/fix loop."""

    max_fix_attempts: int = Field(default=3, ge=0, le=10)
    max_questions: int = Field(default=7, ge=1, le=7)


class CompilerSettings(BaseModel):
    """Code generation configuration."""

    time_zone: str = Field(default="America/New_York")
    runtime_version: str = Field(default="V8")

    @field_validator("runtime_version")
    @classmethod
    def validate_runtime_version(cls, v: str) -> str:
        """Only the V8 runtime is supported."""
        if v != "V8":
            raise ValueError(f"Invalid runtime_version: {v}. Must be 'V8'")
        return v


class CatalogSettings(BaseModel):
    """Where to find connector descriptor files beyond the packaged ones."""

    extra_dirs: list[str] = Field(default_factory=list)


class ScriptflowSettings(BaseModel):
    """Main settings configuration."""

    version: str = Field(default="1.0.0")
    llm: LLMSettings = Field(default_factory=LLMSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    compiler: CompilerSettings = Field(default_factory=CompilerSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)


class SettingsManager:
    """Manages scriptflow settings with environment variable override support."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = settings_path or Path.home() / ".scriptflow" / "settings.json"
        self._settings: Optional[ScriptflowSettings] = None
        # Lock for thread-safe load-modify-save operations
        self._lock = threading.Lock()

    def load(self) -> ScriptflowSettings:
        """Load settings, then apply environment variable overrides."""
        with self._lock:
            if self._settings is None:
                self._settings = self._load_from_file()
            settings = self._settings.model_copy(deep=True)
        self._apply_env_overrides(settings)
        return settings

    def reload(self) -> ScriptflowSettings:
        """Force reload settings from file."""
        with self._lock:
            self._settings = None
        return self.load()

    def _load_from_file(self) -> ScriptflowSettings:
        if self.settings_path.exists():
            try:
                with open(self.settings_path) as f:
                    data = json.load(f)
                return ScriptflowSettings(**data)
            except Exception as e:
                # A corrupted file must not stop the CLI from starting
                logger.warning(f"Failed to load settings from {self.settings_path} ({e}); using defaults")
        return ScriptflowSettings()

    def _apply_env_overrides(self, settings: ScriptflowSettings) -> None:
        """Apply environment variable overrides to a settings copy."""
        model = os.getenv("SCRIPTFLOW_MODEL")
        if model:
            settings.llm.model = model

        timeout = os.getenv("SCRIPTFLOW_TOOL_TIMEOUT")
        if timeout is not None:
            try:
                value = float(timeout)
                if value <= 0:
                    raise ValueError("must be positive")
                settings.llm.tool_timeout_seconds = value
            except ValueError:
                logger.warning(
                    f"Invalid SCRIPTFLOW_TOOL_TIMEOUT: {timeout}. "
                    f"Using default: {settings.llm.tool_timeout_seconds}"
                )

        attempts = os.getenv("SCRIPTFLOW_MAX_FIX_ATTEMPTS")
        if attempts is not None:
            if attempts.isdigit() and int(attempts) <= 10:
                settings.orchestrator.max_fix_attempts = int(attempts)
            else:
                logger.warning(
                    f"Invalid SCRIPTFLOW_MAX_FIX_ATTEMPTS: {attempts}. "
                    f"Using default: {settings.orchestrator.max_fix_attempts}"
                )

        time_zone = os.getenv("SCRIPTFLOW_TIME_ZONE")
        if time_zone:
            settings.compiler.time_zone = time_zone

        catalog_dirs = os.getenv("SCRIPTFLOW_CATALOG_DIRS")
        if catalog_dirs:
            extra = [d for d in catalog_dirs.split(os.pathsep) if d]
            settings.catalog.extra_dirs = list(dict.fromkeys(settings.catalog.extra_dirs + extra))

    def save(self, settings: Optional[ScriptflowSettings] = None) -> None:
        """Save settings to file with atomic operations and secure permissions."""
        if settings is None:
            settings = self.load()

        self.settings_path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write pattern: write to temp file, then replace
        temp_fd, temp_path = tempfile.mkstemp(dir=self.settings_path.parent, prefix=".settings.", suffix=".tmp")

        try:
            with open(temp_fd, "w", encoding="utf-8") as f:
                json.dump(settings.model_dump(), f, indent=2)

            os.replace(temp_path, self.settings_path)
            os.chmod(self.settings_path, stat.S_IRUSR | stat.S_IWUSR)  # 0o600

            with self._lock:
                self._settings = None

        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def set_value(self, dotted_key: str, value: str) -> ScriptflowSettings:
        """Set a single setting such as ``llm.model`` and persist it.

        Args:
            dotted_key: ``section.field`` path into the settings model
            value: Raw string value; coerced by the pydantic model

        Raises:
            KeyError: If the key does not name a known setting
            ValueError: If the value fails validation
        """
        section_name, _, field_name = dotted_key.partition(".")
        with self._lock:
            if self._settings is None:
                self._settings = self._load_from_file()
            data = self._settings.model_dump()

        section = data.get(section_name)
        if not isinstance(section, dict) or field_name not in section:
            raise KeyError(f"Unknown setting: {dotted_key}")

        if isinstance(section[field_name], list):
            section[field_name] = [item for item in value.split(",") if item]
        else:
            section[field_name] = value

        updated = ScriptflowSettings.model_validate(data)
        self.save(updated)
        return updated
