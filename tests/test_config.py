"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from tank_intake.config import get_data_dir, load_settings
from tank_intake.constants import DEFAULT_LLM_TIMEOUT_SECONDS, FORM_DISPLAY_THRESHOLD

_ENV_VARS = [
    "TANK_INTAKE_DATA_DIR",
    "TANK_INTAKE_LLM_ENABLED",
    "TANK_INTAKE_LLM_MODEL",
    "TANK_INTAKE_LLM_TIMEOUT_SECONDS",
    "TANK_INTAKE_FORM_DISPLAY_THRESHOLD",
    "TANK_INTAKE_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDataDir:
    def test_default(self):
        assert get_data_dir() == Path.home() / ".tank-intake-data"

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TANK_INTAKE_DATA_DIR", str(tmp_path))
        assert get_data_dir() == tmp_path.resolve()


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings.llm_enabled is True
        assert settings.llm_model is None
        assert settings.llm_timeout_seconds == DEFAULT_LLM_TIMEOUT_SECONDS
        assert settings.form_display_threshold == FORM_DISPLAY_THRESHOLD
        assert settings.log_level == "INFO"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("TANK_INTAKE_LLM_ENABLED", "false")
        monkeypatch.setenv("TANK_INTAKE_LLM_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("TANK_INTAKE_LLM_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("TANK_INTAKE_FORM_DISPLAY_THRESHOLD", "1")
        monkeypatch.setenv("TANK_INTAKE_LOG_LEVEL", "debug")

        settings = load_settings()

        assert settings.llm_enabled is False
        assert settings.llm_model == "gpt-4o-mini"
        assert settings.llm_timeout_seconds == 2.5
        assert settings.form_display_threshold == 1
        assert settings.log_level == "DEBUG"

    def test_non_positive_timeout(self, monkeypatch):
        monkeypatch.setenv("TANK_INTAKE_LLM_TIMEOUT_SECONDS", "0")
        with pytest.raises(ValueError):
            load_settings()

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("TANK_INTAKE_FORM_DISPLAY_THRESHOLD", "many")
        with pytest.raises(ValueError, match="must be an integer"):
            load_settings()
