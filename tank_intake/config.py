"""
Central configuration for the intake engine.

Runtime settings come from environment variables (a local .env file is
loaded by the CLI via python-dotenv):
  - TANK_INTAKE_DATA_DIR (default: ~/.tank-intake-data)
  - TANK_INTAKE_PHASES_FILE (default: bundled schemas/phases.yaml, read by the phase registry)
  - TANK_INTAKE_LLM_ENABLED (default: true)
  - TANK_INTAKE_LLM_MODEL (default: task model from llm_client)
  - TANK_INTAKE_LLM_TIMEOUT_SECONDS (default: 15)
  - TANK_INTAKE_FORM_DISPLAY_THRESHOLD (default: 3)
  - TANK_INTAKE_LOG_LEVEL (default: INFO)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import DEFAULT_LLM_TIMEOUT_SECONDS, FORM_DISPLAY_THRESHOLD

_TRUE_VALUES = {"1", "true", "yes", "on"}


def get_data_dir() -> Path:
    """
    Get the local data directory for saved projects and sessions.

    Uses TANK_INTAKE_DATA_DIR environment variable if set, otherwise defaults
    to ~/.tank-intake-data/

    Returns:
        Path to data directory
    """
    env_path = os.environ.get("TANK_INTAKE_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / ".tank-intake-data"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    data_dir: Path
    llm_enabled: bool = True
    llm_model: Optional[str] = None
    llm_timeout_seconds: float = DEFAULT_LLM_TIMEOUT_SECONDS
    form_display_threshold: int = FORM_DISPLAY_THRESHOLD
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    timeout = _env_float("TANK_INTAKE_LLM_TIMEOUT_SECONDS", DEFAULT_LLM_TIMEOUT_SECONDS)
    if timeout <= 0:
        raise ValueError("TANK_INTAKE_LLM_TIMEOUT_SECONDS must be positive")

    return Settings(
        data_dir=get_data_dir(),
        llm_enabled=_env_bool("TANK_INTAKE_LLM_ENABLED", True),
        llm_model=os.environ.get("TANK_INTAKE_LLM_MODEL") or None,
        llm_timeout_seconds=timeout,
        form_display_threshold=_env_int("TANK_INTAKE_FORM_DISPLAY_THRESHOLD", FORM_DISPLAY_THRESHOLD),
        log_level=os.environ.get("TANK_INTAKE_LOG_LEVEL", "INFO").upper(),
    )
