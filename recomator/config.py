"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``RECOMATOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Every engine component and CLI command receives an ``AppConfig`` instance —
never raw dicts or individual env var lookups scattered through the codebase.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class BackendConfig(BaseModel):
    """Recomator API location."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "http://localhost:8000/api"
    request_timeout_s: float = 60.0

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class RetryConfig(BaseModel):
    """Transport-failure retry policy, with a retry count per call site.

    Delays double on every attempt starting at ``base_delay_s``
    (2s → 4s → 8s with the defaults).
    """

    model_config = ConfigDict(frozen=True)

    base_delay_s: float = 2.0
    default_max_retries: int = 3
    projects_max_retries: int = 3
    fetch_max_retries: int = 3
    apply_max_retries: int = 3
    status_max_retries: int = 3
    requirements_max_retries: int = 3

    @field_validator(
        "base_delay_s",
        "default_max_retries",
        "projects_max_retries",
        "fetch_max_retries",
        "apply_max_retries",
        "status_max_retries",
        "requirements_max_retries",
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Retry settings must be non-negative, got {v}.")
        return v


class PollingConfig(BaseModel):
    """Intervals for the fetch long-poll and the central status watcher."""

    model_config = ConfigDict(frozen=True)

    fetch_poll_interval_s: float = 0.1
    watcher_interval_s: float = 10.0

    @field_validator("fetch_poll_interval_s", "watcher_interval_s")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Polling intervals must be non-negative, got {v}.")
        return v


class StorageConfig(BaseModel):
    """Durable client-side state (the local-storage equivalent)."""

    model_config = ConfigDict(frozen=True)

    state_dir: str = "data/state"
    training_data_key: str = "training_data"
    project_list_key: str = "project_list"
    auth_token_key: str = "auth_token"


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/recomator.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    backend: BackendConfig = BackendConfig()
    retry: RetryConfig = RetryConfig()
    polling: PollingConfig = PollingConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``; when that default file is
            absent the built-in model defaults are used.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the explicitly given ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    raw: dict[str, Any] = {}
    if config_path is None:
        default_path = root / "config" / "default.toml"
        if default_path.exists():
            raw = _read_toml(default_path)
        config_dir = default_path.parent
    else:
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        raw = _read_toml(config_path)
        config_dir = config_path.parent

    # Also merge local.toml if present (gitignored local overrides)
    local_config_path = config_dir / "local.toml"
    if local_config_path.exists():
        raw = _deep_merge(raw, _read_toml(local_config_path))

    # 3. Apply RECOMATOR_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply RECOMATOR_* env vars to the raw config dict.

    Supported overrides:
      RECOMATOR_BACKEND_URL  → raw["backend"]["base_url"]
      RECOMATOR_STATE_DIR    → raw["storage"]["state_dir"]
      RECOMATOR_LOG_LEVEL    → raw["logging"]["level"]
      RECOMATOR_DEBUG        → raw["debug"]
    """
    if base_url := os.environ.get("RECOMATOR_BACKEND_URL"):
        raw.setdefault("backend", {})["base_url"] = base_url

    if state_dir := os.environ.get("RECOMATOR_STATE_DIR"):
        raw.setdefault("storage", {})["state_dir"] = state_dir

    if log_level := os.environ.get("RECOMATOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("RECOMATOR_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    return AppConfig(
        backend=BackendConfig(**raw.get("backend", {})),
        retry=RetryConfig(**raw.get("retry", {})),
        polling=PollingConfig(**raw.get("polling", {})),
        storage=StorageConfig(**raw.get("storage", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", False),
    )
