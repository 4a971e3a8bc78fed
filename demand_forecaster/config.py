"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      - committed static defaults
  2. ``config/local.toml``        - optional local overrides (gitignored)
  3. ``.env``                     - local secrets and env overrides (gitignored)
  4. Environment variables        - ``DEMAND_FORECASTER_*`` prefix, plus
                                    ``GEMINI_API_KEY``

Entry point: ``load_config(config_path=None) -> AppConfig``

The pipeline, the rationale client and every CLI command receive an
``AppConfig`` instance. Nothing below ``load_config()`` reads the process
environment.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

ShortSeriesPolicy = Literal["zero_baseline", "fail"]

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/demand_forecaster.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class ForecastConfig(BaseModel):
    """Forecast engine parameters.

    ``confidence_level`` multiplies the population standard deviation of the
    history to produce the interval half-width. It is a plain linear factor,
    not a Gaussian quantile, so ``0.95`` does not mean a 95% interval.
    """

    model_config = ConfigDict(frozen=True)

    method: str = "moving-average-trend"
    model_version: str = "v1-moving-average"
    horizon: int = 5
    window_size: int = 7
    confidence_level: float = 0.95
    short_series_policy: ShortSeriesPolicy = "zero_baseline"

    @field_validator("horizon", "window_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}.")
        return v

    @field_validator("confidence_level")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if v < 0.0:
            raise ValueError(f"confidence_level must be >= 0.0, got {v}.")
        return v


class RationaleConfig(BaseModel):
    """External text-generation settings for forecast rationales.

    An empty ``api_key`` leaves the generator unconfigured; every rationale
    then comes from the deterministic fallback template.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    api_key: str = ""
    model_name: str = "gemini-1.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_ms: int = 10_000

    @field_validator("timeout_ms")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"timeout_ms must be > 0, got {v}.")
        return v

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.api_key.strip())


class PipelineConfig(BaseModel):
    """Pipeline execution parameters."""

    model_config = ConfigDict(frozen=True)

    default_time_range: str = "last-30-days"
    persist_workers: int = 1
    max_parallel_runs: int = 4

    @field_validator("persist_workers", "max_parallel_runs")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"worker count must be >= 1, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/demand_forecaster.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration - the single source of truth.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    forecast: ForecastConfig = ForecastConfig()
    rationale: RationaleConfig = RationaleConfig()
    pipeline: PipelineConfig = PipelineConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-safe dump with secrets masked, for run audit rows."""
        data = self.model_dump(mode="json")
        if data["rationale"]["api_key"]:
            data["rationale"]["api_key"] = "***"
        return data


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
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply environment overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


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
    """Apply environment variables to the raw config dict.

    Supported overrides:
      DEMAND_FORECASTER_DB_PATH              → raw["database"]["db_path"]
      DEMAND_FORECASTER_LOG_LEVEL            → raw["logging"]["level"]
      DEMAND_FORECASTER_DEBUG                → raw["debug"]
      DEMAND_FORECASTER_HORIZON              → raw["forecast"]["horizon"]
      DEMAND_FORECASTER_SHORT_SERIES_POLICY  → raw["forecast"]["short_series_policy"]
      GEMINI_API_KEY                         → raw["rationale"]["api_key"]
    """
    if db_path := os.environ.get("DEMAND_FORECASTER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("DEMAND_FORECASTER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("DEMAND_FORECASTER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    if horizon := os.environ.get("DEMAND_FORECASTER_HORIZON"):
        raw.setdefault("forecast", {})["horizon"] = int(horizon)

    if policy := os.environ.get("DEMAND_FORECASTER_SHORT_SERIES_POLICY"):
        raw.setdefault("forecast", {})["short_series_policy"] = policy

    if api_key := os.environ.get("GEMINI_API_KEY"):
        raw.setdefault("rationale", {})["api_key"] = api_key

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        forecast=ForecastConfig(**raw.get("forecast", {})),
        rationale=RationaleConfig(**raw.get("rationale", {})),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
