"""Runtime settings for the forecasting and senate engines.

Settings are plain pydantic models so they can be loaded from YAML, tweaked
in tests and passed explicitly into the engines.  A process-wide active
settings object is kept for the few cross-cutting switches (notably strict
invariant checking) that would otherwise have to be threaded through every
call.

Typical usage::

    settings = load_settings("config/imperium.yaml")
    configure(settings)
    result = simulate_battle(inputs, trials=settings.forecast.trials)
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel as PydanticBaseModel, Field


class ForecastSettings(PydanticBaseModel):
    """Monte Carlo defaults.

    Attributes:
        trials: Default number of trials per simulation.
        seed: Optional default seed; ``None`` draws fresh entropy.
        enemy_variance: Relative standard deviation of sampled enemy strength.
        caravan_batches: Number of sub-batches used to build the caravan
            success-rate distribution.
        strict_invariants: Raise :class:`InvariantViolationError` when a
            computed result breaks an ordering or sum invariant.
    """

    trials: int = Field(default=1000, ge=1)  # JUSTIFIED: 1000 trials keeps the win-probability standard error near 1.5 points
    seed: int | None = None
    enemy_variance: float = Field(default=0.10, ge=0.0)
    caravan_batches: int = Field(default=20, ge=1)
    strict_invariants: bool = False


class SenateSettings(PydanticBaseModel):
    """Tunables for the seasonal senate tick."""

    grace_period_rounds: int = Field(default=4, ge=0)
    grace_dampening: float = Field(default=0.5, ge=0.0, le=1.0)
    max_events_per_season: int = Field(default=2, ge=0)
    consequence_threshold: int = -30
    assassination_relation_threshold: int = -60
    assassination_dishonor_threshold: int = 3


class Settings(PydanticBaseModel):
    """Top-level settings container."""

    forecast: ForecastSettings = Field(default_factory=ForecastSettings)
    senate: SenateSettings = Field(default_factory=SenateSettings)


_active: Settings = Settings()
_lock = threading.Lock()


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary (empty for an empty file).

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as fh:
        data = yaml.safe_load(fh) or {}

    logger.info("Loaded config from {}", config_path)
    return data


def load_settings(path: str | Path) -> Settings:
    """Build :class:`Settings` from a YAML file, defaulting missing keys."""
    return Settings.model_validate(load_yaml_config(path))


def get_settings() -> Settings:
    """Return the process-wide active settings."""
    return _active


def configure(settings: Settings) -> Settings:
    """Replace the active settings and return the previous ones."""
    global _active
    with _lock:
        previous, _active = _active, settings
    logger.debug(
        "Settings updated (trials={}, strict_invariants={})",
        settings.forecast.trials,
        settings.forecast.strict_invariants,
    )
    return previous
