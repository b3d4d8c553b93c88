"""Monte Carlo trade-caravan forecasting.

A caravan's deterministic *effective risk* combines the route's base risk
and distance with the player's mitigations (guards, roads, forts,
reputation).  Each trial jitters that risk, draws success or failure, and
samples the resulting profit or loss.

Typical usage::

    inputs = CaravanSimulationInput(distance=120, base_risk=0.2, goods_value=500)
    result = simulate_caravan(inputs, trials=2000, rng=7)
    print(result.expected_value, result.risk_level)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np
from loguru import logger
from pydantic import BaseModel as PydanticBaseModel

from imperium.core.config import get_settings
from imperium.core.errors import InvalidInputError
from imperium.core.rng import RandomSource, make_rng
from imperium.forecasting.base import BaseSimulator, validate_trials
from imperium.forecasting.distribution import Distribution, summarize
from imperium.forecasting.registry import register_simulator

# ---------------------------------------------------------------------------
# Model constants
# ---------------------------------------------------------------------------

MAX_UPGRADE_LEVEL: int = 3
GUARD_REDUCTION: float = 0.10
ROADS_REDUCTION: float = 0.15
FORT_REDUCTION: float = 0.02
FORT_REDUCTION_CAP: float = 0.30
REPUTATION_SCALE: float = 500.0
REPUTATION_REDUCTION_CAP: float = 0.20

RISK_NOISE_STD: float = 0.15
RISK_NOISE_BOUNDS: tuple[float, float] = (0.7, 1.4)

REWARD_MULTIPLIER: float = 1.0
WAGON_BONUS: float = 0.15
PROFIT_NOISE_STD: float = 0.1
PROFIT_NOISE_BOUNDS: tuple[float, float] = (0.85, 1.2)
LOSS_FRACTION_BOUNDS: tuple[float, float] = (0.5, 1.0)  # JUSTIFIED: bandits rarely take less than half a raided cargo


class CaravanRisk(str, Enum):
    """Coarse rating of a caravan's failure risk."""

    SAFE = "safe"
    MODERATE = "moderate"
    RISKY = "risky"
    DANGEROUS = "dangerous"


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CaravanSimulationInput:
    """Inputs for one caravan forecast.

    Attributes:
        distance: Route length.
        base_risk: Route base risk in ``[0, 1]``.
        goods_value: Value of the cargo; ``<= 0`` yields an empty forecast.
        guard_level: Guard upgrade level, 0-3.
        wagon_level: Wagon upgrade level, 0-3.
        reputation: Trade reputation; only positive values reduce risk.
        forts: Number of forts along the route.
        has_roads_tech: Whether roads are researched.
        city_bias: Destination price multiplier.
    """

    distance: float
    base_risk: float
    goods_value: float
    guard_level: int = 0
    wagon_level: int = 0
    reputation: float = 0.0
    forts: int = 0
    has_roads_tech: bool = False
    city_bias: float = 1.0

    def validate(self) -> None:
        """Raise :class:`InvalidInputError` for out-of-range fields."""
        for name in ("distance", "base_risk", "goods_value", "reputation", "city_bias"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise InvalidInputError(f"{name} must be finite, got {value}")
        if self.distance < 0:
            raise InvalidInputError(f"distance must be >= 0, got {self.distance}")
        if not 0.0 <= self.base_risk <= 1.0:
            raise InvalidInputError(f"base_risk must be in [0, 1], got {self.base_risk}")
        for name in ("guard_level", "wagon_level"):
            level = getattr(self, name)
            if not 0 <= level <= MAX_UPGRADE_LEVEL:
                raise InvalidInputError(
                    f"{name} must be in [0, {MAX_UPGRADE_LEVEL}], got {level}"
                )
        if self.forts < 0:
            raise InvalidInputError(f"forts must be >= 0, got {self.forts}")
        if self.city_bias < 0:
            raise InvalidInputError(f"city_bias must be >= 0, got {self.city_bias}")


class CaravanSimulationResult(PydanticBaseModel):
    """Aggregated outcome of a caravan forecast.

    Attributes:
        success_rate: Distribution of success rates across sub-batches.
        profit: Distribution of per-trial profit (losses negative).
        expected_value: Mean profit, rounded to an integer.
        loss_on_failure: Distribution of losses on failed trials, ``None``
            when no trial failed.
        mean_risk: Mean per-trial failure risk.
        risk_level: Rating of the aggregate failure rate.
        trials: Number of trials run (0 when short-circuited).
        samples: Per-trial arrays, only populated with ``keep_samples``.
    """

    success_rate: Distribution
    profit: Distribution
    expected_value: int
    loss_on_failure: Distribution | None = None
    mean_risk: float
    risk_level: CaravanRisk
    trials: int
    samples: dict[str, list[float]] | None = None


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def effective_risk(inputs: CaravanSimulationInput) -> float:
    """Deterministic failure risk of a caravan, clamped to ``[0, 1]``."""
    risk = inputs.base_risk * (1.0 + inputs.distance / 100.0)
    risk *= 1.0 - GUARD_REDUCTION * inputs.guard_level
    if inputs.has_roads_tech:
        risk *= 1.0 - ROADS_REDUCTION
    risk *= 1.0 - min(FORT_REDUCTION_CAP, FORT_REDUCTION * inputs.forts)
    risk *= 1.0 - min(REPUTATION_REDUCTION_CAP, max(inputs.reputation, 0.0) / REPUTATION_SCALE)
    return min(max(risk, 0.0), 1.0)


def classify_caravan_risk(risk: float) -> CaravanRisk:
    """Map an aggregate failure rate onto a :class:`CaravanRisk`."""
    if risk < 0.10:
        return CaravanRisk.SAFE
    if risk < 0.25:
        return CaravanRisk.MODERATE
    if risk < 0.45:
        return CaravanRisk.RISKY
    return CaravanRisk.DANGEROUS


def _batch_success_rates(success: np.ndarray, batches: int) -> np.ndarray:
    chunks = np.array_split(success.astype(np.float64), min(batches, success.size))
    return np.array([chunk.mean() for chunk in chunks])


def simulate_caravan(
    inputs: CaravanSimulationInput,
    trials: int | None = None,
    rng: RandomSource = None,
    keep_samples: bool = False,
) -> CaravanSimulationResult:
    """Forecast a caravan run with *trials* Monte Carlo trials.

    Args:
        inputs: Caravan inputs; validated before any sampling.
        trials: Trial count (defaults to the configured ``forecast.trials``).
        rng: Seed or generator for reproducible runs.
        keep_samples: Attach per-trial samples to the result.

    Returns:
        The aggregated :class:`CaravanSimulationResult`.

    Raises:
        InvalidInputError: If *inputs* or *trials* is invalid.
    """
    settings = get_settings().forecast
    inputs.validate()
    n = validate_trials(trials if trials is not None else settings.trials)
    risk = effective_risk(inputs)

    if inputs.goods_value <= 0:
        logger.debug("Caravan forecast short-circuited: no goods to carry")
        return CaravanSimulationResult(
            success_rate=Distribution.zero(),
            profit=Distribution.zero(),
            expected_value=0,
            mean_risk=risk,
            risk_level=classify_caravan_risk(risk),
            trials=0,
        )

    gen = make_rng(rng if rng is not None else settings.seed)

    risk_noise = np.clip(gen.normal(1.0, RISK_NOISE_STD, n), *RISK_NOISE_BOUNDS)
    trial_risk = np.clip(risk * risk_noise, 0.0, 1.0)
    success = gen.random(n) >= trial_risk
    profit_noise = np.clip(gen.normal(1.0, PROFIT_NOISE_STD, n), *PROFIT_NOISE_BOUNDS)
    loss_fraction = gen.uniform(*LOSS_FRACTION_BOUNDS, n)

    reward = (
        inputs.goods_value
        * REWARD_MULTIPLIER
        * inputs.city_bias
        * (1.0 + WAGON_BONUS * inputs.wagon_level)
    )
    profit = np.where(success, reward * profit_noise, -inputs.goods_value * loss_fraction)

    failures = ~success
    loss_on_failure = summarize(-profit[failures]) if failures.any() else None

    failure_rate = 1.0 - float(success.mean())
    level = classify_caravan_risk(failure_rate)
    logger.debug(
        "Caravan forecast: {} trials, effective risk {:.3f}, failure rate {:.3f} ({})",
        n, risk, failure_rate, level.value,
    )

    samples = None
    if keep_samples:
        samples = {
            "risk": trial_risk.tolist(),
            "success": success.astype(float).tolist(),
            "profit": profit.tolist(),
        }

    return CaravanSimulationResult(
        success_rate=summarize(_batch_success_rates(success, settings.caravan_batches)),
        profit=summarize(profit),
        expected_value=int(round(float(profit.mean()))),
        loss_on_failure=loss_on_failure,
        mean_risk=float(trial_risk.mean()),
        risk_level=level,
        trials=n,
        samples=samples,
    )


@register_simulator("caravan")
class CaravanSimulator(BaseSimulator):
    """Registry face of :func:`simulate_caravan`.

    Recognised ``params``: ``keep_samples`` (bool).
    """

    input_type = CaravanSimulationInput

    def _run(self, inputs: CaravanSimulationInput, trials: int,
             rng: np.random.Generator) -> CaravanSimulationResult:
        return simulate_caravan(
            inputs,
            trials=trials,
            rng=rng,
            keep_samples=bool(self.config.params.get("keep_samples", False)),
        )
