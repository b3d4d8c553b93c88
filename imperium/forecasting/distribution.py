"""Percentile distributions summarising Monte Carlo samples.

Every simulator reports its outcomes as a :class:`Distribution`: five
percentiles plus mean, standard deviation and range.  Percentiles use linear
interpolation between order statistics (index ``p/100 * (n - 1)``), which is
NumPy's default ``"linear"`` quantile method.

Typical usage::

    dist = summarize(samples)
    print(format_distribution(dist, unit=" denarii"))
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

import numpy as np
from pydantic import BaseModel as PydanticBaseModel

from imperium.core.errors import InvalidInputError
from imperium.core.invariants import check_ordered

PERCENTILES: tuple[int, ...] = (10, 25, 50, 75, 90)

# z-scores of the 10th/90th and 25th/75th percentiles of a standard normal.
_Z_P90 = 1.28
_Z_P75 = 0.67

Volatility = Literal["low", "medium", "high"]


class Distribution(PydanticBaseModel):
    """Five-point percentile summary of a sample set.

    Attributes:
        p10: 10th percentile (pessimistic outcome).
        p25: 25th percentile.
        p50: Median.
        p75: 75th percentile.
        p90: 90th percentile (optimistic outcome).
        mean: Arithmetic mean of all samples.
        std_dev: Population standard deviation.
        min: Smallest sample.
        max: Largest sample.
    """

    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    mean: float
    std_dev: float = 0.0
    min: float
    max: float

    model_config = {"frozen": True}

    @classmethod
    def zero(cls) -> Distribution:
        """Return the all-zero distribution used for short-circuited results."""
        return cls(p10=0.0, p25=0.0, p50=0.0, p75=0.0, p90=0.0, mean=0.0,
                   std_dev=0.0, min=0.0, max=0.0)

    def percentiles(self) -> tuple[float, float, float, float, float]:
        return (self.p10, self.p25, self.p50, self.p75, self.p90)


@dataclass(frozen=True)
class HistogramBin:
    """One histogram bucket.

    Attributes:
        bin: Centre of the bucket.
        count: Number of samples falling in the bucket.
        percentage: Share of all samples, in percent.
    """

    bin: float
    count: int
    percentage: float


@dataclass(frozen=True)
class DistributionSummary:
    """Human-oriented reading of a :class:`Distribution`."""

    best: float
    worst: float
    expected: float
    volatility: Volatility


def summarize(samples: Sequence[float] | np.ndarray) -> Distribution:
    """Summarise *samples* into a :class:`Distribution`.

    Args:
        samples: Non-empty collection of finite numeric samples.  Input order
            is irrelevant.

    Returns:
        The percentile summary.  Percentiles are monotonically ordered and
        bracketed by ``min``/``max``; ``mean`` lies within ``[min, max]``.

    Raises:
        InvalidInputError: If *samples* is empty or contains NaN/inf.
    """
    values = np.sort(np.asarray(samples, dtype=np.float64).ravel())
    if values.size == 0:
        raise InvalidInputError("Cannot summarise an empty sample set")
    if not np.all(np.isfinite(values)):
        raise InvalidInputError("Samples must be finite numbers")

    quantiles = np.quantile(values, [p / 100.0 for p in PERCENTILES], method="linear")
    low = float(values[0])
    high = float(values[-1])
    # Floating-point summation can land a hair outside the sample range.
    mean = min(max(float(values.mean()), low), high)

    dist = Distribution(
        p10=float(quantiles[0]),
        p25=float(quantiles[1]),
        p50=float(quantiles[2]),
        p75=float(quantiles[3]),
        p90=float(quantiles[4]),
        mean=mean,
        std_dev=float(values.std()),
        min=low,
        max=high,
    )
    check_ordered((dist.min, *dist.percentiles(), dist.max), "percentiles")
    check_ordered((dist.min, dist.mean, dist.max), "mean")
    return dist


def histogram(samples: Sequence[float] | np.ndarray, bins: int = 20) -> list[HistogramBin]:
    """Bucket *samples* into ``bins`` equal-width bins.

    Args:
        samples: Sample values; an empty collection yields ``[]``.
        bins: Number of buckets.

    Returns:
        One :class:`HistogramBin` per bucket, labelled by its centre and
        ordered from the lowest bucket up.
    """
    values = np.asarray(samples, dtype=np.float64).ravel()
    if values.size == 0:
        return []
    if bins < 1:
        raise InvalidInputError(f"bins must be >= 1, got {bins}")

    lo, hi = float(values.min()), float(values.max())
    if lo == hi:
        return [HistogramBin(bin=lo, count=int(values.size), percentage=100.0)]

    counts, edges = np.histogram(values, bins=bins, range=(lo, hi))
    total = values.size
    return [
        HistogramBin(bin=float(centre), count=int(c), percentage=float(c) / total * 100.0)
        for centre, c in zip((edges[:-1] + edges[1:]) / 2, counts)
    ]


def describe(dist: Distribution) -> DistributionSummary:
    """Classify a distribution's spread relative to its mean.

    Volatility is ``low`` when the p10-p90 range is under 30% of the mean,
    ``medium`` under 60%, and ``high`` otherwise.  A zero mean reads as
    ``low`` only when there is no spread at all.
    """
    spread = dist.p90 - dist.p10
    relative = spread / abs(dist.mean) if dist.mean != 0 else (0.0 if spread == 0 else math.inf)

    volatility: Volatility
    if relative < 0.3:
        volatility = "low"
    elif relative < 0.6:
        volatility = "medium"
    else:
        volatility = "high"

    return DistributionSummary(best=dist.p90, worst=dist.p10, expected=dist.p50,
                               volatility=volatility)


def combine(distributions: Iterable[Distribution]) -> Distribution:
    """Approximate the sum of independent outcomes.

    Means and variances add; the percentiles of the sum are then read off a
    normal approximation.  The range is the sum of the component ranges.
    """
    parts = list(distributions)
    if not parts:
        return Distribution.zero()

    mean = sum(d.mean for d in parts)
    std = math.sqrt(sum(d.std_dev ** 2 for d in parts))
    low = sum(d.min for d in parts)
    high = sum(d.max for d in parts)

    def _bounded(value: float) -> float:
        return min(max(value, low), high)

    return Distribution(
        p10=_bounded(mean - _Z_P90 * std),
        p25=_bounded(mean - _Z_P75 * std),
        p50=_bounded(mean),
        p75=_bounded(mean + _Z_P75 * std),
        p90=_bounded(mean + _Z_P90 * std),
        mean=_bounded(mean),
        std_dev=std,
        min=low,
        max=high,
    )


def format_distribution(dist: Distribution, unit: str = "") -> str:
    """Render the p10-p90 band and median, e.g. ``"80 - 140 (expected: 110)"``."""
    return (
        f"{round(dist.p10)}{unit} - {round(dist.p90)}{unit} "
        f"(expected: {round(dist.p50)}{unit})"
    )
