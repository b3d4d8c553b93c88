"""Tabular export of per-trial forecast samples.

Simulators only retain raw samples when called with ``keep_samples=True``;
this module turns those samples into Polars frames for inspection or for
writing to disk.
"""

from __future__ import annotations

from pathlib import Path

import polars as pl
from loguru import logger

from imperium.core.errors import InvalidInputError
from imperium.forecasting.battle import BattleSimulationResult
from imperium.forecasting.caravan import CaravanSimulationResult


def samples_frame(result: BattleSimulationResult | CaravanSimulationResult) -> pl.DataFrame:
    """Return the per-trial samples of *result* as a DataFrame.

    The frame has one row per trial and a leading ``trial`` index column.

    Raises:
        InvalidInputError: If the result was produced without samples.
    """
    if result.samples is None:
        raise InvalidInputError("Result carries no samples; rerun with keep_samples=True")
    frame = pl.DataFrame(result.samples)
    return frame.with_row_index("trial")


def summary_frame(result: BattleSimulationResult | CaravanSimulationResult) -> pl.DataFrame:
    """Long-format table of every distribution in *result*.

    Columns: ``metric``, ``statistic``, ``value``.
    """
    rows: list[dict[str, object]] = []
    for metric in ("casualties", "enemy_casualties", "success_rate", "profit", "loss_on_failure"):
        dist = getattr(result, metric, None)
        if dist is None:
            continue
        for statistic, value in dist.model_dump().items():
            rows.append({"metric": metric, "statistic": statistic, "value": float(value)})
    return pl.DataFrame(rows, schema={"metric": pl.Utf8, "statistic": pl.Utf8, "value": pl.Float64})


def write_samples(result: BattleSimulationResult | CaravanSimulationResult,
                  path: str | Path) -> Path:
    """Write per-trial samples to CSV or Parquet, chosen by file suffix."""
    out = Path(path)
    frame = samples_frame(result)
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix == ".parquet":
        frame.write_parquet(out)
    else:
        frame.write_csv(out)
    logger.info("Wrote {} trial samples to {}", frame.height, out)
    return out
