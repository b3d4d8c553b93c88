#!/usr/bin/env python3
"""Command-line front end for the imperium forecasting and senate engines.

Runs a battle or caravan forecast through the simulator registry, or plays
the senate forward for a number of seasons, and prints the result as JSON.

Usage::

    # Battle forecast
    python scripts/run_forecast.py battle --troops 100 --morale 80 --supplies 200 --enemy 100

    # Caravan forecast with per-trial samples written to disk
    python scripts/run_forecast.py caravan --distance 120 --base-risk 0.2 --goods 500 \\
        --export out/caravan.parquet

    # Twelve seasons of senate politics with a preset allocation
    python scripts/run_forecast.py senate --rounds 12 --preset military --seed 3
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "imperium.yaml"

# Make the package importable when running from a source checkout.
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from imperium.core.config import Settings, configure, load_yaml_config  # noqa: E402
from imperium.core.errors import ImperiumError  # noqa: E402
from imperium.forecasting.base import SimulatorConfig  # noqa: E402
from imperium.forecasting.battle import BattleSimulationInput  # noqa: E402
from imperium.forecasting.caravan import CaravanSimulationInput  # noqa: E402
from imperium.forecasting.distribution import format_distribution  # noqa: E402
from imperium.forecasting.export import write_samples  # noqa: E402
from imperium.forecasting.registry import SimulatorRegistry  # noqa: E402
from imperium.senate.attention import ATTENTION_PRESETS, allocate_attention, apply_preset  # noqa: E402
from imperium.senate.engine import dismiss_senator_event, tick_senate  # noqa: E402
from imperium.senate.machine import get_senator_danger_level  # noqa: E402
from imperium.senate.models import SENATOR_ORDER, TickContext  # noqa: E402
from imperium.senate.senators import create_senate  # noqa: E402


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def _configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure loguru sinks for console and optional file output.

    Args:
        level: Minimum log level for all sinks.
        log_file: Optional path to a rotating log file.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        colorize=True,
    )
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path),
            level=level,
            rotation="10 MB",
            retention="30 days",
            compression="gz",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
        )
    logger.info("Logging configured at level={}", level)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _simulate(inputs: Any, args: argparse.Namespace) -> Any:
    registry = SimulatorRegistry()
    name = registry.name_for(inputs)
    config = SimulatorConfig(name=name, params={"keep_samples": args.export is not None})
    return registry.simulate(inputs, config=config, trials=args.trials, rng=args.seed)


def run_battle(args: argparse.Namespace) -> dict[str, Any]:
    inputs = BattleSimulationInput(
        player_troops=args.troops,
        player_morale=args.morale,
        player_supplies=args.supplies,
        enemy_strength=args.enemy,
        attack_bonus=args.attack_bonus,
        tech_multipliers=tuple(args.tech),
        weather_variance=args.weather_variance,
    )
    result = _simulate(inputs, args)
    if args.export is not None:
        write_samples(result, args.export)
    logger.info("Casualties: {}", format_distribution(result.casualties, unit=" men"))
    return result.model_dump(mode="json", exclude={"samples"})


def run_caravan(args: argparse.Namespace) -> dict[str, Any]:
    inputs = CaravanSimulationInput(
        distance=args.distance,
        base_risk=args.base_risk,
        goods_value=args.goods,
        guard_level=args.guards,
        wagon_level=args.wagons,
        reputation=args.reputation,
        forts=args.forts,
        has_roads_tech=args.roads,
        city_bias=args.city_bias,
    )
    result = _simulate(inputs, args)
    if args.export is not None:
        write_samples(result, args.export)
    logger.info("Profit: {}", format_distribution(result.profit, unit=" denarii"))
    return result.model_dump(mode="json", exclude={"samples"})


def run_senate(args: argparse.Namespace) -> dict[str, Any]:
    """Play the senate forward, auto-dismissing events."""
    state = create_senate()
    log: list[dict[str, Any]] = []
    for round_ in range(1, args.rounds + 1):
        state = allocate_attention(state, apply_preset(args.preset))
        context = TickContext(round=round_, troops=args.troops, denarii=args.denarii)
        result = tick_senate(state, context, rng=args.seed + round_)
        state = result.state
        while state.current_event is not None:
            state = dismiss_senator_event(state, round_).state
        log.append({
            "round": round_,
            "transitions": [t.model_dump(mode="json") for t in result.transitions],
            "events": [e.id for e in result.events],
            "assassination": result.assassination.model_dump(mode="json") if result.assassination else None,
            "messages": result.messages,
        })
    return {
        "seasons": log,
        "senators": {
            sid.value: {
                "state": state.senators[sid].current_state,
                "relation": state.senators[sid].relation,
                "danger": get_senator_danger_level(state.senators[sid]),
            }
            for sid in SENATOR_ORDER
        },
    }


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="run_forecast",
        description="Imperium: battle, caravan and senate forecasts",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH,
                        help="Path to imperium.yaml.")
    parser.add_argument("--log-level",
                        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        default=None, help="Minimum log level (overrides config).")
    sub = parser.add_subparsers(dest="command", required=True)

    battle = sub.add_parser("battle", help="Forecast a battle.")
    battle.add_argument("--troops", type=int, required=True)
    battle.add_argument("--morale", type=float, default=70.0)
    battle.add_argument("--supplies", type=float, default=100.0)
    battle.add_argument("--enemy", type=float, required=True)
    battle.add_argument("--attack-bonus", type=float, default=0.0)
    battle.add_argument("--tech", type=float, nargs="*", default=[],
                        help="Fractional technology bonuses, e.g. 0.1 0.05.")
    battle.add_argument("--weather-variance", type=float, default=0.1)

    caravan = sub.add_parser("caravan", help="Forecast a trade caravan.")
    caravan.add_argument("--distance", type=float, required=True)
    caravan.add_argument("--base-risk", type=float, required=True)
    caravan.add_argument("--goods", type=float, required=True)
    caravan.add_argument("--guards", type=int, default=0)
    caravan.add_argument("--wagons", type=int, default=0)
    caravan.add_argument("--reputation", type=float, default=0.0)
    caravan.add_argument("--forts", type=int, default=0)
    caravan.add_argument("--roads", action="store_true", default=False)
    caravan.add_argument("--city-bias", type=float, default=1.0)

    for forecast in (battle, caravan):
        forecast.add_argument("--trials", type=int, default=None)
        forecast.add_argument("--seed", type=int, default=None)
        forecast.add_argument("--export", type=Path, default=None,
                              help="Write per-trial samples (.csv or .parquet).")

    senate = sub.add_parser("senate", help="Play the senate forward.")
    senate.add_argument("--rounds", type=int, default=12)
    senate.add_argument("--preset", choices=sorted(ATTENTION_PRESETS), default="balanced")
    senate.add_argument("--troops", type=int, default=100)
    senate.add_argument("--denarii", type=int, default=500)
    senate.add_argument("--seed", type=int, default=0)

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

COMMANDS = {"battle": run_battle, "caravan": run_caravan, "senate": run_senate}


def main(argv: list[str] | None = None) -> int:
    """Run one command.

    Returns:
        Exit code (0 on success, 1 on configuration errors, 2 on invalid input).
    """
    args = parse_args(argv)

    try:
        raw = load_yaml_config(args.config)
    except FileNotFoundError as exc:
        logger.critical("Failed to load configuration: {}", exc)
        return 1

    log_cfg = raw.get("logging") or {}
    _configure_logging(level=args.log_level or log_cfg.get("level", "INFO"),
                       log_file=log_cfg.get("file"))
    configure(Settings.model_validate(raw))

    try:
        output = COMMANDS[args.command](args)
    except ImperiumError as exc:
        logger.error("{} failed: {}", args.command, exc)
        return 2

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
