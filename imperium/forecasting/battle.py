"""Monte Carlo battle forecasting.

Each trial perturbs the player's effective strength (troops scaled by morale,
surplus supplies, attack bonus and technology) and the enemy's strength with
Gaussian noise, decides the winner, and samples casualties for both sides.
The aggregate is a win probability, casualty distributions and a coarse risk
rating with advice text.

All random draws are taken up front in a fixed order, so for a given seed
each trial sees the same noise regardless of the input magnitudes.  That
common-random-numbers layout makes the forecast monotone in troop count.

Typical usage::

    inputs = BattleSimulationInput(player_troops=100, player_morale=80,
                                   player_supplies=200, enemy_strength=100)
    result = simulate_battle(inputs, trials=5000, rng=42)
    print(result.win_probability, result.risk_level)
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

MORALE_FLOOR: float = 0.6  # JUSTIFIED: a routed army still fights at 60% of nominal strength
SUPPLY_BASELINE: float = 100.0
SUPPLY_SCALE: float = 1000.0
SUPPLY_BONUS_CAP: float = 0.3
TECH_CAP: float = 2.0

INTENSITY_MEAN: float = 0.2
INTENSITY_STD: float = 0.05
INTENSITY_BOUNDS: tuple[float, float] = (0.1, 0.35)

SEVERITY_STD: float = 0.2
SEVERITY_BOUNDS: tuple[float, float] = (0.7, 1.4)

ROUT_BASE_LOSS: float = 0.3  # JUSTIFIED: ancient battle losers typically lost a third of the line in the rout


class BattleRisk(str, Enum):
    """Coarse rating of a win probability."""

    SAFE = "safe"
    FAVORABLE = "favorable"
    RISKY = "risky"
    DANGEROUS = "dangerous"
    SUICIDAL = "suicidal"


RISK_THRESHOLDS: tuple[tuple[float, BattleRisk], ...] = (
    (0.75, BattleRisk.SAFE),
    (0.60, BattleRisk.FAVORABLE),
    (0.40, BattleRisk.RISKY),
    (0.20, BattleRisk.DANGEROUS),
)

RECOMMENDATIONS: dict[BattleRisk, str] = {
    BattleRisk.SAFE: "Victory is highly likely. Proceed with confidence.",
    BattleRisk.FAVORABLE: "Good odds of success. Consider your casualties tolerance.",
    BattleRisk.RISKY: "Uncertain outcome. Reinforce or consider retreat.",
    BattleRisk.DANGEROUS: "High risk of defeat. Strongly consider alternatives.",
    BattleRisk.SUICIDAL: "Near-certain defeat. Retreat is advised.",
}


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BattleSimulationInput:
    """Inputs for one battle forecast.

    Attributes:
        player_troops: Number of soldiers committed (>= 0).
        player_morale: Morale on a 0-100 scale.
        player_supplies: Supply stock; anything above 100 grants a bonus.
        attack_bonus: Fractional attack bonus (``0.1`` means +10%).
        tech_multipliers: Fractional bonuses from technologies; their
            compounded product is capped at 2x.
        enemy_strength: Expected enemy strength, also used as the enemy
            headcount for casualties.
        weather_variance: Relative standard deviation of the player's
            effective strength.
    """

    player_troops: int
    player_morale: float
    player_supplies: float
    enemy_strength: float
    attack_bonus: float = 0.0
    tech_multipliers: tuple[float, ...] = ()
    weather_variance: float = 0.1

    def validate(self) -> None:
        """Raise :class:`InvalidInputError` for out-of-range fields."""
        numbers = {
            "player_troops": self.player_troops,
            "player_morale": self.player_morale,
            "player_supplies": self.player_supplies,
            "enemy_strength": self.enemy_strength,
            "attack_bonus": self.attack_bonus,
            "weather_variance": self.weather_variance,
        }
        for name, value in numbers.items():
            if not math.isfinite(value):
                raise InvalidInputError(f"{name} must be finite, got {value}")
        if self.player_troops < 0:
            raise InvalidInputError(f"player_troops must be >= 0, got {self.player_troops}")
        if not 0 <= self.player_morale <= 100:
            raise InvalidInputError(f"player_morale must be in [0, 100], got {self.player_morale}")
        if self.player_supplies < 0:
            raise InvalidInputError(f"player_supplies must be >= 0, got {self.player_supplies}")
        if self.enemy_strength < 0:
            raise InvalidInputError(f"enemy_strength must be >= 0, got {self.enemy_strength}")
        if self.weather_variance < 0:
            raise InvalidInputError(f"weather_variance must be >= 0, got {self.weather_variance}")
        if self.attack_bonus <= -1:
            raise InvalidInputError(f"attack_bonus must be > -1, got {self.attack_bonus}")
        if any(not math.isfinite(t) or t <= -1 for t in self.tech_multipliers):
            raise InvalidInputError(f"tech_multipliers must be finite and > -1, got {self.tech_multipliers}")


class BattleSimulationResult(PydanticBaseModel):
    """Aggregated outcome of a battle forecast.

    Attributes:
        win_probability: Fraction of trials won by the player.
        casualties: Distribution of player losses.
        enemy_casualties: Distribution of enemy losses.
        risk_level: Rating derived from ``win_probability``.
        recommendation: Advice text for ``risk_level``.
        trials: Number of trials run (0 when short-circuited).
        samples: Per-trial arrays, only populated with ``keep_samples``.
    """

    win_probability: float
    casualties: Distribution
    enemy_casualties: Distribution
    risk_level: BattleRisk
    recommendation: str
    trials: int
    samples: dict[str, list[float]] | None = None


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

def classify_battle_risk(win_probability: float) -> BattleRisk:
    """Map a win probability onto a :class:`BattleRisk`."""
    for threshold, level in RISK_THRESHOLDS:
        if win_probability >= threshold:
            return level
    return BattleRisk.SUICIDAL


def effective_strength(inputs: BattleSimulationInput) -> float:
    """Deterministic (noise-free) player strength."""
    morale_factor = MORALE_FLOOR + (1.0 - MORALE_FLOOR) * inputs.player_morale / 100.0
    supply_bonus = min(
        max((inputs.player_supplies - SUPPLY_BASELINE) / SUPPLY_SCALE, 0.0),
        SUPPLY_BONUS_CAP,
    )
    tech_product = min(float(np.prod([1.0 + t for t in inputs.tech_multipliers])), TECH_CAP)
    return (
        inputs.player_troops
        * morale_factor
        * (1.0 + supply_bonus)
        * (1.0 + inputs.attack_bonus)
        * tech_product
    )


def _casualties(
    headcount: float,
    won: np.ndarray,
    intensity: np.ndarray,
    severity: np.ndarray,
    opponent_share: np.ndarray,
) -> np.ndarray:
    winner_loss = headcount * intensity * opponent_share * severity
    loser_loss = headcount * np.minimum(
        1.0, (ROUT_BASE_LOSS + 2.0 * intensity) * severity * 2.0 * opponent_share
    )
    losses = np.where(won, winner_loss, loser_loss)
    return np.clip(np.floor(losses), 0.0, headcount)


def _short_circuit() -> BattleSimulationResult:
    return BattleSimulationResult(
        win_probability=0.0,
        casualties=Distribution.zero(),
        enemy_casualties=Distribution.zero(),
        risk_level=BattleRisk.SUICIDAL,
        recommendation=RECOMMENDATIONS[BattleRisk.SUICIDAL],
        trials=0,
    )


def simulate_battle(
    inputs: BattleSimulationInput,
    trials: int | None = None,
    rng: RandomSource = None,
    keep_samples: bool = False,
) -> BattleSimulationResult:
    """Forecast a battle with *trials* Monte Carlo trials.

    Args:
        inputs: Battle inputs; validated before any sampling.
        trials: Trial count (defaults to the configured ``forecast.trials``).
        rng: Seed or generator for reproducible runs.
        keep_samples: Attach per-trial samples to the result.

    Returns:
        The aggregated :class:`BattleSimulationResult`.  With zero troops
        the result is a certain defeat and no randomness is consumed.

    Raises:
        InvalidInputError: If *inputs* or *trials* is invalid.
    """
    settings = get_settings().forecast
    inputs.validate()
    n = validate_trials(trials if trials is not None else settings.trials)

    if inputs.player_troops == 0:
        logger.debug("Battle forecast short-circuited: no troops committed")
        return _short_circuit()

    gen = make_rng(rng if rng is not None else settings.seed)

    # Fixed draw order: player noise, enemy noise, intensity, severities.
    z_player = gen.standard_normal(n)
    z_enemy = gen.standard_normal(n)
    intensity = np.clip(gen.normal(INTENSITY_MEAN, INTENSITY_STD, n), *INTENSITY_BOUNDS)
    severity_player = np.clip(gen.normal(1.0, SEVERITY_STD, n), *SEVERITY_BOUNDS)
    severity_enemy = np.clip(gen.normal(1.0, SEVERITY_STD, n), *SEVERITY_BOUNDS)

    player = np.maximum(effective_strength(inputs) * (1.0 + inputs.weather_variance * z_player), 0.0)
    enemy = np.maximum(inputs.enemy_strength * (1.0 + settings.enemy_variance * z_enemy), 0.0)

    # Ties go to the defender.
    wins = player > enemy

    total = player + enemy
    enemy_share = np.divide(enemy, total, out=np.full(n, 0.5), where=total > 0)
    player_share = 1.0 - enemy_share

    player_losses = _casualties(float(inputs.player_troops), wins, intensity,
                                severity_player, enemy_share)
    enemy_losses = _casualties(float(inputs.enemy_strength), ~wins, intensity,
                               severity_enemy, player_share)

    win_probability = float(wins.mean())
    risk = classify_battle_risk(win_probability)
    logger.debug(
        "Battle forecast: {} trials, win probability {:.3f} ({})",
        n, win_probability, risk.value,
    )

    samples = None
    if keep_samples:
        samples = {
            "player_strength": player.tolist(),
            "enemy_strength": enemy.tolist(),
            "won": wins.astype(float).tolist(),
            "casualties": player_losses.tolist(),
            "enemy_casualties": enemy_losses.tolist(),
        }

    return BattleSimulationResult(
        win_probability=win_probability,
        casualties=summarize(player_losses),
        enemy_casualties=summarize(enemy_losses),
        risk_level=risk,
        recommendation=RECOMMENDATIONS[risk],
        trials=n,
        samples=samples,
    )


@register_simulator("battle")
class BattleSimulator(BaseSimulator):
    """Registry face of :func:`simulate_battle`.

    Recognised ``params``: ``keep_samples`` (bool).
    """

    input_type = BattleSimulationInput

    def _run(self, inputs: BattleSimulationInput, trials: int,
             rng: np.random.Generator) -> BattleSimulationResult:
        return simulate_battle(
            inputs,
            trials=trials,
            rng=rng,
            keep_samples=bool(self.config.params.get("keep_samples", False)),
        )
