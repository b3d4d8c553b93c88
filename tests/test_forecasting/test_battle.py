"""Tests for the Monte Carlo battle forecaster."""

from __future__ import annotations

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from imperium.core.errors import InvalidInputError
from imperium.forecasting.battle import (
    RECOMMENDATIONS,
    BattleRisk,
    BattleSimulationInput,
    classify_battle_risk,
    effective_strength,
    simulate_battle,
)
from imperium.forecasting.distribution import Distribution


def _inputs(**overrides: object) -> BattleSimulationInput:
    fields: dict[str, object] = dict(
        player_troops=100, player_morale=80, player_supplies=200, enemy_strength=100,
    )
    fields.update(overrides)
    return BattleSimulationInput(**fields)  # type: ignore[arg-type]


class TestBattleForecast:
    """Tests for :func:`simulate_battle`."""

    def test_even_fight_is_risky(self) -> None:
        """A near-even fight lands around a coin flip."""
        result = simulate_battle(_inputs(), trials=5000, rng=42)
        assert 0.45 <= result.win_probability <= 0.65
        assert result.risk_level in (BattleRisk.RISKY, BattleRisk.FAVORABLE)
        assert result.recommendation == RECOMMENDATIONS[result.risk_level]
        assert result.trials == 5000

    def test_seed_reproducible(self) -> None:
        first = simulate_battle(_inputs(), trials=500, rng=3)
        second = simulate_battle(_inputs(), trials=500, rng=3)
        assert first.model_dump() == second.model_dump()

    def test_overwhelming_force(self) -> None:
        result = simulate_battle(_inputs(player_troops=1000, enemy_strength=10), trials=500, rng=1)
        assert result.win_probability >= 0.99
        assert result.risk_level is BattleRisk.SAFE

    def test_no_enemy(self) -> None:
        """An absent enemy inflicts no casualties."""
        result = simulate_battle(_inputs(enemy_strength=0), trials=300, rng=2)
        assert result.win_probability >= 0.99
        assert result.casualties.max == 0.0
        assert result.enemy_casualties.max == 0.0

    def test_zero_troops_short_circuits(self) -> None:
        """No troops means certain defeat without touching the generator."""
        gen = np.random.default_rng(11)
        result = simulate_battle(_inputs(player_troops=0), trials=100, rng=gen)
        assert result.win_probability == 0.0
        assert result.risk_level is BattleRisk.SUICIDAL
        assert result.casualties == Distribution.zero()
        assert result.enemy_casualties == Distribution.zero()
        assert result.trials == 0
        assert gen.random() == np.random.default_rng(11).random()

    def test_keep_samples(self) -> None:
        result = simulate_battle(_inputs(), trials=64, rng=5, keep_samples=True)
        assert result.samples is not None
        assert all(len(v) == 64 for v in result.samples.values())
        wins = np.asarray(result.samples["won"])
        assert wins.mean() == pytest.approx(result.win_probability)

    def test_samples_omitted_by_default(self) -> None:
        assert simulate_battle(_inputs(), trials=10, rng=5).samples is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {"player_troops": -1},
            {"player_morale": 120},
            {"player_morale": -5},
            {"player_supplies": -1},
            {"enemy_strength": -10},
            {"weather_variance": -0.1},
            {"attack_bonus": -1.5},
            {"enemy_strength": float("nan")},
        ],
    )
    def test_invalid_inputs_rejected(self, overrides: dict[str, object]) -> None:
        with pytest.raises(InvalidInputError):
            simulate_battle(_inputs(**overrides), trials=10, rng=0)

    def test_invalid_trials_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            simulate_battle(_inputs(), trials=0, rng=0)


class TestStrengthAndRisk:
    """Tests for the deterministic helpers."""

    def test_baseline_strength(self) -> None:
        """Full morale and baseline supplies leave troops unchanged."""
        assert effective_strength(_inputs(player_morale=100, player_supplies=100)) == pytest.approx(100.0)

    def test_morale_floor(self) -> None:
        assert effective_strength(_inputs(player_morale=0, player_supplies=100)) == pytest.approx(60.0)

    def test_supply_bonus_capped(self) -> None:
        capped = effective_strength(_inputs(player_morale=100, player_supplies=10_000))
        assert capped == pytest.approx(130.0)

    def test_tech_product_capped(self) -> None:
        """Compounded technology bonuses never exceed 2x."""
        triple = effective_strength(_inputs(player_morale=100, player_supplies=100,
                                            tech_multipliers=(0.5, 0.5, 0.5)))
        assert triple == pytest.approx(200.0)

    @pytest.mark.parametrize(
        ("probability", "expected"),
        [
            (1.0, BattleRisk.SAFE),
            (0.75, BattleRisk.SAFE),
            (0.74, BattleRisk.FAVORABLE),
            (0.60, BattleRisk.FAVORABLE),
            (0.40, BattleRisk.RISKY),
            (0.20, BattleRisk.DANGEROUS),
            (0.19, BattleRisk.SUICIDAL),
            (0.0, BattleRisk.SUICIDAL),
        ],
    )
    def test_risk_thresholds(self, probability: float, expected: BattleRisk) -> None:
        assert classify_battle_risk(probability) is expected


class TestPropertyBased:
    """Property-based battle checks."""

    @given(
        low=st.integers(min_value=1, max_value=500),
        extra=st.integers(min_value=0, max_value=500),
        enemy=st.integers(min_value=0, max_value=800),
        seed=st.integers(min_value=0, max_value=2**16),
    )
    @settings(max_examples=25, deadline=10000)
    def test_win_probability_monotone_in_troops(self, low: int, extra: int, enemy: int,
                                                seed: int) -> None:
        """More troops never lower the win probability for the same seed."""
        weaker = simulate_battle(_inputs(player_troops=low, enemy_strength=enemy), trials=300, rng=seed)
        stronger = simulate_battle(_inputs(player_troops=low + extra, enemy_strength=enemy),
                                   trials=300, rng=seed)
        assert weaker.win_probability <= stronger.win_probability

    @given(
        troops=st.integers(min_value=1, max_value=2000),
        morale=st.floats(min_value=0, max_value=100),
        supplies=st.floats(min_value=0, max_value=5000),
        enemy=st.floats(min_value=0, max_value=3000),
        variance=st.floats(min_value=0, max_value=0.5),
    )
    @settings(max_examples=30, deadline=10000)
    def test_casualties_bounded(self, troops: int, morale: float, supplies: float,
                                enemy: float, variance: float) -> None:
        """Losses stay within each side's headcount and the probability within [0, 1]."""
        result = simulate_battle(
            _inputs(player_troops=troops, player_morale=morale, player_supplies=supplies,
                    enemy_strength=enemy, weather_variance=variance),
            trials=200,
            rng=0,
        )
        assert 0.0 <= result.win_probability <= 1.0
        assert result.casualties.min >= 0.0
        assert result.casualties.max <= troops
        assert result.enemy_casualties.min >= 0.0
        assert result.enemy_casualties.max <= enemy
