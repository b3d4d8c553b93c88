"""Tests for the simulator registry and the BaseSimulator face."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import numpy as np
import pytest

from imperium.core.errors import InvalidInputError
from imperium.forecasting.base import BaseSimulator, SimulatorConfig
from imperium.forecasting.battle import BattleSimulationInput, BattleSimulationResult, BattleSimulator
from imperium.forecasting.caravan import CaravanSimulationInput, CaravanSimulator
from imperium.forecasting.registry import SimulatorRegistry, register_simulator


class _DummySimulator(BaseSimulator):
    """Minimal concrete simulator for registry tests."""

    input_type = dict

    def _run(self, inputs: Any, trials: int, rng: np.random.Generator) -> Any:
        return {"trials": trials, "draw": float(rng.random())}


@pytest.fixture(autouse=True)
def _restore_registry() -> Iterator[None]:
    """Snapshot and restore the global registry around each test."""
    registry = SimulatorRegistry()
    saved = dict(registry._registry)
    yield
    registry._registry.clear()
    registry._registry.update(saved)


class TestSimulatorRegistry:
    """Tests for :class:`SimulatorRegistry`."""

    def test_singleton(self) -> None:
        assert SimulatorRegistry() is SimulatorRegistry()

    def test_builtin_simulators_registered(self) -> None:
        names = SimulatorRegistry().list_simulators()
        assert "battle" in names
        assert "caravan" in names

    def test_create_returns_instance(self) -> None:
        sim = SimulatorRegistry().create("battle")
        assert isinstance(sim, BattleSimulator)
        assert sim.config.name == "battle"

    def test_create_unknown_raises(self) -> None:
        with pytest.raises(KeyError, match="No simulator registered"):
            SimulatorRegistry().create("chariot_race")

    def test_register_and_unregister(self) -> None:
        registry = SimulatorRegistry()
        registry.register("dummy", _DummySimulator)
        assert "dummy" in registry.list_simulators()
        registry.unregister("dummy")
        assert "dummy" not in registry.list_simulators()

    def test_duplicate_name_raises(self) -> None:
        registry = SimulatorRegistry()
        registry.register("dummy", _DummySimulator)
        with pytest.raises(ValueError, match="already registered"):
            registry.register("dummy", _DummySimulator)

    def test_non_simulator_rejected(self) -> None:
        with pytest.raises(TypeError):
            SimulatorRegistry().register("bogus", dict)  # type: ignore[arg-type]

    def test_unregister_unknown_raises(self) -> None:
        with pytest.raises(KeyError):
            SimulatorRegistry().unregister("missing")

    def test_decorator_registers(self) -> None:
        @register_simulator("decorated")
        class _Decorated(_DummySimulator):
            pass

        assert isinstance(SimulatorRegistry().create("decorated"), _Decorated)

    def test_missing_input_type_rejected(self) -> None:
        class _NoInput(BaseSimulator):
            def _run(self, inputs: Any, trials: int, rng: np.random.Generator) -> Any:
                return None

        with pytest.raises(TypeError, match="input_type"):
            SimulatorRegistry().register("no_input", _NoInput)

    def test_name_for_input(self) -> None:
        registry = SimulatorRegistry()
        caravan = CaravanSimulationInput(distance=5, base_risk=0.1, goods_value=10)
        assert registry.name_for(caravan) == "caravan"
        with pytest.raises(KeyError, match="No simulator accepts"):
            registry.name_for(3.5)

    def test_ambiguous_input_type(self) -> None:
        registry = SimulatorRegistry()
        registry.register("dummy", _DummySimulator)
        registry.register("dummy_copy", _DummySimulator)
        with pytest.raises(ValueError, match="dummy, dummy_copy"):
            registry.name_for({})

    def test_clear(self) -> None:
        registry = SimulatorRegistry()
        registry.clear()
        assert registry.list_simulators() == []


class TestBaseSimulator:
    """Tests for the shared ``simulate`` entry point."""

    def test_battle_through_registry(self) -> None:
        sim = SimulatorRegistry().create("battle", SimulatorConfig(name="battle", trials=200))
        inputs = BattleSimulationInput(player_troops=100, player_morale=80,
                                       player_supplies=200, enemy_strength=100)
        result = sim.simulate(inputs, rng=7)
        assert isinstance(result, BattleSimulationResult)
        assert result.trials == 200

    def test_registry_dispatches_on_input(self) -> None:
        """The registry runs whichever simulator accepts the inputs."""
        inputs = BattleSimulationInput(player_troops=100, player_morale=80,
                                       player_supplies=200, enemy_strength=100)
        result = SimulatorRegistry().simulate(inputs, trials=50, rng=7)
        assert isinstance(result, BattleSimulationResult)
        assert result.trials == 50
        direct = BattleSimulator(SimulatorConfig(name="battle")).simulate(inputs, trials=50, rng=7)
        assert result == direct

    def test_params_forwarded(self) -> None:
        config = SimulatorConfig(name="caravan", trials=30, params={"keep_samples": True})
        sim = CaravanSimulator(config)
        result = sim.simulate(CaravanSimulationInput(distance=10, base_risk=0.1, goods_value=50), rng=0)
        assert result.samples is not None

    def test_trials_override(self) -> None:
        sim = _DummySimulator(SimulatorConfig(name="dummy", trials=10))
        assert sim.simulate({}, trials=3)["trials"] == 3
        assert sim.simulate({})["trials"] == 10

    def test_wrong_input_type_rejected(self) -> None:
        sim = SimulatorRegistry().create("battle")
        with pytest.raises(InvalidInputError, match="expects BattleSimulationInput"):
            sim.simulate(CaravanSimulationInput(distance=1, base_risk=0.1, goods_value=1))

    def test_non_positive_trials_rejected(self) -> None:
        sim = _DummySimulator(SimulatorConfig(name="dummy"))
        with pytest.raises(InvalidInputError):
            sim.simulate({}, trials=0)

    def test_seeded_runs_match(self) -> None:
        sim = _DummySimulator(SimulatorConfig(name="dummy"))
        assert sim.simulate({}, rng=5) == sim.simulate({}, rng=5)
