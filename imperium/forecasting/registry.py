"""Simulator registry.

Provides a singleton :class:`SimulatorRegistry` mapping names to simulator
classes, populated imperatively or with the :func:`register_simulator`
decorator.  Each simulator declares the input model it accepts, so the
registry can also pick the simulator for a given input and run it.

Typical usage::

    @register_simulator("battle")
    class BattleSimulator(BaseSimulator): ...

    registry = SimulatorRegistry()
    sim = registry.create("battle", SimulatorConfig(name="battle"))
    result = registry.simulate(BattleSimulationInput(...), rng=7)
"""

from __future__ import annotations

import threading
from typing import Any, Callable, TypeVar

from loguru import logger

from imperium.core.rng import RandomSource
from imperium.forecasting.base import BaseSimulator, SimulatorConfig

T = TypeVar("T", bound=type[BaseSimulator])


class SimulatorRegistry:
    """Thread-safe singleton registry of simulator classes."""

    _instance: SimulatorRegistry | None = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> SimulatorRegistry:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._registry: dict[str, type[BaseSimulator]] = {}
                    cls._instance = instance
                    logger.debug("SimulatorRegistry singleton created.")
        return cls._instance

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(self, name: str, simulator_class: type[BaseSimulator]) -> None:
        """Register *simulator_class* under *name*.

        Raises:
            TypeError: If *simulator_class* is not a :class:`BaseSimulator`
                subclass or does not declare an ``input_type`` class.
            ValueError: If *name* is taken.
        """
        if not (isinstance(simulator_class, type) and issubclass(simulator_class, BaseSimulator)):
            raise TypeError(
                f"simulator_class must be a subclass of BaseSimulator, "
                f"got {simulator_class!r}"
            )
        if not isinstance(getattr(simulator_class, "input_type", None), type):
            raise TypeError(f"{simulator_class.__name__} does not declare an input_type")
        if name in self._registry:
            raise ValueError(
                f"A simulator is already registered under '{name}' "
                f"({self._registry[name].__name__})"
            )
        self._registry[name] = simulator_class
        logger.info("Registered simulator '{}' -> {}", name, simulator_class.__name__)

    def create(self, name: str, config: SimulatorConfig | None = None) -> BaseSimulator:
        """Instantiate the simulator registered under *name*.

        Args:
            name: Registered key.
            config: Optional configuration; defaults to ``SimulatorConfig(name=name)``.

        Raises:
            KeyError: If *name* is unknown.
        """
        if name not in self._registry:
            available = ", ".join(sorted(self._registry)) or "(none)"
            raise KeyError(f"No simulator registered under '{name}'. Available: {available}")
        simulator_class = self._registry[name]
        logger.debug("Creating simulator '{}' from {}", name, simulator_class.__name__)
        return simulator_class(config or SimulatorConfig(name=name))

    def name_for(self, inputs: Any) -> str:
        """Name of the registered simulator accepting *inputs*.

        Raises:
            KeyError: If no simulator accepts this input type.
            ValueError: If more than one does.
        """
        matches = sorted(
            name for name, cls in self._registry.items() if isinstance(inputs, cls.input_type)
        )
        if not matches:
            raise KeyError(f"No simulator accepts {type(inputs).__name__}")
        if len(matches) > 1:
            raise ValueError(
                f"{type(inputs).__name__} is accepted by several simulators: {', '.join(matches)}"
            )
        return matches[0]

    def simulate(
        self,
        inputs: Any,
        config: SimulatorConfig | None = None,
        trials: int | None = None,
        rng: RandomSource = None,
    ) -> Any:
        """Run *inputs* through the simulator registered for their type."""
        name = self.name_for(inputs)
        return self.create(name, config).simulate(inputs, trials=trials, rng=rng)

    def list_simulators(self) -> list[str]:
        return sorted(self._registry)

    def unregister(self, name: str) -> None:
        if name not in self._registry:
            raise KeyError(f"No simulator registered under '{name}'.")
        del self._registry[name]
        logger.info("Unregistered simulator '{}'", name)

    def clear(self) -> None:
        """Remove all registered simulators.  Primarily useful in tests."""
        self._registry.clear()
        logger.debug("SimulatorRegistry cleared.")


def register_simulator(name: str) -> Callable[[T], T]:
    """Class decorator registering a simulator with the global registry."""

    def decorator(cls: T) -> T:
        SimulatorRegistry().register(name, cls)
        return cls

    return decorator
