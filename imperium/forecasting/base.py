"""Abstract simulator interface for the forecasting engine.

Each concrete simulator wraps one pure ``simulate_*`` function and gives it a
uniform, configurable object face so hosts can look simulators up by name
through :class:`~imperium.forecasting.registry.SimulatorRegistry`.

Typical usage::

    class BattleSimulator(BaseSimulator):
        input_type = BattleSimulationInput

        def _run(self, inputs, trials, rng): ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

import numpy as np
from loguru import logger
from pydantic import BaseModel as PydanticBaseModel, Field

from imperium.core.config import get_settings
from imperium.core.errors import InvalidInputError
from imperium.core.rng import RandomSource, make_rng


class SimulatorConfig(PydanticBaseModel):
    """Configuration container for simulator instantiation.

    Attributes:
        name: Human-readable identifier for the simulator.
        version: Semantic version string following ``MAJOR.MINOR.PATCH``.
        trials: Default trial count; ``None`` falls back to the active
            :class:`~imperium.core.config.ForecastSettings`.
        params: Extra keyword arguments forwarded to the simulation
            function.  Each simulator documents its own keys.
    """

    name: str
    version: str = "0.1.0"
    trials: int | None = Field(default=None, ge=1)
    params: dict[str, Any] = Field(default_factory=dict)


class BaseSimulator(ABC):
    """Abstract base for Monte Carlo simulators.

    Subclasses set :attr:`input_type` and implement :meth:`_run`.

    Args:
        config: A :class:`SimulatorConfig` carrying the name, default trial
            count and extra parameters.
    """

    input_type: ClassVar[type]

    def __init__(self, config: SimulatorConfig) -> None:
        self.config = config
        logger.info(
            "Initialized simulator '{}' v{} with params: {}",
            config.name,
            config.version,
            config.params,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def simulate(
        self,
        inputs: Any,
        trials: int | None = None,
        rng: RandomSource = None,
    ) -> Any:
        """Run the simulation.

        Args:
            inputs: An instance of :attr:`input_type`.
            trials: Trial count override.
            rng: Seed or generator; ``None`` uses the configured seed.

        Returns:
            The simulator-specific result object.

        Raises:
            InvalidInputError: If *inputs* has the wrong type or *trials*
                is not positive.
        """
        if not isinstance(inputs, self.input_type):
            raise InvalidInputError(
                f"Simulator '{self.config.name}' expects "
                f"{self.input_type.__name__}, got {type(inputs).__name__}"
            )
        n = self._resolve_trials(trials)
        source = rng if rng is not None else get_settings().forecast.seed
        return self._run(inputs, n, make_rng(source))

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    def _run(self, inputs: Any, trials: int, rng: np.random.Generator) -> Any:
        """Execute *trials* Monte Carlo trials on validated inputs."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _resolve_trials(self, trials: int | None) -> int:
        n = trials if trials is not None else self.config.trials
        if n is None:
            n = get_settings().forecast.trials
        return validate_trials(n)


def validate_trials(trials: int) -> int:
    """Return *trials* if it is a positive integer, else raise.

    Raises:
        InvalidInputError: If *trials* is below 1.
    """
    if int(trials) < 1:
        raise InvalidInputError(f"trials must be >= 1, got {trials}")
    return int(trials)
