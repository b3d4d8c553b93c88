"""Shared pytest configuration.

Strict invariant checking is switched on for the whole session so that any
ordering or sum-to-100 violation surfaces as an
:class:`~imperium.core.errors.InvariantViolationError`.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from imperium.core.config import ForecastSettings, Settings, configure


@pytest.fixture(autouse=True, scope="session")
def strict_invariants() -> Iterator[None]:
    """Enable strict invariants for every test."""
    previous = configure(Settings(forecast=ForecastSettings(strict_invariants=True)))
    yield
    configure(previous)
