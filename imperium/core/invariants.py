"""Post-condition checks enabled by ``forecast.strict_invariants``.

Both checks are no-ops unless strict mode is on; the test-suite enables it
for the whole session.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from imperium.core.config import get_settings
from imperium.core.errors import InvariantViolationError

_TOLERANCE = 1e-9


def strict_enabled() -> bool:
    return get_settings().forecast.strict_invariants


def check_ordered(values: Sequence[float], label: str) -> None:
    """Raise if *values* is not non-decreasing (strict mode only).

    Args:
        values: Values expected in ascending order.
        label: Name used in the error message.

    Raises:
        InvariantViolationError: On the first out-of-order pair.
    """
    if not strict_enabled():
        return
    for lower, upper in zip(values, values[1:]):
        if lower > upper + _TOLERANCE:
            raise InvariantViolationError(
                f"{label}: expected ascending values, got {list(values)}"
            )


def check_allocation_total(allocation: Mapping[object, int], total: int = 100) -> None:
    """Raise if an attention allocation does not sum to *total* (strict mode only)."""
    if not strict_enabled():
        return
    actual = sum(allocation.values())
    if actual != total:
        raise InvariantViolationError(
            f"Attention allocation sums to {actual}, expected {total}: "
            f"{dict(allocation)}"
        )
