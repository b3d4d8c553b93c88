"""Random source normalisation.

Every stochastic entry point accepts ``seed | Generator | None`` so that a
host can either replay a run exactly or share one generator across calls.
"""

from __future__ import annotations

import numpy as np

RandomSource = int | np.random.Generator | None


def make_rng(source: RandomSource = None) -> np.random.Generator:
    """Return a :class:`numpy.random.Generator` for *source*.

    Args:
        source: An existing generator (returned unchanged), an integer seed,
            or ``None`` for fresh OS entropy.

    Returns:
        A ready-to-use generator.
    """
    if isinstance(source, np.random.Generator):
        return source
    return np.random.default_rng(source)
