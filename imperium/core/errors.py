"""Exception hierarchy shared by the forecasting and senate engines.

Input problems surface as :class:`InvalidInputError` (a ``ValueError``) so
callers that already guard against ``ValueError`` keep working.  Invariant
violations are only ever raised when strict checking is switched on in
:mod:`imperium.core.config`.
"""

from __future__ import annotations


class ImperiumError(Exception):
    """Base class for all errors raised by the imperium package."""


class InvalidInputError(ImperiumError, ValueError):
    """Raised for malformed or out-of-range input data."""


class AttentionLockedError(InvalidInputError):
    """Raised when an attention allocation is confirmed twice in a season."""


class InvariantViolationError(ImperiumError, AssertionError):
    """Raised when a computed result breaks a structural invariant."""
