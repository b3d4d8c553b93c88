"""Attention allocation: the 100 points the player spreads across senators.

:func:`redistribute` serves an interactive slider, moving one senator and
rebalancing the other four so the total stays exactly 100.
:func:`allocate_attention` is the explicit confirmation step that writes an
allocation into the senate state and locks it for the season.

Typical usage::

    alloc = redistribute(DEFAULT_ATTENTION, SenatorId.SULLA, 60)
    state = allocate_attention(state, alloc)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from loguru import logger

from imperium.core.config import SenateSettings, get_settings
from imperium.core.errors import AttentionLockedError, InvalidInputError
from imperium.core.invariants import check_allocation_total
from imperium.senate.models import SENATOR_ORDER, SenateState, SenatorId

ATTENTION_TOTAL: int = 100

Allocation = dict[SenatorId, int]


@dataclass(frozen=True)
class AttentionTier:
    """Effect band for an attention value.

    Attributes:
        min_attention: Lower bound (inclusive).
        max_attention: Upper bound (inclusive).
        name: Display name of the band.
        relation_drift: Relation change applied each season.
        event_chance: Probability an eligible event of this senator is admitted.
        warning_chance: Probability the player is warned of a plot.
    """

    min_attention: int
    max_attention: int
    name: str
    relation_drift: int
    event_chance: float
    warning_chance: float


ATTENTION_TIERS: tuple[AttentionTier, ...] = (
    AttentionTier(0, 10, "Neglect", -3, 0.2, 0.1),
    AttentionTier(11, 20, "Maintenance", -1, 0.5, 0.4),
    AttentionTier(21, 30, "Engaged", 1, 0.8, 0.7),
    AttentionTier(31, 100, "Focused", 3, 1.0, 0.95),
)

DEFAULT_ATTENTION: Allocation = {sid: 20 for sid in SENATOR_ORDER}


def _preset(sertorius: int, sulla: int, clodius: int, pulcher: int, oppius: int) -> Allocation:
    return dict(zip(SENATOR_ORDER, (sertorius, sulla, clodius, pulcher, oppius)))


ATTENTION_PRESETS: dict[str, tuple[str, Allocation]] = {
    "balanced": ("Balanced", _preset(20, 20, 20, 20, 20)),
    "military": ("Military Focus", _preset(35, 35, 10, 10, 10)),
    "popular": ("Popular Support", _preset(15, 10, 40, 25, 10)),
    "divine": ("Divine Favor", _preset(20, 10, 10, 40, 20)),
    "intelligence": ("Spymaster", _preset(15, 15, 15, 15, 40)),
    "threat": ("Threat Mitigation", _preset(10, 30, 30, 10, 20)),
}


# ---------------------------------------------------------------------------
# Tiers and drift
# ---------------------------------------------------------------------------

def attention_tier(value: int) -> AttentionTier:
    """Return the tier containing *value* (clamped into ``[0, 100]``)."""
    clamped = max(0, min(ATTENTION_TOTAL, int(value)))
    for tier in ATTENTION_TIERS:
        if tier.min_attention <= clamped <= tier.max_attention:
            return tier
    return ATTENTION_TIERS[0]


def attention_drift(value: int, round_: int, settings: SenateSettings | None = None) -> int:
    """Seasonal relation drift for an attention *value* at *round_*.

    Inside the grace period the tier drift is scaled by
    ``senate.grace_dampening`` and truncated toward zero, so its magnitude is
    strictly smaller than outside the grace period.
    """
    settings = settings or get_settings().senate
    drift = attention_tier(value).relation_drift
    if round_ <= settings.grace_period_rounds:
        return int(drift * settings.grace_dampening)
    return drift


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------

def validate_allocation(allocation: Mapping[SenatorId, int]) -> Allocation:
    """Return a normalised copy of *allocation*.

    Raises:
        InvalidInputError: If senators are missing or unknown, a value is
            outside ``[0, 100]``, or the values do not sum to 100.
    """
    try:
        normalised = {SenatorId(key): value for key, value in allocation.items()}
    except ValueError as exc:
        raise InvalidInputError(f"Unknown senator in allocation: {exc}") from exc

    missing = set(SENATOR_ORDER) - set(normalised)
    if missing:
        raise InvalidInputError(
            f"Allocation is missing senators: {sorted(m.value for m in missing)}"
        )
    for sid, value in normalised.items():
        if int(value) != value or not 0 <= value <= ATTENTION_TOTAL:
            raise InvalidInputError(
                f"Attention for {sid.value} must be an integer in [0, 100], got {value}"
            )
    total = sum(normalised.values())
    if total != ATTENTION_TOTAL:
        raise InvalidInputError(f"Attention must sum to {ATTENTION_TOTAL}, got {total}")
    return {sid: int(normalised[sid]) for sid in SENATOR_ORDER}


def _rotation_after(changed: SenatorId) -> list[SenatorId]:
    start = SENATOR_ORDER.index(changed)
    return [SENATOR_ORDER[(start + i) % len(SENATOR_ORDER)] for i in range(1, len(SENATOR_ORDER))]


def redistribute(
    current: Mapping[SenatorId, int],
    changed: SenatorId,
    new_value: float,
) -> Allocation:
    """Move *changed* to *new_value* and rebalance the other senators.

    The opposite of the change is spread over the other four proportionally
    to their current share of the points not held by *changed*, truncating
    to integers.  The truncation residue goes to the next senators in
    canonical order after *changed* (wrapping around) that can absorb it.

    Args:
        current: A valid allocation summing to 100.
        changed: Senator whose slider moved.
        new_value: Requested value; clamped to ``[0, 100]``.

    Returns:
        A new allocation summing to exactly 100.  If the other senators hold
        no points and *changed* is being raised, the request cannot be
        satisfied and an unchanged copy is returned.

    Raises:
        InvalidInputError: If *current* is not a valid allocation or
            *changed* is not a senator.
    """
    alloc = validate_allocation(current)
    try:
        changed = SenatorId(changed)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown senator: {changed!r}") from exc

    target = int(round(max(0.0, min(float(ATTENTION_TOTAL), float(new_value)))))
    old = alloc[changed]
    delta = target - old
    if delta == 0:
        return alloc

    others = _rotation_after(changed)
    pool = ATTENTION_TOTAL - old
    result = dict(alloc)
    result[changed] = target

    if pool == 0:
        if delta > 0:
            logger.warning(
                "Rejected attention move for {}: no points left to take", changed.value
            )
            return alloc
        share, extra = divmod(-delta, len(others))
        for i, sid in enumerate(others):
            result[sid] = share + (1 if i < extra else 0)
        check_allocation_total(result)
        return result

    for sid in others:
        moved = abs(delta) * alloc[sid] // pool
        result[sid] = alloc[sid] - moved if delta > 0 else alloc[sid] + moved

    residue = ATTENTION_TOTAL - sum(result.values())
    for sid in others:
        if residue == 0:
            break
        if residue > 0:
            step = min(ATTENTION_TOTAL - result[sid], residue)
        else:
            step = -min(result[sid], -residue)
        result[sid] += step
        residue -= step

    check_allocation_total(result)
    return result


def apply_preset(name: str) -> Allocation:
    """Return a copy of the named preset allocation.

    Raises:
        InvalidInputError: If *name* is not a known preset.
    """
    if name not in ATTENTION_PRESETS:
        raise InvalidInputError(
            f"Unknown attention preset '{name}'. Available: {', '.join(sorted(ATTENTION_PRESETS))}"
        )
    return dict(ATTENTION_PRESETS[name][1])


def allocate_attention(state: SenateState, allocation: Mapping[SenatorId, int]) -> SenateState:
    """Confirm *allocation* for the season and lock it.

    Raises:
        AttentionLockedError: If an allocation is already locked.
        InvalidInputError: If *allocation* is invalid.
    """
    if state.attention_locked:
        raise AttentionLockedError("Attention is already locked for this season")
    confirmed = validate_allocation(allocation)
    logger.info(
        "Attention locked: {}", ", ".join(f"{sid.value}={v}" for sid, v in confirmed.items())
    )
    return state.model_copy(
        update={"attention_this_season": confirmed, "attention_locked": True}, deep=True
    )
