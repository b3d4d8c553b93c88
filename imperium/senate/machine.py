"""Per-senator state machines.

All five machines share one mechanism: the rules for the senator's current
state are tried in table order and the first whose guard holds fires.  State
sets and tables are per senator (see :mod:`imperium.senate.senators`).

Typical usage::

    result = evaluate_transition(senator, TickContext(round=12, troops=80))
    if result.transitioned:
        senator = apply_transition(senator, result.new_state, 12)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from loguru import logger

from imperium.core.config import get_settings
from imperium.core.errors import InvalidInputError
from imperium.senate.conditions import evaluate_conditions
from imperium.senate.models import SENATOR_STATES, SenatorId, SenatorState, TickContext
from imperium.senate.senators import (
    HOSTILE_STATES,
    LETHAL_STATES,
    PROGRESSIONS,
    SENATORS,
    STATE_DESCRIPTIONS,
    TERMINAL_STATES,
    TRANSITIONS,
    WARNING_STATES,
    StateProgression,
)

Sentiment = Literal["positive", "neutral", "negative", "terminal_good", "terminal_bad"]
DangerLevel = Literal["safe", "warning", "critical"]

CRITICAL_RELATION: int = -50
WARNING_RELATION: int = -25


@dataclass(frozen=True)
class TransitionResult:
    transitioned: bool
    new_state: str | None = None
    reason: str | None = None
    is_terminal: bool = False
    is_lethal: bool = False


@dataclass(frozen=True)
class PossibleTransition:
    state: str
    description: str
    meets_conditions: bool


NO_TRANSITION = TransitionResult(transitioned=False)


def valid_states(senator_id: SenatorId) -> tuple[str, ...]:
    return SENATOR_STATES[SenatorId(senator_id)]


def is_valid_state(senator_id: SenatorId, state: str) -> bool:
    return state in valid_states(senator_id)


def is_terminal_state(state: str) -> bool:
    return state in TERMINAL_STATES


def is_lethal_state(state: str) -> bool:
    return state in LETHAL_STATES


def in_grace_period(round_: int, grace_period_rounds: int | None = None) -> bool:
    limit = get_settings().senate.grace_period_rounds if grace_period_rounds is None else grace_period_rounds
    return round_ <= limit


def evaluate_transition(
    senator: SenatorState,
    context: TickContext,
    senators: Mapping[SenatorId, SenatorState] | None = None,
    grace_period_rounds: int | None = None,
) -> TransitionResult:
    """Return the first transition whose guard holds for *senator*.

    Terminal states never transition and no automatic transition fires during
    the grace period; both cases return :data:`NO_TRANSITION`.

    Args:
        senator: Senator to evaluate.
        context: Round number and player figures.
        senators: All senators, for guards that look at other senators.
        grace_period_rounds: Override for the configured grace period.
    """
    if is_terminal_state(senator.current_state):
        return NO_TRANSITION
    if in_grace_period(context.round, grace_period_rounds):
        return NO_TRANSITION

    for rule in TRANSITIONS[senator.id]:
        if rule.source != senator.current_state:
            continue
        if evaluate_conditions(rule.conditions, senator, context, senators):
            return TransitionResult(
                transitioned=True,
                new_state=rule.target,
                reason=rule.description,
                is_terminal=is_terminal_state(rule.target),
                is_lethal=is_lethal_state(rule.target),
            )
    return NO_TRANSITION


def apply_transition(senator: SenatorState, new_state: str, round_: int) -> SenatorState:
    """Return a copy of *senator* moved into *new_state*.

    Raises:
        InvalidInputError: If *new_state* is not in the senator's state set,
            or the senator already sits in a terminal state.
    """
    if not is_valid_state(senator.id, new_state):
        raise InvalidInputError(f"'{new_state}' is not a valid state for {senator.id.value}")
    if is_terminal_state(senator.current_state):
        raise InvalidInputError(
            f"{senator.id.value} is in terminal state '{senator.current_state}'"
        )
    logger.info("{}: {} -> {} (round {})", senator.id.value, senator.current_state, new_state, round_)
    return senator.model_copy(update={"current_state": new_state, "state_entered_round": round_})


def possible_transitions(
    senator: SenatorState,
    context: TickContext,
    senators: Mapping[SenatorId, SenatorState] | None = None,
) -> list[PossibleTransition]:
    """Outgoing edges of the senator's current state and whether each is live."""
    if is_terminal_state(senator.current_state):
        return []
    return [
        PossibleTransition(
            state=rule.target,
            description=rule.description,
            meets_conditions=evaluate_conditions(rule.conditions, senator, context, senators),
        )
        for rule in TRANSITIONS[senator.id]
        if rule.source == senator.current_state
    ]


def state_progression(senator_id: SenatorId) -> StateProgression:
    return PROGRESSIONS[SenatorId(senator_id)]


def get_state_sentiment(senator_id: SenatorId, state: str) -> Sentiment:
    """Classify *state* for display; states outside the progression are neutral."""
    progression = state_progression(senator_id)
    if state in progression.terminal_good:
        return "terminal_good"
    if state in progression.terminal_bad:
        return "terminal_bad"
    if state in progression.positive:
        return "positive"
    if state in progression.negative:
        return "negative"
    return "neutral"


def get_senator_danger_level(senator: SenatorState) -> DangerLevel:
    """How much of a threat *senator* currently is to the player.

    ``critical`` when an assassination window is open or the relation is at
    or below -50 in a hostile-class state; ``warning`` for warning-class
    states or a relation at or below -25; ``safe`` otherwise.  A senator that
    cannot assassinate is never rated above ``warning``.
    """
    can_assassinate = SENATORS[senator.id].can_assassinate
    if can_assassinate and senator.assassination.window_open:
        return "critical"
    if (
        can_assassinate
        and senator.relation <= CRITICAL_RELATION
        and senator.current_state in HOSTILE_STATES
    ):
        return "critical"
    if (
        senator.current_state in WARNING_STATES
        or senator.current_state in HOSTILE_STATES
        or senator.relation <= WARNING_RELATION
    ):
        return "warning"
    return "safe"


def state_description(state: str) -> str:
    return STATE_DESCRIPTIONS.get(state, "Unknown.")
