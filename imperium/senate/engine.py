"""Seasonal processing of the Senate.

:func:`tick_senate` advances the senate by one season and returns a new
state together with everything the host has to act on (resource deltas,
events to show, an assassination attempt).  The input state is never
modified.

Typical usage::

    state = create_senate()
    state = allocate_attention(state, apply_preset("military"))
    result = tick_senate(state, TickContext(round=5, troops=120), rng=42)
    state = result.state
    if state.current_event is not None:
        outcome = resolve_senator_event(state, "meet_gaze", context)
"""

from __future__ import annotations

from typing import Literal

from loguru import logger
from pydantic import BaseModel as PydanticBaseModel, Field

from imperium.core.config import SenateSettings, get_settings
from imperium.core.errors import InvalidInputError
from imperium.core.rng import RandomSource, make_rng
from imperium.senate.attention import DEFAULT_ATTENTION, attention_drift
from imperium.senate.conditions import evaluate_conditions
from imperium.senate.effects import (
    AppliedEffects,
    apply_effects,
    apply_flag_changes,
    apply_relation_changes,
    decay_cooldowns,
    hold_attempt,
    open_assassination_window,
    process_action_queue,
    update_attention_tracking,
)
from imperium.senate.events import (
    can_select_choice,
    get_event_by_id,
    introduction_events,
    select_season_events,
)
from imperium.senate.machine import apply_transition, evaluate_transition, is_lethal_state
from imperium.senate.models import (
    SENATOR_ORDER,
    AssassinationAttempt,
    AssassinationState,
    EventHistoryEntry,
    FlagChanges,
    ResourceChanges,
    SenateSeasonResult,
    SenateState,
    SenatorEvent,
    SenatorId,
    SenatorState,
    TickContext,
    TransitionRecord,
    clamp_relation,
)
from imperium.senate.senators import (
    CONSEQUENCES,
    SAME_SENATOR_COOLDOWN,
    SAME_SENATOR_COOLDOWN_KEY,
    SENATORS,
    SERTORIUS_SACRIFICE_MORALE,
    WINDOW_RULES,
)


class EventResolution(PydanticBaseModel):
    """Outcome of resolving or dismissing the current event."""

    state: SenateState
    resource_changes: ResourceChanges = Field(default_factory=ResourceChanges)
    messages: list[str] = Field(default_factory=list)
    player_dies: bool = False


class SenateAction(PydanticBaseModel):
    """A notable player action the senators react to.

    Attributes:
        kind: Action category.
        victory: Battle outcome (``battle`` only).
        casualties: Player casualties (``battle`` only).
        action_id: Emergency measure identifier (``emergency`` only).
        new_rate: New tax rate in percent (``tax_change`` only).
    """

    kind: Literal["worship", "battle", "trade", "emergency", "tax_change"]
    victory: bool = False
    casualties: int = 0
    action_id: str | None = None
    new_rate: float | None = None


class SenateReaction(PydanticBaseModel):
    relation_changes: dict[SenatorId, int] = Field(default_factory=dict)
    flag_changes: dict[SenatorId, FlagChanges] = Field(default_factory=dict)


DISHONORABLE_EMERGENCIES: frozenset[str] = frozenset({"martial_law", "forced_levy"})
HONORABLE_CASUALTY_LIMIT: int = 10
HIGH_TAX_RATE: float = 20.0


# ---------------------------------------------------------------------------
# Season tick
# ---------------------------------------------------------------------------

def _attempt_assassination(
    state: SenateState,
    senator_id: SenatorId,
    round_: int,
    messages: list[str],
) -> tuple[AssassinationAttempt, ResourceChanges]:
    """Resolve an attempt by *senator_id*, letting a blood-brother Sertorius intervene."""
    state.any_assassination_attempted = True
    state.senators[senator_id].assassination = AssassinationState()
    sertorius = state.senators[SenatorId.SERTORIUS]
    saved = sertorius.active and sertorius.current_state == "blood_brother"
    bonus = ResourceChanges()

    if saved:
        sertorius.active = False
        sertorius.relation = 100
        state.sertorius_saved_player = True
        bonus = ResourceChanges(morale=SERTORIUS_SACRIFICE_MORALE)
        messages.append("Sertorius sacrificed himself to save you!")
        logger.info("Assassination by {} foiled by Sertorius (round {})", senator_id.value, round_)
    else:
        logger.info("Assassination attempt by {} (round {})", senator_id.value, round_)

    attempt = AssassinationAttempt(
        senator_id=senator_id,
        method=SENATORS[senator_id].assassination_method or "Assassination",
        round=round_,
        saved_by_sertorius=saved,
    )
    return attempt, bonus


def _window_should_open(senator: SenatorState, context: TickContext,
                        settings: SenateSettings, start_relation: int) -> bool:
    """Whether a closed window opens this season.

    The relation test uses the lower of the start-of-season relation and the
    current one, so this season's attention drift cannot lift a plotting
    senator out of range.
    """
    if not SENATORS[senator.id].can_assassinate or is_lethal_state(senator.current_state):
        return False
    rule = WINDOW_RULES.get(senator.id)
    if (
        rule is not None
        and senator.current_state == rule.state
        and evaluate_conditions(rule.conditions, senator, context)
    ):
        return True
    return (
        min(senator.relation, start_relation) <= settings.assassination_relation_threshold
        and senator.flags.dishonorable >= settings.assassination_dishonor_threshold
    )


def relation_consequence(senator: SenatorState, threshold: int) -> tuple[str, int, str] | None:
    """Resource penalty a hostile senator inflicts this season, if any.

    Returns ``(resource, amount, message)`` with a positive *amount* to be
    subtracted, or ``None`` when the relation is at or above *threshold*.
    """
    if senator.relation >= threshold:
        return None
    resource, per_tier, cap, template = CONSEQUENCES[senator.id]
    penalty = min(((threshold - senator.relation) // 10) * per_tier, cap)
    if penalty <= 0:
        return None
    return resource, penalty, template.format(penalty)


def tick_senate(
    state: SenateState,
    context: TickContext,
    rng: RandomSource = None,
    settings: SenateSettings | None = None,
) -> SenateSeasonResult:
    """Advance the senate by one season.

    Steps, in order: queued actions fire; attention drift is applied
    (dampened in the grace period); each active senator's transition table
    is evaluated; hostile senators inflict resource penalties; assassination
    windows open or count down; events are selected; cooldowns decay; the
    attention lock is released.

    Args:
        state: Current senate state (left untouched).
        context: Round number and player figures for this season.
        rng: Seed or generator used for event admission rolls.
        settings: Override for the active senate settings.

    Returns:
        A :class:`SenateSeasonResult` holding the new state.
    """
    settings = settings or get_settings().senate
    new = state.model_copy(deep=True)
    if not new.initialized:
        return SenateSeasonResult(state=new)

    gen = make_rng(rng)
    round_ = context.round
    resources = ResourceChanges()
    messages: list[str] = []
    transitions: list[TransitionRecord] = []
    warnings: list[SenatorId] = []
    attempt: AssassinationAttempt | None = None
    attention = new.attention_this_season or DEFAULT_ATTENTION
    grace = round_ <= settings.grace_period_rounds

    # 1. Delayed effects from earlier choices.
    queued = process_action_queue(new, round_)
    resources = resources + queued.resources
    messages.extend(queued.messages)

    # 2. Attention drift.
    start_relations = {sid: new.senators[sid].relation for sid in SENATOR_ORDER}
    for sid in SENATOR_ORDER:
        senator = new.senators[sid]
        if not senator.active:
            continue
        value = attention.get(sid, DEFAULT_ATTENTION[sid])
        senator.relation = clamp_relation(senator.relation + attention_drift(value, round_, settings))
        update_attention_tracking(senator, value)

    # 3. State transitions.
    for sid in SENATOR_ORDER:
        senator = new.senators[sid]
        if not senator.active:
            continue
        outcome = evaluate_transition(senator, context, new.senators, settings.grace_period_rounds)
        if not outcome.transitioned:
            continue
        new.senators[sid] = apply_transition(senator, outcome.new_state, round_)
        transitions.append(TransitionRecord(
            senator_id=sid,
            from_state=senator.current_state,
            to_state=outcome.new_state,
            round=round_,
            reason=outcome.reason or "State changed",
        ))
        messages.append(f"{SENATORS[sid].name}: {outcome.reason}")
        if outcome.is_lethal:
            if attempt is None:
                attempt, bonus = _attempt_assassination(new, sid, round_, messages)
                resources = resources + bonus
            else:
                hold_attempt(new.senators[sid])

    # 4. Hostile senators act against the player.
    for sid in SENATOR_ORDER:
        senator = new.senators[sid]
        if not senator.active:
            continue
        consequence = relation_consequence(senator, settings.consequence_threshold)
        if consequence is not None:
            resource, amount, message = consequence
            resources = resources + ResourceChanges(**{resource: -amount})
            messages.append(message)

    # 5. Assassination windows.
    for sid in SENATOR_ORDER:
        senator = new.senators[sid]
        if not senator.active or not SENATORS[sid].can_assassinate:
            continue
        plot = senator.assassination
        if plot.window_open:
            turns = (plot.turns_until_attempt
                     if plot.turns_until_attempt is not None
                     else SENATORS[sid].assassination_countdown) - 1
            if turns <= 0:
                if attempt is None:
                    attempt, bonus = _attempt_assassination(new, sid, round_, messages)
                    resources = resources + bonus
                else:
                    plot.turns_until_attempt = 0
                continue
            plot.turns_until_attempt = turns
        elif _window_should_open(senator, context, settings, start_relations[sid]):
            open_assassination_window(senator)
            plot = senator.assassination
            logger.info("{} opened an assassination window ({} turns)",
                        sid.value, plot.turns_until_attempt)
        else:
            continue
        if plot.turns_until_attempt == 1 and not plot.warning_given:
            plot.warning_given = True
            warnings.append(sid)
            messages.append(f"WARNING: {SENATORS[sid].name} is planning something dangerous!")

    # 6. Events.
    events: list[SenatorEvent] = introduction_events(new, context, settings.grace_period_rounds)
    if not grace:
        events += select_season_events(
            new, attention, context, gen,
            max_events=settings.max_events_per_season,
            grace_period_rounds=settings.grace_period_rounds,
        )
    for event in events:
        _mark_triggered(new, event, round_)
    if events:
        if new.current_event is None:
            new.current_event, rest = events[0], events[1:]
        else:
            rest = events
        new.pending_events.extend(rest)

    # 7. Cooldowns, set above included.
    for sid in SENATOR_ORDER:
        decay_cooldowns(new.senators[sid])

    # 8. Release attention for the next season.
    new.attention_this_season = None
    new.attention_locked = False
    new.grace_phase_complete = round_ >= settings.grace_period_rounds

    logger.info(
        "Senate round {}: {} transition(s), {} event(s), relations [{}]",
        round_,
        len(transitions),
        len(events),
        ", ".join(f"{sid.value[:3]}:{new.senators[sid].relation}" for sid in SENATOR_ORDER),
    )
    return SenateSeasonResult(
        state=new,
        resource_changes=resources,
        events=events,
        transitions=transitions,
        assassination=attempt,
        warnings=warnings,
        messages=messages,
    )


def _mark_triggered(state: SenateState, event: SenatorEvent, round_: int) -> None:
    senator = state.senators[event.senator_id]
    definition = get_event_by_id(event.id)
    if definition is not None and definition.cooldown > 0:
        senator.cooldowns[event.id] = definition.cooldown
    if definition is not None and definition.intro:
        senator.introduction_shown = True
    else:
        senator.cooldowns[SAME_SENATOR_COOLDOWN_KEY] = SAME_SENATOR_COOLDOWN
    senator.last_event_round = round_
    logger.info("Event '{}' triggered for {} in round {}", event.id, event.senator_id.value, round_)


# ---------------------------------------------------------------------------
# Event resolution
# ---------------------------------------------------------------------------

def _advance_event_queue(state: SenateState) -> None:
    state.current_event = state.pending_events.pop(0) if state.pending_events else None


def resolve_senator_event(state: SenateState, choice_id: str, context: TickContext) -> EventResolution:
    """Apply the chosen option of the current event.

    Relation, flag, tracking, state and special effects are applied together
    on a copy of *state*; delayed effects are queued; the event is recorded
    in the history and the next pending event becomes current.

    Raises:
        InvalidInputError: If there is no current event, *choice_id* is not
            one of its choices, or the player cannot afford the choice.
    """
    event = state.current_event
    if event is None:
        raise InvalidInputError("There is no senator event to resolve")
    choice = next((c for c in event.choices if c.id == choice_id), None)
    if choice is None:
        raise InvalidInputError(
            f"Event '{event.id}' has no choice '{choice_id}'. "
            f"Available: {', '.join(c.id for c in event.choices)}"
        )
    affordable, reason = can_select_choice(choice, context)
    if not affordable:
        raise InvalidInputError(f"Cannot choose '{choice_id}': {reason}")

    new = state.model_copy(deep=True)
    applied: AppliedEffects = apply_effects(new, choice.effects, event.senator_id, context.round, event.id)
    new.event_history.append(EventHistoryEntry(
        round=context.round, event_id=event.id, senator_id=event.senator_id, choice_id=choice_id,
    ))
    _advance_event_queue(new)
    logger.info("Resolved '{}' with choice '{}' (round {})", event.id, choice_id, context.round)

    return EventResolution(
        state=new,
        resource_changes=applied.resources,
        messages=applied.messages,
        player_dies=applied.player_dies and not applied.player_saved,
    )


def dismiss_senator_event(state: SenateState, round_: int) -> EventResolution:
    """Close the current event without choosing; it is still recorded in the history."""
    event = state.current_event
    if event is None:
        raise InvalidInputError("There is no senator event to dismiss")
    new = state.model_copy(deep=True)
    new.event_history.append(EventHistoryEntry(
        round=round_, event_id=event.id, senator_id=event.senator_id, choice_id=None,
    ))
    _advance_event_queue(new)
    logger.debug("Dismissed '{}' (round {})", event.id, round_)
    return EventResolution(state=new)


# ---------------------------------------------------------------------------
# Player actions
# ---------------------------------------------------------------------------

def evaluate_senate_action(action: SenateAction, round_: int,
                           settings: SenateSettings | None = None) -> SenateReaction:
    """How the senators react to a player action.  Nobody reacts during the grace period."""
    settings = settings or get_settings().senate
    reaction = SenateReaction()
    if round_ <= settings.grace_period_rounds:
        return reaction

    if action.kind == "worship":
        reaction.flag_changes[SenatorId.PULCHER] = FlagChanges(pious=1)
    elif action.kind == "battle":
        if action.victory:
            reaction.relation_changes[SenatorId.SULLA] = 3
            reaction.flag_changes[SenatorId.SULLA] = FlagChanges(interesting=1)
            if action.casualties < HONORABLE_CASUALTY_LIMIT:
                reaction.flag_changes[SenatorId.SERTORIUS] = FlagChanges(honorable=1)
        else:
            reaction.relation_changes[SenatorId.SERTORIUS] = -2
    elif action.kind == "trade":
        reaction.flag_changes[SenatorId.OPPIUS] = FlagChanges(interesting=1)
    elif action.kind == "emergency":
        if action.action_id in DISHONORABLE_EMERGENCIES:
            reaction.flag_changes[SenatorId.SERTORIUS] = FlagChanges(disappointment=1)
    elif action.kind == "tax_change":
        if action.new_rate is not None and action.new_rate > HIGH_TAX_RATE:
            reaction.relation_changes[SenatorId.CLODIUS] = -2
    return reaction


def apply_senate_action(state: SenateState, action: SenateAction, round_: int,
                        settings: SenateSettings | None = None) -> SenateState:
    """Return a copy of *state* with the reaction to *action* applied."""
    reaction = evaluate_senate_action(action, round_, settings)
    new = state.model_copy(deep=True)
    apply_relation_changes(new, reaction.relation_changes)
    for sid, flags in reaction.flag_changes.items():
        apply_flag_changes(new.senators[sid], flags)
    return new


def set_senator_relation(state: SenateState, senator_id: SenatorId, change: int) -> SenateState:
    """Return a copy of *state* with *change* added to one senator's relation."""
    new = state.model_copy(deep=True)
    apply_relation_changes(new, {SenatorId(senator_id): change})
    return new
