"""Application of choice effects, delayed actions and cooldowns.

These helpers mutate the :class:`SenateState` they are given.  The public
engine functions always hand them a private deep copy, so callers of the
engine still see pure, copy-on-write behaviour.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from loguru import logger

from imperium.senate.machine import is_lethal_state, is_terminal_state
from imperium.senate.models import (
    RECENT_ATTENTION_WINDOW,
    AssassinationState,
    ChoiceEffects,
    FlagChanges,
    QueuedAction,
    ResourceChanges,
    SenateState,
    SenatorId,
    SenatorState,
    SpecialEffect,
    TrackingChanges,
    clamp_relation,
)
from imperium.senate.senators import SENATORS


@dataclass
class AppliedEffects:
    """What applying one set of effects produced for the host."""

    resources: ResourceChanges = field(default_factory=ResourceChanges)
    messages: list[str] = field(default_factory=list)
    player_dies: bool = False
    player_saved: bool = False


def apply_relation_changes(state: SenateState, changes: Mapping[SenatorId, int]) -> None:
    for senator_id, change in changes.items():
        senator = state.senators[SenatorId(senator_id)]
        if change:
            senator.relation = clamp_relation(senator.relation + change)


def apply_flag_changes(senator: SenatorState, changes: FlagChanges) -> None:
    """Increment *senator*'s flags; flags never decrease."""
    for name in FlagChanges.model_fields:
        increment = getattr(changes, name)
        if increment:
            setattr(senator.flags, name, getattr(senator.flags, name) + increment)


def apply_tracking_changes(senator: SenatorState, changes: TrackingChanges) -> None:
    for name in TrackingChanges.model_fields:
        increment = getattr(changes, name)
        if increment:
            setattr(senator.tracking, name, getattr(senator.tracking, name) + increment)


def open_assassination_window(senator: SenatorState) -> bool:
    """Open *senator*'s window with the default countdown.

    Returns ``False`` (and leaves the senator untouched) when the senator
    cannot assassinate.
    """
    definition = SENATORS[senator.id]
    if not definition.can_assassinate:
        return False
    senator.assassination = AssassinationState(
        window_open=True,
        warning_given=False,
        turns_until_attempt=definition.assassination_countdown,
    )
    return True


def hold_attempt(senator: SenatorState) -> None:
    """Keep an attempt due next season for a senator that reached a lethal state.

    Leaves an already open window alone.
    """
    if not SENATORS[senator.id].can_assassinate or senator.assassination.window_open:
        return
    senator.assassination = AssassinationState(window_open=True, warning_given=True,
                                               turns_until_attempt=0)


def _apply_special(state: SenateState, senator_id: SenatorId, effect: SpecialEffect,
                   applied: AppliedEffects) -> None:
    senator = state.senators[senator_id]
    name = SENATORS[senator_id].name
    if effect is SpecialEffect.ASSASSINATION_WINDOW_OPENS:
        if open_assassination_window(senator):
            applied.messages.append(f"{name} has begun to plot against you.")
        else:
            logger.warning("{} cannot assassinate; window not opened", senator_id.value)
    elif effect is SpecialEffect.ASSASSINATION_WINDOW_CLOSES:
        senator.assassination = AssassinationState()
    elif effect in (SpecialEffect.SENATOR_LEAVES, SpecialEffect.SENATOR_DIES):
        senator.active = False
        verb = "has left the Senate" if effect is SpecialEffect.SENATOR_LEAVES else "is dead"
        applied.messages.append(f"{name} {verb}.")
    elif effect is SpecialEffect.PLAYER_SAVED:
        state.sertorius_saved_player = True
        applied.player_saved = True
    elif effect is SpecialEffect.PLAYER_DIES:
        applied.player_dies = True


def apply_effects(
    state: SenateState,
    effects: ChoiceEffects,
    owner: SenatorId,
    round_: int,
    source_event: str,
) -> AppliedEffects:
    """Apply *effects* to *state* in place.

    Flag and tracking changes go to *owner*; queued actions are scheduled
    ``delay_seasons`` after *round_*.  State changes into or out of a
    terminal state are honoured only when the senator is not already
    terminal.
    """
    applied = AppliedEffects(resources=effects.resource_changes.model_copy())

    apply_relation_changes(state, effects.relation_changes)
    owner_state = state.senators[owner]
    apply_flag_changes(owner_state, effects.flag_changes)
    apply_tracking_changes(owner_state, effects.tracking_changes)

    for senator_id, new_state in effects.state_changes.items():
        senator = state.senators[senator_id]
        if is_terminal_state(senator.current_state):
            logger.warning(
                "Ignoring state change of {} to '{}': already terminal ('{}')",
                senator_id.value, new_state, senator.current_state,
            )
            continue
        senator.current_state = new_state
        senator.state_entered_round = round_
        if is_lethal_state(new_state):
            hold_attempt(senator)

    for entry in effects.special_effects:
        _apply_special(state, entry.senator_id, entry.effect, applied)

    for queued in effects.queued_actions:
        state.action_queue.append(QueuedAction(
            id=f"{source_event}:{round_}:{len(state.action_queue)}",
            senator_id=queued.senator_id,
            action_type=queued.action_type,
            trigger_round=round_ + queued.delay_seasons,
            source_event=source_event,
            effects=queued.effects,
        ))

    return applied


def process_action_queue(state: SenateState, round_: int) -> AppliedEffects:
    """Fire every queued action due at or before *round_* and drop it."""
    total = AppliedEffects()
    due = [a for a in state.action_queue if a.trigger_round <= round_]
    state.action_queue = [a for a in state.action_queue if a.trigger_round > round_]

    for action in due:
        applied = apply_effects(state, action.effects, action.senator_id, round_, action.source_event)
        total.resources = total.resources + applied.resources
        total.messages.extend(applied.messages)
        total.messages.append(f"Delayed effect from {action.source_event} triggered")
        total.player_dies = total.player_dies or applied.player_dies
        total.player_saved = total.player_saved or applied.player_saved
    if due:
        logger.debug("Processed {} queued senate action(s) in round {}", len(due), round_)
    return total


def decay_cooldowns(senator: SenatorState) -> None:
    """Tick every cooldown down by one, dropping those that expire."""
    senator.cooldowns = {key: left - 1 for key, left in senator.cooldowns.items() if left > 1}


def update_attention_tracking(senator: SenatorState, attention: int) -> None:
    senator.tracking.attention_total += attention
    senator.tracking.attention_recent = (
        senator.tracking.attention_recent + [attention]
    )[-RECENT_ATTENTION_WINDOW:]
