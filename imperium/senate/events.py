"""Senator event catalog, eligibility and seasonal selection.

Event definitions live in ``data/events.yaml`` and are validated into
:class:`SenatorEventDefinition` models on first use.  Each season the engine
asks :func:`select_season_events` for at most ``max_events`` events (one per
senator) and, during the opening rounds, :func:`introduction_events` for the
next senator introduction.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import yaml
from loguru import logger
from pydantic import BaseModel as PydanticBaseModel, Field, model_validator

from imperium.core.errors import InvalidInputError
from imperium.senate.attention import attention_tier
from imperium.senate.conditions import Conditions, unmet_conditions
from imperium.senate.models import (
    SENATOR_ORDER,
    SENATOR_STATES,
    SenateState,
    SenatorEvent,
    SenatorEventChoice,
    SenatorId,
    SenatorState,
    TickContext,
)
from imperium.senate.senators import SAME_SENATOR_COOLDOWN_KEY

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "events.yaml"

INTRO_FIRST_ROUND: int = 2
INTRO_LAST_ROUND: int = 5
BASELINE_ATTENTION: int = 20
ATTENTION_PRIORITY_STEP: int = 10
ATTENTION_PRIORITY_BONUS: int = 5


class SenatorEventDefinition(PydanticBaseModel):
    """Catalog entry from which :class:`SenatorEvent` instances are built.

    A ``cooldown`` of 0 marks a one-time event.
    """

    id: str
    senator_id: SenatorId
    title: str
    description: str
    priority: int = 50
    valid_states: list[str]
    min_round: int | None = None
    max_round: int | None = None
    cooldown: int = Field(default=0, ge=0)
    intro: bool = False
    conditions: Conditions = Field(default_factory=Conditions)
    choices: list[SenatorEventChoice] = Field(min_length=1)

    @model_validator(mode="after")
    def _states_belong_to_senator(self) -> SenatorEventDefinition:
        unknown = set(self.valid_states) - set(SENATOR_STATES[self.senator_id])
        if unknown:
            raise ValueError(f"Event '{self.id}' lists unknown states {sorted(unknown)}")
        return self


@dataclass(frozen=True)
class EventEligibility:
    event: SenatorEventDefinition
    eligible: bool
    reasons: tuple[str, ...]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def load_event_catalog(path: str | Path = DEFAULT_CATALOG_PATH) -> dict[SenatorId, list[SenatorEventDefinition]]:
    """Load and validate an event catalog.

    Raises:
        FileNotFoundError: If *path* does not exist.
        InvalidInputError: On duplicate event ids or schema errors.
    """
    catalog_path = Path(path)
    with open(catalog_path) as fh:
        raw = yaml.safe_load(fh) or {}

    catalog: dict[SenatorId, list[SenatorEventDefinition]] = {sid: [] for sid in SENATOR_ORDER}
    seen: set[str] = set()
    for entry in raw.get("events", []):
        try:
            definition = SenatorEventDefinition.model_validate(entry)
        except ValueError as exc:
            raise InvalidInputError(f"Invalid event entry in {catalog_path}: {exc}") from exc
        if definition.id in seen:
            raise InvalidInputError(f"Duplicate event id '{definition.id}' in {catalog_path}")
        seen.add(definition.id)
        catalog[definition.senator_id].append(definition)

    logger.debug("Loaded {} senator events from {}", len(seen), catalog_path)
    return catalog


@functools.lru_cache(maxsize=1)
def default_catalog() -> dict[SenatorId, list[SenatorEventDefinition]]:
    return load_event_catalog(DEFAULT_CATALOG_PATH)


def get_senator_events(senator_id: SenatorId) -> list[SenatorEventDefinition]:
    return default_catalog()[SenatorId(senator_id)]


def get_event_by_id(event_id: str) -> SenatorEventDefinition | None:
    for events in default_catalog().values():
        for event in events:
            if event.id == event_id:
                return event
    return None


# ---------------------------------------------------------------------------
# Eligibility and selection
# ---------------------------------------------------------------------------

def _seen_event_ids(state: SenateState) -> set[str]:
    ids = {entry.event_id for entry in state.event_history}
    ids.update(event.id for event in state.pending_events)
    if state.current_event is not None:
        ids.add(state.current_event.id)
    return ids


def check_event_eligibility(
    event: SenatorEventDefinition,
    senator: SenatorState,
    state: SenateState,
    context: TickContext,
    grace_period_rounds: int,
) -> EventEligibility:
    """Decide whether *event* may fire for *senator* this season.

    Introduction events ignore the grace period and the per-senator quiet
    period; every other event is blocked while either applies.
    """
    reasons: list[str] = []
    round_ = context.round

    if not senator.active:
        reasons.append("Senator is no longer in the Senate")
    if not event.intro:
        if round_ <= grace_period_rounds:
            reasons.append("Grace period active")
        if senator.cooldowns.get(SAME_SENATOR_COOLDOWN_KEY, 0) > 0:
            reasons.append("Senator spoke recently")
    if event.min_round is not None and round_ < event.min_round:
        reasons.append(f"Requires round {event.min_round}+")
    if event.max_round is not None and round_ > event.max_round:
        reasons.append(f"Only available until round {event.max_round}")
    if senator.current_state not in event.valid_states:
        reasons.append(f"Requires state: {' or '.join(event.valid_states)}")
    if event.cooldown > 0 and senator.cooldowns.get(event.id, 0) > 0:
        reasons.append(f"On cooldown for {senator.cooldowns[event.id]} more rounds")
    if event.id in _seen_event_ids(state) and (event.cooldown == 0 or event.intro):
        reasons.append("Already triggered (one-time event)")
    reasons.extend(unmet_conditions(event.conditions, senator, context, state.senators))

    return EventEligibility(event=event, eligible=not reasons, reasons=tuple(reasons))


def create_senator_event(definition: SenatorEventDefinition, round_: int) -> SenatorEvent:
    return SenatorEvent(
        id=definition.id,
        senator_id=definition.senator_id,
        title=definition.title,
        description=definition.description.strip(),
        choices=[choice.model_copy(deep=True) for choice in definition.choices],
        priority=definition.priority,
        round_triggered=round_,
    )


def attention_priority_bonus(attention: int) -> int:
    """Priority bonus of +5 per full 10 points of attention above 20."""
    return ((attention - BASELINE_ATTENTION) // ATTENTION_PRIORITY_STEP) * ATTENTION_PRIORITY_BONUS


def select_season_events(
    state: SenateState,
    attention: dict[SenatorId, int],
    context: TickContext,
    rng: np.random.Generator,
    max_events: int = 2,
    grace_period_rounds: int = 4,
) -> list[SenatorEvent]:
    """Pick this season's regular events.

    Eligible events are ranked by priority plus an attention bonus.  Walking
    the ranking, the first candidate of each senator is admitted with the
    probability of that senator's attention tier; a senator gets at most one
    roll per season.  Selection stops at *max_events*.
    """
    candidates: list[tuple[int, SenatorEventDefinition]] = []
    for sid in SENATOR_ORDER:
        senator = state.senators[sid]
        bonus = attention_priority_bonus(attention.get(sid, BASELINE_ATTENTION))
        for event in get_senator_events(sid):
            if event.intro:
                continue
            if check_event_eligibility(event, senator, state, context, grace_period_rounds).eligible:
                candidates.append((event.priority + bonus, event))

    candidates.sort(key=lambda item: item[0], reverse=True)

    selected: list[SenatorEvent] = []
    rolled: set[SenatorId] = set()
    for _, event in candidates:
        if len(selected) >= max_events:
            break
        if event.senator_id in rolled:
            continue
        rolled.add(event.senator_id)
        chance = attention_tier(attention.get(event.senator_id, BASELINE_ATTENTION)).event_chance
        if rng.random() < chance:
            selected.append(create_senator_event(event, context.round))

    return selected


def introduction_events(state: SenateState, context: TickContext,
                        grace_period_rounds: int = 4) -> list[SenatorEvent]:
    """The next senator introduction, if one is due (at most one per round)."""
    if not INTRO_FIRST_ROUND <= context.round <= INTRO_LAST_ROUND:
        return []
    for sid in SENATOR_ORDER:
        senator = state.senators[sid]
        if senator.introduction_shown:
            continue
        for event in get_senator_events(sid):
            if not event.intro:
                continue
            if check_event_eligibility(event, senator, state, context, grace_period_rounds).eligible:
                return [create_senator_event(event, context.round)]
    return []


def can_select_choice(choice: SenatorEventChoice, context: TickContext) -> tuple[bool, str | None]:
    """Whether the player can afford *choice*; returns ``(ok, reason)``."""
    req = choice.requirements
    if req.denarii and context.denarii < req.denarii:
        return False, f"Requires {req.denarii} denarii"
    if req.troops and context.troops < req.troops:
        return False, f"Requires {req.troops} troops"
    if req.grain and context.grain < req.grain:
        return False, f"Requires {req.grain} grain"
    return True, None
