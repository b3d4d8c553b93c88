"""Data model of the Senate simulation.

Everything here is plain pydantic data: the host application owns a
:class:`SenateState`, persists it with ``model_dump(mode="json")`` and hands it
back to the engine functions, which return updated copies.  No model holds
callables or references to engine internals.

Effect records use closed, typed fields (:class:`ResourceChanges`,
:class:`FlagChanges`, :class:`TrackingChanges`) rather than open string maps so
that unknown keys fail validation at load time.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel as PydanticBaseModel, Field, field_validator, model_validator

RELATION_MIN: int = -100
RELATION_MAX: int = 100
RECENT_ATTENTION_WINDOW: int = 4


class SenatorId(str, Enum):
    """The five senators, in canonical (display and residue) order."""

    SERTORIUS = "sertorius"
    SULLA = "sulla"
    CLODIUS = "clodius"
    PULCHER = "pulcher"
    OPPIUS = "oppius"


SENATOR_ORDER: tuple[SenatorId, ...] = tuple(SenatorId)


class Faction(str, Enum):
    MILITARES = "militares"
    POPULARES = "populares"
    RELIGIOUS = "religious"
    NONE = "none"


class SpecialEffect(str, Enum):
    """Non-numeric consequences a choice can carry."""

    ASSASSINATION_WINDOW_OPENS = "assassination_window_opens"
    ASSASSINATION_WINDOW_CLOSES = "assassination_window_closes"
    SENATOR_LEAVES = "senator_leaves"
    SENATOR_DIES = "senator_dies"
    PLAYER_SAVED = "player_saved"
    PLAYER_DIES = "player_dies"


SENATOR_STATES: dict[SenatorId, tuple[str, ...]] = {
    SenatorId.SERTORIUS: ("steady_ally", "cooling", "distant", "blood_brother", "disillusioned"),
    SenatorId.SULLA: ("evaluating", "impressed", "circling", "rival", "enforcer", "coup"),
    SenatorId.CLODIUS: ("wary", "partnership", "agitated", "hostile", "mob_patron", "broken",
                        "assassination"),
    SenatorId.PULCHER: ("observing", "favored", "concerned", "disfavored", "condemned",
                        "divine_mandate", "sacred_murder"),
    SenatorId.OPPIUS: ("watching", "valued_client", "distant", "boring", "inner_circle", "exposed",
                       "spider_revenge"),
}


def clamp_relation(value: int) -> int:
    """Clamp a relation score into ``[-100, 100]``."""
    return max(RELATION_MIN, min(RELATION_MAX, int(value)))


# ---------------------------------------------------------------------------
# Per-senator mutable state
# ---------------------------------------------------------------------------

FlagName = Literal[
    "honorable", "dishonorable", "ruthless", "pious", "impious", "interesting", "disappointment"
]


class SenatorFlags(PydanticBaseModel):
    """Monotonic counters set by player choices; used as transition gates."""

    honorable: int = Field(default=0, ge=0)
    dishonorable: int = Field(default=0, ge=0)
    ruthless: int = Field(default=0, ge=0)
    pious: int = Field(default=0, ge=0)
    impious: int = Field(default=0, ge=0)
    interesting: int = Field(default=0, ge=0)
    disappointment: int = Field(default=0, ge=0)


class FlagChanges(SenatorFlags):
    """Increments applied to :class:`SenatorFlags`; negative values are rejected."""


class SenatorTracking(PydanticBaseModel):
    attention_total: int = Field(default=0, ge=0)
    attention_recent: list[int] = Field(default_factory=list)
    deals_made: int = Field(default=0, ge=0)
    deals_broken: int = Field(default=0, ge=0)
    secrets_shared: int = Field(default=0, ge=0)
    temples_built: int = Field(default=0, ge=0)


class TrackingChanges(PydanticBaseModel):
    deals_made: int = Field(default=0, ge=0)
    deals_broken: int = Field(default=0, ge=0)
    secrets_shared: int = Field(default=0, ge=0)
    temples_built: int = Field(default=0, ge=0)


class AssassinationState(PydanticBaseModel):
    window_open: bool = False
    warning_given: bool = False
    turns_until_attempt: int | None = None


class SenatorState(PydanticBaseModel):
    """Mutable standing of one senator.

    Attributes:
        id: Which senator this is.
        current_state: Node in the senator's own state machine.
        relation: Disposition toward the player, ``[-100, 100]``.
        state_entered_round: Round in which ``current_state`` was entered.
        flags: Monotonic behaviour counters.
        tracking: Monotonic bookkeeping counters.
        assassination: Assassination window and countdown.
        cooldowns: Remaining seasons per event id.
        last_event_round: Round of the senator's last triggered event.
        introduction_shown: Whether the introduction event has fired.
        active: ``False`` once the senator has left or died.
    """

    id: SenatorId
    current_state: str
    relation: int = Field(ge=RELATION_MIN, le=RELATION_MAX)
    state_entered_round: int = 0
    flags: SenatorFlags = Field(default_factory=SenatorFlags)
    tracking: SenatorTracking = Field(default_factory=SenatorTracking)
    assassination: AssassinationState = Field(default_factory=AssassinationState)
    cooldowns: dict[str, int] = Field(default_factory=dict)
    last_event_round: int | None = None
    introduction_shown: bool = False
    active: bool = True

    @model_validator(mode="after")
    def _state_belongs_to_senator(self) -> SenatorState:
        if self.current_state not in SENATOR_STATES[self.id]:
            raise ValueError(
                f"'{self.current_state}' is not a valid state for {self.id.value}; "
                f"expected one of {SENATOR_STATES[self.id]}"
            )
        return self


# ---------------------------------------------------------------------------
# Effects and events
# ---------------------------------------------------------------------------

class ResourceChanges(PydanticBaseModel):
    """Player resource deltas produced by the senate."""

    denarii: int = 0
    grain: int = 0
    happiness: int = 0
    morale: int = 0
    reputation: int = 0
    piety: int = 0
    troops: int = 0

    def __add__(self, other: ResourceChanges) -> ResourceChanges:
        return ResourceChanges(**{
            name: getattr(self, name) + getattr(other, name)
            for name in ResourceChanges.model_fields
        })

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in ResourceChanges.model_fields)


class ChoiceRequirements(PydanticBaseModel):
    denarii: int = Field(default=0, ge=0)
    troops: int = Field(default=0, ge=0)
    grain: int = Field(default=0, ge=0)


class SpecialEffectEntry(PydanticBaseModel):
    senator_id: SenatorId
    effect: SpecialEffect


class QueuedEffect(PydanticBaseModel):
    """A consequence scheduled ``delay_seasons`` after the choice is made."""

    senator_id: SenatorId
    action_type: str
    delay_seasons: int = Field(default=1, ge=0)
    effects: ChoiceEffects


class ChoiceEffects(PydanticBaseModel):
    """Effects of a choice.

    ``flag_changes`` and ``tracking_changes`` apply to the senator that owns
    the event (or the queued action); relation changes and state changes name
    their targets explicitly.
    """

    relation_changes: dict[SenatorId, int] = Field(default_factory=dict)
    resource_changes: ResourceChanges = Field(default_factory=ResourceChanges)
    flag_changes: FlagChanges = Field(default_factory=FlagChanges)
    tracking_changes: TrackingChanges = Field(default_factory=TrackingChanges)
    state_changes: dict[SenatorId, str] = Field(default_factory=dict)
    special_effects: list[SpecialEffectEntry] = Field(default_factory=list)
    queued_actions: list[QueuedEffect] = Field(default_factory=list)

    @field_validator("state_changes")
    @classmethod
    def _known_states(cls, value: dict[SenatorId, str]) -> dict[SenatorId, str]:
        for senator_id, state in value.items():
            if state not in SENATOR_STATES[senator_id]:
                raise ValueError(f"'{state}' is not a valid state for {senator_id.value}")
        return value


QueuedEffect.model_rebuild()


class SenatorEventChoice(PydanticBaseModel):
    id: str
    text: str
    requirements: ChoiceRequirements = Field(default_factory=ChoiceRequirements)
    effects: ChoiceEffects = Field(default_factory=ChoiceEffects)


class SenatorEvent(PydanticBaseModel):
    """An event instance awaiting player resolution."""

    id: str
    senator_id: SenatorId
    title: str
    description: str
    choices: list[SenatorEventChoice]
    priority: int = 0
    round_triggered: int = 0


class QueuedAction(PydanticBaseModel):
    """A scheduled effect stored on the senate state."""

    id: str
    senator_id: SenatorId
    action_type: str
    trigger_round: int
    source_event: str
    effects: ChoiceEffects


class EventHistoryEntry(PydanticBaseModel):
    round: int
    event_id: str
    senator_id: SenatorId
    choice_id: str | None = None


# ---------------------------------------------------------------------------
# Aggregate state and tick inputs/outputs
# ---------------------------------------------------------------------------

class SenateState(PydanticBaseModel):
    """The whole senate slice of the game state."""

    initialized: bool = True
    senators: dict[SenatorId, SenatorState]
    attention_this_season: dict[SenatorId, int] | None = None
    attention_locked: bool = False
    pending_events: list[SenatorEvent] = Field(default_factory=list)
    current_event: SenatorEvent | None = None
    event_history: list[EventHistoryEntry] = Field(default_factory=list)
    action_queue: list[QueuedAction] = Field(default_factory=list)
    grace_phase_complete: bool = False
    any_assassination_attempted: bool = False
    sertorius_saved_player: bool = False

    @model_validator(mode="after")
    def _all_senators_present(self) -> SenateState:
        missing = set(SenatorId) - set(self.senators)
        if missing:
            raise ValueError(f"Senate state is missing senators: {sorted(m.value for m in missing)}")
        return self

    def senator(self, senator_id: SenatorId) -> SenatorState:
        return self.senators[SenatorId(senator_id)]


class TickContext(PydanticBaseModel):
    """Player-side figures the senate reads during a season."""

    round: int = Field(ge=0)
    denarii: int = 0
    grain: int = 0
    troops: int = 0
    happiness: float = 50.0
    morale: float = 50.0
    reputation: float = 0.0
    piety: float = 50.0


class TransitionRecord(PydanticBaseModel):
    senator_id: SenatorId
    from_state: str
    to_state: str
    round: int
    reason: str


class AssassinationAttempt(PydanticBaseModel):
    """An assassination that resolved this season.

    ``saved_by_sertorius`` tells the host whether the player survived; the
    host decides what a successful attempt means for the game.
    """

    senator_id: SenatorId
    method: str
    round: int
    saved_by_sertorius: bool


class SenateSeasonResult(PydanticBaseModel):
    state: SenateState
    resource_changes: ResourceChanges = Field(default_factory=ResourceChanges)
    events: list[SenatorEvent] = Field(default_factory=list)
    transitions: list[TransitionRecord] = Field(default_factory=list)
    assassination: AssassinationAttempt | None = None
    warnings: list[SenatorId] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
