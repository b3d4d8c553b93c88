"""Guard conditions shared by state transitions and event eligibility."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel as PydanticBaseModel, Field

from imperium.senate.models import FlagName, SenatorId, SenatorState, TickContext

Comparator = Literal["lt", "gt", "lte", "gte", "eq"]
PlayerStat = Literal["troops", "happiness", "piety", "denarii"]


class StatCondition(PydanticBaseModel):
    op: Comparator
    value: float

    def holds(self, actual: float) -> bool:
        if self.op == "lt":
            return actual < self.value
        if self.op == "gt":
            return actual > self.value
        if self.op == "lte":
            return actual <= self.value
        if self.op == "gte":
            return actual >= self.value
        return actual == self.value


class OtherSenatorCondition(PydanticBaseModel):
    senator_id: SenatorId
    states: list[str] | None = None
    min_relation: int | None = None
    max_relation: int | None = None


class Conditions(PydanticBaseModel):
    """A conjunction of guards; an empty instance always holds.

    Attributes:
        min_round: Earliest round (inclusive).
        max_round: Latest round (inclusive).
        min_relation: Lowest acceptable relation (inclusive).
        max_relation: Highest acceptable relation (inclusive).
        required_flags: Minimum count per flag.
        player_stats: Comparisons against the player's figures.
        other_senators: Constraints on other senators' state/relation.
    """

    min_round: int | None = None
    max_round: int | None = None
    min_relation: int | None = None
    max_relation: int | None = None
    required_flags: dict[FlagName, int] = Field(default_factory=dict)
    player_stats: dict[PlayerStat, StatCondition] = Field(default_factory=dict)
    other_senators: list[OtherSenatorCondition] = Field(default_factory=list)

    model_config = {"frozen": True}


def unmet_conditions(
    conditions: Conditions,
    senator: SenatorState,
    context: TickContext,
    senators: Mapping[SenatorId, SenatorState] | None = None,
) -> list[str]:
    """Return a human-readable reason for every guard that fails."""
    reasons: list[str] = []
    round_ = context.round

    if conditions.min_round is not None and round_ < conditions.min_round:
        reasons.append(f"requires round {conditions.min_round}+")
    if conditions.max_round is not None and round_ > conditions.max_round:
        reasons.append(f"only until round {conditions.max_round}")
    if conditions.min_relation is not None and senator.relation < conditions.min_relation:
        reasons.append(f"requires relation >= {conditions.min_relation}")
    if conditions.max_relation is not None and senator.relation > conditions.max_relation:
        reasons.append(f"requires relation <= {conditions.max_relation}")

    for flag, required in conditions.required_flags.items():
        current = getattr(senator.flags, flag)
        if current < required:
            reasons.append(f"requires {flag} >= {required} (current: {current})")

    for stat, check in conditions.player_stats.items():
        if not check.holds(getattr(context, stat)):
            reasons.append(f"{stat} must be {check.op} {check.value:g}")

    for other in conditions.other_senators:
        if senators is None or other.senator_id not in senators:
            continue
        target = senators[other.senator_id]
        if other.states is not None and target.current_state not in other.states:
            reasons.append(f"{other.senator_id.value} must be in state {' or '.join(other.states)}")
        if other.min_relation is not None and target.relation < other.min_relation:
            reasons.append(f"{other.senator_id.value} relation too low")
        if other.max_relation is not None and target.relation > other.max_relation:
            reasons.append(f"{other.senator_id.value} relation too high")

    return reasons


def evaluate_conditions(
    conditions: Conditions,
    senator: SenatorState,
    context: TickContext,
    senators: Mapping[SenatorId, SenatorState] | None = None,
) -> bool:
    """``True`` when every guard in *conditions* holds."""
    return not unmet_conditions(conditions, senator, context, senators)
