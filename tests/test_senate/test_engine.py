"""Tests for the seasonal senate tick and event resolution."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from imperium.core.config import SenateSettings
from imperium.core.errors import InvalidInputError
from imperium.senate.attention import ATTENTION_PRESETS, allocate_attention, apply_preset
from imperium.senate.engine import (
    SenateAction,
    apply_senate_action,
    dismiss_senator_event,
    evaluate_senate_action,
    relation_consequence,
    resolve_senator_event,
    set_senator_relation,
    tick_senate,
)
from imperium.senate.events import create_senator_event, get_event_by_id
from imperium.senate.models import (
    SENATOR_ORDER,
    AssassinationState,
    ChoiceEffects,
    ChoiceRequirements,
    ResourceChanges,
    SenateState,
    SenatorEvent,
    SenatorEventChoice,
    SenatorId,
    SpecialEffect,
    SpecialEffectEntry,
    TickContext,
)
from imperium.senate.senators import SENATORS, TERMINAL_STATES, create_senate

S = SenatorId


def _event(owner: SenatorId, effects: ChoiceEffects, **choice: object) -> SenatorEvent:
    return SenatorEvent(
        id="test_event",
        senator_id=owner,
        title="Test",
        description="A test event.",
        choices=[SenatorEventChoice(id="go", text="Go", effects=effects, **choice)],
    )


def _with_event(event: SenatorEvent) -> SenateState:
    state = create_senate()
    state.current_event = event
    return state


class TestTick:
    """Tests for :func:`tick_senate`."""

    def test_input_state_untouched(self) -> None:
        state = allocate_attention(create_senate(), apply_preset("military"))
        before = state.model_dump()
        tick_senate(state, TickContext(round=10, troops=80), rng=1)
        assert state.model_dump() == before

    def test_seeded_tick_reproducible(self) -> None:
        state = create_senate()
        a = tick_senate(state, TickContext(round=12), rng=3)
        b = tick_senate(state, TickContext(round=12), rng=3)
        assert a.model_dump() == b.model_dump()

    def test_attention_released(self) -> None:
        state = allocate_attention(create_senate(), apply_preset("divine"))
        new = tick_senate(state, TickContext(round=6), rng=0).state
        assert new.attention_this_season is None
        assert not new.attention_locked
        assert new.senators[S.PULCHER].tracking.attention_recent == [40]

    def test_grace_phase_flag(self) -> None:
        assert not tick_senate(create_senate(), TickContext(round=3), rng=0).state.grace_phase_complete
        assert tick_senate(create_senate(), TickContext(round=4), rng=0).state.grace_phase_complete

    def test_drift_dampened_in_grace(self) -> None:
        """Focused attention earns +1 per season in the grace period, +3 after."""
        state = allocate_attention(create_senate(), apply_preset("military"))
        start = state.senators[S.SERTORIUS].relation
        early = tick_senate(state, TickContext(round=2), rng=0).state
        late = tick_senate(state, TickContext(round=10), rng=0).state
        assert early.senators[S.SERTORIUS].relation - start == 1
        assert late.senators[S.SERTORIUS].relation - start == 3

    def test_uninitialized_state_passes_through(self) -> None:
        state = create_senate()
        state.initialized = False
        result = tick_senate(state, TickContext(round=10), rng=0)
        assert result.state == state
        assert result.events == []

    def test_transition_recorded(self) -> None:
        state = create_senate()
        state.senators[S.SULLA].relation = -40
        result = tick_senate(state, TickContext(round=10, troops=200), rng=0)
        record = next(t for t in result.transitions if t.senator_id is S.SULLA)
        assert (record.from_state, record.to_state, record.round) == ("evaluating", "circling", 10)
        assert result.state.senators[S.SULLA].state_entered_round == 10

    def test_no_transitions_in_grace(self) -> None:
        state = create_senate()
        state.senators[S.SULLA].relation = -90
        assert tick_senate(state, TickContext(round=4), rng=0).transitions == []

    def test_consequences(self) -> None:
        """A hostile Sulla costs morale in proportion to the relation."""
        state = create_senate()
        state.senators[S.SULLA].relation = -55
        result = tick_senate(state, TickContext(round=10, troops=200), rng=0)
        assert result.resource_changes == ResourceChanges(morale=-6)
        assert "Sulla undermines your officers (-6 morale)" in result.messages

    @pytest.mark.parametrize(
        ("relation", "expected"),
        [(-30, None), (-39, None), (-40, 3), (-70, 12), (-100, 12)],
    )
    def test_relation_consequence_tiers(self, relation: int, expected: int | None) -> None:
        state = create_senate()
        sulla = state.senators[S.SULLA]
        sulla.relation = relation
        outcome = relation_consequence(sulla, -30)
        assert (outcome[1] if outcome else None) == expected


class TestAssassination:
    """Windows, countdowns and attempts."""

    @pytest.mark.parametrize(
        ("sid", "countdown"),
        [(S.SULLA, 4), (S.CLODIUS, 2), (S.PULCHER, 3), (S.OPPIUS, 1)],
    )
    def test_window_opens_for_dishonoured_enemy(self, sid: SenatorId, countdown: int) -> None:
        state = create_senate()
        state.senators[sid].relation = -60
        state.senators[sid].flags.dishonorable = 3
        result = tick_senate(state, TickContext(round=10, troops=200), rng=0)
        plot = result.state.senators[sid].assassination
        assert plot.window_open
        assert plot.turns_until_attempt == countdown
        assert (sid in result.warnings) is (countdown == 1)

    def test_focused_attention_does_not_close_window(self) -> None:
        """Drift toward a plotting senator this season still lets the window open."""
        state = create_senate()
        state.senators[S.PULCHER].relation = -60
        state.senators[S.PULCHER].flags.dishonorable = 3
        allocation = {sid: 10 for sid in SENATOR_ORDER}
        allocation[S.PULCHER] = 60
        state = allocate_attention(state, allocation)
        result = tick_senate(state, TickContext(round=10, troops=200), rng=0)
        pulcher = result.state.senators[S.PULCHER]
        assert pulcher.relation > -60
        assert pulcher.assassination.window_open
        assert pulcher.assassination.turns_until_attempt == 3

    def test_sertorius_never_plots(self) -> None:
        state = create_senate()
        state.senators[S.SERTORIUS].relation = -60
        state.senators[S.SERTORIUS].flags.dishonorable = 3
        result = tick_senate(state, TickContext(round=10), rng=0)
        assert not result.state.senators[S.SERTORIUS].assassination.window_open

    def test_no_window_without_dishonour(self) -> None:
        state = create_senate()
        state.senators[S.PULCHER].relation = -80
        result = tick_senate(state, TickContext(round=10), rng=0)
        assert not result.state.senators[S.PULCHER].assassination.window_open

    def test_countdown_warning_then_attempt(self) -> None:
        state = create_senate()
        state.senators[S.SULLA].assassination = AssassinationState(window_open=True,
                                                                   turns_until_attempt=2)
        first = tick_senate(state, TickContext(round=20, troops=200), rng=0)
        plot = first.state.senators[S.SULLA].assassination
        assert plot.turns_until_attempt == 1
        assert plot.warning_given
        assert first.warnings == [S.SULLA]
        assert first.assassination is None

        second = tick_senate(first.state, TickContext(round=21, troops=200), rng=0)
        assert second.assassination is not None
        assert second.assassination.senator_id is S.SULLA
        assert second.assassination.method == "Military Coup"
        assert not second.assassination.saved_by_sertorius
        assert second.state.any_assassination_attempted
        assert not second.state.senators[S.SULLA].assassination.window_open
        assert second.warnings == []

    def test_sertorius_sacrifice(self) -> None:
        """A blood-brother Sertorius takes the blade for the player."""
        state = create_senate()
        state.senators[S.SERTORIUS].current_state = "blood_brother"
        state.senators[S.OPPIUS].assassination = AssassinationState(window_open=True,
                                                                    turns_until_attempt=1)
        result = tick_senate(state, TickContext(round=30, troops=200), rng=0)
        assert result.assassination is not None
        assert result.assassination.saved_by_sertorius
        sertorius = result.state.senators[S.SERTORIUS]
        assert not sertorius.active
        assert sertorius.relation == 100
        assert result.state.sertorius_saved_player
        assert result.resource_changes.morale == 10
        assert "Sertorius sacrificed himself to save you!" in result.messages

    def test_lethal_transition_attempts(self) -> None:
        state = create_senate()
        state.senators[S.SULLA].current_state = "rival"
        state.senators[S.SULLA].relation = -70
        result = tick_senate(state, TickContext(round=24, troops=50), rng=0)
        assert result.state.senators[S.SULLA].current_state == "coup"
        assert result.assassination is not None
        assert result.assassination.senator_id is S.SULLA
        assert not result.state.senators[S.SULLA].assassination.window_open

    def test_one_attempt_per_season(self) -> None:
        """A second due plot waits for the next season."""
        state = create_senate()
        for sid in (S.CLODIUS, S.OPPIUS):
            state.senators[sid].assassination = AssassinationState(window_open=True,
                                                                   turns_until_attempt=1)
        result = tick_senate(state, TickContext(round=30, troops=200, happiness=80), rng=0)
        assert result.assassination.senator_id is S.CLODIUS
        held = result.state.senators[S.OPPIUS].assassination
        assert held.window_open and held.turns_until_attempt == 0
        follow_up = tick_senate(result.state, TickContext(round=31, troops=200, happiness=80), rng=0)
        assert follow_up.assassination.senator_id is S.OPPIUS

    def test_simultaneous_lethal_transitions(self) -> None:
        """Two senators turning lethal together each get their attempt."""
        state = create_senate()
        state.senators[S.SULLA].current_state = "rival"
        state.senators[S.SULLA].relation = -70
        state.senators[S.CLODIUS].current_state = "hostile"
        state.senators[S.CLODIUS].relation = -90
        context = TickContext(round=24, troops=50, happiness=30)
        first = tick_senate(state, context, rng=0)
        assert first.state.senators[S.SULLA].current_state == "coup"
        assert first.state.senators[S.CLODIUS].current_state == "assassination"
        assert first.assassination.senator_id is S.SULLA
        held = first.state.senators[S.CLODIUS].assassination
        assert held.window_open and held.turns_until_attempt == 0

        second = tick_senate(first.state, context.model_copy(update={"round": 25}), rng=0)
        assert second.assassination is not None
        assert second.assassination.senator_id is S.CLODIUS
        assert not second.state.senators[S.CLODIUS].assassination.window_open

        third = tick_senate(second.state, context.model_copy(update={"round": 26}), rng=0)
        assert third.assassination is None


class TestEvents:
    """Event triggering, resolution and dismissal."""

    def test_introduction_becomes_current(self) -> None:
        result = tick_senate(create_senate(), TickContext(round=2), rng=0)
        assert [e.id for e in result.events] == ["sertorius_old_oath"]
        assert result.state.current_event.id == "sertorius_old_oath"
        assert result.state.senators[S.SERTORIUS].introduction_shown

        nxt = tick_senate(result.state, TickContext(round=3), rng=0)
        assert nxt.state.current_event.id == "sertorius_old_oath"
        assert [e.id for e in nxt.state.pending_events] == ["sulla_measure"]

    def test_resolve_applies_effects(self) -> None:
        state = tick_senate(create_senate(), TickContext(round=2), rng=0).state
        before = state.senators[S.SERTORIUS].relation
        outcome = resolve_senator_event(state, "embrace", TickContext(round=2))
        sertorius = outcome.state.senators[S.SERTORIUS]
        assert sertorius.relation == before + 10
        assert sertorius.flags.honorable == 1
        assert outcome.state.current_event is None
        assert outcome.state.event_history[-1].choice_id == "embrace"
        assert state.current_event is not None

    def test_resolve_errors(self) -> None:
        with pytest.raises(InvalidInputError):
            resolve_senator_event(create_senate(), "embrace", TickContext(round=2))
        state = tick_senate(create_senate(), TickContext(round=2), rng=0).state
        with pytest.raises(InvalidInputError, match="no choice"):
            resolve_senator_event(state, "salute", TickContext(round=2))

    def test_unaffordable_choice(self) -> None:
        state = _with_event(_event(S.CLODIUS, ChoiceEffects(),
                                   requirements=ChoiceRequirements(denarii=100)))
        with pytest.raises(InvalidInputError, match="Requires 100 denarii"):
            resolve_senator_event(state, "go", TickContext(round=8, denarii=10))
        outcome = resolve_senator_event(state, "go", TickContext(round=8, denarii=100))
        assert outcome.state.current_event is None

    def test_dismiss_promotes_pending(self) -> None:
        state = tick_senate(create_senate(), TickContext(round=2), rng=0).state
        state = tick_senate(state, TickContext(round=3), rng=0).state
        outcome = dismiss_senator_event(state, 3)
        assert outcome.state.current_event.id == "sulla_measure"
        assert outcome.state.pending_events == []
        assert outcome.state.event_history[-1].choice_id is None

    def test_dismiss_without_event(self) -> None:
        with pytest.raises(InvalidInputError):
            dismiss_senator_event(create_senate(), 3)

    def test_queued_action_fires_later(self) -> None:
        """Executing the quartermaster upsets Sertorius one season later."""
        state = _with_event(create_senator_event(get_event_by_id("sulla_test"), 6))
        outcome = resolve_senator_event(state, "execute", TickContext(round=6))
        assert outcome.state.senators[S.SULLA].flags.ruthless == 1
        assert [a.trigger_round for a in outcome.state.action_queue] == [7]

        start = outcome.state.senators[S.SERTORIUS].relation
        result = tick_senate(outcome.state, TickContext(round=7), rng=0)
        assert result.state.senators[S.SERTORIUS].relation == start - 5 - 1
        assert result.state.action_queue == []
        assert "Delayed effect from sulla_test triggered" in result.messages

    def test_exposed_spymaster_strikes_back(self) -> None:
        """A failed move against Oppius opens his window at once, with a warning."""
        state = _with_event(create_senator_event(get_event_by_id("oppius_removal"), 12))
        outcome = resolve_senator_event(state, "strike", TickContext(round=12, denarii=300))
        assert outcome.resource_changes.denarii == -200
        oppius = outcome.state.senators[S.OPPIUS]
        assert oppius.current_state == "exposed"
        assert oppius.flags.dishonorable == 2

        result = tick_senate(outcome.state, TickContext(round=13, troops=200), rng=0)
        assert result.state.senators[S.OPPIUS].assassination.window_open
        assert result.warnings == [S.OPPIUS]
        assert result.state.senators[S.SERTORIUS].flags.disappointment == 1

    def test_exposure_turns_to_revenge(self) -> None:
        """Facing the exposure sends Oppius to revenge and his attempt follows."""
        state = _with_event(create_senator_event(get_event_by_id("oppius_exposed"), 14))
        state.senators[S.OPPIUS].current_state = "exposed"
        outcome = resolve_senator_event(state, "face_exposure", TickContext(round=14))
        oppius = outcome.state.senators[S.OPPIUS]
        assert oppius.current_state == "spider_revenge"
        assert outcome.resource_changes.reputation == -50
        assert outcome.state.senators[S.SERTORIUS].relation == state.senators[S.SERTORIUS].relation - 20
        assert oppius.assassination.window_open
        assert oppius.assassination.turns_until_attempt == 0

        result = tick_senate(outcome.state, TickContext(round=15, troops=200), rng=0)
        assert result.assassination is not None
        assert result.assassination.senator_id is S.OPPIUS
        assert result.assassination.method == SENATORS[S.OPPIUS].assassination_method
        later = tick_senate(result.state, TickContext(round=16, troops=200), rng=0)
        assert later.assassination is None
        assert not later.state.senators[S.OPPIUS].assassination.window_open

    def test_lethal_state_change_keeps_open_window(self) -> None:
        state = _with_event(create_senator_event(get_event_by_id("oppius_exposed"), 14))
        state.senators[S.OPPIUS].current_state = "exposed"
        state.senators[S.OPPIUS].assassination = AssassinationState(
            window_open=True, warning_given=True, turns_until_attempt=1)
        outcome = resolve_senator_event(state, "face_exposure", TickContext(round=14))
        assert outcome.state.senators[S.OPPIUS].assassination.turns_until_attempt == 1

    def test_special_window_effect(self) -> None:
        effects = ChoiceEffects(special_effects=[
            SpecialEffectEntry(senator_id=S.PULCHER, effect=SpecialEffect.ASSASSINATION_WINDOW_OPENS),
            SpecialEffectEntry(senator_id=S.SERTORIUS, effect=SpecialEffect.ASSASSINATION_WINDOW_OPENS),
        ])
        outcome = resolve_senator_event(_with_event(_event(S.PULCHER, effects)), "go",
                                        TickContext(round=20))
        assert outcome.state.senators[S.PULCHER].assassination.turns_until_attempt == 3
        assert not outcome.state.senators[S.SERTORIUS].assassination.window_open

    def test_terminal_state_not_overwritten(self) -> None:
        state = _with_event(_event(S.SERTORIUS, ChoiceEffects(state_changes={S.SERTORIUS: "cooling"})))
        state.senators[S.SERTORIUS].current_state = "blood_brother"
        outcome = resolve_senator_event(state, "go", TickContext(round=20))
        assert outcome.state.senators[S.SERTORIUS].current_state == "blood_brother"

    def test_player_death_reported(self) -> None:
        effects = ChoiceEffects(special_effects=[
            SpecialEffectEntry(senator_id=S.OPPIUS, effect=SpecialEffect.PLAYER_DIES),
        ])
        outcome = resolve_senator_event(_with_event(_event(S.OPPIUS, effects)), "go",
                                        TickContext(round=20))
        assert outcome.player_dies

    def test_flag_decrease_rejected(self) -> None:
        """Flags only ever count up."""
        with pytest.raises(ValueError):
            ChoiceEffects.model_validate({"flag_changes": {"honorable": -1}})


class TestPlayerActions:
    def test_no_reaction_during_grace(self) -> None:
        reaction = evaluate_senate_action(SenateAction(kind="battle", victory=True), 3)
        assert reaction.relation_changes == {} and reaction.flag_changes == {}

    def test_clean_victory(self) -> None:
        state = apply_senate_action(create_senate(), SenateAction(kind="battle", victory=True,
                                                                  casualties=5), 10)
        assert state.senators[S.SULLA].relation == 3
        assert state.senators[S.SULLA].flags.interesting == 1
        assert state.senators[S.SERTORIUS].flags.honorable == 1

    def test_defeat(self) -> None:
        state = apply_senate_action(create_senate(), SenateAction(kind="battle"), 10)
        assert state.senators[S.SERTORIUS].relation == 43

    def test_high_tax_and_emergency(self) -> None:
        assert evaluate_senate_action(SenateAction(kind="tax_change", new_rate=25), 10) \
            .relation_changes == {S.CLODIUS: -2}
        assert evaluate_senate_action(SenateAction(kind="tax_change", new_rate=15), 10) \
            .relation_changes == {}
        reaction = evaluate_senate_action(SenateAction(kind="emergency", action_id="martial_law"), 10)
        assert reaction.flag_changes[S.SERTORIUS].disappointment == 1

    def test_worship_and_trade(self) -> None:
        assert evaluate_senate_action(SenateAction(kind="worship"), 10).flag_changes[S.PULCHER].pious == 1
        assert evaluate_senate_action(SenateAction(kind="trade"), 10).flag_changes[S.OPPIUS].interesting == 1

    def test_set_relation_clamped(self) -> None:
        state = set_senator_relation(create_senate(), S.SERTORIUS, 500)
        assert state.senators[S.SERTORIUS].relation == 100

    def test_custom_grace_period(self) -> None:
        settings = SenateSettings(grace_period_rounds=12)
        reaction = evaluate_senate_action(SenateAction(kind="worship"), 10, settings)
        assert reaction.flag_changes == {}


class TestPropertyBased:
    """Season-long properties of the tick."""

    @given(
        relations=st.lists(st.integers(min_value=-100, max_value=100), min_size=5, max_size=5),
        preset=st.sampled_from(sorted(ATTENTION_PRESETS)),
        first_round=st.integers(min_value=1, max_value=30),
        seasons=st.integers(min_value=1, max_value=6),
        seed=st.integers(min_value=0, max_value=1000),
    )
    @settings(max_examples=30, deadline=20000)
    def test_relations_bounded_and_terminals_sticky(self, relations: list[int], preset: str,
                                                    first_round: int, seasons: int,
                                                    seed: int) -> None:
        state = create_senate()
        for sid, relation in zip(SENATOR_ORDER, relations):
            state.senators[sid].relation = relation
        state.senators[S.SERTORIUS].current_state = "blood_brother"

        for round_ in range(first_round, first_round + seasons):
            state = allocate_attention(state, apply_preset(preset))
            result = tick_senate(state, TickContext(round=round_, troops=120), rng=seed)
            for sid in SENATOR_ORDER:
                before = state.senators[sid].current_state
                after = result.state.senators[sid]
                assert -100 <= after.relation <= 100
                if before in TERMINAL_STATES:
                    assert after.current_state == before
            assert result.state.senators[S.SERTORIUS].current_state == "blood_brother"
            state = result.state
