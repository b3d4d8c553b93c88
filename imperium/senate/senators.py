"""Static senator definitions and per-senator state machine tables.

Each senator has a private state set (see
:data:`~imperium.senate.models.SENATOR_STATES`), an ordered list of guarded
transitions and a sentiment progression used for display.  All tables are
module-level constants; nothing here changes at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from imperium.senate.conditions import Conditions, StatCondition
from imperium.senate.models import SENATOR_ORDER, Faction, SenateState, SenatorId, SenatorState


@dataclass(frozen=True)
class Personality:
    greed: int
    ambition: int
    honor: int
    ideology: int
    cunning: int


@dataclass(frozen=True)
class SenatorDefinition:
    """Immutable description of a senator.

    Attributes:
        id: Senator identifier.
        name: Full name.
        cognomen: Epithet shown under the name.
        role: One-line role summary.
        faction: Political faction.
        can_assassinate: Whether this senator can open an assassination window.
        assassination_method: Narrative name of the attempt.
        assassination_countdown: Seasons between the window opening and the attempt.
        personality: Trait scores, 0-100.
        starting_relation: Relation at game start.
        starting_state: State at game start.
        backstory: Short biography.
        wants: Things that raise the senator's opinion.
        hates: Things that lower it.
    """

    id: SenatorId
    name: str
    cognomen: str
    role: str
    faction: Faction
    can_assassinate: bool
    assassination_method: str | None
    assassination_countdown: int | None
    personality: Personality
    starting_relation: int
    starting_state: str
    backstory: str
    wants: tuple[str, ...] = field(default_factory=tuple)
    hates: tuple[str, ...] = field(default_factory=tuple)


SENATORS: dict[SenatorId, SenatorDefinition] = {
    SenatorId.SERTORIUS: SenatorDefinition(
        id=SenatorId.SERTORIUS,
        name="Gaius Sertorius",
        cognomen="The Scarred Hand",
        role="Military Loyalist",
        faction=Faction.MILITARES,
        can_assassinate=False,
        assassination_method=None,
        assassination_countdown=None,
        personality=Personality(greed=5, ambition=25, honor=95, ideology=70, cunning=20),
        starting_relation=45,
        starting_state="steady_ally",
        backstory=(
            "An old comrade of your father who owes your family his life. Plain, devout "
            "and allergic to intrigue, he has decided you are proof the Republic still "
            "means something."
        ),
        wants=("Victories won with honour", "Fair treatment of veterans", "Legitimate success"),
        hates=("Scheming", "Broken oaths", "Cruelty to the defenceless"),
    ),
    SenatorId.SULLA: SenatorDefinition(
        id=SenatorId.SULLA,
        name="Lucius Sulla",
        cognomen="The Butcher of Capua",
        role="Military Ambitious",
        faction=Faction.MILITARES,
        can_assassinate=True,
        assassination_method="Military Coup",
        assassination_countdown=4,
        personality=Personality(greed=50, ambition=95, honor=25, ideology=30, cunning=85),
        starting_relation=0,
        starting_state="evaluating",
        backstory=(
            "He ended the Capua revolt in an afternoon and ate dinner afterwards. He is "
            "measuring whether you are a horse worth backing or an obstacle to remove."
        ),
        wants=("Conquest", "Decisive action", "Strength rewarded"),
        hates=("Hesitation", "Moralising", "Weakness in any form"),
    ),
    SenatorId.CLODIUS: SenatorDefinition(
        id=SenatorId.CLODIUS,
        name="Publius Clodius",
        cognomen="The Plebeian's Fist",
        role="Populist Demagogue",
        faction=Faction.POPULARES,
        can_assassinate=True,
        assassination_method="Mob Violence",
        assassination_countdown=2,
        personality=Personality(greed=60, ambition=70, honor=10, ideology=75, cunning=90),
        starting_relation=-10,
        starting_state="wary",
        backstory=(
            "A patrician who renounced his class after the aristocracy humiliated him. "
            "He now commands the street collegia and wants tribute, grain and revenge."
        ),
        wants=("Grain for the people", "Aristocrats humbled", "Tribute and respect"),
        hates=("Optimates", "Rivals for the mob's love", "Being ignored"),
    ),
    SenatorId.PULCHER: SenatorDefinition(
        id=SenatorId.PULCHER,
        name="Appius Pulcher",
        cognomen="The Voice of Jupiter",
        role="Religious Authority",
        faction=Faction.RELIGIOUS,
        can_assassinate=True,
        assassination_method="Sacred Poisoning",
        assassination_countdown=3,
        personality=Personality(greed=10, ambition=40, honor=70, ideology=95, cunning=45),
        starting_relation=5,
        starting_state="observing",
        backstory=(
            "A fever vision convinced him Rome lives or dies by its piety. He controls "
            "the religious calendar and watches which gods you honour."
        ),
        wants=("Temples maintained", "Festivals observed", "The gods above politics"),
        hates=("Impiety", "Foreign cults", "Religion as a political tool"),
    ),
    SenatorId.OPPIUS: SenatorDefinition(
        id=SenatorId.OPPIUS,
        name="Lucius Oppius",
        cognomen="The Whisper",
        role="Spymaster",
        faction=Faction.NONE,
        can_assassinate=True,
        assassination_method="Professional Assassination",
        assassination_countdown=1,
        personality=Personality(greed=30, ambition=50, honor=20, ideology=15, cunning=99),
        starting_relation=0,
        starting_state="watching",
        backstory=(
            "Nobody can say where he came from. He holds no office and trades in "
            "secrets for the pleasure of the game. You are a new piece on his board."
        ),
        wants=("Access without office", "Interesting players", "Secrets to trade"),
        hates=("Predictability", "Being undervalued", "Boring moves"),
    ),
}


# ---------------------------------------------------------------------------
# Transition tables
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransitionRule:
    """Guarded edge ``source -> target``; rules are evaluated in list order."""

    source: str
    target: str
    conditions: Conditions
    description: str


def _rule(source: str, target: str, description: str, **conditions) -> TransitionRule:
    return TransitionRule(source, target, Conditions(**conditions), description)


def _troops(op: str, value: float) -> dict[str, StatCondition]:
    return {"troops": StatCondition(op=op, value=value)}


TRANSITIONS: dict[SenatorId, tuple[TransitionRule, ...]] = {
    SenatorId.SERTORIUS: (
        _rule("steady_ally", "cooling", "Neglect or minor disappointment",
              min_round=9, max_relation=35),
        _rule("steady_ally", "blood_brother", "Consistent honour and loyalty over time",
              min_round=32, min_relation=80, required_flags={"honorable": 4}),
        _rule("cooling", "steady_ally", "Reconciliation through honourable action",
              min_relation=40, required_flags={"honorable": 2}),
        _rule("cooling", "distant", "Continued neglect or a second disappointment",
              min_round=16, max_relation=20),
        _rule("distant", "cooling", "Difficult reconciliation", min_relation=30),
        _rule("distant", "disillusioned", "Betrayal witnessed or repeated dishonour",
              min_round=16, required_flags={"disappointment": 3}),
    ),
    SenatorId.SULLA: (
        _rule("evaluating", "impressed", "Demonstrated strength earns respect",
              min_round=12, min_relation=30),
        _rule("evaluating", "circling", "Weakness or hesitation shown",
              min_round=9, max_relation=-20),
        _rule("impressed", "enforcer", "Proven ruthlessness and power",
              min_round=28, min_relation=60, required_flags={"ruthless": 2}),
        _rule("impressed", "evaluating", "Fallen from grace", max_relation=15),
        _rule("circling", "evaluating", "Recovered from weakness", min_relation=0),
        _rule("circling", "rival", "Continued weakness confirms the threat",
              min_round=20, max_relation=-40),
        _rule("rival", "coup", "Weak enough to remove",
              min_round=24, max_relation=-60, player_stats=_troops("lt", 100)),
    ),
    SenatorId.CLODIUS: (
        _rule("wary", "partnership", "Deal made and honoured", min_round=12, min_relation=25),
        _rule("wary", "agitated", "Snubbed or refused tribute", min_round=6, max_relation=-25),
        _rule("partnership", "mob_patron", "Consistent tribute and respect",
              min_round=24, min_relation=50, required_flags={"interesting": 2}),
        _rule("partnership", "wary", "Relationship cooling", max_relation=15),
        _rule("agitated", "wary", "Concession made", min_relation=-10),
        _rule("agitated", "hostile", "No concession given", min_round=14, max_relation=-45),
        _rule("hostile", "agitated", "Major tribute paid", min_relation=-35),
        _rule("hostile", "broken", "Military suppression",
              min_round=20, player_stats=_troops("gt", 150)),
        _rule("hostile", "assassination", "The mob has turned against you",
              min_round=24, max_relation=-70,
              player_stats={"happiness": StatCondition(op="lt", value=40)}),
    ),
    SenatorId.PULCHER: (
        _rule("observing", "favored", "Consistent piety noted",
              min_round=16, min_relation=35, required_flags={"pious": 2}),
        _rule("observing", "concerned", "Impious acts observed", min_round=8, max_relation=-15),
        _rule("favored", "divine_mandate", "Declared chosen by the gods",
              min_round=28, min_relation=70, required_flags={"pious": 4}),
        _rule("favored", "observing", "Piety lapsed", max_relation=25),
        _rule("concerned", "observing", "Returned to proper observance", min_relation=0),
        _rule("concerned", "disfavored", "Continued impiety",
              min_round=16, max_relation=-30, required_flags={"impious": 2}),
        _rule("disfavored", "condemned", "Public denunciation",
              min_round=24, max_relation=-50, required_flags={"impious": 3}),
        _rule("condemned", "sacred_murder", "The gods demand sacrifice",
              min_round=28, max_relation=-60,
              player_stats={"piety": StatCondition(op="lt", value=20)}),
    ),
    # exposed and spider_revenge are only reached through events.
    SenatorId.OPPIUS: (
        _rule("watching", "valued_client", "Engaged in intelligence trade",
              min_round=12, min_relation=20),
        _rule("watching", "distant", "No transactions, predictable behaviour", min_round=8),
        _rule("valued_client", "inner_circle", "Made the game interesting",
              min_round=24, min_relation=50, required_flags={"interesting": 5}),
        _rule("valued_client", "watching", "Reduced engagement", max_relation=10),
        _rule("distant", "boring", "Remained predictable too long", min_round=16),
        _rule("distant", "watching", "Became interesting again", min_relation=15),
    ),
}

TERMINAL_STATES: frozenset[str] = frozenset({
    "blood_brother", "disillusioned",
    "enforcer", "coup",
    "mob_patron", "broken", "assassination",
    "divine_mandate", "sacred_murder",
    "inner_circle", "boring", "spider_revenge",
})

LETHAL_STATES: frozenset[str] = frozenset({"coup", "assassination", "sacred_murder", "spider_revenge"})


@dataclass(frozen=True)
class StateProgression:
    positive: tuple[str, ...]
    negative: tuple[str, ...]
    terminal_good: tuple[str, ...]
    terminal_bad: tuple[str, ...]


PROGRESSIONS: dict[SenatorId, StateProgression] = {
    SenatorId.SERTORIUS: StateProgression(("steady_ally",), ("cooling", "distant"),
                                          ("blood_brother",), ("disillusioned",)),
    SenatorId.SULLA: StateProgression(("impressed",), ("evaluating", "circling", "rival"),
                                      ("enforcer",), ("coup",)),
    SenatorId.CLODIUS: StateProgression(("partnership",), ("wary", "agitated", "hostile"),
                                        ("mob_patron",), ("broken", "assassination")),
    SenatorId.PULCHER: StateProgression(("favored",),
                                        ("observing", "concerned", "disfavored", "condemned"),
                                        ("divine_mandate",), ("sacred_murder",)),
    SenatorId.OPPIUS: StateProgression(("valued_client",), ("watching", "distant"),
                                       ("inner_circle",), ("boring", "exposed", "spider_revenge")),
}

# States in which a low relation is an open threat rather than coolness.
HOSTILE_STATES: frozenset[str] = frozenset({
    "rival", "coup", "hostile", "assassination", "condemned", "sacred_murder",
    "exposed", "spider_revenge",
})
WARNING_STATES: frozenset[str] = frozenset({
    "circling", "agitated", "concerned", "disfavored", "distant", "cooling",
})

STATE_DESCRIPTIONS: dict[str, str] = {
    "steady_ally": "Loyal and supportive.",
    "cooling": "Growing distant. Disappointed.",
    "distant": "Relationship strained.",
    "blood_brother": "Will die for you.",
    "disillusioned": "Has given up on you.",
    "evaluating": "Watching, calculating.",
    "impressed": "Respects your strength.",
    "circling": "Sensing weakness.",
    "rival": "Actively opposing you.",
    "enforcer": "Your loyal weapon.",
    "coup": "Moving against you.",
    "wary": "Suspicious, uncommitted.",
    "partnership": "Working together.",
    "agitated": "Growing hostile.",
    "hostile": "Open opposition.",
    "mob_patron": "The streets answer to you.",
    "broken": "Crushed by military force.",
    "assassination": "The mob is coming for you.",
    "observing": "Watching your piety.",
    "favored": "Blessed by the gods.",
    "concerned": "Troubled by omens.",
    "disfavored": "The gods frown upon you.",
    "condemned": "Declared impious.",
    "divine_mandate": "Chosen by Jupiter.",
    "sacred_murder": "The gods demand sacrifice.",
    "watching": "Assessing your value.",
    "valued_client": "Trading information.",
    "boring": "Lost interest in you.",
    "inner_circle": "Trusted completely.",
    "exposed": "You made an enemy.",
    "spider_revenge": "The web closes in.",
}

# Seasons a senator stays quiet after one of his events fires.
SAME_SENATOR_COOLDOWN: int = 3
SAME_SENATOR_COOLDOWN_KEY: str = "same_senator_popup"


def create_senator(senator_id: SenatorId) -> SenatorState:
    """Initial :class:`SenatorState` for *senator_id*."""
    definition = SENATORS[SenatorId(senator_id)]
    return SenatorState(
        id=definition.id,
        current_state=definition.starting_state,
        relation=definition.starting_relation,
    )


def create_senate() -> SenateState:
    """Fresh senate with every senator at its starting state and relation."""
    return SenateState(senators={sid: create_senator(sid) for sid in SENATOR_ORDER})


@dataclass(frozen=True)
class WindowRule:
    """Hostile state plus guards under which a senator starts plotting."""

    state: str
    conditions: Conditions


WINDOW_RULES: dict[SenatorId, WindowRule] = {
    SenatorId.SULLA: WindowRule("rival", Conditions(max_relation=-60, player_stats=_troops("lt", 100))),
    SenatorId.CLODIUS: WindowRule(
        "hostile",
        Conditions(max_relation=-70, player_stats={"happiness": StatCondition(op="lt", value=40)}),
    ),
    SenatorId.PULCHER: WindowRule(
        "condemned",
        Conditions(max_relation=-60, player_stats={"piety": StatCondition(op="lt", value=20)}),
    ),
    SenatorId.OPPIUS: WindowRule("exposed", Conditions()),
}

# Points of the penalised player figure per 10 relation points below the threshold.
CONSEQUENCES: dict[SenatorId, tuple[str, int, int, str]] = {
    SenatorId.SULLA: ("morale", 3, 12, "Sulla undermines your officers (-{} morale)"),
    SenatorId.CLODIUS: ("happiness", 2, 8, "Clodius's mobs cause unrest (-{} happiness)"),
    SenatorId.PULCHER: ("piety", 3, 12, "Pulcher spreads divine disfavor (-{} piety)"),
    SenatorId.OPPIUS: ("denarii", 40, 160, "Oppius's network disrupts trade (-{} denarii)"),
    SenatorId.SERTORIUS: ("reputation", 2, 6, "Sertorius speaks of your dishonor (-{} reputation)"),
}

SERTORIUS_SACRIFICE_MORALE: int = 10
