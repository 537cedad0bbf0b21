"""
Offline knowledge base for the lab guide.

Answers student questions by matching lowercased keywords against an ordered
list of experiment-specific rules. The first matching rule wins; when nothing
matches, the student gets a hint listing the topics the guide can cover.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..lab.catalog import ExperimentKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnowledgeRule:
    """Keyword set mapped to a canned explanation."""
    keywords: Tuple[str, ...]
    answer: str

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


HEATER_RULES: List[KnowledgeRule] = [
    KnowledgeRule(
        ("non-luminous", "non luminous", "blue", "roaring"),
        "A non-luminous flame is blue and steady. Opening the air hole lets in more oxygen so "
        "the gas burns completely. It is much hotter, gives no soot, and is the flame we use "
        "for heating.",
    ),
    KnowledgeRule(
        ("luminous", "yellow", "sooty", "soot"),
        "A luminous flame is yellow and wavy. It appears when the air hole is closed, so "
        "the gas burns with too little oxygen and leaves soot. It is cooler (about 350°C here) "
        "and is not used for heating.",
    ),
    KnowledgeRule(
        ("air hole", "airhole", "collar", "oxygen", "air"),
        "The collar turns to open or close the air hole. Closed gives a yellow luminous flame; "
        "Slightly, Half and Fully open let in more air and make the flame bluer and hotter. "
        "Try each setting and watch the temperature reading.",
    ),
    KnowledgeRule(
        ("hot", "temperature", "heat", "degrees", "°c"),
        "The flame temperature climbs gradually after lighting and levels off at a ceiling set "
        "by the air hole: roughly 350°C closed, 500°C slightly open, 650°C half open and 800°C "
        "fully open. When you turn the burner off it cools back towards room temperature.",
    ),
    KnowledgeRule(
        ("part", "barrel", "chimney", "base", "jet", "nozzle", "gas tap", "inlet"),
        "The main parts are the base (keeps it stable), the gas inlet and jet (let gas in), "
        "the collar with the air hole (controls air), and the barrel or chimney (where gas "
        "and air mix before burning at the top).",
    ),
    KnowledgeRule(
        ("light", "ignite", "strike", "match", "turn on"),
        "To light the burner: close the air hole, hold a lit match or splint beside the top of "
        "the barrel, then open the gas tap. Once it is burning, open the air hole to get a blue "
        "flame.",
    ),
    KnowledgeRule(
        ("safe", "safety", "danger", "burn", "careful"),
        "Safety first: tie back long hair, keep paper away, never leave a lit burner unattended, "
        "and always turn off the gas tap when you finish. Strike-back happens if the gas lights "
        "inside the barrel; turn the gas off at once if you see it.",
    ),
]

BALANCE_RULES: List[KnowledgeRule] = [
    KnowledgeRule(
        ("balanced", "equal", "level", "same"),
        "The beam is balanced when both pans carry the same mass; here we accept a difference "
        "of 1 g or less. At balance the unknown mass equals the total of the standard masses.",
    ),
    KnowledgeRule(
        ("tilt", "heavier", "lighter", "down", "up"),
        "The beam tips towards the heavier pan. If the right pan goes down, remove some "
        "standard masses from it or add to the left; keep adjusting until the beam is level.",
    ),
    KnowledgeRule(
        ("standard mass", "weights", "weight", "masses", "mass"),
        "Standard masses are accurately known masses (1 g, 2 g, 5 g, 10 g, 20 g, 50 g and so "
        "on). Start with the largest that does not overbalance, then add smaller ones. Use "
        "Undo to take off the last one you placed.",
    ),
    KnowledgeRule(
        ("unit", "gram", "kilogram", " kg", " g "),
        "Mass is measured in grams (g) and kilograms (kg); 1 kg = 1000 g. The SI unit of mass "
        "is the kilogram.",
    ),
    KnowledgeRule(
        ("zero", "reset", "clear", "adjust"),
        "Before measuring, make sure the empty beam is level. Use Clear to remove all masses "
        "and start again from zero.",
    ),
    KnowledgeRule(
        ("why", "how", "work", "principle", "lever", "pivot", "fulcrum"),
        "A beam balance is a lever with equal arms on a central pivot. When the turning "
        "effects of both pans are equal the beam rests level, so it compares masses directly.",
    ),
]

THERMOMETER_RULES: List[KnowledgeRule] = [
    KnowledgeRule(
        ("ice", "freez", "cold", "0°", "zero"),
        "Melting ice is at 0°C. Watch the liquid thread fall slowly until it settles exactly "
        "on the 0 mark.",
    ),
    KnowledgeRule(
        ("body", "human", "fever"),
        "Normal human body temperature is about 37°C. A clinical thermometer has a narrow "
        "range around this value so it can be read more precisely.",
    ),
    KnowledgeRule(
        ("boil", "steam", "100"),
        "Pure water boils at 100°C at sea level. Our thermometer scale runs from -10°C to "
        "110°C so it can show both the ice point and the steam point.",
    ),
    KnowledgeRule(
        ("read", "eye", "parallax", "scale", "mark"),
        "Read the thermometer with your eye level with the top of the liquid thread to avoid "
        "parallax error, and wait until the reading stops changing.",
    ),
    KnowledgeRule(
        ("mercury", "alcohol", "liquid", "expand", "bulb"),
        "The liquid in the bulb expands when heated and contracts when cooled, so the thread "
        "rises or falls along the scale. Alcohol is dyed so it is easy to see; mercury is "
        "rarely used now because it is toxic.",
    ),
    KnowledgeRule(
        ("slow", "wait", "change", "moving", "why"),
        "The reading changes gradually because the thermometer must reach the same "
        "temperature as the sample. It moves quickly at first and slows down as it gets close.",
    ),
    KnowledgeRule(
        ("unit", "celsius", "kelvin", "fahrenheit"),
        "In the lab we use degrees Celsius (°C). Kelvin is the SI unit: K = °C + 273.",
    ),
]

KNOWLEDGE_RULES: Dict[ExperimentKind, List[KnowledgeRule]] = {
    ExperimentKind.HEATER: HEATER_RULES,
    ExperimentKind.BEAM_BALANCE: BALANCE_RULES,
    ExperimentKind.THERMOMETER: THERMOMETER_RULES,
}

TOPIC_HINTS: Dict[ExperimentKind, str] = {
    ExperimentKind.HEATER: "the air hole, luminous and non-luminous flames, flame temperature, or the parts of the burner",
    ExperimentKind.BEAM_BALANCE: "balancing the beam, standard masses, which pan is heavier, or units of mass",
    ExperimentKind.THERMOMETER: "reading the scale, ice or body temperature, boiling point, or why the reading changes slowly",
}


class GuideKnowledgeBase:
    """Canned, experiment-specific answers for offline guidance."""

    def __init__(self, rules: Dict[ExperimentKind, List[KnowledgeRule]] = None):
        self.rules = rules or KNOWLEDGE_RULES

    def answer(self, kind: ExperimentKind, question: str) -> str:
        """
        Answer a question for an experiment kind.

        Args:
            kind: Apparatus family of the active experiment
            question: Free-text student question

        Returns:
            The first matching canned answer, or a topic hint
        """
        text = f" {(question or '').lower()} "
        for rule in self.rules.get(kind, []):
            if rule.matches(text):
                return rule.answer
        logger.debug(f"No offline rule matched for {kind.value}; returning topic hint")
        return self.hint(kind)

    def hint(self, kind: ExperimentKind) -> str:
        topics = TOPIC_HINTS.get(kind, "what you see on the bench")
        return f"Good question! Try asking me about {topics}."
