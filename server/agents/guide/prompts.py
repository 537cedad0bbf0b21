"""
Prompt templates for the remote lab guide.

The prompt carries the experiment metadata, the current apparatus reading, a
bounded window of recent turns and the new question.
"""

from typing import Iterable, List

from ..lab.apparatus import ApparatusSnapshot
from ..lab.catalog import ExperimentInfo, ExperimentKind
from .models import ChatMessage, ChatRole

GUIDE_SYSTEM_INSTRUCTION = """You are the VirtuLab Assistant, a scientific lab instructor guiding a secondary school student through a virtual practical.

Give concise, encouraging feedback:
- Answer in at most four short sentences, in simple English
- Refer to what the student can see on the apparatus right now
- Explain the science behind the observation, not just the rule
- Remind the student of safety when heating is involved
- Never invent readings that are not in the apparatus state"""

GREETING_TEMPLATE = 'Habari Scientist {name}! I\'m your VirtuLab Assistant. We are starting "{title}".'

GUIDE_PROMPT_TEMPLATE = """Lab: {title}
About this practical: {description}

Current apparatus state:
{apparatus}

Recent conversation:
{history}

Student: "{question}"
"""


def format_greeting(experiment: ExperimentInfo, student_name: str) -> str:
    return GREETING_TEMPLATE.format(name=student_name, title=experiment.title)


def describe_apparatus(snapshot: ApparatusSnapshot) -> str:
    """Render an apparatus snapshot as short prompt lines."""
    lines: List[str] = []
    if snapshot.kind is ExperimentKind.HEATER:
        lines.append(f"- Burner: {'lit' if snapshot.is_lit else 'off'}")
        lines.append(f"- Air hole: {snapshot.air_hole_label} (level {snapshot.air_hole_level} of 3)")
        lines.append(f"- Flame: {snapshot.flame_type.value.replace('_', '-')}")
        lines.append(f"- Flame temperature: {snapshot.temperature_c:.1f}°C")
    elif snapshot.kind is ExperimentKind.BEAM_BALANCE:
        balance = snapshot.balance
        lines.append(f"- Left pan: {snapshot.left_weights} = {balance.left_mass} g")
        lines.append(f"- Right pan: {snapshot.right_weights} = {balance.right_mass} g")
        if balance.is_balanced:
            lines.append("- Beam: balanced")
        else:
            lines.append(f"- Beam: {balance.heavier_side.value} pan heavier by {abs(balance.difference)} g")
    else:
        lines.append(f"- Sample: {snapshot.sample_id.value} (settles at {snapshot.target_c:.1f}°C)")
        lines.append(f"- Thermometer reading: {snapshot.temperature_c:.1f}°C")
    return "\n".join(lines)


def format_history(messages: Iterable[ChatMessage]) -> str:
    lines = []
    for message in messages:
        speaker = "Student" if message.role is ChatRole.USER else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines) if lines else "(no earlier messages)"


def build_guide_prompt(
    experiment: ExperimentInfo,
    snapshot: ApparatusSnapshot,
    history: Iterable[ChatMessage],
    question: str
) -> str:
    """
    Build the user-side prompt for one guide request.

    Args:
        experiment: Practical being performed
        snapshot: Current apparatus reading
        history: Recent turns preceding the question, oldest first
        question: The new student question

    Returns:
        Prompt text
    """
    return GUIDE_PROMPT_TEMPLATE.format(
        title=experiment.title,
        description=experiment.description,
        apparatus=describe_apparatus(snapshot),
        history=format_history(history),
        question=question.strip()
    )
