"""
Experiment catalog for the virtual laboratory.

Defines the experiment kinds the apparatus model understands and the
practicals a student can open from the Integrated Science selection.
"""

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel

from .errors import InvalidCommand


class ExperimentKind(str, Enum):
    """Apparatus family simulated by a practical."""
    HEATER = "heater"
    BEAM_BALANCE = "beam_balance"
    THERMOMETER = "thermometer"


# Kinds answered from the offline knowledge base only
OFFLINE_ONLY_KINDS = frozenset({ExperimentKind.BEAM_BALANCE, ExperimentKind.THERMOMETER})

AIR_HOLE_LABELS = ["Close", "Slightly", "Half", "Fully"]


class ExperimentInfo(BaseModel):
    """A practical the student can open."""
    id: str
    title: str
    description: str
    kind: ExperimentKind
    subject: str = "Integrated Science"

    @property
    def is_remote_eligible(self) -> bool:
        return self.kind not in OFFLINE_ONLY_KINDS


EXPERIMENTS: Dict[str, ExperimentInfo] = {
    "bunsen-burner": ExperimentInfo(
        id="bunsen-burner",
        title="Apparatus for Heating: Bunsen Burner",
        description=(
            "Learn parts of the Bunsen burner, air hole adjustment, and flame types "
            "(Luminous vs Non-luminous)."
        ),
        kind=ExperimentKind.HEATER,
    ),
    "beam-balance": ExperimentInfo(
        id="beam-balance",
        title="Apparatus for Measuring Mass: Beam Balance",
        description="Discover how to measure mass using a beam balance and standard masses.",
        kind=ExperimentKind.BEAM_BALANCE,
    ),
    "thermometer": ExperimentInfo(
        id="thermometer",
        title="Apparatus for Measuring Temperature: Thermometer",
        description="Learn how to read a thermometer and measure temperatures of different substances.",
        kind=ExperimentKind.THERMOMETER,
    ),
}


def list_experiments() -> List[ExperimentInfo]:
    """Return every practical in catalog order."""
    return list(EXPERIMENTS.values())


def get_experiment(experiment_id: str) -> ExperimentInfo:
    """
    Look up a practical by id.

    Raises:
        InvalidCommand: If the id is not in the catalog
    """
    try:
        return EXPERIMENTS[experiment_id]
    except KeyError:
        raise InvalidCommand(
            f"Unknown experiment '{experiment_id}'",
            field="experiment_id",
            value=experiment_id
        ) from None
