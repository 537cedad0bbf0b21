"""
VirtuLab Laboratory Module.

This module contains the apparatus simulation for the virtual practicals:
the experiment catalog, the per-kind apparatus state machines, the tick
scheduler and the completion events handed to the profile layer.

LabSession and LabSessionManager live in ``agents.lab.session`` and
``agents.lab.session_manager``; they depend on the guide package and are
imported from there directly.
"""

from .errors import (
    LabError,
    ConfigurationMismatch,
    InvalidCommand,
    GuideBusy,
    SessionNotFound
)
from .catalog import (
    ExperimentKind,
    ExperimentInfo,
    OFFLINE_ONLY_KINDS,
    AIR_HOLE_LABELS,
    EXPERIMENTS,
    list_experiments,
    get_experiment
)
from .apparatus import (
    ApparatusModel,
    ApparatusSnapshot,
    BalanceReading,
    FlameType,
    SampleId,
    Side
)
from .scheduler import ApparatusTicker
from .profile import CompletionEvent, ProfileStore, MemoryProfileStore

__all__ = [
    # Errors
    "LabError",
    "ConfigurationMismatch",
    "InvalidCommand",
    "GuideBusy",
    "SessionNotFound",

    # Catalog
    "ExperimentKind",
    "ExperimentInfo",
    "OFFLINE_ONLY_KINDS",
    "AIR_HOLE_LABELS",
    "EXPERIMENTS",
    "list_experiments",
    "get_experiment",

    # Apparatus
    "ApparatusModel",
    "ApparatusSnapshot",
    "BalanceReading",
    "FlameType",
    "SampleId",
    "Side",
    "ApparatusTicker",

    # Completion
    "CompletionEvent",
    "ProfileStore",
    "MemoryProfileStore"
]
