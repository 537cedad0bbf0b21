"""
Exception hierarchy for the virtual laboratory.

Apparatus commands, guide questions and session routing all raise subclasses
of LabError so the API layer can translate them in one place.
"""

from typing import Any, Dict


class LabError(Exception):
    """Base exception for laboratory errors.

    Args:
        message: Error description
        field: The parameter or setting that caused the error
        value: The offending value
        context: Additional error context
    """

    def __init__(
        self,
        message: str,
        field: str = None,
        value: Any = None,
        context: Dict[str, Any] = None
    ) -> None:
        self.message = message
        self.field = field
        self.value = value
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationMismatch(LabError):
    """Command issued for the wrong experiment kind, or a missing credential."""
    pass


class InvalidCommand(LabError):
    """Apparatus parameter or question rejected at the API boundary."""
    pass


class GuideBusy(LabError):
    """A question was submitted while another one is still being answered."""
    pass


class SessionNotFound(LabError):
    """No active lab session has the requested id."""
    pass


class CompletionNotRecorded(LabError):
    """The profile store rejected a completion; the session stays open for a retry."""
    pass
