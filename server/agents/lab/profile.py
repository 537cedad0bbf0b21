"""
Completion events and the profile store interface.

The laboratory never reads or writes student profiles itself; when a practical
is finished it hands a CompletionEvent to whichever ProfileStore the caller
injected.
"""

import logging
from datetime import datetime
from typing import List, Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class CompletionEvent(BaseModel):
    """Emitted once when a student finishes a practical."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    experiment_id: str
    reward: int = Field(ge=0)
    completed_at: datetime = Field(default_factory=datetime.utcnow)


class ProfileStore(Protocol):
    """Receiver of completion events owned by the profile layer."""

    def record_completion(self, event: CompletionEvent) -> None:
        ...


class MemoryProfileStore:
    """In-memory profile store keeping every completion event in order."""

    def __init__(self):
        self.events: List[CompletionEvent] = []

    def record_completion(self, event: CompletionEvent) -> None:
        self.events.append(event)
        logger.info(f"Recorded completion of {event.experiment_id} worth {event.reward}")

    def total_reward(self) -> int:
        return sum(event.reward for event in self.events)
