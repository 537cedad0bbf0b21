"""
Data models for the lab guide dialogue.

This module defines the Pydantic models for chat messages and guide replies,
and the append-only Conversation that one lab session owns.
"""

from datetime import datetime
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One immutable turn of the conversation."""
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class GuideState(str, Enum):
    """Progress of a single question through the dialogue controller."""
    IDLE = "idle"
    SUBMITTED = "submitted"
    OFFLINE_ANSWERED = "offline_answered"
    REMOTE_ATTEMPTING = "remote_attempting"
    REMOTE_SUCCEEDED = "remote_succeeded"
    REMOTE_EXHAUSTED = "remote_exhausted"
    OFFLINE_FALLBACK = "offline_fallback"
    ERROR_REPORTED = "error_reported"


class ReplyOutcome(str, Enum):
    """How the assistant reply was produced."""
    REMOTE = "remote"
    OFFLINE = "offline"
    OFFLINE_FALLBACK = "offline_fallback"
    ERROR = "error"


class GuideErrorKind(str, Enum):
    """Classification of a failed guide request."""
    CONFIGURATION_MISMATCH = "configuration_mismatch"
    MODEL_UNAVAILABLE = "model_unavailable"
    QUOTA_EXHAUSTED = "quota_exhausted"
    REMOTE_FAILURE = "remote_failure"


class GuideReply(BaseModel):
    """Result of resolving one question."""
    model_config = ConfigDict(frozen=True)

    content: str
    outcome: ReplyOutcome
    model: Optional[str] = None
    attempts: List[str] = Field(default_factory=list)
    error_kind: Optional[GuideErrorKind] = None


class Conversation:
    """
    Append-only sequence of chat messages scoped to one lab session.

    Messages are never edited or removed; readers get the full history or a
    bounded window of the most recent turns.
    """

    def __init__(self):
        self._messages: List[ChatMessage] = []

    def append(self, role: ChatRole, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        return message

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def recent(self, count: int) -> Tuple[ChatMessage, ...]:
        """Return the last ``count`` messages, oldest first."""
        if count <= 0:
            return ()
        return tuple(self._messages[-count:])

    @property
    def last(self) -> Optional[ChatMessage]:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))
