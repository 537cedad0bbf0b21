"""
VirtuLab Guide Module.

This module contains the lab guide: the offline knowledge base, the remote
model client with its error classification, and the dialogue controller that
turns each student question into exactly one assistant reply.
"""

from .models import (
    ChatRole,
    ChatMessage,
    Conversation,
    GuideState,
    ReplyOutcome,
    GuideErrorKind,
    GuideReply
)
from .knowledge_base import GuideKnowledgeBase, KnowledgeRule
from .llm_config import (
    RemoteGuideError,
    ModelUnavailable,
    QuotaExhausted,
    RemoteFailure,
    GuideModelClient,
    ChatOpenAIGuideClient,
    classify_remote_error,
    is_retryable_not_found,
    create_guide_client
)
from .prompts import GUIDE_SYSTEM_INSTRUCTION, build_guide_prompt, format_greeting
from .controller import GuideDialogueController

__all__ = [
    # Models
    "ChatRole",
    "ChatMessage",
    "Conversation",
    "GuideState",
    "ReplyOutcome",
    "GuideErrorKind",
    "GuideReply",

    # Offline answers
    "GuideKnowledgeBase",
    "KnowledgeRule",

    # Remote model
    "RemoteGuideError",
    "ModelUnavailable",
    "QuotaExhausted",
    "RemoteFailure",
    "GuideModelClient",
    "ChatOpenAIGuideClient",
    "classify_remote_error",
    "is_retryable_not_found",
    "create_guide_client",

    # Prompts
    "GUIDE_SYSTEM_INSTRUCTION",
    "build_guide_prompt",
    "format_greeting",

    # Controller
    "GuideDialogueController"
]
