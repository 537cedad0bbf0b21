"""
Remote model configuration and error classification for the lab guide.

This module wraps the chat-model call behind GuideModelClient, builds one
ChatOpenAI instance per cascade model, and turns SDK failures into the
guide's error taxonomy so the dialogue controller can decide whether to try
the next model, fall back to offline answers, or report the failure.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import openai
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from config import Settings, get_guide_config, get_settings
from ..lab.errors import LabError
from .models import GuideErrorKind

logger = logging.getLogger(__name__)

NOT_FOUND_MARKERS = (
    "404",
    "not found",
    "not_found",
    "does not exist",
    "model_not_found",
    "not supported",
    "unsupported",
)

QUOTA_MARKERS = (
    "429",
    "quota",
    "rate limit",
    "rate_limit",
    "resource_exhausted",
    "too many requests",
)


class RemoteGuideError(LabError):
    """Failure of a remote guide call, tagged with its classification."""
    kind: GuideErrorKind = GuideErrorKind.REMOTE_FAILURE


class ModelUnavailable(RemoteGuideError):
    """The candidate model is not supported by the backend."""
    kind = GuideErrorKind.MODEL_UNAVAILABLE


class QuotaExhausted(RemoteGuideError):
    """Rate limit, exhausted quota or timeout: the service is there but cannot answer now."""
    kind = GuideErrorKind.QUOTA_EXHAUSTED


class RemoteFailure(RemoteGuideError):
    """Any other remote failure."""
    kind = GuideErrorKind.REMOTE_FAILURE


def classify_remote_error(error: BaseException, model: Optional[str] = None) -> RemoteGuideError:
    """
    Map an exception raised by a guide call onto the guide error taxonomy.

    Args:
        error: Exception raised while calling the model
        model: Candidate model identifier, for context

    Returns:
        ModelUnavailable, QuotaExhausted or RemoteFailure
    """
    if isinstance(error, RemoteGuideError):
        return error

    context = {"model": model, "error_type": type(error).__name__}
    message = str(error) or type(error).__name__

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, openai.APITimeoutError)):
        return QuotaExhausted(f"Guide model {model} timed out", field="model", value=model, context=context)
    if isinstance(error, openai.NotFoundError):
        return ModelUnavailable(message, field="model", value=model, context=context)
    if isinstance(error, openai.RateLimitError):
        return QuotaExhausted(message, field="model", value=model, context=context)

    lowered = message.lower()
    if any(marker in lowered for marker in QUOTA_MARKERS):
        return QuotaExhausted(message, field="model", value=model, context=context)
    if any(marker in lowered for marker in NOT_FOUND_MARKERS):
        return ModelUnavailable(message, field="model", value=model, context=context)
    return RemoteFailure(message, field="model", value=model, context=context)


def is_retryable_not_found(error: RemoteGuideError) -> bool:
    """Only an unsupported model lets the cascade move on to the next candidate."""
    return isinstance(error, ModelUnavailable)


class GuideModelClient(ABC):
    """Request/response access to a remote chat model."""

    @abstractmethod
    async def generate(self, model: str, prompt: str, system_instruction: str) -> str:
        """
        Ask one model for a reply.

        Args:
            model: Model identifier to call
            prompt: User-side prompt text
            system_instruction: System message for the model

        Returns:
            Reply text
        """
        pass


class ChatOpenAIGuideClient(GuideModelClient):
    """GuideModelClient backed by LangChain's ChatOpenAI."""

    def __init__(
        self,
        api_key: str,
        temperature: float = 0.6,
        max_tokens: int = 600,
        timeout: float = 20.0,
        max_retries: int = 0
    ):
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max_retries
        self._llms: Dict[str, ChatOpenAI] = {}

    def create_llm(self, model: str) -> ChatOpenAI:
        """Create (once) the ChatOpenAI instance for a cascade model."""
        if model not in self._llms:
            self._llms[model] = ChatOpenAI(
                model=model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                max_retries=self.max_retries,
                api_key=self.api_key
            )
            logger.info(f"Created guide LLM instance for {model}")
        return self._llms[model]

    async def generate(self, model: str, prompt: str, system_instruction: str) -> str:
        llm = self.create_llm(model)
        response = await llm.ainvoke([
            SystemMessage(content=system_instruction),
            HumanMessage(content=prompt)
        ])
        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return content


def create_guide_client(settings: Optional[Settings] = None) -> Optional[GuideModelClient]:
    """
    Create the remote guide client if a credential is configured.

    Returns:
        ChatOpenAIGuideClient, or None when no API key is set
    """
    settings = settings or get_settings()
    if not settings.openai_api_key:
        logger.warning("OpenAI API key not configured; the remote guide is disabled")
        return None
    return ChatOpenAIGuideClient(**get_guide_config(settings))
