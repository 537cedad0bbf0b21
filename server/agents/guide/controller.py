"""
Dialogue controller for the lab guide.

Resolves each student question into exactly one assistant reply:

1. The question is appended to the conversation straight away.
2. Offline-only experiments are answered from the knowledge base.
3. Remote-eligible experiments need a configured client; without one the
   student gets a configuration error reply and no call is made.
4. Otherwise the cascade of models is tried in order. An unsupported model
   moves on to the next candidate; any other failure stops the cascade.
5. Quota, rate-limit and timeout failures fall back to the offline answer;
   anything else is reported to the student with a remediation hint.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..lab.apparatus import ApparatusSnapshot
from ..lab.catalog import OFFLINE_ONLY_KINDS, ExperimentInfo
from ..lab.errors import ConfigurationMismatch, GuideBusy, InvalidCommand, LabError
from .knowledge_base import GuideKnowledgeBase
from .llm_config import (
    GuideModelClient,
    ModelUnavailable,
    QuotaExhausted,
    classify_remote_error,
    is_retryable_not_found,
)
from .models import (
    ChatRole,
    Conversation,
    GuideErrorKind,
    GuideReply,
    GuideState,
    ReplyOutcome,
)
from .prompts import GUIDE_SYSTEM_INSTRUCTION, build_guide_prompt

logger = logging.getLogger(__name__)

EMPTY_REPLY_TEXT = "Indeed!"


class GuideDialogueController:
    """
    Owns the conversation of one lab session and answers questions into it.

    Only one question may be in flight at a time; a second one is rejected
    with GuideBusy so that every user turn is followed by exactly one
    assistant turn.
    """

    def __init__(
        self,
        experiment: ExperimentInfo,
        client: Optional[GuideModelClient] = None,
        models: Sequence[str] = (),
        knowledge_base: Optional[GuideKnowledgeBase] = None,
        history_turns: int = 4,
        timeout: float = 20.0,
        greeting: Optional[str] = None
    ):
        """
        Initialize the controller.

        Args:
            experiment: Practical the conversation is about
            client: Remote model client; None means no credential is configured
            models: Model cascade in attempt order
            knowledge_base: Offline answers; defaults to the built-in rules
            history_turns: Recent turns included in the remote prompt
            timeout: Seconds allowed per candidate model call
            greeting: Opening assistant message, if any
        """
        self.experiment = experiment
        self.client = client
        self.models = list(models)
        self.knowledge_base = knowledge_base or GuideKnowledgeBase()
        self.history_turns = history_turns
        self.timeout = timeout
        self.conversation = Conversation()
        self.state = GuideState.IDLE
        self.last_terminal_state: Optional[GuideState] = None
        self.is_typing = False
        self.closed = False

        if greeting:
            self.conversation.append(ChatRole.ASSISTANT, greeting)

    @property
    def is_remote_eligible(self) -> bool:
        return self.experiment.kind not in OFFLINE_ONLY_KINDS

    def attempt_plan(self) -> List[str]:
        """Model identifiers to try for the next request, in order."""
        return list(self.models)

    async def ask(self, question: str, snapshot: ApparatusSnapshot) -> GuideReply:
        """
        Resolve a question into one assistant reply appended to the conversation.

        Args:
            question: Student question text
            snapshot: Apparatus reading at the time of the question

        Returns:
            GuideReply describing the appended assistant message

        Raises:
            InvalidCommand: If the question is empty or the guide is closed
            GuideBusy: If another question is still being answered
        """
        if self.closed:
            raise InvalidCommand("The guide for this session has been closed")
        text = (question or "").strip()
        if not text:
            raise InvalidCommand("Question must not be empty", field="question", value=question)
        if self.is_typing:
            raise GuideBusy("The guide is still answering the previous question")

        history = self.conversation.recent(self.history_turns)
        self.conversation.append(ChatRole.USER, text)
        self.is_typing = True
        self.state = GuideState.SUBMITTED
        try:
            reply = await self._resolve(text, snapshot, history)
        finally:
            self.is_typing = False
            self.last_terminal_state = self.state
            self.state = GuideState.IDLE

        if self.closed:
            logger.info(f"Discarding late guide reply for closed session on {self.experiment.id}")
            return reply
        self.conversation.append(ChatRole.ASSISTANT, reply.content)
        logger.info(
            f"Guide answered on {self.experiment.id} via {reply.outcome.value}"
            + (f" ({reply.model})" if reply.model else "")
        )
        return reply

    async def _resolve(self, text: str, snapshot: ApparatusSnapshot, history) -> GuideReply:
        if not self.is_remote_eligible:
            self.state = GuideState.OFFLINE_ANSWERED
            return GuideReply(
                content=self.knowledge_base.answer(self.experiment.kind, text),
                outcome=ReplyOutcome.OFFLINE
            )

        if self.client is None:
            self.state = GuideState.ERROR_REPORTED
            error = ConfigurationMismatch(
                "No API key is set for the remote lab guide",
                field="openai_api_key"
            )
            return self._error_reply(error, GuideErrorKind.CONFIGURATION_MISMATCH, [])

        prompt = build_guide_prompt(self.experiment, snapshot, history, text)
        self.state = GuideState.REMOTE_ATTEMPTING
        attempts: List[str] = []
        terminal = None

        for model in self.attempt_plan():
            attempts.append(model)
            try:
                content = await asyncio.wait_for(
                    self.client.generate(model, prompt, GUIDE_SYSTEM_INSTRUCTION),
                    timeout=self.timeout
                )
            except Exception as e:
                terminal = classify_remote_error(e, model)
                logger.warning(f"Guide model {model} failed ({terminal.kind.value}): {terminal.message}")
                if is_retryable_not_found(terminal):
                    continue
                break
            self.state = GuideState.REMOTE_SUCCEEDED
            return GuideReply(
                content=content if content and content.strip() else EMPTY_REPLY_TEXT,
                outcome=ReplyOutcome.REMOTE,
                model=model,
                attempts=attempts
            )

        self.state = GuideState.REMOTE_EXHAUSTED
        if terminal is None:
            terminal = ModelUnavailable("No guide models are configured", field="guide_models")

        if isinstance(terminal, QuotaExhausted):
            self.state = GuideState.OFFLINE_FALLBACK
            logger.info(f"Guide quota exhausted after {attempts}; using offline answer")
            return GuideReply(
                content=self.knowledge_base.answer(self.experiment.kind, text),
                outcome=ReplyOutcome.OFFLINE_FALLBACK,
                attempts=attempts,
                error_kind=terminal.kind
            )

        self.state = GuideState.ERROR_REPORTED
        return self._error_reply(terminal, terminal.kind, attempts)

    def _error_reply(self, error: LabError, kind: GuideErrorKind, attempts: List[str]) -> GuideReply:
        if kind is GuideErrorKind.CONFIGURATION_MISMATCH:
            content = (
                f"Guide not configured: {error.message}. "
                "Add OPENAI_API_KEY to the server environment and ask again."
            )
        elif kind is GuideErrorKind.MODEL_UNAVAILABLE:
            models = ", ".join(attempts) or "none"
            content = (
                f"Guide unavailable: none of the configured models ({models}) are supported. "
                "Update GUIDE_MODELS to a model your account can use."
            )
        else:
            content = (
                f"Guide error: {error.message}. "
                "Check the API key, billing status and network connection, then ask again."
            )
        logger.error(f"Guide request on {self.experiment.id} failed: {kind.value}: {error.message}")
        return GuideReply(
            content=content,
            outcome=ReplyOutcome.ERROR,
            attempts=attempts,
            error_kind=kind
        )

    def close(self) -> None:
        """Stop accepting questions and drop any reply that completes afterwards."""
        self.closed = True
