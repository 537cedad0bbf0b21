"""
Lab session composing the apparatus simulation and the lab guide.

A LabSession is created when a student opens a practical and discarded when
they leave it. It owns the apparatus, the conversation, the tick scheduler and
any question still in flight; close() releases all of them.
"""

import asyncio
import logging
import uuid
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from config import Settings, get_settings
from ..guide.controller import GuideDialogueController
from ..guide.knowledge_base import GuideKnowledgeBase
from ..guide.llm_config import GuideModelClient
from ..guide.models import ChatMessage, GuideReply
from ..guide.prompts import format_greeting
from .apparatus import ApparatusModel, ApparatusSnapshot, SampleId
from .catalog import ExperimentInfo, ExperimentKind
from .errors import CompletionNotRecorded, GuideBusy, InvalidCommand
from .profile import CompletionEvent, ProfileStore
from .scheduler import ApparatusTicker

logger = logging.getLogger(__name__)


class LabSnapshot(BaseModel):
    """Everything the view layer reads for one session."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    experiment: ExperimentInfo
    apparatus: ApparatusSnapshot
    conversation: List[ChatMessage]
    is_typing: bool
    is_closed: bool


def tick_interval_for(kind: ExperimentKind, settings: Settings) -> float:
    if kind is ExperimentKind.HEATER:
        return settings.heater_tick_interval
    if kind is ExperimentKind.THERMOMETER:
        return settings.thermometer_tick_interval
    return settings.balance_tick_interval


class LabSession:
    """
    One student working on one practical.

    Apparatus commands are synchronous; questions are coroutines. The tick
    loop runs independently of any guide request.
    """

    def __init__(
        self,
        experiment: ExperimentInfo,
        student_name: str = "Scientist",
        guide_client: Optional[GuideModelClient] = None,
        profile_store: Optional[ProfileStore] = None,
        settings: Optional[Settings] = None,
        knowledge_base: Optional[GuideKnowledgeBase] = None,
        session_id: Optional[str] = None
    ):
        self.settings = settings or get_settings()
        self.session_id = session_id or f"lab_{uuid.uuid4().hex[:8]}"
        self.experiment = experiment
        self.student_name = student_name.strip() or "Scientist"
        self.profile_store = profile_store
        self.completion: Optional[CompletionEvent] = None
        self.closed = False

        self.apparatus = ApparatusModel(
            experiment.kind,
            heater_policy=self.settings.heater,
            thermometer_policy=self.settings.thermometer,
            max_weights_per_pan=self.settings.max_weights_per_pan
        )
        self.guide = GuideDialogueController(
            experiment,
            client=guide_client,
            models=self.settings.get_guide_models(),
            knowledge_base=knowledge_base,
            history_turns=self.settings.guide_history_turns,
            timeout=self.settings.guide_timeout,
            greeting=format_greeting(experiment, self.student_name)
        )
        self.ticker = ApparatusTicker(
            self.apparatus,
            tick_interval_for(experiment.kind, self.settings)
        )
        self._pending_question: Optional[asyncio.Task] = None

        logger.info(f"Opened lab session {self.session_id} for {experiment.id}")

    # === Lifetime ===

    def start(self) -> None:
        """Start the apparatus tick loop on the running event loop."""
        self._ensure_open()
        self.ticker.start()

    async def close(self) -> None:
        """Cancel the tick loop and any question still in flight."""
        if self.closed:
            return
        self.closed = True
        self.guide.close()
        await self.ticker.stop()
        task, self._pending_question = self._pending_question, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info(f"Closed lab session {self.session_id}")

    async def __aenter__(self) -> "LabSession":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if self.closed:
            raise InvalidCommand(f"Lab session {self.session_id} has ended", field="session_id", value=self.session_id)

    # === Apparatus commands ===

    def toggle_burner(self) -> bool:
        self._ensure_open()
        return self.apparatus.toggle_lit()

    def set_air_hole(self, level: int) -> int:
        self._ensure_open()
        return self.apparatus.set_air_hole(level)

    def add_weight(self, side: Any, mass: int) -> int:
        self._ensure_open()
        return self.apparatus.add_weight(side, mass)

    def undo_weight(self, side: Any) -> Optional[int]:
        self._ensure_open()
        return self.apparatus.undo_weight(side)

    def clear_weights(self) -> None:
        self._ensure_open()
        self.apparatus.clear_weights()

    def select_sample(self, sample_id: Any) -> SampleId:
        self._ensure_open()
        return self.apparatus.select_sample(sample_id)

    # === Guide ===

    async def ask(self, question: str) -> GuideReply:
        """
        Send a question to the lab guide.

        The request runs as a task owned by the session so close() can
        cancel it without a late reply reaching the conversation.
        """
        self._ensure_open()
        if self._pending_question is not None and not self._pending_question.done():
            raise GuideBusy("The guide is still answering the previous question")
        task = asyncio.get_running_loop().create_task(
            self.guide.ask(question, self.apparatus.snapshot())
        )
        self._pending_question = task
        try:
            return await task
        except asyncio.CancelledError:
            if self.closed:
                raise InvalidCommand(
                    f"Lab session {self.session_id} ended before the guide replied",
                    field="session_id",
                    value=self.session_id
                ) from None
            raise
        finally:
            if self._pending_question is task:
                self._pending_question = None

    # === Read side ===

    @property
    def conversation(self) -> List[ChatMessage]:
        return list(self.guide.conversation.messages)

    def snapshot(self) -> LabSnapshot:
        return LabSnapshot(
            session_id=self.session_id,
            experiment=self.experiment,
            apparatus=self.apparatus.snapshot(),
            conversation=self.conversation,
            is_typing=self.guide.is_typing,
            is_closed=self.closed
        )

    # === Completion ===

    async def complete(self) -> CompletionEvent:
        """
        Finish the practical, hand the reward to the profile store and end the session.

        Raises:
            InvalidCommand: If the session already ended
            CompletionNotRecorded: If the profile store fails; the session stays open
        """
        self._ensure_open()
        event = CompletionEvent(
            session_id=self.session_id,
            experiment_id=self.experiment.id,
            reward=self.settings.completion_reward
        )
        if self.profile_store is not None:
            try:
                self.profile_store.record_completion(event)
            except Exception as e:
                logger.error(f"Could not record completion of lab session {self.session_id}: {e}")
                raise CompletionNotRecorded(
                    f"The reward for this practical could not be saved: {e}",
                    field="profile_store",
                    context={"session_id": self.session_id, "reward": event.reward}
                ) from e
        self.completion = event
        await self.close()
        logger.info(f"Lab session {self.session_id} completed with reward {event.reward}")
        return event
