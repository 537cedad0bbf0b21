"""
Registry of active lab sessions.

Keeps one LabSession per session id for the API layer, creating them from the
experiment catalog and ending them on completion or departure.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from config import Settings, get_settings
from ..guide.llm_config import GuideModelClient, create_guide_client
from .catalog import get_experiment
from .errors import SessionNotFound
from .profile import CompletionEvent, ProfileStore
from .session import LabSession

logger = logging.getLogger(__name__)


class LabSessionManager:
    """
    Manages lab sessions and their metadata.

    This class handles:
    - Session creation from a catalog experiment id
    - Lookup of active sessions
    - Completion and teardown
    """

    def __init__(
        self,
        profile_store: Optional[ProfileStore] = None,
        guide_client: Optional[GuideModelClient] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the session manager.

        Args:
            profile_store: Receiver of completion events
            guide_client: Remote guide client; created from settings when omitted
            settings: Settings override, mostly for tests
        """
        self.settings = settings or get_settings()
        self.profile_store = profile_store
        self.guide_client = guide_client if guide_client is not None else create_guide_client(self.settings)
        self.active_sessions: Dict[str, LabSession] = {}
        self.session_metadata: Dict[str, Dict[str, Any]] = {}

        logger.info("Initialized lab session manager")

    async def create_session(self, experiment_id: str, student_name: str = "Scientist") -> LabSession:
        """
        Open a practical and start its tick loop.

        Raises:
            InvalidCommand: If the experiment id is unknown
        """
        await self.cleanup_inactive_sessions()
        experiment = get_experiment(experiment_id)
        session = LabSession(
            experiment,
            student_name=student_name,
            guide_client=self.guide_client,
            profile_store=self.profile_store,
            settings=self.settings
        )
        session.start()
        self.active_sessions[session.session_id] = session
        self.session_metadata[session.session_id] = {
            "created_at": datetime.now().isoformat(),
            "experiment_id": experiment_id,
            "student_name": session.student_name,
            "last_activity": datetime.now().isoformat()
        }
        logger.info(f"Created lab session {session.session_id} for {experiment_id}")
        return session

    def get_session(self, session_id: str) -> Optional[LabSession]:
        session = self.active_sessions.get(session_id)
        if session and session_id in self.session_metadata:
            self.session_metadata[session_id]["last_activity"] = datetime.now().isoformat()
        return session

    def require_session(self, session_id: str) -> LabSession:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFound(f"Lab session {session_id} not found", field="session_id", value=session_id)
        return session

    async def complete_session(self, session_id: str) -> CompletionEvent:
        """
        Finish a practical and drop the session.

        If the profile store fails the session stays registered, so the
        completion can be retried.
        """
        session = self.require_session(session_id)
        event = await session.complete()
        self._forget(session_id)
        return event

    async def end_session(self, session_id: str) -> bool:
        """Leave a practical without completing it."""
        session = self.active_sessions.get(session_id)
        if session is None:
            return False
        await session.close()
        self._forget(session_id)
        return True

    async def cleanup_inactive_sessions(self, idle_seconds: Optional[float] = None) -> int:
        """
        End sessions with no activity for longer than the threshold.

        Args:
            idle_seconds: Inactivity allowed; defaults to Settings.session_idle_timeout

        Returns:
            Number of sessions ended
        """
        threshold = timedelta(
            seconds=idle_seconds if idle_seconds is not None else self.settings.session_idle_timeout
        )
        current_time = datetime.now()
        stale = [
            session_id
            for session_id, metadata in self.session_metadata.items()
            if current_time - datetime.fromisoformat(metadata["last_activity"]) > threshold
        ]

        for session_id in stale:
            await self.end_session(session_id)

        if stale:
            logger.info(f"Ended {len(stale)} inactive lab sessions")
        return len(stale)

    async def shutdown(self) -> None:
        """Close every active session."""
        for session_id in list(self.active_sessions):
            await self.end_session(session_id)

    def list_sessions(self) -> List[Dict[str, Any]]:
        return [
            {"session_id": session_id, **metadata}
            for session_id, metadata in self.session_metadata.items()
        ]

    def _forget(self, session_id: str) -> None:
        self.active_sessions.pop(session_id, None)
        self.session_metadata.pop(session_id, None)
