"""
SQL-backed profile store.

Persists every CompletionEvent as a row of lab_completions so rewards survive
a server restart.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from agents.lab.profile import CompletionEvent
from .database import SessionLocal, get_session
from .models import LabCompletion

logger = logging.getLogger(__name__)


class SqlProfileStore:
    """ProfileStore writing completion events through SQLAlchemy."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def record_completion(self, event: CompletionEvent) -> None:
        with get_session(self.session_factory) as session:
            session.add(LabCompletion(
                session_id=event.session_id,
                experiment_id=event.experiment_id,
                reward=event.reward,
                completed_at=event.completed_at
            ))
        logger.info(f"Stored completion of {event.experiment_id} for session {event.session_id}")

    def list_completions(self, experiment_id: Optional[str] = None) -> List[CompletionEvent]:
        """Return stored completions, oldest first."""
        with get_session(self.session_factory) as session:
            query = session.query(LabCompletion)
            if experiment_id:
                query = query.filter(LabCompletion.experiment_id == experiment_id)
            rows = query.order_by(LabCompletion.completed_at).all()
            return [
                CompletionEvent(
                    session_id=row.session_id,
                    experiment_id=row.experiment_id,
                    reward=row.reward,
                    completed_at=row.completed_at
                )
                for row in rows
            ]

    def total_reward(self) -> int:
        with get_session(self.session_factory) as session:
            return session.query(func.coalesce(func.sum(LabCompletion.reward), 0)).scalar()
