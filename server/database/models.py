"""
Database models for VirtuLab.

Completion records written when a student finishes a practical.
"""

from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import uuid

# Create declarative base
Base = declarative_base()


class LabCompletion(Base):
    """One finished practical and the reward it earned."""
    __tablename__ = 'lab_completions'

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    session_id = Column(String, nullable=False, index=True)
    experiment_id = Column(String, nullable=False, index=True)
    reward = Column(Integer, nullable=False, default=0)

    completed_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<LabCompletion(experiment_id={self.experiment_id}, reward={self.reward})>"
