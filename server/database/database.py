"""
Engine and session handling for the completion store.

The URL comes from Settings.database_url; SQLite is the default and shares a
single connection between the request threads.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings
from .models import Base

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """Create an engine for the given URL."""
    if url.startswith("sqlite"):
        return create_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@contextmanager
def get_session(session_factory: Callable[[], Session] = SessionLocal) -> Generator[Session, None, None]:
    """
    Unit of work: commit on success, roll back and re-raise on failure.

    Example:
        with get_session() as session:
            session.add(LabCompletion(session_id="lab_1234abcd", experiment_id="bunsen-burner", reward=500))
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.error(f"Completion store error: {e}")
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the lab_completions table if it is missing."""
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Completion store tables ready")


def check_db_connection(bind: Optional[Engine] = None) -> bool:
    try:
        with (bind or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Completion store unreachable: {e}")
        return False
