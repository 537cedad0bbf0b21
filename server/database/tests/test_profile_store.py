"""
Tests for the SQL-backed profile store, against an in-memory SQLite database.
"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker

from agents.lab.profile import CompletionEvent
from ..database import build_engine, check_db_connection, get_session, init_db
from ..models import LabCompletion
from ..profile_store import SqlProfileStore


@pytest.fixture
def memory_engine():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(memory_engine):
    return sessionmaker(bind=memory_engine, autocommit=False, autoflush=False)


@pytest.fixture
def store(session_factory):
    return SqlProfileStore(session_factory=session_factory)


def make_event(experiment_id="bunsen-burner", reward=500, minutes_ago=0):
    return CompletionEvent(
        session_id=f"lab_{experiment_id[:4]}{minutes_ago:04d}",
        experiment_id=experiment_id,
        reward=reward,
        completed_at=datetime(2026, 1, 1, 12, 0) - timedelta(minutes=minutes_ago)
    )


class TestSqlProfileStore:
    """Test persisting completion events."""

    def test_record_completion(self, store, session_factory):
        event = make_event()
        store.record_completion(event)

        with session_factory() as session:
            rows = session.query(LabCompletion).all()
        assert len(rows) == 1
        assert rows[0].session_id == event.session_id
        assert rows[0].experiment_id == "bunsen-burner"
        assert rows[0].reward == 500

    def test_list_completions_oldest_first(self, store):
        newer = make_event("thermometer", minutes_ago=1)
        older = make_event("beam-balance", minutes_ago=5)
        store.record_completion(newer)
        store.record_completion(older)

        assert [e.experiment_id for e in store.list_completions()] == ["beam-balance", "thermometer"]
        assert store.list_completions("thermometer") == [newer]

    def test_total_reward(self, store):
        assert store.total_reward() == 0

        store.record_completion(make_event(minutes_ago=1))
        store.record_completion(make_event("thermometer", minutes_ago=2))

        assert store.total_reward() == 1000

    def test_failed_write_is_rolled_back(self, store, session_factory):
        store.record_completion(make_event())

        with pytest.raises(ValueError):
            with get_session(session_factory) as session:
                session.add(LabCompletion(session_id="lab_rollback", experiment_id="thermometer", reward=500))
                session.flush()
                raise ValueError("abandon unit of work")

        assert store.total_reward() == 500


class TestDatabaseSetup:
    """Test engine creation and connection checks."""

    def test_init_db_creates_completion_table(self, memory_engine):
        assert "lab_completions" in inspect(memory_engine).get_table_names()

    def test_check_db_connection(self, memory_engine):
        assert check_db_connection(memory_engine) is True

    def test_check_db_connection_unreachable(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path}/missing/lab.db")
        assert check_db_connection(engine) is False
        engine.dispose()
