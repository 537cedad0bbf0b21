"""
Tests for LabSessionManager.
"""

import asyncio
import pytest
from datetime import datetime, timedelta

from ..errors import CompletionNotRecorded, InvalidCommand, SessionNotFound
from ..session_manager import LabSessionManager


@pytest.fixture
def manager(settings, profile_store):
    return LabSessionManager(profile_store=profile_store, settings=settings)


class TestLabSessionManager:
    """Test session registry operations."""

    def test_no_credential_means_no_client(self, manager):
        assert manager.guide_client is None

    def test_create_and_lookup(self, manager):
        async def run():
            session = await manager.create_session("beam-balance", student_name="Kofi")
            assert session.ticker.running
            assert manager.get_session(session.session_id) is session
            assert manager.require_session(session.session_id) is session
            await manager.shutdown()
            return session

        session = asyncio.run(run())

        assert session.student_name == "Kofi"
        assert session.closed
        assert manager.list_sessions() == []

    def test_unknown_experiment(self, manager):
        with pytest.raises(InvalidCommand):
            asyncio.run(manager.create_session("volcano"))

    def test_unknown_session(self, manager):
        assert manager.get_session("lab_missing") is None
        with pytest.raises(SessionNotFound):
            manager.require_session("lab_missing")

    def test_list_sessions(self, manager):
        async def run():
            first = await manager.create_session("thermometer")
            second = await manager.create_session("bunsen-burner")
            listed = manager.list_sessions()
            await manager.shutdown()
            return first, second, listed

        first, second, listed = asyncio.run(run())

        assert {entry["session_id"] for entry in listed} == {first.session_id, second.session_id}
        assert {entry["experiment_id"] for entry in listed} == {"thermometer", "bunsen-burner"}

    def test_complete_session(self, manager, profile_store):
        async def run():
            session = await manager.create_session("bunsen-burner")
            event = await manager.complete_session(session.session_id)
            return session, event

        session, event = asyncio.run(run())

        assert event.reward == 500
        assert profile_store.events == [event]
        assert manager.get_session(session.session_id) is None
        assert not session.ticker.running

    def test_end_session(self, manager, profile_store):
        async def run():
            session = await manager.create_session("thermometer")
            ended = await manager.end_session(session.session_id)
            again = await manager.end_session(session.session_id)
            return ended, again

        ended, again = asyncio.run(run())

        assert ended is True
        assert again is False
        assert profile_store.events == []

    def test_store_failure_keeps_session_registered(self, settings, locked_store):
        manager = LabSessionManager(profile_store=locked_store, settings=settings)

        async def run():
            session = await manager.create_session("bunsen-burner")
            with pytest.raises(CompletionNotRecorded):
                await manager.complete_session(session.session_id)
            registered = manager.get_session(session.session_id)
            running = session.ticker.running
            locked_store.locked = False
            event = await manager.complete_session(session.session_id)
            return session, registered, running, event

        session, registered, running, event = asyncio.run(run())

        assert registered is session
        assert running
        assert locked_store.events == [event]
        assert manager.get_session(session.session_id) is None


def _backdate(manager, session_id, hours=1):
    manager.session_metadata[session_id]["last_activity"] = (
        datetime.now() - timedelta(hours=hours)
    ).isoformat()


class TestInactiveSessionCleanup:
    """Test ending sessions nobody has touched for a while."""

    def test_abandoned_sessions_are_ended(self, manager, profile_store):
        async def run():
            sessions = [await manager.create_session("thermometer") for _ in range(5)]
            for session in sessions:
                _backdate(manager, session.session_id)
            ended = await manager.cleanup_inactive_sessions(idle_seconds=60)
            return sessions, ended

        sessions, ended = asyncio.run(run())

        assert ended == 5
        assert manager.active_sessions == {}
        assert manager.session_metadata == {}
        assert all(session.closed for session in sessions)
        assert not any(session.ticker.running for session in sessions)
        assert profile_store.events == []

    def test_recent_sessions_are_kept(self, manager):
        async def run():
            stale = await manager.create_session("beam-balance")
            fresh = await manager.create_session("bunsen-burner")
            _backdate(manager, stale.session_id)
            ended = await manager.cleanup_inactive_sessions(idle_seconds=60)
            kept = manager.get_session(fresh.session_id)
            running = fresh.ticker.running
            await manager.shutdown()
            return stale, fresh, ended, kept, running

        stale, fresh, ended, kept, running = asyncio.run(run())

        assert ended == 1
        assert stale.closed
        assert kept is fresh
        assert running

    def test_lookup_refreshes_activity(self, manager):
        async def run():
            session = await manager.create_session("thermometer")
            _backdate(manager, session.session_id)
            manager.get_session(session.session_id)
            ended = await manager.cleanup_inactive_sessions(idle_seconds=60)
            await manager.shutdown()
            return ended

        assert asyncio.run(run()) == 0

    def test_default_timeout_from_settings(self, settings, profile_store):
        manager = LabSessionManager(
            profile_store=profile_store,
            settings=settings.model_copy(update={"session_idle_timeout": 600.0})
        )

        async def run():
            session = await manager.create_session("thermometer")
            _backdate(manager, session.session_id, hours=0.5)
            return await manager.cleanup_inactive_sessions()

        assert asyncio.run(run()) == 1

    def test_opening_a_session_sweeps_abandoned_ones(self, manager):
        async def run():
            abandoned = await manager.create_session("thermometer")
            _backdate(manager, abandoned.session_id)
            manager.settings = manager.settings.model_copy(update={"session_idle_timeout": 60.0})
            opened = await manager.create_session("beam-balance")
            listed = [entry["session_id"] for entry in manager.list_sessions()]
            await manager.shutdown()
            return abandoned, opened, listed

        abandoned, opened, listed = asyncio.run(run())

        assert abandoned.closed
        assert listed == [opened.session_id]
