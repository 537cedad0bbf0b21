"""
Tests for LabSession.

Exercises the composition of apparatus, ticker and guide: the greeting,
conversation growth, cancellation on close and completion rewards.
"""

import asyncio
import pytest

from ...guide.models import ChatRole, ReplyOutcome
from ..catalog import get_experiment
from ..errors import CompletionNotRecorded, ConfigurationMismatch, GuideBusy, InvalidCommand
from ..session import LabSession, tick_interval_for


class TestLabSessionSetup:
    """Test session construction."""

    def test_greeting_opens_conversation(self, bunsen_burner, settings):
        session = LabSession(bunsen_burner, student_name="Amina", settings=settings)

        assert len(session.conversation) == 1
        greeting = session.conversation[0]
        assert greeting.role == ChatRole.ASSISTANT
        assert greeting.content == (
            'Habari Scientist Amina! I\'m your VirtuLab Assistant. '
            'We are starting "Apparatus for Heating: Bunsen Burner".'
        )

    def test_blank_name_defaults(self, beam_balance, settings):
        session = LabSession(beam_balance, student_name="  ", settings=settings)
        assert session.student_name == "Scientist"

    def test_session_id_format(self, beam_balance, settings):
        session = LabSession(beam_balance, settings=settings)
        assert session.session_id.startswith("lab_")

    def test_tick_interval_per_kind(self, settings):
        settings = settings.model_copy(update={"heater_tick_interval": 0.4, "thermometer_tick_interval": 0.25})

        assert tick_interval_for(get_experiment("bunsen-burner").kind, settings) == 0.4
        assert tick_interval_for(get_experiment("thermometer").kind, settings) == 0.25

    def test_snapshot(self, bunsen_burner, settings):
        session = LabSession(bunsen_burner, settings=settings)
        session.toggle_burner()

        snapshot = session.snapshot()
        assert snapshot.session_id == session.session_id
        assert snapshot.experiment.id == "bunsen-burner"
        assert snapshot.apparatus.is_lit is True
        assert snapshot.is_typing is False
        assert snapshot.is_closed is False


class TestLabSessionCommands:
    """Test apparatus commands routed through the session."""

    def test_heater_commands(self, bunsen_burner, settings):
        session = LabSession(bunsen_burner, settings=settings)

        assert session.toggle_burner() is True
        assert session.set_air_hole(3) == 3

    def test_wrong_kind_command(self, bunsen_burner, settings):
        session = LabSession(bunsen_burner, settings=settings)

        with pytest.raises(ConfigurationMismatch):
            session.add_weight("left", 10)

    def test_ticker_drives_apparatus(self, bunsen_burner, settings):
        session = LabSession(bunsen_burner, settings=settings)

        async def run():
            async with session:
                session.toggle_burner()
                await asyncio.sleep(0.1)

        asyncio.run(run())

        assert session.apparatus.state.temperature_c > 25.0
        assert session.closed

    def test_commands_rejected_after_close(self, beam_balance, settings):
        session = LabSession(beam_balance, settings=settings)
        asyncio.run(session.close())

        with pytest.raises(InvalidCommand):
            session.add_weight("left", 10)


class TestLabSessionGuide:
    """Test the conversation through the session."""

    def test_conversation_grows_by_two_per_question(self, beam_balance, settings):
        session = LabSession(beam_balance, settings=settings)
        questions = ["How do I balance it?", "What is a standard mass?", "Why does it tilt?"]

        async def run():
            for question in questions:
                reply = await session.ask(question)
                assert reply.outcome == ReplyOutcome.OFFLINE

        asyncio.run(run())

        assert len(session.conversation) == 1 + 2 * len(questions)
        roles = [message.role for message in session.conversation[1:]]
        assert roles == [ChatRole.USER, ChatRole.ASSISTANT] * len(questions)

    def test_remote_reply_uses_snapshot(self, bunsen_burner, settings, mock_client):
        session = LabSession(bunsen_burner, guide_client=mock_client, settings=settings)
        session.toggle_burner()

        reply = asyncio.run(session.ask("Why is the flame yellow?"))

        assert reply.outcome == ReplyOutcome.REMOTE
        prompt = mock_client.generate.call_args.args[1]
        assert "Burner: lit" in prompt
        assert "Why is the flame yellow?" in prompt

    def test_close_cancels_question_in_flight(self, bunsen_burner, settings, slow_client):
        session = LabSession(bunsen_burner, guide_client=slow_client, settings=settings)

        async def run():
            session.start()
            pending = asyncio.create_task(session.ask("How hot is the flame?"))
            await asyncio.sleep(0.05)
            assert session.guide.is_typing
            await session.close()
            with pytest.raises(InvalidCommand):
                await pending

        asyncio.run(run())

        # Greeting and question only; the reply never arrives
        assert len(session.conversation) == 2
        assert session.conversation[-1].role == ChatRole.USER
        assert not session.guide.is_typing
        assert not session.ticker.running

    def test_second_question_while_busy(self, bunsen_burner, settings, slow_client):
        session = LabSession(bunsen_burner, guide_client=slow_client, settings=settings)

        async def run():
            pending = asyncio.create_task(session.ask("First"))
            await asyncio.sleep(0.01)
            with pytest.raises(GuideBusy):
                await session.ask("Second")
            await session.close()
            with pytest.raises(InvalidCommand):
                await pending

        asyncio.run(run())

        assert [m.content for m in session.conversation[1:]] == ["First"]

    def test_ask_after_close(self, beam_balance, settings):
        session = LabSession(beam_balance, settings=settings)

        async def run():
            await session.close()
            await session.ask("Hello?")

        with pytest.raises(InvalidCommand):
            asyncio.run(run())

    def test_close_is_idempotent(self, beam_balance, settings):
        session = LabSession(beam_balance, settings=settings)

        async def run():
            session.start()
            await session.close()
            await session.close()

        asyncio.run(run())
        assert session.closed


class TestLabSessionCompletion:
    """Test completing a practical."""

    def test_complete_records_reward(self, bunsen_burner, settings, profile_store):
        session = LabSession(bunsen_burner, profile_store=profile_store, settings=settings)

        async def run():
            session.start()
            return await session.complete()

        event = asyncio.run(run())

        assert event.reward == 500
        assert event.experiment_id == "bunsen-burner"
        assert event.session_id == session.session_id
        assert profile_store.events == [event]
        assert profile_store.total_reward() == 500
        assert session.closed

    def test_complete_twice(self, beam_balance, settings, profile_store):
        session = LabSession(beam_balance, profile_store=profile_store, settings=settings)

        async def run():
            await session.complete()
            await session.complete()

        with pytest.raises(InvalidCommand):
            asyncio.run(run())
        assert len(profile_store.events) == 1

    def test_complete_without_store(self, beam_balance, settings):
        session = LabSession(beam_balance, settings=settings)
        event = asyncio.run(session.complete())
        assert event.reward == settings.completion_reward

    def test_store_failure_keeps_session_open(self, bunsen_burner, settings, locked_store):
        session = LabSession(bunsen_burner, profile_store=locked_store, settings=settings)

        async def run():
            session.start()
            with pytest.raises(CompletionNotRecorded) as exc_info:
                await session.complete()
            still_running = session.ticker.running
            locked_store.locked = False
            event = await session.complete()
            return exc_info.value, still_running, event

        error, still_running, event = asyncio.run(run())

        assert "database is locked" in error.message
        assert error.field == "profile_store"
        assert still_running
        assert locked_store.events == [event]
        assert session.completion == event
        assert session.closed
