"""
Pytest configuration and fixtures for lab tests.

This module provides shared fixtures for testing the apparatus simulation and
lab sessions in isolation from the remote guide.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from config import Settings
from ...guide.llm_config import GuideModelClient
from ..apparatus import ApparatusModel
from ..catalog import ExperimentKind, get_experiment
from ..profile import MemoryProfileStore


@pytest.fixture
def settings() -> Settings:
    """Settings with fast ticks and no credential, independent of the environment."""
    return Settings(
        _env_file=None,
        openai_api_key=None,
        heater_tick_interval=0.01,
        thermometer_tick_interval=0.01,
        balance_tick_interval=0.01
    )


@pytest.fixture
def heater() -> ApparatusModel:
    return ApparatusModel(ExperimentKind.HEATER)


@pytest.fixture
def balance() -> ApparatusModel:
    return ApparatusModel(ExperimentKind.BEAM_BALANCE)


@pytest.fixture
def thermometer() -> ApparatusModel:
    return ApparatusModel(ExperimentKind.THERMOMETER)


@pytest.fixture
def bunsen_burner():
    return get_experiment("bunsen-burner")


@pytest.fixture
def beam_balance():
    return get_experiment("beam-balance")


@pytest.fixture
def profile_store() -> MemoryProfileStore:
    return MemoryProfileStore()


class LockedProfileStore(MemoryProfileStore):
    """Profile store whose database refuses writes until unlocked."""

    def __init__(self):
        super().__init__()
        self.locked = True

    def record_completion(self, event) -> None:
        if self.locked:
            raise RuntimeError("database is locked")
        super().record_completion(event)


@pytest.fixture
def locked_store() -> LockedProfileStore:
    return LockedProfileStore()


@pytest.fixture
def mock_client():
    """Remote client that answers every model with the same text."""
    client = AsyncMock(spec=GuideModelClient)
    client.generate.return_value = "Open the air hole to get a blue flame."
    return client


@pytest.fixture
def slow_client():
    """Remote client that never answers within a test."""
    async def never_answers(model, prompt, system_instruction):
        await asyncio.sleep(10)
        return "too late"

    client = AsyncMock(spec=GuideModelClient)
    client.generate.side_effect = never_answers
    return client
