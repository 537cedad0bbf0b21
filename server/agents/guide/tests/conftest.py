"""
Pytest configuration and fixtures for lab guide tests.

The remote model is always replaced by an AsyncMock so no test reaches the
network.
"""

import pytest
import httpx
import openai
from unittest.mock import AsyncMock

from ...lab.apparatus import ApparatusModel
from ...lab.catalog import get_experiment
from ..llm_config import GuideModelClient

MODELS = ["gpt-4.1", "gpt-4.1-mini", "gpt-4o-mini"]

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def not_found_error(model: str = "gpt-4.1") -> openai.NotFoundError:
    return openai.NotFoundError(
        f"The model `{model}` does not exist or you do not have access to it.",
        response=httpx.Response(404, request=_REQUEST),
        body=None
    )


def rate_limit_error() -> openai.RateLimitError:
    return openai.RateLimitError(
        "You exceeded your current quota, please check your plan and billing details.",
        response=httpx.Response(429, request=_REQUEST),
        body=None
    )


def timeout_error() -> openai.APITimeoutError:
    return openai.APITimeoutError(request=_REQUEST)


@pytest.fixture
def bunsen_burner():
    return get_experiment("bunsen-burner")


@pytest.fixture
def beam_balance():
    return get_experiment("beam-balance")


@pytest.fixture
def thermometer():
    return get_experiment("thermometer")


@pytest.fixture
def heater_snapshot(bunsen_burner):
    model = ApparatusModel(bunsen_burner.kind)
    model.toggle_lit()
    return model.snapshot()


@pytest.fixture
def balance_snapshot(beam_balance):
    return ApparatusModel(beam_balance.kind).snapshot()


@pytest.fixture
def thermometer_snapshot(thermometer):
    return ApparatusModel(thermometer.kind).snapshot()


@pytest.fixture
def mock_client():
    client = AsyncMock(spec=GuideModelClient)
    client.generate.return_value = "Open the air hole to get a blue flame."
    return client
