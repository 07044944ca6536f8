# ==== SHARED TEST FIXTURES AND CONFIGURATION ==== #

"""
Shared test fixtures and configuration.

Provides a controllable clock, a scripted transport and a sleep recorder so
dispatcher behaviour (cooldowns, TTLs, throttle windows, backoff delays) can
be driven deterministically without touching the network.
"""

import os

import pytest


# ==== FORCE ENVIRONMENT SETUP BEFORE ANY IMPORTS ==== #

# Set environment variables BEFORE importing any gateway modules
os.environ.update({
    "APP_ENV": "test",
    "API_BASE_URL": "http://api.test/api/v1",
    "LOG_LEVEL": "WARNING",
})

from expense_gateway.dispatcher import DispatcherConfig, RequestDispatcher
from expense_gateway.security.tokens import InMemoryTokenProvider
from tests.factories.doubles import FakeClock, FakeTransport, SleepRecorder


# ==== FIXTURES ==== #


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def token_provider():
    return InMemoryTokenProvider("test-token")


@pytest.fixture
def dispatcher(transport, token_provider, clock, sleep_recorder):
    """Dispatcher with default tuning, fake time and no real backoff."""
    return RequestDispatcher(
        transport,
        config=DispatcherConfig(),
        token_provider=token_provider,
        clock=clock,
        sleep=sleep_recorder,
    )
