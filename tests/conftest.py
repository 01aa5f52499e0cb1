"""
Shared pytest fixtures for the loadcheck test suite.

This module contains fixtures that are shared across all test modules.
Fixtures follow the Arrange-Act-Assert (AAA) pattern and ensure test
isolation by handing every test a fresh registry, run state and clock.

Key Concepts Demonstrated:
- Fixture scopes (function, session)
- Fixture dependencies
- Manual clock for time-dependent logic
- Live stub target shared by the whole session, reset per test
"""

# Locust patches the standard library with gevent when it is imported.
# Importing it before requests/ssl keeps later Locust runs stable.
import locust  # noqa: F401

import os
import random
from typing import Any

import pytest
import requests
from faker import Faker

# Set testing environment before importing loadcheck configuration
os.environ["LOADCHECK_ENV"] = "testing"

from loadcheck.client import TargetClient
from loadcheck.metrics import MetricRegistry
from loadcheck.scenarios import ScenarioContext, ScenarioSettings
from loadcheck.state import RunState
from tests.stub_target import StubServer


# Initialize Faker for generating test data
fake = Faker()


class ManualClock:
    """Monotonic clock that only moves when a test advances it."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


# -----------------------------------------------------------------------------
# Core Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def clock():
    """Manual clock starting at t=1000s."""
    return ManualClock()


@pytest.fixture
def registry():
    """Fresh metric registry."""
    return MetricRegistry()


@pytest.fixture
def run_state(clock):
    """Run state whose start time is the manual clock's current time."""
    return RunState(started_at=clock(), cache_capacity=5)


@pytest.fixture
def rng():
    """Seeded random source so scenario draws are reproducible."""
    return random.Random(1234)


# -----------------------------------------------------------------------------
# Stub Target Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def stub_server():
    """
    Start the stub target once for the test session.

    Yields:
        StubServer: running server; ``.url`` is its base URL.
    """
    server = StubServer().start()
    yield server
    server.stop()


@pytest.fixture
def stub(stub_server):
    """Stub server with fresh controls and data for this test."""
    stub_server.reset()
    return stub_server


@pytest.fixture
def http_session():
    with requests.Session() as session:
        yield session


@pytest.fixture
def scenario_settings():
    """Default scenario tunables; tests override fields as needed."""
    return ScenarioSettings()


@pytest.fixture
def make_context(stub, http_session, run_state, registry, rng, clock, scenario_settings):
    """
    Factory for scenario contexts bound to the stub target.

    Example:
        def test_something(make_context):
            ctx = make_context(like_probability=1.0)
    """
    pauses: list[float] = []

    def _make(**overrides: Any) -> ScenarioContext:
        settings = scenario_settings
        for key, value in overrides.items():
            setattr(settings, key, value)
        return ScenarioContext(
            client=TargetClient(http_session, stub.url, timeout=5),
            state=run_state,
            registry=registry,
            rng=rng,
            settings=settings,
            clock=clock,
            pause=pauses.append,
            think_scale=1.0,
        )

    _make.pauses = pauses
    return _make


@pytest.fixture
def post_payload_factory():
    """Factory producing realistic post payloads with Faker."""

    def _create(**overrides: Any) -> dict[str, Any]:
        payload = {
            "title": fake.sentence(nb_words=6),
            "content": fake.paragraph(nb_sentences=3),
            "authorId": f"user-{fake.random_int(min=1, max=10)}",
        }
        payload.update(overrides)
        return payload

    return _create
