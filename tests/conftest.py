"""Shared fixtures: an isolated in-memory database and a controllable clock."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

import pytest

from pvsim_api.db.client import DatabaseClient
from pvsim_api.db.models import Base
from pvsim_api.db.session import build_engine, build_session_factory


class FakeClock:
    """``clock(tz_name)`` that returns *start* and then advances by *step* per call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step
        self.calls: list = []

    def __call__(self, tz_name=None) -> datetime:
        self.calls.append(tz_name)
        now = self.current
        self.current = self.current + self.step
        return now


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> DatabaseClient:
    return DatabaseClient(build_session_factory(engine))


@pytest.fixture
def site(db):
    """A 5 kW site with no timezone (server-local time)."""
    return db.add_site("Test plant", 5.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 21, 12, 0, 0))


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def clock_at():
    """Factory for clocks starting at an arbitrary instant."""
    return FakeClock
