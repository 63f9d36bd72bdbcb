"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from tutor_memory.config.settings import Settings
from tutor_memory.memory.integrate import create_memory_engine
from tutor_memory.telemetry import configure_logging


START = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    """Route structlog through stdlib logging for the whole run."""
    configure_logging()


@pytest.fixture
def clock():
    """Clock fixed at 2026-10-01 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    """Path for a throwaway memory database."""
    return tmp_path / "memory.db"


@pytest.fixture
def open_engine(db_path, clock):
    """
    Factory for engines over the same database file.

    Every engine opened through the factory has its storage closed on teardown.
    """
    opened = []

    def _open(settings: Settings = None, path=None):
        engine = create_memory_engine(
            db_path=str(path or db_path), settings=settings, clock=clock
        )
        opened.append(engine)
        return engine

    yield _open

    for engine in opened:
        if engine.persistence is not None:
            engine.persistence.kv.close()


@pytest.fixture
def engine(open_engine):
    """Engine backed by a temporary SQLite database."""
    return open_engine()
