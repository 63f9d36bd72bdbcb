"""
Shared fixtures for memory unit tests.
"""
import pytest

from tutor_memory.memory.schemas import MemoryCandidate
from tutor_memory.memory.store import MemoryStore
from tutor_memory.persist.sqlite_store import KVStore


@pytest.fixture
def kv(tmp_path):
    """Create a temporary KVStore instance."""
    db_path = tmp_path / "cache.db"
    store = KVStore(db_path)
    yield store
    store.close()


@pytest.fixture
def store(clock):
    """In-memory store on the fake clock."""
    return MemoryStore(clock=clock)


@pytest.fixture
def make_candidate():
    """Factory for MemoryCandidate with sensible defaults."""

    def _make(thread_id="t1", importance=5, kind="fact", category="factual_content",
              content=None, **metadata):
        return MemoryCandidate(
            thread_id=thread_id,
            kind=kind,
            content=content or f"{kind} at importance {importance}",
            importance=importance,
            category=category,
            metadata=metadata,
        )

    return _make
