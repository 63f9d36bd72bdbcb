"""
Unit tests for MemoryEngine (write path, read path, thread management).

Tests:
- process_turn(): extraction, summary refresh, persistence, never raises
- get_relevant_context(): ranking, narrative, access stats
- get_summary(), clear(), list_threads()
- create_memory_engine(): restart, retention, unusable storage
"""

import threading

from tutor_memory.config.settings import MemorySettings, Settings
from tutor_memory.memory.compose import NEW_CONVERSATION_NARRATIVE
from tutor_memory.memory.schemas import (
    NEW_CONVERSATION_TOPIC,
    MemoryQuery,
    TurnContext,
)


# ============================================================================
# Write Path
# ============================================================================

def test_struggle_turn_updates_summary(engine):
    """A struggle turn is stored and shows up as an area needing support."""
    created = engine.process_turn(
        "t1", "I don't understand fractions", "user", TurnContext(subject="math")
    )

    assert [e.category for e in created] == ["difficulty", "session_context"]

    summary = engine.get_summary("t1")
    assert summary.progress_indicators.struggling_areas == ["Student struggling with: math"]
    assert summary.overall_topic == "Learning math"
    assert summary.conversation_flow.next_suggested_action == (
        "Provide additional support and simpler explanations"
    )


def test_preference_turn(engine):
    """Two preference cues produce two preference entries."""
    created = engine.process_turn("t1", "I love science and enjoy visual diagrams", "user")

    assert len(created) == 2
    assert all(e.kind == "preference" for e in created)
    assert len(engine.get_summary("t1").user_preferences) == 2


def test_question_turn_moves_to_exploration(engine):
    """A first question moves the conversation out of the introduction."""
    engine.process_turn("t1", "Why does the sky turn red?", "user")

    summary = engine.get_summary("t1")
    assert summary.progress_indicators.questions_asked == 1
    assert summary.conversation_flow.phase == "exploration"


def test_turn_without_cues(engine):
    """No matches: nothing stored, no thread created."""
    assert engine.process_turn("t1", "ok", "user") == []
    assert engine.list_threads() == []


def test_process_turn_never_raises(engine, monkeypatch):
    """Internal failures are swallowed and logged."""

    def broken(thread_id, entries):
        raise RuntimeError("summarizer down")

    monkeypatch.setattr(engine.summarizer, "summarize", broken)

    assert engine.process_turn("t1", "This is too hard", "user") == []


def test_storage_failure_keeps_memory_state(engine, monkeypatch):
    """A failed write is logged and the in-memory state stays current."""

    def failing_set(table, key, value):
        raise OSError("disk full")

    monkeypatch.setattr(engine.persistence.kv, "set", failing_set)

    created = engine.process_turn("t1", "This is too hard", "user")

    assert len(created) == 1
    assert engine.store.count("t1") == 1


# ============================================================================
# Read Path
# ============================================================================

def test_context_for_unknown_thread(engine):
    """An empty thread yields no entries and the new-conversation narrative."""
    result = engine.get_relevant_context(MemoryQuery(thread_id="nobody"))

    assert result.entries == []
    assert result.narrative == NEW_CONVERSATION_NARRATIVE
    assert result.summary.overall_topic == NEW_CONVERSATION_TOPIC


def test_context_ranks_matching_subject_first(engine, clock):
    """Entries tagged with the query subject outrank others."""
    engine.process_turn("t1", "I got it", "user", TurnContext(subject="science"))
    engine.process_turn("t1", "This is too hard", "user", TurnContext(subject="math"))
    clock.advance(days=7)

    result = engine.get_relevant_context(
        MemoryQuery(thread_id="t1", context=TurnContext(subject="math"), limit=1)
    )

    assert len(result.entries) == 1
    assert result.entries[0].content == "Student struggling with: math"
    assert result.scores[0] == 1.0
    assert "AREAS NEEDING SUPPORT: Student struggling with: math" in result.narrative


def test_context_updates_and_persists_access_stats(engine, open_engine):
    """Read hits are counted and survive a restart."""
    engine.process_turn("t1", "This is too hard", "user")

    engine.get_relevant_context(MemoryQuery(thread_id="t1"))
    result = engine.get_relevant_context(MemoryQuery(thread_id="t1"))

    assert result.entries[0].access_count == 3

    restarted = open_engine()
    assert restarted.store.fetch("t1")[0].access_count == 3


# ============================================================================
# Thread Management
# ============================================================================

def test_clear_then_summary_is_default(engine):
    """Clearing a thread resets its summary to the defaults."""
    engine.process_turn("t1", "This is too hard", "user")

    assert engine.clear("t1") == 1

    summary = engine.get_summary("t1")
    assert summary.overall_topic == NEW_CONVERSATION_TOPIC
    assert summary.conversation_flow.phase == "introduction"
    assert engine.list_threads() == []


def test_clear_is_durable(engine, open_engine):
    """Cleared threads do not come back after a restart."""
    engine.process_turn("t1", "This is too hard", "user")
    engine.clear("t1")

    restarted = open_engine()
    assert restarted.list_threads() == []
    assert restarted.store.get_summary("t1") is None


def test_list_threads(engine):
    """Threads with entries are listed."""
    engine.process_turn("a", "This is too hard", "user")
    engine.process_turn("b", "Why is that?", "user")

    assert sorted(engine.list_threads()) == ["a", "b"]


# ============================================================================
# Factory / Restart
# ============================================================================

def test_restart_restores_entries_and_summary(engine, open_engine):
    """A new engine over the same database sees the same state."""
    engine.process_turn("t1", "I love science and enjoy visual diagrams", "user")
    engine.process_turn("t1", "Why does the sky turn red?", "user")

    restarted = open_engine()

    original = [e.model_dump() for e in engine.store.fetch("t1")]
    restored = [e.model_dump() for e in restarted.store.fetch("t1")]
    assert restored == original
    assert restarted.get_summary("t1").model_dump() == engine.get_summary("t1").model_dump()


def test_restart_applies_retention(engine, open_engine, clock):
    """Entries past the retention window are gone after a restart."""
    engine.process_turn("t1", "This is too hard", "user")
    clock.advance(days=25)
    engine.process_turn("t1", "Why is that?", "user")
    clock.advance(days=10)

    restarted = open_engine()

    assert [e.kind for e in restarted.store.fetch("t1")] == ["question_pattern"]


def test_settings_cap_applied(open_engine):
    """The per-thread cap comes from settings."""
    engine = open_engine(settings=Settings(memory=MemorySettings(max_entries_per_thread=2)))
    for _ in range(3):
        engine.process_turn("t1", "This is too hard", "user")

    assert engine.store.count("t1") == 2


def test_unusable_storage_runs_in_memory(open_engine, tmp_path):
    """If the database cannot be opened the engine still works."""
    blocked = tmp_path / "blocked"
    blocked.mkdir()

    engine = open_engine(path=blocked)

    assert engine.persistence is None
    assert len(engine.process_turn("t1", "This is too hard", "user")) == 1
    assert engine.get_summary("t1").progress_indicators.struggling_areas


# ============================================================================
# Isolation and Concurrency
# ============================================================================

def test_results_do_not_write_through(engine):
    """Changing returned entries or summaries leaves stored state intact."""
    engine.process_turn("t1", "This is too hard", "user")

    result = engine.get_relevant_context(MemoryQuery(thread_id="t1"))
    result.entries[0].importance = 42
    result.entries[0].access_count = 0
    result.summary.progress_indicators.struggling_areas.clear()

    stored = engine.store.fetch("t1")[0]
    assert stored.importance == 9
    assert stored.access_count == 2
    assert engine.get_summary("t1").progress_indicators.struggling_areas == [
        "Student struggling with: current topic"
    ]


def test_concurrent_turns_and_queries(engine):
    """Parallel turns and reads on one thread never break the cap."""
    errors = []

    def talk():
        try:
            for _ in range(30):
                engine.process_turn("shared", "This is too hard", "user")
                engine.get_relevant_context(MemoryQuery(thread_id="shared", limit=5))
        except Exception as e:
            errors.append(e)

    workers = [threading.Thread(target=talk) for _ in range(4)]
    for t in workers:
        t.start()
    for t in workers:
        t.join()

    assert errors == []
    entries = engine.store.fetch("shared")
    assert len(entries) == 100
    assert all(e.access_count >= 1 for e in entries)
    assert engine.get_summary("shared").progress_indicators.struggling_areas == [
        "Student struggling with: current topic"
    ]
