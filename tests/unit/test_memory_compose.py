"""
Unit tests for the context narrative.
"""

from tutor_memory.memory.compose import (
    INSTRUCTION_LINE,
    NEW_CONVERSATION_NARRATIVE,
    format_memory_context,
    group_by_category,
)
from tutor_memory.memory.schemas import ConversationSummary, MemoryEntry
from tutor_memory.memory.summarizer import MemorySummarizer


def _entry(content, category, kind="fact", **metadata):
    return MemoryEntry(
        thread_id="t1",
        kind=kind,
        content=content,
        importance=5,
        category=category,
        metadata=metadata,
    )


def test_no_entries_is_new_conversation():
    """Nothing to recall yields the single new-conversation sentence."""
    narrative = format_memory_context([], ConversationSummary.empty("t1"))

    assert narrative == NEW_CONVERSATION_NARRATIVE


def test_group_by_category_keeps_rank_order():
    """Groups appear in order of their best entry."""
    entries = [
        _entry("a", "difficulty"),
        _entry("b", "factual_content"),
        _entry("c", "difficulty"),
    ]
    groups = group_by_category(entries)

    assert list(groups) == ["difficulty", "factual_content"]
    assert [e.content for e in groups["difficulty"]] == ["a", "c"]


def test_narrative_sections():
    """The narrative carries summary headers, grouped memories and the instruction."""
    entries = [
        _entry("Student struggling with: math", "difficulty",
               kind="learning_progress", subject="math"),
        _entry("Student prefers visual learning and diagrams", "learning_style",
               kind="preference"),
    ]
    summary = MemorySummarizer().summarize("t1", entries)

    narrative = format_memory_context(entries, summary)
    lines = narrative.split("\n")

    assert lines[0] == "CONVERSATION CONTEXT:"
    assert "OVERALL TOPIC: Learning math" in lines
    assert "CURRENT PHASE: introduction" in lines
    assert "SUBJECTS DISCUSSED: math" in lines
    assert "AREAS NEEDING SUPPORT: Student struggling with: math" in lines
    assert "USER PREFERENCES: Student prefers visual learning and diagrams" in lines
    assert not any(line.startswith("STUDENT STRENGTHS") for line in lines)

    assert "RECENT CONVERSATION MEMORIES:" in lines
    difficulty = lines.index("DIFFICULTY:")
    assert lines[difficulty + 1] == "- Student struggling with: math"
    assert lines.index("LEARNING_STYLE:") > difficulty

    assert (
        "SUGGESTED NEXT ACTION: Provide additional support and simpler explanations" in lines
    )
    assert lines[-1] == INSTRUCTION_LINE
