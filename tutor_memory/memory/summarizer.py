"""
Conversation summarization over a thread's memory entries.

The summary is a materialized view: always rebuilt from the full entry list,
never patched incrementally.
"""

from collections import Counter
from datetime import datetime
from typing import Callable, Iterable, List

from .schemas import (
    ConversationFlow,
    ConversationPhase,
    ConversationSummary,
    MemoryEntry,
    ProgressIndicators,
    utcnow,
)

MAX_LEARNING_OBJECTIVES = 5


def _distinct(values: Iterable[object]) -> List[str]:
    """Distinct non-empty values as strings, first-seen order."""
    seen: List[str] = []
    for value in values:
        if value in (None, ""):
            continue
        text = str(value)
        if text not in seen:
            seen.append(text)
    return seen


class MemorySummarizer:
    """
    Folds all entries for a thread into a ConversationSummary.

    Derivations:
    - topic: most frequent subject tag
    - subjects, concepts, preferences: distinct values
    - strengths/struggles: mastery/difficulty entry contents
    - phase: question count ladder, then concept count
    - next action: struggles vs strengths
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        """
        Initialize summarizer.

        Args:
            clock: Source of "now" for ``last_updated``
        """
        self.clock = clock

    def summarize(self, thread_id: str, entries: List[MemoryEntry]) -> ConversationSummary:
        """
        Recompute the summary for a thread.

        Args:
            thread_id: Conversation identifier
            entries: Every current entry of the thread

        Returns:
            Fresh ConversationSummary (the default summary if entries is empty)
        """
        now = self.clock()
        if not entries:
            return ConversationSummary.empty(thread_id, now)

        subjects = _distinct(e.metadata.get("subject") for e in entries)
        concepts = _distinct(e.metadata.get("concept") for e in entries)
        preferences = _distinct(e.content for e in entries if e.kind == "preference")
        strengths = _distinct(e.content for e in entries if e.category == "mastery")
        struggles = _distinct(e.content for e in entries if e.category == "difficulty")

        questions_asked = sum(1 for e in entries if e.kind == "question_pattern")
        concept_entries = sum(1 for e in entries if e.kind == "concept")

        return ConversationSummary(
            thread_id=thread_id,
            overall_topic=self.infer_topic(entries),
            key_subjects=subjects,
            learning_objectives=self.infer_learning_objectives(entries),
            concepts_covered=concepts,
            user_preferences=preferences,
            current_context=self.infer_current_context(entries),
            progress_indicators=ProgressIndicators(
                strength_areas=strengths,
                struggling_areas=struggles,
                questions_asked=questions_asked,
                concepts_learned=len(concepts),
            ),
            conversation_flow=ConversationFlow(
                phase=self.infer_phase(questions_asked, concept_entries),
                next_suggested_action=self.suggest_next_action(strengths, struggles),
            ),
            last_updated=now,
        )

    def infer_topic(self, entries: List[MemoryEntry]) -> str:
        """Topic line built from the most frequent subject tag."""
        counts = Counter(
            str(e.metadata["subject"]) for e in entries if e.metadata.get("subject")
        )
        if not counts:
            return "General learning conversation"
        # Counter.most_common keeps first-seen order among ties
        top_subject, _ = counts.most_common(1)[0]
        return f"Learning {top_subject}"

    def infer_learning_objectives(self, entries: List[MemoryEntry]) -> List[str]:
        objectives = [
            f"Understand {e.metadata.get('concept') or e.metadata.get('subject') or 'topic'}"
            for e in entries
            if e.kind in ("question_pattern", "concept")
        ]
        return _distinct(objectives[:MAX_LEARNING_OBJECTIVES])

    def infer_current_context(self, entries: List[MemoryEntry]) -> str:
        latest = max(entries, key=lambda e: e.created_at)
        subject = latest.metadata.get("subject") or "general topics"
        mode = latest.metadata.get("mode") or "learning"
        return f"Currently discussing {subject} in {mode} mode"

    @staticmethod
    def infer_phase(questions_asked: int, concept_entries: int) -> ConversationPhase:
        if questions_asked == 0:
            return "introduction"
        if questions_asked < 3:
            return "exploration"
        if concept_entries > 3:
            return "practice"
        return "review"

    @staticmethod
    def suggest_next_action(strengths: List[str], struggles: List[str]) -> str:
        if len(struggles) > len(strengths):
            return "Provide additional support and simpler explanations"
        if len(strengths) > 3:
            return "Introduce more challenging concepts"
        return "Continue building on current understanding"
