"""
Memory recall with multi-factor relevance scoring.

Scores are computed at read time only and never persisted.
"""

from datetime import datetime
from typing import Callable, List, Optional

from tutor_memory.config.settings import MemorySettings
from .schemas import MemoryEntry, MemoryQuery, ScoredEntry, TurnContext, utcnow
from .store import MemoryStore

SECONDS_PER_DAY = 86400

# Context overlap weights
SUBJECT_MATCH_BONUS = 0.4
MODE_MATCH_BONUS = 0.2
BOARD_MATCH_BONUS = 0.2

RECENCY_WEIGHT = 0.3
MAX_POPULARITY_BONUS = 0.2


class MemoryRecall:
    """
    Retrieves relevant memories for a query.

    Scoring:
    - Importance: importance / 10
    - Recency (up to 0.3): linear decay to zero over the recency window
    - Context match (up to 0.8): subject 0.4, mode 0.2, board 0.2
    - Popularity (up to 0.2): access_count / 10
    - Clamped to 1.0

    Every entry returned gets its access stats bumped, under the thread lock,
    so frequently recalled memories reinforce themselves.
    """

    def __init__(
        self,
        store: MemoryStore,
        settings: Optional[MemorySettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize recall system.

        Args:
            store: MemoryStore instance
            settings: Limits and defaults
            clock: Source of "now"
        """
        self.store = store
        self.settings = settings or MemorySettings()
        self.clock = clock

    def score_entry(
        self,
        entry: MemoryEntry,
        context: Optional[TurnContext],
        now: Optional[datetime] = None,
    ) -> float:
        """
        Score memory relevance to the current turn.

        Args:
            entry: Stored entry
            context: Query context tags
            now: Reference time

        Returns:
            Relevance score [0.0, 1.0]
        """
        now = now or self.clock()
        window = self.settings.recency_window_days

        score = entry.importance / 10

        days_since = (now - entry.created_at).total_seconds() / SECONDS_PER_DAY
        score += max(0.0, (window - days_since) / window) * RECENCY_WEIGHT

        score += self._match_bonus(entry, context)

        score += min(entry.access_count / 10, MAX_POPULARITY_BONUS)

        return min(score, 1.0)

    def _match_bonus(self, entry: MemoryEntry, context: Optional[TurnContext]) -> float:
        if context is None:
            return 0.0

        bonus = 0.0
        meta = entry.metadata
        if context.subject and meta.get("subject") == context.subject:
            bonus += SUBJECT_MATCH_BONUS
        if context.mode and meta.get("mode") == context.mode:
            bonus += MODE_MATCH_BONUS
        if context.board and meta.get("board") == context.board:
            bonus += BOARD_MATCH_BONUS
        return bonus

    def query_memories(self, query: MemoryQuery) -> List[ScoredEntry]:
        """
        Rank a thread's memories for a query.

        Args:
            query: Thread, current message, context, limit and threshold

        Returns:
            Entries with score >= threshold, best first, at most ``limit``
        """
        limit = query.limit if query.limit is not None else self.settings.default_limit
        threshold = (
            query.relevance_threshold
            if query.relevance_threshold is not None
            else self.settings.default_relevance_threshold
        )

        with self.store.thread_lock(query.thread_id):
            now = self.clock()

            scored = []
            for entry in self.store.fetch(query.thread_id):
                score = self.score_entry(entry, query.context, now)
                if score >= threshold:
                    scored.append((entry.id, score))

            scored.sort(key=lambda s: s[1], reverse=True)
            scored = scored[:limit]

            touched = self.store.mark_accessed(
                query.thread_id, [entry_id for entry_id, _ in scored], now
            )

        return [
            ScoredEntry(entry=entry, score=score)
            for entry, (_, score) in zip(touched, scored)
        ]
