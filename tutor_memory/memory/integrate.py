"""
Memory engine: the write and read paths over store, scorer, summarizer and
persistence.

Write path: process_turn → extract → store.append (+ prune) → summarize → save.
Read path: get_relevant_context → score/rank (+ access stats) → compose.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from tutor_memory.config.settings import Settings
from tutor_memory.persist.memory_snapshot import MemoryPersistence
from tutor_memory.persist.sqlite_store import KVStore
from tutor_memory.telemetry import get_logger
from .compose import format_memory_context
from .extract import extract_memories
from .recall import MemoryRecall
from .schemas import (
    ConversationSummary,
    MemoryEntry,
    MemoryQuery,
    MemorySearchResult,
    TurnContext,
    utcnow,
)
from .store import MemoryStore
from .summarizer import MemorySummarizer

logger = get_logger(__name__)


class MemoryEngine:
    """
    Conversational memory for a chat host.

    Provides:
    - process_turn: record what a turn reveals (never raises)
    - get_relevant_context: ranked entries, summary and narrative
    - get_summary, clear, list_threads: thread management

    The engine is an explicit object owned by the host process; nothing is
    shared between instances.
    """

    def __init__(
        self,
        store: MemoryStore,
        recall: MemoryRecall,
        summarizer: MemorySummarizer,
        persistence: Optional[MemoryPersistence] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize memory engine.

        Args:
            store: Memory store
            recall: Relevance scorer
            summarizer: Summary builder
            persistence: Optional durable storage (in-memory only if None)
            clock: Source of "now"
        """
        self.store = store
        self.recall = recall
        self.summarizer = summarizer
        self.persistence = persistence
        self.clock = clock

    def load(self) -> None:
        """Restore persisted state, applying the retention window."""
        if self.persistence is not None:
            self.persistence.load_into(self.store)

    def process_turn(
        self,
        thread_id: str,
        text: str,
        role: str,
        context: Optional[TurnContext] = None,
    ) -> List[MemoryEntry]:
        """
        Extract memories from a chat turn and record them.

        Failures are logged, never raised to the caller.

        Args:
            thread_id: Conversation identifier
            text: Turn text
            role: "user" or "assistant"
            context: Turn context tags

        Returns:
            Entries created by this turn (empty on no match or failure)
        """
        try:
            candidates = extract_memories(thread_id, text, role, context)
            if not candidates:
                return []

            with self.store.thread_lock(thread_id):
                created = self.store.append(thread_id, candidates)
                entries = self.store.fetch(thread_id)
                summary = self.summarizer.summarize(thread_id, entries)
                self.store.set_summary(thread_id, summary)
                self._save(thread_id, entries, summary)

            logger.info(
                "memory_turn_processed",
                thread_id=thread_id,
                role=role,
                created=len(created),
                total=len(entries),
            )
            return created

        except Exception as e:
            logger.error("memory_turn_failed", thread_id=thread_id, role=role, error=str(e))
            return []

    def get_relevant_context(self, query: MemoryQuery) -> MemorySearchResult:
        """
        Retrieve ranked memories, the thread summary and a context narrative.

        Args:
            query: Thread, current message, context, limit and threshold

        Returns:
            MemorySearchResult (empty entries for unknown threads)
        """
        with self.store.thread_lock(query.thread_id):
            scored = self.recall.query_memories(query)
            summary = self.get_summary(query.thread_id)

            if scored:
                self._save(query.thread_id, self.store.fetch(query.thread_id), None)

        entries = [s.entry for s in scored]
        return MemorySearchResult(
            entries=entries,
            scores=[s.score for s in scored],
            summary=summary,
            narrative=format_memory_context(entries, summary),
        )

    def get_summary(self, thread_id: str) -> ConversationSummary:
        """Stored summary, or the default new-conversation summary."""
        summary = self.store.get_summary(thread_id)
        if summary is None:
            return ConversationSummary.empty(thread_id, self.clock())
        return summary

    def clear(self, thread_id: str) -> int:
        """
        Remove every entry and the summary of a thread, in memory and on disk.

        Returns:
            Number of entries removed
        """
        with self.store.thread_lock(thread_id):
            removed = self.store.clear(thread_id)
            if self.persistence is not None:
                self.persistence.delete_thread(thread_id)

        logger.info("memory_thread_cleared", thread_id=thread_id, removed=removed)
        return removed

    def list_threads(self) -> List[str]:
        """Threads that currently hold memories."""
        return self.store.list_threads()

    def _save(
        self,
        thread_id: str,
        entries: List[MemoryEntry],
        summary: Optional[ConversationSummary],
    ) -> None:
        if self.persistence is not None:
            self.persistence.save_thread(thread_id, entries, summary)


def create_memory_engine(
    db_path: Optional[str] = None,
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = utcnow,
) -> MemoryEngine:
    """
    Factory function to create a memory engine.

    If the database cannot be opened the engine still works, in memory only.

    Args:
        db_path: Path to SQLite database (default: settings.storage.db_path)
        settings: Application settings
        clock: Source of "now"

    Returns:
        MemoryEngine with persisted state loaded
    """
    settings = settings or Settings()
    cfg = settings.memory

    store = MemoryStore(max_entries_per_thread=cfg.max_entries_per_thread, clock=clock)
    recall = MemoryRecall(store, settings=cfg, clock=clock)
    summarizer = MemorySummarizer(clock=clock)

    persistence = None
    path = Path(db_path or settings.storage.db_path)
    try:
        kv = KVStore(path)
        persistence = MemoryPersistence(kv, retention_days=cfg.retention_days, clock=clock)
    except Exception as e:
        logger.warning("memory_storage_unavailable", db_path=str(path), error=str(e))

    engine = MemoryEngine(store, recall, summarizer, persistence, clock=clock)
    engine.load()
    return engine
