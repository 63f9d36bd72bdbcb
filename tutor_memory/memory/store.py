"""
In-process memory store.

Owns the ordered entry list and the summary of every thread, and enforces the
per-thread size cap.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional

from tutor_memory.telemetry import get_logger
from .schemas import ConversationSummary, MemoryCandidate, MemoryEntry, utcnow

logger = get_logger(__name__)

DEFAULT_MAX_ENTRIES = 100


class _LockSlot:
    """A thread's lock plus the number of callers currently using it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class MemoryStore:
    """
    Per-thread memory entries and summaries.

    Features:
    - Auto-creating threads on first write; unknown threads read as empty
    - Importance-weighted pruning after every append
    - One re-entrant lock per thread (``thread_lock``) so that append, prune,
      fetch and read-through stat updates never interleave for one thread
    - Reads hand out copies; stored entries change only through
      ``mark_accessed``
    """

    def __init__(
        self,
        max_entries_per_thread: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize memory store.

        Args:
            max_entries_per_thread: Pruning cap per thread
            clock: Source of "now" (injectable for tests)
        """
        self.max_entries_per_thread = max_entries_per_thread
        self.clock = clock

        self._entries: Dict[str, List[MemoryEntry]] = {}
        self._summaries: Dict[str, ConversationSummary] = {}

        # Only threads with an operation in flight hold a slot
        self._locks: Dict[str, _LockSlot] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def thread_lock(self, thread_id: str) -> Iterator[None]:
        """Serialize all operations on one thread."""
        with self._registry_lock:
            slot = self._locks.get(thread_id)
            if slot is None:
                slot = self._locks[thread_id] = _LockSlot()
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._registry_lock:
                slot.users -= 1
                if slot.users == 0:
                    del self._locks[thread_id]

    def append(self, thread_id: str, candidates: List[MemoryCandidate]) -> List[MemoryEntry]:
        """
        Materialize candidates as entries and append them, then prune.

        Args:
            thread_id: Owning conversation
            candidates: Extractor output for this thread

        Returns:
            Copies of the created entries (some may already be pruned away)
        """
        if not candidates:
            return []

        with self.thread_lock(thread_id):
            now = self.clock()
            created = [MemoryEntry.from_candidate(c, now) for c in candidates]

            entries = self._entries.setdefault(thread_id, [])
            entries.extend(created)
            self.prune(thread_id)

            return [e.model_copy(deep=True) for e in created]

    def prune(self, thread_id: str) -> int:
        """
        Drop the lowest-value entries once the thread exceeds its cap.

        Entries are ranked by ``importance + 0.1 * access_count``; recency
        plays no part here.

        Args:
            thread_id: Conversation to prune

        Returns:
            Number of entries dropped
        """
        with self.thread_lock(thread_id):
            entries = self._entries.get(thread_id)
            if not entries or len(entries) <= self.max_entries_per_thread:
                return 0

            entries.sort(key=lambda e: e.retention_score(), reverse=True)
            dropped = len(entries) - self.max_entries_per_thread
            del entries[self.max_entries_per_thread:]

            logger.debug("memory_pruned", thread_id=thread_id, dropped=dropped)
            return dropped

    def fetch(self, thread_id: str) -> List[MemoryEntry]:
        """
        Copies of the current entries for a thread (empty for unknown threads).

        Access stats are untouched, and changing a returned entry never
        changes the store.
        """
        with self.thread_lock(thread_id):
            return [e.model_copy(deep=True) for e in self._entries.get(thread_id, [])]

    def mark_accessed(
        self,
        thread_id: str,
        entry_ids: List[str],
        now: Optional[datetime] = None,
    ) -> List[MemoryEntry]:
        """
        Record a read hit on stored entries.

        Args:
            thread_id: Owning conversation
            entry_ids: Entries that were returned to a reader
            now: Access time (default: clock)

        Returns:
            Copies of the updated entries, in ``entry_ids`` order; ids no
            longer stored are skipped
        """
        with self.thread_lock(thread_id):
            now = now or self.clock()
            by_id = {e.id: e for e in self._entries.get(thread_id, [])}

            touched = []
            for entry_id in entry_ids:
                entry = by_id.get(entry_id)
                if entry is None:
                    continue
                entry.mark_accessed(now)
                touched.append(entry.model_copy(deep=True))
            return touched

    def replace(self, thread_id: str, entries: List[MemoryEntry]) -> None:
        """Install a full entry list (used when loading persisted state)."""
        with self.thread_lock(thread_id):
            self._entries[thread_id] = [e.model_copy(deep=True) for e in entries]

    def get_summary(self, thread_id: str) -> Optional[ConversationSummary]:
        """Copy of the stored summary, or None if the thread has never been summarized."""
        with self.thread_lock(thread_id):
            summary = self._summaries.get(thread_id)
            return summary.model_copy(deep=True) if summary is not None else None

    def set_summary(self, thread_id: str, summary: ConversationSummary) -> None:
        """Replace a thread's summary wholesale."""
        with self.thread_lock(thread_id):
            self._summaries[thread_id] = summary

    def clear(self, thread_id: str) -> int:
        """
        Remove all entries and the summary for a thread.

        Returns:
            Number of entries removed
        """
        with self.thread_lock(thread_id):
            removed = len(self._entries.pop(thread_id, []))
            self._summaries.pop(thread_id, None)
            return removed

    def list_threads(self) -> List[str]:
        """Threads that currently hold entries."""
        with self._registry_lock:
            return list(self._entries.keys())

    def count(self, thread_id: Optional[str] = None) -> int:
        """
        Count entries.

        Args:
            thread_id: Optional thread filter

        Returns:
            Entry count for the thread, or across all threads
        """
        if thread_id is not None:
            with self.thread_lock(thread_id):
                return len(self._entries.get(thread_id, []))
        return sum(self.count(t) for t in self.list_threads())
