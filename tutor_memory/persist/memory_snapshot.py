"""
Durable snapshots of the memory store.

Two keyed collections in the KV store:
- memories: thread_id → JSON list of MemoryEntry (ISO-8601 datetimes)
- summaries: thread_id → JSON ConversationSummary

Storage failures never propagate: they are logged and the engine carries on
with its in-memory state.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from tutor_memory.memory.schemas import ConversationSummary, MemoryEntry, utcnow
from tutor_memory.memory.store import MemoryStore
from tutor_memory.telemetry import get_logger
from .sqlite_store import KVStore

logger = get_logger(__name__)

MEMORIES_TABLE = "memories"
SUMMARIES_TABLE = "summaries"

DEFAULT_RETENTION_DAYS = 30


@dataclass
class LoadReport:
    """What a load restored."""

    threads: int = 0
    entries: int = 0
    summaries: int = 0
    expired: int = 0
    skipped: List[str] = field(default_factory=list)


class MemoryPersistence:
    """
    Saves and restores MemoryStore state through a KVStore.

    Applies the retention window on load: entries older than
    ``retention_days`` are dropped before the store becomes queryable.
    Summaries are restored as saved, even if retention changed the entries.
    """

    def __init__(
        self,
        kv: KVStore,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize persistence adapter.

        Args:
            kv: Backing key-value store
            retention_days: Maximum entry age kept on load
            clock: Source of "now"
        """
        self.kv = kv
        self.retention_days = retention_days
        self.clock = clock

    def save_thread(
        self,
        thread_id: str,
        entries: List[MemoryEntry],
        summary: Optional[ConversationSummary],
    ) -> bool:
        """
        Persist one thread's entries and summary.

        Returns:
            True on success, False if the write failed (already logged)
        """
        try:
            payload = json.dumps([e.to_storage_dict() for e in entries])
            self.kv.set(MEMORIES_TABLE, thread_id, payload.encode("utf-8"))

            if summary is not None:
                summary_payload = json.dumps(summary.to_storage_dict())
                self.kv.set(SUMMARIES_TABLE, thread_id, summary_payload.encode("utf-8"))

            return True

        except Exception as e:
            logger.warning("memory_persist_failed", thread_id=thread_id, error=str(e))
            return False

    def delete_thread(self, thread_id: str) -> bool:
        """
        Remove one thread's entries and summary from storage.

        Returns:
            True on success, False if the delete failed (already logged)
        """
        try:
            self.kv.delete(MEMORIES_TABLE, thread_id)
            self.kv.delete(SUMMARIES_TABLE, thread_id)
            return True
        except Exception as e:
            logger.warning("memory_delete_failed", thread_id=thread_id, error=str(e))
            return False

    def load_into(self, store: MemoryStore) -> LoadReport:
        """
        Restore every persisted thread into ``store``.

        Unreadable rows are skipped; an unreadable database leaves the store
        empty. Threads that lost entries to retention are written back.

        Args:
            store: Store to populate

        Returns:
            LoadReport describing what was restored
        """
        report = LoadReport()
        cutoff = self.clock() - timedelta(days=self.retention_days)

        try:
            memory_keys = self.kv.keys(MEMORIES_TABLE)
            summary_keys = self.kv.keys(SUMMARIES_TABLE)
        except Exception as e:
            logger.warning("memory_load_failed", error=str(e))
            return report

        for thread_id in memory_keys:
            entries = self._read_entries(thread_id)
            if entries is None:
                report.skipped.append(thread_id)
                continue

            kept = [e for e in entries if e.created_at > cutoff]
            expired = len(entries) - len(kept)

            if expired:
                report.expired += expired
                logger.info("memory_retention_dropped", thread_id=thread_id, dropped=expired)
                self._write_back(thread_id, kept)

            if kept:
                store.replace(thread_id, kept)
                report.threads += 1
                report.entries += len(kept)

        for thread_id in summary_keys:
            summary = self._read_summary(thread_id)
            if summary is not None:
                store.set_summary(thread_id, summary)
                report.summaries += 1

        logger.info(
            "memory_loaded",
            threads=report.threads,
            entries=report.entries,
            summaries=report.summaries,
            expired=report.expired,
            skipped=len(report.skipped),
        )
        return report

    def _read_entries(self, thread_id: str) -> Optional[List[MemoryEntry]]:
        try:
            raw = self.kv.get(MEMORIES_TABLE, thread_id)
            if raw is None:
                return []
            data = json.loads(raw)
            return [MemoryEntry.from_storage_dict(item) for item in data]
        except Exception as e:
            logger.warning("memory_row_unreadable", thread_id=thread_id, error=str(e))
            return None

    def _read_summary(self, thread_id: str) -> Optional[ConversationSummary]:
        try:
            raw = self.kv.get(SUMMARIES_TABLE, thread_id)
            if raw is None:
                return None
            return ConversationSummary.from_storage_dict(json.loads(raw))
        except Exception as e:
            logger.warning("memory_summary_unreadable", thread_id=thread_id, error=str(e))
            return None

    def _write_back(self, thread_id: str, kept: List[MemoryEntry]) -> None:
        try:
            if kept:
                payload = json.dumps([e.to_storage_dict() for e in kept])
                self.kv.set(MEMORIES_TABLE, thread_id, payload.encode("utf-8"))
            else:
                self.kv.delete(MEMORIES_TABLE, thread_id)
        except Exception as e:
            logger.warning("memory_persist_failed", thread_id=thread_id, error=str(e))
