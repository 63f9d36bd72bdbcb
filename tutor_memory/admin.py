"""
CLI utility for memory database management.

Usage:
    memory-admin --stats
    memory-admin --threads
    memory-admin --summary thread_42
    memory-admin --clear thread_42
    memory-admin --db data/cache/memory.db --stats
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from tutor_memory.config.settings import load_settings
from tutor_memory.telemetry import configure_logging
from tutor_memory.memory.integrate import MemoryEngine, create_memory_engine
from tutor_memory.persist.sqlite_store import TABLES, KVStore


def format_bytes(bytes_val: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "KB", "MB", "GB"]:
        if bytes_val < 1024:
            return f"{bytes_val:.1f} {unit}"
        bytes_val /= 1024
    return f"{bytes_val:.1f} TB"


def format_time(ts: int) -> str:
    """Format unix timestamp as human-readable string."""
    if ts == 0:
        return "never"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def show_stats(db_path: Path) -> int:
    """
    Display storage statistics.

    Args:
        db_path: Memory database file
    """
    if not db_path.exists():
        print(f"Memory database not found: {db_path}")
        return 1

    print(f"Memory Statistics: {db_path}\n")

    with KVStore(db_path) as kv:
        print(f"{'Table':<15} {'Threads':>10} {'Size':>12} {'Oldest':>20} {'Newest':>20}")
        print("=" * 80)

        for table in TABLES:
            stats = kv.stats(table)
            print(
                f"{table:<15} {stats['count']:>10,} {format_bytes(stats['total_bytes']):>12} "
                f"{format_time(stats['oldest_ts']):>20} {format_time(stats['newest_ts']):>20}"
            )

        print("=" * 80)
        print()

    return 0


def show_threads(engine: MemoryEngine) -> int:
    """List threads with their entry counts."""
    threads = engine.list_threads()
    if not threads:
        print("No threads stored.")
        return 0

    for thread_id in sorted(threads):
        print(f"{thread_id:<40} {engine.store.count(thread_id):>5} entries")
    return 0


def show_summary(engine: MemoryEngine, thread_id: str) -> int:
    """Print a thread's summary as JSON."""
    print(engine.get_summary(thread_id).model_dump_json(indent=2))
    return 0


def clear_thread(engine: MemoryEngine, thread_id: str) -> int:
    """Remove a thread's memories and summary."""
    removed = engine.clear(thread_id)
    print(f"Cleared {removed} memories from {thread_id}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Manage the tutor memory database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--db", type=Path, default=None, help="Memory database path")

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--stats", action="store_true", help="Show storage statistics")
    group.add_argument("--threads", action="store_true", help="List stored threads")
    group.add_argument("--summary", metavar="THREAD", help="Show a thread summary")
    group.add_argument("--clear", metavar="THREAD", help="Clear a thread")

    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.logging)
    db_path = args.db or Path(settings.storage.db_path)

    if args.stats:
        return show_stats(db_path)

    engine = create_memory_engine(db_path=str(db_path), settings=settings)
    try:
        if args.threads:
            return show_threads(engine)
        if args.summary:
            return show_summary(engine, args.summary)
        return clear_thread(engine, args.clear)
    finally:
        if engine.persistence is not None:
            engine.persistence.kv.close()


if __name__ == "__main__":
    sys.exit(main())
