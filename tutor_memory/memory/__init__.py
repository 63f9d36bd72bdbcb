"""
Conversational memory for tutoring chats.

Provides:
- Heuristic extraction of preferences, progress, questions, concepts and facts
- Per-thread storage with importance-weighted pruning
- Relevance scoring against the current turn
- Conversation summaries and a context narrative for a text generator

The engine facade lives in ``tutor_memory.memory.integrate``.
"""

from .schemas import (
    ConversationSummary,
    MemoryCandidate,
    MemoryEntry,
    MemoryKind,
    MemoryQuery,
    MemorySearchResult,
    TurnContext,
)
from .store import MemoryStore
from .extract import extract_memories
from .recall import MemoryRecall
from .summarizer import MemorySummarizer
from .compose import format_memory_context

__all__ = [
    "ConversationSummary",
    "MemoryCandidate",
    "MemoryEntry",
    "MemoryKind",
    "MemoryQuery",
    "MemorySearchResult",
    "TurnContext",
    "MemoryStore",
    "extract_memories",
    "MemoryRecall",
    "MemorySummarizer",
    "format_memory_context",
]
