"""
Memory API endpoints for the conversational memory engine.

Records chat turns, serves relevant context and manages threads.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tutor_memory.config.settings import load_settings
from tutor_memory.memory.integrate import MemoryEngine, create_memory_engine
from tutor_memory.memory.schemas import (
    ConversationSummary,
    MemoryEntry,
    MemoryQuery,
    MemorySearchResult,
    TurnContext,
    TurnRole,
)


router = APIRouter(prefix="/memory", tags=["memory"])


# Engine owned by the API process (replaced through dependency overrides in tests)
_memory_engine: Optional[MemoryEngine] = None


def get_memory_engine() -> MemoryEngine:
    """Get or create the process-wide engine."""
    global _memory_engine
    if _memory_engine is None:
        settings = load_settings()
        _memory_engine = create_memory_engine(settings=settings)
    return _memory_engine


def set_memory_engine(engine: Optional[MemoryEngine]) -> None:
    """Install (or drop) the engine used by the endpoints."""
    global _memory_engine
    _memory_engine = engine


def close_memory_engine() -> None:
    """Close the engine's storage, if one was created."""
    global _memory_engine
    if _memory_engine is not None and _memory_engine.persistence is not None:
        _memory_engine.persistence.kv.close()
    _memory_engine = None


class ProcessTurnRequest(BaseModel):
    """A chat turn to record."""

    thread_id: str = Field(..., min_length=1, description="Conversation identifier")
    text: str = Field(..., description="Turn text")
    role: TurnRole = Field(..., description="'user' or 'assistant'")
    context: TurnContext = Field(default_factory=TurnContext, description="Turn context tags")

    class Config:
        json_schema_extra = {
            "example": {
                "thread_id": "thread_42",
                "text": "I don't understand fractions",
                "role": "user",
                "context": {"subject": "math", "mode": "learn", "grade": "5"},
            }
        }


class ProcessTurnResponse(BaseModel):
    """Entries created by a turn."""

    created: List[MemoryEntry] = Field(default_factory=list, description="New entries")
    count: int = Field(0, description="Number of entries created")


class ThreadListResponse(BaseModel):
    """Known thread identifiers."""

    threads: List[str] = Field(default_factory=list)
    count: int = 0


class ClearThreadResponse(BaseModel):
    """Result of clearing a thread."""

    thread_id: str
    removed: int = Field(..., description="Entries removed")
    message: str


# ============================================================================
# API Endpoints
# ============================================================================

@router.post("/turns", response_model=ProcessTurnResponse)
def process_turn(
    request: ProcessTurnRequest,
    engine: MemoryEngine = Depends(get_memory_engine),
):
    """
    Record a chat turn.

    Runs the extractors for the turn's role and stores whatever they find.
    Extraction or storage problems are logged; the call still succeeds.

    Example:
        POST /api/memory/turns
        {"thread_id": "t1", "text": "I love science", "role": "user"}
    """
    created = engine.process_turn(
        request.thread_id, request.text, request.role, request.context
    )
    return ProcessTurnResponse(created=created, count=len(created))


@router.post("/context", response_model=MemorySearchResult)
def relevant_context(
    query: MemoryQuery,
    engine: MemoryEngine = Depends(get_memory_engine),
):
    """
    Ranked memories, thread summary and a context narrative for the current turn.

    Entries scoring below ``relevance_threshold`` are left out; an unknown
    thread yields no entries and the new-conversation narrative.
    """
    return engine.get_relevant_context(query)


@router.get("/threads", response_model=ThreadListResponse)
def list_threads(engine: MemoryEngine = Depends(get_memory_engine)):
    """List threads that currently hold memories."""
    threads = engine.list_threads()
    return ThreadListResponse(threads=threads, count=len(threads))


@router.get("/threads/{thread_id}/summary", response_model=ConversationSummary)
def thread_summary(thread_id: str, engine: MemoryEngine = Depends(get_memory_engine)):
    """Current summary (the new-conversation default for unknown threads)."""
    return engine.get_summary(thread_id)


@router.delete("/threads/{thread_id}", response_model=ClearThreadResponse)
def clear_thread(thread_id: str, engine: MemoryEngine = Depends(get_memory_engine)):
    """Remove every memory and the summary of a thread."""
    if not thread_id.strip():
        raise HTTPException(status_code=422, detail="thread_id must not be blank")

    removed = engine.clear(thread_id)
    return ClearThreadResponse(
        thread_id=thread_id,
        removed=removed,
        message=f"Cleared {removed} memories",
    )
