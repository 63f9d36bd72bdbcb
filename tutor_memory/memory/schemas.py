"""
Memory system data models.

Defines MemoryEntry, ConversationSummary and the query/result types.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field


# Closed vocabularies owned by the engine
MemoryKind = Literal[
    "fact",
    "preference",
    "context",
    "learning_progress",
    "concept",
    "question_pattern",
]
ConversationPhase = Literal["introduction", "exploration", "practice", "review"]
TurnRole = Literal["user", "assistant"]

NEW_CONVERSATION_TOPIC = "New conversation"
NEW_CONVERSATION_CONTEXT = "Starting new conversation"
NEW_CONVERSATION_ACTION = "Understand the student's learning goals and interests"


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def new_memory_id() -> str:
    """Generate an opaque memory id."""
    return f"mem_{uuid.uuid4().hex[:12]}"


class TurnContext(BaseModel):
    """
    Context tags supplied by the chat layer on every turn.

    Unknown scalar tags are accepted and carried into entry metadata.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    mode: Optional[str] = Field(None, description="Conversation mode (learn, explore, ...)")
    subject: Optional[str] = Field(None, description="Active subject")
    age_group: Optional[str] = Field(None, description="Learner age group")
    board: Optional[str] = Field(None, description="Curriculum board")
    grade: Optional[str] = Field(None, description="Grade level")

    def tags(self) -> Dict[str, Any]:
        """Non-empty scalar tags as a flat dict."""
        return {
            k: v
            for k, v in self.model_dump().items()
            if isinstance(v, (str, int, float, bool)) and v != ""
        }


class MemoryCandidate(BaseModel):
    """Extractor output: an entry payload before the store assigns identity."""

    thread_id: str
    kind: MemoryKind
    content: str = Field(..., min_length=1)
    importance: int = Field(..., ge=0, le=10)
    category: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemoryEntry(BaseModel):
    """
    An atomic fact derived from one chat turn.

    Only ``last_accessed_at`` and ``access_count`` change after creation,
    through ``mark_accessed``.
    """

    id: str = Field(default_factory=new_memory_id, description="Opaque identifier")
    thread_id: str = Field(..., description="Owning conversation")
    created_at: datetime = Field(default_factory=utcnow)
    last_accessed_at: datetime = Field(default_factory=utcnow)
    access_count: int = Field(1, ge=1, description="Read hits, starts at 1")

    kind: MemoryKind
    content: str = Field(..., min_length=1)
    importance: int = Field(..., ge=0, le=10)
    category: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "mem_3f9a1c2b4d5e",
                "thread_id": "thread_42",
                "created_at": "2026-10-18T09:30:00+00:00",
                "last_accessed_at": "2026-10-18T09:30:00+00:00",
                "access_count": 1,
                "kind": "learning_progress",
                "content": "Student struggling with: math",
                "importance": 9,
                "category": "difficulty",
                "metadata": {"subject": "math", "difficulty_level": "struggling"},
            }
        }
    )

    @classmethod
    def from_candidate(cls, candidate: MemoryCandidate, now: datetime) -> "MemoryEntry":
        """Materialize a candidate with fresh identity and timestamps."""
        return cls(
            thread_id=candidate.thread_id,
            created_at=now,
            last_accessed_at=now,
            access_count=1,
            kind=candidate.kind,
            content=candidate.content,
            importance=candidate.importance,
            category=candidate.category,
            metadata=dict(candidate.metadata),
        )

    def mark_accessed(self, now: datetime) -> None:
        """Record a read hit."""
        self.access_count += 1
        self.last_accessed_at = now

    def retention_score(self) -> float:
        """Pruning weight: importance plus a small popularity bonus."""
        return self.importance + 0.1 * self.access_count

    def to_storage_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict (ISO-8601 datetimes)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage_dict(cls, data: Dict[str, Any]) -> "MemoryEntry":
        """Load from storage dict."""
        return cls.model_validate(data)


class ProgressIndicators(BaseModel):
    """Learning progress rolled up from entries."""

    strength_areas: List[str] = Field(default_factory=list)
    struggling_areas: List[str] = Field(default_factory=list)
    questions_asked: int = 0
    concepts_learned: int = 0


class ConversationFlow(BaseModel):
    """Coarse conversation stage and what to do next."""

    phase: ConversationPhase = "introduction"
    next_suggested_action: str = NEW_CONVERSATION_ACTION


class ConversationSummary(BaseModel):
    """
    Materialized view over a thread's entries.

    Recomputed wholesale after every write; never patched in place.
    """

    thread_id: str
    overall_topic: str = NEW_CONVERSATION_TOPIC
    key_subjects: List[str] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    concepts_covered: List[str] = Field(default_factory=list)
    user_preferences: List[str] = Field(default_factory=list)
    current_context: str = NEW_CONVERSATION_CONTEXT
    progress_indicators: ProgressIndicators = Field(default_factory=ProgressIndicators)
    conversation_flow: ConversationFlow = Field(default_factory=ConversationFlow)
    last_updated: datetime = Field(default_factory=utcnow)

    @classmethod
    def empty(cls, thread_id: str, now: Optional[datetime] = None) -> "ConversationSummary":
        """Default summary for a thread with no entries."""
        return cls(thread_id=thread_id, last_updated=now or utcnow())

    def to_storage_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict (ISO-8601 datetimes)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage_dict(cls, data: Dict[str, Any]) -> "ConversationSummary":
        """Load from storage dict."""
        return cls.model_validate(data)


class MemoryQuery(BaseModel):
    """Read-path input (not persisted)."""

    thread_id: str = Field(..., description="Conversation to search")
    current_message: str = Field("", description="Current turn text")
    context: Optional[TurnContext] = Field(None, description="Current context tags")
    # None falls back to MemorySettings defaults (10 and 0.3)
    limit: Optional[int] = Field(None, ge=1, description="Maximum entries returned")
    relevance_threshold: Optional[float] = Field(None, ge=0.0, le=1.0, description="Minimum score")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "thread_id": "thread_42",
                "current_message": "Can we do more fractions?",
                "context": {"subject": "math", "mode": "learn"},
                "limit": 10,
                "relevance_threshold": 0.3,
            }
        }
    )


class ScoredEntry(BaseModel):
    """An entry paired with its transient relevance score."""

    entry: MemoryEntry
    score: float


class MemorySearchResult(BaseModel):
    """Read-path output."""

    entries: List[MemoryEntry] = Field(default_factory=list)
    scores: List[float] = Field(default_factory=list, description="Scores aligned with entries")
    summary: ConversationSummary
    narrative: str
