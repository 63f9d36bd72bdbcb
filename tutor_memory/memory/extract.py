"""
Heuristic memory extraction from chat turns.

Each extractor is a pure function ``(thread_id, text, tags) -> candidates``
registered in a per-role list. A new memory kind is one new function added to
the matching list.
"""

import re
from typing import Any, Callable, Dict, List, Optional

from tutor_memory.telemetry import get_logger
from .schemas import MemoryCandidate, TurnContext

logger = get_logger(__name__)

Extractor = Callable[[str, str, Dict[str, Any]], List[MemoryCandidate]]

KNOWN_SUBJECTS = [
    "math",
    "science",
    "english",
    "history",
    "geography",
    "physics",
    "chemistry",
    "biology",
]

VISUAL_CUES = ["visual", "picture", "diagram"]
SEQUENTIAL_CUES = ["step by step", "step-by-step", "slowly", "explain more"]
STRUGGLE_CUES = [
    "too hard",
    "difficult",
    "don't understand",
    "dont understand",
    "do not understand",
    "confused",
]
MASTERY_CUES = ["easy", "got it", "understand now", "makes sense now"]

QUESTION_TYPES = {
    "what": "factual",
    "define": "factual",
    "how": "procedural",
    "explain": "procedural",
    "why": "conceptual",
    "because": "conceptual",
    "which": "analytical",
    "compare": "analytical",
}

_SUBJECT_ALT = "|".join(KNOWN_SUBJECTS)
# A trailing "s" ("maths", "sciences") still records the singular subject
SUBJECT_INTEREST_PATTERNS = [
    re.compile(rf"\b(?:love|like|enjoy)s?\s+(?:learning\s+|doing\s+)?({_SUBJECT_ALT})s?\b"),
    re.compile(rf"\bfavou?rite(?:\s+subject)?\s+is\s+({_SUBJECT_ALT})s?\b"),
]

CONCEPT_PATTERNS = [
    re.compile(r"\bconcept of (\w+)", re.IGNORECASE),
    re.compile(r"\bprinciple of (\w+)", re.IGNORECASE),
    re.compile(r"\btheory of (\w+)", re.IGNORECASE),
    re.compile(r"\b(\w+) is defined as\b", re.IGNORECASE),
    re.compile(r"\b(\w+) formula\b", re.IGNORECASE),
]
CONCEPT_STOP_WORDS = {
    "the", "a", "an", "this", "that", "it", "which", "what", "our", "your", "its", "and", "or",
}

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
MIN_FACT_CHARS = 20
MAX_FACTS_PER_TURN = 3
QUESTION_SNIPPET_CHARS = 100


def _contains_any(text: str, cues: List[str]) -> bool:
    return any(cue in text for cue in cues)


def _candidate(
    thread_id: str,
    kind: str,
    content: str,
    importance: int,
    category: str,
    tags: Dict[str, Any],
    **extra: Any,
) -> MemoryCandidate:
    return MemoryCandidate(
        thread_id=thread_id,
        kind=kind,
        content=content,
        importance=importance,
        category=category,
        metadata={**tags, **extra},
    )


# ============================================================================
# User-turn extractors
# ============================================================================

def extract_visual_style(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Student asks for pictures or diagrams."""
    if not _contains_any(text.lower(), VISUAL_CUES):
        return []
    return [
        _candidate(
            thread_id, "preference",
            "Student prefers visual learning and diagrams",
            8, "learning_style", tags,
            learning_style="visual",
        )
    ]


def extract_sequential_style(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Student asks for slower, step-by-step explanations."""
    if not _contains_any(text.lower(), SEQUENTIAL_CUES):
        return []
    return [
        _candidate(
            thread_id, "preference",
            "Student prefers detailed, step-by-step explanations",
            7, "learning_style", tags,
            learning_style="sequential",
        )
    ]


def extract_subject_interest(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Student expresses affinity for a known subject."""
    lower = text.lower()
    for pattern in SUBJECT_INTEREST_PATTERNS:
        match = pattern.search(lower)
        if match:
            subject = match.group(1)
            return [
                _candidate(
                    thread_id, "preference",
                    f"Student shows interest in {subject}",
                    6, "subject_interest", tags,
                    favorite_subject=subject,
                )
            ]
    return []


def extract_struggle(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Difficulty signals are the most important progress memories."""
    if not _contains_any(text.lower(), STRUGGLE_CUES):
        return []
    topic = tags.get("subject") or "current topic"
    return [
        _candidate(
            thread_id, "learning_progress",
            f"Student struggling with: {topic}",
            9, "difficulty", tags,
            difficulty_level="struggling",
        )
    ]


def extract_mastery(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Student signals the material clicked."""
    if not _contains_any(text.lower(), MASTERY_CUES):
        return []
    topic = tags.get("subject") or "current topic"
    return [
        _candidate(
            thread_id, "learning_progress",
            f"Student mastered: {topic}",
            7, "mastery", tags,
            difficulty_level="mastered",
        )
    ]


def classify_question(text: str) -> str:
    """
    Classify a question by the first interrogative word it contains.

    Args:
        text: Question text

    Returns:
        One of factual, procedural, conceptual, analytical, general
    """
    for word in re.findall(r"[a-z]+", text.lower()):
        if word in QUESTION_TYPES:
            return QUESTION_TYPES[word]
    return "general"


def extract_question_pattern(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Record every question the student asks, with its type."""
    if "?" not in text:
        return []

    question = text.strip()
    question_type = classify_question(question)

    snippet = question
    if len(snippet) > QUESTION_SNIPPET_CHARS:
        snippet = snippet[:QUESTION_SNIPPET_CHARS] + "..."

    return [
        _candidate(
            thread_id, "question_pattern",
            f'Asked {question_type} question: "{snippet}"',
            5, "question_type", tags,
            question_type=question_type,
            original_question=question,
        )
    ]


# ============================================================================
# Assistant-turn extractors
# ============================================================================

def find_concepts(text: str) -> List[str]:
    """Distinct concept terms named by the concept patterns, in order of appearance."""
    found = []
    for pattern in CONCEPT_PATTERNS:
        for match in pattern.finditer(text):
            found.append((match.start(), match.group(1).lower()))

    concepts: List[str] = []
    for _, term in sorted(found):
        if term in CONCEPT_STOP_WORDS or term.isdigit() or term in concepts:
            continue
        concepts.append(term)
    return concepts


def extract_concepts(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """One concept entry per distinct concept the assistant explained."""
    return [
        _candidate(
            thread_id, "concept",
            f"Explained concept: {concept}",
            6, "teaching_content", tags,
            concept=concept,
        )
        for concept in find_concepts(text)
    ]


def split_facts(text: str, limit: int = MAX_FACTS_PER_TURN) -> List[str]:
    """First few substantial sentences of a reply."""
    sentences = [s.strip() for s in SENTENCE_SPLIT.split(text)]
    return [s for s in sentences if len(s) > MIN_FACT_CHARS][:limit]


def extract_facts(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Keep the opening sentences of an explanation as facts."""
    return [
        _candidate(thread_id, "fact", sentence, 4, "factual_content", tags)
        for sentence in split_facts(text)
    ]


# ============================================================================
# Shared extractors
# ============================================================================

def extract_context_info(thread_id: str, text: str, tags: Dict[str, Any]) -> List[MemoryCandidate]:
    """Record which subject/mode the turn happened in."""
    if not (tags.get("subject") or tags.get("mode") or tags.get("board")):
        return []
    mode = tags.get("mode") or "general"
    subject = tags.get("subject") or "general topic"
    return [
        _candidate(
            thread_id, "context",
            f"Discussion in {mode} mode about {subject}",
            3, "session_context", tags,
        )
    ]


USER_EXTRACTORS: List[Extractor] = [
    extract_visual_style,
    extract_sequential_style,
    extract_subject_interest,
    extract_struggle,
    extract_mastery,
    extract_question_pattern,
]

ASSISTANT_EXTRACTORS: List[Extractor] = [
    extract_concepts,
    extract_facts,
]

SHARED_EXTRACTORS: List[Extractor] = [
    extract_context_info,
]

EXTRACTORS_BY_ROLE: Dict[str, List[Extractor]] = {
    "user": USER_EXTRACTORS,
    "assistant": ASSISTANT_EXTRACTORS,
}


def extract_memories(
    thread_id: str,
    text: str,
    role: str,
    context: Optional[TurnContext] = None,
) -> List[MemoryCandidate]:
    """
    Run every extractor registered for ``role`` plus the shared ones.

    A failing extractor is logged and skipped; the others still run.

    Args:
        thread_id: Owning conversation
        text: Turn text
        role: "user" or "assistant"
        context: Turn context tags

    Returns:
        Candidates in extractor registration order (possibly empty)
    """
    if not isinstance(text, str) or not text.strip():
        return []

    if role not in EXTRACTORS_BY_ROLE:
        logger.warning("memory_unknown_role", thread_id=thread_id, role=role)
        return []

    tags = context.tags() if context is not None else {}
    candidates: List[MemoryCandidate] = []

    for extractor in EXTRACTORS_BY_ROLE[role] + SHARED_EXTRACTORS:
        try:
            candidates.extend(extractor(thread_id, text, tags))
        except Exception as e:
            logger.warning(
                "memory_extractor_failed",
                thread_id=thread_id,
                extractor=extractor.__name__,
                error=str(e),
            )

    return candidates
