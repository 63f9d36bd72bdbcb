"""
Context narrative for a downstream text generator.
"""

from typing import Dict, List

from .schemas import ConversationSummary, MemoryEntry

NEW_CONVERSATION_NARRATIVE = "This is the beginning of a new conversation."

INSTRUCTION_LINE = (
    "INSTRUCTION: Use this context to provide personalized, continuous conversation "
    "that builds on previous interactions. Reference past discussions naturally and "
    "adapt your teaching approach based on the student's demonstrated preferences "
    "and progress."
)


def group_by_category(entries: List[MemoryEntry]) -> Dict[str, List[MemoryEntry]]:
    """Group entries by category, keeping rank order inside and across groups."""
    groups: Dict[str, List[MemoryEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.category, []).append(entry)
    return groups


def format_memory_context(entries: List[MemoryEntry], summary: ConversationSummary) -> str:
    """
    Render ranked entries plus the thread summary as a plain-text block.

    Args:
        entries: Ranked entries (best first)
        summary: Current thread summary

    Returns:
        Narrative text; a single sentence when there is nothing to recall
    """
    if not entries:
        return NEW_CONVERSATION_NARRATIVE

    progress = summary.progress_indicators
    flow = summary.conversation_flow

    lines = [
        "CONVERSATION CONTEXT:",
        "",
        f"OVERALL TOPIC: {summary.overall_topic}",
        f"CURRENT PHASE: {flow.phase}",
        f"SUBJECTS DISCUSSED: {', '.join(summary.key_subjects)}",
        f"CONCEPTS COVERED: {', '.join(summary.concepts_covered)}",
        "",
    ]

    if progress.strength_areas:
        lines.append(f"STUDENT STRENGTHS: {', '.join(progress.strength_areas)}")
    if progress.struggling_areas:
        lines.append(f"AREAS NEEDING SUPPORT: {', '.join(progress.struggling_areas)}")
    if summary.user_preferences:
        lines.append(f"USER PREFERENCES: {', '.join(summary.user_preferences)}")

    lines.append("")
    lines.append("RECENT CONVERSATION MEMORIES:")

    for category, group in group_by_category(entries).items():
        lines.append("")
        lines.append(f"{category.upper()}:")
        lines.extend(f"- {entry.content}" for entry in group)

    lines.append("")
    lines.append(f"CURRENT CONTEXT: {summary.current_context}")
    lines.append(f"SUGGESTED NEXT ACTION: {flow.next_suggested_action}")
    lines.append("")
    lines.append(INSTRUCTION_LINE)

    return "\n".join(lines)
