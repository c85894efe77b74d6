"""
Summary text for injection into a chat's context window.
"""

from typing import Optional

from .schemas import Summary


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit - 3] + "..."
    return text


def render_core_text(summary: Summary, limit: int = 1500) -> str:
    """
    Build a one-line digest from the structured state.

    Shows up to 3 goals, 5 facts, the 3 most recent decisions, the todo
    count and 2 constraints, joined with " | " and truncated to ``limit``.
    """
    parts = []

    if summary.goals:
        parts.append(f"Goals: {', '.join(summary.goals[:3])}")

    if summary.facts:
        facts = "; ".join(f"{key}: {entry.value}" for key, entry in list(summary.facts.items())[:5])
        parts.append(f"Facts: {facts}")

    if summary.decisions:
        parts.append(f"Decisions: {'; '.join(d.text for d in summary.decisions[-3:])}")

    if summary.todos:
        parts.append(f"TODOs: {len(summary.todos)} items")

    if summary.constraints:
        parts.append(f"Constraints: {', '.join(summary.constraints[:2])}")

    return _truncate(" | ".join(parts), limit)


def summary_context(summary: Optional[Summary], limit: int = 1500) -> Optional[str]:
    """
    Context text for a thread: the narrative core_text when there is one,
    otherwise the structured digest. None when nothing has been summarized.
    Either way the text is at most ``limit`` characters.
    """
    if summary is None:
        return None

    if summary.core_text:
        return _truncate(summary.core_text, limit)

    return render_core_text(summary, limit) or None
