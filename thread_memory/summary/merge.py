"""
Merge engine: fold one extraction candidate into a thread summary.

Field policy:
- core_text: replaced by the candidate's summary when present
- facts: last writer wins on value, source message ids accumulate
- decisions / todos: append-only, deduplicated by normalized text
- goals / constraints: set union
- glossary: last writer wins per term
- deltas: one "merge" entry per call, capped to the most recent entries

Nothing is ever removed, so ``diff.removed`` is always empty.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .schemas import (
    Delta,
    FactEntry,
    LogEntry,
    SummarizationCandidate,
    Summary,
    SummaryDiff,
)


DEFAULT_DELTA_CAP = 20


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_text(text: str) -> str:
    """Dedup key for decisions and todos."""
    return " ".join(text.split()).casefold()


@dataclass
class MergeOutcome:
    """Next summary version plus what changed."""

    summary: Summary
    diff: SummaryDiff


def _append_entries(
    existing: List[LogEntry],
    texts: Optional[List[str]],
    message_id: str,
    timestamp: str,
) -> tuple[List[LogEntry], List[str]]:
    entries = list(existing)
    if not texts:
        return entries, []

    seen = {normalize_text(e.text) for e in entries}
    new_texts = []
    for text in texts:
        key = normalize_text(text)
        if not key or key in seen:
            continue
        seen.add(key)
        entries.append(LogEntry(text=text, message_id=message_id, timestamp=timestamp))
        new_texts.append(text)
    return entries, new_texts


def _union(existing: List[str], items: Optional[List[str]]) -> tuple[List[str], List[str]]:
    merged = list(existing)
    if not items:
        return merged, []

    present = set(merged)
    new_items = []
    for item in items:
        if item in present:
            continue
        present.add(item)
        merged.append(item)
        new_items.append(item)
    return merged, new_items


def merge_summary(
    previous: Optional[Summary],
    candidate: SummarizationCandidate,
    *,
    thread_id: str,
    message_id: str,
    now: Optional[str] = None,
    delta_cap: int = DEFAULT_DELTA_CAP,
) -> MergeOutcome:
    """
    Combine ``candidate`` with ``previous`` into the next summary version.

    Args:
        previous: Current summary, or None for a thread never summarized
        candidate: Extraction output for the pair
        thread_id: Thread the summary belongs to
        message_id: Assistant message closing the pair; becomes last_message_id
        now: ISO timestamp to stamp entries with (defaults to current UTC time)
        delta_cap: Number of most recent deltas to keep

    Returns:
        MergeOutcome with the new summary and the diff report

    Raises:
        ValueError: If previous belongs to another thread or delta_cap < 1
    """
    if previous is not None and previous.thread_id != thread_id:
        raise ValueError(f"Summary for {previous.thread_id} cannot be merged into {thread_id}")
    if delta_cap < 1:
        raise ValueError("delta_cap must be at least 1")

    timestamp = now or utc_now_iso()
    added: Dict[str, List[str]] = {}
    updated: Dict[str, List[str]] = {}

    # core_text
    core_text = previous.core_text if previous else None
    if candidate.summary is not None and candidate.summary != core_text:
        target = added if core_text is None else updated
        target["core_text"] = ["core_text"]
        core_text = candidate.summary

    # facts
    facts = {key: entry.model_copy(deep=True) for key, entry in (previous.facts if previous else {}).items()}
    for key, value in (candidate.facts or {}).items():
        entry = facts.get(key)
        if entry is None:
            facts[key] = FactEntry(value=value, source_message_ids=[message_id])
            added.setdefault("facts", []).append(key)
            continue
        if entry.value != value:
            updated.setdefault("facts", []).append(key)
        entry.value = value
        if message_id not in entry.source_message_ids:
            entry.source_message_ids.append(message_id)

    # decisions / todos
    decisions, new_decisions = _append_entries(
        previous.decisions if previous else [], candidate.decisions, message_id, timestamp
    )
    todos, new_todos = _append_entries(
        previous.todos if previous else [], candidate.todos, message_id, timestamp
    )
    if new_decisions:
        added["decisions"] = new_decisions
    if new_todos:
        added["todos"] = new_todos

    # goals / constraints
    goals, new_goals = _union(previous.goals if previous else [], candidate.goals)
    constraints, new_constraints = _union(previous.constraints if previous else [], candidate.constraints)
    if new_goals:
        added["goals"] = new_goals
    if new_constraints:
        added["constraints"] = new_constraints

    # glossary
    glossary = dict(previous.glossary) if previous else {}
    for term, definition in (candidate.glossary or {}).items():
        if term not in glossary:
            added.setdefault("glossary", []).append(term)
        elif glossary[term] != definition:
            updated.setdefault("glossary", []).append(term)
        glossary[term] = definition

    version = previous.version + 1 if previous else 1

    details = {
        "message_id": message_id,
        "to_version": version,
        "changed_fields": sorted(set(added) | set(updated)),
    }
    if candidate.key_points:
        details["key_points"] = list(candidate.key_points)

    deltas = [d.model_copy(deep=True) for d in (previous.deltas if previous else [])]
    deltas.append(Delta(action="merge", details=details, timestamp=timestamp))
    deltas = deltas[-delta_cap:]

    sequence = (previous.last_pair_sequence or 0) + 1 if previous else 1

    summary = Summary(
        thread_id=thread_id,
        version=version,
        core_text=core_text,
        facts=facts,
        decisions=decisions,
        todos=todos,
        goals=goals,
        constraints=constraints,
        glossary=glossary,
        deltas=deltas,
        last_message_id=message_id,
        last_pair_sequence=sequence,
        created_at=previous.created_at if previous else timestamp,
        updated_at=timestamp,
    )

    return MergeOutcome(summary=summary, diff=SummaryDiff(added=added, updated=updated))
