"""
Summary data models.

Defines the persisted Summary record, audit events, memory settings and the
ephemeral extraction candidate.
"""

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


# Type aliases
EventType = Literal["created", "updated", "error", "reconcile"]
ResultStatus = Literal["created", "updated", "duplicate", "disabled", "failed"]

DEFAULT_SUMMARIZATION_MODEL = "gpt-3.5-turbo"


class FactEntry(BaseModel):
    """A fact value with the assistant messages that asserted it."""

    value: str
    source_message_ids: List[str] = Field(default_factory=list)


class LogEntry(BaseModel):
    """A decision or todo recorded from a message pair."""

    text: str
    message_id: str
    timestamp: str
    status: Optional[str] = None


class Delta(BaseModel):
    """One merge step in the summary's change log."""

    action: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str


class Summary(BaseModel):
    """
    Structured, versioned memory for one conversation thread.

    ``version`` increases by exactly one per committed merge, and a summary
    whose ``last_message_id`` is X has already absorbed the pair ending in X.
    """

    thread_id: str = Field(..., description="Owning conversation thread")
    version: int = Field(..., ge=1, description="Committed merge count")
    core_text: Optional[str] = Field(None, description="Narrative summary")

    facts: Dict[str, FactEntry] = Field(default_factory=dict)
    decisions: List[LogEntry] = Field(default_factory=list)
    todos: List[LogEntry] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    glossary: Dict[str, str] = Field(default_factory=dict)

    deltas: List[Delta] = Field(default_factory=list)
    last_message_id: Optional[str] = None
    last_pair_sequence: Optional[int] = None
    created_at: str
    updated_at: str

    class Config:
        json_schema_extra = {
            "example": {
                "thread_id": "thread_abc",
                "version": 2,
                "core_text": "User is planning the v1 launch.",
                "facts": {"tone": {"value": "casual", "source_message_ids": ["a1", "a2"]}},
                "decisions": [{"text": "Use Postgres", "message_id": "a2", "timestamp": "2025-01-31T10:00:00+00:00"}],
                "todos": [],
                "goals": ["ship v1"],
                "constraints": [],
                "glossary": {},
                "deltas": [],
                "last_message_id": "a2",
                "last_pair_sequence": 2,
                "created_at": "2025-01-31T09:00:00+00:00",
                "updated_at": "2025-01-31T10:00:00+00:00",
            }
        }

    def stats(self) -> Dict[str, int]:
        """Counters reported back to the trigger caller."""
        return {
            "version": self.version,
            "core_text_length": len(self.core_text or ""),
            "facts_count": len(self.facts),
            "decisions_count": len(self.decisions),
        }


class SummaryEvent(BaseModel):
    """Immutable audit record of one summarization attempt's outcome."""

    id: Optional[str] = None
    thread_id: str
    event_type: EventType
    from_version: Optional[int] = None
    to_version: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    window_message_ids: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None


class MemorySettings(BaseModel):
    """Per-user summarization preferences."""

    user_id: str
    use_summarization: bool = False
    summarization_model: str = DEFAULT_SUMMARIZATION_MODEL
    summarization_prompt_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SummaryPrompt(BaseModel):
    """System prompt and sampling parameters for extraction."""

    id: str
    name: str
    prompt: str
    model: str = DEFAULT_SUMMARIZATION_MODEL
    temperature: float = 0.7
    max_tokens: int = 2000
    is_active: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Message(BaseModel):
    """A stored chat message."""

    id: str
    thread_id: str
    role: str
    content: str
    created_at: str
    position: int = Field(0, description="Insertion order within the store")


_LIST_FIELDS = ("key_points", "decisions", "todos", "goals", "constraints")
_MAP_FIELDS = ("facts", "glossary")


def _flatten_items(value: Any) -> List[str]:
    """Coerce a model-provided list into a list of non-empty strings."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError(f"expected a list, got {type(value).__name__}")

    items = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("text") or item.get("description") or item.get("value")
        if item is None:
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return items


def _stringify_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        raise ValueError(f"expected an object, got {type(value).__name__}")

    out = {}
    for key, item in value.items():
        if item is None:
            continue
        out[str(key).strip()] = item if isinstance(item, str) else json.dumps(item, sort_keys=True)
    return out


class SummarizationCandidate(BaseModel):
    """
    Unmerged extraction output for one message pair.

    Every field is independently optional; the merge skips absent ones.
    Model output is accepted loosely: keys are matched case-insensitively,
    nulls are dropped, ``{"text": ...}`` items are flattened and non-string
    fact values are JSON-encoded.
    """

    summary: Optional[str] = None
    key_points: Optional[List[str]] = None
    facts: Optional[Dict[str, str]] = None
    decisions: Optional[List[str]] = None
    todos: Optional[List[str]] = None
    goals: Optional[List[str]] = None
    constraints: Optional[List[str]] = None
    glossary: Optional[Dict[str, str]] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        out: Dict[str, Any] = {}
        for key, value in data.items():
            name = str(key).strip().lower().replace(" ", "_").replace("-", "_")
            if name in cls.model_fields and value is not None:
                out[name] = value

        for name in _LIST_FIELDS:
            if name in out:
                out[name] = _flatten_items(out[name])
        for name in _MAP_FIELDS:
            if name in out:
                out[name] = _stringify_map(out[name])

        if "summary" in out:
            text = str(out["summary"]).strip()
            if text:
                out["summary"] = text
            else:
                del out["summary"]

        return out


class SummaryDiff(BaseModel):
    """Per-field keys introduced or changed by one merge."""

    added: Dict[str, List[str]] = Field(default_factory=dict)
    updated: Dict[str, List[str]] = Field(default_factory=dict)
    removed: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.removed)


class SummarizationResult(BaseModel):
    """Outcome of one process_pair call."""

    success: bool
    status: ResultStatus
    thread_id: str
    summary: Optional[Summary] = None
    changes: Optional[SummaryDiff] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0

    @property
    def processed(self) -> bool:
        """True when this call committed a new summary version."""
        return self.status in ("created", "updated")
