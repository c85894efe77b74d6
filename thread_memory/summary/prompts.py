"""Prompt templates for candidate extraction."""

import json
from typing import Optional

from .schemas import Summary, SummaryPrompt


DEFAULT_PROMPT_TEXT = """You are a precise summarization assistant. Given a conversation pair (user question and assistant response), extract and update the following structured information:

1. SUMMARY: A brief overview of what was discussed (max 200 chars)
2. KEY_POINTS: Main points from this exchange
3. FACTS: Important facts mentioned (as key-value pairs)
4. DECISIONS: Any decisions made
5. TODOS: Action items mentioned
6. GOALS: Stated objectives or goals
7. CONSTRAINTS: Mentioned limitations or requirements
8. GLOSSARY: Technical terms or important concepts defined

Return the result as valid JSON with these exact keys. Be concise and only include information explicitly stated in the conversation.

If a current memory state is provided, only report items that are new or whose value changed. Reuse existing fact keys when updating a fact."""


DEFAULT_PROMPT = SummaryPrompt(
    id="default",
    name="Default Summarization Prompt",
    prompt=DEFAULT_PROMPT_TEXT,
    model="gpt-3.5-turbo",
    temperature=0.7,
    max_tokens=2000,
    is_active=True,
)


def render_memory_state(summary: Optional[Summary]) -> str:
    """Compact JSON view of a summary's structured state for the model."""
    if summary is None:
        return "(none yet)"

    state = {
        "summary": summary.core_text,
        "facts": {key: entry.value for key, entry in summary.facts.items()},
        "decisions": [d.text for d in summary.decisions],
        "todos": [t.text for t in summary.todos],
        "goals": summary.goals,
        "constraints": summary.constraints,
        "glossary": summary.glossary,
    }
    return json.dumps(state, ensure_ascii=False)


def build_pair_message(current: Optional[Summary], user_message: str, assistant_message: str) -> str:
    """User-turn content sent alongside the system prompt."""
    return (
        f"Current memory state:\n{render_memory_state(current)}\n\n"
        f"User: {user_message}\n\n"
        f"Assistant: {assistant_message}"
    )
