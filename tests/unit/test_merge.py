"""
Unit tests for thread_memory/summary/merge.py

Field-by-field merge policy, diff report and delta log.
"""
import pytest

from thread_memory.summary.merge import merge_summary, normalize_text
from thread_memory.summary.schemas import (
    FactEntry,
    LogEntry,
    SummarizationCandidate,
)

NOW = "2025-02-01T12:00:00+00:00"


def candidate(**fields) -> SummarizationCandidate:
    return SummarizationCandidate.model_validate(fields)


def test_first_merge_creates_version_one():
    """Merging into no summary starts the thread at version 1."""
    outcome = merge_summary(
        None,
        candidate(summary="Planning a launch", facts={"topic": "launch"}),
        thread_id="t1",
        message_id="a1",
        now=NOW,
    )

    summary = outcome.summary
    assert summary.version == 1
    assert summary.core_text == "Planning a launch"
    assert summary.facts["topic"].value == "launch"
    assert summary.facts["topic"].source_message_ids == ["a1"]
    assert summary.last_message_id == "a1"
    assert summary.last_pair_sequence == 1
    assert summary.created_at == NOW

    assert outcome.diff.added == {"core_text": ["core_text"], "facts": ["topic"]}
    assert outcome.diff.updated == {}
    assert outcome.diff.removed == []


def test_fact_update_keeps_sources(make_summary):
    """Last writer wins on value; source ids accumulate."""
    previous = make_summary(facts={"tone": FactEntry(value="formal", source_message_ids=["a1"])})

    outcome = merge_summary(previous, candidate(facts={"tone": "casual"}), thread_id="t1", message_id="a2", now=NOW)

    assert outcome.summary.facts["tone"].value == "casual"
    assert outcome.summary.facts["tone"].source_message_ids == ["a1", "a2"]
    assert outcome.diff.updated == {"facts": ["tone"]}
    assert "facts" not in outcome.diff.added


def test_facts_accumulate_across_merges():
    first = merge_summary(None, candidate(facts={"tone": "formal"}), thread_id="t1", message_id="a1", now=NOW)
    second = merge_summary(
        first.summary,
        candidate(facts={"tone": "casual", "goal": "ship v1"}),
        thread_id="t1",
        message_id="a2",
        now=NOW,
    )

    facts = second.summary.facts
    assert {key: entry.value for key, entry in facts.items()} == {"tone": "casual", "goal": "ship v1"}
    assert facts["tone"].source_message_ids == ["a1", "a2"]
    assert facts["goal"].source_message_ids == ["a2"]
    assert second.diff.added == {"facts": ["goal"]}
    assert second.diff.updated == {"facts": ["tone"]}


def test_same_decision_merged_twice_kept_once():
    first = merge_summary(None, candidate(decisions=["Use Postgres"]), thread_id="t1", message_id="a1", now=NOW)
    second = merge_summary(first.summary, candidate(decisions=["Use Postgres"]), thread_id="t1", message_id="a1", now=NOW)

    assert [d.text for d in second.summary.decisions] == ["Use Postgres"]
    assert "decisions" not in second.diff.added


def test_restated_fact_is_not_reported_as_change(make_summary):
    """Same value from a new message adds a source but no diff entry."""
    previous = make_summary(facts={"tone": FactEntry(value="casual", source_message_ids=["a1"])})

    outcome = merge_summary(previous, candidate(facts={"tone": "casual"}), thread_id="t1", message_id="a2", now=NOW)

    assert outcome.summary.facts["tone"].source_message_ids == ["a1", "a2"]
    assert outcome.diff.is_empty()


def test_decisions_accumulate_without_duplicates(make_summary):
    """Decisions are append-only and deduplicated by normalized text."""
    previous = make_summary(decisions=[
        LogEntry(text="Use Postgres", message_id="a1", timestamp=NOW),
    ])

    outcome = merge_summary(
        previous,
        candidate(decisions=["use  postgres", "Ship on Friday", "Ship on friday"]),
        thread_id="t1",
        message_id="a2",
        now=NOW,
    )

    texts = [d.text for d in outcome.summary.decisions]
    assert texts == ["Use Postgres", "Ship on Friday"]
    assert outcome.summary.decisions[1].message_id == "a2"
    assert outcome.diff.added == {"decisions": ["Ship on Friday"]}


def test_todos_record_source_message(make_summary):
    previous = make_summary()

    outcome = merge_summary(previous, candidate(todos=["Write the changelog"]), thread_id="t1", message_id="a2", now=NOW)

    todo = outcome.summary.todos[0]
    assert todo.text == "Write the changelog"
    assert todo.message_id == "a2"
    assert todo.timestamp == NOW


def test_goals_and_constraints_are_set_union(make_summary):
    previous = make_summary(goals=["ship v1"], constraints=["budget under 10k"])

    outcome = merge_summary(
        previous,
        candidate(goals=["ship v1", "hire a designer"], constraints=["budget under 10k"]),
        thread_id="t1",
        message_id="a2",
        now=NOW,
    )

    assert outcome.summary.goals == ["ship v1", "hire a designer"]
    assert outcome.summary.constraints == ["budget under 10k"]
    assert outcome.diff.added == {"goals": ["hire a designer"]}


def test_glossary_last_writer_wins(make_summary):
    previous = make_summary(glossary={"RAG": "retrieval augmented generation"})

    outcome = merge_summary(
        previous,
        candidate(glossary={"RAG": "retrieval-augmented generation", "SLA": "service level agreement"}),
        thread_id="t1",
        message_id="a2",
        now=NOW,
    )

    assert outcome.summary.glossary == {
        "RAG": "retrieval-augmented generation",
        "SLA": "service level agreement",
    }
    assert outcome.diff.added == {"glossary": ["SLA"]}
    assert outcome.diff.updated == {"glossary": ["RAG"]}


def test_absent_fields_leave_summary_untouched(make_summary):
    """An empty candidate still bumps the version but changes no content."""
    previous = make_summary(
        version=3,
        core_text="Existing narrative",
        goals=["ship v1"],
        facts={"tone": FactEntry(value="casual", source_message_ids=["a1"])},
    )

    outcome = merge_summary(previous, candidate(), thread_id="t1", message_id="a4", now=NOW)

    assert outcome.summary.version == 4
    assert outcome.summary.core_text == "Existing narrative"
    assert outcome.summary.goals == ["ship v1"]
    assert outcome.summary.facts == previous.facts
    assert outcome.summary.last_message_id == "a4"
    assert outcome.diff.is_empty()


def test_core_text_replacement_is_reported_as_update(make_summary):
    previous = make_summary(core_text="Old")

    outcome = merge_summary(previous, candidate(summary="New"), thread_id="t1", message_id="a2", now=NOW)

    assert outcome.summary.core_text == "New"
    assert outcome.diff.updated == {"core_text": ["core_text"]}


def test_merge_appends_delta_with_key_points(make_summary):
    previous = make_summary()

    outcome = merge_summary(
        previous,
        candidate(key_points=["picked a name"], facts={"name": "Atlas"}),
        thread_id="t1",
        message_id="a2",
        now=NOW,
    )

    delta = outcome.summary.deltas[-1]
    assert delta.action == "merge"
    assert delta.timestamp == NOW
    assert delta.details["message_id"] == "a2"
    assert delta.details["to_version"] == 2
    assert delta.details["changed_fields"] == ["facts"]
    assert delta.details["key_points"] == ["picked a name"]


def test_deltas_are_capped():
    """Only the most recent deltas survive."""
    summary = None
    for n in range(1, 8):
        summary = merge_summary(
            summary, candidate(summary=f"turn {n}"), thread_id="t1", message_id=f"a{n}", now=NOW, delta_cap=5
        ).summary

    assert summary.version == 7
    assert len(summary.deltas) == 5
    assert [d.details["message_id"] for d in summary.deltas] == ["a3", "a4", "a5", "a6", "a7"]


def test_merge_does_not_mutate_previous(make_summary):
    previous = make_summary(
        facts={"tone": FactEntry(value="formal", source_message_ids=["a1"])},
        goals=["ship v1"],
    )
    before = previous.model_dump()

    merge_summary(
        previous,
        candidate(facts={"tone": "casual"}, goals=["hire"], decisions=["Use Postgres"]),
        thread_id="t1",
        message_id="a2",
        now=NOW,
    )

    assert previous.model_dump() == before


def test_created_at_preserved_and_updated_at_stamped(make_summary):
    previous = make_summary()

    outcome = merge_summary(previous, candidate(summary="x"), thread_id="t1", message_id="a2", now=NOW)

    assert outcome.summary.created_at == previous.created_at
    assert outcome.summary.updated_at == NOW


def test_merge_rejects_other_threads_summary(make_summary):
    with pytest.raises(ValueError):
        merge_summary(make_summary(thread_id="t2"), candidate(), thread_id="t1", message_id="a2")


def test_merge_rejects_invalid_delta_cap():
    with pytest.raises(ValueError):
        merge_summary(None, candidate(), thread_id="t1", message_id="a1", delta_cap=0)


def test_normalize_text():
    assert normalize_text("  Use   POSTGRES \n") == "use postgres"
