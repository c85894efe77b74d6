"""Test configuration and fixtures."""

import threading
import time
from typing import List, Optional, Union

import pytest

from thread_memory.config.settings import EngineCfg
from thread_memory.persist import (
    EventLog,
    MemorySettingsStore,
    MessageStore,
    SqliteDatabase,
    SummaryStore,
)
from thread_memory.summary.extraction import ExtractionClient
from thread_memory.summary.orchestrator import SummarizationOrchestrator
from thread_memory.summary.schemas import (
    MemorySettings,
    SummarizationCandidate,
    Summary,
    SummaryPrompt,
)


class ScriptedExtractor(ExtractionClient):
    """
    Extraction client that replays queued outcomes.

    Each queued item is a candidate (or dict) to return, or an exception to
    raise. When the queue is empty the default candidate is returned.
    """

    def __init__(self, default: Optional[dict] = None, delay: float = 0.0, requires_credential: bool = True):
        self.queue: List[Union[dict, SummarizationCandidate, Exception]] = []
        self.default = default if default is not None else {"summary": "Discussed the project."}
        self.delay = delay
        self.requires_credential = requires_credential
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def push(self, *outcomes) -> "ScriptedExtractor":
        self.queue.extend(outcomes)
        return self

    def extract(self, current, user_message, assistant_message, prompt: SummaryPrompt, *, api_key=None):
        with self._lock:
            self.calls.append({
                "current_version": current.version if current else None,
                "user_message": user_message,
                "assistant_message": assistant_message,
                "model": prompt.model,
                "prompt_id": prompt.id,
                "api_key": api_key,
            })
            outcome = self.queue.pop(0) if self.queue else self.default

        if self.delay:
            time.sleep(self.delay)

        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, SummarizationCandidate):
            return outcome
        return SummarizationCandidate.model_validate(outcome)


@pytest.fixture
def db(tmp_path):
    """Temporary SQLite database."""
    database = SqliteDatabase(tmp_path / "memory.db")
    yield database
    database.close()


@pytest.fixture
def summaries(db):
    return SummaryStore(db)


@pytest.fixture
def events(db):
    return EventLog(db)


@pytest.fixture
def memory_settings(db):
    return MemorySettingsStore(db)


@pytest.fixture
def messages(db):
    return MessageStore(db)


@pytest.fixture
def extractor():
    return ScriptedExtractor()


@pytest.fixture
def orchestrator(summaries, events, memory_settings, messages, extractor):
    return SummarizationOrchestrator(
        summaries=summaries,
        events=events,
        settings=memory_settings,
        messages=messages,
        extractor=extractor,
        engine=EngineCfg(),
    )


@pytest.fixture
def seed_thread(messages, memory_settings):
    """
    Create a thread owned by ``user_1`` with summarization enabled and an API key.

    Returns a function ``add_pair(n)`` that commits user/assistant messages
    ``u{n}``/``a{n}`` and returns their ids.
    """
    messages.create_thread("t1", "user_1")
    memory_settings.upsert_memory_settings(MemorySettings(user_id="user_1", use_summarization=True))
    memory_settings.set_api_key("user_1", "sk-test")

    def add_pair(n: int, thread_id: str = "t1"):
        user = messages.add_message(thread_id, "user", f"question {n}", message_id=f"u{n}")
        assistant = messages.add_message(thread_id, "assistant", f"answer {n}", message_id=f"a{n}")
        return user.id, assistant.id

    return add_pair


@pytest.fixture
def make_summary():
    """Build a Summary with sensible defaults for merge/store tests."""

    def _make(thread_id: str = "t1", version: int = 1, **fields) -> Summary:
        data = {
            "thread_id": thread_id,
            "version": version,
            "last_message_id": f"a{version}",
            "last_pair_sequence": version,
            "created_at": "2025-01-31T09:00:00+00:00",
            "updated_at": "2025-01-31T09:00:00+00:00",
        }
        data.update(fields)
        return Summary(**data)

    return _make


@pytest.fixture
def make_extractor():
    """Factory for additional scripted extraction clients."""
    return ScriptedExtractor


@pytest.fixture
def make_orchestrator(summaries, events, memory_settings, messages):
    """Orchestrator over the shared stores with a custom extractor or engine config."""

    def _make(extractor: ExtractionClient, engine: Optional[EngineCfg] = None) -> SummarizationOrchestrator:
        return SummarizationOrchestrator(
            summaries=summaries,
            events=events,
            settings=memory_settings,
            messages=messages,
            extractor=extractor,
            engine=engine or EngineCfg(),
        )

    return _make
