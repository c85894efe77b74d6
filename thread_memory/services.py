"""
Wiring of stores, extraction client, orchestrator and worker.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from thread_memory.config.settings import Settings
from thread_memory.ops.worker import SummarizationWorker
from thread_memory.persist import (
    EventLog,
    MemorySettingsStore,
    MessageStore,
    SqliteDatabase,
    SummaryStore,
)
from thread_memory.summary.extraction import ExtractionClient, build_extraction_client
from thread_memory.summary.orchestrator import SummarizationOrchestrator


@dataclass
class MemoryServices:
    """Everything the API and scripts need, sharing one database handle."""

    settings: Settings
    db: SqliteDatabase
    summaries: SummaryStore
    events: EventLog
    memory_settings: MemorySettingsStore
    messages: MessageStore
    orchestrator: SummarizationOrchestrator
    worker: SummarizationWorker

    def delete_thread(self, thread_id: str) -> dict:
        """Whole-thread deletion: messages, summary and its events, atomically."""
        with self.db.transaction():
            messages = self.messages.delete_thread(thread_id)
            summary = self.summaries.delete(thread_id)
            events = self.events.delete_for_thread(thread_id)
        return {"messages": messages, "summary": summary, "events": events}

    def close(self) -> None:
        self.worker.shutdown(wait=True)
        self.db.close()


def build_services(
    settings: Optional[Settings] = None,
    extractor: Optional[ExtractionClient] = None,
) -> MemoryServices:
    """
    Open the database and assemble the summarization stack.

    Args:
        settings: Application settings (default: from environment)
        extractor: Extraction client override (default: configured provider)
    """
    settings = settings or Settings.from_env()
    db = SqliteDatabase(Path(settings.store.db_path), timeout=settings.store.busy_timeout)

    summaries = SummaryStore(db)
    events = EventLog(db)
    memory_settings = MemorySettingsStore(db)
    messages = MessageStore(db)

    orchestrator = SummarizationOrchestrator(
        summaries=summaries,
        events=events,
        settings=memory_settings,
        messages=messages,
        extractor=extractor or build_extraction_client(settings.extraction),
        engine=settings.engine,
    )
    worker = SummarizationWorker(orchestrator, max_workers=settings.engine.worker_threads)

    return MemoryServices(
        settings=settings,
        db=db,
        summaries=summaries,
        events=events,
        memory_settings=memory_settings,
        messages=messages,
        orchestrator=orchestrator,
        worker=worker,
    )
