"""
Append-only audit trail of summarization attempts.
"""

import json
import sqlite3
import uuid
from typing import List, Optional

from thread_memory.summary.merge import utc_now_iso
from thread_memory.summary.schemas import EventType, SummaryEvent
from .sqlite_store import SqliteDatabase


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS summary_events (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        thread_id TEXT NOT NULL,
        event_type TEXT NOT NULL CHECK (event_type IN ('created', 'updated', 'error', 'reconcile')),
        from_version INTEGER,
        to_version INTEGER,
        details TEXT NOT NULL,
        window_message_ids TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_summary_events_thread_id ON summary_events(thread_id)",
]


class EventLog:
    """
    Stores SummaryEvent rows.

    Events are never updated; the only delete path is whole-thread deletion.
    """

    def __init__(self, db: SqliteDatabase):
        self.db = db
        self.db.ensure_schema(SCHEMA)

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> SummaryEvent:
        return SummaryEvent(
            id=row["id"],
            thread_id=row["thread_id"],
            event_type=row["event_type"],
            from_version=row["from_version"],
            to_version=row["to_version"],
            details=json.loads(row["details"]),
            window_message_ids=json.loads(row["window_message_ids"]),
            created_at=row["created_at"],
        )

    def append(self, event: SummaryEvent) -> SummaryEvent:
        """
        Persist an event, assigning its id and timestamp.

        Returns:
            The stored event
        """
        stored = event.model_copy(update={
            "id": event.id or str(uuid.uuid4()),
            "created_at": event.created_at or utc_now_iso(),
        })

        self.db.execute(
            """
            INSERT INTO summary_events
                (id, thread_id, event_type, from_version, to_version, details, window_message_ids, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                stored.id,
                stored.thread_id,
                stored.event_type,
                stored.from_version,
                stored.to_version,
                json.dumps(stored.details, default=str),
                json.dumps(stored.window_message_ids),
                stored.created_at,
            ),
        )
        return stored

    def list_for_thread(
        self,
        thread_id: str,
        limit: int = 100,
        event_type: Optional[EventType] = None,
    ) -> List[SummaryEvent]:
        """
        Events for a thread in append order, oldest first.

        Args:
            thread_id: Thread identifier
            limit: Return at most this many of the most recent events
            event_type: Optional event type filter
        """
        sql = "SELECT * FROM summary_events WHERE thread_id = ?"
        params: list = [thread_id]
        if event_type:
            sql += " AND event_type = ?"
            params.append(event_type)
        sql += " ORDER BY seq DESC LIMIT ?"
        params.append(limit)

        rows = self.db.query(sql, params)
        return [self._row_to_event(row) for row in reversed(rows)]

    def count(self, thread_id: str, event_type: Optional[EventType] = None) -> int:
        if event_type:
            row = self.db.query_one(
                "SELECT COUNT(*) AS n FROM summary_events WHERE thread_id = ? AND event_type = ?",
                (thread_id, event_type),
            )
        else:
            row = self.db.query_one(
                "SELECT COUNT(*) AS n FROM summary_events WHERE thread_id = ?",
                (thread_id,),
            )
        return row["n"]

    def delete_for_thread(self, thread_id: str) -> int:
        """Remove a deleted thread's events. Returns number of rows deleted."""
        return self.db.execute("DELETE FROM summary_events WHERE thread_id = ?", (thread_id,))
