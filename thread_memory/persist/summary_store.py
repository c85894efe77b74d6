"""
Versioned per-thread summary storage.

Writes are conditional on the stored version (optimistic concurrency):
a put that does not match the version the caller read raises
VersionConflict instead of overwriting.
"""

import json
import sqlite3
from typing import List, Optional

from pydantic import ValidationError

from thread_memory.summary.errors import StoreUnavailable, VersionConflict
from thread_memory.summary.merge import utc_now_iso
from thread_memory.summary.schemas import Summary
from .sqlite_store import SqliteDatabase


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS summaries (
        thread_id TEXT PRIMARY KEY,
        version INTEGER NOT NULL,
        payload TEXT NOT NULL,
        last_message_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_summaries_updated_at ON summaries(updated_at)",
]


class SummaryStore:
    """
    Persistent storage for thread summaries.

    The full Summary is stored as JSON in ``payload``; version and
    last_message_id are mirrored into columns for the conditional write
    and for inspection.
    """

    def __init__(self, db: SqliteDatabase):
        self.db = db
        self.db.ensure_schema(SCHEMA)

    @staticmethod
    def _row_to_summary(row: sqlite3.Row) -> Summary:
        try:
            return Summary.model_validate(json.loads(row["payload"]))
        except (json.JSONDecodeError, ValidationError) as e:
            raise StoreUnavailable(f"corrupt summary for thread {row['thread_id']}: {e}") from e

    def get(self, thread_id: str) -> Optional[Summary]:
        """
        Load the current summary for a thread.

        Returns:
            Summary if the thread has been summarized, else None
        """
        row = self.db.query_one(
            "SELECT thread_id, payload FROM summaries WHERE thread_id = ?",
            (thread_id,),
        )
        if row is None:
            return None
        return self._row_to_summary(row)

    def current_version(self, thread_id: str) -> Optional[int]:
        row = self.db.query_one("SELECT version FROM summaries WHERE thread_id = ?", (thread_id,))
        return row["version"] if row else None

    def put(self, thread_id: str, previous_version: Optional[int], next_summary: Summary) -> Summary:
        """
        Commit ``next_summary`` if the stored version is still ``previous_version``.

        Args:
            thread_id: Thread to write
            previous_version: Version the caller based its merge on (None: no summary yet)
            next_summary: New summary; its version must be previous_version + 1

        Returns:
            The stored summary (with updated_at stamped)

        Raises:
            VersionConflict: If another writer committed first
            ValueError: If next_summary is for another thread or skips a version
            StoreUnavailable: On database errors
        """
        if next_summary.thread_id != thread_id:
            raise ValueError(f"Summary belongs to {next_summary.thread_id}, not {thread_id}")
        expected_next = (previous_version or 0) + 1
        if next_summary.version != expected_next:
            raise ValueError(
                f"Summary version must be {expected_next} after {previous_version}, got {next_summary.version}"
            )

        stored = next_summary.model_copy(update={"updated_at": utc_now_iso()})
        payload = stored.model_dump_json()

        with self.db.transaction() as conn:
            if previous_version is None:
                try:
                    conn.execute(
                        """
                        INSERT INTO summaries (thread_id, version, payload, last_message_id, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (thread_id, stored.version, payload, stored.last_message_id,
                         stored.created_at, stored.updated_at),
                    )
                except sqlite3.IntegrityError:
                    actual = conn.execute(
                        "SELECT version FROM summaries WHERE thread_id = ?", (thread_id,)
                    ).fetchone()
                    raise VersionConflict(thread_id, None, actual["version"] if actual else None)
            else:
                cursor = conn.execute(
                    """
                    UPDATE summaries
                    SET version = ?, payload = ?, last_message_id = ?, updated_at = ?
                    WHERE thread_id = ? AND version = ?
                    """,
                    (stored.version, payload, stored.last_message_id, stored.updated_at,
                     thread_id, previous_version),
                )
                if cursor.rowcount != 1:
                    actual = conn.execute(
                        "SELECT version FROM summaries WHERE thread_id = ?", (thread_id,)
                    ).fetchone()
                    raise VersionConflict(thread_id, previous_version, actual["version"] if actual else None)

        return stored

    def delete(self, thread_id: str) -> bool:
        """
        Delete a thread's summary (whole-thread deletion only).

        Returns:
            True if deleted, False if not found
        """
        return self.db.execute("DELETE FROM summaries WHERE thread_id = ?", (thread_id,)) > 0

    def list_threads(self, limit: int = 100) -> List[str]:
        """Thread ids with a summary, most recently updated first."""
        rows = self.db.query(
            "SELECT thread_id FROM summaries ORDER BY updated_at DESC LIMIT ?",
            (limit,),
        )
        return [row["thread_id"] for row in rows]
