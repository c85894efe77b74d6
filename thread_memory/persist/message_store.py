"""
Chat threads and messages.

Read-only from the engine's point of view: the summarizer fetches the two
messages of a pair and the owner of a thread. The write methods exist for the
chat collaborator (and tests) that commit messages.
"""

import sqlite3
import uuid
from typing import List, Optional

from thread_memory.summary.merge import utc_now_iso
from thread_memory.summary.schemas import Message
from .sqlite_store import SqliteDatabase


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS threads (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        position INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        thread_id TEXT NOT NULL REFERENCES threads(id) ON DELETE CASCADE,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_messages_thread_id ON messages(thread_id)",
]


class MessageStore:
    """Message store collaborator backed by SQLite."""

    def __init__(self, db: SqliteDatabase):
        self.db = db
        self.db.ensure_schema(SCHEMA)

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            thread_id=row["thread_id"],
            role=row["role"],
            content=row["content"],
            created_at=row["created_at"],
            position=row["position"],
        )

    def create_thread(self, thread_id: str, user_id: str) -> None:
        self.db.execute(
            "INSERT OR IGNORE INTO threads (id, user_id, created_at) VALUES (?, ?, ?)",
            (thread_id, user_id, utc_now_iso()),
        )

    def get_thread_owner(self, thread_id: str) -> Optional[str]:
        row = self.db.query_one("SELECT user_id FROM threads WHERE id = ?", (thread_id,))
        return row["user_id"] if row else None

    def add_message(
        self,
        thread_id: str,
        role: str,
        content: str,
        message_id: Optional[str] = None,
    ) -> Message:
        """
        Append a message to a thread.

        Args:
            thread_id: Existing thread id
            role: "user" or "assistant"
            content: Message text
            message_id: Optional explicit id (generated if omitted)

        Returns:
            The stored Message
        """
        message_id = message_id or f"msg_{uuid.uuid4().hex[:12]}"
        self.db.execute(
            "INSERT INTO messages (id, thread_id, role, content, created_at) VALUES (?, ?, ?, ?, ?)",
            (message_id, thread_id, role, content, utc_now_iso()),
        )
        return self.get_messages([message_id])[0]

    def get_messages(self, ids: List[str]) -> List[Message]:
        """Fetch messages by id, in insertion order. Missing ids are skipped."""
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        rows = self.db.query(
            f"SELECT * FROM messages WHERE id IN ({placeholders}) ORDER BY position",
            list(ids),
        )
        return [self._row_to_message(row) for row in rows]

    def delete_thread(self, thread_id: str) -> int:
        """Delete a thread and its messages. Returns number of messages deleted."""
        with self.db.transaction() as conn:
            deleted = conn.execute("DELETE FROM messages WHERE thread_id = ?", (thread_id,)).rowcount
            conn.execute("DELETE FROM threads WHERE id = ?", (thread_id,))
        return deleted
