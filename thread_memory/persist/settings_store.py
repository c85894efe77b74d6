"""
Per-user memory settings, summarization prompts and model credentials.

Read paths are read-through on every call; nothing is cached in process,
so a settings update is visible to the very next summarization.
"""

import sqlite3
import uuid
from typing import Optional

from thread_memory.summary.merge import utc_now_iso
from thread_memory.summary.schemas import MemorySettings, SummaryPrompt
from .sqlite_store import SqliteDatabase


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS summary_prompts (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        prompt TEXT NOT NULL,
        model TEXT NOT NULL,
        temperature REAL NOT NULL,
        max_tokens INTEGER NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memory_settings (
        user_id TEXT PRIMARY KEY,
        use_summarization INTEGER NOT NULL DEFAULT 0,
        summarization_model TEXT NOT NULL,
        summarization_prompt_id TEXT REFERENCES summary_prompts(id) ON DELETE SET NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_credentials (
        user_id TEXT PRIMARY KEY,
        api_key TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
]


class MemorySettingsStore:
    """Settings collaborator backed by SQLite."""

    def __init__(self, db: SqliteDatabase):
        self.db = db
        self.db.ensure_schema(SCHEMA)

    # ------------------------------------------------------------------ #
    # Memory settings
    # ------------------------------------------------------------------ #

    def get_memory_settings(self, user_id: str) -> MemorySettings:
        """
        Settings for a user, or the defaults (summarization off) if none are stored.
        """
        row = self.db.query_one("SELECT * FROM memory_settings WHERE user_id = ?", (user_id,))
        if row is None:
            return MemorySettings(user_id=user_id)

        return MemorySettings(
            user_id=row["user_id"],
            use_summarization=bool(row["use_summarization"]),
            summarization_model=row["summarization_model"],
            summarization_prompt_id=row["summarization_prompt_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def upsert_memory_settings(self, settings: MemorySettings) -> MemorySettings:
        now = utc_now_iso()
        self.db.execute(
            """
            INSERT INTO memory_settings
                (user_id, use_summarization, summarization_model, summarization_prompt_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                use_summarization = excluded.use_summarization,
                summarization_model = excluded.summarization_model,
                summarization_prompt_id = excluded.summarization_prompt_id,
                updated_at = excluded.updated_at
            """,
            (
                settings.user_id,
                int(settings.use_summarization),
                settings.summarization_model,
                settings.summarization_prompt_id,
                settings.created_at or now,
                now,
            ),
        )
        return self.get_memory_settings(settings.user_id)

    # ------------------------------------------------------------------ #
    # Prompts
    # ------------------------------------------------------------------ #

    @staticmethod
    def _row_to_prompt(row: sqlite3.Row) -> SummaryPrompt:
        return SummaryPrompt(
            id=row["id"],
            name=row["name"],
            prompt=row["prompt"],
            model=row["model"],
            temperature=row["temperature"],
            max_tokens=row["max_tokens"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_prompt(self, prompt_id: str) -> Optional[SummaryPrompt]:
        row = self.db.query_one("SELECT * FROM summary_prompts WHERE id = ?", (prompt_id,))
        return self._row_to_prompt(row) if row else None

    def get_active_prompt(self) -> Optional[SummaryPrompt]:
        row = self.db.query_one(
            "SELECT * FROM summary_prompts WHERE is_active = 1 ORDER BY updated_at DESC LIMIT 1"
        )
        return self._row_to_prompt(row) if row else None

    def save_prompt(
        self,
        name: str,
        prompt: str,
        model: str = "gpt-3.5-turbo",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        is_active: bool = False,
        prompt_id: Optional[str] = None,
    ) -> SummaryPrompt:
        """
        Create or replace a prompt. Activating a prompt deactivates all others.
        """
        prompt_id = prompt_id or f"prompt_{uuid.uuid4().hex[:12]}"
        now = utc_now_iso()

        with self.db.transaction() as conn:
            if is_active:
                conn.execute("UPDATE summary_prompts SET is_active = 0, updated_at = ? WHERE is_active = 1", (now,))
            conn.execute(
                """
                INSERT INTO summary_prompts
                    (id, name, prompt, model, temperature, max_tokens, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    prompt = excluded.prompt,
                    model = excluded.model,
                    temperature = excluded.temperature,
                    max_tokens = excluded.max_tokens,
                    is_active = excluded.is_active,
                    updated_at = excluded.updated_at
                """,
                (prompt_id, name, prompt, model, temperature, max_tokens, int(is_active), now, now),
            )

        return self.get_prompt(prompt_id)

    # ------------------------------------------------------------------ #
    # Credentials
    # ------------------------------------------------------------------ #

    def get_api_key(self, user_id: str) -> Optional[str]:
        row = self.db.query_one("SELECT api_key FROM user_credentials WHERE user_id = ?", (user_id,))
        return row["api_key"] if row else None

    def set_api_key(self, user_id: str, api_key: str) -> None:
        self.db.execute(
            """
            INSERT INTO user_credentials (user_id, api_key, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET api_key = excluded.api_key, updated_at = excluded.updated_at
            """,
            (user_id, api_key, utc_now_iso()),
        )
