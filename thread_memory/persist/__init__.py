"""
Persistence layer for thread memory.

Provides:
- Shared SQLite database handle with explicit transactions
- Versioned summary store with conditional writes
- Append-only summary event log
- Memory settings, prompts and credentials
- Threads and messages
"""

from .sqlite_store import SqliteDatabase
from .summary_store import SummaryStore
from .event_log import EventLog
from .settings_store import MemorySettingsStore
from .message_store import MessageStore

__all__ = [
    "SqliteDatabase",
    "SummaryStore",
    "EventLog",
    "MemorySettingsStore",
    "MessageStore",
]
