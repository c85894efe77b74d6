"""
CLI utility for inspecting and administering thread summaries.

Usage:
    python scripts/memory_inspect.py --list
    python scripts/memory_inspect.py --thread thread_abc
    python scripts/memory_inspect.py --thread thread_abc --events --event-type error
    python scripts/memory_inspect.py --enable user_1 --api-key sk-...
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from thread_memory.config.settings import Settings
from thread_memory.persist import EventLog, MemorySettingsStore, SqliteDatabase, SummaryStore
from thread_memory.summary.context import summary_context


def list_threads(summaries: SummaryStore, limit: int) -> int:
    """Print summarized threads, most recently updated first."""
    thread_ids = summaries.list_threads(limit=limit)
    if not thread_ids:
        print("No summaries yet")
        return 0

    print(f"{'Thread':<36} {'Version':>8} {'Facts':>6} {'Decisions':>10} {'Last message':>24}")
    print("=" * 88)
    for thread_id in thread_ids:
        summary = summaries.get(thread_id)
        stats = summary.stats()
        print(
            f"{thread_id:<36} {stats['version']:>8} {stats['facts_count']:>6} "
            f"{stats['decisions_count']:>10} {summary.last_message_id or '-':>24}"
        )
    return 0


def show_thread(summaries: SummaryStore, thread_id: str, core_text_limit: int) -> int:
    """Print the full summary and its context text."""
    summary = summaries.get(thread_id)
    if summary is None:
        print(f"❌ No summary for thread: {thread_id}")
        return 1

    print(f"📊 Summary for {thread_id} (version {summary.version})\n")
    print(json.dumps(summary.model_dump(), indent=2, ensure_ascii=False))
    print("\nContext:")
    print(summary_context(summary, core_text_limit))
    return 0


def show_events(events: EventLog, thread_id: str, event_type: str, limit: int) -> int:
    """Print the audit trail for a thread."""
    rows = events.list_for_thread(thread_id, limit=limit, event_type=event_type)
    if not rows:
        print(f"No events for thread: {thread_id}")
        return 0

    for event in rows:
        versions = f"{event.from_version} -> {event.to_version}"
        print(f"{event.created_at}  {event.event_type:<10} {versions:<12} {json.dumps(event.details)}")
    return 0


def enable_user(settings_store: MemorySettingsStore, user_id: str, api_key: str) -> int:
    """Turn summarization on for a user (and optionally store their API key)."""
    current = settings_store.get_memory_settings(user_id)
    settings_store.upsert_memory_settings(current.model_copy(update={"use_summarization": True}))
    if api_key:
        settings_store.set_api_key(user_id, api_key)
    print(f"✅ Summarization enabled for {user_id}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Inspect thread summaries and their audit events"
    )

    parser.add_argument("--db", type=str, default=None, help="SQLite database path")
    parser.add_argument("--list", action="store_true", help="List summarized threads")
    parser.add_argument("--thread", type=str, help="Thread to show")
    parser.add_argument("--events", action="store_true", help="Show the thread's events instead of its summary")
    parser.add_argument(
        "--event-type",
        choices=["created", "updated", "error", "reconcile"],
        default=None,
        help="Filter events by type",
    )
    parser.add_argument("--limit", type=int, default=50, help="Max rows to print")
    parser.add_argument("--enable", type=str, metavar="USER_ID", help="Enable summarization for a user")
    parser.add_argument("--api-key", type=str, default=None, help="API key to store with --enable")

    args = parser.parse_args()

    settings = Settings.from_env()
    db_path = Path(args.db or settings.store.db_path)
    if not db_path.exists() and not args.enable:
        print(f"❌ Database not found: {db_path}")
        return 1

    with SqliteDatabase(db_path, timeout=settings.store.busy_timeout) as db:
        if args.enable:
            return enable_user(MemorySettingsStore(db), args.enable, args.api_key)
        if args.list:
            return list_threads(SummaryStore(db), args.limit)
        if args.thread and args.events:
            return show_events(EventLog(db), args.thread, args.event_type, args.limit)
        if args.thread:
            return show_thread(SummaryStore(db), args.thread, settings.engine.core_text_limit)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
