"""
SQLite database handle shared by the summary, event, settings and message stores.

One file-backed connection per process, WAL mode, statements serialized
through a re-entrant lock so stores can be used from worker threads.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Sequence

from thread_memory.summary.errors import StoreUnavailable


class SqliteDatabase:
    """
    File-backed SQLite connection with explicit transactions.

    Thread-safe with WAL mode and IMMEDIATE transactions.
    """

    def __init__(self, db_path: Path, timeout: float = 10.0):
        """
        Open (and create if needed) the database at the given path.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait on a locked database
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,  # Allow multi-threaded access
                timeout=timeout,
                isolation_level=None,  # transactions are managed explicitly
            )
            self._conn.row_factory = sqlite3.Row

            # Enable WAL mode for better concurrency
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error as e:
            raise StoreUnavailable(f"cannot open {self.db_path}: {e}") from e

        self._lock = threading.RLock()
        self._in_transaction = False

    def ensure_schema(self, statements: Iterable[str]) -> None:
        """Run idempotent CREATE statements."""
        with self.transaction() as conn:
            for statement in statements:
                conn.execute(statement)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block atomically.

        Nested use joins the outer transaction. sqlite3 errors are rolled
        back and re-raised as StoreUnavailable; other exceptions are rolled
        back and propagated unchanged.
        """
        with self._lock:
            if self._in_transaction:
                yield self._conn
                return

            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreUnavailable(str(e)) from e

            self._in_transaction = True
            try:
                yield self._conn
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback()
                raise StoreUnavailable(str(e)) from e
            except BaseException:
                self._rollback()
                raise
            finally:
                self._in_transaction = False

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error:
            # Already rolled back by SQLite on a fatal error
            pass

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        """Run a read statement and return all rows."""
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreUnavailable(str(e)) from e

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a single write statement in its own transaction; return rowcount."""
        with self.transaction() as conn:
            return conn.execute(sql, params).rowcount

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
