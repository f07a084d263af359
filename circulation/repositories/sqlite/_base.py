from __future__ import annotations

import sqlite3
import threading
from datetime import date, datetime
from typing import Any, Optional, Sequence

from circulation.infrastructure.retry import call_with_retries


def _is_transient(exc: BaseException) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def to_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class SqliteRepoBase:
    """Shared connection handling for the SQLite adapters.

    All repositories built on one connection should share one ``lock``: the
    connection is used from several request threads
    (``check_same_thread=False``) and statements must not interleave.
    Locked/busy errors are retried a bounded number of times and then
    surface as :class:`~circulation.infrastructure.retry.RepositoryError`.
    """

    table = ""

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: Optional[threading.RLock] = None,
        *,
        max_retries: int = 3,
    ) -> None:
        self._conn = conn
        self._lock = lock if lock is not None else threading.RLock()
        self._max_retries = max_retries
        with self._lock:
            self._conn.execute("PRAGMA foreign_keys = ON;")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Create the adapter's tables and indexes if they do not exist."""

    def _write(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        def run() -> sqlite3.Cursor:
            with self._lock:
                try:
                    cur = self._conn.execute(sql, tuple(params))
                    self._conn.commit()
                except sqlite3.DatabaseError:
                    self._conn.rollback()
                    raise
                return cur

        return call_with_retries(
            run,
            retry_on=(sqlite3.OperationalError,),
            max_retries=self._max_retries,
            description=f"SQLite write ({self.table})",
            is_transient=_is_transient,
        )

    def _read(self, sql: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]:
        def run() -> list[tuple[Any, ...]]:
            with self._lock:
                return self._conn.execute(sql, tuple(params)).fetchall()

        return call_with_retries(
            run,
            retry_on=(sqlite3.OperationalError,),
            max_retries=self._max_retries,
            description=f"SQLite read ({self.table})",
            is_transient=_is_transient,
        )

    def _insert(self, sql: str, params: Sequence[Any]) -> int:
        cur = self._write(sql, params)
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError(f"SQLite insert failed: no lastrowid (table: {self.table})")
        return int(rowid)

    def _create(self, ddl: str, *indexes: str) -> None:
        with self._lock:
            self._conn.execute(ddl)
            for index in indexes:
                self._conn.execute(index)
            self._conn.commit()
