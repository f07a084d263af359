"""SQLite repository adapters.

All adapters accept the same connection and lock; :func:`create_schema`
touches every adapter so their ``CREATE TABLE IF NOT EXISTS`` statements run.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from .books_sqlite import BooksRepoSqlite, CopiesRepoSqlite
from .events_sqlite import EventsRepoSqlite
from .fines_sqlite import FinesRepoSqlite
from .loans_sqlite import LoansRepoSqlite
from .members_sqlite import MembersRepoSqlite
from .reservations_sqlite import ReservationsRepoSqlite


def connect(path: str | Path) -> sqlite3.Connection:
    """Open a connection usable from several request threads."""
    conn = sqlite3.connect(str(path), check_same_thread=False, timeout=5.0)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_schema(conn: sqlite3.Connection, lock: Optional[threading.RLock] = None) -> None:
    lock = lock or threading.RLock()
    BooksRepoSqlite(conn, lock)
    CopiesRepoSqlite(conn, lock)
    MembersRepoSqlite(conn, lock)
    LoansRepoSqlite(conn, lock)
    ReservationsRepoSqlite(conn, lock)
    FinesRepoSqlite(conn, lock)
    EventsRepoSqlite(conn, lock)


__all__ = [
    "BooksRepoSqlite",
    "CopiesRepoSqlite",
    "EventsRepoSqlite",
    "FinesRepoSqlite",
    "LoansRepoSqlite",
    "MembersRepoSqlite",
    "ReservationsRepoSqlite",
    "connect",
    "create_schema",
]
