"""Wiring of repositories and services.

``build_in_memory`` serves tests and demos, ``build_sqlite`` the CLI.
"""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from typing import Optional

from circulation.application.services.coordinator import CirculationCoordinator
from circulation.application.services.events_service import EventsService
from circulation.application.services.fine_calculator import FineCalculator
from circulation.application.services.ledger import InventoryLedger
from circulation.application.services.loan_manager import LoanManager
from circulation.application.services.reports_service import ReportsService
from circulation.application.services.reservation_queue import ReservationQueue
from circulation.config.policy import Policy
from circulation.infrastructure.clock import Clock, utc_now
from circulation.repositories.books import BooksRepo, CopiesRepo
from circulation.repositories.events import EventsRepo
from circulation.repositories.fines import FinesRepo
from circulation.repositories.loans import LoansRepo
from circulation.repositories.members import MembersRepo
from circulation.repositories.memory import (
    BooksRepoMemory,
    CopiesRepoMemory,
    EventsRepoMemory,
    FinesRepoMemory,
    LoansRepoMemory,
    MembersRepoMemory,
    ReservationsRepoMemory,
)
from circulation.repositories.reservations import ReservationsRepo
from circulation.repositories.sqlite import (
    BooksRepoSqlite,
    CopiesRepoSqlite,
    EventsRepoSqlite,
    FinesRepoSqlite,
    LoansRepoSqlite,
    MembersRepoSqlite,
    ReservationsRepoSqlite,
)


@dataclass
class Container:
    books: BooksRepo
    copies: CopiesRepo
    members: MembersRepo
    loans_repo: LoansRepo
    reservations: ReservationsRepo
    fines_repo: FinesRepo
    events_repo: EventsRepo
    ledger: InventoryLedger
    fines: FineCalculator
    loans: LoanManager
    queue: ReservationQueue
    coordinator: CirculationCoordinator
    reports: ReportsService
    events: EventsService
    conn: Optional[sqlite3.Connection] = None

    def close(self) -> None:
        """Close the SQLite connection behind the repositories, if any."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None


def _assemble(
    books: BooksRepo,
    copies: CopiesRepo,
    members: MembersRepo,
    loans_repo: LoansRepo,
    reservations: ReservationsRepo,
    fines_repo: FinesRepo,
    events_repo: EventsRepo,
    policy: Optional[Policy],
    clock: Optional[Clock],
) -> Container:
    policy = policy or Policy()
    clock = clock or utc_now
    ledger = InventoryLedger(copies)
    fines = FineCalculator(fines_repo, loans_repo, policy, clock=clock)
    loans = LoanManager(loans_repo, members, ledger, fines, reservations, policy, clock=clock)
    queue = ReservationQueue(reservations, ledger, policy, clock=clock)
    return Container(
        books=books,
        copies=copies,
        members=members,
        loans_repo=loans_repo,
        reservations=reservations,
        fines_repo=fines_repo,
        events_repo=events_repo,
        ledger=ledger,
        fines=fines,
        loans=loans,
        queue=queue,
        coordinator=CirculationCoordinator(ledger, loans, queue, fines, clock=clock),
        reports=ReportsService(
            books, members, loans_repo, reservations, events_repo, ledger, fines, clock=clock
        ),
        events=EventsService(events_repo, members, clock=clock),
    )


def build_in_memory(policy: Optional[Policy] = None, clock: Optional[Clock] = None) -> Container:
    return _assemble(
        BooksRepoMemory(),
        CopiesRepoMemory(),
        MembersRepoMemory(),
        LoansRepoMemory(),
        ReservationsRepoMemory(),
        FinesRepoMemory(),
        EventsRepoMemory(),
        policy,
        clock,
    )


def build_sqlite(
    conn: sqlite3.Connection,
    policy: Optional[Policy] = None,
    clock: Optional[Clock] = None,
) -> Container:
    """Wire SQLite adapters sharing one connection and one lock."""
    lock = threading.RLock()
    container = _assemble(
        BooksRepoSqlite(conn, lock),
        CopiesRepoSqlite(conn, lock),
        MembersRepoSqlite(conn, lock),
        LoansRepoSqlite(conn, lock),
        ReservationsRepoSqlite(conn, lock),
        FinesRepoSqlite(conn, lock),
        EventsRepoSqlite(conn, lock),
        policy,
        clock,
    )
    container.conn = conn
    return container
