"""In-memory repository adapters.

Each repository guards its dictionary with a re-entrant lock, so a single
instance can be shared by concurrent request handlers.
"""

from .books_memory import BooksRepoMemory, CopiesRepoMemory
from .events_memory import EventsRepoMemory
from .fines_memory import FinesRepoMemory
from .loans_memory import LoansRepoMemory
from .members_memory import MembersRepoMemory
from .reservations_memory import ReservationsRepoMemory

__all__ = [
    "BooksRepoMemory",
    "CopiesRepoMemory",
    "EventsRepoMemory",
    "FinesRepoMemory",
    "LoansRepoMemory",
    "MembersRepoMemory",
    "ReservationsRepoMemory",
]
