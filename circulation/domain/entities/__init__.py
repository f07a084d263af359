from .book import Book, BookCopy
from .event import Event, EventAttendance
from .fine import Fine
from .loan import Loan
from .member import Member
from .reservation import Reservation

__all__ = [
    "Book",
    "BookCopy",
    "Event",
    "EventAttendance",
    "Fine",
    "Loan",
    "Member",
    "Reservation",
]
