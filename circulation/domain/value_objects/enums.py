from enum import Enum


class CopyStatus(str, Enum):
    AVAILABLE = "Available"
    LOANED = "Loaned"
    RESERVED = "Reserved"
    LOST = "Lost"
    DAMAGED = "Damaged"
    UNDER_REPAIR = "Under Repair"


class CopyCondition(str, Enum):
    NEW = "New"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class ReturnCondition(str, Enum):
    """Condition declared by staff when a copy comes back over the desk."""

    NEW = "New"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    DAMAGED = "Damaged"
    LOST = "Lost"

    @property
    def returns_to_shelf(self) -> bool:
        return self not in (ReturnCondition.DAMAGED, ReturnCondition.LOST)


class LoanStatus(str, Enum):
    ACTIVE = "Active"
    RETURNED = "Returned"
    OVERDUE = "Overdue"
    LOST = "Lost"


class ReservationStatus(str, Enum):
    PENDING = "Pending"
    FULFILLED = "Fulfilled"
    CANCELLED = "Cancelled"
    EXPIRED = "Expired"


class FineStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    WAIVED = "Waived"


class FineKind(str, Enum):
    OVERDUE = "Overdue"
    LOSS = "Loss"


class MemberStatus(str, Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    SUSPENDED = "Suspended"
    CANCELLED = "Cancelled"


OPEN_LOAN_STATUSES = frozenset({LoanStatus.ACTIVE, LoanStatus.OVERDUE})
