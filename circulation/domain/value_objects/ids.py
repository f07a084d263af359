from typing import NewType

BookId = NewType("BookId", int)
CopyId = NewType("CopyId", int)
MemberId = NewType("MemberId", int)
StaffId = NewType("StaffId", int)
LoanId = NewType("LoanId", int)
ReservationId = NewType("ReservationId", int)
FineId = NewType("FineId", int)
EventId = NewType("EventId", int)
