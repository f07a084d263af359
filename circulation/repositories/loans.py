from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from circulation.domain.entities import Loan


class LoansRepo(ABC):
    """Repository interface for loans."""

    @abstractmethod
    def get_by_id(self, loan_id: int) -> Optional[Loan]:
        """Return a loan by identifier if present."""

    @abstractmethod
    def insert(self, loan: Loan) -> int:
        """Persist a new loan and return the identifier."""

    @abstractmethod
    def update(self, loan: Loan) -> None:
        """Update an existing loan."""

    @abstractmethod
    def find_open_by_copy(self, copy_id: int) -> Optional[Loan]:
        """Return the Active/Overdue loan for a copy, if any."""

    @abstractmethod
    def list_by_member(self, member_id: int) -> list[Loan]:
        """List every loan of a member, oldest first."""

    @abstractmethod
    def list_open(self) -> list[Loan]:
        """List all Active/Overdue loans."""
