from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from circulation.domain.entities import Fine


class FinesRepo(ABC):
    """Repository interface for fines."""

    @abstractmethod
    def get_by_id(self, fine_id: int) -> Optional[Fine]:
        """Return a fine by identifier if present."""

    @abstractmethod
    def insert(self, fine: Fine) -> int:
        """Persist a new fine and return the identifier."""

    @abstractmethod
    def update(self, fine: Fine) -> None:
        """Update an existing fine."""

    @abstractmethod
    def list_by_loan(self, loan_id: int) -> list[Fine]:
        """List every fine ever issued against a loan, oldest first."""
