from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from circulation.domain.entities import Member


class MembersRepo(ABC):
    """Repository interface for library members."""

    @abstractmethod
    def get_by_id(self, member_id: int) -> Optional[Member]:
        """Return a member by identifier if present."""

    @abstractmethod
    def insert(self, member: Member) -> int:
        """Persist a new member and return the identifier."""

    @abstractmethod
    def update(self, member: Member) -> None:
        """Update profile and status fields; ``total_borrowed`` is left untouched."""

    @abstractmethod
    def increment_borrowed(self, member_id: int) -> None:
        """Atomically add one to ``total_borrowed``."""

    @abstractmethod
    def list_all(self, *, limit: int = 100, offset: int = 0) -> list[Member]:
        """List members with pagination."""
