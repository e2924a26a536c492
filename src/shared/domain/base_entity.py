"""Identity and audit timestamps shared by persisted records."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from src.shared.utils.clock import utcnow


class BaseEntity:
    """Compared by ``id``; timestamps are naive UTC."""

    def __init__(
        self,
        id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> None:
        self.id: UUID = id or uuid4()
        self.created_at: datetime = created_at or utcnow()
        self.updated_at: datetime = updated_at or self.created_at

    def __eq__(self, other: object) -> bool:
        return isinstance(other, self.__class__) and self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def touch(self, at: datetime | None = None) -> None:
        self.updated_at = at or utcnow()
