"""
Repository protocols for the SMS domain.

Implementations are bound to a single tenant: every lookup and write is
scoped to the tenant the repository was created for.
"""
from __future__ import annotations

from typing import Optional, Protocol
from uuid import UUID

from src.sms.domain.entities.delivery import Delivery
from src.sms.domain.entities.message import Message


class MessageRepository(Protocol):
    tenant_id: str

    async def create(self, message: Message) -> Message:
        ...

    async def find_by_id(self, message_id: UUID) -> Optional[Message]:
        ...

    async def find_by_external_id(self, external_id: str) -> Optional[Message]:
        ...

    async def update(self, message: Message) -> Message:
        """Persist the mutable fields of an existing message."""
        ...


class DeliveryRepository(Protocol):
    tenant_id: str

    async def create(self, delivery: Delivery) -> Delivery:
        ...

    async def find_by_message_id(self, message_id: UUID) -> Optional[Delivery]:
        ...

    async def update(self, delivery: Delivery) -> Delivery:
        ...
