"""Tenant-scoped unit of work for message and delivery writes."""
from __future__ import annotations

from typing import Callable, Protocol

from src.shared.infrastructure.database.unit_of_work import IUnitOfWork
from src.sms.domain.protocols.repositories import DeliveryRepository, MessageRepository


class SmsUnitOfWork(IUnitOfWork, Protocol):
    """Message and Delivery repositories sharing one transaction."""
    messages: MessageRepository
    deliveries: DeliveryRepository

    async def __aenter__(self) -> "SmsUnitOfWork":
        ...


# tenant_id -> fresh unit of work
UnitOfWorkFactory = Callable[[str], SmsUnitOfWork]
