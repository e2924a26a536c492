"""Tenant-scoped SQLAlchemy unit of work for the SMS context."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.infrastructure.database.sqlalchemy_unit_of_work import SQLAlchemyUnitOfWork
from src.sms.infrastructure.persistence.repositories import (
    SqlAlchemyDeliveryRepository,
    SqlAlchemyMessageRepository,
)


class SqlAlchemySmsUnitOfWork(SQLAlchemyUnitOfWork):
    """
    Usage:
        async with SqlAlchemySmsUnitOfWork(session_factory, tenant_id) as uow:
            message = await uow.messages.find_by_id(message_id)
            ...
            await uow.commit()
    """

    messages: SqlAlchemyMessageRepository
    deliveries: SqlAlchemyDeliveryRepository

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], tenant_id: str) -> None:
        super().__init__(session_factory)
        self.tenant_id = tenant_id

    def _bind_repositories(self, session: AsyncSession) -> None:
        self.messages = SqlAlchemyMessageRepository(session, self.tenant_id)
        self.deliveries = SqlAlchemyDeliveryRepository(session, self.tenant_id)


def sms_unit_of_work_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Return a ``tenant_id -> unit of work`` callable bound to ``session_factory``."""

    def factory(tenant_id: str) -> SqlAlchemySmsUnitOfWork:
        return SqlAlchemySmsUnitOfWork(session_factory, tenant_id)

    return factory
