"""
Unit of Work Interface (Protocol)
Manages transactions and coordinates repository operations
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IUnitOfWork(Protocol):
    """
    Unit of Work interface for transaction management.

    Coordinates multiple repository operations within a single transaction.
    All writes must occur within a UoW context to ensure atomicity.

    Usage:
        async with uow:
            message = await uow.messages.find_by_id(message_id)
            ...
            await uow.messages.update(message)
            await uow.commit()
    """

    async def __aenter__(self) -> IUnitOfWork:
        ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Roll back if an exception occurred or the transaction was not committed."""
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
