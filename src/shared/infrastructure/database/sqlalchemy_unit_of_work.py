"""
SQLAlchemy Implementation of Unit of Work
Manages database transactions with async SQLAlchemy sessions
"""
from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.infrastructure.observability.logger import get_logger

logger = get_logger(__name__)


class SQLAlchemyUnitOfWork:
    """
    SQLAlchemy-based Unit of Work implementation.

    Opens a session per context, so one instance may be entered repeatedly
    (sequentially). Everything done inside the context is atomic.

    Subclasses attach repositories in ``_bind_repositories``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self._committed = False

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of its async context")
        return self._session

    def _bind_repositories(self, session: AsyncSession) -> None:
        """Hook for subclasses to build session-bound repositories."""

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        self._session = self._session_factory()
        self._committed = False
        await self._session.begin()
        self._bind_repositories(self._session)
        logger.debug("UnitOfWork transaction started")
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """
        Exit async context manager.

        Rolls back if an exception occurred or the work was not committed,
        then closes the session.
        """
        try:
            if exc_type is not None:
                await self.rollback()
                logger.debug("UnitOfWork rolled back due to exception", exception=str(exc_val))
            elif not self._committed:
                await self.rollback()
                logger.debug("UnitOfWork rolled back (not committed)")
        finally:
            await self.session.close()
            self._session = None

    async def commit(self) -> None:
        """
        Commit the current transaction.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If commit fails (after rollback)
        """
        try:
            await self.session.commit()
            self._committed = True
            logger.debug("UnitOfWork transaction committed")
        except Exception as e:
            await self.rollback()
            logger.error("UnitOfWork commit failed", error=str(e))
            raise

    async def rollback(self) -> None:
        await self.session.rollback()
        self._committed = False
        logger.debug("UnitOfWork transaction rolled back")
