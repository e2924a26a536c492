"""
Database-backed dispatch queue.

Jobs live in ``sms_dispatch_jobs``. Workers claim them with
``FOR UPDATE SKIP LOCKED`` (ignored on SQLite), highest priority first. A
claimed job that is neither completed nor failed before the stale timeout is
handed out again, which makes delivery at-least-once.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.exceptions import StoreUnavailableError
from src.shared.infrastructure.observability.logger import get_logger
from src.shared.utils.clock import Clock, utcnow
from src.sms.domain.value_objects.dispatch import BackoffPolicy, BackoffType, EnqueueOptions
from src.sms.infrastructure.persistence.models import DispatchJobModel, JobState

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class QueuedJob:
    id: UUID
    job_name: str
    tenant_id: Optional[str]
    payload: dict[str, Any]
    priority: int
    status: JobState
    attempts_made: int
    max_attempts: int
    last_error: Optional[str] = None


def _backoff_to_dict(policy: BackoffPolicy) -> dict[str, Any]:
    return {
        "type": policy.type.value,
        "delay_seconds": policy.delay_seconds,
        "multiplier": policy.multiplier,
        "max_delay_seconds": policy.max_delay_seconds,
    }


def _backoff_from_dict(data: dict[str, Any]) -> BackoffPolicy:
    if not data:
        return BackoffPolicy()
    return BackoffPolicy(
        type=BackoffType(data.get("type", BackoffType.EXPONENTIAL.value)),
        delay_seconds=float(data.get("delay_seconds", 1.0)),
        multiplier=float(data.get("multiplier", 2.0)),
        max_delay_seconds=float(data.get("max_delay_seconds", 30.0)),
    )


def _snapshot(model: DispatchJobModel) -> QueuedJob:
    return QueuedJob(
        id=model.id,
        job_name=model.job_name,
        tenant_id=model.tenant_id,
        payload=dict(model.payload),
        priority=model.priority,
        status=model.status,
        attempts_made=model.attempts_made,
        max_attempts=model.max_attempts,
        last_error=model.last_error,
    )


class OutboxDispatchQueue:
    """Service for enqueuing, claiming and settling dispatch jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def enqueue(
        self,
        job_name: str,
        payload: dict[str, Any],
        options: EnqueueOptions,
    ) -> UUID:
        """
        Persist a new pending job.

        Raises:
            StoreUnavailableError: If the job could not be written
        """
        job_id = uuid4()
        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    DispatchJobModel(
                        id=job_id,
                        job_name=job_name,
                        tenant_id=payload.get("tenant_id"),
                        payload=payload,
                        priority=options.priority,
                        status=JobState.PENDING,
                        attempts_made=0,
                        max_attempts=max(1, options.attempts),
                        backoff=_backoff_to_dict(options.backoff),
                        available_at=self._clock(),
                    )
                )
        except SQLAlchemyError as e:
            logger.error("Failed to enqueue job", job_name=job_name, error=str(e))
            raise StoreUnavailableError("Dispatch queue unavailable", details={"job_name": job_name}) from e

        logger.info("Job enqueued", job_id=str(job_id), job_name=job_name, priority=options.priority)
        return job_id

    async def claim(self, limit: int = 10, job_name: Optional[str] = None) -> list[QueuedJob]:
        """Lock up to ``limit`` due jobs, mark them running and return them."""
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            stmt = (
                select(DispatchJobModel)
                .where(
                    DispatchJobModel.status == JobState.PENDING,
                    DispatchJobModel.available_at <= now,
                )
                .order_by(
                    DispatchJobModel.priority.desc(),
                    DispatchJobModel.available_at.asc(),
                    DispatchJobModel.created_at.asc(),
                )
                .limit(limit)
                .with_for_update(skip_locked=True)
            )
            if job_name is not None:
                stmt = stmt.where(DispatchJobModel.job_name == job_name)
            models = list((await session.execute(stmt)).scalars())
            for model in models:
                model.status = JobState.RUNNING
                model.locked_at = now
            claimed = [_snapshot(model) for model in models]
        return claimed

    async def complete(self, job_id: UUID) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(DispatchJobModel)
                .where(DispatchJobModel.id == job_id)
                .values(status=JobState.COMPLETED, locked_at=None, last_error=None, updated_at=self._clock())
            )

    async def fail(self, job_id: UUID, error: str, retryable: bool = True) -> JobState:
        """
        Record a failed attempt.

        The job is rescheduled with backoff while it has attempts left and the
        failure is retryable; otherwise it becomes DEAD.

        Returns:
            The job's new state
        """
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            model = await session.get(DispatchJobModel, job_id, with_for_update=True)
            if model is None:
                raise LookupError(f"Dispatch job {job_id} not found")
            model.attempts_made += 1
            model.last_error = error[:1000]
            model.locked_at = None
            if retryable and model.attempts_made < model.max_attempts:
                delay = _backoff_from_dict(model.backoff).delay_for(model.attempts_made)
                model.status = JobState.PENDING
                model.available_at = now + timedelta(seconds=delay)
            else:
                model.status = JobState.DEAD
            new_state = model.status

        log = logger.warning if new_state is JobState.DEAD else logger.info
        log("Job attempt failed", job_id=str(job_id), state=new_state.value, retryable=retryable, error=error)
        return new_state

    async def release_stale(self, older_than_seconds: float) -> int:
        """Return running jobs whose claim is older than the timeout to the pending pool."""
        cutoff = self._clock() - timedelta(seconds=older_than_seconds)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                update(DispatchJobModel)
                .where(
                    DispatchJobModel.status == JobState.RUNNING,
                    DispatchJobModel.locked_at < cutoff,
                )
                .values(status=JobState.PENDING, locked_at=None)
            )
        released = result.rowcount or 0
        if released:
            logger.warning("Released stale dispatch jobs", count=released)
        return released

    async def get_job(self, job_id: UUID) -> Optional[QueuedJob]:
        async with self._session_factory() as session:
            model = await session.get(DispatchJobModel, job_id)
            return _snapshot(model) if model else None
