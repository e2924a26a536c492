from datetime import datetime, timedelta

import pytest

from src.sms.domain.value_objects.dispatch import (
    SEND_SMS_JOB,
    BackoffPolicy,
    EnqueueOptions,
    MessagePriority,
)
from src.sms.infrastructure.persistence.models import JobState
from src.sms.infrastructure.queue.outbox_queue import OutboxDispatchQueue


class StepClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 3, 15, 10, 30, 45)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def step_clock() -> StepClock:
    return StepClock()


@pytest.fixture
def queue(database, step_clock) -> OutboxDispatchQueue:
    return OutboxDispatchQueue(database.session_factory, clock=step_clock)


def options(priority: MessagePriority = MessagePriority.NORMAL, attempts: int = 3) -> EnqueueOptions:
    return EnqueueOptions(priority=priority.queue_priority, attempts=attempts, backoff=BackoffPolicy())


async def test_claims_highest_priority_first(queue):
    low = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1", "n": 1}, options(MessagePriority.LOW))
    critical = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1", "n": 2}, options(MessagePriority.CRITICAL))
    normal = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1", "n": 3}, options())

    claimed = await queue.claim(limit=10)

    assert [job.id for job in claimed] == [critical, normal, low]
    assert all(job.status is JobState.RUNNING for job in claimed)
    assert await queue.claim() == []


async def test_claim_respects_limit_and_job_name(queue):
    await queue.enqueue("other-job", {}, options())
    sms = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1"}, options())

    claimed = await queue.claim(limit=1, job_name=SEND_SMS_JOB)

    assert [job.id for job in claimed] == [sms]
    assert claimed[0].tenant_id == "t1"


async def test_failed_job_waits_for_backoff(queue, step_clock):
    job_id = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1"}, options())
    await queue.claim()

    assert await queue.fail(job_id, "provider down") is JobState.PENDING
    assert await queue.claim() == []

    step_clock.advance(1)
    [job] = await queue.claim()
    assert job.attempts_made == 1
    assert job.last_error == "provider down"

    assert await queue.fail(job_id, "provider down") is JobState.PENDING
    step_clock.advance(1)
    assert await queue.claim() == []
    step_clock.advance(1)
    assert len(await queue.claim()) == 1


async def test_job_dies_after_max_attempts(queue, step_clock):
    job_id = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1"}, options(attempts=2))

    await queue.claim()
    await queue.fail(job_id, "e1")
    step_clock.advance(5)
    await queue.claim()

    assert await queue.fail(job_id, "e2") is JobState.DEAD
    step_clock.advance(60)
    assert await queue.claim() == []
    job = await queue.get_job(job_id)
    assert (job.status, job.attempts_made, job.last_error) == (JobState.DEAD, 2, "e2")


async def test_permanent_failure_is_dead_immediately(queue):
    job_id = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1"}, options())
    await queue.claim()
    assert await queue.fail(job_id, "invalid number", retryable=False) is JobState.DEAD


async def test_complete(queue):
    job_id = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1"}, options())
    await queue.claim()
    await queue.complete(job_id)
    assert (await queue.get_job(job_id)).status is JobState.COMPLETED


async def test_stale_claims_are_released(queue, step_clock):
    job_id = await queue.enqueue(SEND_SMS_JOB, {"tenant_id": "t1"}, options())
    await queue.claim()

    assert await queue.release_stale(300) == 0
    step_clock.advance(301)
    assert await queue.release_stale(300) == 1

    [job] = await queue.claim()
    assert job.id == job_id


async def test_fail_unknown_job(queue):
    from uuid import uuid4

    with pytest.raises(LookupError):
        await queue.fail(uuid4(), "nope")
