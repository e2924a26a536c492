import pytest
from sqlalchemy import func, select

from src.sms.application.commands.process_inbound_command import ProcessInboundCommand
from src.sms.application.commands.send_message_command import SendMessageCommand
from src.sms.application.services.rate_limiter import SmsRateLimiter
from src.sms.application.services.sms_service import SmsService
from src.sms.domain.exceptions import (
    DispatchEnqueueError,
    MessageNotFoundError,
    MessageValidationError,
    RateLimitExceededError,
    StatusTransitionError,
)
from src.sms.domain.protocols.change_notifier import ChangeAction
from src.sms.domain.value_objects.dispatch import SEND_SMS_JOB, MessagePriority, ProviderConfig
from src.sms.domain.value_objects.message_status import MessageChannel, MessageDirection, MessageStatus as S
from src.sms.infrastructure.persistence.models import DispatchJobModel, MessageModel
from src.sms.infrastructure.queue.outbox_queue import OutboxDispatchQueue
from tests.conftest import TENANT


class BrokenQueue:
    async def enqueue(self, job_name, payload, options):
        raise ConnectionError("queue down")


def send(**overrides) -> SendMessageCommand:
    fields = dict(tenant_id=TENANT, from_number="+15550001111", to_number="+15550002222", content="hello")
    fields.update(overrides)
    return SendMessageCommand(**fields)


@pytest.fixture
def queue(database):
    return OutboxDispatchQueue(database.session_factory)


@pytest.fixture
def make_service(uow_factory, counter_store, calculator, notifier, status_updater, queue):
    def _make(dispatch_queue=None) -> SmsService:
        return SmsService(
            uow_factory=uow_factory,
            rate_limiter=SmsRateLimiter(counter_store, calculator),
            queue=dispatch_queue or queue,
            notifier=notifier,
            status_updater=status_updater,
            default_provider_config=ProviderConfig(provider="dry-run", account_id="AC1"),
        )

    return _make


async def count(database, model) -> int:
    async with database.session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def test_send_persists_and_enqueues(make_service, queue, notifier):
    result = await make_service().send_message(send(priority=MessagePriority.HIGH))

    assert result.status is S.QUEUED
    assert result.rate_limit.allowed
    job = await queue.get_job(result.job_id)
    assert job.job_name == SEND_SMS_JOB
    assert job.priority == 7
    assert job.max_attempts == 3
    assert job.payload["message_id"] == str(result.message_id)
    assert job.payload["message"]["to"] == "+15550002222"
    assert job.payload["provider_config"]["account_id"] == "AC1"
    [created] = notifier.of(ChangeAction.CREATED)
    assert created.record_id == str(result.message_id)
    assert created.after["status"] == "queued"


async def test_media_goes_out_as_mms(make_service, queue):
    result = await make_service().send_message(
        send(content="", media_urls=("https://cdn.example.com/a.png",))
    )
    job = await queue.get_job(result.job_id)
    assert job.payload["message"]["channel"] == MessageChannel.MMS.value


async def test_invalid_message_is_rejected_before_quota(make_service, counter_store):
    with pytest.raises(MessageValidationError):
        await make_service().send_message(send(to_number="5550002222"))
    assert await counter_store.keys("*") == []


async def test_rate_limited_send_persists_nothing(make_service, database):
    service = make_service()
    for _ in range(5):
        await service.send_message(send())

    with pytest.raises(RateLimitExceededError) as exc:
        await service.send_message(send())

    assert exc.value.retry_after == 15
    assert exc.value.details["window"] == "minute"
    assert await count(database, MessageModel) == 5
    assert await count(database, DispatchJobModel) == 5


async def test_enqueue_failure_keeps_queued_message(make_service, uow_factory):
    with pytest.raises(DispatchEnqueueError) as exc:
        await make_service(BrokenQueue()).send_message(send())

    async with uow_factory(TENANT) as uow:
        stored = await uow.messages.find_by_id(exc.value.message_id)
    assert stored.status is S.QUEUED


async def test_inbound_is_stored_once(make_service, uow_factory, notifier):
    service = make_service()
    command = ProcessInboundCommand(
        tenant_id=TENANT,
        external_id="SMinbound1",
        from_number="+15550002222",
        to_number="+15550001111",
        content="STOP",
    )

    first = await service.process_inbound(command)
    second = await service.process_inbound(command)

    assert (first.duplicate, second.duplicate) == (False, True)
    assert first.message_id == second.message_id
    assert len(notifier.of(ChangeAction.CREATED)) == 1
    async with uow_factory(TENANT) as uow:
        stored = await uow.messages.find_by_external_id("SMinbound1")
    assert stored.direction is MessageDirection.INBOUND
    assert stored.status is S.DELIVERED


async def test_inbound_ids_are_scoped_per_tenant(make_service):
    service = make_service()
    base = dict(external_id="SMshared", from_number="+15550002222", to_number="+15550001111", content="hi")
    a = await service.process_inbound(ProcessInboundCommand(tenant_id="tenant-a", **base))
    b = await service.process_inbound(ProcessInboundCommand(tenant_id="tenant-b", **base))
    assert not a.duplicate and not b.duplicate
    assert a.message_id != b.message_id


async def test_inbound_requires_provider_id(make_service):
    with pytest.raises(MessageValidationError):
        await make_service().process_inbound(
            ProcessInboundCommand(tenant_id=TENANT, external_id="", from_number="+1555", to_number="+1555", content="x")
        )


async def test_cancel_before_dispatch_only(make_service, create_message):
    service = make_service()
    queued = await create_message(status=S.QUEUED)
    sent = await create_message(status=S.SENT)

    result = await service.cancel_message(TENANT, queued.id)
    assert result.message.status is S.CANCELED

    with pytest.raises(StatusTransitionError):
        await service.cancel_message(TENANT, sent.id)


async def test_get_message(make_service, create_message):
    service = make_service()
    message = await create_message()

    found, delivery = await service.get_message(TENANT, message.id)
    assert found.id == message.id
    assert delivery is None

    with pytest.raises(MessageNotFoundError):
        await service.get_message("another-tenant", message.id)


async def test_metadata_is_persisted_with_the_message(make_service, database, status_updater):
    service = make_service()
    metadata = {"campaign": "spring", "tags": ["a", "b"], "attempt": 1}
    result = await service.send_message(send(metadata=metadata))

    async with database.session_factory() as session:
        row = await session.get(MessageModel, result.message_id)
    assert row.metadata_ == metadata

    await status_updater.update_status(TENANT, result.message_id, S.SENDING)
    message, _ = await service.get_message(TENANT, result.message_id)
    assert message.metadata == metadata
    assert message.to_dict()["metadata"] == metadata

    plain = await service.send_message(send())
    message, _ = await service.get_message(TENANT, plain.message_id)
    assert message.metadata == {}
