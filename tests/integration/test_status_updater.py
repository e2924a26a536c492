from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from src.sms.application.services.status_updater import StatusUpdater
from src.sms.domain.exceptions import (
    MessageNotFoundError,
    MessageValidationError,
    StatusTransitionError,
)
from src.sms.domain.protocols.change_notifier import ChangeAction
from src.sms.domain.value_objects.delivery_status import CallbackStatus, DeliveryStatus, can_retry_delivery
from src.sms.domain.value_objects.message_status import MessageStatus as S
from tests.conftest import TENANT


async def load(uow_factory, message_id, tenant_id=TENANT):
    async with uow_factory(tenant_id) as uow:
        return await uow.messages.find_by_id(message_id), await uow.deliveries.find_by_message_id(message_id)


async def test_transition_writes_message_and_delivery(status_updater, create_message, uow_factory, notifier):
    message = await create_message()

    result = await status_updater.update_status(TENANT, message.id, S.SENDING)

    assert result.changed and result.previous_status is S.QUEUED
    stored, delivery = await load(uow_factory, message.id)
    assert stored.status is S.SENDING
    assert delivery.status is DeliveryStatus.PENDING
    [event] = notifier.of(ChangeAction.UPDATED)
    assert event.entity_name == "sms_message"
    assert event.before["status"] == "queued"
    assert event.after["status"] == "sending"


async def test_same_status_is_a_no_op(status_updater, create_message, notifier):
    message = await create_message(status=S.SENT)

    result = await status_updater.update_status(TENANT, message.id, "SENT")

    assert result.changed is False
    assert notifier.events == []


async def test_forbidden_transition_leaves_state(status_updater, create_message, uow_factory, notifier):
    message = await create_message(status=S.DELIVERED)

    with pytest.raises(StatusTransitionError) as exc:
        await status_updater.update_status(TENANT, message.id, S.SENDING)

    assert exc.value.current is S.DELIVERED
    stored, delivery = await load(uow_factory, message.id)
    assert stored.status is S.DELIVERED
    assert delivery is None
    assert notifier.events == []


async def test_skipped_states_are_accepted(status_updater, create_message):
    message = await create_message(status=S.QUEUED)
    result = await status_updater.update_status(TENANT, message.id, S.DELIVERED, via_callback=True)
    assert result.delivery.status is DeliveryStatus.DELIVERED
    assert result.delivery.callback_status is CallbackStatus.COMPLETED
    assert result.delivery.latency_ms is not None


async def test_other_tenant_cannot_see_message(status_updater, create_message):
    message = await create_message()
    with pytest.raises(MessageNotFoundError):
        await status_updater.update_status("another-tenant", message.id, S.SENDING)


async def test_validation(status_updater):
    with pytest.raises(MessageValidationError):
        await status_updater.update_status("", uuid4(), S.SENT)
    with pytest.raises(MessageValidationError):
        await status_updater.update_status(TENANT, "not-a-uuid", S.SENT)
    with pytest.raises(MessageValidationError):
        await status_updater.update_status(TENANT, uuid4(), "bogus")
    with pytest.raises(MessageValidationError):
        await status_updater.update_with_error(TENANT, uuid4(), S.FAILED, "")


async def test_external_id_is_bound_once(status_updater, create_message, uow_factory):
    message = await create_message(status=S.SENDING)

    await status_updater.update_with_external_id(TENANT, message.id, S.SENT, "SM1")
    await status_updater.update_with_external_id(TENANT, message.id, S.DELIVERED, "SM2")

    stored, delivery = await load(uow_factory, message.id)
    assert stored.external_id == "SM1"
    assert stored.sent_at is not None
    assert delivery.external_delivery_id == "SM1"


async def test_errors_count_attempts_and_retry_requeues(status_updater, create_message, uow_factory):
    message = await create_message(status=S.SENDING)

    await status_updater.update_with_error(TENANT, message.id, S.FAILED, "30003", "unreachable")
    await status_updater.update_status(TENANT, message.id, S.QUEUED)
    await status_updater.update_status(TENANT, message.id, S.SENDING)
    await status_updater.update_with_error(TENANT, message.id, S.FAILED, "30003", "unreachable")

    stored, delivery = await load(uow_factory, message.id)
    assert stored.status is S.FAILED
    assert stored.retry_count == 1
    assert stored.error_code == "30003"
    assert delivery.attempts == 2
    assert delivery.status is DeliveryStatus.FAILED
    assert delivery.failed_at is not None
    assert can_retry_delivery(delivery.status, delivery.attempts) is True


async def test_progress_clears_error(status_updater, create_message, uow_factory):
    message = await create_message(status=S.SENDING)
    await status_updater.update_with_error(TENANT, message.id, S.FAILED, "E1")
    await status_updater.update_status(TENANT, message.id, S.QUEUED)

    stored, _ = await load(uow_factory, message.id)
    assert stored.error_code is None


async def test_cost_is_recorded(status_updater, create_message, uow_factory):
    message = await create_message(status=S.SENT)
    await status_updater.update_status(
        TENANT, message.id, S.DELIVERED, via_callback=True, cost=Decimal("-0.0075"), cost_unit="USD"
    )
    _, delivery = await load(uow_factory, message.id)
    assert delivery.cost == Decimal("-0.0075")
    assert delivery.cost_unit == "USD"


async def test_notifier_failure_does_not_undo_update(uow_factory, create_message):
    from src.sms.application.services.status_updater import StatusUpdater

    class Broken:
        async def emit(self, *args, **kwargs):
            raise RuntimeError("bus down")

    message = await create_message()
    await StatusUpdater(uow_factory, Broken()).update_status(TENANT, message.id, S.SENDING)

    stored, _ = await load(uow_factory, message.id)
    assert stored.status is S.SENDING


async def test_timestamps_follow_the_updater_clock(uow_factory, notifier, create_message):
    at = datetime(2030, 1, 1, 12, 0)
    updater = StatusUpdater(uow_factory, notifier, clock=lambda: at)
    message = await create_message(status=S.SENDING)

    await updater.update_status(TENANT, message.id, S.SENT)

    stored, delivery = await load(uow_factory, message.id)
    assert stored == message
    assert stored.sent_at == at
    assert stored.updated_at == at
    assert delivery.updated_at == at
