"""
Status updater (reconciler).

The single writer of Message and Delivery state. The dispatch worker and the
provider webhooks both report outcomes here; every entry point is
idempotent, so duplicate and out-of-order reports converge on the same
stored state.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from src.shared.infrastructure.observability.logger import get_logger
from src.shared.utils.clock import Clock, utcnow
from src.sms.domain.entities.delivery import Delivery
from src.sms.domain.entities.message import Message
from src.sms.domain.exceptions import (
    MessageNotFoundError,
    MessageValidationError,
    StatusTransitionError,
)
from src.sms.domain.protocols.change_notifier import ChangeAction, ChangeNotifier
from src.sms.domain.protocols.unit_of_work import UnitOfWorkFactory
from src.sms.domain.services.message_validation import require
from src.sms.domain.value_objects.delivery_status import (
    CallbackStatus,
    DeliveryStatus,
    map_message_to_delivery_status,
)
from src.sms.domain.value_objects.message_status import (
    FAILURE_STATUSES,
    MessageStatus,
    can_advance,
    is_retryable_failure,
)

logger = get_logger(__name__)

MESSAGE_ENTITY = "sms_message"


@dataclass(frozen=True, slots=True)
class StatusUpdateResult:
    message: Message
    previous_status: MessageStatus
    changed: bool
    delivery: Optional[Delivery] = None


@dataclass(frozen=True, slots=True)
class _ErrorInfo:
    code: str
    message: Optional[str]


class StatusUpdater:
    """
    Applies status changes to a message and its delivery record.

    Algorithm shared by all entry points:
        1. Validate inputs.
        2. Load the message within the tenant (MessageNotFoundError if absent).
        3. Same status as stored: return without writing or notifying.
        4. Check the state machine (StatusTransitionError if not allowed).
        5. Write the message, then load-or-create its delivery, in one
           transaction.
        6. After commit, emit an UPDATED change notification.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifier: ChangeNotifier,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._notifier = notifier
        self._clock = clock

    async def update_status(
        self,
        tenant_id: str,
        message_id: Union[UUID, str],
        new_status: Union[MessageStatus, str],
        *,
        via_callback: bool = False,
        cost: Optional[Decimal] = None,
        cost_unit: Optional[str] = None,
    ) -> StatusUpdateResult:
        """
        Move a message to ``new_status``.

        Raises:
            MessageValidationError: Missing tenant/message id or unknown status
            MessageNotFoundError: Message does not exist in the tenant
            StatusTransitionError: The state machine forbids the change
        """
        return await self._apply(
            tenant_id,
            message_id,
            new_status,
            via_callback=via_callback,
            cost=cost,
            cost_unit=cost_unit,
        )

    async def update_with_external_id(
        self,
        tenant_id: str,
        message_id: Union[UUID, str],
        new_status: Union[MessageStatus, str],
        external_id: str,
        *,
        via_callback: bool = False,
    ) -> StatusUpdateResult:
        """Move a message and bind the provider id (first binding wins)."""
        require(external_id, "external_id")
        return await self._apply(
            tenant_id,
            message_id,
            new_status,
            external_id=external_id,
            via_callback=via_callback,
        )

    async def update_with_error(
        self,
        tenant_id: str,
        message_id: Union[UUID, str],
        new_status: Union[MessageStatus, str],
        error_code: str,
        error_message: Optional[str] = None,
        *,
        via_callback: bool = False,
        cost: Optional[Decimal] = None,
        cost_unit: Optional[str] = None,
    ) -> StatusUpdateResult:
        """Move a message to a failure status, recording the error and counting the attempt."""
        require(error_code, "error_code")
        return await self._apply(
            tenant_id,
            message_id,
            new_status,
            error=_ErrorInfo(code=error_code, message=error_message),
            via_callback=via_callback,
            cost=cost,
            cost_unit=cost_unit,
        )

    async def _apply(
        self,
        tenant_id: str,
        message_id: Union[UUID, str],
        new_status: Union[MessageStatus, str],
        *,
        external_id: Optional[str] = None,
        error: Optional[_ErrorInfo] = None,
        via_callback: bool = False,
        cost: Optional[Decimal] = None,
        cost_unit: Optional[str] = None,
    ) -> StatusUpdateResult:
        tenant_id = require(tenant_id, "tenant_id")
        message_uuid = _coerce_message_id(message_id)
        status = _coerce_status(new_status)

        async with self._uow_factory(tenant_id) as uow:
            message = await uow.messages.find_by_id(message_uuid)
            if message is None:
                raise MessageNotFoundError(tenant_id=tenant_id, message_id=message_uuid)

            previous = message.status
            if previous == status:
                logger.debug(
                    "Status unchanged, skipping update",
                    tenant_id=tenant_id,
                    message_id=str(message_uuid),
                    status=status.value,
                )
                return StatusUpdateResult(message=message, previous_status=previous, changed=False)

            if not can_advance(previous, status):
                logger.warning(
                    "Rejected status transition",
                    tenant_id=tenant_id,
                    message_id=str(message_uuid),
                    current_status=previous.value,
                    requested_status=status.value,
                )
                raise StatusTransitionError(message_uuid, previous, status)

            before = message.to_dict()
            now = self._clock()
            self._write_message(message, status, previous, external_id, error, now)
            message = await uow.messages.update(message)

            delivery = await uow.deliveries.find_by_message_id(message.id)
            if delivery is None:
                delivery = Delivery(tenant_id=tenant_id, message_id=message.id)
                self._write_delivery(delivery, message, error, via_callback, cost, cost_unit, now)
                delivery = await uow.deliveries.create(delivery)
            else:
                self._write_delivery(delivery, message, error, via_callback, cost, cost_unit, now)
                delivery = await uow.deliveries.update(delivery)

            await uow.commit()

        logger.info(
            "Message status updated",
            tenant_id=tenant_id,
            message_id=str(message.id),
            previous_status=previous.value,
            status=status.value,
            delivery_status=delivery.status.value,
            attempts=delivery.attempts,
        )
        await self._notify(message, before)
        return StatusUpdateResult(message=message, previous_status=previous, changed=True, delivery=delivery)

    @staticmethod
    def _write_message(
        message: Message,
        status: MessageStatus,
        previous: MessageStatus,
        external_id: Optional[str],
        error: Optional[_ErrorInfo],
        now,
    ) -> None:
        message.status = status

        if external_id:
            if message.external_id is None:
                message.external_id = external_id
            elif message.external_id != external_id:
                logger.warning(
                    "Ignoring second provider id for message",
                    message_id=str(message.id),
                    bound_external_id=message.external_id,
                    offered_external_id=external_id,
                )

        if error is not None:
            message.error_code = error.code
            message.error_message = error.message
        elif status not in FAILURE_STATUSES:
            message.error_code = None
            message.error_message = None

        if status is MessageStatus.QUEUED and is_retryable_failure(previous):
            message.retry_count += 1
        if status is MessageStatus.SENT and message.sent_at is None:
            message.sent_at = now
        message.touch(now)

    @staticmethod
    def _write_delivery(
        delivery: Delivery,
        message: Message,
        error: Optional[_ErrorInfo],
        via_callback: bool,
        cost: Optional[Decimal],
        cost_unit: Optional[str],
        now,
    ) -> None:
        delivery.status = map_message_to_delivery_status(message.status)
        delivery.external_delivery_id = message.external_id

        if error is not None:
            delivery.attempts += 1
            delivery.error_code = error.code
            delivery.error_message = error.message

        if delivery.status is DeliveryStatus.DELIVERED and delivery.delivered_at is None:
            delivery.delivered_at = now
            delivery.latency_ms = max(0, int((now - message.created_at).total_seconds() * 1000))
        if delivery.status is DeliveryStatus.FAILED:
            delivery.failed_at = now

        if via_callback:
            delivery.callback_status = CallbackStatus.COMPLETED
        if cost is not None:
            delivery.cost = cost
            delivery.cost_unit = cost_unit
        delivery.touch(now)

    async def _notify(self, message: Message, before: dict) -> None:
        try:
            await self._notifier.emit(
                MESSAGE_ENTITY,
                ChangeAction.UPDATED,
                tenant_id=message.tenant_id,
                record_id=str(message.id),
                before=before,
                after=message.to_dict(),
            )
        except Exception:
            # Notifications are best effort; the status change is already committed.
            logger.exception("Change notifier raised", message_id=str(message.id))


def _coerce_message_id(message_id: Union[UUID, str]) -> UUID:
    if isinstance(message_id, UUID):
        return message_id
    require(message_id, "message_id")
    try:
        return UUID(str(message_id))
    except ValueError as e:
        raise MessageValidationError(
            "message_id must be a UUID", details={"field": "message_id", "value": message_id}
        ) from e


def _coerce_status(status: Union[MessageStatus, str]) -> MessageStatus:
    if isinstance(status, MessageStatus):
        return status
    require(status, "status")
    try:
        return MessageStatus(str(status).lower())
    except ValueError as e:
        raise MessageValidationError(
            f"Unknown message status: {status}", details={"field": "status", "value": status}
        ) from e
