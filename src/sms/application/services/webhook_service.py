"""
Webhook Service
Turns provider delivery-status callbacks into status updates.
"""
from __future__ import annotations

from src.shared.infrastructure.observability.logger import get_logger
from src.sms.application.services.status_updater import StatusUpdater
from src.sms.domain.exceptions import (
    MessageNotFoundError,
    MessageValidationError,
    StatusTransitionError,
)
from src.sms.domain.protocols.unit_of_work import UnitOfWorkFactory
from src.sms.domain.services.message_validation import require
from src.sms.domain.value_objects.message_status import FAILURE_STATUSES
from src.sms.domain.value_objects.webhook_payload import (
    PROCESSABLE_DELIVERY_STATUSES,
    PROVIDER_TO_MESSAGE_STATUS,
    CallbackOutcome,
    DeliveryStatusCallback,
    ProviderMessageStatus,
)

logger = get_logger(__name__)


class WebhookService:
    """
    Reconciles provider callbacks with stored messages.

    Callbacks are correlated by provider id within the tenant. Duplicate
    callbacks are absorbed by the status updater's idempotency; callbacks
    that arrive after the message has moved past them are acknowledged as
    stale.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, status_updater: StatusUpdater) -> None:
        self._uow_factory = uow_factory
        self._status_updater = status_updater

    async def process_delivery_status(self, callback: DeliveryStatusCallback) -> CallbackOutcome:
        """
        Apply one delivery-status callback.

        Returns:
            What happened to the callback

        Raises:
            MessageValidationError: Missing ids or an unknown status string
            MessageNotFoundError: No message with this provider id in the tenant
        """
        require(callback.tenant_id, "tenant_id")
        require(callback.external_id, "MessageSid")
        raw_status = require(callback.status, "MessageStatus").strip().lower()
        try:
            provider_status = ProviderMessageStatus(raw_status)
        except ValueError as e:
            raise MessageValidationError(
                f"Unknown provider status: {callback.status}",
                details={"field": "MessageStatus", "value": callback.status},
            ) from e

        if provider_status is ProviderMessageStatus.RECEIVED:
            logger.warning(
                "Inbound status posted to delivery-status endpoint",
                tenant_id=callback.tenant_id,
                external_id=callback.external_id,
            )
            return CallbackOutcome.IGNORED

        if provider_status not in PROCESSABLE_DELIVERY_STATUSES:
            logger.debug(
                "Non-terminal provider status ignored",
                tenant_id=callback.tenant_id,
                external_id=callback.external_id,
                status=provider_status.value,
            )
            return CallbackOutcome.IGNORED

        async with self._uow_factory(callback.tenant_id) as uow:
            message = await uow.messages.find_by_external_id(callback.external_id)
        if message is None:
            logger.warning(
                "Delivery callback for unknown message",
                tenant_id=callback.tenant_id,
                external_id=callback.external_id,
            )
            raise MessageNotFoundError(tenant_id=callback.tenant_id, external_id=callback.external_id)

        target = PROVIDER_TO_MESSAGE_STATUS[provider_status]
        try:
            if callback.error_code and target in FAILURE_STATUSES:
                result = await self._status_updater.update_with_error(
                    callback.tenant_id,
                    message.id,
                    target,
                    callback.error_code,
                    callback.error_message,
                    via_callback=True,
                    cost=callback.price,
                    cost_unit=callback.price_unit,
                )
            else:
                result = await self._status_updater.update_status(
                    callback.tenant_id,
                    message.id,
                    target,
                    via_callback=True,
                    cost=callback.price,
                    cost_unit=callback.price_unit,
                )
        except StatusTransitionError as e:
            logger.info(
                "Stale delivery callback acknowledged",
                tenant_id=callback.tenant_id,
                external_id=callback.external_id,
                current_status=e.current.value,
                reported_status=target.value,
            )
            return CallbackOutcome.STALE

        return CallbackOutcome.APPLIED if result.changed else CallbackOutcome.DUPLICATE
