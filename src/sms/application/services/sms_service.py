"""
SMS application service: outbound send path, inbound intake, cancellation.
"""
from __future__ import annotations

from typing import Optional, Union
from uuid import UUID

from src.shared.infrastructure.observability.logger import get_logger
from src.sms.application.commands.process_inbound_command import InboundResult, ProcessInboundCommand
from src.sms.application.commands.send_message_command import SendMessageCommand, SendMessageResult
from src.sms.application.services.rate_limiter import SmsRateLimiter
from src.sms.application.services.status_updater import (
    MESSAGE_ENTITY,
    StatusUpdater,
    StatusUpdateResult,
)
from src.sms.domain.entities.delivery import Delivery
from src.sms.domain.entities.message import Message
from src.sms.domain.exceptions import (
    DispatchEnqueueError,
    DuplicateMessageError,
    MessageNotFoundError,
    RateLimitExceededError,
)
from src.sms.domain.protocols.change_notifier import ChangeAction, ChangeNotifier
from src.sms.domain.protocols.dispatch_queue import DispatchQueue
from src.sms.domain.protocols.unit_of_work import UnitOfWorkFactory
from src.sms.domain.services.message_validation import (
    SMS_MAX_LENGTH,
    require,
    resolve_channel,
    validate_outbound,
)
from src.sms.domain.value_objects.dispatch import (
    SEND_SMS_JOB,
    BackoffPolicy,
    DispatchJob,
    EnqueueOptions,
    MessageSnapshot,
    ProviderConfig,
)
from src.sms.domain.value_objects.message_status import MessageDirection, MessageStatus
from src.sms.domain.value_objects.rate_limit import MessageType

logger = get_logger(__name__)


class SmsService:
    """
    Orchestrates the send path:

        validate → rate limit → persist QUEUED → notify CREATED → enqueue

    The message row is committed before the job is enqueued, so an enqueue
    failure leaves a QUEUED message behind and is reported as
    ``DispatchEnqueueError`` carrying its id.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        rate_limiter: SmsRateLimiter,
        queue: DispatchQueue,
        notifier: ChangeNotifier,
        status_updater: StatusUpdater,
        default_provider_config: ProviderConfig,
        max_attempts: int = 3,
        backoff: Optional[BackoffPolicy] = None,
        max_length: int = SMS_MAX_LENGTH,
    ) -> None:
        self._uow_factory = uow_factory
        self._rate_limiter = rate_limiter
        self._queue = queue
        self._notifier = notifier
        self._status_updater = status_updater
        self._default_provider_config = default_provider_config
        self._max_attempts = max_attempts
        self._backoff = backoff or BackoffPolicy()
        self._max_length = max_length

    async def send_message(self, command: SendMessageCommand) -> SendMessageResult:
        """
        Accept an outbound message for asynchronous dispatch.

        Raises:
            MessageValidationError: Bad phone numbers, empty or oversized content
            RateLimitExceededError: Tenant quota exhausted (nothing persisted)
            DispatchEnqueueError: Message persisted but the job was not enqueued
        """
        channel = validate_outbound(
            tenant_id=command.tenant_id,
            from_number=command.from_number,
            to_number=command.to_number,
            content=command.content,
            media_urls=command.media_urls,
            max_length=self._max_length,
        )

        limit = await self._rate_limiter.check_and_increment(
            command.tenant_id, MessageType.from_channel(channel)
        )
        if not limit.allowed:
            retry_after = limit.retry_after_seconds(self._rate_limiter.calculator.now())
            raise RateLimitExceededError(limit, retry_after=retry_after)

        message = Message(
            tenant_id=command.tenant_id,
            direction=MessageDirection.OUTBOUND,
            channel=channel,
            from_number=command.from_number,
            to_number=command.to_number,
            content=command.content,
            media_urls=list(command.media_urls),
            metadata=command.metadata,
            status=MessageStatus.QUEUED,
        )
        async with self._uow_factory(command.tenant_id) as uow:
            message = await uow.messages.create(message)
            await uow.commit()

        await self._emit_created(message)

        job = DispatchJob(
            message_id=message.id,
            tenant_id=command.tenant_id,
            provider_config=command.provider_config or self._default_provider_config,
            message=MessageSnapshot(
                to_number=message.to_number,
                from_number=message.from_number,
                content=message.content,
                channel=channel,
                media_urls=tuple(message.media_urls),
            ),
        )
        options = EnqueueOptions(
            priority=command.priority.queue_priority,
            attempts=self._max_attempts,
            backoff=self._backoff,
        )
        try:
            job_id = await self._queue.enqueue(SEND_SMS_JOB, job.to_payload(), options)
        except Exception as e:
            logger.error(
                "Failed to enqueue message for dispatch",
                tenant_id=command.tenant_id,
                message_id=str(message.id),
                error=str(e),
            )
            raise DispatchEnqueueError(message.id, str(e)) from e

        logger.info(
            "Message queued",
            tenant_id=command.tenant_id,
            message_id=str(message.id),
            job_id=str(job_id),
            channel=channel.value,
            priority=command.priority.value,
        )
        return SendMessageResult(
            message_id=message.id,
            status=message.status,
            job_id=job_id,
            rate_limit=limit,
        )

    async def process_inbound(self, command: ProcessInboundCommand) -> InboundResult:
        """
        Store a provider-originated message once per provider id.

        A repeated delivery of the same provider id is a no-op success,
        including when two deliveries race on the unique constraint.
        """
        require(command.tenant_id, "tenant_id")
        require(command.external_id, "external_id")
        require(command.from_number, "from_number")
        require(command.to_number, "to_number")
        if not command.media_urls:
            require(command.content, "content")

        async with self._uow_factory(command.tenant_id) as uow:
            existing = await uow.messages.find_by_external_id(command.external_id)
            if existing is not None:
                logger.info(
                    "Duplicate inbound message ignored",
                    tenant_id=command.tenant_id,
                    external_id=command.external_id,
                    message_id=str(existing.id),
                )
                return InboundResult(message_id=existing.id, duplicate=True)

            message = Message(
                tenant_id=command.tenant_id,
                direction=MessageDirection.INBOUND,
                channel=resolve_channel(command.media_urls),
                from_number=command.from_number,
                to_number=command.to_number,
                content=command.content or "",
                media_urls=list(command.media_urls),
                status=MessageStatus.DELIVERED,
                external_id=command.external_id,
            )
            try:
                message = await uow.messages.create(message)
                await uow.commit()
            except DuplicateMessageError:
                created = None
            else:
                created = message

        if created is None:
            return await self._resolve_duplicate(command)

        logger.info(
            "Inbound message stored",
            tenant_id=command.tenant_id,
            external_id=command.external_id,
            message_id=str(created.id),
        )
        await self._emit_created(created)
        return InboundResult(message_id=created.id, duplicate=False)

    async def cancel_message(self, tenant_id: str, message_id: Union[UUID, str]) -> StatusUpdateResult:
        """Cancel a message that has not been handed to the provider yet."""
        return await self._status_updater.update_status(tenant_id, message_id, MessageStatus.CANCELED)

    async def get_message(self, tenant_id: str, message_id: UUID) -> tuple[Message, Optional[Delivery]]:
        async with self._uow_factory(tenant_id) as uow:
            message = await uow.messages.find_by_id(message_id)
            if message is None:
                raise MessageNotFoundError(tenant_id=tenant_id, message_id=message_id)
            delivery = await uow.deliveries.find_by_message_id(message_id)
        return message, delivery

    async def _resolve_duplicate(self, command: ProcessInboundCommand) -> InboundResult:
        async with self._uow_factory(command.tenant_id) as uow:
            existing = await uow.messages.find_by_external_id(command.external_id)
        if existing is None:
            raise DuplicateMessageError(command.external_id)
        logger.info(
            "Concurrent duplicate inbound message ignored",
            tenant_id=command.tenant_id,
            external_id=command.external_id,
        )
        return InboundResult(message_id=existing.id, duplicate=True)

    async def _emit_created(self, message: Message) -> None:
        try:
            await self._notifier.emit(
                MESSAGE_ENTITY,
                ChangeAction.CREATED,
                tenant_id=message.tenant_id,
                record_id=str(message.id),
                after=message.to_dict(),
            )
        except Exception:
            logger.exception("Change notifier raised", message_id=str(message.id))
