"""Handles one ``send-sms`` job: SENDING → provider call → SENT or FAILED."""
from __future__ import annotations

import asyncio
from enum import Enum

from src.shared.infrastructure.observability.logger import bound_context, get_logger
from src.sms.application.services.status_updater import StatusUpdater
from src.sms.domain.exceptions import MessageNotFoundError, ProviderError, StatusTransitionError
from src.sms.domain.protocols.provider_client import ProviderClient
from src.sms.domain.value_objects.dispatch import DispatchJob
from src.sms.domain.value_objects.message_status import MessageStatus
from src.sms.domain.value_objects.provider import (
    ProviderErrorType,
    ProviderFailure,
    ProviderResult,
)

logger = get_logger(__name__)

PROCESSING_ERROR = "PROCESSING_ERROR"
PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"


class DispatchOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class SmsDispatchProcessor:
    """
    Worker-side contract of the dispatch queue.

    Every attempt ends in exactly one outcome report to the status updater.
    Retryable failures are re-raised so the queue applies its backoff;
    permanent ones are recorded and returned as ``DispatchOutcome.FAILED``.
    """

    def __init__(
        self,
        provider: ProviderClient,
        status_updater: StatusUpdater,
        provider_timeout_seconds: float = 10.0,
    ) -> None:
        self._provider = provider
        self._status_updater = status_updater
        self._timeout = provider_timeout_seconds

    async def handle(self, job: DispatchJob) -> DispatchOutcome:
        with bound_context(
            tenant_id=job.tenant_id,
            message_id=str(job.message_id),
            retry_attempt=job.retry_attempt,
        ):
            if not await self._mark_sending(job):
                return DispatchOutcome.SKIPPED

            try:
                result = await asyncio.wait_for(
                    self._provider.send(job.message, job.provider_config),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError as e:
                failure = ProviderFailure(
                    type=ProviderErrorType.TIMEOUT,
                    code=PROVIDER_TIMEOUT,
                    message=f"Provider did not respond within {self._timeout}s",
                )
                await self._record_failure(job, failure.code, failure.message)
                raise ProviderError(failure) from e
            except ProviderError as e:
                await self._record_failure(job, e.failure.code, e.failure.message)
                if e.retryable:
                    raise
                return DispatchOutcome.FAILED
            except Exception as e:
                await self._record_failure(job, PROCESSING_ERROR, str(e) or e.__class__.__name__)
                raise

            if not result.success:
                return await self._handle_rejection(job, result)

            try:
                await self._record_sent(job, result)
            except Exception as e:
                logger.error("Failed to record successful send", error=str(e))
                await self._record_failure(job, PROCESSING_ERROR, str(e) or e.__class__.__name__)
                raise

            logger.info("Message handed to provider", external_id=result.external_id)
            return DispatchOutcome.SENT

    async def _mark_sending(self, job: DispatchJob) -> bool:
        if job.retry_attempt > 0:
            try:
                await self._status_updater.update_status(job.tenant_id, job.message_id, MessageStatus.QUEUED)
            except StatusTransitionError as e:
                logger.info("Retry did not re-queue message", current_status=e.current.value)

        try:
            await self._status_updater.update_status(job.tenant_id, job.message_id, MessageStatus.SENDING)
        except StatusTransitionError as e:
            logger.info("Message no longer dispatchable, skipping", current_status=e.current.value)
            return False
        except MessageNotFoundError:
            logger.warning("Message for dispatch job not found, skipping")
            return False
        return True

    async def _handle_rejection(self, job: DispatchJob, result: ProviderResult) -> DispatchOutcome:
        failure = result.error or ProviderFailure(
            type=ProviderErrorType.UNKNOWN,
            code="PROVIDER_ERROR",
            message=f"Provider returned status {result.status}",
        )
        await self._record_failure(job, failure.code, failure.message)
        if failure.retryable:
            raise ProviderError(failure)
        logger.warning("Provider rejected message permanently", error_type=failure.type.value, code=failure.code)
        return DispatchOutcome.FAILED

    async def _record_sent(self, job: DispatchJob, result: ProviderResult) -> None:
        try:
            if result.external_id:
                await self._status_updater.update_with_external_id(
                    job.tenant_id, job.message_id, MessageStatus.SENT, result.external_id
                )
            else:
                await self._status_updater.update_status(job.tenant_id, job.message_id, MessageStatus.SENT)
        except StatusTransitionError as e:
            # A callback already advanced the message past SENT.
            logger.info("Message already progressed past sent", current_status=e.current.value)

    async def _record_failure(self, job: DispatchJob, code: str, message: str) -> None:
        logger.warning("Dispatch attempt failed", error_code=code, error=message)
        try:
            await self._status_updater.update_with_error(
                job.tenant_id, job.message_id, MessageStatus.FAILED, code, message
            )
        except StatusTransitionError as e:
            logger.info("Failure not recorded, message already settled", current_status=e.current.value)
