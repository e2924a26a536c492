# src/sms/domain/exceptions.py
"""
SMS Domain Exceptions

All of them extend the shared DomainError hierarchy so the API layer maps
them to the error contract without extra handlers.
"""
from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from src.shared.exceptions import (
    BadGatewayError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ServiceUnavailableError,
    ValidationError,
)
from src.sms.domain.value_objects.message_status import MessageStatus
from src.sms.domain.value_objects.provider import ProviderErrorType, ProviderFailure
from src.sms.domain.value_objects.rate_limit import RateLimitResult


class MessageValidationError(ValidationError):
    """Raised when a send, status update or inbound payload fails validation."""


class MessageNotFoundError(NotFoundError):
    """Raised when a message does not exist within the tenant."""
    code = "message_not_found"

    def __init__(
        self,
        *,
        tenant_id: str,
        message_id: Optional[UUID] = None,
        external_id: Optional[str] = None,
    ) -> None:
        ref = str(message_id) if message_id is not None else f"external id {external_id}"
        details: dict[str, Any] = {"tenant_id": tenant_id}
        if message_id is not None:
            details["message_id"] = str(message_id)
        if external_id is not None:
            details["external_id"] = external_id
        super().__init__(f"Message {ref} not found", details=details)
        self.tenant_id = tenant_id
        self.message_id = message_id
        self.external_id = external_id


class StatusTransitionError(ConflictError):
    """Raised when a requested status change is not allowed by the state machine."""
    code = "invalid_status_transition"

    def __init__(self, message_id: UUID, current: MessageStatus, requested: MessageStatus) -> None:
        super().__init__(
            f"Cannot move message from {current.value} to {requested.value}",
            details={
                "message_id": str(message_id),
                "current_status": current.value,
                "requested_status": requested.value,
            },
        )
        self.message_id = message_id
        self.current = current
        self.requested = requested


class RateLimitExceededError(RateLimitedError):
    """Raised when a tenant's send quota is exhausted."""

    def __init__(self, result: RateLimitResult, retry_after: int) -> None:
        window = result.limiting_window.value if result.limiting_window else None
        super().__init__(
            f"Rate limit exceeded for {window} window",
            details={
                "window": window,
                "current": result.current,
                "limit": result.limit,
                "reset_time": result.reset_time.isoformat(),
                "retry_after": retry_after,
            },
        )
        self.result = result
        self.retry_after = retry_after


class DispatchEnqueueError(ServiceUnavailableError):
    """The message is stored as QUEUED but the dispatch job could not be enqueued."""
    code = "queue_error"

    def __init__(self, message_id: UUID, reason: str) -> None:
        super().__init__(
            f"Failed to enqueue message {message_id}: {reason}",
            details={"message_id": str(message_id)},
        )
        self.message_id = message_id


class ProviderError(BadGatewayError):
    """Raised by provider clients; ``retryable`` drives queue backoff."""

    def __init__(self, failure: ProviderFailure) -> None:
        super().__init__(
            failure.message,
            details={"provider_error_type": failure.type.value, "provider_code": failure.code},
        )
        self.failure = failure

    @property
    def error_type(self) -> ProviderErrorType:
        return self.failure.type

    @property
    def retryable(self) -> bool:
        return self.failure.retryable


class DuplicateMessageError(ConflictError):
    """Raised when a message with the same provider id already exists in the tenant."""
    code = "duplicate_message"

    def __init__(self, external_id: Optional[str]) -> None:
        super().__init__(
            f"Message with external id {external_id} already exists",
            details={"external_id": external_id},
        )
        self.external_id = external_id
