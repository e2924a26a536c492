"""Provider call outcome types."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProviderErrorType(str, Enum):
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_PROVIDER_ERRORS


RETRYABLE_PROVIDER_ERRORS = frozenset({
    ProviderErrorType.TIMEOUT,
    ProviderErrorType.RATE_LIMITED,
    ProviderErrorType.SERVICE_UNAVAILABLE,
    ProviderErrorType.UNKNOWN,
})


@dataclass(frozen=True, slots=True)
class ProviderFailure:
    type: ProviderErrorType
    code: str
    message: str

    @property
    def retryable(self) -> bool:
        return self.type.retryable


@dataclass(frozen=True, slots=True)
class ProviderResult:
    """What the provider said about one send attempt."""
    success: bool
    status: str
    external_id: str | None = None
    error: ProviderFailure | None = None

    @classmethod
    def accepted(cls, external_id: str | None, status: str = "queued") -> ProviderResult:
        return cls(success=True, status=status, external_id=external_id)

    @classmethod
    def failed(cls, error: ProviderFailure) -> ProviderResult:
        return cls(success=False, status="failed", error=error)


def classify_http_status(status_code: int) -> ProviderErrorType:
    """Map a provider HTTP response status to an error type."""
    if status_code in (401, 403):
        return ProviderErrorType.AUTHENTICATION
    if status_code in (400, 404, 422):
        return ProviderErrorType.VALIDATION
    if status_code == 429:
        return ProviderErrorType.RATE_LIMITED
    if status_code in (408, 504):
        return ProviderErrorType.TIMEOUT
    if status_code in (502, 503):
        return ProviderErrorType.SERVICE_UNAVAILABLE
    return ProviderErrorType.UNKNOWN
