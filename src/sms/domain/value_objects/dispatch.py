"""Dispatch job payload, queue priorities and retry backoff policy."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from src.sms.domain.value_objects.message_status import MessageChannel

SEND_SMS_JOB = "send-sms"


class MessagePriority(str, Enum):
    """Business priority of an outbound message."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def queue_priority(self) -> int:
        """Numeric queue priority; higher numbers are dispatched first."""
        return _QUEUE_PRIORITY[self]


_QUEUE_PRIORITY = {
    MessagePriority.LOW: 1,
    MessagePriority.NORMAL: 5,
    MessagePriority.HIGH: 7,
    MessagePriority.CRITICAL: 10,
}


class BackoffType(str, Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Delay between attempts: 1s, 2s, 4s, ... capped at ``max_delay_seconds``."""
    type: BackoffType = BackoffType.EXPONENTIAL
    delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float = 30.0

    def delay_for(self, attempts_made: int) -> float:
        """Delay before the next attempt, given how many attempts already ran."""
        if attempts_made < 1:
            return 0.0
        if self.type is BackoffType.FIXED:
            return min(self.delay_seconds, self.max_delay_seconds)
        delay = self.delay_seconds * (self.multiplier ** (attempts_made - 1))
        return min(delay, self.max_delay_seconds)


@dataclass(frozen=True, slots=True)
class EnqueueOptions:
    priority: int = _QUEUE_PRIORITY[MessagePriority.NORMAL]
    attempts: int = 3
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Opaque provider selection handed through the queue to the provider client."""
    provider: str
    account_id: str | None = None
    sender: str | None = None
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "account_id": self.account_id,
            "sender": self.sender,
            "options": dict(self.options),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderConfig:
        return cls(
            provider=data["provider"],
            account_id=data.get("account_id"),
            sender=data.get("sender"),
            options=dict(data.get("options") or {}),
        )


@dataclass(frozen=True, slots=True)
class MessageSnapshot:
    """The message content the worker sends; frozen at enqueue time."""
    to_number: str
    from_number: str
    content: str
    channel: MessageChannel = MessageChannel.SMS
    media_urls: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "to": self.to_number,
            "from": self.from_number,
            "content": self.content,
            "channel": self.channel.value,
            "media_urls": list(self.media_urls),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessageSnapshot:
        return cls(
            to_number=data["to"],
            from_number=data["from"],
            content=data["content"],
            channel=MessageChannel(data.get("channel", MessageChannel.SMS.value)),
            media_urls=tuple(data.get("media_urls") or ()),
        )


@dataclass(frozen=True, slots=True)
class DispatchJob:
    """Unit of work consumed by the dispatch worker."""
    message_id: UUID
    tenant_id: str
    provider_config: ProviderConfig
    message: MessageSnapshot
    retry_attempt: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "message_id": str(self.message_id),
            "tenant_id": self.tenant_id,
            "provider_config": self.provider_config.to_dict(),
            "message": self.message.to_dict(),
            "retry_attempt": self.retry_attempt,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any], retry_attempt: int | None = None) -> DispatchJob:
        return cls(
            message_id=UUID(str(payload["message_id"])),
            tenant_id=payload["tenant_id"],
            provider_config=ProviderConfig.from_dict(payload["provider_config"]),
            message=MessageSnapshot.from_dict(payload["message"]),
            retry_attempt=payload.get("retry_attempt", 0) if retry_attempt is None else retry_attempt,
        )
