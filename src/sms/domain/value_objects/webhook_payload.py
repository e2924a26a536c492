"""Provider callback value objects."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from src.sms.domain.value_objects.message_status import MessageStatus


class ProviderMessageStatus(str, Enum):
    """Status strings reported by the provider."""
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    UNDELIVERED = "undelivered"
    FAILED = "failed"
    RECEIVED = "received"


PROVIDER_TO_MESSAGE_STATUS: Mapping[ProviderMessageStatus, MessageStatus] = MappingProxyType({
    ProviderMessageStatus.QUEUED: MessageStatus.QUEUED,
    ProviderMessageStatus.SENDING: MessageStatus.SENDING,
    ProviderMessageStatus.SENT: MessageStatus.SENT,
    ProviderMessageStatus.DELIVERED: MessageStatus.DELIVERED,
    ProviderMessageStatus.UNDELIVERED: MessageStatus.UNDELIVERED,
    ProviderMessageStatus.FAILED: MessageStatus.FAILED,
})

# Only post-dispatch outcomes move a message; earlier states are owned by the worker.
PROCESSABLE_DELIVERY_STATUSES = frozenset({
    ProviderMessageStatus.SENT,
    ProviderMessageStatus.DELIVERED,
    ProviderMessageStatus.UNDELIVERED,
    ProviderMessageStatus.FAILED,
})


@dataclass(frozen=True, slots=True)
class DeliveryStatusCallback:
    tenant_id: str
    external_id: str
    status: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    price: Optional[Decimal] = None
    price_unit: Optional[str] = None


class CallbackOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    STALE = "stale"
