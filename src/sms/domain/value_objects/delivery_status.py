# src/sms/domain/value_objects/delivery_status.py
"""
Delivery status (provider-facing view of a send attempt) and callback sub-state.

The Delivery record mirrors its Message through ``map_message_to_delivery_status``;
Message status stays the source of truth.
"""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from src.sms.domain.value_objects.message_status import MessageStatus


class DeliveryStatus(str, Enum):
    """Delivery status values, a superset of the message statuses."""
    PENDING = "pending"
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    UNDELIVERED = "undelivered"
    CANCELED = "canceled"
    ACCEPTED = "accepted"
    RECEIVING = "receiving"
    RECEIVED = "received"


class CallbackStatus(str, Enum):
    """Processing state of the provider callback tied to a delivery."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"
    ABANDONED = "abandoned"


DEFAULT_MAX_DELIVERY_ATTEMPTS = 3

TERMINAL_DELIVERY_STATUSES = frozenset({
    DeliveryStatus.DELIVERED,
    DeliveryStatus.FAILED,
    DeliveryStatus.CANCELED,
    DeliveryStatus.UNDELIVERED,
    DeliveryStatus.RECEIVED,
})

SUCCESSFUL_DELIVERY_STATUSES = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.RECEIVED})
FAILED_DELIVERY_STATUSES = frozenset({
    DeliveryStatus.FAILED,
    DeliveryStatus.UNDELIVERED,
    DeliveryStatus.CANCELED,
})

VALID_DELIVERY_TRANSITIONS: Mapping[DeliveryStatus, frozenset[DeliveryStatus]] = MappingProxyType({
    DeliveryStatus.PENDING: frozenset({
        DeliveryStatus.QUEUED,
        DeliveryStatus.SENDING,
        DeliveryStatus.SENT,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.FAILED,
        DeliveryStatus.CANCELED,
    }),
    DeliveryStatus.QUEUED: frozenset({
        DeliveryStatus.SENDING,
        DeliveryStatus.CANCELED,
        DeliveryStatus.FAILED,
    }),
    DeliveryStatus.SENDING: frozenset({
        DeliveryStatus.SENT,
        DeliveryStatus.ACCEPTED,
        DeliveryStatus.FAILED,
        DeliveryStatus.CANCELED,
    }),
    DeliveryStatus.ACCEPTED: frozenset({
        DeliveryStatus.SENT,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.UNDELIVERED,
        DeliveryStatus.FAILED,
    }),
    DeliveryStatus.SENT: frozenset({
        DeliveryStatus.DELIVERED,
        DeliveryStatus.UNDELIVERED,
        DeliveryStatus.FAILED,
    }),
    DeliveryStatus.FAILED: frozenset({DeliveryStatus.QUEUED, DeliveryStatus.PENDING}),
    DeliveryStatus.UNDELIVERED: frozenset({DeliveryStatus.QUEUED, DeliveryStatus.PENDING}),
    DeliveryStatus.RECEIVING: frozenset({DeliveryStatus.RECEIVED, DeliveryStatus.FAILED}),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.RECEIVED: frozenset(),
    DeliveryStatus.CANCELED: frozenset(),
})

MESSAGE_TO_DELIVERY_STATUS: Mapping[MessageStatus, DeliveryStatus] = MappingProxyType({
    MessageStatus.QUEUED: DeliveryStatus.PENDING,
    MessageStatus.SENDING: DeliveryStatus.PENDING,
    MessageStatus.SENT: DeliveryStatus.SENT,
    MessageStatus.DELIVERED: DeliveryStatus.DELIVERED,
    MessageStatus.FAILED: DeliveryStatus.FAILED,
    MessageStatus.UNDELIVERED: DeliveryStatus.FAILED,
    MessageStatus.CANCELED: DeliveryStatus.FAILED,
})


def map_message_to_delivery_status(status: MessageStatus) -> DeliveryStatus:
    """Delivery status written alongside a message status."""
    return MESSAGE_TO_DELIVERY_STATUS[status]


def is_terminal_delivery_status(status: DeliveryStatus) -> bool:
    return status in TERMINAL_DELIVERY_STATUSES


def is_successful_delivery(status: DeliveryStatus) -> bool:
    return status in SUCCESSFUL_DELIVERY_STATUSES


def is_failed_delivery(status: DeliveryStatus) -> bool:
    return status in FAILED_DELIVERY_STATUSES


def can_retry_delivery(
    status: DeliveryStatus,
    attempts: int,
    max_attempts: int = DEFAULT_MAX_DELIVERY_ATTEMPTS,
) -> bool:
    """
    Whether a delivery may be attempted again.

    Only FAILED and UNDELIVERED deliveries are retryable, and only while the
    attempt budget is not spent.
    """
    if status not in (DeliveryStatus.FAILED, DeliveryStatus.UNDELIVERED):
        return False
    return attempts < max_attempts


def get_valid_delivery_transitions(status: DeliveryStatus) -> frozenset[DeliveryStatus]:
    return VALID_DELIVERY_TRANSITIONS.get(status, frozenset())


def is_valid_delivery_transition(current: DeliveryStatus, new: DeliveryStatus) -> bool:
    return new in get_valid_delivery_transitions(current)


def calculate_success_rate(statuses: Iterable[DeliveryStatus]) -> float:
    """Share of deliveries that reached DELIVERED or RECEIVED, in percent."""
    statuses = list(statuses)
    if not statuses:
        return 0.0
    successful = sum(1 for status in statuses if is_successful_delivery(status))
    return successful / len(statuses) * 100
