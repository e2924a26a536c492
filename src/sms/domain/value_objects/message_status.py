# src/sms/domain/value_objects/message_status.py
"""
Message status, direction and channel enums plus the message state machine.

Outbound flow: queued → sending → sent → delivered
Failures: sending/sent → failed, sent → undelivered; both may be re-queued.
Cancellation: queued → canceled (before dispatch only).
"""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class MessageDirection(str, Enum):
    """Message flow direction."""
    INBOUND = "inbound"    # Received from a recipient
    OUTBOUND = "outbound"  # Sent by a tenant


class MessageChannel(str, Enum):
    """Transport the message travels on."""
    SMS = "sms"
    MMS = "mms"


class MessageStatus(str, Enum):
    """Lifecycle state of a Message."""
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    UNDELIVERED = "undelivered"
    CANCELED = "canceled"


VALID_STATUS_TRANSITIONS: Mapping[MessageStatus, frozenset[MessageStatus]] = MappingProxyType({
    MessageStatus.QUEUED: frozenset({MessageStatus.SENDING, MessageStatus.CANCELED}),
    MessageStatus.SENDING: frozenset({MessageStatus.SENT, MessageStatus.FAILED}),
    MessageStatus.SENT: frozenset({
        MessageStatus.DELIVERED,
        MessageStatus.UNDELIVERED,
        MessageStatus.FAILED,
    }),
    MessageStatus.FAILED: frozenset({MessageStatus.QUEUED}),
    MessageStatus.UNDELIVERED: frozenset({MessageStatus.QUEUED}),
    MessageStatus.DELIVERED: frozenset(),
    MessageStatus.CANCELED: frozenset(),
})

TERMINAL_STATUSES = frozenset({MessageStatus.DELIVERED, MessageStatus.CANCELED})
RETRYABLE_STATUSES = frozenset({MessageStatus.FAILED, MessageStatus.UNDELIVERED})
FAILURE_STATUSES = frozenset({MessageStatus.FAILED, MessageStatus.UNDELIVERED})

# Retry edges lead back to QUEUED; forward jumps never follow them.
_FORWARD_TRANSITIONS: Mapping[MessageStatus, frozenset[MessageStatus]] = MappingProxyType({
    status: frozenset(
        target for target in targets
        if not (status in RETRYABLE_STATUSES and target is MessageStatus.QUEUED)
    )
    for status, targets in VALID_STATUS_TRANSITIONS.items()
})


def is_valid_status_transition(current: MessageStatus, new: MessageStatus) -> bool:
    """True when ``current → new`` is a direct edge of the state machine."""
    return new in VALID_STATUS_TRANSITIONS.get(current, frozenset())


def is_terminal_status(status: MessageStatus) -> bool:
    """DELIVERED and CANCELED admit no further transitions."""
    return status in TERMINAL_STATUSES


def is_retryable_failure(status: MessageStatus) -> bool:
    """FAILED and UNDELIVERED messages may be re-queued."""
    return status in RETRYABLE_STATUSES


def forward_reachable(current: MessageStatus) -> frozenset[MessageStatus]:
    """Statuses reachable from ``current`` through forward edges only."""
    seen: set[MessageStatus] = set()
    frontier = [current]
    while frontier:
        node = frontier.pop()
        for target in _FORWARD_TRANSITIONS.get(node, frozenset()):
            if target not in seen:
                seen.add(target)
                frontier.append(target)
    seen.discard(current)
    return frozenset(seen)


def can_advance(current: MessageStatus, new: MessageStatus) -> bool:
    """
    Whether a message in ``current`` may be moved to ``new``.

    Accepts a direct edge (including retry edges back to QUEUED) or a jump
    over skipped intermediate states, e.g. a delivery callback that arrives
    while the message is still QUEUED.
    """
    return is_valid_status_transition(current, new) or new in forward_reachable(current)
