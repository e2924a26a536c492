"""Rate limit value objects: windows, tiers, per-type ceilings and check results."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from src.sms.domain.value_objects.message_status import MessageChannel


class MessageType(str, Enum):
    """Message type a quota is tracked for."""
    SMS = "SMS"
    MMS = "MMS"

    @classmethod
    def from_channel(cls, channel: MessageChannel) -> MessageType:
        return cls.MMS if channel is MessageChannel.MMS else cls.SMS


class TimeWindow(str, Enum):
    """Fixed, calendar-aligned counting window."""
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    @property
    def seconds(self) -> int:
        return _WINDOW_SECONDS[self]

    @property
    def minutes(self) -> int:
        return _WINDOW_SECONDS[self] // 60


_WINDOW_SECONDS = {
    TimeWindow.MINUTE: 60,
    TimeWindow.HOUR: 3600,
    TimeWindow.DAY: 86400,
}

# Evaluation order: the first exhausted window is reported.
WINDOW_ORDER: tuple[TimeWindow, ...] = (TimeWindow.MINUTE, TimeWindow.HOUR, TimeWindow.DAY)


class RateLimitTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Ceilings for one message type."""
    minute: int
    hour: int
    day: int

    def limit_for(self, window: TimeWindow) -> int:
        return getattr(self, window.value)


@dataclass(frozen=True, slots=True)
class TierLimits:
    sms: RateLimitConfig
    mms: RateLimitConfig

    def for_type(self, message_type: MessageType) -> RateLimitConfig:
        return self.mms if message_type is MessageType.MMS else self.sms


DEFAULT_TIER_LIMITS: Mapping[RateLimitTier, TierLimits] = MappingProxyType({
    RateLimitTier.FREE: TierLimits(
        sms=RateLimitConfig(minute=5, hour=25, day=100),
        mms=RateLimitConfig(minute=2, hour=10, day=30),
    ),
    RateLimitTier.BASIC: TierLimits(
        sms=RateLimitConfig(minute=15, hour=75, day=300),
        mms=RateLimitConfig(minute=5, hour=25, day=100),
    ),
    RateLimitTier.PREMIUM: TierLimits(
        sms=RateLimitConfig(minute=30, hour=150, day=600),
        mms=RateLimitConfig(minute=10, hour=50, day=200),
    ),
    RateLimitTier.ENTERPRISE: TierLimits(
        sms=RateLimitConfig(minute=60, hour=300, day=1200),
        mms=RateLimitConfig(minute=20, hour=100, day=400),
    ),
})


@dataclass(frozen=True, slots=True)
class RateLimitKey:
    """Decoded counter identifier."""
    tenant_id: str
    message_type: MessageType
    window: TimeWindow


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """
    Outcome of a rate limit check.

    On denial ``limiting_window``, ``current`` and ``limit`` describe the
    exhausted window; on admission they describe the most restrictive one.
    """
    allowed: bool
    remaining: int
    reset_time: datetime
    limiting_window: TimeWindow | None = None
    current: int | None = None
    limit: int | None = None

    def retry_after_seconds(self, now: datetime) -> int:
        """Whole seconds until ``reset_time`` (at least 1)."""
        return max(1, int((self.reset_time - now).total_seconds() + 0.999))


@dataclass(frozen=True, slots=True)
class WindowUsage:
    window: TimeWindow
    current: int
    limit: int
    remaining: int
    reset_time: datetime


@dataclass(frozen=True, slots=True)
class RateLimitUsage:
    """Per-window usage snapshot for a tenant and message type."""
    tenant_id: str
    message_type: MessageType
    windows: tuple[WindowUsage, ...]

    def for_window(self, window: TimeWindow) -> WindowUsage:
        for usage in self.windows:
            if usage.window is window:
                return usage
        raise KeyError(window)
