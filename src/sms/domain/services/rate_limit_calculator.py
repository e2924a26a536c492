"""Tier lookup and window arithmetic for the rate limiter."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from src.shared.utils.clock import Clock, local_now
from src.sms.domain.protocols.tier_resolver import TierResolver
from src.sms.domain.value_objects.rate_limit import (
    WINDOW_ORDER,
    MessageType,
    RateLimitConfig,
    TierLimits,
    TimeWindow,
)


class RateLimitCalculator:
    """
    Domain service computing ceilings, remaining quota and reset times.

    Tier assignment comes from the injected resolver, and the clock is
    injectable so window boundaries can be tested.

    Example:
        calculator = RateLimitCalculator(StaticTierResolver())
        config = calculator.get_limits("tenant-1", MessageType.SMS)
        window = calculator.get_most_restrictive_limit(config)
    """

    def __init__(self, resolver: TierResolver, clock: Clock = local_now) -> None:
        self._resolver = resolver
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def get_tenant_limits(self, tenant_id: str) -> TierLimits:
        return self._resolver.limits_for(self._resolver.resolve_tier(tenant_id))

    def get_limits(self, tenant_id: str, message_type: MessageType) -> RateLimitConfig:
        return self.get_tenant_limits(tenant_id).for_type(message_type)

    @staticmethod
    def calculate_ttl(window: TimeWindow) -> int:
        return window.seconds

    @staticmethod
    def calculate_remaining(current: int, limit: int) -> int:
        return max(0, limit - current)

    @staticmethod
    def is_limit_exceeded(current: int, limit: int) -> bool:
        return current >= limit

    def calculate_reset_time(self, window: TimeWindow, now: Optional[datetime] = None) -> datetime:
        """
        Next aligned window boundary.

        Minute windows reset at the next ``:00`` second, hour windows at the
        next ``:00:00``, day windows at the next local midnight.
        """
        now = now or self._clock()
        if window is TimeWindow.MINUTE:
            return now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        if window is TimeWindow.HOUR:
            return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
        return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)

    @staticmethod
    def get_most_restrictive_limit(config: RateLimitConfig) -> TimeWindow:
        """Window with the smallest ceiling per minute; ties go to the shorter window."""
        best = WINDOW_ORDER[0]
        best_ratio = config.limit_for(best) / best.minutes
        for window in WINDOW_ORDER[1:]:
            ratio = config.limit_for(window) / window.minutes
            if ratio < best_ratio:
                best, best_ratio = window, ratio
        return best
