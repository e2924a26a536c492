"""Read-only tier lookup injected into the rate limit calculator."""
from __future__ import annotations

from typing import Protocol

from src.sms.domain.value_objects.rate_limit import RateLimitTier, TierLimits


class TierResolver(Protocol):
    def resolve_tier(self, tenant_id: str) -> RateLimitTier:
        ...

    def limits_for(self, tier: RateLimitTier) -> TierLimits:
        ...
