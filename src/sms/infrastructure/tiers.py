"""Configuration-backed tier resolution."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from src.shared.infrastructure.observability.logger import get_logger
from src.sms.domain.value_objects.rate_limit import (
    DEFAULT_TIER_LIMITS,
    RateLimitTier,
    TierLimits,
)

logger = get_logger(__name__)


class StaticTierResolver:
    """
    Resolves tenants to tiers from a fixed assignment table.

    Unknown tenants get ``default_tier``. The resolver is immutable once
    built; a new one is created when configuration changes.
    """

    def __init__(
        self,
        tenant_tiers: Optional[Mapping[str, str | RateLimitTier]] = None,
        default_tier: str | RateLimitTier = RateLimitTier.FREE,
        tier_limits: Mapping[RateLimitTier, TierLimits] = DEFAULT_TIER_LIMITS,
    ) -> None:
        self._default_tier = RateLimitTier(default_tier)
        self._tenant_tiers = MappingProxyType({
            tenant: RateLimitTier(tier) for tenant, tier in (tenant_tiers or {}).items()
        })
        missing = set(RateLimitTier) - set(tier_limits)
        if missing:
            raise ValueError(f"Tier limits missing for: {sorted(t.value for t in missing)}")
        self._tier_limits = MappingProxyType(dict(tier_limits))
        logger.debug(
            "Tier resolver built",
            default_tier=self._default_tier.value,
            assigned_tenants=len(self._tenant_tiers),
        )

    def resolve_tier(self, tenant_id: str) -> RateLimitTier:
        return self._tenant_tiers.get(tenant_id, self._default_tier)

    def limits_for(self, tier: RateLimitTier) -> TierLimits:
        return self._tier_limits[tier]
