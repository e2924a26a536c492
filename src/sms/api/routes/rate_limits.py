from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.config import get_settings
from src.sms.api.dependencies import get_rate_limiter
from src.sms.api.schemas.rate_limit_dto import RateLimitResetResponse, RateLimitUsageResponse
from src.sms.application.services.rate_limiter import SmsRateLimiter
from src.sms.domain.value_objects.rate_limit import MessageType, TimeWindow

router = APIRouter(prefix=f"{get_settings().API_V1_STR}/sms/rate-limits", tags=["SMS: Rate limits"])


@router.get("/{tenant_id}", response_model=RateLimitUsageResponse)
async def get_usage(
    tenant_id: str,
    message_type: MessageType = Query(default=MessageType.SMS),
    limiter: SmsRateLimiter = Depends(get_rate_limiter),
) -> RateLimitUsageResponse:
    usage = await limiter.get_current_usage(tenant_id, message_type)
    return RateLimitUsageResponse.from_usage(usage)


@router.delete("/{tenant_id}", response_model=RateLimitResetResponse)
async def reset_limits(
    tenant_id: str,
    message_type: Optional[MessageType] = Query(default=None),
    window: Optional[TimeWindow] = Query(default=None),
    limiter: SmsRateLimiter = Depends(get_rate_limiter),
) -> RateLimitResetResponse:
    """Administrative reset of a tenant's counters."""
    removed = await limiter.reset_limits(tenant_id, message_type, window)
    return RateLimitResetResponse(tenant_id=tenant_id, removed=removed)
