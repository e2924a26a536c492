"""Rate limit DTOs."""

from datetime import datetime
from typing import List

from pydantic import BaseModel

from src.sms.domain.value_objects.rate_limit import RateLimitUsage


class WindowUsageResponse(BaseModel):
    window: str
    current: int
    limit: int
    remaining: int
    reset_time: datetime


class RateLimitUsageResponse(BaseModel):
    tenant_id: str
    message_type: str
    windows: List[WindowUsageResponse]

    @classmethod
    def from_usage(cls, usage: RateLimitUsage) -> "RateLimitUsageResponse":
        return cls(
            tenant_id=usage.tenant_id,
            message_type=usage.message_type.value,
            windows=[
                WindowUsageResponse(
                    window=w.window.value,
                    current=w.current,
                    limit=w.limit,
                    remaining=w.remaining,
                    reset_time=w.reset_time,
                )
                for w in usage.windows
            ],
        )


class RateLimitResetResponse(BaseModel):
    tenant_id: str
    removed: int
