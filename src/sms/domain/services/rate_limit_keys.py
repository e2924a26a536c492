"""Counter key layout for the multi-window rate limiter."""
from __future__ import annotations

from typing import Optional

from src.sms.domain.value_objects.rate_limit import (
    WINDOW_ORDER,
    MessageType,
    RateLimitKey,
    TimeWindow,
)

DEFAULT_KEY_PREFIX = "sms:rate_limit"


def window_ttl(window: TimeWindow) -> int:
    """Counter lifetime in seconds: 60, 3600 or 86400."""
    return window.seconds


class RateLimitKeyGenerator:
    """
    Builds and parses counter ids of the form
    ``{prefix}:{tenant}:{sms|mms}:{minute|hour|day}``.
    """

    def __init__(self, prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self.prefix = prefix.rstrip(":")

    def generate_key(self, tenant_id: str, message_type: MessageType, window: TimeWindow) -> str:
        return f"{self.prefix}:{tenant_id}:{message_type.value.lower()}:{window.value}"

    def generate_keys(self, tenant_id: str, message_type: MessageType) -> list[str]:
        return [self.generate_key(tenant_id, message_type, window) for window in WINDOW_ORDER]

    def tenant_pattern(self, tenant_id: str) -> str:
        """Glob matching every counter of a tenant."""
        return f"{self.prefix}:{tenant_id}:*"

    def parse_key(self, key: str) -> Optional[RateLimitKey]:
        """Decode a counter id; None when it is not one of ours."""
        head = f"{self.prefix}:"
        if not key.startswith(head):
            return None
        parts = key[len(head):].rsplit(":", 2)
        if len(parts) != 3 or not parts[0]:
            return None
        tenant_id, raw_type, raw_window = parts
        try:
            message_type = MessageType(raw_type.upper())
            window = TimeWindow(raw_window)
        except ValueError:
            return None
        return RateLimitKey(tenant_id=tenant_id, message_type=message_type, window=window)
