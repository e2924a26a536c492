"""Send message command and its result."""

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from src.sms.domain.value_objects.dispatch import MessagePriority, ProviderConfig
from src.sms.domain.value_objects.message_status import MessageStatus
from src.sms.domain.value_objects.rate_limit import RateLimitResult


@dataclass(frozen=True)
class SendMessageCommand:
    """Command to send an outbound SMS/MMS."""
    tenant_id: str
    from_number: str
    to_number: str
    content: str
    media_urls: tuple[str, ...] = ()
    priority: MessagePriority = MessagePriority.NORMAL
    provider_config: Optional[ProviderConfig] = None
    metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class SendMessageResult:
    message_id: UUID
    status: MessageStatus
    job_id: UUID
    rate_limit: RateLimitResult = field(repr=False)
