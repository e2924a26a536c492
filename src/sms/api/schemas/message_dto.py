"""Message DTOs."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.sms.domain.entities.delivery import Delivery
from src.sms.domain.entities.message import Message
from src.sms.domain.value_objects.dispatch import MessagePriority


class SendMessageRequest(BaseModel):
    """Outbound SMS/MMS request."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    tenant_id: str = Field(min_length=1, max_length=128)
    from_number: str = Field(alias="from", min_length=2, max_length=20)
    to_number: str = Field(alias="to", min_length=2, max_length=20)
    content: str = Field(default="", max_length=4096)
    media_urls: List[str] = Field(default_factory=list, max_length=10)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    priority: MessagePriority = MessagePriority.NORMAL


class SendMessageResponse(BaseModel):
    message_id: UUID
    status: str
    job_id: UUID
    rate_limit_remaining: int


class DeliveryResponse(BaseModel):
    status: str
    attempts: int
    callback_status: str
    external_delivery_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    latency_ms: Optional[int] = None
    delivered_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, delivery: Delivery) -> "DeliveryResponse":
        return cls(
            status=delivery.status.value,
            attempts=delivery.attempts,
            callback_status=delivery.callback_status.value,
            external_delivery_id=delivery.external_delivery_id,
            error_code=delivery.error_code,
            error_message=delivery.error_message,
            latency_ms=delivery.latency_ms,
            delivered_at=delivery.delivered_at,
            failed_at=delivery.failed_at,
        )


class MessageResponse(BaseModel):
    id: UUID
    tenant_id: str
    direction: str
    channel: str
    from_number: str
    to_number: str
    content: str
    status: str
    external_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    delivery: Optional[DeliveryResponse] = None

    @classmethod
    def from_entity(cls, message: Message, delivery: Optional[Delivery] = None) -> "MessageResponse":
        return cls(
            id=message.id,
            tenant_id=message.tenant_id,
            direction=message.direction.value,
            channel=message.channel.value,
            from_number=message.from_number,
            to_number=message.to_number,
            content=message.content,
            status=message.status.value,
            external_id=message.external_id,
            error_code=message.error_code,
            error_message=message.error_message,
            retry_count=message.retry_count,
            metadata=dict(message.metadata),
            created_at=message.created_at,
            updated_at=message.updated_at,
            delivery=DeliveryResponse.from_entity(delivery) if delivery else None,
        )
