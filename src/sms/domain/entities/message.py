"""
Message Entity
A single SMS/MMS, outbound or inbound, owned by one tenant.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from src.shared.domain.base_entity import BaseEntity
from src.sms.domain.value_objects.message_status import (
    MessageChannel,
    MessageDirection,
    MessageStatus,
)


class Message(BaseEntity):
    """
    Attributes:
        tenant_id: Owning tenant (workspace)
        direction: inbound or outbound
        channel: sms or mms
        from_number / to_number: E.164 phone numbers
        content: Message body
        status: Current lifecycle status (source of truth)
        external_id: Provider-assigned id, bound at most once
        error_code / error_message: Last failure, cleared on progress
        retry_count: Number of times the message was re-queued
        media_urls: Attachments (MMS)
        metadata: Opaque caller-supplied key-value bag
    """

    def __init__(
        self,
        *,
        tenant_id: str,
        direction: MessageDirection,
        from_number: str,
        to_number: str,
        content: str,
        channel: MessageChannel = MessageChannel.SMS,
        status: MessageStatus = MessageStatus.QUEUED,
        external_id: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        retry_count: int = 0,
        media_urls: Optional[list[str]] = None,
        metadata: Optional[dict[str, Any]] = None,
        sent_at: Optional[datetime] = None,
        id: Optional[UUID] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        super().__init__(id, created_at, updated_at)
        self.tenant_id = tenant_id
        self.direction = direction
        self.channel = channel
        self.from_number = from_number
        self.to_number = to_number
        self.content = content
        self.status = status
        self.external_id = external_id
        self.error_code = error_code
        self.error_message = error_message
        self.retry_count = retry_count
        self.media_urls = list(media_urls or [])
        self.metadata = dict(metadata or {})
        self.sent_at = sent_at

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used for change notifications and API responses."""
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "direction": self.direction.value,
            "channel": self.channel.value,
            "from_number": self.from_number,
            "to_number": self.to_number,
            "content": self.content,
            "status": self.status.value,
            "external_id": self.external_id,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "media_urls": list(self.media_urls),
            "metadata": dict(self.metadata),
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, to={self.to_number}, status={self.status.value})>"
