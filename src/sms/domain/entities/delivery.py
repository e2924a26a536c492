"""
Delivery Entity
Provider-facing record of the send attempts for one message.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from src.shared.domain.base_entity import BaseEntity
from src.sms.domain.value_objects.delivery_status import CallbackStatus, DeliveryStatus


class Delivery(BaseEntity):
    def __init__(
        self,
        *,
        tenant_id: str,
        message_id: UUID,
        status: DeliveryStatus = DeliveryStatus.PENDING,
        attempts: int = 0,
        external_delivery_id: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        callback_status: CallbackStatus = CallbackStatus.PENDING,
        cost: Optional[Decimal] = None,
        cost_unit: Optional[str] = None,
        latency_ms: Optional[int] = None,
        delivered_at: Optional[datetime] = None,
        failed_at: Optional[datetime] = None,
        id: Optional[UUID] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        super().__init__(id, created_at, updated_at)
        self.tenant_id = tenant_id
        self.message_id = message_id
        self.status = status
        self.attempts = attempts
        self.external_delivery_id = external_delivery_id
        self.error_code = error_code
        self.error_message = error_message
        self.callback_status = callback_status
        self.cost = cost
        self.cost_unit = cost_unit
        self.latency_ms = latency_ms
        self.delivered_at = delivered_at
        self.failed_at = failed_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "message_id": str(self.message_id),
            "status": self.status.value,
            "attempts": self.attempts,
            "external_delivery_id": self.external_delivery_id,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "callback_status": self.callback_status.value,
            "cost": str(self.cost) if self.cost is not None else None,
            "cost_unit": self.cost_unit,
            "latency_ms": self.latency_ms,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "failed_at": self.failed_at.isoformat() if self.failed_at else None,
        }

    def __repr__(self) -> str:
        return f"<Delivery(message_id={self.message_id}, status={self.status.value}, attempts={self.attempts})>"
