"""SQLAlchemy ORM models for messages, deliveries and dispatch jobs."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.shared.infrastructure.database.base_model import Base
from src.shared.utils.clock import utcnow
from src.sms.domain.value_objects.delivery_status import CallbackStatus, DeliveryStatus
from src.sms.domain.value_objects.message_status import (
    MessageChannel,
    MessageDirection,
    MessageStatus,
)


def _enum(enum_cls: type[Enum], length: int = 20) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    DEAD = "dead"


class MessageModel(Base):
    """SMS/MMS message row; ``status`` is authoritative."""

    __tablename__ = "sms_messages"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_sms_messages_tenant_external_id"),
        Index("ix_sms_messages_tenant_status", "tenant_id", "status"),
        Index("ix_sms_messages_created_at", "created_at"),
        CheckConstraint("retry_count >= 0", name="ck_sms_messages_retry_count"),
    )

    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    direction: Mapped[MessageDirection] = mapped_column(_enum(MessageDirection), nullable=False)
    channel: Mapped[MessageChannel] = mapped_column(
        _enum(MessageChannel), nullable=False, default=MessageChannel.SMS
    )
    from_number: Mapped[str] = mapped_column(String(20), nullable=False)
    to_number: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    status: Mapped[MessageStatus] = mapped_column(
        _enum(MessageStatus), nullable=False, default=MessageStatus.QUEUED
    )
    external_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class DeliveryModel(Base):
    """One delivery row per message, mirroring its status for provider reporting."""

    __tablename__ = "sms_deliveries"
    __table_args__ = (
        UniqueConstraint("message_id", name="uq_sms_deliveries_message_id"),
        Index("ix_sms_deliveries_tenant_status", "tenant_id", "status"),
        CheckConstraint("attempts >= 0", name="ck_sms_deliveries_attempts"),
    )

    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    message_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("sms_messages.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        _enum(DeliveryStatus), nullable=False, default=DeliveryStatus.PENDING
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    external_delivery_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    callback_status: Mapped[CallbackStatus] = mapped_column(
        _enum(CallbackStatus), nullable=False, default=CallbackStatus.PENDING
    )
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 5), nullable=True)
    cost_unit: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    latency_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class DispatchJobModel(Base):
    """Durable dispatch queue row (claimed with FOR UPDATE SKIP LOCKED)."""

    __tablename__ = "sms_dispatch_jobs"
    __table_args__ = (
        Index("ix_sms_dispatch_jobs_claim", "status", "priority", "available_at"),
        CheckConstraint("attempts_made >= 0", name="ck_sms_dispatch_jobs_attempts"),
    )

    job_name: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    status: Mapped[JobState] = mapped_column(_enum(JobState), nullable=False, default=JobState.PENDING)
    attempts_made: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    backoff: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    available_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
