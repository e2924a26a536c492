"""
SQLAlchemy implementations of the message and delivery repositories.

Both are bound to one session and one tenant; rows belonging to another
tenant are invisible to them.
"""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.shared.infrastructure.observability.logger import get_logger
from src.sms.domain.entities.delivery import Delivery
from src.sms.domain.entities.message import Message
from src.sms.domain.exceptions import DuplicateMessageError
from src.sms.infrastructure.persistence.models import DeliveryModel, MessageModel

logger = get_logger(__name__)


class MessageMapper:
    @staticmethod
    def to_entity(model: MessageModel) -> Message:
        return Message(
            id=model.id,
            tenant_id=model.tenant_id,
            direction=model.direction,
            channel=model.channel,
            from_number=model.from_number,
            to_number=model.to_number,
            content=model.content,
            status=model.status,
            external_id=model.external_id,
            error_code=model.error_code,
            error_message=model.error_message,
            retry_count=model.retry_count,
            media_urls=list(model.media_urls or []),
            metadata=dict(model.metadata_ or {}),
            sent_at=model.sent_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def apply(entity: Message, model: MessageModel) -> MessageModel:
        """Copy the mutable fields of ``entity`` onto ``model``."""
        model.status = entity.status
        model.external_id = entity.external_id
        model.error_code = entity.error_code
        model.error_message = entity.error_message
        model.retry_count = entity.retry_count
        model.sent_at = entity.sent_at
        model.updated_at = entity.updated_at
        return model


class DeliveryMapper:
    @staticmethod
    def to_entity(model: DeliveryModel) -> Delivery:
        return Delivery(
            id=model.id,
            tenant_id=model.tenant_id,
            message_id=model.message_id,
            status=model.status,
            attempts=model.attempts,
            external_delivery_id=model.external_delivery_id,
            error_code=model.error_code,
            error_message=model.error_message,
            callback_status=model.callback_status,
            cost=model.cost,
            cost_unit=model.cost_unit,
            latency_ms=model.latency_ms,
            delivered_at=model.delivered_at,
            failed_at=model.failed_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def apply(entity: Delivery, model: DeliveryModel) -> DeliveryModel:
        model.status = entity.status
        model.attempts = entity.attempts
        model.external_delivery_id = entity.external_delivery_id
        model.error_code = entity.error_code
        model.error_message = entity.error_message
        model.callback_status = entity.callback_status
        model.cost = entity.cost
        model.cost_unit = entity.cost_unit
        model.latency_ms = entity.latency_ms
        model.delivered_at = entity.delivered_at
        model.failed_at = entity.failed_at
        model.updated_at = entity.updated_at
        return model


class SqlAlchemyMessageRepository:
    """Tenant-scoped message repository."""

    def __init__(self, session: AsyncSession, tenant_id: str) -> None:
        self.session = session
        self.tenant_id = tenant_id

    async def _get_model(self, message_id: UUID) -> Optional[MessageModel]:
        stmt = select(MessageModel).where(
            MessageModel.id == message_id,
            MessageModel.tenant_id == self.tenant_id,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create(self, message: Message) -> Message:
        """
        Insert a message and flush.

        Raises:
            DuplicateMessageError: Another message of the tenant already has
                this ``external_id``
        """
        if message.tenant_id != self.tenant_id:
            raise ValueError("Message tenant does not match repository tenant")
        model = MessageModel(
            id=message.id,
            tenant_id=message.tenant_id,
            direction=message.direction,
            channel=message.channel,
            from_number=message.from_number,
            to_number=message.to_number,
            content=message.content,
            media_urls=list(message.media_urls),
            metadata_=dict(message.metadata),
            created_at=message.created_at,
        )
        MessageMapper.apply(message, model)
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as e:
            if message.external_id is None:
                raise
            raise DuplicateMessageError(message.external_id) from e
        logger.debug("Message created", message_id=str(message.id), tenant_id=self.tenant_id)
        return MessageMapper.to_entity(model)

    async def find_by_id(self, message_id: UUID) -> Optional[Message]:
        model = await self._get_model(message_id)
        return MessageMapper.to_entity(model) if model else None

    async def find_by_external_id(self, external_id: str) -> Optional[Message]:
        stmt = select(MessageModel).where(
            MessageModel.tenant_id == self.tenant_id,
            MessageModel.external_id == external_id,
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        return MessageMapper.to_entity(model) if model else None

    async def update(self, message: Message) -> Message:
        model = await self._get_model(message.id)
        if model is None:
            raise LookupError(f"Message {message.id} not found for tenant {self.tenant_id}")
        MessageMapper.apply(message, model)
        await self.session.flush()
        return MessageMapper.to_entity(model)


class SqlAlchemyDeliveryRepository:
    """Tenant-scoped delivery repository."""

    def __init__(self, session: AsyncSession, tenant_id: str) -> None:
        self.session = session
        self.tenant_id = tenant_id

    async def _get_model(self, message_id: UUID) -> Optional[DeliveryModel]:
        stmt = select(DeliveryModel).where(
            DeliveryModel.message_id == message_id,
            DeliveryModel.tenant_id == self.tenant_id,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def create(self, delivery: Delivery) -> Delivery:
        model = DeliveryModel(
            id=delivery.id,
            tenant_id=self.tenant_id,
            message_id=delivery.message_id,
            created_at=delivery.created_at,
        )
        DeliveryMapper.apply(delivery, model)
        self.session.add(model)
        await self.session.flush()
        return DeliveryMapper.to_entity(model)

    async def find_by_message_id(self, message_id: UUID) -> Optional[Delivery]:
        model = await self._get_model(message_id)
        return DeliveryMapper.to_entity(model) if model else None

    async def update(self, delivery: Delivery) -> Delivery:
        model = await self._get_model(delivery.message_id)
        if model is None:
            raise LookupError(f"Delivery for message {delivery.message_id} not found")
        DeliveryMapper.apply(delivery, model)
        await self.session.flush()
        return DeliveryMapper.to_entity(model)
