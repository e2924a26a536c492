"""Dry-run provider: accepts every message and sends nothing."""
from __future__ import annotations

from uuid import uuid4

from src.shared.infrastructure.observability.logger import get_logger
from src.sms.domain.protocols.provider_client import ProviderClient
from src.sms.domain.value_objects.dispatch import MessageSnapshot, ProviderConfig
from src.sms.domain.value_objects.provider import ProviderResult

logger = get_logger(__name__)


class DryRunProviderClient(ProviderClient):
    """Returns a synthetic ``SM``-prefixed provider id for each message."""

    def __init__(self) -> None:
        self.sent: list[tuple[MessageSnapshot, ProviderConfig]] = []

    async def send(self, message: MessageSnapshot, config: ProviderConfig) -> ProviderResult:
        external_id = f"SM{uuid4().hex}"
        self.sent.append((message, config))
        logger.info(
            "[DRY-RUN] message accepted",
            provider=config.provider,
            to=message.to_number,
            channel=message.channel.value,
            external_id=external_id,
        )
        return ProviderResult.accepted(external_id)
