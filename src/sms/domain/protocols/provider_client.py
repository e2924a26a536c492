"""
Provider client protocol for domain layer.
Abstracts the SMS vendor without coupling to its SDK.
"""
from abc import ABC, abstractmethod

from src.sms.domain.value_objects.dispatch import MessageSnapshot, ProviderConfig
from src.sms.domain.value_objects.provider import ProviderResult


class ProviderClient(ABC):
    """SMS/MMS provider interface."""

    @abstractmethod
    async def send(self, message: MessageSnapshot, config: ProviderConfig) -> ProviderResult:
        """
        Hand a message to the provider.

        Returns a failed ``ProviderResult`` for rejections the provider
        reports, or raises ``ProviderError`` for transport failures.
        """
