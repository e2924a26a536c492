"""Inbound (provider-originated) message command."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class ProcessInboundCommand:
    """A message a recipient sent to one of the tenant's numbers."""
    tenant_id: str
    external_id: str
    from_number: str
    to_number: str
    content: str
    media_urls: tuple[str, ...] = ()


@dataclass(frozen=True)
class InboundResult:
    message_id: UUID
    duplicate: bool
