"""Validation rules for outbound messages and status update inputs."""
from __future__ import annotations

import re
from typing import Optional, Sequence

from src.sms.domain.exceptions import MessageValidationError
from src.sms.domain.value_objects.message_status import MessageChannel

E164_PATTERN = re.compile(r"^\+[1-9]\d{0,14}$")
SMS_MAX_LENGTH = 1600


def is_e164(number: str) -> bool:
    return bool(number) and E164_PATTERN.match(number) is not None


def require(value: Optional[str], field: str) -> str:
    """Non-empty string or MessageValidationError."""
    if value is None or not str(value).strip():
        raise MessageValidationError(f"{field} is required", details={"field": field})
    return str(value)


def resolve_channel(media_urls: Sequence[str]) -> MessageChannel:
    return MessageChannel.MMS if media_urls else MessageChannel.SMS


def validate_outbound(
    *,
    tenant_id: str,
    from_number: str,
    to_number: str,
    content: str,
    media_urls: Sequence[str] = (),
    max_length: int = SMS_MAX_LENGTH,
) -> MessageChannel:
    """
    Check an outbound message before it is stored.

    Returns:
        The channel the message will travel on (MMS when media is attached)

    Raises:
        MessageValidationError: On a missing field, bad phone number or
            oversized SMS body
    """
    require(tenant_id, "tenant_id")
    require(from_number, "from_number")
    require(to_number, "to_number")
    channel = resolve_channel(media_urls)
    if not (content and content.strip()) and channel is MessageChannel.SMS:
        raise MessageValidationError("content is required", details={"field": "content"})

    for field, number in (("from_number", from_number), ("to_number", to_number)):
        if not is_e164(number):
            raise MessageValidationError(
                f"{field} must be an E.164 phone number",
                details={"field": field, "value": number},
            )

    if channel is MessageChannel.SMS and len(content) > max_length:
        raise MessageValidationError(
            f"SMS content exceeds {max_length} characters",
            details={"field": "content", "length": len(content), "max_length": max_length},
        )
    return channel
