"""
Provider webhooks.

Authenticity (signature) checks happen in front of these routes; payloads
that reach them are trusted.
"""
from __future__ import annotations

import json
from typing import Any, Dict
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError

from src.shared.exceptions import ValidationError
from src.sms.api.dependencies import get_sms_service, get_webhook_service
from src.sms.api.schemas.webhook_dto import DeliveryStatusWebhook, IncomingMessageWebhook, WebhookAck
from src.sms.application.commands.process_inbound_command import ProcessInboundCommand
from src.sms.application.services.sms_service import SmsService
from src.sms.application.services.webhook_service import WebhookService
from src.sms.domain.value_objects.webhook_payload import DeliveryStatusCallback

router = APIRouter(prefix="/webhooks/sms", tags=["SMS: Webhooks"])


async def _read_payload(request: Request) -> Dict[str, Any]:
    """Providers post form-encoded bodies; JSON is accepted as well."""
    raw = await request.body()
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        try:
            return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
        except UnicodeDecodeError as e:
            raise ValidationError("Malformed webhook body") from e
    try:
        data = json.loads(raw or b"{}")
    except ValueError as e:
        raise ValidationError("Malformed webhook body") from e
    if not isinstance(data, dict):
        raise ValidationError("Webhook body must be an object")
    return data


def _parse(model, payload: Dict[str, Any]):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid webhook payload",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


@router.post("/{tenant_id}/delivery-status", response_model=WebhookAck)
async def delivery_status(
    tenant_id: str,
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookAck:
    body: DeliveryStatusWebhook = _parse(DeliveryStatusWebhook, await _read_payload(request))
    outcome = await service.process_delivery_status(
        DeliveryStatusCallback(
            tenant_id=tenant_id,
            external_id=body.message_sid,
            status=body.status,
            error_code=body.error_code,
            error_message=body.error_message,
            price=body.price_decimal,
            price_unit=body.price_unit,
        )
    )
    return WebhookAck(status=outcome.value)


@router.post("/{tenant_id}/incoming-message", response_model=WebhookAck)
async def incoming_message(
    tenant_id: str,
    request: Request,
    service: SmsService = Depends(get_sms_service),
) -> WebhookAck:
    body: IncomingMessageWebhook = _parse(IncomingMessageWebhook, await _read_payload(request))
    result = await service.process_inbound(
        ProcessInboundCommand(
            tenant_id=tenant_id,
            external_id=body.message_sid,
            from_number=body.from_number,
            to_number=body.to_number,
            content=body.body,
            media_urls=tuple(body.media_urls()),
        )
    )
    return WebhookAck(status="duplicate" if result.duplicate else "stored")
