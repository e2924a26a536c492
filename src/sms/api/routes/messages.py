from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from src.config import get_settings
from src.sms.api.dependencies import get_sms_service
from src.sms.api.schemas.message_dto import MessageResponse, SendMessageRequest, SendMessageResponse
from src.sms.application.commands.send_message_command import SendMessageCommand
from src.sms.application.services.sms_service import SmsService

router = APIRouter(prefix=f"{get_settings().API_V1_STR}/sms/messages", tags=["SMS: Messages"])


@router.post("", response_model=SendMessageResponse, status_code=status.HTTP_202_ACCEPTED)
async def send_message(
    body: SendMessageRequest,
    response: Response,
    service: SmsService = Depends(get_sms_service),
) -> SendMessageResponse:
    """Queue an outbound SMS/MMS; delivery happens asynchronously."""
    result = await service.send_message(
        SendMessageCommand(
            tenant_id=body.tenant_id,
            from_number=body.from_number,
            to_number=body.to_number,
            content=body.content,
            media_urls=tuple(body.media_urls),
            priority=body.priority,
            metadata=body.metadata,
        )
    )
    response.headers["X-RateLimit-Remaining"] = str(result.rate_limit.remaining)
    response.headers["X-RateLimit-Reset"] = result.rate_limit.reset_time.isoformat()
    return SendMessageResponse(
        message_id=result.message_id,
        status=result.status.value,
        job_id=result.job_id,
        rate_limit_remaining=result.rate_limit.remaining,
    )


@router.get("/{tenant_id}/{message_id}", response_model=MessageResponse)
async def get_message(
    tenant_id: str,
    message_id: UUID,
    service: SmsService = Depends(get_sms_service),
) -> MessageResponse:
    message, delivery = await service.get_message(tenant_id, message_id)
    return MessageResponse.from_entity(message, delivery)


@router.post("/{tenant_id}/{message_id}/cancel", response_model=MessageResponse)
async def cancel_message(
    tenant_id: str,
    message_id: UUID,
    service: SmsService = Depends(get_sms_service),
) -> MessageResponse:
    """Cancel a message that is still queued."""
    result = await service.cancel_message(tenant_id, message_id)
    return MessageResponse.from_entity(result.message, result.delivery)
