"""FastAPI dependencies resolving services from the application container."""
from __future__ import annotations

from fastapi import Request

from src.sms.application.services.rate_limiter import SmsRateLimiter
from src.sms.application.services.sms_service import SmsService
from src.sms.application.services.webhook_service import WebhookService


def get_sms_service(request: Request) -> SmsService:
    return request.app.state.container.sms_service


def get_webhook_service(request: Request) -> WebhookService:
    return request.app.state.container.webhook_service


def get_rate_limiter(request: Request) -> SmsRateLimiter:
    return request.app.state.container.rate_limiter
