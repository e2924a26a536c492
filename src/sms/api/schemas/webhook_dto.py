"""Provider webhook DTOs (provider field names)."""

from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DeliveryStatusWebhook(BaseModel):
    """Delivery status callback; either MessageStatus or SmsStatus must be present."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    message_sid: str = Field(alias="MessageSid", min_length=1)
    account_sid: Optional[str] = Field(default=None, alias="AccountSid")
    message_status: Optional[str] = Field(default=None, alias="MessageStatus")
    sms_status: Optional[str] = Field(default=None, alias="SmsStatus")
    to_number: Optional[str] = Field(default=None, alias="To")
    from_number: Optional[str] = Field(default=None, alias="From")
    error_code: Optional[str] = Field(default=None, alias="ErrorCode")
    error_message: Optional[str] = Field(default=None, alias="ErrorMessage")
    price: Optional[str] = Field(default=None, alias="Price")
    price_unit: Optional[str] = Field(default=None, alias="PriceUnit")
    num_segments: Optional[int] = Field(default=None, alias="NumSegments")

    @field_validator("error_code", mode="before")
    @classmethod
    def _stringify_error_code(cls, value):
        if value is None or value == "":
            return None
        return str(value)

    @model_validator(mode="after")
    def _require_status(self):
        if not (self.message_status or self.sms_status):
            raise ValueError("MessageStatus or SmsStatus is required")
        return self

    @property
    def status(self) -> str:
        return self.message_status or self.sms_status or ""

    @property
    def price_decimal(self) -> Optional[Decimal]:
        if not self.price:
            return None
        try:
            return Decimal(self.price)
        except InvalidOperation:
            return None


class IncomingMessageWebhook(BaseModel):
    """Inbound message callback."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    message_sid: str = Field(alias="MessageSid", min_length=1)
    account_sid: Optional[str] = Field(default=None, alias="AccountSid")
    from_number: str = Field(alias="From", min_length=1)
    to_number: str = Field(alias="To", min_length=1)
    body: str = Field(default="", alias="Body")
    num_media: int = Field(default=0, alias="NumMedia")

    def media_urls(self) -> list[str]:
        """Collect MediaUrl0..MediaUrlN from the extra fields."""
        extra = self.model_extra or {}
        return [str(extra[f"MediaUrl{i}"]) for i in range(self.num_media) if extra.get(f"MediaUrl{i}")]


class WebhookAck(BaseModel):
    status: str
