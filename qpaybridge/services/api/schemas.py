"""API request/response schemas for the public endpoints.

Field aliases keep the camelCase JSON the web client already sends.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class InvoiceCreateRequest(BaseModel):
    """Payload of `POST /api/create-invoice`; email presence is checked by the route."""

    model_config = ConfigDict(populate_by_name=True)

    promo_code: str | None = Field(default=None, alias="promoCode")
    email: str | None = None


class PaymentStatusResponse(BaseModel):
    status: str
    verified: bool = False
    details: dict[str, Any] | None = None


class CallbackRequest(BaseModel):
    payment_id: str = Field(min_length=1)


class CallbackResponse(BaseModel):
    ok: bool = True
    status: str


class ContactRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    message: str = Field(min_length=1)
    recaptcha_response: str = Field(min_length=1, alias="recaptchaResponse")


class EmailSentResponse(BaseModel):
    message: str
    message_id: str
