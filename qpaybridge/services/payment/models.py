"""Promo code persistence model and in-memory payment record."""

import time
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from qpaybridge.common.db import Base


PENDING = "PENDING"


class PromoCode(Base):
    """Discount code managed outside this service; read-only here."""

    __tablename__ = "promo_codes"

    # Stored uppercase; lookups uppercase the client-supplied code.
    promo_code: Mapped[str] = mapped_column(String(64), primary_key=True)
    discount_percentage: Mapped[int] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PaymentRecord(BaseModel):
    """Last known state of one invoice or gateway payment.

    `verified` is only ever set by a direct gateway answer (payment check or
    payment fetch), never by a synthesized default.
    """

    status: str = PENDING
    verified: bool = False
    details: dict[str, Any] | None = None
    promo_code: str | None = None
    email: str | None = None
    invoice_id: str | None = None
    updated_at: float = Field(default_factory=time.time)
