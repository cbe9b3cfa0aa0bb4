"""
schemas.py - PaymentAgent Pydantic v2 data contracts.

Defines:
  - CreatePaymentRequest   (POST /api/pay/create body - optional)
  - ConfirmPaymentRequest  (POST /api/pay/confirm body)
  - PaymentCreated         (create response, includes the QR data URI)
  - PaymentStatusResponse  (status / confirm response)

Wire format is camelCase (the SPA sends paymentId, not payment_id);
Python attributes stay snake_case via alias_generator=to_camel.
"""
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from backend.agents.payment_agent.store import PaymentSession, PaymentStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class CreatePaymentRequest(_CamelModel):
    # Omitted, non-numeric or non-positive → settings.payment_amount
    amount: Optional[float] = None

    @field_validator("amount", mode="before")
    @classmethod
    def positive_or_default(cls, value: Any) -> Optional[float]:
        if isinstance(value, bool):
            return None
        try:
            amount = float(value)
        except (TypeError, ValueError):
            return None
        return amount if math.isfinite(amount) and amount > 0 else None


class ConfirmPaymentRequest(_CamelModel):
    # Optional at the schema level so a missing id is a 400, not a 422
    payment_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class PaymentCreated(_CamelModel):
    payment_id: str
    amount: float
    qr_image: str = Field(description="data:image/png;base64,... of pay_url")
    expires_at: int = Field(description="Epoch milliseconds")
    pay_url: str


class PaymentStatusResponse(_CamelModel):
    """
    payment_token is present ONLY when status == paid - a caller who merely
    learned the id (e.g. from the QR link) must not obtain the bearer secret.
    """
    status: PaymentStatus
    payment_id: str
    payment_token: Optional[str] = None

    @classmethod
    def from_session(cls, session: PaymentSession) -> "PaymentStatusResponse":
        return cls(
            status=session.status,
            payment_id=session.id,
            payment_token=session.token if session.status is PaymentStatus.paid else None,
        )


__all__ = [
    "CreatePaymentRequest",
    "ConfirmPaymentRequest",
    "PaymentCreated",
    "PaymentStatusResponse",
]
