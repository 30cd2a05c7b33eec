from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from homecare.db.models.payment import PaymentMethod, PaymentTiming


class PaymentInitiateRequest(BaseModel):
    booking_id: int
    amount: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    method: PaymentMethod
    timing: PaymentTiming


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    amount: Decimal
    currency: str
    method: PaymentMethod
    timing: PaymentTiming
    status: str
    transaction_id: str | None
    redirect_url: str | None
    gateway_message: str | None
    created_at: datetime
    paid_at: datetime | None

    model_config = {"from_attributes": True}


class PaymentIntent(BaseModel):
    """What the caller should do next to settle a booking."""

    booking_id: int
    method: PaymentMethod
    timing: PaymentTiming
    status: str
    amount: Decimal
    currency: str
    payment_id: int | None = None
    transaction_id: str | None = None
    redirect_url: str | None = None
    collect_on_delivery: bool = False
    deferred: bool = False
    message: str | None = None
