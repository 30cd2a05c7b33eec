from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field

from homecare.db.models.booking import BookingStatus, PaymentStatus


class BookingCreateRequest(BaseModel):
    service_id: int
    patient_id: int | None = None
    scheduled_date: date
    scheduled_time: time
    duration_hours: int
    total_amount: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    special_instructions: str | None = Field(default=None, max_length=2000)


class AssignProviderRequest(BaseModel):
    provider_id: int


class BookingResponse(BaseModel):
    id: int
    customer_id: int
    service_id: int
    patient_id: int | None
    provider_id: int | None
    scheduled_date: date
    scheduled_time: time
    duration_hours: int
    total_amount: Decimal
    special_instructions: str | None
    status: BookingStatus
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None
    completed_at: datetime | None

    model_config = {"from_attributes": True}
