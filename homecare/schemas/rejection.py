from datetime import datetime

from pydantic import BaseModel, Field

from homecare.db.models.rejection_request import RejectionStatus
from homecare.schemas.booking import BookingResponse


class RejectionCreateRequest(BaseModel):
    booking_id: int
    reason: str = Field(max_length=1000)


class RejectionDecisionRequest(BaseModel):
    admin_notes: str | None = Field(default=None, max_length=1000)


class RejectionResponse(BaseModel):
    id: int
    booking_id: int
    provider_id: int
    rejection_reason: str
    status: RejectionStatus
    requested_at: datetime
    reviewed_by_id: int | None
    reviewed_at: datetime | None
    admin_notes: str | None

    model_config = {"from_attributes": True}


class RejectionDecisionResponse(BaseModel):
    request: RejectionResponse
    booking: BookingResponse
