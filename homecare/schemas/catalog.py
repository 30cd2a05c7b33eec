from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from homecare.db.models.service_request import ServiceRequestStatus, ServiceRequestType


class ServiceCreateRequest(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    category: str | None = Field(default=None, max_length=80)
    description: str | None = Field(default=None, max_length=500)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    duration_hours: int = Field(default=1, ge=1, le=24)


class ServiceResponse(BaseModel):
    id: int
    name: str
    category: str | None
    description: str | None
    price: Decimal
    duration_hours: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProviderServiceAddRequest(BaseModel):
    service_id: int


class ProviderServicesSetRequest(BaseModel):
    service_ids: list[int]


class ServiceChangeResult(BaseModel):
    service_id: int
    action: str
    ok: bool
    error: str | None = None


class ServiceRequestCreate(BaseModel):
    service_id: int
    request_type: ServiceRequestType
    notes: str | None = Field(default=None, max_length=1000)


class ServiceRequestReject(BaseModel):
    reason: str = Field(max_length=1000)


class ServiceRequestResponse(BaseModel):
    id: int
    provider_id: int
    service_id: int
    request_type: ServiceRequestType
    status: ServiceRequestStatus
    notes: str | None
    rejection_reason: str | None
    requested_at: datetime
    reviewed_by_id: int | None
    reviewed_at: datetime | None

    model_config = {"from_attributes": True}


class ProviderProfileResponse(BaseModel):
    id: int
    user_id: int
    display_name: str
    qualification: str | None
    experience_years: int | None
    availability_status: str
    created_at: datetime

    model_config = {"from_attributes": True}
