from datetime import datetime

from pydantic import BaseModel, Field


class PatientCreateRequest(BaseModel):
    full_name: str = Field(min_length=2, max_length=120)
    age: int | None = Field(default=None, ge=0, le=130)
    gender: str | None = Field(default=None, max_length=20)
    relationship_to_customer: str | None = Field(default=None, max_length=40)
    medical_notes: str | None = Field(default=None, max_length=2000)


class PatientResponse(BaseModel):
    id: int
    customer_id: int
    full_name: str
    age: int | None
    gender: str | None
    relationship_to_customer: str | None
    medical_notes: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
