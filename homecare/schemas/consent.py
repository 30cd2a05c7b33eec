from datetime import datetime

from pydantic import BaseModel, Field

from homecare.db.models.consent_record import ConsentType


class RequiredConsent(BaseModel):
    consent_type: ConsentType
    version: str
    title: str
    description: str
    accepted: bool


class ConsentAcceptRequest(BaseModel):
    consent_type: ConsentType
    version: str = Field(min_length=1, max_length=20)
    patient_id: int | None = None


class ConsentRevokeRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class ConsentRecordResponse(BaseModel):
    id: int
    user_id: int
    patient_id: int | None
    consent_type: ConsentType
    consent_version: str
    is_accepted: bool
    accepted_at: datetime | None
    revoked_at: datetime | None
    revocation_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
