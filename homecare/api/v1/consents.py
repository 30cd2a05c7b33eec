from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from homecare.api.deps import get_current_user
from homecare.db.models import User
from homecare.db.session import get_db
from homecare.schemas.consent import (
    ConsentAcceptRequest,
    ConsentRecordResponse,
    ConsentRevokeRequest,
    RequiredConsent,
)
from homecare.services import consent_service

router = APIRouter(prefix="/consents", tags=["consents"])


@router.get("/required", response_model=list[RequiredConsent], status_code=status.HTTP_200_OK)
def get_required_consents(
    patient_id: int | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[RequiredConsent]:
    return consent_service.get_required_consents(db=db, user_id=current_user.id, patient_id=patient_id)


@router.post("/accept", response_model=ConsentRecordResponse, status_code=status.HTTP_201_CREATED)
def accept_consent(
    payload: ConsentAcceptRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConsentRecordResponse:
    record = consent_service.accept_consent(
        db=db,
        user=current_user,
        consent_type=payload.consent_type,
        version=payload.version,
        patient_id=payload.patient_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return ConsentRecordResponse.model_validate(record)


@router.post("/{consent_id}/revoke", response_model=ConsentRecordResponse, status_code=status.HTTP_200_OK)
def revoke_consent(
    consent_id: int,
    payload: ConsentRevokeRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConsentRecordResponse:
    record = consent_service.revoke_consent(
        db=db,
        consent_id=consent_id,
        user=current_user,
        reason=payload.reason if payload else None,
    )
    return ConsentRecordResponse.model_validate(record)


@router.get("", response_model=list[ConsentRecordResponse], status_code=status.HTTP_200_OK)
def list_my_consents(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ConsentRecordResponse]:
    records = consent_service.list_user_consents(db=db, user_id=current_user.id)
    return [ConsentRecordResponse.model_validate(record) for record in records]
