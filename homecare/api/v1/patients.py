from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from homecare.api.deps import require_roles
from homecare.api.pagination import LimitParam, OffsetParam
from homecare.db.models import User, UserRole
from homecare.db.session import get_db
from homecare.schemas.patient import PatientCreateRequest, PatientResponse
from homecare.services import patient_service

router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreateRequest,
    current_user: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: Session = Depends(get_db),
) -> PatientResponse:
    patient = patient_service.create_patient(db=db, customer=current_user, payload=payload)
    return PatientResponse.model_validate(patient)


@router.get("", response_model=list[PatientResponse], status_code=status.HTTP_200_OK)
def list_patients(
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: Session = Depends(get_db),
) -> list[PatientResponse]:
    patients = patient_service.list_patients(db=db, customer_id=current_user.id, limit=limit, offset=offset)
    return [PatientResponse.model_validate(patient) for patient in patients]


@router.get("/{patient_id}", response_model=PatientResponse, status_code=status.HTTP_200_OK)
def get_patient(
    patient_id: int,
    current_user: User = Depends(require_roles(UserRole.CUSTOMER, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> PatientResponse:
    customer_id = None if current_user.role == UserRole.ADMIN.value else current_user.id
    patient = patient_service.get_patient(db=db, patient_id=patient_id, customer_id=customer_id)
    return PatientResponse.model_validate(patient)
