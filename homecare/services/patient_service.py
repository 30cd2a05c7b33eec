import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from homecare.core.events import event_publisher
from homecare.db.models import Patient, User
from homecare.schemas.patient import PatientCreateRequest
from homecare.services.consent_service import ensure_consents

logger = logging.getLogger(__name__)


def create_patient(db: Session, customer: User, payload: PatientCreateRequest) -> Patient:
    ensure_consents(db=db, user_id=customer.id)

    patient = Patient(
        customer_id=customer.id,
        full_name=payload.full_name,
        age=payload.age,
        gender=payload.gender,
        relationship_to_customer=payload.relationship_to_customer,
        medical_notes=payload.medical_notes,
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)

    logger.info("patient_created patient_id=%s customer_id=%s", patient.id, customer.id)
    event_publisher.publish("patient.created", {"patient_id": patient.id, "customer_id": customer.id})
    return patient


def get_patient(db: Session, patient_id: int, customer_id: int | None = None) -> Patient:
    """Existence check; with ``customer_id`` also an ownership check."""
    patient = db.scalar(select(Patient).where(Patient.id == patient_id, Patient.is_active.is_(True)))
    if not patient or (customer_id is not None and patient.customer_id != customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return patient


def list_patients(db: Session, customer_id: int, limit: int = 20, offset: int = 0) -> list[Patient]:
    return list(
        db.scalars(
            select(Patient)
            .where(Patient.customer_id == customer_id, Patient.is_active.is_(True))
            .order_by(Patient.id)
            .limit(limit)
            .offset(offset)
        ).all()
    )
