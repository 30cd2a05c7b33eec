import logging

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from homecare.core.config import settings
from homecare.core.events import event_publisher
from homecare.core.exceptions import AlreadyResolved, ConsentRequired
from homecare.db.models import ConsentRecord, ConsentType, Patient, User
from homecare.schemas.consent import RequiredConsent

logger = logging.getLogger(__name__)

CONSENT_DOCUMENTS: dict[str, tuple[str, str]] = {
    ConsentType.TERMS_AND_CONDITIONS.value: (
        "Terms and Conditions",
        "Agreement to use the home-care platform services",
    ),
    ConsentType.PRIVACY_POLICY.value: (
        "Privacy Policy",
        "How we collect, use, and protect your personal information",
    ),
    ConsentType.MEDICAL_DATA_SHARING.value: (
        "Medical Data Sharing",
        "Consent to share patient medical information with assigned healthcare providers",
    ),
    ConsentType.HIPAA_COMPLIANCE.value: (
        "HIPAA Compliance",
        "Understanding of HIPAA-like protections for your medical data",
    ),
    ConsentType.EMERGENCY_TREATMENT.value: (
        "Emergency Treatment",
        "Authorisation for providers to act in a medical emergency",
    ),
    ConsentType.DATA_RETENTION.value: (
        "Data Retention",
        "How long records are kept after the last booking",
    ),
}


def current_version(consent_type: ConsentType | str) -> str:
    value = consent_type.value if isinstance(consent_type, ConsentType) else consent_type
    return settings.consent_versions.get(value, "1.0")


def has_valid_consent(
    db: Session,
    user_id: int,
    consent_type: ConsentType | str,
    patient_id: int | None = None,
) -> bool:
    """True iff an unrevoked acceptance of the current version exists.

    A patient-scoped check is also satisfied by a user-level acceptance.
    """
    value = consent_type.value if isinstance(consent_type, ConsentType) else consent_type
    query = select(ConsentRecord.id).where(
        ConsentRecord.user_id == user_id,
        ConsentRecord.consent_type == value,
        ConsentRecord.consent_version == current_version(value),
        ConsentRecord.is_accepted.is_(True),
        ConsentRecord.revoked_at.is_(None),
    )
    if patient_id is None:
        query = query.where(ConsentRecord.patient_id.is_(None))
    else:
        query = query.where(or_(ConsentRecord.patient_id.is_(None), ConsentRecord.patient_id == patient_id))
    return db.scalar(query.limit(1)) is not None


def missing_consents(db: Session, user_id: int, patient_id: int | None = None) -> list[str]:
    return [
        consent_type
        for consent_type in settings.required_consent_types
        if not has_valid_consent(db=db, user_id=user_id, consent_type=consent_type, patient_id=patient_id)
    ]


def ensure_consents(db: Session, user_id: int, patient_id: int | None = None) -> None:
    missing = missing_consents(db=db, user_id=user_id, patient_id=patient_id)
    if missing:
        logger.info("consent_gate_blocked user_id=%s missing=%s", user_id, ",".join(missing))
        raise ConsentRequired(missing)


def get_required_consents(db: Session, user_id: int, patient_id: int | None = None) -> list[RequiredConsent]:
    required: list[RequiredConsent] = []
    for consent_type in settings.required_consent_types:
        title, description = CONSENT_DOCUMENTS.get(consent_type, (consent_type, ""))
        required.append(
            RequiredConsent(
                consent_type=consent_type,
                version=current_version(consent_type),
                title=title,
                description=description,
                accepted=has_valid_consent(
                    db=db,
                    user_id=user_id,
                    consent_type=consent_type,
                    patient_id=patient_id,
                ),
            )
        )
    return required


def accept_consent(
    db: Session,
    user: User,
    consent_type: ConsentType,
    version: str,
    patient_id: int | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ConsentRecord:
    if patient_id is not None:
        patient = db.scalar(select(Patient).where(Patient.id == patient_id))
        if not patient or patient.customer_id != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")

    existing = db.scalar(
        select(ConsentRecord)
        .where(
            ConsentRecord.user_id == user.id,
            ConsentRecord.consent_type == consent_type.value,
            ConsentRecord.consent_version == version,
            ConsentRecord.patient_id.is_(None) if patient_id is None else ConsentRecord.patient_id == patient_id,
            ConsentRecord.is_accepted.is_(True),
            ConsentRecord.revoked_at.is_(None),
        )
        .order_by(ConsentRecord.id.desc())
        .limit(1)
    )
    if existing:
        return existing

    record = ConsentRecord(
        user_id=user.id,
        patient_id=patient_id,
        consent_type=consent_type.value,
        consent_version=version,
    )
    record.accept(ip_address=ip_address, user_agent=user_agent)
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(
        "consent_accepted user_id=%s consent_type=%s version=%s patient_id=%s",
        user.id,
        consent_type.value,
        version,
        patient_id,
    )
    event_publisher.publish(
        "consent.accepted",
        {"consent_id": record.id, "user_id": user.id, "consent_type": consent_type.value, "version": version},
    )
    return record


def revoke_consent(db: Session, consent_id: int, user: User, reason: str | None = None) -> ConsentRecord:
    record = db.scalar(select(ConsentRecord).where(ConsentRecord.id == consent_id))
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consent record not found")
    if record.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
    if record.revoked_at is not None:
        raise AlreadyResolved(
            "Consent already revoked",
            detail={"consent_id": record.id, "revoked_at": record.revoked_at.isoformat()},
        )

    record.revoke(reason=reason)
    db.commit()
    db.refresh(record)

    logger.info("consent_revoked user_id=%s consent_id=%s", user.id, record.id)
    event_publisher.publish(
        "consent.revoked",
        {"consent_id": record.id, "user_id": user.id, "consent_type": record.consent_type},
    )
    return record


def list_user_consents(db: Session, user_id: int) -> list[ConsentRecord]:
    return list(
        db.scalars(
            select(ConsentRecord)
            .where(ConsentRecord.user_id == user_id)
            .order_by(ConsentRecord.created_at.desc(), ConsentRecord.id.desc())
        ).all()
    )
