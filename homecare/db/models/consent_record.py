from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from homecare.db.base import Base


class ConsentType(str, Enum):
    TERMS_AND_CONDITIONS = "terms_and_conditions"
    PRIVACY_POLICY = "privacy_policy"
    MEDICAL_DATA_SHARING = "medical_data_sharing"
    HIPAA_COMPLIANCE = "hipaa_compliance"
    EMERGENCY_TREATMENT = "emergency_treatment"
    DATA_RETENTION = "data_retention"


class ConsentRecord(Base):
    """One acceptance of one version of a policy document.

    Records are append-only: a new version is a new row, and revocation only
    stamps ``revoked_at`` on the existing row.
    """

    __tablename__ = "consent_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id: Mapped[int | None] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"), nullable=True, index=True
    )
    consent_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    consent_version: Mapped[str] = mapped_column(String(20), nullable=False)
    is_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revocation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    @property
    def is_valid(self) -> bool:
        return self.is_accepted and self.revoked_at is None

    def accept(self, ip_address: str | None, user_agent: str | None) -> None:
        self.is_accepted = True
        self.accepted_at = datetime.now(UTC)
        self.ip_address = ip_address
        self.user_agent = user_agent

    def revoke(self, reason: str | None) -> None:
        self.revoked_at = datetime.now(UTC)
        self.revocation_reason = reason
