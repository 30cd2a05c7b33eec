from homecare.db.models.booking import Booking, BookingStatus, PaymentStatus
from homecare.db.models.consent_record import ConsentRecord, ConsentType
from homecare.db.models.patient import Patient
from homecare.db.models.payment import Payment, PaymentMethod, PaymentTiming
from homecare.db.models.provider_profile import AvailabilityStatus, ProviderProfile
from homecare.db.models.provider_service import ProviderService
from homecare.db.models.rejection_request import BookingRejectionRequest, RejectionStatus
from homecare.db.models.service import Service
from homecare.db.models.service_request import ServiceRequest, ServiceRequestStatus, ServiceRequestType
from homecare.db.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "ProviderProfile",
    "AvailabilityStatus",
    "Service",
    "ProviderService",
    "ServiceRequest",
    "ServiceRequestStatus",
    "ServiceRequestType",
    "Patient",
    "ConsentRecord",
    "ConsentType",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "BookingRejectionRequest",
    "RejectionStatus",
    "Payment",
    "PaymentMethod",
    "PaymentTiming",
]
