from datetime import UTC, datetime, time, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException

from homecare.core.events import event_publisher
from homecare.core.exceptions import (
    ConsentRequired,
    InvalidSchedule,
    InvalidTransition,
    ProviderNotQualified,
    ProviderUnavailable,
)
from homecare.db.models import AvailabilityStatus, BookingStatus, PaymentStatus, Patient, UserRole
from homecare.schemas.booking import BookingCreateRequest
from homecare.services.booking_service import (
    assign_provider,
    cancel_booking,
    complete_booking,
    create_booking,
    list_unassigned_work,
    start_booking,
)


def _payload(service_id: int, days: int = 7, **overrides) -> BookingCreateRequest:
    values = {
        "service_id": service_id,
        "scheduled_date": datetime.now(UTC).date() + timedelta(days=days),
        "scheduled_time": time(10, 0),
        "duration_hours": 2,
    }
    values.update(overrides)
    return BookingCreateRequest(**values)


def test_create_booking_starts_pending_with_derived_amount(db, customer, service):
    booking = create_booking(db=db, customer=customer, payload=_payload(service.id))

    assert booking.status == BookingStatus.PENDING.value
    assert booking.payment_status == PaymentStatus.PENDING.value
    assert booking.provider_id is None
    assert booking.total_amount == Decimal("1000.00")
    assert event_publisher.recent("booking.created")


def test_create_booking_requires_every_missing_consent(db, make_user, service):
    customer = make_user(UserRole.CUSTOMER)

    with pytest.raises(ConsentRequired) as exc_info:
        create_booking(db=db, customer=customer, payload=_payload(service.id))

    assert exc_info.value.missing_types == [
        "terms_and_conditions",
        "privacy_policy",
        "medical_data_sharing",
        "hipaa_compliance",
    ]


def test_create_booking_rejects_past_schedule(db, customer, service):
    with pytest.raises(InvalidSchedule):
        create_booking(db=db, customer=customer, payload=_payload(service.id, days=-1))


def test_create_booking_rejects_non_positive_duration(db, customer, service):
    with pytest.raises(InvalidSchedule):
        create_booking(db=db, customer=customer, payload=_payload(service.id, duration_hours=0))


def test_create_booking_uses_injected_clock(db, customer, service):
    payload = _payload(service.id, days=1)
    later = datetime.combine(payload.scheduled_date, time(12, 0), tzinfo=UTC)

    with pytest.raises(InvalidSchedule):
        create_booking(db=db, customer=customer, payload=payload, now=later)


def test_create_booking_rejects_foreign_patient(db, customer, make_user, service):
    other = make_user(UserRole.CUSTOMER, consented=True)
    patient = Patient(customer_id=other.id, full_name="Someone Else")
    db.add(patient)
    db.commit()

    with pytest.raises(HTTPException) as exc_info:
        create_booking(db=db, customer=customer, payload=_payload(service.id, patient_id=patient.id))
    assert exc_info.value.status_code == 404


def test_assign_qualified_available_provider_confirms_booking(db, customer, service, provider, make_booking):
    booking = make_booking(customer, service)

    assigned = assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)

    assert assigned.status == BookingStatus.CONFIRMED.value
    assert assigned.provider_id == provider.id


def test_assign_same_provider_twice_is_idempotent(db, customer, service, provider, make_booking):
    booking = make_booking(customer, service)
    assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)

    again = assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)

    assert again.status == BookingStatus.CONFIRMED.value
    assert again.provider_id == provider.id


def test_reassign_swaps_provider_and_keeps_confirmed(db, customer, service, make_provider, make_booking):
    first = make_provider(service)
    second = make_provider(service)
    booking = make_booking(customer, service)
    assign_provider(db=db, booking_id=booking.id, provider_id=first.id)

    reassigned = assign_provider(db=db, booking_id=booking.id, provider_id=second.id)

    assert reassigned.status == BookingStatus.CONFIRMED.value
    assert reassigned.provider_id == second.id


def test_assign_unqualified_provider_fails(db, customer, service, make_provider, make_booking):
    unqualified = make_provider()
    booking = make_booking(customer, service)

    with pytest.raises(ProviderNotQualified):
        assign_provider(db=db, booking_id=booking.id, provider_id=unqualified.id)


def test_assign_unavailable_provider_fails(db, customer, service, provider, make_booking):
    provider.availability_status = AvailabilityStatus.ON_LEAVE.value
    db.commit()
    booking = make_booking(customer, service)

    with pytest.raises(ProviderUnavailable):
        assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)


def test_assign_provider_with_overlapping_booking_fails(db, customer, service, provider, make_booking):
    morning = make_booking(customer, service, scheduled_time=time(9, 0))
    overlapping = make_booking(customer, service, scheduled_time=time(10, 0))
    afternoon = make_booking(customer, service, scheduled_time=time(11, 0))
    assign_provider(db=db, booking_id=morning.id, provider_id=provider.id)

    with pytest.raises(ProviderUnavailable):
        assign_provider(db=db, booking_id=overlapping.id, provider_id=provider.id)

    back_to_back = assign_provider(db=db, booking_id=afternoon.id, provider_id=provider.id)
    assert back_to_back.provider_id == provider.id


def test_overnight_booking_blocks_early_visit_next_day(db, customer, service, provider, make_booking):
    evening = datetime.now(UTC).date() + timedelta(days=7)
    overnight = make_booking(customer, service, scheduled_time=time(22, 0), scheduled_date=evening, duration_hours=4)
    early = make_booking(customer, service, scheduled_time=time(0, 30), scheduled_date=evening + timedelta(days=1))
    later = make_booking(customer, service, scheduled_time=time(2, 0), scheduled_date=evening + timedelta(days=1))
    assign_provider(db=db, booking_id=overnight.id, provider_id=provider.id)

    with pytest.raises(ProviderUnavailable):
        assign_provider(db=db, booking_id=early.id, provider_id=provider.id)

    assert assign_provider(db=db, booking_id=later.id, provider_id=provider.id).status == BookingStatus.CONFIRMED.value


def test_full_lifecycle_marks_provider_busy_then_available(db, customer, service, provider, make_booking):
    booking = make_booking(customer, service)
    assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)

    started = start_booking(db=db, booking_id=booking.id, actor=provider.user)
    db.refresh(provider)
    assert started.status == BookingStatus.IN_PROGRESS.value
    assert provider.availability_status == AvailabilityStatus.BUSY.value

    completed = complete_booking(db=db, booking_id=booking.id, actor=provider.user)
    db.refresh(provider)
    assert completed.status == BookingStatus.COMPLETED.value
    assert completed.completed_at is not None
    assert provider.availability_status == AvailabilityStatus.AVAILABLE.value


def test_complete_requires_in_progress(db, customer, service, provider, admin, make_booking):
    booking = make_booking(customer, service)
    assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)

    with pytest.raises(InvalidTransition):
        complete_booking(db=db, booking_id=booking.id, actor=admin)


def test_start_by_unassigned_provider_is_forbidden(db, customer, service, provider, make_provider, make_booking):
    stranger = make_provider(service)
    booking = make_booking(customer, service)
    assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)

    with pytest.raises(HTTPException) as exc_info:
        start_booking(db=db, booking_id=booking.id, actor=stranger.user)
    assert exc_info.value.status_code == 403


def test_cancel_pending_and_confirmed_bookings(db, customer, service, provider, make_booking):
    pending = make_booking(customer, service)
    confirmed = make_booking(customer, service, scheduled_time=time(14, 0))
    assign_provider(db=db, booking_id=confirmed.id, provider_id=provider.id)

    assert cancel_booking(db=db, booking_id=pending.id, actor=customer).status == BookingStatus.CANCELLED.value
    cancelled = cancel_booking(db=db, booking_id=confirmed.id, actor=customer)
    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancelled_at is not None


def test_cancel_completed_booking_is_invalid_transition(db, customer, service, provider, admin, make_booking):
    booking = make_booking(customer, service)
    assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)
    start_booking(db=db, booking_id=booking.id, actor=admin)
    complete_booking(db=db, booking_id=booking.id, actor=admin)

    with pytest.raises(InvalidTransition) as exc_info:
        cancel_booking(db=db, booking_id=booking.id, actor=customer)
    assert exc_info.value.detail["status"] == BookingStatus.COMPLETED.value


def test_cancel_in_progress_booking_is_invalid_transition(db, customer, service, provider, admin, make_booking):
    booking = make_booking(customer, service)
    assign_provider(db=db, booking_id=booking.id, provider_id=provider.id)
    start_booking(db=db, booking_id=booking.id, actor=admin)

    with pytest.raises(InvalidTransition):
        cancel_booking(db=db, booking_id=booking.id, actor=customer)


def test_cancel_by_other_customer_is_forbidden(db, customer, make_user, service, make_booking):
    booking = make_booking(customer, service)
    other = make_user(UserRole.CUSTOMER)

    with pytest.raises(HTTPException) as exc_info:
        cancel_booking(db=db, booking_id=booking.id, actor=other)
    assert exc_info.value.status_code == 403


def test_unassigned_work_excludes_terminal_and_orders_by_schedule(
    db, customer, service, provider, admin, make_booking
):
    later = make_booking(customer, service, scheduled_date=datetime.now(UTC).date() + timedelta(days=9))
    sooner = make_booking(customer, service, scheduled_date=datetime.now(UTC).date() + timedelta(days=3))
    assigned = make_booking(customer, service, scheduled_date=datetime.now(UTC).date() + timedelta(days=5))
    cancelled = make_booking(customer, service)
    completed = make_booking(customer, service, scheduled_time=time(15, 0))

    assign_provider(db=db, booking_id=assigned.id, provider_id=provider.id)
    cancel_booking(db=db, booking_id=cancelled.id, actor=customer)
    assign_provider(db=db, booking_id=completed.id, provider_id=provider.id)
    start_booking(db=db, booking_id=completed.id, actor=admin)
    complete_booking(db=db, booking_id=completed.id, actor=admin)

    work = list_unassigned_work(db=db)

    assert [booking.id for booking in work] == [sooner.id, assigned.id, later.id]
    assert all(booking.status not in ("cancelled", "completed") for booking in work)
