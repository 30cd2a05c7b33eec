import logging
from datetime import UTC, datetime
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from homecare.core.events import event_publisher
from homecare.core.exceptions import (
    InvalidSchedule,
    InvalidTransition,
    ProviderNotQualified,
    ProviderUnavailable,
)
from homecare.core.metrics import BOOKING_TRANSITIONS
from homecare.db.models import (
    AvailabilityStatus,
    Booking,
    BookingRejectionRequest,
    BookingStatus,
    PaymentStatus,
    ProviderProfile,
    RejectionStatus,
    Service,
    User,
    UserRole,
)
from homecare.db.models.booking import ASSIGNABLE_STATUSES, CANCELLABLE_STATUSES, TERMINAL_STATUSES
from homecare.schemas.booking import BookingCreateRequest
from homecare.services.catalog_service import get_provider_profile, is_qualified
from homecare.services.consent_service import ensure_consents
from homecare.services.patient_service import get_patient

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.IN_PROGRESS.value)


def _is_admin(actor: User) -> bool:
    return actor.role == UserRole.ADMIN.value


def _provider_profile_id(db: Session, actor: User) -> int | None:
    if actor.role != UserRole.PROVIDER.value:
        return None
    return db.scalar(select(ProviderProfile.id).where(ProviderProfile.user_id == actor.id))


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")


def _get_booking(db: Session, booking_id: int, for_update: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if for_update:
        query = query.with_for_update()
    booking = db.scalar(query)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


def _invalid_transition(booking: Booking, target: BookingStatus) -> InvalidTransition:
    return InvalidTransition(
        f"Cannot move booking from {booking.status} to {target.value}",
        detail={"booking_id": booking.id, "status": booking.status, "target_status": target.value},
    )


def _transition(booking: Booking, target: BookingStatus) -> str:
    previous = booking.status
    booking.status = target.value
    return previous


def publish_transition(booking: Booking, previous: str, event_type: str, **extra) -> None:
    if previous != booking.status:
        BOOKING_TRANSITIONS.labels(from_status=previous, to_status=booking.status).inc()
    logger.info(
        "booking_transition booking_id=%s from=%s to=%s provider_id=%s",
        booking.id,
        previous,
        booking.status,
        booking.provider_id,
    )
    payload = {
        "booking_id": booking.id,
        "status": booking.status,
        "previous_status": previous,
        "provider_id": booking.provider_id,
    }
    payload.update(extra)
    event_publisher.publish(event_type, payload)


def release_provider(db: Session, provider_id: int | None, exclude_booking_id: int | None = None) -> None:
    """Return a busy provider to available once no booking is in progress."""
    if provider_id is None:
        return
    provider = db.scalar(select(ProviderProfile).where(ProviderProfile.id == provider_id))
    if not provider or provider.availability_status != AvailabilityStatus.BUSY.value:
        return

    query = select(Booking.id).where(
        Booking.provider_id == provider_id,
        Booking.status == BookingStatus.IN_PROGRESS.value,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    if db.scalar(query.limit(1)) is None:
        provider.availability_status = AvailabilityStatus.AVAILABLE.value


def close_pending_rejections(db: Session, booking_id: int) -> int:
    """Retire pending rejection requests once their booking can no longer be released."""
    closed = db.execute(
        update(BookingRejectionRequest)
        .where(
            BookingRejectionRequest.booking_id == booking_id,
            BookingRejectionRequest.status == RejectionStatus.PENDING.value,
        )
        .values(status=RejectionStatus.CLOSED.value, reviewed_at=datetime.now(UTC))
    ).rowcount
    if closed:
        logger.info("rejection_requests_closed booking_id=%s count=%s", booking_id, closed)
    return closed


def create_booking(
    db: Session,
    customer: User,
    payload: BookingCreateRequest,
    now: datetime | None = None,
) -> Booking:
    ensure_consents(db=db, user_id=customer.id)

    current_time = now or datetime.now(UTC)
    if payload.duration_hours <= 0:
        raise InvalidSchedule("Duration must be positive", detail={"duration_hours": payload.duration_hours})
    scheduled_start = datetime.combine(payload.scheduled_date, payload.scheduled_time, tzinfo=UTC)
    if scheduled_start <= current_time:
        raise InvalidSchedule(
            "Scheduled date and time must be in the future",
            detail={"scheduled_at": scheduled_start.isoformat()},
        )

    service = db.scalar(select(Service).where(Service.id == payload.service_id, Service.is_active.is_(True)))
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")

    if payload.patient_id is not None:
        get_patient(db=db, patient_id=payload.patient_id, customer_id=customer.id)

    total_amount = payload.total_amount
    if total_amount is None:
        total_amount = Decimal(service.price) * payload.duration_hours

    booking = Booking(
        customer_id=customer.id,
        service_id=service.id,
        patient_id=payload.patient_id,
        scheduled_date=payload.scheduled_date,
        scheduled_time=payload.scheduled_time,
        duration_hours=payload.duration_hours,
        total_amount=total_amount,
        special_instructions=payload.special_instructions,
        status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)

    logger.info("booking_created booking_id=%s customer_id=%s service_id=%s", booking.id, customer.id, service.id)
    event_publisher.publish(
        "booking.created",
        {"booking_id": booking.id, "customer_id": customer.id, "status": booking.status},
    )
    return booking


def list_unassigned_work(db: Session, limit: int = 50, offset: int = 0) -> list[Booking]:
    """Bookings needing admin attention, oldest scheduled first.

    Includes bookings that already carry a provider so they can be reassigned.
    """
    return list(
        db.scalars(
            select(Booking)
            .where(Booking.status.not_in(TERMINAL_STATUSES))
            .order_by(Booking.scheduled_date, Booking.scheduled_time, Booking.id)
            .limit(limit)
            .offset(offset)
        ).all()
    )


def list_all_bookings(
    db: Session,
    status_filter: BookingStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Booking]:
    query = select(Booking)
    if status_filter:
        query = query.where(Booking.status == status_filter.value)
    return list(
        db.scalars(
            query.order_by(Booking.scheduled_date, Booking.scheduled_time, Booking.id).limit(limit).offset(offset)
        ).all()
    )


def list_customer_bookings(
    db: Session,
    customer_id: int,
    status_filter: BookingStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Booking]:
    query = select(Booking).where(Booking.customer_id == customer_id)
    if status_filter:
        query = query.where(Booking.status == status_filter.value)
    return list(db.scalars(query.order_by(Booking.id).limit(limit).offset(offset)).all())


def list_provider_bookings(
    db: Session,
    provider_id: int,
    status_filter: BookingStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Booking]:
    query = select(Booking).where(Booking.provider_id == provider_id)
    if status_filter:
        query = query.where(Booking.status == status_filter.value)
    return list(
        db.scalars(
            query.order_by(Booking.scheduled_date, Booking.scheduled_time, Booking.id).limit(limit).offset(offset)
        ).all()
    )


def get_booking_for_actor(db: Session, booking_id: int, actor: User) -> Booking:
    booking = _get_booking(db=db, booking_id=booking_id)
    if booking.customer_id == actor.id or _can_operate(db=db, booking=booking, actor=actor):
        return booking
    raise _forbidden()


def _abort(db: Session, exc: Exception) -> Exception:
    db.rollback()
    return exc


def _can_operate(db: Session, booking: Booking, actor: User) -> bool:
    if _is_admin(actor):
        return True
    return booking.provider_id is not None and booking.provider_id == _provider_profile_id(db=db, actor=actor)


def _has_conflicting_booking(db: Session, booking: Booking, provider_id: int) -> bool:
    # Visits can run past midnight, so bookings on earlier days are candidates too.
    candidates = db.scalars(
        select(Booking).where(
            Booking.provider_id == provider_id,
            Booking.scheduled_date <= booking.scheduled_end.date(),
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.id != booking.id,
        )
    ).all()
    return any(
        other.scheduled_start < booking.scheduled_end and booking.scheduled_start < other.scheduled_end
        for other in candidates
    )


def assign_provider(db: Session, booking_id: int, provider_id: int) -> Booking:
    booking = _get_booking(db=db, booking_id=booking_id, for_update=True)
    if booking.status not in ASSIGNABLE_STATUSES:
        raise _abort(db, _invalid_transition(booking, BookingStatus.CONFIRMED))

    if booking.provider_id == provider_id and booking.status == BookingStatus.CONFIRMED.value:
        db.rollback()
        return booking

    provider = get_provider_profile(db=db, provider_id=provider_id)
    if not is_qualified(db=db, provider_id=provider.id, service_id=booking.service_id):
        exc = ProviderNotQualified(
            "Provider does not offer this service",
            detail={"provider_id": provider.id, "service_id": booking.service_id},
        )
        raise _abort(db, exc)
    if not provider.is_available:
        exc = ProviderUnavailable(
            "Provider is not available",
            detail={"provider_id": provider.id, "availability_status": provider.availability_status},
        )
        raise _abort(db, exc)
    if _has_conflicting_booking(db=db, booking=booking, provider_id=provider.id):
        exc = ProviderUnavailable(
            "Provider has another booking at this time",
            detail={"provider_id": provider.id, "scheduled_date": booking.scheduled_date.isoformat()},
        )
        raise _abort(db, exc)

    previous_provider_id = booking.provider_id
    booking.provider_id = provider.id
    previous = _transition(booking, BookingStatus.CONFIRMED)
    db.commit()
    db.refresh(booking)

    publish_transition(booking, previous, "booking.assigned", previous_provider_id=previous_provider_id)
    return booking


def start_booking(db: Session, booking_id: int, actor: User) -> Booking:
    booking = _get_booking(db=db, booking_id=booking_id, for_update=True)
    if not _can_operate(db=db, booking=booking, actor=actor):
        raise _abort(db, _forbidden())
    if booking.status != BookingStatus.CONFIRMED.value or booking.provider_id is None:
        raise _abort(db, _invalid_transition(booking, BookingStatus.IN_PROGRESS))

    previous = _transition(booking, BookingStatus.IN_PROGRESS)
    booking.provider.availability_status = AvailabilityStatus.BUSY.value
    db.commit()
    db.refresh(booking)

    publish_transition(booking, previous, "booking.started")
    return booking


def cancel_booking(db: Session, booking_id: int, actor: User) -> Booking:
    booking = _get_booking(db=db, booking_id=booking_id, for_update=True)
    if not (_is_admin(actor) or booking.customer_id == actor.id):
        raise _abort(db, _forbidden())
    if booking.status not in CANCELLABLE_STATUSES:
        raise _abort(db, _invalid_transition(booking, BookingStatus.CANCELLED))

    previous = booking.status
    booking.cancel()
    release_provider(db=db, provider_id=booking.provider_id, exclude_booking_id=booking.id)
    close_pending_rejections(db=db, booking_id=booking.id)
    db.commit()
    db.refresh(booking)

    publish_transition(booking, previous, "booking.cancelled")
    return booking


def complete_booking(db: Session, booking_id: int, actor: User) -> Booking:
    booking = _get_booking(db=db, booking_id=booking_id, for_update=True)
    if not _can_operate(db=db, booking=booking, actor=actor):
        raise _abort(db, _forbidden())
    if booking.status != BookingStatus.IN_PROGRESS.value:
        raise _abort(db, _invalid_transition(booking, BookingStatus.COMPLETED))

    previous = booking.status
    booking.complete()
    release_provider(db=db, provider_id=booking.provider_id, exclude_booking_id=booking.id)
    close_pending_rejections(db=db, booking_id=booking.id)
    db.commit()
    db.refresh(booking)

    publish_transition(booking, previous, "booking.completed")
    return booking
