import logging
from datetime import UTC, datetime

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homecare.core.events import event_publisher
from homecare.core.exceptions import AlreadyResolved, DuplicateRequest, InvalidRequest, InvalidTransition, NotAssigned
from homecare.db.models import (
    Booking,
    BookingRejectionRequest,
    BookingStatus,
    ProviderProfile,
    RejectionStatus,
    User,
)
from homecare.db.models.booking import CANCELLABLE_STATUSES
from homecare.services.booking_service import publish_transition, release_provider

logger = logging.getLogger(__name__)


def request_rejection(db: Session, booking_id: int, provider_user: User, reason: str) -> BookingRejectionRequest:
    if not reason or not reason.strip():
        raise InvalidRequest("Rejection reason is required")

    booking = db.scalar(select(Booking).where(Booking.id == booking_id))
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    provider_id = db.scalar(select(ProviderProfile.id).where(ProviderProfile.user_id == provider_user.id))
    if provider_id is None or booking.provider_id != provider_id:
        raise NotAssigned(
            "Only the assigned provider can request a rejection",
            detail={"booking_id": booking.id},
        )
    if booking.status not in CANCELLABLE_STATUSES:
        raise InvalidTransition(
            f"Cannot reject a {booking.status} booking",
            detail={"booking_id": booking.id, "status": booking.status},
        )

    pending_id = db.scalar(
        select(BookingRejectionRequest.id).where(
            BookingRejectionRequest.booking_id == booking.id,
            BookingRejectionRequest.provider_id == provider_id,
            BookingRejectionRequest.status == RejectionStatus.PENDING.value,
        )
    )
    if pending_id:
        raise DuplicateRequest(
            "A rejection request is already pending for this booking",
            detail={"rejection_request_id": pending_id},
        )

    rejection = BookingRejectionRequest(
        booking_id=booking.id,
        provider_id=provider_id,
        rejection_reason=reason.strip(),
        status=RejectionStatus.PENDING.value,
    )
    db.add(rejection)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateRequest("A rejection request is already pending for this booking") from None
    db.refresh(rejection)

    logger.info(
        "rejection_requested request_id=%s booking_id=%s provider_id=%s",
        rejection.id,
        booking.id,
        provider_id,
    )
    event_publisher.publish(
        "rejection_request.created",
        {"rejection_request_id": rejection.id, "booking_id": booking.id, "provider_id": provider_id},
    )
    return rejection


def list_pending_rejections(db: Session, limit: int = 50, offset: int = 0) -> list[BookingRejectionRequest]:
    return list_rejections(db=db, status_filter=RejectionStatus.PENDING, limit=limit, offset=offset)


def list_rejections(
    db: Session,
    status_filter: RejectionStatus | None = None,
    provider_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[BookingRejectionRequest]:
    query = select(BookingRejectionRequest)
    if status_filter:
        query = query.where(BookingRejectionRequest.status == status_filter.value)
    if provider_id is not None:
        query = query.where(BookingRejectionRequest.provider_id == provider_id)
    return list(
        db.scalars(
            query.order_by(BookingRejectionRequest.requested_at, BookingRejectionRequest.id)
            .limit(limit)
            .offset(offset)
        ).all()
    )


def _resolve(
    db: Session,
    request_id: int,
    decision: RejectionStatus,
    admin: User,
    admin_notes: str | None,
) -> BookingRejectionRequest:
    rejection = db.scalar(select(BookingRejectionRequest).where(BookingRejectionRequest.id == request_id))
    if not rejection:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Rejection request not found")

    updated = db.execute(
        update(BookingRejectionRequest)
        .where(
            BookingRejectionRequest.id == request_id,
            BookingRejectionRequest.status == RejectionStatus.PENDING.value,
        )
        .values(
            status=decision.value,
            reviewed_by_id=admin.id,
            reviewed_at=datetime.now(UTC),
            admin_notes=admin_notes,
        )
    )
    if updated.rowcount != 1:
        db.rollback()
        current_status = db.scalar(
            select(BookingRejectionRequest.status).where(BookingRejectionRequest.id == request_id)
        )
        raise AlreadyResolved(
            "Rejection request already resolved",
            detail={"rejection_request_id": request_id, "status": current_status},
        )
    return rejection


def approve_rejection(
    db: Session,
    request_id: int,
    admin: User,
    admin_notes: str | None = None,
) -> tuple[BookingRejectionRequest, Booking]:
    """Release the provider; the booking returns to the unassigned queue as pending."""
    rejection = _resolve(
        db=db,
        request_id=request_id,
        decision=RejectionStatus.APPROVED,
        admin=admin,
        admin_notes=admin_notes,
    )
    booking = db.scalar(select(Booking).where(Booking.id == rejection.booking_id).with_for_update())

    previous = booking.status
    released = booking.provider_id == rejection.provider_id and booking.status in CANCELLABLE_STATUSES
    if released:
        booking.provider_id = None
        booking.status = BookingStatus.PENDING.value
        release_provider(db=db, provider_id=rejection.provider_id, exclude_booking_id=booking.id)
    db.commit()
    db.refresh(rejection)
    db.refresh(booking)

    logger.info(
        "rejection_approved request_id=%s booking_id=%s admin_id=%s released=%s",
        rejection.id,
        booking.id,
        admin.id,
        released,
    )
    event_publisher.publish(
        "rejection_request.approved",
        {"rejection_request_id": rejection.id, "booking_id": booking.id, "provider_id": rejection.provider_id},
    )
    if released:
        publish_transition(booking, previous, "booking.unassigned", released_provider_id=rejection.provider_id)
    return rejection, booking


def deny_rejection(
    db: Session,
    request_id: int,
    admin: User,
    admin_notes: str | None = None,
) -> tuple[BookingRejectionRequest, Booking]:
    rejection = _resolve(
        db=db,
        request_id=request_id,
        decision=RejectionStatus.DENIED,
        admin=admin,
        admin_notes=admin_notes,
    )
    db.commit()
    db.refresh(rejection)
    booking = db.scalar(select(Booking).where(Booking.id == rejection.booking_id))

    logger.info("rejection_denied request_id=%s booking_id=%s admin_id=%s", rejection.id, booking.id, admin.id)
    event_publisher.publish(
        "rejection_request.denied",
        {"rejection_request_id": rejection.id, "booking_id": booking.id, "provider_id": rejection.provider_id},
    )
    return rejection, booking
