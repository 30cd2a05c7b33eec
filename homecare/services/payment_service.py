import logging
from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from homecare.core.config import settings
from homecare.core.events import event_publisher
from homecare.core.exceptions import DuplicateRequest, InvalidTransition, PaymentInitiationFailed
from homecare.db.models import (
    Booking,
    BookingStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentTiming,
    ProviderProfile,
    User,
    UserRole,
)
from homecare.schemas.payment import PaymentIntent
from homecare.services.payment_gateway import GatewayOutcome, GatewayResult, PaymentGateway, PaymentGatewayError

logger = logging.getLogger(__name__)


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")


def _get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.scalar(select(Booking).where(Booking.id == booking_id))
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


def _get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.scalar(select(Payment).where(Payment.id == payment_id))
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


def _is_assigned_provider(db: Session, booking: Booking, actor: User) -> bool:
    if actor.role != UserRole.PROVIDER.value or booking.provider_id is None:
        return False
    provider_id = db.scalar(select(ProviderProfile.id).where(ProviderProfile.user_id == actor.id))
    return provider_id == booking.provider_id


def _mark_paid(payment: Payment, booking: Booking) -> None:
    payment.status = PaymentStatus.PAID.value
    payment.paid_at = datetime.now(UTC)
    booking.payment_status = PaymentStatus.PAID.value


def _intent(payment: Payment, **overrides) -> PaymentIntent:
    values = {
        "booking_id": payment.booking_id,
        "method": payment.method,
        "timing": payment.timing,
        "status": payment.status,
        "amount": payment.amount,
        "currency": payment.currency,
        "payment_id": payment.id,
        "transaction_id": payment.transaction_id,
        "redirect_url": payment.redirect_url,
        "message": payment.gateway_message,
    }
    values.update(overrides)
    return PaymentIntent(**values)


def initiate_payment(
    db: Session,
    booking_id: int,
    customer: User,
    method: PaymentMethod,
    timing: PaymentTiming,
    gateway: PaymentGateway,
    amount: Decimal | None = None,
) -> PaymentIntent:
    """Start settling a booking.

    Cash is recorded locally for collection on delivery. Gateway payments due
    after the service are deferred until the booking completes. Otherwise the
    gateway is called with no transaction open, and nothing is written unless
    it accepts the payment.
    """
    booking = _get_booking(db=db, booking_id=booking_id)
    if booking.customer_id != customer.id and customer.role != UserRole.ADMIN.value:
        raise _forbidden()
    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidTransition(
            "Cannot pay for a cancelled booking",
            detail={"booking_id": booking.id, "status": booking.status},
        )
    if booking.payment_status == PaymentStatus.PAID.value:
        raise DuplicateRequest("Booking is already paid", detail={"booking_id": booking.id})

    charge = amount if amount is not None else booking.total_amount
    currency = settings.payment_currency

    if method == PaymentMethod.CASH:
        payment = db.scalar(
            select(Payment).where(
                Payment.booking_id == booking.id,
                Payment.method == PaymentMethod.CASH.value,
                Payment.status == PaymentStatus.PENDING.value,
            )
        )
        if payment is None:
            payment = Payment(
                booking_id=booking.id,
                amount=charge,
                currency=currency,
                method=method.value,
                timing=timing.value,
                status=PaymentStatus.PENDING.value,
            )
            db.add(payment)
            db.commit()
            db.refresh(payment)
            logger.info("payment_cash_recorded payment_id=%s booking_id=%s", payment.id, booking.id)
            event_publisher.publish("payment.cash_recorded", {"payment_id": payment.id, "booking_id": booking.id})
        return _intent(payment, collect_on_delivery=True)

    if timing == PaymentTiming.POST_SERVICE and booking.status != BookingStatus.COMPLETED.value:
        logger.info("payment_deferred booking_id=%s", booking.id)
        return PaymentIntent(
            booking_id=booking.id,
            method=method,
            timing=timing,
            status="deferred",
            amount=charge,
            currency=currency,
            deferred=True,
            message="Payment is due after the service is completed",
        )

    booking_ref = booking.id
    customer_email = booking.customer.email
    order_id = f"booking-{booking_ref}-{uuid4().hex[:12]}"
    db.rollback()

    try:
        result = gateway.initiate(order_id=order_id, amount=charge, currency=currency, customer_email=customer_email)
    except PaymentGatewayError as exc:
        logger.warning("payment_initiation_error booking_id=%s error=%s", booking_ref, exc)
        raise PaymentInitiationFailed(str(exc)) from exc

    if result.outcome == GatewayOutcome.FAILED:
        logger.info("payment_initiation_declined booking_id=%s", booking_ref)
        raise PaymentInitiationFailed(result.message or "Payment was declined")

    booking = _get_booking(db=db, booking_id=booking_ref)
    payment = Payment(
        booking_id=booking_ref,
        amount=charge,
        currency=currency,
        method=method.value,
        timing=timing.value,
        status=PaymentStatus.PENDING.value,
        transaction_id=result.transaction_id,
        order_id=order_id,
        redirect_url=result.redirect_url,
        gateway_message=result.message,
    )
    if result.outcome == GatewayOutcome.SUCCESS:
        _mark_paid(payment, booking)
    db.add(payment)
    db.commit()
    db.refresh(payment)

    logger.info(
        "payment_initiated payment_id=%s booking_id=%s outcome=%s",
        payment.id,
        booking_ref,
        result.outcome.value,
    )
    event_publisher.publish(
        "payment.paid" if payment.status == PaymentStatus.PAID.value else "payment.initiated",
        {"payment_id": payment.id, "booking_id": booking_ref, "status": payment.status},
    )
    return _intent(payment)


def get_payment_for_actor(db: Session, payment_id: int, actor: User) -> Payment:
    payment = _get_payment(db=db, payment_id=payment_id)
    booking = payment.booking
    if actor.role == UserRole.ADMIN.value or booking.customer_id == actor.id:
        return payment
    if _is_assigned_provider(db=db, booking=booking, actor=actor):
        return payment
    raise _forbidden()


def _record_outcome(db: Session, payment_id: int, result: GatewayResult) -> Payment:
    payment = _get_payment(db=db, payment_id=payment_id)
    if payment.status != PaymentStatus.PENDING.value:
        return payment

    if result.outcome == GatewayOutcome.SUCCESS:
        _mark_paid(payment, payment.booking)
    elif result.outcome == GatewayOutcome.FAILED:
        payment.status = PaymentStatus.FAILED.value
        payment.gateway_message = result.message
        payment.booking.payment_status = PaymentStatus.FAILED.value
    else:
        return payment

    db.commit()
    db.refresh(payment)
    logger.info("payment_settled payment_id=%s status=%s", payment.id, payment.status)
    event_publisher.publish(
        f"payment.{payment.status}",
        {"payment_id": payment.id, "booking_id": payment.booking_id, "status": payment.status},
    )
    return payment


def refresh_payment_status(db: Session, payment_id: int, gateway: PaymentGateway) -> Payment:
    """Poll the gateway for a pending payment; only terminal outcomes are stored."""
    payment = _get_payment(db=db, payment_id=payment_id)
    if (
        payment.status != PaymentStatus.PENDING.value
        or payment.method != PaymentMethod.GATEWAY.value
        or not payment.transaction_id
    ):
        return payment

    transaction_id = payment.transaction_id
    db.rollback()
    try:
        result = gateway.check_status(transaction_id)
    except PaymentGatewayError as exc:
        logger.warning("payment_refresh_error payment_id=%s error=%s", payment_id, exc)
        raise PaymentInitiationFailed(str(exc)) from exc
    return _record_outcome(db=db, payment_id=payment_id, result=result)


def confirm_cash_payment(db: Session, payment_id: int, actor: User) -> Payment:
    payment = _get_payment(db=db, payment_id=payment_id)
    booking = payment.booking
    if actor.role != UserRole.ADMIN.value and not _is_assigned_provider(db=db, booking=booking, actor=actor):
        raise _forbidden()
    if payment.method != PaymentMethod.CASH.value or payment.status != PaymentStatus.PENDING.value:
        raise InvalidTransition(
            "Only a pending cash payment can be confirmed",
            detail={"payment_id": payment.id, "method": payment.method, "status": payment.status},
        )

    _mark_paid(payment, booking)
    db.commit()
    db.refresh(payment)

    logger.info("payment_cash_confirmed payment_id=%s booking_id=%s actor_id=%s", payment.id, booking.id, actor.id)
    event_publisher.publish(
        "payment.paid",
        {"payment_id": payment.id, "booking_id": booking.id, "status": payment.status},
    )
    return payment


def list_pending_gateway_payments(db: Session, limit: int = 100) -> list[int]:
    return list(
        db.scalars(
            select(Payment.id)
            .where(
                Payment.method == PaymentMethod.GATEWAY.value,
                Payment.status == PaymentStatus.PENDING.value,
                Payment.transaction_id.is_not(None),
            )
            .order_by(Payment.id)
            .limit(limit)
        ).all()
    )
