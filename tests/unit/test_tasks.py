from datetime import UTC, datetime, time, timedelta

from homecare.db.models import PaymentMethod, PaymentTiming
from homecare.services.booking_service import assign_provider
from homecare.services.payment_gateway import DummyPaymentGateway, GatewayOutcome
from homecare.services.payment_service import initiate_payment
from homecare.tasks.payments import reconcile_pending_payments
from homecare.tasks.reminders import count_upcoming_bookings_for_reminder


def test_count_upcoming_bookings_for_reminder_counts_only_near_window(db, customer, service, provider, make_booking):
    day = datetime.now(UTC).date() + timedelta(days=7)
    assigned = make_booking(customer, service, scheduled_time=time(10, 0), scheduled_date=day)
    make_booking(customer, service, scheduled_time=time(10, 30), scheduled_date=day)
    assign_provider(db=db, booking_id=assigned.id, provider_id=provider.id)

    near = datetime.combine(day, time(9, 0), tzinfo=UTC)
    far = datetime.combine(day, time(7, 0), tzinfo=UTC)

    assert count_upcoming_bookings_for_reminder(db=db, now=near) == 1
    assert count_upcoming_bookings_for_reminder(db=db, now=far) == 0


def test_reconcile_pending_payments_settles_what_the_gateway_reports(db, customer, service, make_booking):
    gateway = DummyPaymentGateway(GatewayOutcome.PENDING)
    intents = [
        initiate_payment(
            db=db,
            booking_id=make_booking(customer, service, scheduled_time=time(hour, 0)).id,
            customer=customer,
            method=PaymentMethod.GATEWAY,
            timing=PaymentTiming.ADVANCE,
            gateway=gateway,
        )
        for hour in (9, 12, 15)
    ]
    gateway.settle(intents[0].transaction_id, GatewayOutcome.SUCCESS)
    gateway.settle(intents[1].transaction_id, GatewayOutcome.FAILED)

    counts = reconcile_pending_payments(db=db, gateway=gateway)

    assert counts == {"checked": 3, "settled": 2, "errors": 0}
    second = reconcile_pending_payments(db=db, gateway=gateway)
    assert second == {"checked": 1, "settled": 0, "errors": 0}
