import os
import threading
import time as clock
from datetime import UTC, datetime, time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from homecare.core.exceptions import InvalidTransition
from homecare.db.base import Base
from homecare.db.models import (
    Booking,
    BookingStatus,
    ProviderProfile,
    ProviderService,
    Service,
    User,
    UserRole,
)
from homecare.services.booking_service import assign_provider

TEST_POSTGRES_DATABASE_URL = os.getenv("TEST_POSTGRES_DATABASE_URL")


@pytest.fixture(scope="module")
def postgres_session_factory():
    if not TEST_POSTGRES_DATABASE_URL:
        pytest.skip("TEST_POSTGRES_DATABASE_URL is not set")

    engine = create_engine(TEST_POSTGRES_DATABASE_URL, pool_pre_ping=True)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    try:
        yield SessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.mark.postgres
def test_assignment_waits_for_row_lock_and_sees_cancellation(postgres_session_factory):
    seed_session = postgres_session_factory()
    provider_user = User(email="pg-lock-nurse@example.com", hashed_password="x", role=UserRole.PROVIDER.value)
    customer = User(email="pg-lock-family@example.com", hashed_password="x", role=UserRole.CUSTOMER.value)
    service = Service(name="PG Home Nursing", price=Decimal("500.00"))
    seed_session.add_all([provider_user, customer, service])
    seed_session.flush()
    profile = ProviderProfile(user_id=provider_user.id, display_name="PG Nurse")
    seed_session.add(profile)
    seed_session.flush()
    seed_session.add(ProviderService(provider_id=profile.id, service_id=service.id))
    booking = Booking(
        customer_id=customer.id,
        service_id=service.id,
        scheduled_date=datetime.now(UTC).date() + timedelta(days=2),
        scheduled_time=time(9, 0),
        duration_hours=1,
        total_amount=Decimal("500.00"),
        status=BookingStatus.PENDING.value,
    )
    seed_session.add(booking)
    seed_session.commit()
    booking_id = booking.id
    provider_id = profile.id
    seed_session.close()

    outcome: dict[str, object] = {}

    def contend() -> None:
        contender = postgres_session_factory()
        try:
            assign_provider(db=contender, booking_id=booking_id, provider_id=provider_id)
            outcome["result"] = "assigned"
        except InvalidTransition as exc:
            outcome["result"] = exc.kind
        finally:
            contender.close()

    lock_holder = postgres_session_factory()
    try:
        locked = lock_holder.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
        assert locked is not None

        worker = threading.Thread(target=contend)
        worker.start()
        clock.sleep(0.5)
        assert "result" not in outcome

        locked.cancel()
        lock_holder.commit()
        worker.join(timeout=10)
    finally:
        lock_holder.close()

    assert outcome["result"] == "InvalidTransition"

    check_session = postgres_session_factory()
    final = check_session.scalar(select(Booking).where(Booking.id == booking_id))
    check_session.close()

    assert final.status == BookingStatus.CANCELLED.value
    assert final.provider_id is None
