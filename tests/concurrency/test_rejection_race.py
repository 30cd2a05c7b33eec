from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from homecare.core.exceptions import AlreadyResolved
from homecare.db.base import Base
from homecare.db.models import (
    Booking,
    BookingRejectionRequest,
    BookingStatus,
    ProviderProfile,
    ProviderService,
    RejectionStatus,
    Service,
    User,
    UserRole,
)
from homecare.services.rejection_service import approve_rejection, deny_rejection


def _seed(SessionLocal) -> tuple[int, int]:
    session = SessionLocal()
    admin = User(email="race-admin@example.com", hashed_password="x", role=UserRole.ADMIN.value)
    provider_user = User(email="race-nurse@example.com", hashed_password="x", role=UserRole.PROVIDER.value)
    customer = User(email="race-family@example.com", hashed_password="x", role=UserRole.CUSTOMER.value)
    service = Service(name="Home Nursing", price=Decimal("500.00"))
    session.add_all([admin, provider_user, customer, service])
    session.flush()
    profile = ProviderProfile(user_id=provider_user.id, display_name="Race Nurse")
    session.add(profile)
    session.flush()
    session.add(ProviderService(provider_id=profile.id, service_id=service.id))
    booking = Booking(
        customer_id=customer.id,
        service_id=service.id,
        provider_id=profile.id,
        scheduled_date=datetime.now(UTC).date() + timedelta(days=3),
        scheduled_time=time(10, 0),
        duration_hours=2,
        total_amount=Decimal("1000.00"),
        status=BookingStatus.CONFIRMED.value,
    )
    session.add(booking)
    session.flush()
    rejection = BookingRejectionRequest(
        booking_id=booking.id,
        provider_id=profile.id,
        rejection_reason="Family emergency",
        status=RejectionStatus.PENDING.value,
    )
    session.add(rejection)
    session.commit()
    ids = rejection.id, admin.id
    session.close()
    return ids


@pytest.mark.concurrent
def test_parallel_approve_and_deny_only_one_decision_wins(tmp_path):
    db_file = tmp_path / "race.db"
    engine = create_engine(f"sqlite+pysqlite:///{db_file}", connect_args={"check_same_thread": False})
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    request_id, admin_id = _seed(SessionLocal)

    def attempt(decide) -> str:
        session = SessionLocal()
        try:
            admin = session.get(User, admin_id)
            rejection, _ = decide(db=session, request_id=request_id, admin=admin)
            return rejection.status
        except AlreadyResolved:
            return "already_resolved"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(attempt, [approve_rejection, deny_rejection]))

    winners = [result for result in results if result != "already_resolved"]
    assert len(winners) == 1
    assert results.count("already_resolved") == 1

    check = SessionLocal()
    final = check.get(BookingRejectionRequest, request_id)
    booking = check.get(Booking, final.booking_id)
    check.close()

    assert final.status == winners[0]
    if final.status == RejectionStatus.APPROVED.value:
        assert booking.status == BookingStatus.PENDING.value
        assert booking.provider_id is None
    else:
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.provider_id is not None
    engine.dispose()
