import sys
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from homecare.api.deps import get_payment_gateway
from homecare.core.config import settings
from homecare.core.events import event_publisher
from homecare.db.base import Base
from homecare.db.models import ConsentRecord, ProviderProfile, ProviderService, Service, User, UserRole
from homecare.db.session import get_db
from homecare.main import app
from homecare.schemas.booking import BookingCreateRequest
from homecare.services.booking_service import create_booking
from homecare.services.payment_gateway import DummyPaymentGateway

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "StrongPass123"


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    event_publisher.reset()


@pytest.fixture()
def gateway() -> DummyPaymentGateway:
    return DummyPaymentGateway()


@pytest.fixture()
def client(gateway) -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def db() -> Session:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def accept_required_consents(db: Session, user: User) -> None:
    now = datetime.now(UTC)
    for consent_type in settings.required_consent_types:
        db.add(
            ConsentRecord(
                user_id=user.id,
                consent_type=consent_type,
                consent_version=settings.consent_versions[consent_type],
                is_accepted=True,
                accepted_at=now,
            )
        )
    db.commit()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.CUSTOMER, consented: bool = False) -> User:
        counter["n"] += 1
        user = User(
            email=f"{role.value}{counter['n']}@example.com",
            hashed_password="x",
            full_name=f"{role.value.title()} {counter['n']}",
            role=role.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        if consented:
            accept_required_consents(db, user)
        return user

    return _make


@pytest.fixture()
def make_provider(db, make_user):
    def _make(*services: Service) -> ProviderProfile:
        user = make_user(UserRole.PROVIDER)
        profile = ProviderProfile(user_id=user.id, display_name=user.full_name)
        db.add(profile)
        db.flush()
        for service in services:
            db.add(ProviderService(provider_id=profile.id, service_id=service.id))
        db.commit()
        db.refresh(profile)
        return profile

    return _make


@pytest.fixture()
def customer(make_user) -> User:
    return make_user(UserRole.CUSTOMER, consented=True)


@pytest.fixture()
def admin(make_user) -> User:
    return make_user(UserRole.ADMIN)


@pytest.fixture()
def service(db) -> Service:
    nursing = Service(name="Home Nursing", category="nursing", price=Decimal("500.00"), duration_hours=1)
    db.add(nursing)
    db.commit()
    db.refresh(nursing)
    return nursing


@pytest.fixture()
def provider(make_provider, service) -> ProviderProfile:
    return make_provider(service)


def future_date(days: int = 7) -> date:
    return datetime.now(UTC).date() + timedelta(days=days)


@pytest.fixture()
def make_booking(db):
    def _make(customer: User, service: Service, scheduled_time: time = time(10, 0), **overrides):
        payload = BookingCreateRequest(
            service_id=service.id,
            scheduled_date=overrides.pop("scheduled_date", future_date()),
            scheduled_time=scheduled_time,
            duration_hours=overrides.pop("duration_hours", 2),
            **overrides,
        )
        return create_booking(db=db, customer=customer, payload=payload)

    return _make


@pytest.fixture()
def auth_headers(client):
    """Register through the API and return bearer headers for the new account."""

    def _headers(email: str, role: str = "customer") -> dict[str, str]:
        client.post("/auth/register", json={"email": email, "password": PASSWORD, "role": role})
        login = client.post("/auth/login", json={"email": email, "password": PASSWORD})
        return {"Authorization": f"Bearer {login.json()['access_token']}"}

    return _headers
