# tests/conftest.py
"""
Pytest configuration for the facility booking engine.

Every test gets a fresh in-memory SQLite database with the full schema,
including the storage-level overlap trigger.
"""

import os

# Set test settings BEFORE any facility_booking imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CI", "true")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Generator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from facility_booking.api.dependencies import get_clock, get_config, get_db, get_event_publisher
from facility_booking.core.config import BookingConfig
from facility_booking.database import Base
from facility_booking.events.publisher import EventPublisher
from facility_booking.main import app
from facility_booking.models import Facility, Payment, PaymentStatus
from facility_booking.services.booking_ledger import BookingLedger
from facility_booking.services.booking_state_machine import BookingStateMachine
from tests.helpers import PLATFORM_TZ, FixedClock, RecordingSink

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ADMIN_ID = "admin-1"


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def config() -> BookingConfig:
    return BookingConfig(platform_timezone=PLATFORM_TZ)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def publisher(sink: RecordingSink) -> EventPublisher:
    return EventPublisher(sink)


@pytest.fixture
def facility_factory(db: Session) -> Callable[..., Facility]:
    def _create(
        name: str = "Futsal Court A",
        price_per_hour: str = "1000.00",
        commission_rate: Optional[str] = None,
        operating_hours: Optional[Dict[str, Any]] = None,
        is_active: bool = True,
        is_verified: bool = True,
    ) -> Facility:
        facility = Facility(
            name=name,
            price_per_hour=Decimal(price_per_hour),
            commission_rate=Decimal(commission_rate) if commission_rate is not None else None,
            operating_hours=operating_hours,
            is_active=is_active,
            is_verified=is_verified,
        )
        db.add(facility)
        db.commit()
        return facility

    return _create


@pytest.fixture
def facility(facility_factory: Callable[..., Facility]) -> Facility:
    return facility_factory()


@pytest.fixture
def payment_factory(db: Session) -> Callable[..., Payment]:
    def _create(
        booking: Any,
        amount: Optional[Decimal] = None,
        status: PaymentStatus = PaymentStatus.COMPLETED,
    ) -> Payment:
        payment = Payment(
            booking_id=booking.id,
            user_id=booking.user_id,
            amount=amount if amount is not None else booking.total_amount,
            method="wallet",
            transaction_ref="txn-test",
            status=status.value,
            paid_at=datetime.now(timezone.utc) if status == PaymentStatus.COMPLETED else None,
        )
        db.add(payment)
        db.commit()
        return payment

    return _create


@pytest.fixture
def ledger(
    db: Session, config: BookingConfig, clock: FixedClock, publisher: EventPublisher
) -> BookingLedger:
    return BookingLedger(db, config, clock=clock, publisher=publisher, sleep=lambda _: None)


@pytest.fixture
def state_machine(
    db: Session, config: BookingConfig, clock: FixedClock, publisher: EventPublisher
) -> BookingStateMachine:
    return BookingStateMachine(db, config, clock=clock, publisher=publisher)


@pytest.fixture
def client(
    db: Session, config: BookingConfig, clock: FixedClock, publisher: EventPublisher
) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user_id: str = USER_ID, role: str = "user") -> Dict[str, str]:
    return {"X-User-Id": user_id, "X-User-Role": role}
