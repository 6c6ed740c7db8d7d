"""
Concurrent creation against a file-backed SQLite database.

Each worker has its own connection and session, so the storage write lock
and the overlap trigger are exercised for real.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import time, timedelta
from decimal import Decimal
import threading

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from facility_booking.core.exceptions import SlotConflictException
from facility_booking.database import Base, create_db_engine
from facility_booking.events.publisher import EventPublisher
from facility_booking.models import Booking, Facility
from facility_booking.services.booking_ledger import BookingLedger
from tests.helpers import TODAY, FixedClock, RecordingSink

WORKERS = 6
BOOKING_DAY = TODAY + timedelta(days=1)


@pytest.fixture
def file_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path}/race.db")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=file_engine, expire_on_commit=False)


@pytest.fixture
def court(session_factory):
    with session_factory() as session:
        facility = Facility(name="Court 1", price_per_hour=Decimal("1500.00"), is_verified=True)
        session.add(facility)
        session.commit()
        return facility


def test_only_one_of_many_overlapping_requests_wins(session_factory, court, config):
    barrier = threading.Barrier(WORKERS)
    sink = RecordingSink()

    def attempt(worker: int):
        session = session_factory()
        ledger = BookingLedger(
            session, config, clock=FixedClock(), publisher=EventPublisher(sink)
        )
        try:
            barrier.wait()
            start = time(18, 0) if worker % 2 else time(18, 30)
            end = time(19, 0) if worker % 2 else time(19, 30)
            return ledger.create_booking(court.id, f"player-{worker}", BOOKING_DAY, start, end)
        except SlotConflictException as exc:
            return exc
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(pool.map(attempt, range(WORKERS)))

    winners = [o for o in outcomes if isinstance(o, Booking)]
    losers = [o for o in outcomes if isinstance(o, SlotConflictException)]
    assert len(winners) == 1
    assert len(losers) == WORKERS - 1
    assert len(sink.events) == 1

    with session_factory() as session:
        stored = session.scalar(select(func.count()).select_from(Booking))
    assert stored == 1


def test_adjacent_requests_all_succeed(session_factory, court, config):
    barrier = threading.Barrier(4)

    def attempt(hour: int):
        session = session_factory()
        ledger = BookingLedger(session, config, clock=FixedClock())
        try:
            barrier.wait()
            return ledger.create_booking(
                court.id, f"player-{hour}", BOOKING_DAY, time(hour), time(hour + 1)
            )
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=4) as pool:
        bookings = list(pool.map(attempt, [8, 9, 10, 11]))

    assert sorted(b.start_time for b in bookings) == [time(8), time(9), time(10), time(11)]
