"""
BookingLedger.create_booking: validation order, conflict handling and the
storage-level guards behind the application checks.
"""

from datetime import datetime, time, timedelta
from decimal import Decimal
import re

import pytest
import pytz
from sqlalchemy.exc import OperationalError

from facility_booking.core.config import BookingConfig
from facility_booking.core.enums import ActorRole
from facility_booking.core.exceptions import (
    AdvanceWindowExceededException,
    CodeGenerationFailedException,
    FacilityNotBookableException,
    InvalidDurationException,
    NotFoundException,
    OutsideOperatingHoursException,
    PastDateException,
    SlotConflictException,
    TransientStorageError,
    UserBookingLimitExceededException,
)
from facility_booking.events.booking_events import BookingCreated
from facility_booking.events.publisher import EventPublisher
from facility_booking.models import Booking
from facility_booking.monitoring.prometheus_metrics import REGISTRY
from facility_booking.principal import Actor
from facility_booking.repositories.booking_repository import BookingRepository
from facility_booking.services.booking_code import BookingCodeGenerator
from facility_booking.services.booking_ledger import BookingLedger
from tests.conftest import ADMIN_ID, OTHER_USER_ID, USER_ID
from tests.helpers import PLATFORM_TZ, TODAY, FailingSink, FixedClock, ScriptedRandom

BOOKING_DAY = TODAY + timedelta(days=2)
ADMIN = Actor(ADMIN_ID, ActorRole.ADMIN)


def _sample(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class SkipConflictQueryRepository(BookingRepository):
    """Pretends the application-level overlap query found nothing."""

    def find_overlapping_active(self, *args, **kwargs):
        return []


class BlindCodeRepository(BookingRepository):
    """Pretends every code is free, as a concurrent writer would see it."""

    def code_exists(self, booking_code):
        return False


class FlakyLockRepository(BookingRepository):
    def __init__(self, db, failures):
        super().__init__(db)
        self.failures = failures
        self.calls = 0

    def acquire_booking_locks(self, user_id, facility_id, booking_date):
        self.calls += 1
        if self.calls <= self.failures:
            raise OperationalError(
                "UPDATE bookings SET status = status WHERE 1 = 0",
                {},
                Exception("database is locked"),
            )
        super().acquire_booking_locks(user_id, facility_id, booking_date)


class TestCreateBooking:
    def test_creates_pending_booking_with_snapshot_pricing(self, db, ledger, facility, sink):
        booking = ledger.create_booking(
            facility.id,
            USER_ID,
            BOOKING_DAY,
            time(10, 0),
            time(11, 30),
            special_request="Bring bibs",
        )

        assert booking.status == "pending"
        assert booking.user_id == USER_ID
        assert booking.duration_minutes == 90
        assert booking.total_amount == Decimal("1500.00")
        assert booking.commission_amount == Decimal("150.00")
        assert booking.special_request == "Bring bibs"
        assert re.fullmatch(r"[A-Z0-9]{8}", booking.booking_code)
        assert booking.created_at is not None

        # The returned object is the inserted record itself
        assert db.get(Booking, booking.id) is booking
        assert db.query(Booking).count() == 1

        created = sink.of_type(BookingCreated)
        assert len(created) == 1
        assert created[0].booking_id == booking.id
        assert created[0].booking_code == booking.booking_code

    def test_uses_facility_commission_rate(self, ledger, facility_factory):
        facility = facility_factory(price_per_hour="1200.00", commission_rate="0.15")

        booking = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        assert booking.total_amount == Decimal("1200.00")
        assert booking.commission_amount == Decimal("180.00")

    def test_same_day_booking_checks_date_only(self, ledger, facility):
        # Clock is 09:00; only the date is compared
        booking = ledger.create_booking(facility.id, USER_ID, TODAY, time(7, 0), time(8, 0))
        assert booking.booking_date == TODAY

    def test_last_day_of_advance_window_is_bookable(self, ledger, facility):
        booking = ledger.create_booking(
            facility.id, USER_ID, TODAY + timedelta(days=30), time(10), time(11)
        )
        assert booking.booking_date == TODAY + timedelta(days=30)

    def test_booking_may_end_exactly_at_closing(self, ledger, facility):
        booking = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(21), time(22))
        assert booking.end_time == time(22)

    def test_publisher_failure_does_not_fail_create(self, db, config, clock, facility):
        ledger = BookingLedger(db, config, clock=clock, publisher=EventPublisher(FailingSink()))
        before = _sample(
            "facility_booking_notification_failures_total", {"event_type": "BookingCreated"}
        )

        booking = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        assert db.get(Booking, booking.id) is not None
        after = _sample(
            "facility_booking_notification_failures_total", {"event_type": "BookingCreated"}
        )
        assert after == before + 1


class TestValidationOrder:
    def test_missing_facility(self, ledger):
        with pytest.raises(FacilityNotBookableException) as exc_info:
            ledger.create_booking("missing", USER_ID, BOOKING_DAY, time(10), time(11))
        assert exc_info.value.details["reason"] == "not_found"

    @pytest.mark.parametrize(
        "flags,reason",
        [({"is_active": False}, "inactive"), ({"is_verified": False}, "unverified")],
    )
    def test_unbookable_facility_checked_before_duration(
        self, ledger, facility_factory, flags, reason
    ):
        facility = facility_factory(**flags)

        with pytest.raises(FacilityNotBookableException) as exc_info:
            ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(11), time(10))
        assert exc_info.value.details["reason"] == reason

    def test_duration_checked_before_date(self, ledger, facility):
        with pytest.raises(InvalidDurationException):
            ledger.create_booking(
                facility.id, USER_ID, TODAY - timedelta(days=1), time(11), time(10)
            )

    @pytest.mark.parametrize(
        "start,end",
        [
            (time(10), time(10)),
            (time(11), time(10)),
            (time(10), time(10, 15)),
            (time(6), time(11)),
        ],
    )
    def test_invalid_durations(self, ledger, facility, start, end):
        with pytest.raises(InvalidDurationException) as exc_info:
            ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, start, end)
        assert exc_info.value.code == "INVALID_DURATION"

    def test_duration_cap_can_be_disabled(self, db, clock, publisher, facility):
        config = BookingConfig(max_duration_minutes=None, platform_timezone=PLATFORM_TZ)
        ledger = BookingLedger(db, config, clock=clock, publisher=publisher)

        booking = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(6), time(12))

        assert booking.duration_minutes == 360

    def test_past_date_checked_before_operating_hours(self, ledger, facility):
        with pytest.raises(PastDateException) as exc_info:
            ledger.create_booking(
                facility.id, USER_ID, TODAY - timedelta(days=1), time(3), time(4)
            )
        assert exc_info.value.details["today"] == TODAY.isoformat()

    def test_past_date_uses_platform_timezone(self, db, config, publisher, facility):
        # 23:30 UTC on Mar 2 is already Mar 3 in Kathmandu
        utc_now = pytz.utc.localize(datetime(2026, 3, 2, 23, 30))
        clock = FixedClock(now=utc_now.astimezone(pytz.timezone(PLATFORM_TZ)))
        ledger = BookingLedger(db, config, clock=clock, publisher=publisher)

        with pytest.raises(PastDateException):
            ledger.create_booking(facility.id, USER_ID, TODAY, time(10), time(11))

    def test_advance_window(self, ledger, facility):
        with pytest.raises(AdvanceWindowExceededException) as exc_info:
            ledger.create_booking(
                facility.id, USER_ID, TODAY + timedelta(days=31), time(3), time(4)
            )
        assert exc_info.value.details["last_bookable_date"] == (
            TODAY + timedelta(days=30)
        ).isoformat()

    @pytest.mark.parametrize(
        "start,end", [(time(5), time(6)), (time(5, 30), time(6, 30)), (time(21, 30), time(22, 30))]
    )
    def test_outside_operating_hours(self, ledger, facility, start, end):
        with pytest.raises(OutsideOperatingHoursException) as exc_info:
            ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, start, end)
        assert exc_info.value.details["operating_hours"] == {"open": "06:00", "close": "22:00"}

    def test_closed_weekday(self, ledger, facility_factory):
        facility = facility_factory(
            operating_hours={"monday": {"open": "08:00", "close": "20:00"}}
        )

        with pytest.raises(OutsideOperatingHoursException) as exc_info:
            ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))
        assert exc_info.value.details["operating_hours"] is None

    def test_rejections_are_not_persisted(self, db, ledger, facility):
        with pytest.raises(OutsideOperatingHoursException):
            ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(5), time(6))
        assert db.query(Booking).count() == 0


class TestUserLimit:
    def _fill_limit(self, ledger, facility):
        return [
            ledger.create_booking(
                facility.id, USER_ID, TODAY + timedelta(days=offset), time(10), time(11)
            )
            for offset in (1, 2, 3)
        ]

    def test_limit_blocks_fourth_active_booking(self, ledger, facility):
        self._fill_limit(ledger, facility)

        with pytest.raises(UserBookingLimitExceededException) as exc_info:
            ledger.create_booking(
                facility.id, USER_ID, TODAY + timedelta(days=4), time(10), time(11)
            )
        assert exc_info.value.details == {"limit": 3, "active_bookings": 3}

    def test_limit_checked_before_slot_conflict(self, ledger, facility):
        bookings = self._fill_limit(ledger, facility)

        with pytest.raises(UserBookingLimitExceededException):
            ledger.create_booking(
                facility.id, USER_ID, bookings[0].booking_date, time(10), time(11)
            )

    def test_cancelled_booking_frees_quota(self, ledger, state_machine, facility):
        bookings = self._fill_limit(ledger, facility)
        state_machine.cancel(bookings[0].id, ADMIN, "Rain")

        booking = ledger.create_booking(
            facility.id, USER_ID, TODAY + timedelta(days=4), time(10), time(11)
        )
        assert booking.status == "pending"

    def test_limit_is_per_user(self, ledger, facility):
        self._fill_limit(ledger, facility)

        booking = ledger.create_booking(
            facility.id, OTHER_USER_ID, TODAY + timedelta(days=4), time(10), time(11)
        )
        assert booking.user_id == OTHER_USER_ID


class TestSlotConflicts:
    def test_overlap_rejected_with_conflicting_ids(self, db, ledger, facility):
        first = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        with pytest.raises(SlotConflictException) as exc_info:
            ledger.create_booking(
                facility.id, OTHER_USER_ID, BOOKING_DAY, time(10, 30), time(11, 30)
            )

        assert exc_info.value.details["conflicting_booking_ids"] == [first.id]
        assert db.query(Booking).count() == 1

    def test_touching_bookings_allowed(self, ledger, facility):
        ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        after = ledger.create_booking(facility.id, OTHER_USER_ID, BOOKING_DAY, time(11), time(12))
        before = ledger.create_booking(facility.id, OTHER_USER_ID, BOOKING_DAY, time(9), time(10))

        assert after.start_time == time(11)
        assert before.end_time == time(10)

    def test_other_facility_or_date_does_not_conflict(self, ledger, facility, facility_factory):
        other = facility_factory(name="Court B")
        ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        ledger.create_booking(other.id, OTHER_USER_ID, BOOKING_DAY, time(10), time(11))
        ledger.create_booking(
            facility.id, OTHER_USER_ID, BOOKING_DAY + timedelta(days=1), time(10), time(11)
        )

    def test_cancelled_booking_frees_slot(self, ledger, state_machine, facility):
        first = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))
        state_machine.cancel(first.id, ADMIN, "Maintenance")

        second = ledger.create_booking(
            facility.id, OTHER_USER_ID, BOOKING_DAY, time(10), time(11)
        )
        assert second.status == "pending"

    def test_storage_guard_maps_to_slot_conflict(
        self, db, config, clock, publisher, ledger, facility
    ):
        ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))
        blind_ledger = BookingLedger(
            db,
            config,
            clock=clock,
            publisher=publisher,
            booking_repository=SkipConflictQueryRepository(db),
            sleep=lambda _: None,
        )

        with pytest.raises(SlotConflictException) as exc_info:
            blind_ledger.create_booking(
                facility.id, OTHER_USER_ID, BOOKING_DAY, time(10, 30), time(11, 30)
            )

        assert exc_info.value.details["detected_by"] == "storage"
        assert db.query(Booking).count() == 1


class TestTransientFailures:
    def _ledger(self, db, config, clock, publisher, repository, sleeps):
        return BookingLedger(
            db,
            config,
            clock=clock,
            publisher=publisher,
            booking_repository=repository,
            sleep=sleeps.append,
        )

    def test_retries_locked_database_then_succeeds(self, db, config, clock, publisher, facility):
        repository = FlakyLockRepository(db, failures=1)
        sleeps = []
        before = _sample(
            "facility_booking_transaction_retries_total", {"operation": "create_booking"}
        )
        ledger = self._ledger(db, config, clock, publisher, repository, sleeps)

        booking = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        assert booking.status == "pending"
        assert repository.calls == 2
        assert len(sleeps) == 1
        assert sleeps[0] > 0
        assert _sample(
            "facility_booking_transaction_retries_total", {"operation": "create_booking"}
        ) == before + 1

    def test_exhausted_retries_raise_transient_storage_error(
        self, db, config, clock, publisher, facility
    ):
        repository = FlakyLockRepository(db, failures=10)
        sleeps = []
        ledger = self._ledger(db, config, clock, publisher, repository, sleeps)

        with pytest.raises(TransientStorageError) as exc_info:
            ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        assert exc_info.value.retryable is True
        assert exc_info.value.code == "TRANSIENT_STORAGE_ERROR"
        assert repository.calls == config.max_transaction_attempts
        assert len(sleeps) == config.max_transaction_attempts - 1
        assert db.query(Booking).count() == 0

    def test_policy_errors_are_not_retried(self, db, config, clock, publisher, facility):
        repository = FlakyLockRepository(db, failures=0)
        sleeps = []
        ledger = self._ledger(db, config, clock, publisher, repository, sleeps)
        ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        with pytest.raises(SlotConflictException):
            ledger.create_booking(facility.id, OTHER_USER_ID, BOOKING_DAY, time(10), time(11))

        assert repository.calls == 2
        assert sleeps == []


class TestBookingCodes:
    def test_forced_collision_draws_again(self, db, config, clock, publisher, ledger, facility):
        existing = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))
        generator = BookingCodeGenerator(
            rng=ScriptedRandom([existing.booking_code, "ZZZZ9999"])
        )
        ledger = BookingLedger(
            db, config, clock=clock, publisher=publisher, code_generator=generator
        )

        booking = ledger.create_booking(
            facility.id, OTHER_USER_ID, BOOKING_DAY, time(12), time(13)
        )

        assert booking.booking_code == "ZZZZ9999"

    def test_code_generation_fails_after_max_attempts(
        self, db, clock, publisher, ledger, facility
    ):
        existing = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))
        config = BookingConfig(max_code_attempts=3, platform_timezone=PLATFORM_TZ)
        generator = BookingCodeGenerator(rng=ScriptedRandom([existing.booking_code] * 3))
        ledger = BookingLedger(
            db, config, clock=clock, publisher=publisher, code_generator=generator
        )

        with pytest.raises(CodeGenerationFailedException) as exc_info:
            ledger.create_booking(facility.id, OTHER_USER_ID, BOOKING_DAY, time(12), time(13))

        assert exc_info.value.details == {"attempts": 3}
        assert db.query(Booking).count() == 1

    def test_concurrent_duplicate_code_is_retried(
        self, db, config, clock, publisher, ledger, facility
    ):
        existing = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))
        sleeps = []
        racing_ledger = BookingLedger(
            db,
            config,
            clock=clock,
            publisher=publisher,
            booking_repository=BlindCodeRepository(db),
            code_generator=BookingCodeGenerator(
                rng=ScriptedRandom([existing.booking_code, "NEWCODE1"])
            ),
            sleep=sleeps.append,
        )

        booking = racing_ledger.create_booking(
            facility.id, OTHER_USER_ID, BOOKING_DAY, time(12), time(13)
        )

        assert booking.booking_code == "NEWCODE1"
        assert len(sleeps) == 1

    def test_persistent_duplicate_code_is_transient_error(
        self, db, config, clock, publisher, ledger, facility
    ):
        existing = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))
        racing_ledger = BookingLedger(
            db,
            config,
            clock=clock,
            publisher=publisher,
            booking_repository=BlindCodeRepository(db),
            code_generator=BookingCodeGenerator(
                rng=ScriptedRandom([existing.booking_code] * config.max_transaction_attempts)
            ),
            sleep=lambda _: None,
        )

        with pytest.raises(TransientStorageError):
            racing_ledger.create_booking(
                facility.id, OTHER_USER_ID, BOOKING_DAY, time(12), time(13)
            )


class TestReads:
    def test_get_booking_and_by_code(self, ledger, facility):
        booking = ledger.create_booking(facility.id, USER_ID, BOOKING_DAY, time(10), time(11))

        assert ledger.get_booking(booking.id).id == booking.id
        assert ledger.get_booking_by_code(booking.booking_code.lower()).id == booking.id

    def test_missing_booking(self, ledger):
        with pytest.raises(NotFoundException) as exc_info:
            ledger.get_booking("nope")
        assert exc_info.value.code == "BOOKING_NOT_FOUND"

        with pytest.raises(NotFoundException):
            ledger.get_booking_by_code("ABCDEFGH")
