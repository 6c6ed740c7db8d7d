# facility_booking/services/booking_ledger.py
"""
Booking Ledger for the facility booking engine.

Creates bookings atomically under concurrent demand and serves reads.

Create runs its checks in a fixed order and stops at the first failure:
facility bookable, duration, past date, advance window, operating hours,
user active-booking limit, slot conflict. The last two run inside the same
transaction as code generation and the insert, after locks serialize every
competing writer for that user and facility day. Storage enforces the
no-overlap rule again at insert time.
"""

from datetime import date, time, timedelta, timezone
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import Clock, PlatformClock
from ..core.config import BookingConfig
from ..core.exceptions import (
    AdvanceWindowExceededException,
    DomainException,
    FacilityNotBookableException,
    InvalidDurationException,
    NotFoundException,
    OutsideOperatingHoursException,
    PastDateException,
    RepositoryException,
    ServiceException,
    SlotConflictException,
    TransientStorageError,
    UserBookingLimitExceededException,
)
from ..core.time_utils import duration_minutes, format_hhmm
from ..database import is_retryable_db_error, sqlstate_of, unwrap_db_error, with_db_retry
from ..events.booking_events import BookingCreated
from ..events.publisher import EventPublisher
from ..models.booking import (
    BOOKING_CODE_CONSTRAINT_NAME,
    OVERLAP_CONSTRAINT_NAME,
    Booking,
    BookingStatus,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingRepository
from ..repositories.facility_repository import FacilityRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingFilter
from ..schemas.facility import BookableFacility
from .base import BaseService
from .booking_code import BookingCodeGenerator
from .commission_calculator import CommissionCalculator
from .conflict_detector import find_conflicts

logger = logging.getLogger(__name__)

SLOT_CONFLICT_MESSAGE = "Selected time slot is not available"
# PostgreSQL exclusion_violation
_EXCLUSION_VIOLATION_SQLSTATE = "23P01"


def _resolve_constraint_name(integrity_error: IntegrityError) -> str:
    """Name of the constraint behind an IntegrityError, when it can be determined."""
    orig = getattr(integrity_error, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = ""
    if diag is not None:
        constraint_name = getattr(diag, "constraint_name", "") or ""

    if not constraint_name and orig is not None:
        text = str(orig)
        if OVERLAP_CONSTRAINT_NAME in text:
            constraint_name = OVERLAP_CONSTRAINT_NAME
        elif BOOKING_CODE_CONSTRAINT_NAME in text or "bookings.booking_code" in text:
            constraint_name = BOOKING_CODE_CONSTRAINT_NAME

    if not constraint_name and sqlstate_of(integrity_error) == _EXCLUSION_VIOLATION_SQLSTATE:
        constraint_name = OVERLAP_CONSTRAINT_NAME
    return constraint_name


class BookingLedger(BaseService):
    """
    Owns booking creation and lookup.

    Collaborators are injected; defaults are built from the session and the
    booking config so the ledger works standalone in routes and tasks.
    """

    def __init__(
        self,
        db: Session,
        config: BookingConfig,
        clock: Optional[Clock] = None,
        publisher: Optional[EventPublisher] = None,
        facility_repository: Optional[FacilityRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
        code_generator: Optional[BookingCodeGenerator] = None,
        calculator: Optional[CommissionCalculator] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        super().__init__(db)
        self.config = config
        self.clock: Clock = clock or PlatformClock(config.platform_timezone)
        self.publisher = publisher or EventPublisher()
        self.facility_repository = facility_repository or RepositoryFactory.create_facility_repository(
            db, default_operating_hours=config.default_operating_hours
        )
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.code_generator = code_generator or BookingCodeGenerator(config.booking_code_length)
        self.calculator = calculator or CommissionCalculator(config.default_commission_rate)
        self._sleep = sleep

    # Create

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        facility_id: str,
        user_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        special_request: Optional[str] = None,
    ) -> Booking:
        """
        Create a pending booking.

        Args:
            facility_id: Facility to book
            user_id: Booking owner
            booking_date: Calendar date in the platform timezone
            start_time: Inclusive start
            end_time: Exclusive end
            special_request: Optional free-text note

        Returns:
            The inserted booking record

        Raises:
            FacilityNotBookableException: Facility missing, inactive or unverified
            InvalidDurationException: Non-positive, too short or too long interval
            PastDateException: Date before today
            AdvanceWindowExceededException: Date beyond the advance window
            OutsideOperatingHoursException: Interval outside the weekday window
            UserBookingLimitExceededException: Too many active bookings
            SlotConflictException: Overlaps an active booking
            CodeGenerationFailedException: No free booking code found
            TransientStorageError: Storage conflicts persisted through retries
        """
        try:
            booking = self._create_booking(
                facility_id, user_id, booking_date, start_time, end_time, special_request
            )
        except DomainException as exc:
            prometheus_metrics.record_booking_outcome(exc.code)
            self.logger.info(
                "Booking rejected",
                extra={
                    "facility_id": facility_id,
                    "user_id": user_id,
                    "booking_date": booking_date.isoformat(),
                    "code": exc.code,
                },
            )
            raise

        prometheus_metrics.record_booking_outcome("created")
        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            booking_code=booking.booking_code,
            facility_id=facility_id,
            user_id=user_id,
        )
        self.publisher.publish(
            BookingCreated(
                booking_id=booking.id,
                user_id=booking.user_id,
                facility_id=booking.facility_id,
                booking_code=booking.booking_code,
                created_at=booking.created_at,
            )
        )
        return booking

    def _create_booking(
        self,
        facility_id: str,
        user_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        special_request: Optional[str],
    ) -> Booking:
        facility = self._require_bookable_facility(facility_id)
        minutes = self._validate_duration(start_time, end_time)
        today = self.clock.today()
        self._validate_booking_date(booking_date, today)
        self._validate_operating_hours(facility, booking_date, start_time, end_time)
        price = self.calculator.price_booking(facility, minutes)

        def unit_of_work() -> Booking:
            with self.transaction():
                self.booking_repository.acquire_booking_locks(user_id, facility_id, booking_date)
                self._check_user_limit(user_id, today)
                self._check_slot_conflicts(facility_id, booking_date, start_time, end_time)
                booking_code = self.code_generator.generate_unique(
                    self.booking_repository.code_exists, self.config.max_code_attempts
                )
                return self.booking_repository.create(
                    facility_id=facility_id,
                    user_id=user_id,
                    booking_date=booking_date,
                    start_time=start_time,
                    end_time=end_time,
                    duration_minutes=minutes,
                    total_amount=price.total_amount,
                    commission_amount=price.commission_amount,
                    status=BookingStatus.PENDING.value,
                    booking_code=booking_code,
                    special_request=special_request,
                    created_at=self.clock.now().astimezone(timezone.utc),
                )

        retry_kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        try:
            return with_db_retry(
                "create_booking",
                unit_of_work,
                max_attempts=self.config.max_transaction_attempts,
                retry_on=self._is_retryable_create_error,
                on_retry=lambda attempt, exc: prometheus_metrics.record_transaction_retry(
                    "create_booking"
                ),
                **retry_kwargs,
            )
        except (ServiceException, RepositoryException) as exc:
            db_error = unwrap_db_error(exc)
            if db_error is None:
                raise
            raise self._translate_storage_error(db_error, facility_id, booking_date) from exc

    def _require_bookable_facility(self, facility_id: str) -> BookableFacility:
        facility = self.facility_repository.get_bookable_facility(facility_id)
        if facility is None:
            raise FacilityNotBookableException(facility_id, reason="not_found")
        if not facility.is_active:
            raise FacilityNotBookableException(facility_id, reason="inactive")
        if not facility.is_verified:
            raise FacilityNotBookableException(facility_id, reason="unverified")
        return facility

    def _validate_duration(self, start_time: time, end_time: time) -> int:
        minutes = duration_minutes(start_time, end_time)
        if minutes <= 0:
            raise InvalidDurationException("End time must be after start time", minutes)
        if minutes < self.config.min_duration_minutes:
            raise InvalidDurationException(
                f"Minimum booking duration is {self.config.min_duration_minutes} minutes",
                minutes,
            )
        max_minutes = self.config.max_duration_minutes
        if max_minutes is not None and minutes > max_minutes:
            raise InvalidDurationException(
                f"Maximum booking duration is {max_minutes} minutes", minutes
            )
        return minutes

    def _validate_booking_date(self, booking_date: date, today: date) -> None:
        if booking_date < today:
            raise PastDateException(booking_date.isoformat(), today.isoformat())
        last_bookable = today + timedelta(days=self.config.max_advance_days)
        if booking_date > last_bookable:
            raise AdvanceWindowExceededException(
                self.config.max_advance_days, last_bookable.isoformat()
            )

    def _validate_operating_hours(
        self,
        facility: BookableFacility,
        booking_date: date,
        start_time: time,
        end_time: time,
    ) -> None:
        window = facility.window_for(booking_date)
        if window is None:
            raise OutsideOperatingHoursException(
                "Facility is closed on this day",
                details={"booking_date": booking_date.isoformat(), "operating_hours": None},
            )
        if not window.contains(start_time, end_time):
            raise OutsideOperatingHoursException(
                "Booking time is outside facility operating hours",
                details={
                    "operating_hours": window.as_hhmm(),
                    "requested": {"start": format_hhmm(start_time), "end": format_hhmm(end_time)},
                },
            )

    def _check_user_limit(self, user_id: str, today: date) -> None:
        limit = self.config.max_active_bookings_per_user
        active = self.booking_repository.count_active_for_user(user_id, today)
        if active >= limit:
            raise UserBookingLimitExceededException(limit, active)

    def _check_slot_conflicts(
        self, facility_id: str, booking_date: date, start_time: time, end_time: time
    ) -> None:
        candidates = self.booking_repository.find_overlapping_active(
            facility_id, booking_date, start_time, end_time
        )
        conflicts = find_conflicts(start_time, end_time, candidates)
        if conflicts:
            raise SlotConflictException(
                SLOT_CONFLICT_MESSAGE,
                details={
                    "facility_id": facility_id,
                    "booking_date": booking_date.isoformat(),
                    "conflicting_booking_ids": [b.id for b in conflicts],
                },
            )

    def _is_retryable_create_error(self, exc: BaseException) -> bool:
        db_error = unwrap_db_error(exc)
        if db_error is None:
            return False
        if is_retryable_db_error(db_error):
            return True
        # Another writer took the same code between our check and insert
        return (
            isinstance(db_error, IntegrityError)
            and _resolve_constraint_name(db_error) == BOOKING_CODE_CONSTRAINT_NAME
        )

    def _translate_storage_error(
        self, db_error: DBAPIError, facility_id: str, booking_date: date
    ) -> DomainException:
        if isinstance(db_error, IntegrityError):
            constraint = _resolve_constraint_name(db_error)
            if constraint == OVERLAP_CONSTRAINT_NAME:
                return SlotConflictException(
                    SLOT_CONFLICT_MESSAGE,
                    details={
                        "facility_id": facility_id,
                        "booking_date": booking_date.isoformat(),
                        "detected_by": "storage",
                    },
                )
            if constraint == BOOKING_CODE_CONSTRAINT_NAME:
                return TransientStorageError(
                    "Booking code collided repeatedly; please retry",
                    details={"attempts": self.config.max_transaction_attempts},
                )
        if is_retryable_db_error(db_error):
            self.logger.error(
                "Booking create exhausted retries",
                extra={"facility_id": facility_id, "error": str(db_error)},
            )
            return TransientStorageError(
                "Booking storage is busy; please retry",
                details={"attempts": self.config.max_transaction_attempts},
            )
        self.logger.error("Unexpected storage error creating booking: %s", db_error)
        return ServiceException("Failed to create booking")

    # Reads

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(
                "Booking not found", code="BOOKING_NOT_FOUND", details={"booking_id": booking_id}
            )
        return booking

    @BaseService.measure_operation("get_booking_by_code")
    def get_booking_by_code(self, booking_code: str) -> Booking:
        booking = self.booking_repository.get_by_code(booking_code.strip().upper())
        if booking is None:
            raise NotFoundException(
                "Booking not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_code": booking_code},
            )
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(self, booking_filter: BookingFilter) -> Tuple[List[Booking], int]:
        """Page of bookings matching the filter and the total match count."""
        return self.booking_repository.list_filtered(booking_filter)
