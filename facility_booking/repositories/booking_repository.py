# facility_booking/repositories/booking_repository.py
"""
Booking Repository for the facility booking engine.

Implements all data access operations for bookings:
- Transaction-scoped locks that serialize competing creates
- Overlap and active-booking queries used by conflict checks
- Booking code lookups
- Typed, paginated listing
- Row-locked loads for lifecycle transitions
"""

from datetime import date, datetime, time
import hashlib
import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import POSTGRESQL, SQLITE, is_sqlite
from ..models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from ..schemas.booking import BookingFilter
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    "created_at": Booking.created_at,
    "booking_date": Booking.booking_date,
    "start_time": Booking.start_time,
    "total_amount": Booking.total_amount,
    "status": Booking.status,
}


def advisory_lock_key(*parts: str) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b("|".join(parts).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    # Locking

    def acquire_booking_locks(self, user_id: str, facility_id: str, booking_date: date) -> None:
        """
        Serialize creates that could affect the same user limit or facility day.

        PostgreSQL takes transaction-scoped advisory locks, user first and then
        facility+date, so every writer acquires them in the same order. SQLite
        has a single writer, so the transaction claims the write lock up front.
        """
        dialect = self.dialect_name
        if dialect == POSTGRESQL:
            for key in (
                advisory_lock_key("booking-user", user_id),
                advisory_lock_key("booking-facility", facility_id, booking_date.isoformat()),
            ):
                self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
        elif dialect == SQLITE:
            self._claim_sqlite_write_lock()

    def _claim_sqlite_write_lock(self) -> None:
        # A no-op write still opens the write transaction (RESERVED lock)
        self.db.execute(text("UPDATE bookings SET status = status WHERE 1 = 0"))

    # Conflict queries

    def get_active_for_facility_date(self, facility_id: str, booking_date: date) -> List[Booking]:
        """Pending and confirmed bookings for a facility on one date, ordered by start."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.facility_id == facility_id,
                    Booking.booking_date == booking_date,
                    Booking.status.in_(ACTIVE_STATUSES),
                )
                .order_by(Booking.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting facility bookings for date: {str(e)}")
            raise RepositoryException(f"Failed to get facility bookings: {str(e)}")

    def find_overlapping_active(
        self,
        facility_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
    ) -> List[Booking]:
        """
        Active bookings whose [start, end) intersects the given interval.

        Touching intervals (one ends exactly when the other starts) do not overlap.
        """
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.facility_id == facility_id,
                    Booking.booking_date == booking_date,
                    Booking.status.in_(ACTIVE_STATUSES),
                    Booking.start_time < end_time,
                    Booking.end_time > start_time,
                )
                .order_by(Booking.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking time conflict: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}")

    def count_active_for_user(self, user_id: str, from_date: date) -> int:
        """Pending/confirmed bookings held by a user dated on or after ``from_date``."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.user_id == user_id,
                    Booking.status.in_(ACTIVE_STATUSES),
                    Booking.booking_date >= from_date,
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting active bookings: {str(e)}")
            raise RepositoryException(f"Failed to count active bookings: {str(e)}")

    # Codes

    def code_exists(self, booking_code: str) -> bool:
        return self.exists(booking_code=booking_code)

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        try:
            return self.db.query(Booking).filter(Booking.booking_code == booking_code).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking by code: {str(e)}")
            raise RepositoryException(f"Failed to get booking by code: {str(e)}")

    # Transitions

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """
        Load a booking with a row lock for a status transition.

        SQLite has no row locks, so the write lock is claimed instead.
        """
        try:
            if is_sqlite(self.db):
                self._claim_sqlite_write_lock()
            return (
                self.db.query(Booking)
                .filter(Booking.id == booking_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock booking: {str(e)}")

    def get_stale_pending_ids(self, created_before: datetime, limit: int = 500) -> List[str]:
        """Ids of pending bookings created before the cutoff, oldest first."""
        try:
            rows = (
                self.db.query(Booking.id)
                .filter(
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.created_at < created_before,
                )
                .order_by(Booking.created_at)
                .limit(limit)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding stale pending bookings: {str(e)}")
            raise RepositoryException(f"Failed to find stale pending bookings: {str(e)}")

    # Listing

    def list_filtered(self, booking_filter: BookingFilter) -> Tuple[List[Booking], int]:
        """
        Page of bookings matching a typed filter, plus the total match count.

        Ties on the sort column are broken by id so pages are stable.
        """
        conditions = []
        if booking_filter.user_id is not None:
            conditions.append(Booking.user_id == booking_filter.user_id)
        if booking_filter.facility_id is not None:
            conditions.append(Booking.facility_id == booking_filter.facility_id)
        if booking_filter.statuses:
            conditions.append(
                Booking.status.in_([BookingStatus(s).value for s in booking_filter.statuses])
            )
        if booking_filter.date_from is not None:
            conditions.append(Booking.booking_date >= booking_filter.date_from)
        if booking_filter.date_to is not None:
            conditions.append(Booking.booking_date <= booking_filter.date_to)

        column = _SORT_COLUMNS[booking_filter.sort_by]
        if booking_filter.sort_order == "asc":
            ordering = (column.asc(), Booking.id.asc())
        else:
            ordering = (column.desc(), Booking.id.desc())

        try:
            query = self.db.query(Booking).filter(*conditions)
            total = query.count()
            items = (
                query.order_by(*ordering)
                .offset(booking_filter.offset)
                .limit(booking_filter.per_page)
                .all()
            )
            return items, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")
