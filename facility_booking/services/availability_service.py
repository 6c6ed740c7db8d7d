# facility_booking/services/availability_service.py
"""
Slot availability for a facility on a date.

The facility's operating window for the weekday is tiled into fixed-size
slots; a slot is unavailable when it overlaps a pending or confirmed booking.
Results are advisory: the booking ledger re-checks conflicts atomically.
"""

from datetime import date
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import WEEKDAYS, BookingConfig
from ..core.exceptions import NotFoundException
from ..core.time_utils import format_hhmm, minutes_to_time, time_to_minutes
from ..repositories.booking_repository import BookingRepository
from ..repositories.facility_repository import FacilityRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import DaySlots, Slot
from ..schemas.facility import OperatingWindow
from .base import BaseService
from .conflict_detector import BookedInterval, find_conflicts

logger = logging.getLogger(__name__)


def build_slots(
    window: Optional[OperatingWindow],
    bookings: Iterable[BookedInterval],
    granularity_minutes: int,
) -> List[Slot]:
    """
    Tile an operating window into slots, marking overlaps with active bookings.

    Slots start at the opening time and step by ``granularity_minutes``; a
    trailing remainder shorter than one step is dropped so no slot ends after
    closing. A closed day (``window`` is None) has no slots.
    """
    if window is None:
        return []
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")

    active = list(bookings)
    close_minutes = time_to_minutes(window.close)
    current = time_to_minutes(window.open)
    slots: List[Slot] = []

    while current + granularity_minutes <= close_minutes:
        start = minutes_to_time(current)
        end = minutes_to_time(current + granularity_minutes)
        slots.append(
            Slot(
                start=format_hhmm(start),
                end=format_hhmm(end),
                available=not find_conflicts(start, end, active),
            )
        )
        current += granularity_minutes

    return slots


class AvailabilityService(BaseService):
    """Computes bookable slots for a facility and date."""

    def __init__(
        self,
        db: Session,
        config: BookingConfig,
        facility_repository: Optional[FacilityRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
    ):
        super().__init__(db)
        self.config = config
        self.facility_repository = facility_repository or RepositoryFactory.create_facility_repository(
            db, default_operating_hours=config.default_operating_hours
        )
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )

    @BaseService.measure_operation("get_slots")
    def get_slots(self, facility_id: str, on_date: date) -> DaySlots:
        """
        Get the slot grid for a facility on a date.

        Raises:
            NotFoundException: Facility missing or inactive
        """
        facility = self.facility_repository.get_bookable_facility(facility_id)
        if facility is None or not facility.is_active:
            raise NotFoundException(
                "Facility not found",
                code="FACILITY_NOT_FOUND",
                details={"facility_id": facility_id},
            )

        day_name = WEEKDAYS[on_date.weekday()]
        window = facility.window_for(on_date)
        if window is None:
            return DaySlots(date=on_date, day_of_week=day_name, operating_hours=None, slots=[])

        bookings = self.booking_repository.get_active_for_facility_date(facility_id, on_date)
        return DaySlots(
            date=on_date,
            day_of_week=day_name,
            operating_hours=window.as_hhmm(),
            slots=build_slots(window, bookings, self.config.slot_granularity_minutes),
        )
