# facility_booking/repositories/facility_repository.py
"""
Facility Repository for the facility booking engine.

Facilities are owned by the onboarding workflow; the engine only reads them
and projects them into ``BookableFacility`` values.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import DEFAULT_OPERATING_HOURS, WEEKDAYS
from ..core.exceptions import RepositoryException
from ..models.facility import Facility
from ..schemas.facility import BookableFacility, OperatingWindow
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class FacilityRepository(BaseRepository[Facility]):
    """Read access to facilities for pricing, availability and booking policy."""

    def __init__(
        self,
        db: Session,
        default_operating_hours: Optional[Mapping[str, Mapping[str, str]]] = None,
    ):
        super().__init__(db, Facility)
        self.default_operating_hours = default_operating_hours or DEFAULT_OPERATING_HOURS

    def get_bookable_facility(self, facility_id: str) -> Optional[BookableFacility]:
        """
        Load a facility as a ``BookableFacility``.

        Returns None when the facility does not exist. Inactive or unverified
        facilities are still returned so callers can report why they are
        not bookable.
        """
        try:
            facility = self.db.query(Facility).filter(Facility.id == facility_id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading facility {facility_id}: {str(e)}")
            raise RepositoryException(f"Failed to load facility: {str(e)}")

        if facility is None:
            return None
        return self.to_bookable(facility)

    def to_bookable(self, facility: Facility) -> BookableFacility:
        raw_hours = facility.operating_hours
        if raw_hours is None:
            raw_hours = self.default_operating_hours

        return BookableFacility(
            id=facility.id,
            name=facility.name,
            price_per_hour=facility.price_per_hour,
            commission_rate=facility.commission_rate,
            operating_hours=self._parse_hours(facility.id, raw_hours),
            is_active=bool(facility.is_active),
            is_verified=bool(facility.is_verified),
        )

    def _parse_hours(
        self, facility_id: str, raw_hours: Mapping[str, Any]
    ) -> Dict[str, Optional[OperatingWindow]]:
        windows: Dict[str, Optional[OperatingWindow]] = {}
        for day in WEEKDAYS:
            entry = raw_hours.get(day)
            if not entry:
                windows[day] = None
                continue
            try:
                windows[day] = OperatingWindow.model_validate(entry)
            except (ValidationError, ValueError, TypeError) as exc:
                # Malformed stored hours close that day
                logger.warning(
                    "Ignoring invalid operating hours",
                    extra={"facility_id": facility_id, "weekday": day, "error": str(exc)},
                )
                windows[day] = None
        return windows
