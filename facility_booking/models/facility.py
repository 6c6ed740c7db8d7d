# facility_booking/models/facility.py
"""
Facility model.

Facilities are onboarded and verified outside the booking engine. The engine
only reads them: price, commission rate, operating hours and bookability.
"""

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Numeric, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Facility(Base):
    """
    Bookable venue (court, field, hall).

    ``operating_hours`` maps a lowercase weekday name to
    ``{"open": "HH:MM", "close": "HH:MM"}``. A missing or null weekday
    means the facility is closed that day.
    """

    __tablename__ = "facilities"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    price_per_hour = Column(Numeric(10, 2), nullable=False)
    commission_rate = Column(Numeric(5, 4), nullable=True)
    operating_hours = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("price_per_hour >= 0", name="ck_facilities_price_non_negative"),
        CheckConstraint(
            "commission_rate IS NULL OR (commission_rate > 0 AND commission_rate <= 1)",
            name="ck_facilities_commission_rate_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Facility {self.id}: {self.name} active={self.is_active} verified={self.is_verified}>"
