"""
Booking price and platform commission.

All arithmetic uses Decimal and rounds half-up to two places, matching how
amounts are stored and displayed.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from ..schemas.facility import BookableFacility

CENT = Decimal("0.01")
MINUTES_PER_HOUR = Decimal(60)


def round_half_up(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BookingPrice:
    total_amount: Decimal
    commission_amount: Decimal
    commission_rate: Decimal


class CommissionCalculator:
    """Prices a booking from the facility's hourly rate."""

    def __init__(self, default_rate: Union[Decimal, str] = Decimal("0.10")):
        self.default_rate = Decimal(str(default_rate))

    def rate_for(self, facility_rate: Optional[Decimal]) -> Decimal:
        if facility_rate is None:
            return self.default_rate
        return Decimal(str(facility_rate))

    def price(
        self,
        price_per_hour: Decimal,
        duration_minutes: int,
        commission_rate: Optional[Decimal] = None,
    ) -> BookingPrice:
        """
        Compute total and commission for a duration.

        Args:
            price_per_hour: Facility hourly price
            duration_minutes: Booked minutes
            commission_rate: Facility rate, or None for the platform default

        Returns:
            BookingPrice with both amounts rounded to cents
        """
        rate = self.rate_for(commission_rate)
        total = round_half_up(Decimal(str(price_per_hour)) * duration_minutes / MINUTES_PER_HOUR)
        commission = round_half_up(total * rate)
        return BookingPrice(total_amount=total, commission_amount=commission, commission_rate=rate)

    def price_booking(self, facility: BookableFacility, duration_minutes: int) -> BookingPrice:
        return self.price(facility.price_per_hour, duration_minutes, facility.commission_rate)
