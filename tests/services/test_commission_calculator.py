from decimal import Decimal

import pytest

from facility_booking.schemas.facility import BookableFacility
from facility_booking.services.commission_calculator import CommissionCalculator, round_half_up


def test_round_half_up_to_cents():
    assert round_half_up(Decimal("10.005")) == Decimal("10.01")
    assert round_half_up(Decimal("10.004")) == Decimal("10.00")


@pytest.mark.parametrize(
    "price,minutes,rate,total,commission",
    [
        ("1000.00", 60, None, "1000.00", "100.00"),
        ("1000.00", 90, None, "1500.00", "150.00"),
        ("1200.00", 45, "0.15", "900.00", "135.00"),
        ("999.99", 30, None, "500.00", "50.00"),
        ("333.33", 50, "0.125", "277.78", "34.72"),
    ],
)
def test_price_uses_facility_rate_or_default(price, minutes, rate, total, commission):
    calculator = CommissionCalculator(Decimal("0.10"))

    result = calculator.price(Decimal(price), minutes, Decimal(rate) if rate else None)

    assert result.total_amount == Decimal(total)
    assert result.commission_amount == Decimal(commission)
    assert result.commission_rate == (Decimal(rate) if rate else Decimal("0.10"))


def test_price_booking_reads_facility_projection():
    facility = BookableFacility(
        id="f1",
        name="Court",
        price_per_hour=Decimal("800.00"),
        commission_rate=Decimal("0.20"),
        operating_hours={},
    )

    result = CommissionCalculator("0.10").price_booking(facility, 120)

    assert result.total_amount == Decimal("1600.00")
    assert result.commission_amount == Decimal("320.00")
