from datetime import time, timedelta

from pydantic import ValidationError
import pytest

from facility_booking.core.enums import ActorRole
from facility_booking.principal import Actor
from facility_booking.repositories.booking_repository import BookingRepository, advisory_lock_key
from facility_booking.schemas.booking import BookingFilter
from tests.conftest import ADMIN_ID, OTHER_USER_ID, USER_ID
from tests.helpers import TODAY

ADMIN = Actor(ADMIN_ID, ActorRole.ADMIN)


@pytest.fixture
def seeded(ledger, state_machine, facility, facility_factory):
    court_b = facility_factory(name="Court B", price_per_hour="600.00")
    day1 = TODAY + timedelta(days=1)
    day2 = TODAY + timedelta(days=2)
    bookings = {
        "u1_day1": ledger.create_booking(facility.id, USER_ID, day1, time(8), time(9)),
        "u1_day2": ledger.create_booking(facility.id, USER_ID, day2, time(10), time(12)),
        "u2_day1": ledger.create_booking(court_b.id, OTHER_USER_ID, day1, time(8), time(9)),
        "u2_day2": ledger.create_booking(facility.id, OTHER_USER_ID, day2, time(14), time(15)),
    }
    state_machine.confirm(bookings["u1_day2"].id)
    state_machine.cancel(bookings["u2_day2"].id, ADMIN, "Closure")
    return {"facility": facility, "court_b": court_b, **bookings}


def _ids(items):
    return [b.id for b in items]


def test_filter_by_user(db, seeded):
    items, total = BookingRepository(db).list_filtered(BookingFilter(user_id=USER_ID))

    assert total == 2
    assert set(_ids(items)) == {seeded["u1_day1"].id, seeded["u1_day2"].id}


def test_filters_compose(db, seeded):
    items, total = BookingRepository(db).list_filtered(
        BookingFilter(
            facility_id=seeded["facility"].id,
            statuses=["pending", "confirmed"],
            date_from=TODAY + timedelta(days=2),
        )
    )

    assert total == 1
    assert _ids(items) == [seeded["u1_day2"].id]


def test_filter_by_status(db, seeded):
    items, total = BookingRepository(db).list_filtered(BookingFilter(statuses=["cancelled"]))
    assert _ids(items) == [seeded["u2_day2"].id]
    assert total == 1


def test_sorting_and_pagination(db, seeded):
    repository = BookingRepository(db)

    first_page, total = repository.list_filtered(
        BookingFilter(sort_by="total_amount", sort_order="asc", per_page=2, page=1)
    )
    second_page, _ = repository.list_filtered(
        BookingFilter(sort_by="total_amount", sort_order="asc", per_page=2, page=2)
    )

    assert total == 4
    amounts = [b.total_amount for b in first_page + second_page]
    assert amounts == sorted(amounts)
    assert _ids(first_page)[0] == seeded["u2_day1"].id
    assert _ids(second_page)[-1] == seeded["u1_day2"].id
    assert not set(_ids(first_page)) & set(_ids(second_page))


def test_date_range_upper_bound(db, seeded):
    items, total = BookingRepository(db).list_filtered(
        BookingFilter(date_to=TODAY + timedelta(days=1), sort_by="booking_date")
    )
    assert total == 2
    assert set(_ids(items)) == {seeded["u1_day1"].id, seeded["u2_day1"].id}


def test_filter_rejects_inverted_range_and_unknown_sort():
    with pytest.raises(ValidationError):
        BookingFilter(date_from=TODAY, date_to=TODAY - timedelta(days=1))
    with pytest.raises(ValidationError):
        BookingFilter(sort_by="user_id; DROP TABLE bookings")
    with pytest.raises(ValidationError):
        BookingFilter(per_page=51)


def test_active_queries(db, seeded):
    repository = BookingRepository(db)
    day2 = TODAY + timedelta(days=2)

    active = repository.get_active_for_facility_date(seeded["facility"].id, day2)
    overlapping = repository.find_overlapping_active(
        seeded["facility"].id, day2, time(11), time(15)
    )

    # The cancelled 14:00 booking is not active
    assert _ids(active) == [seeded["u1_day2"].id]
    assert _ids(overlapping) == [seeded["u1_day2"].id]
    assert repository.count_active_for_user(USER_ID, TODAY) == 2
    assert repository.count_active_for_user(USER_ID, TODAY + timedelta(days=2)) == 1
    assert repository.count_active_for_user(OTHER_USER_ID, TODAY) == 1


def test_code_lookups(db, seeded):
    repository = BookingRepository(db)
    code = seeded["u1_day1"].booking_code

    assert repository.code_exists(code)
    assert repository.get_by_code(code).id == seeded["u1_day1"].id
    assert not repository.code_exists("00000000")


def test_advisory_lock_key_is_stable_signed_64_bit():
    key = advisory_lock_key("booking-user", "user-1")

    assert key == advisory_lock_key("booking-user", "user-1")
    assert key != advisory_lock_key("booking-user", "user-2")
    assert -(2**63) <= key < 2**63
