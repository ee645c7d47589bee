"""
tests/test_booking_rules.py
Pure booking rules: date validity, price quoting, upcoming/past split.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from shared.models.models import BookingStatus
from shared.utils.booking_rules import (
    Timeframe,
    classify,
    is_upcoming,
    partition_bookings,
    quote_total_price,
    rental_days,
    validate_date_range,
    validate_total_price,
)
from shared.utils.errors import InvalidDateRange, InvalidPrice

NOW = datetime(2025, 5, 20, 12, 0, tzinfo=timezone.utc)
JUNE_1 = datetime(2025, 6, 1, tzinfo=timezone.utc)
JUNE_5 = datetime(2025, 6, 5, tzinfo=timezone.utc)


# ── Date range ─────────────────────────────────────────────────────────────────

def test_valid_range_passes():
    validate_date_range(JUNE_1, JUNE_5)


@pytest.mark.parametrize("end", [JUNE_1, JUNE_1 - timedelta(seconds=1)])
def test_empty_or_inverted_range_rejected(end):
    with pytest.raises(InvalidDateRange):
        validate_date_range(JUNE_1, end)


def test_naive_datetimes_are_treated_as_utc():
    validate_date_range(JUNE_1.replace(tzinfo=None), JUNE_5)
    with pytest.raises(InvalidDateRange):
        validate_date_range(JUNE_5, JUNE_1.replace(tzinfo=None))


# ── Price ──────────────────────────────────────────────────────────────────────

def test_negative_price_rejected():
    with pytest.raises(InvalidPrice):
        validate_total_price(Decimal("-0.01"))


def test_zero_price_allowed():
    validate_total_price(Decimal("0"))


def test_rental_days_rounds_partial_days_up():
    assert rental_days(JUNE_1, JUNE_5) == 4
    assert rental_days(JUNE_1, JUNE_1 + timedelta(hours=25)) == 2
    assert rental_days(JUNE_1, JUNE_1 + timedelta(minutes=30)) == 1


def test_quote_total_price():
    assert quote_total_price(Decimal("45.00"), JUNE_1, JUNE_5) == Decimal("180.00")


# ── Classification ─────────────────────────────────────────────────────────────

def test_future_booking_is_upcoming():
    assert classify(JUNE_1, BookingStatus.PENDING, NOW) == Timeframe.UPCOMING


def test_started_active_booking_is_upcoming():
    assert is_upcoming(NOW - timedelta(days=2), BookingStatus.ACTIVE, NOW)


@pytest.mark.parametrize(
    "status",
    [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.CANCELLED],
)
def test_started_non_active_booking_is_past(status):
    assert classify(NOW - timedelta(days=2), status, NOW) == Timeframe.PAST


def test_booking_starting_exactly_now_is_past():
    assert classify(NOW, BookingStatus.CONFIRMED, NOW) == Timeframe.PAST


def test_status_may_be_given_as_string():
    assert is_upcoming(NOW - timedelta(days=1), "active", NOW)


def test_partition_keeps_order_and_covers_everything():
    bookings = [
        SimpleNamespace(name="a", start_date=NOW + timedelta(days=1), status=BookingStatus.PENDING),
        SimpleNamespace(name="b", start_date=NOW - timedelta(days=3), status=BookingStatus.COMPLETED),
        SimpleNamespace(name="c", start_date=NOW - timedelta(days=1), status=BookingStatus.ACTIVE),
        SimpleNamespace(name="d", start_date=NOW - timedelta(days=9), status=BookingStatus.CANCELLED),
    ]
    upcoming, past = partition_bookings(bookings, NOW)
    assert [b.name for b in upcoming] == ["a", "c"]
    assert [b.name for b in past] == ["b", "d"]
