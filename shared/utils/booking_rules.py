"""
shared/utils/booking_rules.py
Pure booking rules: date-range validity, price quoting, and the
upcoming/past classification. No I/O; safe to call from anywhere.
"""

import math
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, List, Optional, Tuple, TypeVar

from shared.models.models import BookingStatus
from shared.utils.errors import InvalidDateRange, InvalidPrice

T = TypeVar("T")

ONE_DAY = timedelta(days=1)


class Timeframe(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes (e.g. read back from SQLite) are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_date_range(start_date: datetime, end_date: datetime) -> None:
    """Bookings cover [start_date, end_date); the interval must be non-empty."""
    if as_utc(end_date) <= as_utc(start_date):
        raise InvalidDateRange()


def validate_total_price(total_price: Decimal) -> None:
    if total_price < 0:
        raise InvalidPrice()


def rental_days(start_date: datetime, end_date: datetime) -> int:
    """Billable days; any started day counts as a full day."""
    validate_date_range(start_date, end_date)
    return math.ceil((as_utc(end_date) - as_utc(start_date)) / ONE_DAY)


def quote_total_price(price_per_day: Decimal, start_date: datetime, end_date: datetime) -> Decimal:
    total = Decimal(price_per_day) * rental_days(start_date, end_date)
    return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def is_upcoming(start_date: datetime, status: BookingStatus, now: Optional[datetime] = None) -> bool:
    """A booking is upcoming if it has not started yet, or it is currently active."""
    now = as_utc(now or datetime.now(timezone.utc))
    return as_utc(start_date) > now or BookingStatus(status) == BookingStatus.ACTIVE


def classify(start_date: datetime, status: BookingStatus, now: Optional[datetime] = None) -> Timeframe:
    return Timeframe.UPCOMING if is_upcoming(start_date, status, now) else Timeframe.PAST


def partition_bookings(bookings: Iterable[T], now: Optional[datetime] = None) -> Tuple[List[T], List[T]]:
    """Split bookings into (upcoming, past), preserving input order."""
    now = now or datetime.now(timezone.utc)
    upcoming, past = [], []
    for booking in bookings:
        if is_upcoming(booking.start_date, booking.status, now):
            upcoming.append(booking)
        else:
            past.append(booking)
    return upcoming, past
