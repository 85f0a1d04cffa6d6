"""Hour arithmetic and calendar period utilities."""
import calendar
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from zoneinfo import ZoneInfo


HOURS_PRECISION = Decimal("0.01")
ROUNDING_TOLERANCE = 0.01


def round_hours(value: float) -> float:
    """
    Round an hour amount to 2 decimals, halves rounding up.

    Args:
        value: Hours as a decimal number

    Returns:
        Rounded hours

    Examples:
        >>> round_hours(1.005)
        1.01
        >>> round_hours(2.5)
        2.5
    """
    return float(Decimal(str(value)).quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP))


def round_percentage(value: float) -> int:
    """
    Round a percentage to a whole number, halves rounding up.

    Examples:
        >>> round_percentage(62.5)
        63
        >>> round_percentage(33.333)
        33
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """
    Calculate the rounded number of hours between two datetimes.

    Args:
        start: Start time
        end: End time

    Returns:
        Hours rounded to 2 decimals

    Examples:
        >>> hours_between(datetime(2024, 1, 15, 9), datetime(2024, 1, 15, 10, 30))
        1.5
    """
    delta = as_utc(end) - as_utc(start)
    return round_hours(delta.total_seconds() / 3600)


def at_wall_clock(day: date, clock: time, tz_name: Optional[str] = None) -> datetime:
    """
    Combine a calendar day with a wall-clock time, returned in UTC.

    Args:
        day: Calendar day
        clock: Wall-clock time (any tzinfo on it is ignored)
        tz_name: IANA timezone the clock reading belongs to; UTC when None

    Examples:
        >>> at_wall_clock(date(2024, 1, 15), time(9), "Europe/Berlin")
        datetime.datetime(2024, 1, 15, 8, 0, tzinfo=datetime.timezone.utc)
    """
    zone = ZoneInfo(tz_name) if tz_name else timezone.utc
    return as_utc(datetime.combine(day, clock.replace(tzinfo=None), tzinfo=zone))


def day_to_datetime(day: date) -> datetime:
    """BSON has no date type; calendar days are stored as midnight UTC."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def datetime_to_day(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def local_today(tz_name: Optional[str] = None) -> date:
    """
    Today's date in the configured calendar.

    Args:
        tz_name: IANA timezone name, or None for the server's local calendar
    """
    if tz_name:
        return datetime.now(ZoneInfo(tz_name)).date()
    return date.today()


def week_bounds(day: date) -> tuple[date, date]:
    """
    Monday and Sunday of the week containing ``day``.

    Examples:
        >>> week_bounds(date(2024, 1, 17))
        (datetime.date(2024, 1, 15), datetime.date(2024, 1, 21))
    """
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def month_bounds(day: date) -> tuple[date, date]:
    """
    First and last day of the month containing ``day``.

    Examples:
        >>> month_bounds(date(2024, 2, 10))
        (datetime.date(2024, 2, 1), datetime.date(2024, 2, 29))
    """
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)
