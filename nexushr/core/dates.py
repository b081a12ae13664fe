"""
Month and day helpers shared by the payroll and leave services.

Months travel as ``YYYY-MM`` strings and dates as ``YYYY-MM-DD`` strings on
the wire; arithmetic is done on ``datetime.date`` with ``relativedelta`` so
that month ends are clamped instead of overflowing.
"""
import calendar
import re
import time
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Tuple

from dateutil.relativedelta import relativedelta

from nexushr.core.exceptions import ValidationError

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def parse_month(month: str) -> date:
    """Return the first day of a ``YYYY-MM`` month."""
    if not month or not MONTH_PATTERN.match(month):
        raise ValidationError(f"Invalid month '{month}', expected YYYY-MM", details={"month": month})
    year, mon = month.split("-")
    return date(int(year), int(mon), 1)


def format_month(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def shift_month(month: str, months: int) -> str:
    return format_month(parse_month(month) + relativedelta(months=months))


def previous_month(month: str) -> str:
    return shift_month(month, -1)


def next_month(month: str) -> str:
    return shift_month(month, 1)


def month_index(day: date) -> int:
    """Months since year zero; comparing two indexes ignores the day of month."""
    return day.year * 12 + (day.month - 1)


def month_bounds(month: str) -> Tuple[date, date]:
    first = parse_month(month)
    last_day = calendar.monthrange(first.year, first.month)[1]
    return first, first.replace(day=last_day)


def add_months(day: date, months: int) -> date:
    return day + relativedelta(months=months)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def now_ms() -> int:
    """Wall clock in epoch milliseconds, the timestamp format of the records."""
    return int(time.time() * 1000)


def utc_now() -> datetime:
    """Naive UTC timestamp, the form SQLite hands back for DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
