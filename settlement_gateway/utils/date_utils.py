"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone
from typing import List

AVERAGE_DAYS_PER_MONTH = 30.44


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def add_months(from_date: date, months: int) -> date:
    """Shift by whole months, clamping the day to the end of the target month"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    if not date.min.year <= year <= date.max.year:
        raise OverflowError(f"date out of range: year {year}")
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> float:
    """Fractional months from start to end (negative when end is earlier)"""
    whole_months = (end.year - start.year) * 12 + (end.month - start.month)
    return whole_months + (end.day - start.day) / AVERAGE_DAYS_PER_MONTH


def full_years_between(start: date, end: date) -> int:
    """Completed years from start to end, never negative"""
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return max(years, 0)


def generate_payment_dates(start: date, end: date, months_step: int | None) -> List[date]:
    """
    Scheduled payment dates from start to end (inclusive).

    A months_step of None means a single payment on the start date. The
    schedule stops at date.max when end is that close to it.
    """
    if months_step is None:
        return [start]
    if months_step <= 0:
        raise ValueError("months_step must be positive")

    dates = []
    index = 0
    current = start
    while current <= end:
        dates.append(current)
        index += 1
        # Offsets are taken from start so month-end clamping does not drift
        try:
            current = add_months(start, index * months_step)
        except OverflowError:
            break
    return dates
