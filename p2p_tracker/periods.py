"""Calendar arithmetic for repayment schedules.

All durations here are deliberately coarse. ``month_span`` counts calendar
months inclusively and ignores the day of the month, and the monthly
multipliers are fixed approximations (a week is 4.33 per month, a year 0.083).
Stored figures were computed with exactly these rules, so they must not be
replaced with exact day-count conventions.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Union

from .data_models import Frequency

FrequencyLike = Union[Frequency, str]

_MONTHLY_MULTIPLIERS = {
    Frequency.DAILY: Decimal("30"),
    Frequency.WEEKLY: Decimal("4.33"),
    Frequency.MONTHLY: Decimal("1"),
    Frequency.QUARTERLY: Decimal("0.33"),
    Frequency.YEARLY: Decimal("0.083"),
}


def _as_frequency(frequency: FrequencyLike) -> Optional[Frequency]:
    try:
        return Frequency(frequency)
    except ValueError:
        return None


def month_span(first: date, last: date) -> int:
    """Return the inclusive number of calendar months from ``first`` to ``last``.

    ``2024-01-31`` to ``2024-02-01`` spans two months; the same date spans one.
    """
    return (last.year - first.year) * 12 + (last.month - first.month) + 1


def payment_count(first: Optional[date], last: Optional[date], frequency: FrequencyLike) -> int:
    """Return the number of payments between two dates for ``frequency``.

    Both ends are inclusive. Day-based frequencies use the absolute day
    difference; month-based ones use calendar months. An unrecognised
    frequency contributes no periods, and the result is never below one.
    A missing date yields 0.
    """
    if not first or not last:
        return 0

    diff_days = abs((last - first).days)
    months_between = (last.year - first.year) * 12 + (last.month - first.month)

    freq = _as_frequency(frequency)
    count = 0
    if freq is Frequency.DAILY:
        count = diff_days + 1
    elif freq is Frequency.WEEKLY:
        count = diff_days // 7 + 1
    elif freq is Frequency.MONTHLY:
        count = months_between + 1
    elif freq is Frequency.QUARTERLY:
        count = months_between // 3 + 1
    elif freq is Frequency.YEARLY:
        count = (last.year - first.year) + 1

    return max(1, count)


def monthly_multiplier(frequency: FrequencyLike) -> Decimal:
    """Return the factor converting a per-period amount to a monthly figure.

    Unknown frequencies are treated as monthly.
    """
    freq = _as_frequency(frequency)
    if freq is None:
        return Decimal("1")
    return _MONTHLY_MULTIPLIERS[freq]


def months_overlapping_year(first: date, last: date, year: int) -> int:
    """Return how many calendar months of ``[first, last]`` fall in ``year``.

    The interval is clipped to 1 January - 31 December of ``year`` and the
    clipped interval is measured with :func:`month_span`. Returns 0 when the
    interval does not touch the year at all.
    """
    start = max(first, date(year, 1, 1))
    end = min(last, date(year, 12, 31))
    if start > end:
        return 0
    return month_span(start, end)
