from datetime import date
from decimal import Decimal

import pytest

from p2p_tracker.data_models import Frequency
from p2p_tracker.periods import month_span, monthly_multiplier, months_overlapping_year, payment_count


@pytest.mark.parametrize("frequency", list(Frequency))
def test_same_day_is_one_payment(frequency):
    d = date(2024, 2, 29)
    assert payment_count(d, d, frequency) == 1


def test_month_span_ignores_day_of_month():
    assert month_span(date(2024, 1, 31), date(2024, 2, 1)) == 2
    assert month_span(date(2024, 1, 1), date(2024, 1, 31)) == 1
    assert month_span(date(2023, 11, 15), date(2024, 2, 10)) == 4


def test_payment_count_per_frequency():
    assert payment_count(date(2024, 1, 1), date(2024, 1, 31), Frequency.DAILY) == 31
    assert payment_count(date(2024, 1, 1), date(2024, 1, 29), Frequency.WEEKLY) == 5
    assert payment_count(date(2024, 1, 1), date(2024, 1, 28), Frequency.WEEKLY) == 4
    assert payment_count(date(2024, 1, 1), date(2024, 12, 1), Frequency.MONTHLY) == 12
    assert payment_count(date(2024, 1, 1), date(2024, 12, 1), Frequency.QUARTERLY) == 4
    assert payment_count(date(2024, 1, 1), date(2024, 10, 1), Frequency.QUARTERLY) == 4
    assert payment_count(date(2022, 5, 1), date(2024, 1, 1), Frequency.YEARLY) == 3


def test_payment_count_accepts_plain_strings():
    assert payment_count(date(2024, 1, 1), date(2024, 6, 1), "monthly") == 6


def test_unknown_frequency_is_floored_at_one():
    assert payment_count(date(2024, 1, 1), date(2024, 12, 1), "fortnightly") == 1


def test_missing_date_counts_nothing():
    assert payment_count(None, date(2024, 12, 1), Frequency.MONTHLY) == 0


def test_monthly_multipliers_are_exact():
    assert monthly_multiplier(Frequency.DAILY) == Decimal("30")
    assert monthly_multiplier(Frequency.WEEKLY) == Decimal("4.33")
    assert monthly_multiplier(Frequency.MONTHLY) == Decimal("1")
    assert monthly_multiplier(Frequency.QUARTERLY) == Decimal("0.33")
    assert monthly_multiplier(Frequency.YEARLY) == Decimal("0.083")
    assert monthly_multiplier("unknown") == Decimal("1")


def test_months_overlapping_year():
    assert months_overlapping_year(date(2023, 11, 15), date(2025, 2, 1), 2024) == 12
    assert months_overlapping_year(date(2024, 3, 10), date(2024, 5, 1), 2024) == 3
    assert months_overlapping_year(date(2023, 7, 1), date(2024, 6, 1), 2023) == 6
    assert months_overlapping_year(date(2023, 1, 1), date(2023, 12, 31), 2024) == 0
