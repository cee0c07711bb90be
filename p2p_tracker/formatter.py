"""Output helpers for the portfolio tracker.

This module provides simple functions to render portfolio, platform and loan
figures in a tabular text format using built-in printing and string
formatting. Currency amounts are shown with the symbol of the selected
display currency; no conversion between currencies takes place.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List

from .config import DATE_FORMAT_DISPLAY, DEFAULT_CURRENCY
from .data_models import (
    BulletRepeatSchedule,
    FixedPrincipalSchedule,
    Loan,
    PlatformStats,
    PortfolioStats,
    RepeatSchedule,
    UpcomingPayment,
)
from .engine import compute_loan_metrics

CURRENCIES = {
    "EUR": {"symbol": "€", "decimals": 2},
    "GBP": {"symbol": "£", "decimals": 2},
    "JPY": {"symbol": "¥", "decimals": 0},
}


def format_currency(amount, currency: str = DEFAULT_CURRENCY) -> str:
    """Format ``amount`` with the currency symbol, e.g. ``€1,234.56`` or ``¥1,235``.

    Unknown currency codes fall back to euros.
    """
    meta = CURRENCIES.get((currency or "").upper(), CURRENCIES[DEFAULT_CURRENCY])
    exponent = Decimal(1).scaleb(-meta["decimals"])
    value = Decimal(str(amount)).quantize(exponent, rounding=ROUND_HALF_UP)
    return f"{meta['symbol']}{value:,.{meta['decimals']}f}"


def format_percent(value) -> str:
    return f"{Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}%"


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT_DISPLAY)


def describe_payments(loan: Loan, currency: str = DEFAULT_CURRENCY) -> str:
    """Return a one-line description of how a loan pays out."""
    schedule = loan.schedule
    if isinstance(schedule, FixedPrincipalSchedule):
        metrics = compute_loan_metrics(loan)
        return (
            f"{schedule.payment_count - 1} x {format_currency(schedule.principal_per_payment, currency)} "
            f"(principal) + Final: {format_currency(metrics.final_payment, currency)}"
        )
    if isinstance(schedule, BulletRepeatSchedule):
        return (
            f"Interest: {schedule.payment_count} x {format_currency(schedule.payment_amount, currency)} "
            f"{schedule.frequency.value}"
        )
    if isinstance(schedule, RepeatSchedule):
        return (
            f"{schedule.payment_count} x {format_currency(schedule.payment_amount, currency)} "
            f"{schedule.frequency.value}"
        )
    return "Single payment"


def print_summary(stats: PortfolioStats, currency: str = DEFAULT_CURRENCY) -> None:
    """Print the portfolio headline figures in a human-readable format."""
    print(f"Portfolio summary (as of {format_date(stats.as_of)})")
    print("-" * 72)
    print(f"Total invested     : {format_currency(stats.total_invested, currency)}")
    print(f"Monthly income     : {format_currency(stats.monthly_income, currency)}")
    print(f"Monthly interest   : {format_currency(stats.monthly_interest, currency)}")
    print(f"Total return       : {format_currency(stats.total_return, currency)}")
    print(f"Interest earned    : {format_currency(stats.total_interest_earned, currency)}")
    print(f"Earned this month  : {format_currency(stats.earned_this_month, currency)}")
    print(f"Yield this year    : {format_currency(stats.yield_this_year, currency)}")
    print(f"Pending incomes    : {format_currency(stats.pending_incomes, currency)}")
    print(f"Average yield      : {format_percent(stats.average_yield)}")
    print(f"Loans              : {stats.loan_count}")
    print("-" * 72)


def print_platforms(platforms: Dict[str, PlatformStats], currency: str = DEFAULT_CURRENCY) -> None:
    """Print one row per platform with its totals and net annualised return."""
    if not platforms:
        print("No platforms yet")
        return
    print(f"{'Platform':20s} {'Invested':>14s} {'Monthly':>12s} {'Interest':>12s} {'NAR':>9s} {'Loans':>6s}")
    for name, stats in platforms.items():
        print(
            f"{name[:20]:20s} {format_currency(stats.total_invested, currency):>14s} "
            f"{format_currency(stats.monthly_income, currency):>12s} "
            f"{format_currency(stats.total_interest_earned, currency):>12s} "
            f"{format_percent(stats.net_annualised_return):>9s} {stats.loan_count:>6d}"
        )


def print_loans(loans: Iterable[Loan], currency: str = DEFAULT_CURRENCY) -> None:
    """Print the loans of a platform as a tab-separated table."""
    loans = list(loans)
    if not loans:
        print("No loans added yet")
        return
    headers = ["Id", "Description", "Category", "Amount", "Payment", "Return", "NAR", "First", "Last"]
    print("\t".join(headers))
    for loan in loans:
        metrics = compute_loan_metrics(loan)
        nar = "-" if loan.schedule.kind == "single" else format_percent(metrics.roi_annualized)
        row = [
            str(loan.id),
            loan.description,
            loan.category,
            format_currency(loan.amount, currency),
            describe_payments(loan, currency),
            format_currency(metrics.total_return, currency),
            nar,
            format_date(loan.first_payment_date),
            format_date(loan.last_payment_date),
        ]
        print("\t".join(row))


def print_upcoming(
    payments: List[UpcomingPayment], currency: str = DEFAULT_CURRENCY, window_days: int = 30
) -> None:
    if not payments:
        print(f"No payments due in the next {window_days} days")
        return
    for payment in payments:
        print(
            f"{payment.description} due in {payment.days_until_due} days on {payment.platform}"
            f" ({format_currency(payment.amount, currency)})"
        )
