"""Core calculation engine for the portfolio tracker.

This module implements the financial logic behind every figure the tracker
shows: per-loan return, interest and annualised yield; per-platform totals;
and portfolio-wide totals including the time-windowed figures (earned this
month, yield this year, pending income). All functions are pure: they read a
``Portfolio`` snapshot and an explicit ``today`` and return fresh dataclasses.

Divisions by a zero amount or a zero duration yield ``Decimal("0")`` rather
than raising.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, getcontext
from typing import Dict, List, Optional

from .data_models import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    BulletRepeatSchedule,
    FixedPrincipalSchedule,
    Loan,
    LoanMetrics,
    Platform,
    PlatformStats,
    Portfolio,
    PortfolioStats,
    RepeatSchedule,
    UpcomingPayment,
)
from .exceptions import PlatformNotFoundError
from .periods import month_span, monthly_multiplier, months_overlapping_year, payment_count

getcontext().prec = 28  # increase precision for financial calculations

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")


def _annualised(interest: Decimal, invested: Decimal, years: Decimal) -> Decimal:
    """Simple-interest annualisation: ``interest / invested / years * 100``."""
    if invested <= 0 or years <= 0:
        return ZERO
    return interest / invested / years * HUNDRED


def fixed_principal_final_payment(loan: Loan) -> Decimal:
    """Return the last payment of a fixed-principal loan.

    Every earlier payment returns ``principal_per_payment``; the last one
    returns whatever principal is left plus the whole interest.
    """
    schedule = loan.schedule
    regular_principal = schedule.principal_per_payment * (schedule.payment_count - 1)
    return loan.amount - regular_principal + schedule.total_interest


def compute_loan_metrics(loan: Loan) -> LoanMetrics:
    """Compute return, interest, monthly income and annualised ROI for a loan.

    Parameters
    ----------
    loan: Loan
        A classified loan (see ``classifier.classify_loan``).

    Returns
    -------
    LoanMetrics
        ``total_interest_earned`` may be negative for repeat loans whose
        payments do not cover the principal; it is reported as a loss, not
        clamped. Single-payment loans report zero interest and zero ROI.
    """
    schedule = loan.schedule
    amount = loan.amount
    duration_months = month_span(loan.first_payment_date, loan.last_payment_date)
    final_payment: Optional[Decimal] = None

    if isinstance(schedule, FixedPrincipalSchedule):
        multiplier = monthly_multiplier(schedule.frequency)
        interest = schedule.total_interest
        total_return = amount + interest
        monthly_income = schedule.principal_per_payment * multiplier
        # interest is paid with the final payment, not spread across months
        monthly_interest = ZERO
        final_payment = fixed_principal_final_payment(loan)
    elif isinstance(schedule, BulletRepeatSchedule):
        multiplier = monthly_multiplier(schedule.frequency)
        interest = schedule.payment_amount * schedule.payment_count
        total_return = interest + amount
        monthly_income = schedule.payment_amount * multiplier
        monthly_interest = monthly_income
    elif isinstance(schedule, RepeatSchedule):
        multiplier = monthly_multiplier(schedule.frequency)
        total_return = schedule.payment_amount * schedule.payment_count
        interest = total_return - amount
        monthly_income = schedule.payment_amount * multiplier
        monthly_interest = ZERO
        if schedule.payment_count > 0:
            monthly_interest = (interest / schedule.payment_count) * multiplier
    else:
        return LoanMetrics(
            total_return=amount,
            profit=ZERO,
            total_interest_earned=ZERO,
            monthly_income=ZERO,
            monthly_interest=ZERO,
            roi_annualized=ZERO,
            duration_months=duration_months,
        )

    years = Decimal(duration_months) / MONTHS_PER_YEAR
    return LoanMetrics(
        total_return=total_return,
        profit=total_return - amount,
        total_interest_earned=interest,
        monthly_income=monthly_income,
        monthly_interest=monthly_interest,
        roi_annualized=_annualised(interest, amount, years),
        duration_months=duration_months,
        final_payment=final_payment,
    )


def summarize_platform(platform: Platform) -> PlatformStats:
    """Sum the loan metrics of one platform.

    The net annualised return divides by the plain mean of the loans'
    durations, not an investment-weighted one.
    """
    loans = platform.loans
    total_invested = ZERO
    monthly_income = ZERO
    monthly_interest = ZERO
    total_return = ZERO
    total_interest = ZERO
    total_months = 0

    for loan in loans:
        metrics = compute_loan_metrics(loan)
        total_invested += loan.amount
        monthly_income += metrics.monthly_income
        monthly_interest += metrics.monthly_interest
        total_return += metrics.total_return
        total_interest += metrics.total_interest_earned
        total_months += metrics.duration_months

    avg_years = ZERO
    if loans:
        avg_years = Decimal(total_months) / Decimal(len(loans)) / MONTHS_PER_YEAR

    return PlatformStats(
        total_invested=total_invested,
        monthly_income=monthly_income,
        monthly_interest=monthly_interest,
        total_return=total_return,
        total_interest_earned=total_interest,
        profit=total_return - total_invested,
        net_annualised_return=_annualised(total_interest, total_invested, avg_years),
        loan_count=len(loans),
    )


def compute_platform_stats(portfolio: Portfolio, platform_name: str) -> PlatformStats:
    """Return ``PlatformStats`` for the named platform.

    Raises ``PlatformNotFoundError`` if the portfolio has no such platform.
    """
    platform = portfolio.platforms.get(platform_name)
    if platform is None:
        raise PlatformNotFoundError(platform_name)
    return summarize_platform(platform)


def _earned_this_month(loan: Loan, today: date) -> Decimal:
    schedule = loan.schedule
    last = loan.last_payment_date
    if loan.first_payment_date > today:
        return ZERO

    if isinstance(schedule, FixedPrincipalSchedule):
        monthly_principal = schedule.principal_per_payment * monthly_multiplier(schedule.frequency)
        if last.year == today.year and last.month == today.month:
            return monthly_principal + schedule.total_interest
        if last >= today:
            return monthly_principal
        return ZERO
    if isinstance(schedule, (BulletRepeatSchedule, RepeatSchedule)):
        if last >= today:
            return schedule.payment_amount * monthly_multiplier(schedule.frequency)
    return ZERO


def _yield_in_year(loan: Loan, metrics: LoanMetrics, year: int) -> Decimal:
    schedule = loan.schedule
    first = loan.first_payment_date
    last = loan.last_payment_date
    months = months_overlapping_year(first, last, year)
    if months == 0:
        return ZERO

    if isinstance(schedule, FixedPrincipalSchedule):
        # not prorated: counted in full in the year of the final payment only
        if last.year == year:
            return schedule.total_interest
        return ZERO
    if isinstance(schedule, BulletRepeatSchedule):
        return monthly_multiplier(schedule.frequency) * schedule.payment_amount * months
    if isinstance(schedule, RepeatSchedule):
        interest_per_month = metrics.total_interest_earned / Decimal(month_span(first, last))
        return interest_per_month * months
    return ZERO


def _pending_income(loan: Loan, today: date) -> Decimal:
    schedule = loan.schedule
    last = loan.last_payment_date
    if last <= today:
        return ZERO

    if isinstance(schedule, FixedPrincipalSchedule):
        return fixed_principal_final_payment(loan)
    if isinstance(schedule, (BulletRepeatSchedule, RepeatSchedule)):
        remaining = payment_count(today, last, schedule.frequency)
        pending = schedule.payment_amount * remaining
        if isinstance(schedule, BulletRepeatSchedule):
            pending += loan.amount
        return pending
    return loan.amount


def compute_portfolio_stats(portfolio: Portfolio, today: Optional[date] = None) -> PortfolioStats:
    """Compute headline and time-windowed figures for the whole portfolio.

    Parameters
    ----------
    portfolio: Portfolio
        The portfolio snapshot.
    today: Optional[date]
        The reference date for the monthly, yearly and pending figures.
        Defaults to ``date.today()``; pass it explicitly for reproducible
        results.

    Returns
    -------
    PortfolioStats
        ``earned_this_month`` counts one month's worth of income from loans
        that have started and not yet finished. ``yield_this_year`` is the
        interest attributed to ``today.year``. ``pending_incomes`` is the cash
        still to come from loans ending after ``today``.
    """
    if today is None:
        today = date.today()

    platform_stats: Dict[str, PlatformStats] = {}
    total_invested = ZERO
    monthly_income = ZERO
    monthly_interest = ZERO
    total_return = ZERO
    total_interest = ZERO
    loan_count = 0
    earned_this_month = ZERO
    yield_this_year = ZERO
    pending_incomes = ZERO

    for name, platform in portfolio.platforms.items():
        stats = summarize_platform(platform)
        platform_stats[name] = stats
        total_invested += stats.total_invested
        monthly_income += stats.monthly_income
        monthly_interest += stats.monthly_interest
        total_return += stats.total_return
        total_interest += stats.total_interest_earned
        loan_count += stats.loan_count

        for loan in platform.loans:
            metrics = compute_loan_metrics(loan)
            earned_this_month += _earned_this_month(loan, today)
            yield_this_year += _yield_in_year(loan, metrics, today.year)
            pending_incomes += _pending_income(loan, today)

    average_yield = ZERO
    if total_invested > 0:
        average_yield = total_interest / total_invested * HUNDRED

    return PortfolioStats(
        as_of=today,
        total_invested=total_invested,
        monthly_income=monthly_income,
        monthly_interest=monthly_interest,
        total_return=total_return,
        total_interest_earned=total_interest,
        profit=total_return - total_invested,
        loan_count=loan_count,
        earned_this_month=earned_this_month,
        yield_this_year=yield_this_year,
        pending_incomes=pending_incomes,
        average_yield=average_yield,
        platforms=platform_stats,
    )


def category_breakdown(portfolio: Portfolio) -> Dict[str, Decimal]:
    """Return the amount invested per loan category.

    Every known category is present, with zero where nothing is invested.
    """
    breakdown: Dict[str, Decimal] = {category: ZERO for category in CATEGORIES}
    for _, loan in portfolio.loans():
        category = loan.category or DEFAULT_CATEGORY
        breakdown[category] = breakdown.get(category, ZERO) + loan.amount
    return breakdown


def upcoming_payments(
    portfolio: Portfolio, today: Optional[date] = None, window_days: int = 30
) -> List[UpcomingPayment]:
    """List loans whose last payment falls within ``window_days`` of ``today``.

    Results are sorted by days until due, soonest first. ``amount`` is the
    recurring payment for repeat loans and zero otherwise.
    """
    if today is None:
        today = date.today()

    upcoming: List[UpcomingPayment] = []
    for name, loan in portfolio.loans():
        days = (loan.last_payment_date - today).days
        if 0 <= days <= window_days:
            amount = getattr(loan.schedule, "payment_amount", ZERO)
            upcoming.append(
                UpcomingPayment(
                    platform=name,
                    loan_id=loan.id,
                    description=loan.description,
                    days_until_due=days,
                    amount=amount,
                )
            )
    upcoming.sort(key=lambda p: p.days_until_due)
    return upcoming
