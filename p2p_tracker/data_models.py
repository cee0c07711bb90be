"""Data models for the P2P portfolio tracker.

This module defines dataclasses representing the entities used by the
tracker: loans with their repayment schedule, platforms grouping loans, the
portfolio as a whole, and the derived (never persisted) metric views. Using
dataclasses makes it easy to construct, inspect and serialize these
structures.

A loan's repayment shape is a tagged union: ``Loan.schedule`` holds exactly
one of ``SingleSchedule``, ``FixedPrincipalSchedule``, ``BulletRepeatSchedule``
or ``RepeatSchedule``, each carrying only the fields it needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


CATEGORIES = ("personal", "business", "real_estate", "auto", "other")
DEFAULT_CATEGORY = "other"


@dataclass(frozen=True)
class SingleSchedule:
    """The whole principal comes back in one payment; no interest is tracked."""

    kind = "single"


@dataclass(frozen=True)
class FixedPrincipalSchedule:
    """Equal principal portions each period; all interest in the final payment.

    Attributes
    ----------
    principal_per_payment: Decimal
        Principal returned by every payment except the last one.
    total_interest: Decimal
        Interest for the whole loan, paid together with the final payment.
    frequency: Frequency
        How often a payment is made.
    payment_count: int
        Number of payments between the first and last payment dates.
    """

    principal_per_payment: Decimal
    total_interest: Decimal
    frequency: Frequency
    payment_count: int

    kind = "fixed_principal"


@dataclass(frozen=True)
class BulletRepeatSchedule:
    """Recurring interest-only payments; principal is repaid at term end."""

    payment_amount: Decimal
    frequency: Frequency
    payment_count: int

    kind = "bullet_repeat"


@dataclass(frozen=True)
class RepeatSchedule:
    """Fixed periodic payment amortizing principal and interest together."""

    payment_amount: Decimal
    frequency: Frequency
    payment_count: int

    kind = "repeat"


Schedule = Union[SingleSchedule, FixedPrincipalSchedule, BulletRepeatSchedule, RepeatSchedule]


@dataclass
class Loan:
    """A single investment held on a platform.

    ``id`` is assigned on creation and never changes; edits replace the loan
    in place under the same id.
    """

    id: int
    description: str
    amount: Decimal
    category: str
    first_payment_date: date
    last_payment_date: date
    schedule: Schedule


@dataclass
class Platform:
    """A lending venue owning an ordered list of loans."""

    name: str
    loans: List[Loan] = field(default_factory=list)


@dataclass
class Portfolio:
    """All platforms, keyed by their unique name (insertion ordered)."""

    platforms: Dict[str, Platform] = field(default_factory=dict)

    def loans(self):
        """Yield ``(platform_name, loan)`` pairs across every platform."""
        for name, platform in self.platforms.items():
            for loan in platform.loans:
                yield name, loan


@dataclass
class LoanMetrics:
    total_return: Decimal
    profit: Decimal
    total_interest_earned: Decimal
    monthly_income: Decimal
    monthly_interest: Decimal
    roi_annualized: Decimal
    duration_months: int
    # Only set for fixed-principal loans: remaining principal plus all interest.
    final_payment: Optional[Decimal] = None


@dataclass
class PlatformStats:
    total_invested: Decimal
    monthly_income: Decimal
    monthly_interest: Decimal
    total_return: Decimal
    total_interest_earned: Decimal
    profit: Decimal
    net_annualised_return: Decimal
    loan_count: int


@dataclass
class PortfolioStats:
    """Headline figures for the whole portfolio as of ``as_of``.

    The time-windowed figures (``earned_this_month``, ``yield_this_year`` and
    ``pending_incomes``) depend on ``as_of``; everything else does not.
    """

    as_of: date
    total_invested: Decimal
    monthly_income: Decimal
    monthly_interest: Decimal
    total_return: Decimal
    total_interest_earned: Decimal
    profit: Decimal
    loan_count: int
    earned_this_month: Decimal
    yield_this_year: Decimal
    pending_incomes: Decimal
    average_yield: Decimal
    platforms: Dict[str, PlatformStats] = field(default_factory=dict)


@dataclass
class UpcomingPayment:
    platform: str
    loan_id: int
    description: str
    days_until_due: int
    amount: Decimal
