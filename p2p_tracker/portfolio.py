"""Portfolio state and the operations that change it.

The module-level functions take the ``Portfolio`` to change as their first
argument and mutate it in place. Input is always validated first, so a
failing call leaves the portfolio exactly as it was.

``PortfolioManager`` owns the single live portfolio of a session: it loads it
from a store, applies the operations above, saves after every change and then
recomputes every figure from scratch, handing the fresh ``PortfolioStats`` to
an optional ``on_change`` callback.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Mapping, Optional, Set

from .classifier import classify_loan, new_loan_id
from .data_models import Loan, Platform, Portfolio, PortfolioStats
from .engine import compute_portfolio_stats
from .exceptions import (
    DuplicatePlatformError,
    LoanNotFoundError,
    PlatformNotFoundError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def get_platform(portfolio: Portfolio, name: str) -> Platform:
    platform = portfolio.platforms.get(name)
    if platform is None:
        raise PlatformNotFoundError(name)
    return platform


def _loan_index(platform: Platform, loan_id: int) -> int:
    for index, loan in enumerate(platform.loans):
        if loan.id == loan_id:
            return index
    raise LoanNotFoundError(loan_id, platform.name)


def get_loan(portfolio: Portfolio, platform_name: str, loan_id: int) -> Loan:
    platform = get_platform(portfolio, platform_name)
    return platform.loans[_loan_index(platform, loan_id)]


def _used_loan_ids(portfolio: Portfolio) -> Set[int]:
    return {loan.id for _, loan in portfolio.loans()}


def _unique_loan_id(used: Set[int]) -> int:
    candidate = new_loan_id()
    while candidate in used:
        candidate += 1
    return candidate


def add_platform(portfolio: Portfolio, name: str) -> Platform:
    """Create an empty platform. Names are trimmed and must be unique."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please enter a platform name", field="name")
    if name in portfolio.platforms:
        raise DuplicatePlatformError(name)
    platform = Platform(name=name)
    portfolio.platforms[name] = platform
    return platform


def delete_platform(portfolio: Portfolio, name: str) -> Platform:
    """Remove a platform together with all of its loans."""
    get_platform(portfolio, name)
    return portfolio.platforms.pop(name)


def add_loan(portfolio: Portfolio, platform_name: str, record: Mapping[str, Any]) -> Loan:
    """Validate ``record`` and append it to the platform under a fresh id."""
    platform = get_platform(portfolio, platform_name)
    loan = classify_loan(record, loan_id=_unique_loan_id(_used_loan_ids(portfolio)))
    platform.loans.append(loan)
    return loan


def edit_loan(portfolio: Portfolio, platform_name: str, loan_id: int, record: Mapping[str, Any]) -> Loan:
    """Replace a loan in place, keeping its id and position."""
    platform = get_platform(portfolio, platform_name)
    index = _loan_index(platform, loan_id)
    loan = classify_loan(record, loan_id=loan_id)
    platform.loans[index] = loan
    return loan


def delete_loan(portfolio: Portfolio, platform_name: str, loan_id: int) -> Loan:
    platform = get_platform(portfolio, platform_name)
    return platform.loans.pop(_loan_index(platform, loan_id))


def merge_portfolio(portfolio: Portfolio, imported: Portfolio) -> None:
    """Merge ``imported`` into ``portfolio``.

    Loans of platforms present in both are appended after the existing ones;
    platforms only present in ``imported`` are added as they are. An imported
    loan whose id is already taken, by an existing loan or by an earlier
    imported one, is given a fresh id.
    """
    used = _used_loan_ids(portfolio)
    for name, platform in imported.platforms.items():
        loans = []
        for loan in platform.loans:
            if loan.id in used:
                fresh_id = _unique_loan_id(used)
                logger.info("Imported loan %s on %s renumbered to %s", loan.id, name, fresh_id)
                loan = replace(loan, id=fresh_id)
            used.add(loan.id)
            loans.append(loan)
        existing = portfolio.platforms.get(name)
        if existing is None:
            portfolio.platforms[name] = Platform(name=name, loans=loans)
        else:
            existing.loans.extend(loans)


def replace_portfolio(portfolio: Portfolio, imported: Portfolio) -> None:
    portfolio.platforms = {}
    merge_portfolio(portfolio, imported)


class PortfolioManager:
    """Owns the live portfolio for one user and keeps it persisted.

    Every mutating method validates, mutates, saves through ``store`` and then
    recomputes the portfolio statistics, passing them to ``on_change``. The
    recomputed stats are also returned to the caller.

    If saving fails with ``StoreError`` the live portfolio is rolled back to
    the last saved state before the error propagates.
    """

    def __init__(
        self,
        store,
        key: str = "default",
        clock: Callable[[], date] = date.today,
        on_change: Optional[Callable[[PortfolioStats], None]] = None,
    ) -> None:
        self._store = store
        self._key = key
        self._clock = clock
        self._on_change = on_change
        self.portfolio = store.load(key)
        self._saved = deepcopy(self.portfolio)

    def stats(self) -> PortfolioStats:
        return compute_portfolio_stats(self.portfolio, self._clock())

    def _commit(self, action: str) -> PortfolioStats:
        try:
            self._store.save(self.portfolio, self._key)
        except StoreError:
            self.portfolio = deepcopy(self._saved)
            raise
        self._saved = deepcopy(self.portfolio)
        logger.info("Portfolio %r updated: %s", self._key, action)
        stats = self.stats()
        if self._on_change is not None:
            self._on_change(stats)
        return stats

    def add_platform(self, name: str) -> PortfolioStats:
        platform = add_platform(self.portfolio, name)
        return self._commit(f"added platform {platform.name}")

    def delete_platform(self, name: str) -> PortfolioStats:
        platform = delete_platform(self.portfolio, name)
        return self._commit(f"deleted platform {platform.name} ({len(platform.loans)} loans)")

    def add_loan(self, platform_name: str, record: Mapping[str, Any]) -> Loan:
        loan = add_loan(self.portfolio, platform_name, record)
        self._commit(f"added loan {loan.id} to {platform_name}")
        return loan

    def edit_loan(self, platform_name: str, loan_id: int, record: Mapping[str, Any]) -> Loan:
        loan = edit_loan(self.portfolio, platform_name, loan_id, record)
        self._commit(f"edited loan {loan_id} on {platform_name}")
        return loan

    def delete_loan(self, platform_name: str, loan_id: int) -> PortfolioStats:
        delete_loan(self.portfolio, platform_name, loan_id)
        return self._commit(f"deleted loan {loan_id} from {platform_name}")

    def reset(self) -> PortfolioStats:
        replace_portfolio(self.portfolio, Portfolio())
        return self._commit("cleared all data")

    def import_portfolio(self, imported: Portfolio, replace: bool = False) -> PortfolioStats:
        if replace or not self.portfolio.platforms:
            replace_portfolio(self.portfolio, imported)
        else:
            merge_portfolio(self.portfolio, imported)
        return self._commit(f"imported {len(imported.platforms)} platforms (replace={replace})")
