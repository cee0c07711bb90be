from decimal import Decimal

import pytest

from p2p_tracker.data_models import Portfolio, RepeatSchedule, SingleSchedule
from p2p_tracker.exceptions import (
    DuplicatePlatformError,
    LoanNotFoundError,
    PlatformNotFoundError,
    StoreError,
    ValidationError,
)
from p2p_tracker.portfolio import (
    PortfolioManager,
    add_loan,
    add_platform,
    delete_loan,
    delete_platform,
    edit_loan,
    merge_portfolio,
    replace_portfolio,
)
from p2p_tracker.serialization import portfolio_from_dict, portfolio_to_dict


@pytest.fixture
def portfolio():
    portfolio = Portfolio()
    add_platform(portfolio, "Mintos")
    return portfolio


def test_add_platform_trims_and_rejects_duplicates(portfolio):
    add_platform(portfolio, "  Bondora ")
    assert list(portfolio.platforms) == ["Mintos", "Bondora"]
    with pytest.raises(DuplicatePlatformError):
        add_platform(portfolio, "Bondora")
    with pytest.raises(ValidationError):
        add_platform(portfolio, "   ")


def test_add_loan_assigns_unique_ids(portfolio, repeat_record, single_record):
    first = add_loan(portfolio, "Mintos", repeat_record)
    second = add_loan(portfolio, "Mintos", single_record)
    assert first.id != second.id
    assert [loan.id for loan in portfolio.platforms["Mintos"].loans] == [first.id, second.id]


def test_invalid_loan_leaves_portfolio_unchanged(portfolio, repeat_record):
    del repeat_record["paymentAmount"]
    with pytest.raises(ValidationError):
        add_loan(portfolio, "Mintos", repeat_record)
    assert portfolio.platforms["Mintos"].loans == []


def test_add_loan_to_unknown_platform(portfolio, repeat_record):
    with pytest.raises(PlatformNotFoundError):
        add_loan(portfolio, "Nope", repeat_record)


def test_edit_replaces_in_place(portfolio, repeat_record, single_record):
    original = add_loan(portfolio, "Mintos", repeat_record)
    other = add_loan(portfolio, "Mintos", single_record)
    edited = edit_loan(portfolio, "Mintos", original.id, dict(single_record, description="Now single"))
    loans = portfolio.platforms["Mintos"].loans
    assert [loan.id for loan in loans] == [original.id, other.id]
    assert edited.id == original.id
    assert loans[0].description == "Now single"
    assert loans[0].schedule == SingleSchedule()


def test_failed_edit_keeps_old_loan(portfolio, repeat_record):
    loan = add_loan(portfolio, "Mintos", repeat_record)
    with pytest.raises(ValidationError):
        edit_loan(portfolio, "Mintos", loan.id, dict(repeat_record, amount=0))
    assert portfolio.platforms["Mintos"].loans[0] is loan


def test_delete_loan(portfolio, repeat_record):
    loan = add_loan(portfolio, "Mintos", repeat_record)
    delete_loan(portfolio, "Mintos", loan.id)
    assert portfolio.platforms["Mintos"].loans == []
    with pytest.raises(LoanNotFoundError):
        delete_loan(portfolio, "Mintos", loan.id)


def test_delete_platform_cascades(portfolio, repeat_record):
    add_loan(portfolio, "Mintos", repeat_record)
    removed = delete_platform(portfolio, "Mintos")
    assert len(removed.loans) == 1
    assert portfolio.platforms == {}
    with pytest.raises(PlatformNotFoundError):
        delete_platform(portfolio, "Mintos")


def test_merge_appends_and_adds(portfolio, repeat_record, single_record):
    add_loan(portfolio, "Mintos", repeat_record)
    imported = Portfolio()
    add_platform(imported, "Mintos")
    add_platform(imported, "Bondora")
    add_loan(imported, "Mintos", single_record)
    add_loan(imported, "Bondora", single_record)
    merge_portfolio(portfolio, imported)
    assert len(portfolio.platforms["Mintos"].loans) == 2
    assert isinstance(portfolio.platforms["Mintos"].loans[0].schedule, RepeatSchedule)
    assert len(portfolio.platforms["Bondora"].loans) == 1


def test_merging_an_export_into_itself_renumbers_loans(portfolio, repeat_record, single_record):
    add_loan(portfolio, "Mintos", repeat_record)
    add_loan(portfolio, "Mintos", single_record)
    exported = portfolio_from_dict(portfolio_to_dict(portfolio))
    merge_portfolio(portfolio, exported)
    ids = [loan.id for loan in portfolio.platforms["Mintos"].loans]
    assert len(ids) == 4
    assert len(set(ids)) == 4
    assert [loan.description for loan in portfolio.platforms["Mintos"].loans[2:]] == [
        "Car loan #1",
        "Short-term note",
    ]
    assert [loan.id for loan in exported.platforms["Mintos"].loans] == ids[:2]


def test_replace_renumbers_duplicates_within_import(repeat_record, single_record):
    data = {
        "A": {"loans": [dict(repeat_record, id=7)]},
        "B": {"loans": [dict(single_record, id=7)]},
    }
    portfolio = Portfolio()
    replace_portfolio(portfolio, portfolio_from_dict(data))
    assert portfolio.platforms["A"].loans[0].id == 7
    assert portfolio.platforms["B"].loans[0].id != 7


class TestManager:
    @pytest.fixture
    def changes(self):
        return []

    @pytest.fixture
    def manager(self, store, today, changes):
        return PortfolioManager(store, clock=lambda: today, on_change=changes.append)

    def test_every_mutation_saves_and_recomputes(self, manager, store, changes, repeat_record):
        manager.add_platform("Mintos")
        loan = manager.add_loan("Mintos", repeat_record)
        assert len(changes) == 2
        assert changes[-1].total_invested == Decimal("1200")
        assert changes[-1].pending_incomes == Decimal("770")

        reloaded = store.load()
        assert reloaded.platforms["Mintos"].loans[0].id == loan.id

        manager.delete_platform("Mintos")
        assert changes[-1].total_invested == 0
        assert store.load().platforms == {}

    def test_validation_failure_does_not_save(self, manager, store, changes, repeat_record):
        manager.add_platform("Mintos")
        repeat_record["description"] = ""
        with pytest.raises(ValidationError):
            manager.add_loan("Mintos", repeat_record)
        assert len(changes) == 1
        assert store.load().platforms["Mintos"].loans == []

    def test_import_merge_and_replace(self, manager, repeat_record, single_record):
        manager.add_platform("Mintos")
        manager.add_loan("Mintos", repeat_record)
        imported = Portfolio()
        add_platform(imported, "Bondora")
        add_loan(imported, "Bondora", single_record)

        stats = manager.import_portfolio(imported)
        assert set(stats.platforms) == {"Mintos", "Bondora"}

        stats = manager.import_portfolio(imported, replace=True)
        assert set(stats.platforms) == {"Bondora"}

    def test_reset(self, manager, store, repeat_record):
        manager.add_platform("Mintos")
        manager.add_loan("Mintos", repeat_record)
        stats = manager.reset()
        assert stats.loan_count == 0
        assert store.load().platforms == {}

    def test_failed_save_rolls_back(self, store, today, changes):
        PortfolioManager(store).add_platform("Mintos")

        class BrokenStore:
            def load(self, key):
                return store.load(key)

            def save(self, portfolio, key):
                raise StoreError("database is locked")

        manager = PortfolioManager(BrokenStore(), clock=lambda: today, on_change=changes.append)
        with pytest.raises(StoreError):
            manager.add_platform("Bondora")
        assert list(manager.portfolio.platforms) == ["Mintos"]
        assert changes == []
        with pytest.raises(StoreError):
            manager.delete_platform("Mintos")
        assert list(manager.portfolio.platforms) == ["Mintos"]
