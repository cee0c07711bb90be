"""Command-line interface for the P2P portfolio tracker.

This module uses the ``click`` library to implement a multi-command
interface. Users can manage platforms and loans, view the portfolio summary
and upcoming payments, and export or import the whole portfolio as JSON.
Every change is saved immediately and followed by a fresh summary line.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

import click

from . import config
from .data_models import CATEGORIES, Frequency, PortfolioStats
from .engine import category_breakdown, compute_platform_stats, upcoming_payments
from .exceptions import StoreError, TrackerError, ValidationError
from .formatter import (
    format_currency,
    print_loans,
    print_platforms,
    print_summary,
    print_upcoming,
)
from .portfolio import PortfolioManager, get_loan, get_platform
from .serialization import export_to_json, import_from_json, loan_to_record
from .store import PortfolioStore

FREQUENCY_CHOICES = [f.value for f in Frequency]


class TrackerContext:
    """Lazily opened store/manager shared by all sub-commands."""

    def __init__(self, database_url: str, key: str, currency: str, today: Optional[date]) -> None:
        self.database_url = database_url
        self.key = key
        self.currency = currency
        self.today = today
        self._manager: Optional[PortfolioManager] = None

    def clock(self) -> date:
        return self.today or date.today()

    @property
    def manager(self) -> PortfolioManager:
        if self._manager is None:
            try:
                store = PortfolioStore(self.database_url)
                self._manager = PortfolioManager(
                    store, key=self.key, clock=self.clock, on_change=self.redisplay
                )
            except (StoreError, ValidationError) as exc:
                raise click.ClickException(f"Could not open portfolio: {exc}")
        return self._manager

    def redisplay(self, stats: PortfolioStats) -> None:
        click.echo(
            f"Invested {format_currency(stats.total_invested, self.currency)} | "
            f"Monthly {format_currency(stats.monthly_income, self.currency)} | "
            f"Pending {format_currency(stats.pending_incomes, self.currency)} | "
            f"Loans {stats.loan_count}"
        )


pass_tracker = click.make_pass_decorator(TrackerContext)


def _fail(exc: TrackerError) -> click.ClickException:
    if isinstance(exc, ValidationError) and exc.field:
        return click.BadParameter(exc.message, param_hint=exc.field)
    return click.ClickException(str(exc))


def build_record_from_options(base: Dict[str, Any], **options: Any) -> Dict[str, Any]:
    """Overlay command-line options on a flat loan record.

    ``None`` options leave the corresponding field of ``base`` untouched, so
    the same helper serves ``loan add`` (empty base) and ``loan edit`` (base
    is the stored record).
    """
    mapping = {
        "description": "description",
        "amount": "amount",
        "category": "category",
        "first": "firstPaymentDate",
        "last": "lastPaymentDate",
        "bullet": "isBullet",
        "fixed_principal": "isFixedPrincipal",
        "repeat": "isRepeat",
        "payment_amount": "paymentAmount",
        "frequency": "frequency",
        "principal_per_payment": "principalPerPayment",
        "total_interest": "totalInterest",
    }
    record = dict(base)
    for option, key in mapping.items():
        value = options.get(option)
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.date().isoformat()
        record[key] = value
    # The fixed-principal frequency shares the --frequency option.
    if options.get("frequency") is not None:
        record["fixedPrincipalFrequency"] = options["frequency"]
    return record


def _apply_mode_flags(options: Dict[str, Any]) -> Dict[str, Any]:
    """Fixed principal clears the other mode flags; bullet switches repeat on."""
    if options.get("fixed_principal"):
        options["bullet"] = False
        options["repeat"] = False
    elif options.get("bullet") or options.get("repeat"):
        if options.get("bullet"):
            options["repeat"] = True
        if options.get("fixed_principal") is None:
            options["fixed_principal"] = False
    return options


def loan_options(func):
    """Attach the loan field options shared by ``loan add`` and ``loan edit``."""
    date_type = click.DateTime(formats=["%Y-%m-%d"])
    decorators = [
        click.option("--description", "-d", "description", help="Free-text description"),
        click.option("--amount", "-a", "amount", help="Principal invested"),
        click.option("--category", "category", type=click.Choice(CATEGORIES), help="Loan category"),
        click.option("--first", "first", type=date_type, help="First payment date (YYYY-MM-DD)"),
        click.option("--last", "last", type=date_type, help="Last payment date (YYYY-MM-DD)"),
        click.option("--repeat/--no-repeat", "repeat", default=None, help="Recurring payments"),
        click.option("--bullet/--no-bullet", "bullet", default=None, help="Interest-only payments, principal at the end"),
        click.option(
            "--fixed-principal/--no-fixed-principal",
            "fixed_principal",
            default=None,
            help="Fixed principal per payment, interest with the final payment",
        ),
        click.option("--payment-amount", "payment_amount", help="Recurring payment (or interest payment for bullet loans)"),
        click.option("--frequency", "frequency", type=click.Choice(FREQUENCY_CHOICES), help="Payment frequency"),
        click.option("--principal-per-payment", "principal_per_payment", help="Principal per payment (fixed principal)"),
        click.option("--total-interest", "total_interest", help="Total interest (fixed principal)"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.option("--database-url", envvar="P2P_TRACKER_DATABASE_URL", default=config.DEFAULT_DATABASE_URL, show_default=True, help="SQLAlchemy URL of the portfolio store")
@click.option("--key", default=config.DEFAULT_PORTFOLIO_KEY, show_default=True, help="Portfolio key within the store")
@click.option("--currency", envvar="P2P_TRACKER_CURRENCY", default=config.DEFAULT_CURRENCY, show_default=True, help="Display currency (EUR, GBP, JPY)")
@click.option("--today", type=click.DateTime(formats=["%Y-%m-%d"]), help="Reference date for time-windowed figures")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, database_url: str, key: str, currency: str, today: Optional[datetime], verbose: bool) -> None:
    """Track P2P lending platforms, loans and their returns."""
    config.configure_logging(verbose)
    ctx.obj = TrackerContext(database_url, key, currency.upper(), today.date() if today else None)


@cli.group()
def platform() -> None:
    """Manage lending platforms."""


@platform.command("add")
@click.argument("name")
@pass_tracker
def platform_add(tracker: TrackerContext, name: str) -> None:
    """Add an empty platform."""
    try:
        tracker.manager.add_platform(name)
    except TrackerError as exc:
        raise _fail(exc)
    click.echo(f"Platform '{name.strip()}' added")


@platform.command("delete")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@pass_tracker
def platform_delete(tracker: TrackerContext, name: str, yes: bool) -> None:
    """Delete a platform and all of its loans."""
    if not yes:
        click.confirm(f"Are you sure you want to delete {name} and all its loans?", abort=True)
    try:
        tracker.manager.delete_platform(name)
    except TrackerError as exc:
        raise _fail(exc)
    click.echo(f"Platform '{name}' deleted")


@platform.command("list")
@click.option("--search", default="", help="Only show platforms whose name contains this text")
@pass_tracker
def platform_list(tracker: TrackerContext, search: str) -> None:
    """List platforms with their totals."""
    stats = tracker.manager.stats()
    platforms = {
        name: s for name, s in stats.platforms.items() if search.lower() in name.lower()
    }
    print_platforms(platforms, tracker.currency)


@platform.command("show")
@click.argument("name")
@pass_tracker
def platform_show(tracker: TrackerContext, name: str) -> None:
    """Show a platform's totals and loans."""
    portfolio = tracker.manager.portfolio
    try:
        stats = compute_platform_stats(portfolio, name)
        loans = get_platform(portfolio, name).loans
    except TrackerError as exc:
        raise _fail(exc)
    print_platforms({name: stats}, tracker.currency)
    click.echo("")
    print_loans(loans, tracker.currency)


@cli.group()
def loan() -> None:
    """Manage the loans of a platform."""


@loan.command("add")
@click.argument("platform_name")
@loan_options
@pass_tracker
def loan_add(tracker: TrackerContext, platform_name: str, **options: Any) -> None:
    """Add a loan to PLATFORM_NAME."""
    record = build_record_from_options({}, **_apply_mode_flags(options))
    try:
        new_loan = tracker.manager.add_loan(platform_name, record)
    except TrackerError as exc:
        raise _fail(exc)
    click.echo(f"Loan {new_loan.id} added to {platform_name}")


@loan.command("edit")
@click.argument("platform_name")
@click.argument("loan_id", type=int)
@loan_options
@pass_tracker
def loan_edit(tracker: TrackerContext, platform_name: str, loan_id: int, **options: Any) -> None:
    """Change fields of an existing loan; unspecified fields keep their value."""
    try:
        existing = get_loan(tracker.manager.portfolio, platform_name, loan_id)
        record = build_record_from_options(loan_to_record(existing), **_apply_mode_flags(options))
        tracker.manager.edit_loan(platform_name, loan_id, record)
    except TrackerError as exc:
        raise _fail(exc)
    click.echo(f"Loan {loan_id} updated")


@loan.command("delete")
@click.argument("platform_name")
@click.argument("loan_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@pass_tracker
def loan_delete(tracker: TrackerContext, platform_name: str, loan_id: int, yes: bool) -> None:
    """Delete a loan."""
    if not yes:
        click.confirm("Are you sure you want to delete this loan?", abort=True)
    try:
        tracker.manager.delete_loan(platform_name, loan_id)
    except TrackerError as exc:
        raise _fail(exc)
    click.echo(f"Loan {loan_id} deleted")


@loan.command("list")
@click.argument("platform_name")
@click.option("--search", default="", help="Only show loans whose description contains this text")
@pass_tracker
def loan_list(tracker: TrackerContext, platform_name: str, search: str) -> None:
    """List the loans of PLATFORM_NAME."""
    try:
        loans = get_platform(tracker.manager.portfolio, platform_name).loans
    except TrackerError as exc:
        raise _fail(exc)
    print_loans([l for l in loans if search.lower() in l.description.lower()], tracker.currency)


@cli.command()
@click.option("--categories", is_flag=True, help="Also show the amount invested per category")
@pass_tracker
def summary(tracker: TrackerContext, categories: bool) -> None:
    """Print the portfolio summary and per-platform totals."""
    stats = tracker.manager.stats()
    print_summary(stats, tracker.currency)
    print_platforms(stats.platforms, tracker.currency)
    if categories:
        click.echo("")
        for category, amount in category_breakdown(tracker.manager.portfolio).items():
            click.echo(f"{category:12s} {format_currency(amount, tracker.currency)}")


@cli.command()
@click.option("--days", default=config.UPCOMING_PAYMENT_WINDOW_DAYS, show_default=True, help="Look-ahead window in days")
@pass_tracker
def dues(tracker: TrackerContext, days: int) -> None:
    """List loans whose last payment is due soon."""
    payments = upcoming_payments(tracker.manager.portfolio, tracker.clock(), window_days=days)
    print_upcoming(payments, tracker.currency, window_days=days)


@cli.command("export")
@click.argument("output", type=click.Path(dir_okay=False))
@pass_tracker
def export_cmd(tracker: TrackerContext, output: str) -> None:
    """Export the portfolio to a JSON file."""
    path = Path(output)
    if path.suffix.lower() != ".json":
        raise click.BadParameter("Export must use .json extension")
    try:
        export_to_json(path, tracker.manager.portfolio)
    except TrackerError as exc:
        raise _fail(exc)
    click.echo(f"Portfolio exported to {path}")


@cli.command("import")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--replace", is_flag=True, help="Replace all data instead of merging")
@pass_tracker
def import_cmd(tracker: TrackerContext, source: str, replace: bool) -> None:
    """Import a JSON export, merging it into the portfolio by default."""
    try:
        imported = import_from_json(Path(source))
        tracker.manager.import_portfolio(imported, replace=replace)
    except TrackerError as exc:
        raise _fail(exc)
    click.echo("Data imported successfully!")


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@pass_tracker
def reset(tracker: TrackerContext, yes: bool) -> None:
    """Delete every platform and loan."""
    if not yes:
        click.confirm("This will delete all platforms and loans. Continue?", abort=True)
    try:
        tracker.manager.reset()
    except TrackerError as exc:
        raise _fail(exc)
    click.echo("All data cleared")


if __name__ == "__main__":
    cli()
