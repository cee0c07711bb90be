"""Conversion between portfolio objects and their stored JSON structure.

The stored structure is the one the tracker has always exported::

    {"<platform name>": {"loans": [<flat loan record>, ...]}, ...}

where each flat record carries the mode flags (``isBullet``,
``isFixedPrincipal``, ``isRepeat``) and the fields of its schedule variant
under camelCase names. Amounts are written as JSON numbers and dates as
``YYYY-MM-DD`` strings.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from .classifier import classify_loan
from .data_models import (
    BulletRepeatSchedule,
    FixedPrincipalSchedule,
    Loan,
    Platform,
    Portfolio,
    RepeatSchedule,
)
from .exceptions import StoreError, ValidationError

logger = logging.getLogger(__name__)


def _number(value):
    """Return ints for whole amounts and floats otherwise."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def loan_to_record(loan: Loan) -> Dict[str, Any]:
    """Flatten a ``Loan`` into its stored record form."""
    schedule = loan.schedule
    record: Dict[str, Any] = {
        "id": loan.id,
        "description": loan.description,
        "amount": _number(loan.amount),
        "category": loan.category,
        "firstPaymentDate": loan.first_payment_date.isoformat(),
        "lastPaymentDate": loan.last_payment_date.isoformat(),
        "isBullet": isinstance(schedule, BulletRepeatSchedule),
        "isFixedPrincipal": isinstance(schedule, FixedPrincipalSchedule),
        "isRepeat": isinstance(schedule, (BulletRepeatSchedule, RepeatSchedule)),
    }
    if isinstance(schedule, FixedPrincipalSchedule):
        record.update(
            principalPerPayment=_number(schedule.principal_per_payment),
            totalInterest=_number(schedule.total_interest),
            fixedPrincipalFrequency=schedule.frequency.value,
            paymentCount=schedule.payment_count,
        )
    elif isinstance(schedule, (BulletRepeatSchedule, RepeatSchedule)):
        record.update(
            paymentAmount=_number(schedule.payment_amount),
            frequency=schedule.frequency.value,
            paymentCount=schedule.payment_count,
        )
    return record


def portfolio_to_dict(portfolio: Portfolio) -> Dict[str, Any]:
    return {
        name: {"loans": [loan_to_record(loan) for loan in platform.loans]}
        for name, platform in portfolio.platforms.items()
    }


def portfolio_from_dict(data: Mapping[str, Any]) -> Portfolio:
    """Rebuild a ``Portfolio`` from its stored structure.

    Every loan record goes through ``classify_loan``, so the payment count is
    recomputed from the dates rather than trusted from the record.

    Raises
    ------
    ValidationError
        If the structure is not a mapping of platforms, or a loan record is
        invalid. The message names the platform and loan.
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Invalid data format: expected an object of platforms")

    portfolio = Portfolio()
    for name, payload in data.items():
        if not isinstance(payload, Mapping):
            raise ValidationError(f"Invalid data format for platform '{name}'", field="loans")
        platform = Platform(name=str(name))
        for record in payload.get("loans") or []:
            try:
                platform.loans.append(classify_loan(record))
            except ValidationError as exc:
                loan_ref = record.get("id") if isinstance(record, Mapping) else None
                raise ValidationError(
                    f"Platform '{name}', loan {loan_ref}: {exc.message}", field=exc.field
                ) from exc
            except AttributeError as exc:
                raise ValidationError(f"Invalid loan record on platform '{name}'", field="loans") from exc
        portfolio.platforms[platform.name] = platform
    return portfolio


def dumps(portfolio: Portfolio) -> str:
    return json.dumps(portfolio_to_dict(portfolio), indent=2)


def loads(text: str) -> Portfolio:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON: {exc}") from exc
    return portfolio_from_dict(data)


def export_to_json(path: Path, portfolio: Portfolio) -> None:
    """Export the portfolio to a JSON file."""
    try:
        with path.open("w", encoding="utf-8") as f:
            json.dump(portfolio_to_dict(portfolio), f, indent=2)
    except OSError as exc:
        raise StoreError(f"Could not write {path}: {exc}") from exc
    logger.info("Exported %d platforms to %s", len(portfolio.platforms), path)


def import_from_json(path: Path) -> Portfolio:
    """Read a portfolio previously written by ``export_to_json``."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreError(f"Could not read {path}: {exc}") from exc
    return loads(text)
