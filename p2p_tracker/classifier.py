"""Schedule classification for loan records.

A loan record arrives as a flat mapping with three mode flags
(``isFixedPrincipal``, ``isBullet``, ``isRepeat``) plus the fields of whichever
mode is selected. ``classify_loan`` resolves the flags to exactly one schedule
variant, validates what that variant needs and returns a typed ``Loan``.

Flag precedence is fixed-principal, then bullet, then repeat, then single.
Fixed-principal clears the other two flags. Bullet only counts together with
repeat: a record with ``isBullet`` set but ``isRepeat`` cleared is a single
payment loan.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

from .data_models import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    BulletRepeatSchedule,
    FixedPrincipalSchedule,
    Frequency,
    Loan,
    RepeatSchedule,
    Schedule,
    SingleSchedule,
)
from .exceptions import ValidationError
from .periods import payment_count
from .utils import optional_decimal, parse_iso_date, to_bool

logger = logging.getLogger(__name__)


def new_loan_id() -> int:
    """Return a millisecond timestamp suitable as a fresh loan id."""
    return int(time.time() * 1000)


def _required_text(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"Missing required field: {key}", field=key)
    return text


def _positive_decimal(record: Mapping[str, Any], key: str):
    try:
        value = optional_decimal(record.get(key))
    except ValueError as exc:
        raise ValidationError(f"Invalid number for {key}: {record.get(key)!r}", field=key) from exc
    if value is None or value <= 0:
        raise ValidationError(f"{key} must be a positive number", field=key)
    return value


def _date(record: Mapping[str, Any], key: str):
    value = record.get(key)
    if value is None or value == "":
        raise ValidationError(f"Missing required field: {key}", field=key)
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid date for {key}: {value!r}", field=key) from exc


def _frequency(record: Mapping[str, Any], key: str) -> Frequency:
    raw = record.get(key) or Frequency.MONTHLY.value
    try:
        return Frequency(str(raw).strip().lower())
    except ValueError as exc:
        choices = ", ".join(f.value for f in Frequency)
        raise ValidationError(f"Unknown frequency {raw!r}; expected one of {choices}", field=key) from exc


def resolve_variant(is_fixed_principal: bool, is_bullet: bool, is_repeat: bool) -> str:
    """Return the schedule kind selected by the three mode flags."""
    if is_fixed_principal:
        return FixedPrincipalSchedule.kind
    if is_bullet and is_repeat:
        return BulletRepeatSchedule.kind
    if is_repeat:
        return RepeatSchedule.kind
    return SingleSchedule.kind


def classify_schedule(record: Mapping[str, Any], first, last) -> Schedule:
    kind = resolve_variant(
        to_bool(record.get("isFixedPrincipal")),
        to_bool(record.get("isBullet")),
        to_bool(record.get("isRepeat")),
    )

    if kind == FixedPrincipalSchedule.kind:
        principal_per_payment = _positive_decimal(record, "principalPerPayment")
        total_interest = _positive_decimal(record, "totalInterest")
        frequency = _frequency(record, "fixedPrincipalFrequency")
        return FixedPrincipalSchedule(
            principal_per_payment=principal_per_payment,
            total_interest=total_interest,
            frequency=frequency,
            payment_count=payment_count(first, last, frequency),
        )

    if kind == SingleSchedule.kind:
        return SingleSchedule()

    payment_amount = _positive_decimal(record, "paymentAmount")
    frequency = _frequency(record, "frequency")
    count = payment_count(first, last, frequency)
    if kind == BulletRepeatSchedule.kind:
        return BulletRepeatSchedule(payment_amount=payment_amount, frequency=frequency, payment_count=count)
    return RepeatSchedule(payment_amount=payment_amount, frequency=frequency, payment_count=count)


def classify_loan(record: Mapping[str, Any], loan_id: Optional[int] = None) -> Loan:
    """Validate a flat loan record and return a typed ``Loan``.

    Parameters
    ----------
    record: Mapping[str, Any]
        Flat record using the stored field names (``description``, ``amount``,
        ``firstPaymentDate``, ``isRepeat``, ``paymentAmount`` ...).
    loan_id: Optional[int]
        Id to assign. Falls back to ``record["id"]`` and then to a fresh
        timestamp id.

    Raises
    ------
    ValidationError
        If a field required by the selected variant is missing or invalid.
        ``ValidationError.field`` names the field.
    """
    description = _required_text(record, "description")
    amount = _positive_decimal(record, "amount")
    first = _date(record, "firstPaymentDate")
    last = _date(record, "lastPaymentDate")
    if first > last:
        raise ValidationError(
            "First payment date must not be after last payment date", field="lastPaymentDate"
        )

    category = str(record.get("category") or DEFAULT_CATEGORY).strip().lower()
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown category {category!r}", field="category")

    schedule = classify_schedule(record, first, last)

    if loan_id is None:
        raw_id = record.get("id")
        try:
            loan_id = int(raw_id) if raw_id not in (None, "") else new_loan_id()
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid loan id: {raw_id!r}", field="id") from exc

    logger.debug("Classified loan %s (%s) as %s", loan_id, description, schedule.kind)
    return Loan(
        id=loan_id,
        description=description,
        amount=amount,
        category=category,
        first_payment_date=first,
        last_payment_date=last,
        schedule=schedule,
    )
