from datetime import date
from decimal import Decimal

import pytest

from p2p_tracker.classifier import classify_loan, resolve_variant
from p2p_tracker.data_models import (
    BulletRepeatSchedule,
    FixedPrincipalSchedule,
    Frequency,
    RepeatSchedule,
    SingleSchedule,
)
from p2p_tracker.engine import compute_loan_metrics
from p2p_tracker.exceptions import ValidationError


def test_no_flags_is_single(single_record):
    loan = classify_loan(single_record, loan_id=7)
    assert loan.schedule == SingleSchedule()
    assert loan.id == 7
    assert loan.amount == Decimal("300")
    assert loan.first_payment_date == date(2024, 3, 1)


def test_repeat_computes_payment_count(repeat_record):
    loan = classify_loan(repeat_record)
    assert isinstance(loan.schedule, RepeatSchedule)
    assert loan.schedule.payment_count == 12
    assert loan.schedule.frequency is Frequency.MONTHLY
    assert loan.schedule.payment_amount == Decimal("110")


def test_stored_payment_count_is_recomputed(repeat_record):
    repeat_record["paymentCount"] = 99
    assert classify_loan(repeat_record).schedule.payment_count == 12


def test_bullet_needs_repeat(bullet_record):
    loan = classify_loan(bullet_record)
    assert isinstance(loan.schedule, BulletRepeatSchedule)
    assert loan.schedule.payment_count == 6


def test_bullet_without_repeat_is_single(bullet_record):
    bullet_record["isRepeat"] = False
    del bullet_record["paymentAmount"]
    loan = classify_loan(bullet_record)
    assert loan.schedule == SingleSchedule()
    assert compute_loan_metrics(loan).total_return == Decimal("500")


def test_fixed_principal_takes_precedence(fixed_principal_record):
    fixed_principal_record.update(isBullet=True, isRepeat=True, paymentAmount=5)
    loan = classify_loan(fixed_principal_record)
    assert isinstance(loan.schedule, FixedPrincipalSchedule)
    assert loan.schedule.payment_count == 10


def test_resolve_variant_precedence():
    assert resolve_variant(True, True, True) == "fixed_principal"
    assert resolve_variant(False, True, True) == "bullet_repeat"
    assert resolve_variant(False, True, False) == "single"
    assert resolve_variant(False, False, True) == "repeat"
    assert resolve_variant(False, False, False) == "single"


@pytest.mark.parametrize("field", ["principalPerPayment", "totalInterest"])
def test_fixed_principal_requires_its_fields(fixed_principal_record, field):
    del fixed_principal_record[field]
    with pytest.raises(ValidationError) as excinfo:
        classify_loan(fixed_principal_record)
    assert excinfo.value.field == field


def test_repeat_requires_positive_payment_amount(repeat_record):
    repeat_record["paymentAmount"] = 0
    with pytest.raises(ValidationError) as excinfo:
        classify_loan(repeat_record)
    assert excinfo.value.field == "paymentAmount"


@pytest.mark.parametrize(
    "field, value",
    [
        ("description", "   "),
        ("amount", "abc"),
        ("amount", -5),
        ("firstPaymentDate", ""),
        ("lastPaymentDate", "2024-13-01"),
        ("category", "crypto"),
        ("frequency", "fortnightly"),
    ],
)
def test_invalid_common_fields(repeat_record, field, value):
    repeat_record[field] = value
    with pytest.raises(ValidationError) as excinfo:
        classify_loan(repeat_record)
    assert excinfo.value.field == field


def test_first_after_last_is_rejected(repeat_record):
    repeat_record["firstPaymentDate"] = "2025-01-01"
    with pytest.raises(ValidationError, match="must not be after"):
        classify_loan(repeat_record)


def test_category_defaults_to_other(single_record):
    del single_record["category"]
    assert classify_loan(single_record).category == "other"


def test_validation_error_is_a_value_error(single_record):
    single_record["amount"] = None
    with pytest.raises(ValueError):
        classify_loan(single_record)
