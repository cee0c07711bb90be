"""Utility functions for the portfolio tracker.

This module provides helpers for parsing user input and stored records into
Python data types: ISO dates, decimals and booleans. Stored portfolios may
come from JSON exports where numbers are floats and flags may be missing, so
the helpers are lenient about input types but strict about content.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, getcontext
from typing import Any, Optional

getcontext().prec = 28  # increase decimal precision to avoid rounding errors


def parse_iso_date(value: Any) -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass through a ``date``).

    A trailing time component, as produced by ``Date.toISOString()``, is
    ignored.

    Raises
    ------
    ValueError
        If the value is not a valid date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        text = str(value).strip().split("T")[0]
        return datetime.strptime(text, "%Y-%m-%d").date()
    except Exception as exc:
        raise ValueError(f"Invalid date: {value}") from exc


def decimal_from_str(value: Any) -> Decimal:
    """Convert a numeric string (or number) into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    input. Floats go through ``str`` first so ``0.1`` stays ``Decimal("0.1")``.
    It raises ``ValueError`` if conversion fails.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value}")
    try:
        cleaned = str(value).replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def optional_decimal(value: Any) -> Optional[Decimal]:
    """Like :func:`decimal_from_str` but maps ``None`` and ``""`` to ``None``."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return decimal_from_str(value)


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
