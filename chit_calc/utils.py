"""Utility functions for the chit calculator.

This module provides helpers for turning loosely typed store values into
Python data types and for handling dates, including strict day parsing and
counting calendar months between two dates. Values coming from the payment
store may be numbers, numeric strings, ``None`` or garbage; the tolerant
helpers here never raise and fall back to zero or ``None`` instead.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Any, Optional

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

ZERO = Decimal("0")
ONE = Decimal("1")


def _decimal_or_none(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned:
            return None
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def to_decimal(value: Any) -> Decimal:
    """Coerce ``value`` into a finite ``Decimal``, returning zero on failure.

    Booleans, ``None``, NaN/infinite values and unparsable strings all map to
    zero. Strings may contain thousands separators.
    """
    result = _decimal_or_none(value)
    return ZERO if result is None else result


def to_int(value: Any) -> Optional[int]:
    """Return ``value`` rounded to an ``int``, or ``None`` if it is not numeric."""
    result = _decimal_or_none(value)
    if result is None:
        return None
    return int(result.quantize(ONE, rounding=ROUND_HALF_UP))


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to whole currency units, halves away from zero."""
    return value.quantize(ONE, rounding=ROUND_HALF_UP)


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date/timestamp string (or pass through a date).

    Returns ``None`` when the value is absent or cannot be parsed. A trailing
    ``Z`` is accepted as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def month_difference(start: date, end: date) -> int:
    """Number of calendar-month boundaries between ``start`` and ``end``.

    Days are ignored: 2024-01-31 to 2024-02-01 is one month.
    """
    return (end.year - start.year) * 12 + (end.month - start.month)


def parse_iso_day(value: str) -> date:
    """Parse a strict YYYY-MM-DD string, raising ``ValueError`` otherwise."""
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value}") from exc


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "")
        result = Decimal(cleaned)
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result
