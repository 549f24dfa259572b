"""Utility functions for the debt ledger.

This module provides helpers for turning boundary text into Python values
(display dates, storage dates and monetary amounts) and for date arithmetic,
most importantly adding calendar months. Dates cross the boundary in two
textual forms: ``DD/MM/YYYY`` for display and input, ``YYYY-MM-DD`` for
storage. Monetary values are always ``Decimal``.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

# Balances whose absolute value is below this are considered settled.
EPSILON = Decimal("0.01")

CENT = Decimal("0.01")

_DISPLAY_DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def with_day(dt: date, day: int) -> date:
    """Return ``dt`` moved to ``day`` of the same month, clamped to month end."""
    return dt.replace(day=min(day, calendar.monthrange(dt.year, dt.month)[1]))


def parse_display_date(value: str) -> date:
    """Parse a ``DD/MM/YYYY`` string into a ``date``.

    Parameters
    ----------
    value: str
        The text typed by the user, e.g. ``"31/01/2024"``.

    Returns
    -------
    date
        The calendar date.

    Raises
    ------
    ValueError
        If the string does not follow the pattern or names a day that does
        not exist (``31/02/2024``).
    """
    text = (value or "").strip()
    if not _DISPLAY_DATE_RE.match(text):
        raise ValueError(f"Invalid date (use DD/MM/YYYY): {value}")
    try:
        return datetime.strptime(text, "%d/%m/%Y").date()
    except ValueError as exc:
        raise ValueError(f"Invalid date (use DD/MM/YYYY): {value}") from exc


def parse_iso_date(value: str) -> date:
    """Parse a storage ``YYYY-MM-DD`` string into a ``date``."""
    try:
        return date.fromisoformat(value.strip()[:10])
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid stored date: {value}") from exc


def display_to_iso(value: str) -> str:
    return parse_display_date(value).isoformat()


def iso_to_display(value: str) -> str:
    return format_date(parse_iso_date(value))


def format_date(dt: date) -> str:
    return dt.strftime("%d/%m/%Y")


def decimal_from_str(value) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    Both ``"1234.5"`` and ``"1234,5"`` are accepted. Thousands separators
    are only stripped when the string uses both ``.`` and ``,`` (for
    example ``"1.234,56"``). Raises ``ValueError`` if conversion fails.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    try:
        cleaned = value.strip().replace(" ", "")
        if "," in cleaned and "." in cleaned:
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", ".")
        result = Decimal(cleaned)
    except (AttributeError, InvalidOperation) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def to_cents(value: Decimal) -> Decimal:
    """Round ``value`` to two decimal places, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_number(value: Decimal) -> str:
    """Format ``value`` with two decimals, ``.`` thousands and ``,`` decimals.

    >>> format_number(Decimal("1234.5"))
    '1.234,50'
    """
    text = f"{to_cents(value):,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_rate(rate: Decimal) -> str:
    """Render a percentage without trailing zeros (``Decimal("2.50")`` -> ``"2.5"``)."""
    if rate == rate.to_integral_value():
        return str(rate.quantize(Decimal(1)))
    return format(rate.normalize(), "f")


def is_settled(balance: Decimal) -> bool:
    return abs(balance) < EPSILON
