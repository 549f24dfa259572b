"""Interest-rate schedule helpers.

A schedule is a list of ``RateChange`` entries sorted by effective date. The
rate in force on a given day is the one from the latest entry whose effective
date is on or before that day.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, List

from .data_models import Debt, RateChange

ZERO = Decimal("0")


def sort_schedule(schedule: Iterable[RateChange]) -> List[RateChange]:
    return sorted(schedule, key=lambda r: r.effective_date)


def rate_on(schedule: Iterable[RateChange], day: date) -> Decimal:
    """Return the monthly rate (percent) in force on ``day``.

    When no entry is effective yet the rate is zero.
    """
    rate = ZERO
    for entry in sort_schedule(schedule):
        if entry.effective_date > day:
            break
        rate = entry.monthly_rate
    return rate


def has_interest(schedule: Iterable[RateChange]) -> bool:
    return any(entry.monthly_rate > 0 for entry in schedule)


def ensure_schedule(debt: Debt) -> List[RateChange]:
    """Make sure the debt's schedule has an entry at its creation date.

    Older records may carry an empty schedule or one that starts later than
    the creation date; a zero-rate entry is inserted so that lookups for any
    day on or after creation always resolve.
    """
    schedule = sort_schedule(debt.interest_schedule)
    if not schedule or schedule[0].effective_date > debt.creation_date:
        schedule.insert(0, RateChange(effective_date=debt.creation_date, monthly_rate=ZERO))
    debt.interest_schedule = schedule
    return schedule


def set_monthly_rate(debt: Debt, rate: Decimal, effective_date: date) -> None:
    """Record that ``rate`` applies from ``effective_date`` onwards.

    An existing entry for the same date is replaced; otherwise a new entry is
    inserted in date order.
    """
    if rate < 0:
        raise ValueError("Monthly rate cannot be negative")
    schedule = ensure_schedule(debt)
    for entry in schedule:
        if entry.effective_date == effective_date:
            entry.monthly_rate = rate
            return
    schedule.append(RateChange(effective_date=effective_date, monthly_rate=rate))
    debt.interest_schedule = sort_schedule(schedule)


def current_rate(debt: Debt, day: date) -> Decimal:
    return rate_on(ensure_schedule(debt), day)
