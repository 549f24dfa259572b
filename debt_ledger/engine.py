"""Core accrual engine for the debt ledger.

This module rebuilds the full chronological history of a debt as of a
reference date. Manual ledger events are replayed in date order and monthly
interest charges are synthesised from the debt's interest-rate schedule.
Interest dates are anchored to the creation date (creation + 1 month,
creation + 2 months, ...) so they never drift on short months. Results are
returned as a list of ``LedgerEvent`` objects along with the final balance.

Installment debts do not accrue interest; ``compute_balance`` dispatches them
to the installment calculator instead.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, getcontext
from typing import Iterable, List, Optional, Tuple

from .data_models import Debt, Debtor, LedgerEvent, LedgerState
from .installments import installment_balance
from .rates import ensure_schedule, has_interest, rate_on
from .utils import add_months, format_number, format_rate, is_settled

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _sort_events(events: Iterable[LedgerEvent]) -> List[LedgerEvent]:
    # sorted() is stable, so same-day events keep their insertion order
    return sorted(events, key=lambda e: e.date)


def _copy_event(event: LedgerEvent) -> LedgerEvent:
    return LedgerEvent(
        date=event.date,
        description=event.description,
        amount=event.amount,
        is_interest=event.is_interest,
    )


def _interest_event(day: date, rate: Decimal, base: Decimal) -> LedgerEvent:
    return LedgerEvent(
        date=day,
        description=f"Interest ({format_rate(rate)}% of {format_number(base)})",
        amount=base * rate / HUNDRED,
        is_interest=True,
    )


def _balance_through(events: Iterable[LedgerEvent], day: date) -> Decimal:
    return sum((e.amount for e in events if e.date <= day), Decimal("0"))


def compute_ledger(debt: Debt, reference_date: date) -> Tuple[List[LedgerEvent], Decimal]:
    """Rebuild the chronological history of an interest-accruing debt.

    Parameters
    ----------
    debt: Debt
        The debt. Its stored ledger is not modified; ``is_paid_off`` is
        refreshed from the computed balance.
    reference_date: date
        Interest is generated for every anniversary date up to and including
        this date (and up to the debt's interest cutoff date, when set).

    Returns
    -------
    events: List[LedgerEvent]
        Manual events plus synthetic interest charges, sorted by date. Events
        on the same date keep the order in which they were produced.
    balance: Decimal
        Sum of every amount in ``events``.
    """
    schedule = ensure_schedule(debt)
    manual = [_copy_event(e) for e in _sort_events(debt.ledger)]

    if not manual or not has_interest(schedule):
        balance = sum((e.amount for e in manual), Decimal("0"))
        debt.is_paid_off = is_settled(balance)
        return manual, balance

    events: List[LedgerEvent] = []
    running = Decimal("0")
    for position, event in enumerate(manual):
        events.append(event)
        running += event.amount
        if position == 0:
            # The first event is charged interest immediately, on its own date.
            # Events backdated before creation use the opening rate.
            rate = rate_on(schedule, max(event.date, debt.creation_date))
            if rate > 0:
                charge = _interest_event(event.date, rate, running)
                if charge.amount > 0:
                    events.append(charge)
                    running += charge.amount

    months = 1
    cursor = add_months(debt.creation_date, months)
    cutoff = debt.interest_cutoff_date
    while cursor <= reference_date and (cutoff is None or cursor <= cutoff):
        rate = rate_on(schedule, cursor)
        if rate > 0:
            charge = _interest_event(cursor, rate, _balance_through(events, cursor))
            if charge.amount > 0:
                events.append(charge)
        months += 1
        cursor = add_months(debt.creation_date, months)

    events = _sort_events(events)
    balance = sum((e.amount for e in events), Decimal("0"))
    debt.is_paid_off = is_settled(balance)
    logger.debug(
        "Debt %s: %d events (%d interest) as of %s, balance %s",
        debt.id,
        len(events),
        sum(1 for e in events if e.is_interest),
        reference_date,
        balance,
    )
    return events, balance


def compute_balance(debt: Debt, reference_date: date) -> Tuple[List[LedgerEvent], Decimal]:
    """Return the history to display and the current balance of any debt.

    Installment debts report their manual ledger and the plan total minus the
    payments made; other debts go through ``compute_ledger``.
    """
    if debt.installment_plan is not None:
        events = [_copy_event(e) for e in _sort_events(debt.ledger)]
        balance = installment_balance(debt.installment_plan, debt.ledger)
        debt.is_paid_off = is_settled(balance)
        return events, balance
    return compute_ledger(debt, reference_date)


def debt_balance(debt: Debt, reference_date: date) -> Decimal:
    return compute_balance(debt, reference_date)[1]


def next_interest_charge(debt: Debt, reference_date: date) -> Optional[Tuple[date, Decimal]]:
    """Predict the next synthetic interest charge after ``reference_date``.

    Returns the anniversary date and the charge computed on the current
    balance, or ``None`` when no further interest will be charged.
    """
    if debt.installment_plan is not None or not debt.ledger:
        return None
    schedule = ensure_schedule(debt)
    months = 1
    next_date = add_months(debt.creation_date, months)
    while next_date <= reference_date:
        months += 1
        next_date = add_months(debt.creation_date, months)
    if debt.interest_cutoff_date is not None and next_date > debt.interest_cutoff_date:
        return None
    rate = rate_on(schedule, next_date)
    if rate <= 0:
        return None
    _, balance = compute_ledger(debt, reference_date)
    return next_date, balance * rate / HUNDRED


def active_debts(debtor: Debtor, reference_date: date) -> List[Debt]:
    """Debts of ``debtor`` that are not paid off, refreshing the flag first."""
    for debt in debtor.debts:
        compute_balance(debt, reference_date)
    return [d for d in debtor.debts if not d.is_paid_off]


def debtor_balance(debtor: Debtor, reference_date: date) -> Decimal:
    return sum((debt_balance(d, reference_date) for d in debtor.debts), Decimal("0"))


def grand_total(state: LedgerState, reference_date: date) -> Decimal:
    return sum((debtor_balance(d, reference_date) for d in state.debtors), Decimal("0"))


def sort_debts_by_balance(debts: Iterable[Debt], reference_date: date) -> List[Debt]:
    """Return debts ordered from the largest balance to the smallest."""
    return sorted(debts, key=lambda d: debt_balance(d, reference_date), reverse=True)


def sort_debtors_by_balance(debtors: Iterable[Debtor], reference_date: date) -> List[Debtor]:
    return sorted(debtors, key=lambda d: debtor_balance(d, reference_date), reverse=True)
