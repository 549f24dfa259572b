"""In-memory operations on the ledger state.

Everything the command-line and web front ends do to the state document goes
through these functions: creating debtors and debts, registering payments,
managing a debt's manual history and editing debt fields. They only mutate
the objects passed in; loading and saving is the caller's job.

Field edits are modelled as one small dataclass per editable field and
applied with ``apply_edit``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from .data_models import Debt, Debtor, InstallmentPlan, LedgerEvent, LedgerState, RateChange
from .engine import compute_balance
from .installments import installment_balance
from .rates import set_monthly_rate
from .utils import format_number, to_cents

logger = logging.getLogger(__name__)

INITIAL_AMOUNT = "Initial amount"
PAYMENT_RECEIVED = "Payment received"


class NotFoundError(LookupError):
    """Raised when a debtor, debt or history position does not exist."""


class PaymentError(ValueError):
    """Raised when a payment amount is not in ``(0, ceiling]``."""


# Debtors and debts


def find_debtor(state: LedgerState, name: str) -> Debtor:
    for debtor in state.debtors:
        if debtor.name == name:
            return debtor
    raise NotFoundError(f"Unknown debtor: {name}")


def get_or_create_debtor(state: LedgerState, name: str) -> Debtor:
    name = name.strip()
    if not name:
        raise ValueError("Debtor name cannot be empty")
    try:
        return find_debtor(state, name)
    except NotFoundError:
        debtor = Debtor(name=name)
        state.debtors.append(debtor)
        logger.info("Created debtor %s", name)
        return debtor


def find_debt(debtor: Debtor, debt_id: int) -> Debt:
    for debt in debtor.debts:
        if debt.id == debt_id:
            return debt
    raise NotFoundError(f"Debtor {debtor.name} has no debt #{debt_id}")


def next_debt_id(debtor: Debtor) -> int:
    return max((d.id for d in debtor.debts), default=0) + 1


def add_open_debt(
    state: LedgerState,
    debtor_name: str,
    description: str,
    initial_amount: Decimal,
    initial_date: date,
    monthly_rate: Decimal = Decimal("0"),
    note: str = "",
    creation_date: Optional[date] = None,
) -> Debt:
    """Create an interest-accruing debt with its initial charge."""
    if monthly_rate < 0:
        raise ValueError("Monthly rate cannot be negative")
    created = creation_date or date.today()
    debtor = get_or_create_debtor(state, debtor_name)
    debt = Debt(
        id=next_debt_id(debtor),
        description=description,
        creation_date=created,
        note=note or "",
        interest_schedule=[RateChange(effective_date=created, monthly_rate=monthly_rate)],
        ledger=[LedgerEvent(date=initial_date, description=INITIAL_AMOUNT, amount=initial_amount)],
    )
    debtor.debts.append(debt)
    logger.info("Added debt #%s (%s) for %s", debt.id, description, debtor.name)
    return debt


def add_installment_debt(
    state: LedgerState,
    debtor_name: str,
    description: str,
    plan: InstallmentPlan,
    note: str = "",
    creation_date: Optional[date] = None,
    monthly_rate: Decimal = Decimal("0"),
) -> Debt:
    """Create an installment debt. The ledger starts empty."""
    plan.validate()
    created = creation_date or date.today()
    debtor = get_or_create_debtor(state, debtor_name)
    debt = Debt(
        id=next_debt_id(debtor),
        description=description,
        creation_date=created,
        note=note or "",
        interest_schedule=[RateChange(effective_date=created, monthly_rate=monthly_rate)],
        installment_plan=plan,
    )
    debtor.debts.append(debt)
    logger.info(
        "Added installment debt #%s (%s) for %s: %s x %s",
        debt.id,
        description,
        debtor.name,
        plan.total_installments,
        plan.installment_amount,
    )
    return debt


# Payments


def payment_ceiling(debt: Debt, reference_date: date) -> Decimal:
    """The largest payment that can be registered against ``debt``."""
    if debt.installment_plan is not None:
        return installment_balance(debt.installment_plan, debt.ledger)
    return compute_balance(debt, reference_date)[1]


def register_payment(debt: Debt, amount: Decimal, day: date, reference_date: date) -> LedgerEvent:
    if amount <= 0:
        raise PaymentError("Payment must be greater than zero")
    ceiling = to_cents(payment_ceiling(debt, reference_date))
    if amount > ceiling:
        raise PaymentError(f"Payment cannot exceed {format_number(ceiling)}")
    event = LedgerEvent(date=day, description=PAYMENT_RECEIVED, amount=-amount)
    debt.ledger.append(event)
    compute_balance(debt, reference_date)
    logger.info("Registered payment of %s on %s for debt #%s", amount, day, debt.id)
    return event


# Manual history


@dataclass
class EventAmount:
    amount: Decimal


@dataclass
class EventDescription:
    description: str


@dataclass
class EventDate:
    date: date


EventEdit = Union[EventAmount, EventDescription, EventDate]


def _event_at(debt: Debt, position: int) -> LedgerEvent:
    if not 1 <= position <= len(debt.ledger):
        raise NotFoundError(f"No history item #{position}")
    return debt.ledger[position - 1]


def add_event(debt: Debt, day: date, description: str, amount: Decimal) -> LedgerEvent:
    event = LedgerEvent(date=day, description=description, amount=amount)
    debt.ledger.append(event)
    logger.info("Added history item to debt #%s: %s %s", debt.id, description, amount)
    return event


def remove_event(debt: Debt, position: int) -> LedgerEvent:
    """Remove the ``position``-th (1-based) event of the stored ledger."""
    event = _event_at(debt, position)
    del debt.ledger[position - 1]
    logger.info("Removed history item #%s from debt #%s", position, debt.id)
    return event


def edit_event(debt: Debt, position: int, change: EventEdit) -> LedgerEvent:
    event = _event_at(debt, position)
    if isinstance(change, EventAmount):
        event.amount = change.amount
    elif isinstance(change, EventDescription):
        event.description = change.description
    elif isinstance(change, EventDate):
        event.date = change.date
    else:
        raise TypeError(f"Unsupported history edit: {change!r}")
    logger.info("Edited history item #%s of debt #%s", position, debt.id)
    return event


# Debt fields


@dataclass
class DescriptionEdit:
    description: str


@dataclass
class NoteEdit:
    note: str


@dataclass
class MonthlyRateEdit:
    rate: Decimal
    effective_date: date


@dataclass
class InterestCutoffEdit:
    cutoff_date: Optional[date]


@dataclass
class InstallmentAmountEdit:
    amount: Decimal


@dataclass
class DueDayEdit:
    due_day: int


@dataclass
class TotalInstallmentsEdit:
    total: int


@dataclass
class FirstDueDateEdit:
    first_due_date: date


FieldEdit = Union[
    DescriptionEdit,
    NoteEdit,
    MonthlyRateEdit,
    InterestCutoffEdit,
    InstallmentAmountEdit,
    DueDayEdit,
    TotalInstallmentsEdit,
    FirstDueDateEdit,
]

_PLAN_EDITS = (InstallmentAmountEdit, DueDayEdit, TotalInstallmentsEdit, FirstDueDateEdit)


def _edit_plan(plan: InstallmentPlan, edit: FieldEdit) -> InstallmentPlan:
    updated = InstallmentPlan(
        installment_amount=plan.installment_amount,
        total_installments=plan.total_installments,
        due_day=plan.due_day,
        first_due_date=plan.first_due_date,
    )
    if isinstance(edit, InstallmentAmountEdit):
        updated.installment_amount = edit.amount
    elif isinstance(edit, DueDayEdit):
        updated.due_day = edit.due_day
    elif isinstance(edit, TotalInstallmentsEdit):
        updated.total_installments = edit.total
    elif isinstance(edit, FirstDueDateEdit):
        updated.first_due_date = edit.first_due_date
    # Validate before touching the debt so a bad edit leaves it unchanged
    updated.validate()
    return updated


def apply_edit(debt: Debt, edit: FieldEdit) -> None:
    """Apply a single field edit to ``debt``.

    Raises ``ValueError`` for installment edits on a debt without a plan and
    ``InvalidPlanError`` when the edited plan would be invalid.
    """
    if isinstance(edit, DescriptionEdit):
        debt.description = edit.description
    elif isinstance(edit, NoteEdit):
        debt.note = edit.note
    elif isinstance(edit, MonthlyRateEdit):
        set_monthly_rate(debt, edit.rate, edit.effective_date)
    elif isinstance(edit, InterestCutoffEdit):
        debt.interest_cutoff_date = edit.cutoff_date
    elif isinstance(edit, _PLAN_EDITS):
        if debt.installment_plan is None:
            raise ValueError(f"Debt #{debt.id} has no installment plan")
        debt.installment_plan = _edit_plan(debt.installment_plan, edit)
    else:
        raise TypeError(f"Unsupported field edit: {edit!r}")
    logger.info("Edited debt #%s: %s", debt.id, type(edit).__name__)
