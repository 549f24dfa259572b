"""Installment status calculation.

Given a fixed installment plan and the payments recorded in a debt's ledger,
this module works out which installment is currently due, how much of it has
been paid and whether it is late. Payments are applied cumulatively: the
total paid covers installments in order, so an installment only counts as
settled once every earlier installment is fully covered.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable

from .data_models import InstallmentPlan, InstallmentState, InstallmentStatus, LedgerEvent
from .utils import add_months, is_settled, with_day

logger = logging.getLogger(__name__)


def total_paid(ledger: Iterable[LedgerEvent]) -> Decimal:
    """Sum of the absolute values of all payments (negative events).

    Positive charge events are ignored; only the plan defines what is owed.
    """
    return sum((-e.amount for e in ledger if e.amount < 0), Decimal("0"))


def due_date_for(plan: InstallmentPlan, index: int) -> date:
    """Return the due date of the ``index``-th installment (1-based).

    The first installment falls on ``first_due_date``. Later ones are whole
    calendar months after it, on the plan's due day (clamped to month end).
    """
    if index <= 1:
        return plan.first_due_date
    return with_day(add_months(plan.first_due_date, index - 1), plan.due_day)


def compute_status(plan: InstallmentPlan, ledger: Iterable[LedgerEvent], reference_date: date) -> InstallmentStatus:
    """Compute the status of an installment plan as of ``reference_date``.

    Parameters
    ----------
    plan: InstallmentPlan
        The plan. It is validated first; an invalid plan raises
        ``InvalidPlanError``.
    ledger: Iterable[LedgerEvent]
        The debt's manual ledger. Only payments are taken into account.
    reference_date: date
        The "as of" date, normally today.

    Returns
    -------
    InstallmentStatus
        The current installment index (never above the plan length), the
        amount paid toward it, its due date and one of ``LATE``, ``OPEN`` or
        ``CURRENT``.
    """
    plan.validate()
    paid = total_paid(ledger)
    amount = plan.installment_amount

    index = 1
    due = due_date_for(plan, index)
    while due <= reference_date and paid >= index * amount:
        index += 1
        due = due_date_for(plan, index)

    if index > plan.total_installments:
        index = plan.total_installments
        due = due_date_for(plan, index)

    paid_toward_current = paid - (index - 1) * amount

    if index * amount - paid > 0 and due <= reference_date:
        status = InstallmentState.LATE
    elif due > reference_date:
        status = InstallmentState.OPEN
    else:
        status = InstallmentState.CURRENT

    logger.debug(
        "Installment %s/%s due %s: paid %s, status %s",
        index,
        plan.total_installments,
        due,
        paid,
        status.value,
    )
    return InstallmentStatus(
        current_installment_index=index,
        total_installments=plan.total_installments,
        installment_amount=amount,
        total_paid=paid,
        amount_paid_toward_current=paid_toward_current,
        due_date=due,
        status=status,
    )


def installment_balance(plan: InstallmentPlan, ledger: Iterable[LedgerEvent]) -> Decimal:
    """Amount still owed on the plan: its total minus every payment made."""
    return plan.total_amount - total_paid(ledger)


def is_plan_paid_off(plan: InstallmentPlan, ledger: Iterable[LedgerEvent]) -> bool:
    return is_settled(installment_balance(plan, ledger))
