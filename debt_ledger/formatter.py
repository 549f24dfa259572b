"""Output helpers for the debt ledger.

This module renders balances, debt histories and installment status as
coloured text for the terminal. Colours come from ``click.style`` and are
stripped automatically by ``click.echo`` when the output is not a terminal.
Charges are shown in red, payments in green and money totals in yellow.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

import click

from .data_models import Debt, InstallmentState, InstallmentStatus, LedgerEvent
from .rates import ensure_schedule, rate_on
from .utils import format_date, format_number, format_rate

CURRENCY_SYMBOL = "R$"

STATUS_COLORS = {
    InstallmentState.LATE: "red",
    InstallmentState.OPEN: "yellow",
    InstallmentState.CURRENT: "green",
}


def format_money(value: Decimal, symbol: str = CURRENCY_SYMBOL, color: bool = True) -> str:
    text = f"{symbol} {format_number(value)}"
    return click.style(text, fg="yellow") if color else text


def format_event(event: LedgerEvent, symbol: str = CURRENCY_SYMBOL, position: Optional[int] = None) -> str:
    """Render one history line, e.g. ``+R$    1.000,00 - Initial amount (01/01/2024)``."""
    is_payment = event.amount < 0
    sign = "-" if is_payment else "+"
    text = f"{sign}{symbol} {format_number(abs(event.amount)):>11} - {event.description} ({format_date(event.date)})"
    if position is not None:
        text = f"{position}. {text}"
    return click.style(text, fg="green" if is_payment else "red")


def print_history(events: Iterable[LedgerEvent], symbol: str = CURRENCY_SYMBOL, numbered: bool = False) -> None:
    click.echo("\nHistory:")
    for position, event in enumerate(events, start=1):
        click.echo(format_event(event, symbol, position if numbered else None))


def debt_label(debt: Debt, balance: Decimal, reference_date: date, symbol: str = CURRENCY_SYMBOL) -> str:
    """One-line summary used in listings: id, description, total and running rate."""
    label = f"{debt.id} - {debt.description} (Total: {format_money(balance, symbol)})"
    if debt.installment_plan is None and debt.interest_cutoff_date is None:
        rate = rate_on(ensure_schedule(debt), reference_date)
        if rate > 0:
            label += f" ({format_rate(rate)}%)"
    if debt.is_paid_off:
        label += " " + click.style("[PAID OFF]", fg="green")
    return label


def print_debtors(
    rows: List[Tuple[str, Decimal, List[Tuple[Debt, Decimal]]]],
    total: Decimal,
    reference_date: date,
    symbol: str = CURRENCY_SYMBOL,
) -> None:
    """Print every debtor with their total and their debts.

    ``rows`` holds ``(name, debtor_total, [(debt, balance), ...])`` tuples,
    already sorted.
    """
    click.echo(f"\nTotal owed: {format_money(total, symbol)}")
    if not rows:
        click.echo("No debtors with active debts.")
        return
    for name, debtor_total, debts in rows:
        click.echo(f"\n{name} (Total: {format_money(debtor_total, symbol)})")
        for debt, balance in debts:
            click.echo(f"  {debt_label(debt, balance, reference_date, symbol)}")


def print_installment_status(debt: Debt, status: InstallmentStatus, symbol: str = CURRENCY_SYMBOL) -> None:
    plan = debt.installment_plan
    click.echo("\nInstallment plan:")
    click.echo(f"Total amount: {format_money(plan.total_amount, symbol)}")
    click.echo(f"Amount paid: {format_money(status.total_paid, symbol)}")
    click.echo(f"Amount remaining: {format_money(plan.total_amount - status.total_paid, symbol)}")
    click.echo(f"\nCurrent installment: {status.current_installment_index} of {status.total_installments}")
    click.echo(f"Due date: {format_date(status.due_date)}")
    click.echo(f"Remaining on this installment: {format_money(status.remaining_on_current, symbol)}")
    click.echo(f"Status: {click.style(status.status.value, fg=STATUS_COLORS[status.status])}")


def print_debt_detail(
    debt: Debt,
    events: List[LedgerEvent],
    balance: Decimal,
    reference_date: date,
    status: Optional[InstallmentStatus] = None,
    next_charge: Optional[Tuple[date, Decimal]] = None,
    symbol: str = CURRENCY_SYMBOL,
) -> None:
    """Print the full detail view of a debt."""
    paid_off = click.style("[PAID OFF] ", fg="green") if debt.is_paid_off else ""
    click.echo(f"\nDebt details: {paid_off}")
    click.echo(f"Description: {debt.description}")
    if debt.note:
        click.echo(f"Note: {debt.note}")
    rate = rate_on(ensure_schedule(debt), reference_date)
    if rate > 0:
        click.echo(f"Monthly interest: {format_rate(rate)}%")
    if debt.interest_cutoff_date is not None:
        click.echo(f"Interest stops after: {format_date(debt.interest_cutoff_date)}")

    if status is not None:
        print_installment_status(debt, status, symbol)

    print_history(events, symbol)
    click.echo(f"\nTotal owed: {format_money(balance, symbol)}")

    if debt.installment_plan is None and rate > 0:
        if next_charge is not None:
            next_date, amount = next_charge
            click.echo(f"\nNext interest: {format_money(amount, symbol)} on {format_date(next_date)}")
        else:
            click.echo("No further interest will be charged.")
