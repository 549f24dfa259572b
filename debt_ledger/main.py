"""Command-line interface for the debt ledger.

This module uses the ``click`` library to implement a multi-command
interface. Users can list debtors, inspect a debt with its interest history
and installment status, add debts, register payments, edit debt fields and
manage a debt's manual history. Every command loads the whole state from the
store, works on it in memory and, when something changed, writes it back.

Dates are typed as ``DD/MM/YYYY``. Amounts accept either ``,`` or ``.`` as
the decimal separator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

import click

from .config import load_settings
from .data_models import Debt, InstallmentPlan, LedgerState
from .engine import (
    active_debts,
    compute_balance,
    grand_total,
    next_interest_charge,
    sort_debtors_by_balance,
    sort_debts_by_balance,
)
from .formatter import format_money, print_debt_detail, print_debtors, print_history
from .installments import compute_status
from .logging_config import configure_logging
from .operations import (
    DescriptionEdit,
    DueDayEdit,
    EventAmount,
    EventDate,
    EventDescription,
    FieldEdit,
    FirstDueDateEdit,
    InstallmentAmountEdit,
    InterestCutoffEdit,
    MonthlyRateEdit,
    NoteEdit,
    NotFoundError,
    TotalInstallmentsEdit,
    add_event,
    add_installment_debt,
    add_open_debt,
    apply_edit,
    edit_event,
    find_debt,
    find_debtor,
    payment_ceiling,
    register_payment,
    remove_event,
)
from .store import LedgerStore, create_store
from .utils import decimal_from_str, parse_display_date

logger = logging.getLogger(__name__)


class DisplayDate(click.ParamType):
    """A ``DD/MM/YYYY`` date."""

    name = "DD/MM/YYYY"

    def convert(self, value, param, ctx):
        if isinstance(value, date):
            return value
        try:
            return parse_display_date(value)
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


class Amount(click.ParamType):
    """A decimal amount such as ``1500``, ``1500.50`` or ``1500,50``."""

    name = "AMOUNT"

    def convert(self, value, param, ctx):
        try:
            return decimal_from_str(value)
        except ValueError:
            self.fail(f"Invalid amount: {value}", param, ctx)


DISPLAY_DATE = DisplayDate()
AMOUNT = Amount()


@dataclass
class AppContext:
    store: LedgerStore
    today: date
    symbol: str


def _load(app: AppContext) -> LedgerState:
    return app.store.load()


def _select_debt(state: LedgerState, debtor_name: str, debt_id: int) -> Debt:
    try:
        return find_debt(find_debtor(state, debtor_name), debt_id)
    except NotFoundError as exc:
        raise click.ClickException(str(exc))


def _save(app: AppContext, state: LedgerState, message: str) -> None:
    app.store.save(state)
    click.echo(message)


@click.group()
@click.option("--data", "data", help="Ledger JSON file or database URL (default from DEBT_LEDGER_STORE)")
@click.option("--as-of", "as_of", type=DISPLAY_DATE, help="Reference date (DD/MM/YYYY); defaults to today")
@click.option("--log-level", "log_level", help="Logging level (DEBUG, INFO, WARNING, ...)")
@click.pass_context
def cli(ctx: click.Context, data: Optional[str], as_of: Optional[date], log_level: Optional[str]) -> None:
    """Track money owed by debtors, with monthly interest and installment plans."""
    settings = load_settings()
    configure_logging(log_level or settings.log_level, settings.log_file)
    ctx.obj = AppContext(
        store=create_store(data or settings.store_location),
        today=as_of or date.today(),
        symbol=settings.currency_symbol,
    )
    logger.debug("Using store %s as of %s", data or settings.store_location, ctx.obj.today)


@cli.command()
@click.pass_obj
def debtors(app: AppContext) -> None:
    """List debtors with active debts, largest balance first."""
    state = _load(app)
    rows = []
    for debtor in sort_debtors_by_balance(state.debtors, app.today):
        debts = sort_debts_by_balance(active_debts(debtor, app.today), app.today)
        if not debts:
            continue
        balances = [(debt, compute_balance(debt, app.today)[1]) for debt in debts]
        rows.append((debtor.name, sum((b for _, b in balances), Decimal("0")), balances))
    print_debtors(rows, grand_total(state, app.today), app.today, app.symbol)


@cli.command()
@click.argument("debtor")
@click.argument("debt_id", type=int)
@click.pass_obj
def show(app: AppContext, debtor: str, debt_id: int) -> None:
    """Show a debt with its full history, balance and status."""
    state = _load(app)
    debt = _select_debt(state, debtor, debt_id)
    events, balance = compute_balance(debt, app.today)
    status = None
    if debt.installment_plan is not None:
        try:
            status = compute_status(debt.installment_plan, debt.ledger, app.today)
        except ValueError as exc:
            raise click.ClickException(str(exc))
    print_debt_detail(
        debt,
        events,
        balance,
        app.today,
        status=status,
        next_charge=next_interest_charge(debt, app.today),
        symbol=app.symbol,
    )


@cli.command("add-debt")
@click.option("--debtor", "debtor", prompt="Debtor name", help="Existing or new debtor")
@click.option("--kind", "kind", type=click.Choice(["open", "installment"]), default="open", help="Debt type")
@click.option("--description", "description", prompt="Description", help="Debt description")
@click.option("--rate", "rate", type=AMOUNT, default="0", help="Monthly interest rate (percent)")
@click.option("--note", "note", default="", help="Free-form note")
@click.option("--amount", "amount", type=AMOUNT, help="Initial amount (open debts)")
@click.option("--date", "initial_date", type=DISPLAY_DATE, help="Date of the initial amount (open debts)")
@click.option("--installments", "installments", type=int, help="Number of installments")
@click.option("--installment-amount", "installment_amount", type=AMOUNT, help="Amount of each installment")
@click.option("--due-day", "due_day", type=int, help="Day of the month installments are due (1-31)")
@click.option("--first-due", "first_due", type=DISPLAY_DATE, help="First due date (DD/MM/YYYY)")
@click.pass_obj
def add_debt(
    app: AppContext,
    debtor: str,
    kind: str,
    description: str,
    rate: Decimal,
    note: str,
    amount: Optional[Decimal],
    initial_date: Optional[date],
    installments: Optional[int],
    installment_amount: Optional[Decimal],
    due_day: Optional[int],
    first_due: Optional[date],
) -> None:
    """Add a debt: an open debt accruing interest or an installment plan."""
    state = _load(app)
    try:
        if kind == "open":
            if amount is None or initial_date is None:
                raise click.BadParameter("Open debts need --amount and --date")
            debt = add_open_debt(
                state,
                debtor,
                description,
                initial_amount=amount,
                initial_date=initial_date,
                monthly_rate=rate,
                note=note,
                creation_date=app.today,
            )
        else:
            if None in (installments, installment_amount, due_day, first_due):
                raise click.BadParameter(
                    "Installment debts need --installments, --installment-amount, --due-day and --first-due"
                )
            plan = InstallmentPlan(
                installment_amount=installment_amount,
                total_installments=installments,
                due_day=due_day,
                first_due_date=first_due,
            )
            debt = add_installment_debt(
                state, debtor, description, plan, note=note, creation_date=app.today, monthly_rate=rate
            )
    except ValueError as exc:
        raise click.ClickException(str(exc))
    _save(app, state, f"Debt #{debt.id} added for {debtor.strip()}.")


@cli.command()
@click.argument("debtor")
@click.argument("debt_id", type=int)
@click.option("--amount", "amount", type=AMOUNT, prompt="Amount paid", help="Amount paid")
@click.option("--date", "paid_on", type=DISPLAY_DATE, help="Payment date (DD/MM/YYYY); defaults to the reference date")
@click.pass_obj
def pay(app: AppContext, debtor: str, debt_id: int, amount: Decimal, paid_on: Optional[date]) -> None:
    """Register a payment against a debt."""
    state = _load(app)
    debt = _select_debt(state, debtor, debt_id)
    click.echo(f"Maximum payable: {format_money(payment_ceiling(debt, app.today), app.symbol)}")
    try:
        register_payment(debt, amount, paid_on or app.today, app.today)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    _save(app, state, "Payment registered.")


@cli.command()
@click.argument("debtor")
@click.argument("debt_id", type=int)
@click.option("--description", "description", help="New description")
@click.option("--note", "note", help="New note")
@click.option("--rate", "rate", type=AMOUNT, help="New monthly interest rate (percent)")
@click.option("--effective", "effective", type=DISPLAY_DATE, help="Date the new rate applies from; defaults to the reference date")
@click.option("--interest-cutoff", "cutoff", type=DISPLAY_DATE, help="Stop charging interest after this date")
@click.option("--clear-cutoff", "clear_cutoff", is_flag=True, help="Charge interest again with no end date")
@click.option("--installment-amount", "installment_amount", type=AMOUNT, help="New installment amount")
@click.option("--due-day", "due_day", type=int, help="New due day (1-31)")
@click.option("--total-installments", "total_installments", type=int, help="New number of installments")
@click.option("--first-due", "first_due", type=DISPLAY_DATE, help="New first due date")
@click.pass_obj
def edit(
    app: AppContext,
    debtor: str,
    debt_id: int,
    description: Optional[str],
    note: Optional[str],
    rate: Optional[Decimal],
    effective: Optional[date],
    cutoff: Optional[date],
    clear_cutoff: bool,
    installment_amount: Optional[Decimal],
    due_day: Optional[int],
    total_installments: Optional[int],
    first_due: Optional[date],
) -> None:
    """Edit one or more fields of a debt."""
    edits: List[FieldEdit] = []
    if description is not None:
        edits.append(DescriptionEdit(description))
    if note is not None:
        edits.append(NoteEdit(note))
    if rate is not None:
        edits.append(MonthlyRateEdit(rate, effective or app.today))
    if cutoff is not None and clear_cutoff:
        raise click.BadParameter("Use either --interest-cutoff or --clear-cutoff")
    if cutoff is not None or clear_cutoff:
        edits.append(InterestCutoffEdit(cutoff))
    if installment_amount is not None:
        edits.append(InstallmentAmountEdit(installment_amount))
    if due_day is not None:
        edits.append(DueDayEdit(due_day))
    if total_installments is not None:
        edits.append(TotalInstallmentsEdit(total_installments))
    if first_due is not None:
        edits.append(FirstDueDateEdit(first_due))
    if not edits:
        raise click.UsageError("Nothing to change; pass at least one field option")

    state = _load(app)
    debt = _select_debt(state, debtor, debt_id)
    try:
        for change in edits:
            apply_edit(debt, change)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    _save(app, state, "Debt updated.")


@cli.group()
def history() -> None:
    """Manage the manually entered history of a debt."""
    pass


@history.command("list")
@click.argument("debtor")
@click.argument("debt_id", type=int)
@click.pass_obj
def history_list(app: AppContext, debtor: str, debt_id: int) -> None:
    """Show the stored history with the positions used by edit/remove."""
    state = _load(app)
    debt = _select_debt(state, debtor, debt_id)
    print_history(debt.ledger, app.symbol, numbered=True)


@history.command("add")
@click.argument("debtor")
@click.argument("debt_id", type=int)
@click.option("--amount", "amount", type=AMOUNT, required=True, help="Positive for a charge, negative for a payment")
@click.option("--description", "description", required=True, help="What the entry is")
@click.option("--date", "day", type=DISPLAY_DATE, required=True, help="Entry date (DD/MM/YYYY)")
@click.pass_obj
def history_add(app: AppContext, debtor: str, debt_id: int, amount: Decimal, description: str, day: date) -> None:
    """Add a manual charge or payment to the stored history."""
    state = _load(app)
    debt = _select_debt(state, debtor, debt_id)
    add_event(debt, day, description, amount)
    _save(app, state, "History item added.")


@history.command("edit")
@click.argument("debtor")
@click.argument("debt_id", type=int)
@click.argument("position", type=int)
@click.option("--amount", "amount", type=AMOUNT, help="New amount (positive charge, negative payment)")
@click.option("--description", "description", help="New description")
@click.option("--date", "day", type=DISPLAY_DATE, help="New date (DD/MM/YYYY)")
@click.pass_obj
def history_edit(
    app: AppContext,
    debtor: str,
    debt_id: int,
    position: int,
    amount: Optional[Decimal],
    description: Optional[str],
    day: Optional[date],
) -> None:
    """Change the amount, description or date of one history item."""
    changes = []
    if amount is not None:
        changes.append(EventAmount(amount))
    if description is not None:
        changes.append(EventDescription(description))
    if day is not None:
        changes.append(EventDate(day))
    if not changes:
        raise click.UsageError("Nothing to change; pass --amount, --description or --date")
    state = _load(app)
    debt = _select_debt(state, debtor, debt_id)
    try:
        for change in changes:
            edit_event(debt, position, change)
    except NotFoundError as exc:
        raise click.ClickException(str(exc))
    _save(app, state, "History item updated.")


@history.command("remove")
@click.argument("debtor")
@click.argument("debt_id", type=int)
@click.argument("position", type=int)
@click.pass_obj
def history_remove(app: AppContext, debtor: str, debt_id: int, position: int) -> None:
    """Remove one history item by its position in "history list"."""
    state = _load(app)
    debt = _select_debt(state, debtor, debt_id)
    try:
        remove_event(debt, position)
    except NotFoundError as exc:
        raise click.ClickException(str(exc))
    _save(app, state, "History item removed.")


if __name__ == "__main__":
    cli()
