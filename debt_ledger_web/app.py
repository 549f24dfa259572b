import logging
from datetime import date
from decimal import Decimal

from flask import Flask, abort, redirect, render_template, request, url_for

from debt_ledger.config import load_settings
from debt_ledger.engine import (
    active_debts,
    compute_balance,
    debtor_balance,
    grand_total,
    next_interest_charge,
    sort_debtors_by_balance,
    sort_debts_by_balance,
)
from debt_ledger.installments import compute_status
from debt_ledger.logging_config import configure_logging
from debt_ledger.operations import NotFoundError, find_debt, find_debtor, payment_ceiling, register_payment
from debt_ledger.store import create_store
from debt_ledger.utils import decimal_from_str, format_date, format_number, format_rate, parse_display_date

logger = logging.getLogger(__name__)


def create_app(store=None, today=None) -> Flask:
    """Build the dashboard.

    ``store`` defaults to the one named by ``DEBT_LEDGER_STORE``; ``today``
    pins the reference date (tests), otherwise it is sampled per request.
    """
    settings = load_settings()
    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config["LEDGER_STORE"] = store or create_store(settings.store_location)
    app.config["CURRENCY_SYMBOL"] = settings.currency_symbol

    def reference_date() -> date:
        return today or date.today()

    @app.template_filter("money")
    def money_filter(value: Decimal) -> str:
        return f"{app.config['CURRENCY_SYMBOL']} {format_number(value)}"

    app.add_template_filter(format_date, "display_date")
    app.add_template_filter(format_rate, "rate")

    def _lookup(state, name: str, debt_id: int):
        try:
            return find_debt(find_debtor(state, name), debt_id)
        except NotFoundError:
            abort(404)

    def _render_debt(name: str, debt, error=None, status_code=200):
        ref = reference_date()
        events, balance = compute_balance(debt, ref)
        status = None
        status_error = None
        if debt.installment_plan is not None:
            try:
                status = compute_status(debt.installment_plan, debt.ledger, ref)
            except ValueError as exc:
                logger.warning("Cannot compute installment status for %s #%s: %s", name, debt.id, exc)
                status_error = str(exc)
        return (
            render_template(
                "debt.html",
                debtor_name=name,
                debt=debt,
                events=events,
                balance=balance,
                status=status,
                status_error=status_error,
                next_charge=next_interest_charge(debt, ref),
                ceiling=payment_ceiling(debt, ref),
                reference_date=ref,
                error=error,
            ),
            status_code,
        )

    @app.route("/")
    def index():
        ref = reference_date()
        state = app.config["LEDGER_STORE"].load()
        rows = []
        for debtor in sort_debtors_by_balance(state.debtors, ref):
            debts = sort_debts_by_balance(active_debts(debtor, ref), ref)
            if debts:
                rows.append(
                    {
                        "name": debtor.name,
                        "total": debtor_balance(debtor, ref),
                        "debts": [{"debt": d, "balance": compute_balance(d, ref)[1]} for d in debts],
                    }
                )
        return render_template("index.html", rows=rows, total=grand_total(state, ref), reference_date=ref)

    @app.get("/debtors/<name>/debts/<int:debt_id>")
    def debt_detail(name: str, debt_id: int):
        state = app.config["LEDGER_STORE"].load()
        return _render_debt(name, _lookup(state, name, debt_id))

    @app.post("/debtors/<name>/debts/<int:debt_id>/payments")
    def add_payment(name: str, debt_id: int):
        store = app.config["LEDGER_STORE"]
        state = store.load()
        debt = _lookup(state, name, debt_id)
        try:
            amount = decimal_from_str(request.form.get("amount", ""))
            raw_date = request.form.get("date", "").strip()
            paid_on = parse_display_date(raw_date) if raw_date else reference_date()
            register_payment(debt, amount, paid_on, reference_date())
        except ValueError as exc:
            return _render_debt(name, debt, error=str(exc), status_code=400)
        store.save(state)
        logger.info("Payment registered from the dashboard for %s #%s", name, debt_id)
        return redirect(url_for("debt_detail", name=name, debt_id=debt_id))

    return app


if __name__ == "__main__":
    _settings = load_settings()
    configure_logging(_settings.log_level, _settings.log_file)
    print("Starting debt ledger dashboard...")
    create_app().run(debug=True)
