from __future__ import annotations

from datetime import date
from decimal import Decimal

from debt_ledger.data_models import Debt, Debtor, LedgerEvent, LedgerState, RateChange
from debt_ledger.engine import (
    active_debts,
    compute_balance,
    compute_ledger,
    debtor_balance,
    grand_total,
    next_interest_charge,
    sort_debtors_by_balance,
    sort_debts_by_balance,
)


def _interest(events):
    return [(e.date, e.amount) for e in events if e.is_interest]


def test_monthly_interest_compounds_on_running_balance(open_debt: Debt) -> None:
    events, balance = compute_ledger(open_debt, date(2024, 3, 31))

    assert [(e.date, e.amount, e.is_interest) for e in events] == [
        (date(2024, 1, 1), Decimal("1000.00"), False),
        (date(2024, 1, 1), Decimal("20"), True),
        (date(2024, 2, 1), Decimal("20.4"), True),
        (date(2024, 3, 1), Decimal("20.808"), True),
    ]
    assert balance == Decimal("1061.208")
    assert events[1].description == "Interest (2% of 1.000,00)"


def test_interest_is_charged_on_the_reference_date_itself(open_debt: Debt) -> None:
    events, balance = compute_ledger(open_debt, date(2024, 4, 1))
    assert _interest(events)[-1] == (date(2024, 4, 1), Decimal("21.22416"))
    assert balance == Decimal("1082.43216")


def test_interest_dates_stay_anchored_to_creation_day() -> None:
    debt = Debt(
        id=1,
        description="Month end",
        creation_date=date(2024, 1, 31),
        interest_schedule=[RateChange(date(2024, 1, 31), Decimal("1"))],
        ledger=[LedgerEvent(date(2024, 1, 31), "Initial amount", Decimal("100"))],
    )
    events, _ = compute_ledger(debt, date(2024, 5, 31))
    assert [d for d, _ in _interest(events)] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
    ]


def test_zero_rate_returns_sorted_manual_ledger_unchanged() -> None:
    ledger = [
        LedgerEvent(date(2024, 2, 1), "Payment received", Decimal("-50")),
        LedgerEvent(date(2024, 1, 1), "Initial amount", Decimal("300")),
        LedgerEvent(date(2024, 2, 1), "Extra charge", Decimal("25")),
    ]
    debt = Debt(
        id=1,
        description="No interest",
        creation_date=date(2024, 1, 1),
        interest_schedule=[RateChange(date(2024, 1, 1), Decimal("0"))],
        ledger=ledger,
    )
    events, balance = compute_ledger(debt, date(2025, 1, 1))
    assert [(e.date, e.description, e.amount) for e in events] == [
        (date(2024, 1, 1), "Initial amount", Decimal("300")),
        (date(2024, 2, 1), "Payment received", Decimal("-50")),
        (date(2024, 2, 1), "Extra charge", Decimal("25")),
    ]
    assert balance == Decimal("275")
    # the stored ledger keeps its own order
    assert debt.ledger[0].description == "Payment received"


def test_empty_ledger_never_accrues(open_debt: Debt) -> None:
    open_debt.ledger = []
    events, balance = compute_ledger(open_debt, date(2025, 1, 1))
    assert events == []
    assert balance == Decimal("0")
    assert open_debt.is_paid_off


def test_payments_reduce_the_interest_base(open_debt: Debt) -> None:
    open_debt.ledger.append(LedgerEvent(date(2024, 1, 15), "Payment received", Decimal("-500")))
    events, balance = compute_ledger(open_debt, date(2024, 2, 10))
    assert [e.description for e in events] == [
        "Initial amount",
        "Interest (2% of 1.000,00)",
        "Payment received",
        "Interest (2% of 520,00)",
    ]
    assert balance == Decimal("530.40")


def test_later_events_do_not_count_toward_earlier_interest(open_debt: Debt) -> None:
    open_debt.ledger.append(LedgerEvent(date(2024, 3, 15), "Extra charge", Decimal("500")))
    events, _ = compute_ledger(open_debt, date(2024, 3, 10))
    assert _interest(events) == [
        (date(2024, 1, 1), Decimal("20")),
        (date(2024, 2, 1), Decimal("20.4")),
        (date(2024, 3, 1), Decimal("20.808")),
    ]


def test_interest_stops_at_cutoff_date(open_debt: Debt) -> None:
    open_debt.interest_cutoff_date = date(2024, 2, 15)
    events, balance = compute_ledger(open_debt, date(2024, 6, 1))
    assert [d for d, _ in _interest(events)] == [date(2024, 1, 1), date(2024, 2, 1)]
    assert balance == Decimal("1040.4")


def test_interest_charged_on_cutoff_anniversary(open_debt: Debt) -> None:
    open_debt.interest_cutoff_date = date(2024, 2, 1)
    events, balance = compute_ledger(open_debt, date(2024, 6, 1))
    assert _interest(events) == [(date(2024, 1, 1), Decimal("20")), (date(2024, 2, 1), Decimal("20.4"))]
    assert date(2024, 3, 1) not in [d for d, _ in _interest(events)]
    assert balance == Decimal("1040.4")


def test_rate_changes_follow_the_schedule(open_debt: Debt) -> None:
    open_debt.interest_schedule += [
        RateChange(date(2024, 3, 1), Decimal("0")),
        RateChange(date(2024, 4, 1), Decimal("1")),
    ]
    events, balance = compute_ledger(open_debt, date(2024, 4, 15))
    assert _interest(events) == [
        (date(2024, 1, 1), Decimal("20")),
        (date(2024, 2, 1), Decimal("20.4")),
        (date(2024, 4, 1), Decimal("10.404")),
    ]
    assert balance == Decimal("1050.804")


def test_negative_balance_is_never_charged(open_debt: Debt) -> None:
    open_debt.ledger.append(LedgerEvent(date(2024, 1, 2), "Payment received", Decimal("-1100")))
    events, balance = compute_ledger(open_debt, date(2024, 4, 15))
    assert _interest(events) == [(date(2024, 1, 1), Decimal("20"))]
    assert balance == Decimal("-80")


def test_backdated_first_event_uses_opening_rate() -> None:
    debt = Debt(
        id=1,
        description="Backdated",
        creation_date=date(2024, 3, 1),
        interest_schedule=[RateChange(date(2024, 3, 1), Decimal("2"))],
        ledger=[LedgerEvent(date(2024, 1, 10), "Initial amount", Decimal("1000"))],
    )
    events, _ = compute_ledger(debt, date(2024, 3, 20))
    assert _interest(events) == [(date(2024, 1, 10), Decimal("20"))]


def test_ledger_is_deterministic_and_conserves_balance(open_debt: Debt) -> None:
    open_debt.ledger.append(LedgerEvent(date(2024, 5, 3), "Payment received", Decimal("-300")))
    first = compute_ledger(open_debt, date(2024, 12, 31))
    second = compute_ledger(open_debt, date(2024, 12, 31))
    assert first == second
    events, balance = first
    assert balance == sum(e.amount for e in events)
    assert len(open_debt.ledger) == 2


def test_paid_off_flag_uses_epsilon(open_debt: Debt) -> None:
    open_debt.interest_schedule = [RateChange(date(2024, 1, 1), Decimal("0"))]
    open_debt.ledger.append(LedgerEvent(date(2024, 1, 2), "Payment received", Decimal("-999.996")))
    _, balance = compute_ledger(open_debt, date(2024, 2, 1))
    assert balance == Decimal("0.004")
    assert open_debt.is_paid_off

    open_debt.ledger[-1].amount = Decimal("-999.98")
    compute_ledger(open_debt, date(2024, 2, 1))
    assert not open_debt.is_paid_off


def test_installment_balance_ignores_interest(installment_debt: Debt) -> None:
    installment_debt.interest_schedule = [RateChange(date(2024, 1, 1), Decimal("5"))]
    installment_debt.ledger = [
        LedgerEvent(date(2024, 2, 1), "Payment received", Decimal("-250")),
        LedgerEvent(date(2024, 1, 20), "Payment received", Decimal("-200")),
    ]
    events, balance = compute_balance(installment_debt, date(2024, 6, 1))
    assert balance == Decimal("1550")
    assert [e.date for e in events] == [date(2024, 1, 20), date(2024, 2, 1)]
    assert not any(e.is_interest for e in events)


def test_installment_paid_off_with_epsilon(installment_debt: Debt) -> None:
    installment_debt.ledger = [LedgerEvent(date(2024, 2, 1), "Payment received", Decimal("-1999.996"))]
    compute_balance(installment_debt, date(2024, 6, 1))
    assert installment_debt.is_paid_off


def test_next_interest_charge(open_debt: Debt) -> None:
    assert next_interest_charge(open_debt, date(2024, 3, 15)) == (date(2024, 4, 1), Decimal("21.22416"))

    open_debt.interest_cutoff_date = date(2024, 3, 20)
    assert next_interest_charge(open_debt, date(2024, 3, 15)) is None


def test_next_interest_charge_none_for_installments(installment_debt: Debt) -> None:
    assert next_interest_charge(installment_debt, date(2024, 3, 15)) is None


def _debt(debt_id: int, amount: str) -> Debt:
    return Debt(
        id=debt_id,
        description=f"Debt {debt_id}",
        creation_date=date(2024, 1, 1),
        ledger=[LedgerEvent(date(2024, 1, 1), "Initial amount", Decimal(amount))],
    )


def test_portfolio_totals_and_ordering() -> None:
    ana = Debtor("Ana", [_debt(1, "100"), _debt(2, "0"), _debt(3, "400")])
    bruno = Debtor("Bruno", [_debt(1, "1000")])
    state = LedgerState([ana, bruno])
    ref = date(2024, 6, 1)

    assert debtor_balance(ana, ref) == Decimal("500")
    assert grand_total(state, ref) == Decimal("1500")
    assert [d.name for d in sort_debtors_by_balance(state.debtors, ref)] == ["Bruno", "Ana"]
    assert [d.id for d in sort_debts_by_balance(ana.debts, ref)] == [3, 1, 2]
    assert [d.id for d in active_debts(ana, ref)] == [1, 3]
