from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from debt_ledger.data_models import InstallmentPlan, LedgerState
from debt_ledger.engine import compute_ledger
from debt_ledger.operations import add_installment_debt, add_open_debt
from debt_ledger.store import (
    JsonLedgerStore,
    LedgerDocumentModel,
    SqlLedgerStore,
    create_store,
    debt_to_dict,
    normalize_debt_record,
    state_from_dict,
)


def _state() -> LedgerState:
    state = LedgerState()
    debt = add_open_debt(
        state, "Ana", "Loan", Decimal("1000.50"), date(2024, 1, 1), monthly_rate=Decimal("2.5"),
        note="São Paulo", creation_date=date(2024, 1, 1),
    )
    debt.interest_cutoff_date = date(2024, 6, 1)
    add_installment_debt(
        state,
        "Ana",
        "Phone",
        InstallmentPlan(Decimal("200"), 10, 15, date(2024, 1, 15)),
        creation_date=date(2024, 1, 1),
    )
    return state


def test_json_store_round_trip(tmp_path: Path) -> None:
    store = JsonLedgerStore(str(tmp_path / "ledger.json"))
    state = _state()
    store.save(state)

    raw = json.loads((tmp_path / "ledger.json").read_text(encoding="utf-8"))
    first = raw["debtors"][0]["debts"][0]
    assert first["ledger"] == [{"date": "2024-01-01", "description": "Initial amount", "amount": "1000.50"}]
    assert first["interest_cutoff_date"] == "2024-06-01"

    assert store.load() == state


def test_missing_file_gives_empty_state(tmp_path: Path) -> None:
    assert JsonLedgerStore(str(tmp_path / "absent.json")).load() == LedgerState()


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", '{"debtors": [{"name": "Ana", "debts": [{"id": 1}]}]}'])
def test_corrupt_file_gives_empty_state(tmp_path: Path, caplog: pytest.LogCaptureFixture, content: str) -> None:
    path = tmp_path / "ledger.json"
    path.write_text(content, encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="debt_ledger.store"):
        assert JsonLedgerStore(str(path)).load() == LedgerState()
    assert "empty state" in caplog.text
    assert ".corrupt-" in caplog.text


def test_corrupt_file_survives_the_next_save(tmp_path: Path) -> None:
    path = tmp_path / "ledger.json"
    content = '{"debtors": [{"name": "Ana", "debts": [{"id": 1, "description": "Loan"'
    path.write_text(content, encoding="utf-8")

    store = JsonLedgerStore(str(path))
    state = store.load()
    add_open_debt(state, "Bia", "Dinner", Decimal("50"), date(2024, 1, 1), creation_date=date(2024, 1, 1))
    store.save(state)

    quarantined = list(tmp_path.glob("ledger.json.corrupt-*"))
    assert len(quarantined) == 1
    assert quarantined[0].read_text(encoding="utf-8") == content
    assert [d.name for d in store.load().debtors] == ["Bia"]


def test_empty_file_gives_empty_state(tmp_path: Path) -> None:
    path = tmp_path / "ledger.json"
    path.write_text("", encoding="utf-8")
    assert JsonLedgerStore(str(path)).load() == LedgerState()


def test_synthetic_interest_is_never_persisted() -> None:
    debt = _state().debtors[0].debts[0]
    events, _ = compute_ledger(debt, date(2024, 3, 1))
    debt.ledger = events
    assert [e["description"] for e in debt_to_dict(debt)["ledger"]] == ["Initial amount"]


def test_legacy_document_is_normalised() -> None:
    legacy = {
        "devedores": [
            {
                "nome": "João",
                "dividas": [
                    {
                        "id": 1,
                        "descricao": "Empréstimo",
                        "jurosMensais": 2,
                        "observacao": "",
                        "dataCriacao": "2024-01-01",
                        "historico": [
                            {"data": "2024-01-01", "descricao": "Valor inicial", "valor": 1000},
                            {"data": "2024-02-10", "descricao": "Pagamento recebido", "valor": -100.5},
                        ],
                        "quitada": False,
                    },
                    {
                        "id": 2,
                        "descricao": "Celular",
                        "jurosMensais": 0,
                        "dataCriacao": "2024-01-01",
                        "historico": [],
                        "dataFimJuros": "2024-05-01",
                        "parcelamento": {
                            "valorParcela": 200,
                            "diaVencimento": 15,
                            "totalParcelas": 10,
                            "inicioVencimentos": "2024-01-15",
                        },
                    },
                ],
            }
        ]
    }
    state = state_from_dict(legacy)
    debtor = state.debtors[0]
    assert debtor.name == "João"
    loan, phone = debtor.debts
    assert [(r.effective_date, r.monthly_rate) for r in loan.interest_schedule] == [(date(2024, 1, 1), Decimal("2"))]
    assert loan.ledger[1].amount == Decimal("-100.5")
    assert phone.installment_plan == InstallmentPlan(Decimal("200"), 10, 15, date(2024, 1, 15))
    assert phone.interest_cutoff_date == date(2024, 5, 1)


def test_legacy_rate_history_becomes_schedule() -> None:
    record = normalize_debt_record(
        {
            "id": 1,
            "descricao": "x",
            "dataCriacao": "2024-01-01",
            "jurosMensais": 1,
            "historicoJuros": [{"data": "2024-01-01", "juros": 2}, {"data": "2024-03-01", "juros": 1}],
            "historico": [],
        }
    )
    assert record["interest_schedule"] == [
        {"effective_date": "2024-01-01", "monthly_rate": 2},
        {"effective_date": "2024-03-01", "monthly_rate": 1},
    ]


def test_current_records_pass_through_normalisation() -> None:
    record = debt_to_dict(_state().debtors[0].debts[0])
    assert normalize_debt_record(record) is record


def test_sql_store_round_trip(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'ledger.sqlite3'}"
    store = SqlLedgerStore(url)
    assert store.load() == LedgerState()

    state = _state()
    store.save(state)
    state.debtors[0].debts[0].description = "Renamed"
    store.save(state)

    assert SqlLedgerStore(url).load() == state


def test_create_store_picks_backend(tmp_path: Path) -> None:
    assert isinstance(create_store(str(tmp_path / "ledger.json")), JsonLedgerStore)
    assert isinstance(create_store(f"sqlite:///{tmp_path / 'db.sqlite3'}"), SqlLedgerStore)
    assert isinstance(create_store(None), JsonLedgerStore)


def test_corrupt_sql_document_is_moved_aside(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'ledger.sqlite3'}"
    store = SqlLedgerStore(url)
    store.save(_state())
    with Session(create_engine(url, future=True)) as session:
        session.get(LedgerDocumentModel, "default").document_json = "{not json"
        session.commit()

    assert store.load() == LedgerState()
    store.save(LedgerState())

    with Session(create_engine(url, future=True)) as session:
        rows = {row.id: row.document_json for row in session.execute(select(LedgerDocumentModel)).scalars()}
    quarantined = [key for key in rows if key.startswith("default.corrupt-")]
    assert len(quarantined) == 1
    assert rows[quarantined[0]] == "{not json"
    assert json.loads(rows["default"]) == {"debtors": []}
