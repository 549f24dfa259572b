from __future__ import annotations

import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from debt_ledger.data_models import Debt, InstallmentPlan, LedgerEvent, RateChange  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # Keep a developer's .env or shell settings out of the tests
    for name in ("DEBT_LEDGER_STORE", "DEBT_LEDGER_LOG_LEVEL", "DEBT_LEDGER_LOG_FILE", "DEBT_LEDGER_CURRENCY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def open_debt() -> Debt:
    """1000.00 charged on 2024-01-01 at 2 % a month."""
    return Debt(
        id=1,
        description="Loan",
        creation_date=date(2024, 1, 1),
        interest_schedule=[RateChange(date(2024, 1, 1), Decimal("2"))],
        ledger=[LedgerEvent(date(2024, 1, 1), "Initial amount", Decimal("1000.00"))],
    )


@pytest.fixture
def installment_debt() -> Debt:
    return Debt(
        id=2,
        description="Phone",
        creation_date=date(2024, 1, 1),
        installment_plan=InstallmentPlan(
            installment_amount=Decimal("200"),
            total_installments=10,
            due_day=15,
            first_due_date=date(2024, 1, 15),
        ),
    )


@pytest.fixture(autouse=True)
def _restore_logging():
    # The CLI reconfigures the root logger on every invocation
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
