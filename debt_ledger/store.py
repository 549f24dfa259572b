"""Persistence layer for the ledger state document.

The whole state (every debtor with every debt) is read in one go and written
back in one go after each mutation. Two backends share the same document
format: a JSON file for the command-line tool and a single-row table in any
SQLAlchemy-compatible database for the web dashboard. Missing or unreadable
state is never fatal; an empty state is substituted and a warning is logged.
An unreadable document is first moved aside under a ``.corrupt-<timestamp>``
name so the next save cannot destroy it.

Records written by older versions of the tool used Portuguese keys and a
single ``jurosMensais`` rate instead of a schedule. They are normalised to the
current schema on load.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from .data_models import Debt, Debtor, InstallmentPlan, LedgerEvent, LedgerState, RateChange
from .utils import decimal_from_str, parse_iso_date

logger = logging.getLogger(__name__)

Base = declarative_base()


class LedgerStore(Protocol):
    def load(self) -> LedgerState:
        ...

    def save(self, state: LedgerState) -> None:
        ...


# Serialization


def _amount(value: Decimal) -> str:
    return str(value)


def event_to_dict(event: LedgerEvent) -> Dict[str, Any]:
    return {
        "date": event.date.isoformat(),
        "description": event.description,
        "amount": _amount(event.amount),
    }


def debt_to_dict(debt: Debt) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": debt.id,
        "description": debt.description,
        "creation_date": debt.creation_date.isoformat(),
        "note": debt.note,
        "interest_schedule": [
            {"effective_date": r.effective_date.isoformat(), "monthly_rate": _amount(r.monthly_rate)}
            for r in debt.interest_schedule
        ],
        "ledger": [event_to_dict(e) for e in debt.ledger if not e.is_interest],
        "interest_cutoff_date": debt.interest_cutoff_date.isoformat() if debt.interest_cutoff_date else None,
        "is_paid_off": debt.is_paid_off,
    }
    if debt.installment_plan is not None:
        plan = debt.installment_plan
        data["installment_plan"] = {
            "installment_amount": _amount(plan.installment_amount),
            "total_installments": plan.total_installments,
            "due_day": plan.due_day,
            "first_due_date": plan.first_due_date.isoformat(),
        }
    return data


def state_to_dict(state: LedgerState) -> Dict[str, Any]:
    return {
        "debtors": [
            {"name": debtor.name, "debts": [debt_to_dict(d) for d in debtor.debts]}
            for debtor in state.debtors
        ]
    }


def normalize_debt_record(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a legacy debt record to the current schema.

    Records already in the current schema are returned unchanged. A legacy
    single ``jurosMensais`` rate becomes a one-entry schedule effective at the
    creation date unless the record also carries ``historicoJuros``.
    """
    if "creation_date" in raw:
        return raw
    created = raw.get("dataCriacao")
    if "historicoJuros" in raw:
        schedule = [
            {"effective_date": item.get("data") or created, "monthly_rate": item.get("juros", 0)}
            for item in raw.get("historicoJuros") or []
        ]
    else:
        schedule = [{"effective_date": created, "monthly_rate": raw.get("jurosMensais") or 0}]
    record: Dict[str, Any] = {
        "id": raw.get("id"),
        "description": raw.get("descricao", ""),
        "creation_date": created,
        "note": raw.get("observacao") or "",
        "interest_schedule": schedule,
        "ledger": [
            {"date": item["data"], "description": item.get("descricao", ""), "amount": item.get("valor", 0)}
            for item in raw.get("historico") or []
        ],
        "interest_cutoff_date": raw.get("dataFimJuros"),
        "is_paid_off": bool(raw.get("quitada", False)),
    }
    plan = raw.get("parcelamento")
    if plan:
        record["installment_plan"] = {
            "installment_amount": plan.get("valorParcela"),
            "total_installments": plan.get("totalParcelas"),
            "due_day": plan.get("diaVencimento"),
            "first_due_date": plan.get("inicioVencimentos"),
        }
    return record


def _optional_date(value: Optional[str]):
    return parse_iso_date(value) if value else None


def debt_from_dict(raw: Dict[str, Any]) -> Debt:
    data = normalize_debt_record(raw)
    plan_data = data.get("installment_plan")
    plan = None
    if plan_data:
        plan = InstallmentPlan(
            installment_amount=decimal_from_str(plan_data["installment_amount"]),
            total_installments=int(plan_data["total_installments"]),
            due_day=int(plan_data["due_day"]),
            first_due_date=parse_iso_date(plan_data["first_due_date"]),
        )
    return Debt(
        id=int(data["id"]),
        description=data.get("description", ""),
        creation_date=parse_iso_date(data["creation_date"]),
        note=data.get("note") or "",
        interest_schedule=[
            RateChange(
                effective_date=parse_iso_date(r["effective_date"]),
                monthly_rate=decimal_from_str(r["monthly_rate"]),
            )
            for r in data.get("interest_schedule") or []
        ],
        ledger=[
            LedgerEvent(
                date=parse_iso_date(e["date"]),
                description=e.get("description", ""),
                amount=decimal_from_str(e["amount"]),
            )
            for e in data.get("ledger") or []
        ],
        interest_cutoff_date=_optional_date(data.get("interest_cutoff_date")),
        installment_plan=plan,
        is_paid_off=bool(data.get("is_paid_off", False)),
    )


def state_from_dict(data: Dict[str, Any]) -> LedgerState:
    debtors: List[Debtor] = []
    for raw in data.get("debtors", data.get("devedores", [])):
        name = raw.get("name", raw.get("nome"))
        debts = raw.get("debts", raw.get("dividas", []))
        debtors.append(Debtor(name=name, debts=[debt_from_dict(d) for d in debts]))
    return LedgerState(debtors=debtors)


class LedgerDocumentError(ValueError):
    """Raised when a stored state document cannot be turned into a ``LedgerState``."""


def _parse_document(text: str) -> LedgerState:
    if not text.strip():
        return LedgerState()
    try:
        return state_from_dict(json.loads(text))
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise LedgerDocumentError(str(exc)) from exc


def _corrupt_suffix() -> str:
    return ".corrupt-" + datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


# Backends


class JsonLedgerStore:
    """Whole-file JSON store."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def load(self) -> LedgerState:
        if not self.path.exists():
            logger.info("No ledger file at %s; starting with an empty state.", self.path)
            return LedgerState()
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not open %s; starting with an empty state. (%s)", self.path, exc)
            return LedgerState()
        try:
            return _parse_document(text)
        except LedgerDocumentError as exc:
            quarantined = self.path.with_name(self.path.name + _corrupt_suffix())
            self.path.replace(quarantined)
            logger.warning(
                "Could not read ledger state from %s; moved it to %s and starting with an empty state. (%s)",
                self.path,
                quarantined,
                exc,
            )
            return LedgerState()

    def save(self, state: LedgerState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(state_to_dict(state), f, indent=2, ensure_ascii=False)
        logger.debug("Saved ledger state to %s", self.path)


class LedgerDocumentModel(Base):
    __tablename__ = "ledger_documents"

    id = Column(String(64), primary_key=True)
    document_json = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class SqlLedgerStore:
    """Database-backed store keeping the state document in a single row."""

    def __init__(self, url: str, *, document_id: str = "default") -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._document_id = document_id

    def load(self) -> LedgerState:
        with self._session_factory() as session:
            row = session.execute(
                select(LedgerDocumentModel).where(LedgerDocumentModel.id == self._document_id)
            ).scalar_one_or_none()
            if row is None:
                return LedgerState()
            try:
                return _parse_document(row.document_json)
            except LedgerDocumentError as exc:
                quarantined = self._document_id + _corrupt_suffix()
                session.add(LedgerDocumentModel(id=quarantined, document_json=row.document_json))
                session.delete(row)
                session.commit()
                logger.warning(
                    "Could not read ledger state from document %s; moved it to document %s "
                    "and starting with an empty state. (%s)",
                    self._document_id,
                    quarantined,
                    exc,
                )
                return LedgerState()

    def save(self, state: LedgerState) -> None:
        payload = json.dumps(state_to_dict(state), ensure_ascii=False)
        with self._session_factory() as session:
            row = session.get(LedgerDocumentModel, self._document_id)
            if row is None:
                session.add(LedgerDocumentModel(id=self._document_id, document_json=payload))
            else:
                row.document_json = payload
                row.updated_at = datetime.utcnow()
            session.commit()
        logger.debug("Saved ledger state to document %s", self._document_id)


def create_store(location: Optional[str]) -> LedgerStore:
    """Return the store for ``location``: a SQLAlchemy URL or a JSON file path."""
    location = location or "ledger.json"
    if "://" in location:
        return SqlLedgerStore(location)
    return JsonLedgerStore(location)
