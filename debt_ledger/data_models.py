"""Data models for the debt ledger.

This module defines dataclasses representing the entities tracked by the
ledger: dated monetary events, interest-rate schedule entries, installment
plans, debts and the debtors who own them. The whole persisted state is a
``LedgerState`` holding a list of debtors. Derived views produced by the
engines (``InstallmentStatus``) live here too so that formatters and the web
layer can consume them without importing the engines.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class InvalidPlanError(ValueError):
    """Raised when an installment plan breaks its own invariants."""


@dataclass
class LedgerEvent:
    """A dated, signed monetary entry in a debt's history.

    Attributes
    ----------
    date: date
        Calendar date of the event.
    description: str
        Free text shown in the history ("Initial amount", "Payment received").
    amount: Decimal
        Positive amounts are charges and increase the balance owed; negative
        amounts are payments.
    is_interest: bool
        True only for interest charges synthesised by the accrual engine.
        Stored ledgers never contain these.
    """

    date: date
    description: str
    amount: Decimal
    is_interest: bool = False


@dataclass
class RateChange:
    """One entry of an interest-rate schedule.

    The monthly rate applies from ``effective_date`` until the next entry's
    effective date.
    """

    effective_date: date
    monthly_rate: Decimal  # percent per month, e.g. Decimal("2") for 2 %


@dataclass
class InstallmentPlan:
    installment_amount: Decimal
    total_installments: int
    due_day: int  # 1..31, clamped to the last day of short months
    first_due_date: date

    def validate(self) -> None:
        if self.installment_amount <= 0:
            raise InvalidPlanError("Installment amount must be positive")
        if self.total_installments <= 0:
            raise InvalidPlanError("Total installments must be positive")
        if not 1 <= self.due_day <= 31:
            raise InvalidPlanError("Due day must be between 1 and 31")

    @property
    def total_amount(self) -> Decimal:
        return self.installment_amount * self.total_installments


@dataclass
class Debt:
    """A tracked amount owed by a debtor.

    A debt either accrues interest through ``interest_schedule`` or follows a
    fixed ``installment_plan``. Both fields may be present on the same record,
    but a debt with a plan never accrues interest in balance computations.
    ``is_paid_off`` is derived and refreshed every time a balance is computed.
    """

    id: int
    description: str
    creation_date: date
    note: str = ""
    interest_schedule: List[RateChange] = field(default_factory=list)
    ledger: List[LedgerEvent] = field(default_factory=list)
    interest_cutoff_date: Optional[date] = None
    installment_plan: Optional[InstallmentPlan] = None
    is_paid_off: bool = False

    @property
    def is_installment(self) -> bool:
        return self.installment_plan is not None


@dataclass
class Debtor:
    name: str
    debts: List[Debt] = field(default_factory=list)


@dataclass
class LedgerState:
    """The full state document read from and written back to a store."""

    debtors: List[Debtor] = field(default_factory=list)


class InstallmentState(str, Enum):
    LATE = "LATE"
    OPEN = "OPEN"
    CURRENT = "CURRENT"


@dataclass
class InstallmentStatus:
    """Derived view of where an installment plan stands on a reference date."""

    current_installment_index: int
    total_installments: int
    installment_amount: Decimal
    total_paid: Decimal
    amount_paid_toward_current: Decimal
    due_date: date
    status: InstallmentState

    @property
    def remaining_on_current(self) -> Decimal:
        return self.installment_amount - self.amount_paid_toward_current
