"""
Loan Domain Models (``payroll_modules.loans.models``).

Frozen value objects for employee loans and their monthly installment
schedule.  All monetary fields are ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class LoanType(str, Enum):
    SSS = "sss"
    PAGIBIG = "pagibig"
    COMPANY = "company"
    EMERGENCY = "emergency"
    HOUSING = "housing"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESTRUCTURED = "restructured"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"


@dataclass(frozen=True)
class ScheduledInstallment:
    """One row of a schedule before it is persisted."""
    sequence: int
    due_month: date
    amount: Decimal


@dataclass(frozen=True)
class Loan:
    id: UUID
    employee_id: UUID
    loan_type: LoanType
    principal: Decimal
    annual_interest_rate: Decimal
    term_months: int
    monthly_payment: Decimal
    total_amount: Decimal
    start_date: date
    expected_end_date: date
    balance: Decimal
    status: LoanStatus
    end_date: date | None = None
    reason: str | None = None
    remarks: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE


@dataclass(frozen=True)
class LoanInstallment:
    id: UUID
    loan_id: UUID
    employee_id: UUID
    sequence: int
    due_month: date
    amount: Decimal
    status: InstallmentStatus
    processed_date: date | None = None


@dataclass(frozen=True)
class LoanDetails:
    """A loan with its full schedule and processed/pending totals."""
    loan: Loan
    installments: tuple[LoanInstallment, ...]
    total_processed: Decimal
    total_pending: Decimal

    @property
    def pending_count(self) -> int:
        return sum(1 for i in self.installments if i.status == InstallmentStatus.PENDING)
