"""
Payroll Domain Models (``payroll_modules.payroll.models``).

Frozen value objects for payroll periods and per-employee calculations.
A ``PayrollCalculation`` is a full snapshot: every intermediate figure the
engine derived is retained so a payslip can be explained without
recomputing.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

ZERO = Decimal("0")


class PeriodStatus(str, Enum):
    DRAFT = "draft"
    CALCULATING = "calculating"
    CALCULATED = "calculated"
    FINALIZED = "finalized"


class CalculationStatus(str, Enum):
    CALCULATED = "calculated"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class PayrollPeriod:
    id: UUID
    code: str
    name: str
    start_date: date
    end_date: date
    payment_date: date | None
    status: PeriodStatus
    total_employees: int = 0
    total_gross_pay: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net_pay: Decimal = ZERO
    total_employee_contributions: Decimal = ZERO
    total_employer_contributions: Decimal = ZERO
    total_loan_deductions: Decimal = ZERO
    total_employer_cost: Decimal = ZERO
    calculation_started_at: datetime | None = None
    calculated_at: datetime | None = None
    finalized_at: datetime | None = None

    @property
    def is_finalized(self) -> bool:
        return self.finalized_at is not None

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class AttendanceTotals:
    """Attendance for one employee over one period."""
    days_worked: int = 0
    total_hours: Decimal = ZERO
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    late_minutes: int = 0
    undertime_minutes: int = 0


@dataclass(frozen=True)
class ContributionBreakdown:
    """Employee-share government contributions."""
    sss: Decimal = ZERO
    philhealth: Decimal = ZERO
    pagibig: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.sss + self.philhealth + self.pagibig


@dataclass(frozen=True)
class PayrollCalculation:
    id: UUID
    employee_id: UUID
    period_id: UUID
    salary_profile_id: UUID
    salary_type: str
    basic_salary: Decimal
    daily_rate: Decimal | None
    hourly_rate: Decimal | None
    days_worked: int
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    late_minutes: int
    undertime_minutes: int
    basic_pay: Decimal
    overtime_pay: Decimal
    component_earnings: Decimal
    total_allowances: Decimal
    gross_pay: Decimal
    sss_contribution: Decimal
    philhealth_contribution: Decimal
    pagibig_contribution: Decimal
    total_contributions: Decimal
    taxable_income: Decimal
    withholding_tax: Decimal
    total_recurring_deductions: Decimal
    loan_deductions: Decimal
    late_deduction: Decimal
    undertime_deduction: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    status: CalculationStatus
    calculated_at: datetime


@dataclass(frozen=True)
class CalculationFailure:
    employee_id: UUID
    code: str
    message: str


@dataclass(frozen=True)
class PeriodCalculationResult:
    """Outcome of calculating a batch of employees for one period."""
    period_id: UUID
    calculations: tuple[PayrollCalculation, ...] = field(default_factory=tuple)
    failures: tuple[CalculationFailure, ...] = field(default_factory=tuple)

    @property
    def success_count(self) -> int:
        return len(self.calculations)

    @property
    def failure_count(self) -> int:
        return len(self.failures)
