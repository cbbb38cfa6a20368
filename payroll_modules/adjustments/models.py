"""
Recurring Adjustment Domain Models (``payroll_modules.adjustments.models``).

Frozen value objects for recurring allowances and deductions.  The type
enumerations are closed: anything outside them is a validation error.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class AdjustmentKind(str, Enum):
    ALLOWANCE = "allowance"
    DEDUCTION = "deduction"


class AllowanceType(str, Enum):
    RICE = "rice"
    COLA = "cola"
    TRANSPORTATION = "transportation"
    MEAL = "meal"
    HOUSING = "housing"
    COMMUNICATION = "communication"
    LAUNDRY = "laundry"
    CLOTHING = "clothing"
    OTHER = "other"


class DeductionType(str, Enum):
    INSURANCE = "insurance"
    UNION_DUES = "union_dues"
    CANTEEN = "canteen"
    LOAN = "loan"
    UNIFORM_FUND = "uniform_fund"
    MEDICAL = "medical"
    EDUCATIONAL = "educational"
    SAVINGS = "savings"
    COOPERATIVE = "cooperative"
    OTHER = "other"


TYPES_BY_KIND: dict[AdjustmentKind, type[Enum]] = {
    AdjustmentKind.ALLOWANCE: AllowanceType,
    AdjustmentKind.DEDUCTION: DeductionType,
}


@dataclass(frozen=True)
class RecurringAdjustment:
    """One effective-dated allowance or deduction for an employee."""
    id: UUID
    employee_id: UUID
    kind: AdjustmentKind
    adjustment_type: str
    amount: Decimal
    effective_date: date
    end_date: date | None = None
    is_active: bool = True
    description: str | None = None

    def is_active_on(self, as_of: date) -> bool:
        return self.is_active and (self.end_date is None or self.end_date >= as_of)


@dataclass(frozen=True)
class EmployeeSelector:
    """
    Target set for a bulk assignment.

    Either an explicit ``employee_ids`` tuple, or a declarative filter on
    department, position and/or current salary type.  Explicit ids win
    when both are given.
    """
    employee_ids: tuple[UUID, ...] | None = None
    department_id: UUID | None = None
    position_id: UUID | None = None
    salary_type: str | None = None

    @property
    def has_filter(self) -> bool:
        return any(
            v is not None for v in (self.department_id, self.position_id, self.salary_type)
        )


@dataclass(frozen=True)
class BulkAssignmentFailure:
    employee_id: UUID
    code: str
    message: str


@dataclass(frozen=True)
class BulkAssignmentResult:
    """Outcome of a best-effort bulk assignment."""
    adjustment_type: str
    created: tuple[RecurringAdjustment, ...] = ()
    failures: tuple[BulkAssignmentFailure, ...] = ()

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


@dataclass(frozen=True)
class AdjustmentSummary:
    """Active allowances and deductions grouped by type."""
    allowances: dict[str, list[RecurringAdjustment]] = field(default_factory=dict)
    deductions: dict[str, list[RecurringAdjustment]] = field(default_factory=dict)
    total_allowances: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")

    @property
    def net_amount(self) -> Decimal:
        return self.total_allowances - self.total_deductions
