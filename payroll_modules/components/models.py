"""
Component Catalog Domain Models (``payroll_modules.components.models``).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ComponentType(str, Enum):
    EARNING = "earning"
    DEDUCTION = "deduction"
    BENEFIT = "benefit"
    TAX = "tax"
    CONTRIBUTION = "contribution"
    LOAN = "loan"
    ALLOWANCE = "allowance"


class ComponentCategory(str, Enum):
    REGULAR = "regular"
    OVERTIME = "overtime"
    HOLIDAY = "holiday"
    LEAVE = "leave"
    ALLOWANCE = "allowance"
    DEDUCTION = "deduction"
    TAX = "tax"
    CONTRIBUTION = "contribution"
    LOAN = "loan"
    ADJUSTMENT = "adjustment"


class CalculationMethod(str, Enum):
    FIXED_AMOUNT = "fixed_amount"
    PERCENTAGE_OF_BASIC = "percentage_of_basic"
    PERCENTAGE_OF_GROSS = "percentage_of_gross"
    PER_HOUR = "per_hour"
    PER_DAY = "per_day"
    PER_UNIT = "per_unit"
    PERCENTAGE_OF_COMPONENT = "percentage_of_component"


class AssignmentFrequency(str, Enum):
    PER_PAYROLL = "per_payroll"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUALLY = "annually"
    ONE_TIME = "one_time"


@dataclass(frozen=True)
class SalaryComponent:
    id: UUID
    code: str
    name: str
    component_type: ComponentType
    category: ComponentCategory
    calculation_method: CalculationMethod
    description: str | None = None
    default_amount: Decimal | None = None
    default_percentage: Decimal | None = None
    reference_component_id: UUID | None = None
    ot_multiplier: Decimal | None = None
    is_taxable: bool = True
    display_order: int = 0
    is_active: bool = True
    is_system_component: bool = False


@dataclass(frozen=True)
class ComponentAssignment:
    """A component applied to one employee over an effective-dated window."""
    id: UUID
    employee_id: UUID
    component_id: UUID
    component_code: str
    amount: Decimal
    frequency: AssignmentFrequency
    effective_date: date
    percentage: Decimal | None = None
    units: Decimal | None = None
    end_date: date | None = None
    is_active: bool = True
    remarks: str | None = None
