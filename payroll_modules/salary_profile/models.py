"""
Salary Profile Domain Models (``payroll_modules.salary_profile.models``).

Frozen value objects returned by ``SalaryProfileService``.  All monetary
fields are ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class SalaryType(str, Enum):
    MONTHLY = "monthly"
    DAILY = "daily"
    HOURLY = "hourly"
    CONTRACTUAL = "contractual"
    PROJECT = "project"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    CHECK = "check"


class TaxStatus(str, Enum):
    """BIR withholding status codes.  Z is zero-rated."""
    Z = "Z"
    S = "S"
    ME = "ME"
    S1 = "S1"
    S2 = "S2"
    S3 = "S3"
    S4 = "S4"
    ME1 = "ME1"
    ME2 = "ME2"
    ME3 = "ME3"
    ME4 = "ME4"


@dataclass(frozen=True)
class SalaryProfile:
    """One version of an employee's salary setup."""
    id: UUID
    employee_id: UUID
    salary_type: SalaryType
    basic_salary: Decimal
    daily_rate: Decimal | None
    hourly_rate: Decimal | None
    payment_method: PaymentMethod
    tax_status: TaxStatus
    effective_date: date
    end_date: date | None = None
    is_active: bool = True
    sss_number: str | None = None
    philhealth_number: str | None = None
    pagibig_number: str | None = None
    tin_number: str | None = None
    sss_bracket: str | None = None
    rdo_code: str | None = None
    withholding_tax_exemption: Decimal | None = None
    is_tax_exempt: bool = False
    is_substituted_filing: bool = False
    is_sss_voluntary: bool = False
    philhealth_is_indigent: bool = False
    pagibig_employee_rate: Decimal = Decimal("1.00")
    bank_name: str | None = None
    bank_code: str | None = None
    bank_account_number: str | None = None
    bank_account_name: str | None = None
    is_entitled_to_rice: bool = False
    is_entitled_to_uniform: bool = False
    is_entitled_to_laundry: bool = False
    is_entitled_to_medical: bool = False
    remarks: str | None = None

    @property
    def is_current(self) -> bool:
        return self.is_active and self.end_date is None
