"""
Salary Profile Module (``payroll_modules.salary_profile``).

Owns each employee's current and historical salary setup: salary type,
rates, tax status, government numbers and SSS bracket, bank details and
benefit entitlements.  Salary-affecting edits supersede the current profile;
cosmetic edits are applied in place.
"""

from payroll_modules.salary_profile.models import (
    PaymentMethod,
    SalaryProfile,
    SalaryType,
    TaxStatus,
)
from payroll_modules.salary_profile.service import SalaryProfileService

__all__ = [
    "PaymentMethod",
    "SalaryProfile",
    "SalaryProfileService",
    "SalaryType",
    "TaxStatus",
]
