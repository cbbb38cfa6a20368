"""
Payroll Engine Module (``payroll_modules.payroll``).

Payroll periods and the per-employee calculation that turns a salary
profile, attendance, components, recurring adjustments and loans into
gross pay, deductions and net pay.
"""

from payroll_modules.payroll.models import (
    AttendanceTotals,
    CalculationFailure,
    CalculationStatus,
    ContributionBreakdown,
    PayrollCalculation,
    PayrollPeriod,
    PeriodCalculationResult,
    PeriodStatus,
)
from payroll_modules.payroll.service import PayrollEngineService

__all__ = [
    "AttendanceTotals",
    "CalculationFailure",
    "CalculationStatus",
    "ContributionBreakdown",
    "PayrollCalculation",
    "PayrollEngineService",
    "PayrollPeriod",
    "PeriodCalculationResult",
    "PeriodStatus",
]
