"""
Recurring Adjustment Module (``payroll_modules.adjustments``).

Per-employee recurring allowances (rice, COLA, transportation, ...) and
deductions (insurance, union dues, canteen, ...), effective-dated and
superseded per (employee, type).
"""

from payroll_modules.adjustments.models import (
    AdjustmentKind,
    AdjustmentSummary,
    AllowanceType,
    BulkAssignmentFailure,
    BulkAssignmentResult,
    DeductionType,
    EmployeeSelector,
    RecurringAdjustment,
)
from payroll_modules.adjustments.service import RecurringAdjustmentService

__all__ = [
    "AdjustmentKind",
    "AdjustmentSummary",
    "AllowanceType",
    "BulkAssignmentFailure",
    "BulkAssignmentResult",
    "DeductionType",
    "EmployeeSelector",
    "RecurringAdjustment",
    "RecurringAdjustmentService",
]
