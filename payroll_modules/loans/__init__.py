"""
Loan Module (``payroll_modules.loans``).

Employee loans with amortized monthly installments, repaid through payroll
deductions or early payments.
"""

from payroll_modules.loans.models import (
    InstallmentStatus,
    Loan,
    LoanDetails,
    LoanInstallment,
    LoanStatus,
    LoanType,
    ScheduledInstallment,
)
from payroll_modules.loans.service import LoanLedgerService

__all__ = [
    "InstallmentStatus",
    "Loan",
    "LoanDetails",
    "LoanInstallment",
    "LoanLedgerService",
    "LoanStatus",
    "LoanType",
    "ScheduledInstallment",
]
