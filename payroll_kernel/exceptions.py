"""
Typed exception hierarchy for the payroll kernel.

Every error has a typed class, a ``code`` class attribute (machine-readable,
API-safe) and structured attributes carrying the data needed to act on it.
Callers catch by type and read attributes; they never parse messages.

Hierarchy::

    PayrollKernelError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- SalaryProfileNotFoundError
    |   |   +-- MissingSetupError
    |   +-- EmployeeNotFoundError
    |   +-- ComponentNotFoundError
    |   +-- AssignmentNotFoundError
    |   +-- AdjustmentNotFoundError
    |   +-- LoanNotFoundError
    |   +-- PeriodNotFoundError
    |   +-- CalculationNotFoundError
    |
    +-- EligibilityError
    |
    +-- StateError
    |   +-- SystemComponentError
    |   +-- ComponentInUseError
    |   +-- NoCalculationsError
    |   +-- InvalidPeriodTransitionError
    |   +-- PeriodFinalizedError
    |   +-- LoanNotActiveError
    |   +-- ClosedRecordError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditChainBrokenError

Codes:

Category     | Code                        | When raised
-------------|-----------------------------|------------------------------------
Validation   | VALIDATION_FAILED           | Bad enum, format or amount
Not found    | SALARY_PROFILE_NOT_FOUND    | Employee has no active profile
             | MISSING_SETUP               | Payroll run without salary setup
             | EMPLOYEE_NOT_FOUND          | Directory has no such employee
             | COMPONENT_NOT_FOUND         | Unknown component id/code
             | ASSIGNMENT_NOT_FOUND        | Unknown component assignment
             | ADJUSTMENT_NOT_FOUND        | Unknown allowance/deduction
             | LOAN_NOT_FOUND              | Unknown loan
             | PERIOD_NOT_FOUND            | Unknown payroll period
             | CALCULATION_NOT_FOUND       | No calculation for employee/period
Eligibility  | LOAN_NOT_ELIGIBLE           | Loan-type requirement unmet
State        | SYSTEM_COMPONENT            | Edit/delete of a system component
             | COMPONENT_IN_USE            | Delete of an assigned component
             | NO_CALCULATIONS             | Finalize of an empty period
             | INVALID_PERIOD_TRANSITION   | Period status does not allow it
             | PERIOD_FINALIZED            | Recalculation after finalize
             | LOAN_NOT_ACTIVE             | Payment on a closed loan
             | CLOSED_RECORD               | Update of a superseded record
             | IMMUTABILITY_VIOLATION      | ORM-level write to a frozen row
Audit        | AUDIT_CHAIN_BROKEN          | Hash chain does not verify
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses carry a ``code`` class attribute.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Validation


class ValidationError(PayrollKernelError):
    """One or more input fields failed validation."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        detail = "; ".join(f"{k}: {v}" for k, v in sorted(self.errors.items()))
        super().__init__(f"Validation failed: {detail}")


# Not found


class NotFoundError(PayrollKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class SalaryProfileNotFoundError(NotFoundError):
    """Employee has no active salary profile."""

    code: str = "SALARY_PROFILE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"No active salary profile for employee {employee_id}")


class MissingSetupError(SalaryProfileNotFoundError):
    """Payroll cannot be computed because salary setup is missing."""

    code: str = "MISSING_SETUP"

    def __init__(self, employee_id: str):
        super().__init__(employee_id)
        self.args = (f"Employee {employee_id} has no salary setup configured",)


class EmployeeNotFoundError(NotFoundError):
    """Employee is unknown to the directory."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class ComponentNotFoundError(NotFoundError):
    code: str = "COMPONENT_NOT_FOUND"

    def __init__(self, component_ref: str):
        self.component_ref = component_ref
        super().__init__(f"Salary component not found: {component_ref}")


class AssignmentNotFoundError(NotFoundError):
    code: str = "ASSIGNMENT_NOT_FOUND"

    def __init__(self, assignment_id: str):
        self.assignment_id = assignment_id
        super().__init__(f"Component assignment not found: {assignment_id}")


class AdjustmentNotFoundError(NotFoundError):
    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, adjustment_id: str):
        self.adjustment_id = adjustment_id
        super().__init__(f"Recurring adjustment not found: {adjustment_id}")


class LoanNotFoundError(NotFoundError):
    code: str = "LOAN_NOT_FOUND"

    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan not found: {loan_id}")


class PeriodNotFoundError(NotFoundError):
    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = period_ref
        super().__init__(f"Payroll period not found: {period_ref}")


class CalculationNotFoundError(NotFoundError):
    code: str = "CALCULATION_NOT_FOUND"

    def __init__(self, employee_id: str, period_id: str):
        self.employee_id = employee_id
        self.period_id = period_id
        super().__init__(
            f"No payroll calculation for employee {employee_id} "
            f"in period {period_id}"
        )


# Eligibility


class EligibilityError(PayrollKernelError):
    """Employee does not meet the requirements for a loan type."""

    code: str = "LOAN_NOT_ELIGIBLE"

    def __init__(self, employee_id: str, loan_type: str, reason: str):
        self.employee_id = employee_id
        self.loan_type = loan_type
        self.reason = reason
        super().__init__(
            f"Employee {employee_id} is not eligible for {loan_type} loan: {reason}"
        )


# State


class StateError(PayrollKernelError):
    """Base exception for operations the current state does not allow."""

    code: str = "INVALID_STATE"


class SystemComponentError(StateError):
    """System components are read-only."""

    code: str = "SYSTEM_COMPONENT"

    def __init__(self, component_code: str, action: str):
        self.component_code = component_code
        self.action = action
        super().__init__(f"Cannot {action} system component {component_code}")


class ComponentInUseError(StateError):
    """Component still has active assignments."""

    code: str = "COMPONENT_IN_USE"

    def __init__(self, component_code: str, assignment_count: int):
        self.component_code = component_code
        self.assignment_count = assignment_count
        super().__init__(
            f"Component {component_code} is assigned to "
            f"{assignment_count} employee(s)"
        )


class NoCalculationsError(StateError):
    code: str = "NO_CALCULATIONS"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(f"No calculations found for period {period_id}")


class InvalidPeriodTransitionError(StateError):
    code: str = "INVALID_PERIOD_TRANSITION"

    def __init__(self, period_code: str, from_status: str, to_status: str):
        self.period_code = period_code
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Payroll period {period_code} cannot move "
            f"from {from_status} to {to_status}"
        )


class PeriodFinalizedError(StateError):
    code: str = "PERIOD_FINALIZED"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Payroll period {period_code} is finalized")


class LoanNotActiveError(StateError):
    code: str = "LOAN_NOT_ACTIVE"

    def __init__(self, loan_id: str, status: str):
        self.loan_id = loan_id
        self.status = status
        super().__init__(f"Loan {loan_id} is not active (status: {status})")


class ClosedRecordError(StateError):
    """A superseded or removed effective-dated record cannot be edited."""

    code: str = "CLOSED_RECORD"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} is closed")


class ImmutabilityViolationError(StateError):
    """Attempted to modify or delete an immutable row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit


class AuditChainBrokenError(PayrollKernelError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
