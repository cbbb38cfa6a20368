"""
ORM-level immutability enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below reject writes that would rewrite payroll
history:

Entity                 | When immutable                      | Operation blocked
-----------------------|-------------------------------------|------------------
SalaryProfile          | After it is closed (is_active=False)| UPDATE, DELETE
ComponentAssignment    | After it is closed                  | UPDATE, DELETE
RecurringAdjustment    | After it is closed                  | UPDATE, DELETE
SalaryComponent        | Always, when is_system_component    | UPDATE, DELETE
PayrollCalculation     | After status = finalized            | UPDATE, DELETE
PayrollPeriod          | After finalized_at is set           | UPDATE, DELETE
Loan                   | After status leaves active          | UPDATE (DELETE always)
LoanInstallment        | After status = processed            | UPDATE (DELETE always)
AuditEvent             | Always                              | UPDATE, DELETE

The transition that closes or finalizes a row is allowed; the check looks at
the value the row had *before* the pending change.  updated_at and
updated_by_id are audit metadata and may always change.

Usage:

    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from payroll_kernel.exceptions import ImmutabilityViolationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _value_before_flush(target, key):
    """Return the persisted value of ``key`` ignoring pending changes."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return getattr(target, key)


def _reject(target, operation: str, reason: str, field: str | None = None):
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _reject_field_changes(target, reason: str):
    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _reject(target, "UPDATE", f"{reason} (field '{attr.key}')", attr.key)


# Effective-dated records


def _check_closed_record_update(mapper, connection, target):
    if _value_before_flush(target, "is_active") is False:
        _reject_field_changes(target, "Closed effective-dated record is immutable")


def _check_closed_record_delete(mapper, connection, target):
    if _value_before_flush(target, "is_active") is False:
        _reject(target, "DELETE", "Closed effective-dated record cannot be deleted")


# System components


def _check_system_component_update(mapper, connection, target):
    if _value_before_flush(target, "is_system_component"):
        _reject_field_changes(target, "System component is read-only")


def _check_system_component_delete(mapper, connection, target):
    if _value_before_flush(target, "is_system_component"):
        _reject(target, "DELETE", "System component cannot be deleted")


# Payroll calculations and periods


def _check_calculation_update(mapper, connection, target):
    if _value_before_flush(target, "status") == "finalized":
        _reject_field_changes(target, "Finalized payroll calculation is immutable")


def _check_calculation_delete(mapper, connection, target):
    if _value_before_flush(target, "status") == "finalized":
        _reject(target, "DELETE", "Finalized payroll calculation cannot be deleted")


def _check_period_update(mapper, connection, target):
    if _value_before_flush(target, "finalized_at") is not None:
        _reject_field_changes(target, "Finalized payroll period is immutable")


def _check_period_delete(mapper, connection, target):
    if _value_before_flush(target, "finalized_at") is not None:
        _reject(target, "DELETE", "Finalized payroll period cannot be deleted")


# Loans and installments


def _check_loan_update(mapper, connection, target):
    if _value_before_flush(target, "status") != "active":
        _reject_field_changes(target, "Closed loan is immutable")


def _check_loan_delete(mapper, connection, target):
    _reject(target, "DELETE", "Loans cannot be deleted")


def _check_installment_update(mapper, connection, target):
    if _value_before_flush(target, "status") == "processed":
        _reject_field_changes(target, "Processed loan installment is immutable")


def _check_installment_delete(mapper, connection, target):
    _reject(target, "DELETE", "Loan installments cannot be deleted")


# Audit events


def _check_audit_event_update(mapper, connection, target):
    _reject(target, "UPDATE", "Audit events are append-only")


def _check_audit_event_delete(mapper, connection, target):
    _reject(target, "DELETE", "Audit events are append-only")


def _listener_table():
    from payroll_kernel.models.audit_event import AuditEvent
    from payroll_modules.adjustments.orm import RecurringAdjustmentModel
    from payroll_modules.components.orm import (
        ComponentAssignmentModel,
        SalaryComponentModel,
    )
    from payroll_modules.loans.orm import LoanInstallmentModel, LoanModel
    from payroll_modules.payroll.orm import PayrollCalculationModel, PayrollPeriodModel
    from payroll_modules.salary_profile.orm import SalaryProfileModel

    table = []
    for model in (SalaryProfileModel, ComponentAssignmentModel, RecurringAdjustmentModel):
        table.append((model, "before_update", _check_closed_record_update))
        table.append((model, "before_delete", _check_closed_record_delete))
    table.extend([
        (SalaryComponentModel, "before_update", _check_system_component_update),
        (SalaryComponentModel, "before_delete", _check_system_component_delete),
        (PayrollCalculationModel, "before_update", _check_calculation_update),
        (PayrollCalculationModel, "before_delete", _check_calculation_delete),
        (PayrollPeriodModel, "before_update", _check_period_update),
        (PayrollPeriodModel, "before_delete", _check_period_delete),
        (LoanModel, "before_update", _check_loan_update),
        (LoanModel, "before_delete", _check_loan_delete),
        (LoanInstallmentModel, "before_update", _check_installment_update),
        (LoanInstallmentModel, "before_delete", _check_installment_delete),
        (AuditEvent, "before_update", _check_audit_event_update),
        (AuditEvent, "before_delete", _check_audit_event_delete),
    ])
    return table


def register_immutability_listeners():
    """Register all immutability listeners (idempotent)."""
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """Remove immutability listeners. TESTS ONLY."""
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
