"""
Recurring Adjustment Service (``payroll_modules.adjustments.service``).

Responsibility
--------------
The RecurringAdjustmentLedger: per-employee recurring allowances and
deductions with effective dating, single and bulk assignment, and the
"active" totals consumed by the payroll engine.

Invariants enforced
-------------------
* Types come from a closed enumeration per kind; amounts are > 0.
* At most one active adjustment per (employee, kind, type).  Adding a new
  one stamps the previous one's end_date with the new effective_date and
  deactivates it.
* Removal is a soft close with end_date = today.
* "Active" for totals and queries means ``is_active AND (end_date IS NULL
  OR end_date >= as_of)``, not the raw flag alone.

Failure modes
-------------
* Single assignment: any error rolls back the whole call.
* Bulk assignment: the selector and amount are validated up front
  (ValidationError aborts the batch); after that every employee runs in
  its own savepoint and failures are collected in the result.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_kernel.db.types import round_money
from payroll_kernel.domain.context import OperationContext
from payroll_kernel.exceptions import (
    AdjustmentNotFoundError,
    ClosedRecordError,
    EmployeeNotFoundError,
    PayrollKernelError,
    ValidationError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.services.auditor_service import AuditSink
from payroll_kernel.services.temporal_service import TemporalRecordService
from payroll_modules._service_helpers import (
    commit_or_flush,
    default_audit_sink,
    rollback_if_owner,
)
from payroll_modules.adjustments.helpers import (
    normalize_adjustment_data,
    parse_positive_amount,
    validate_adjustment_type,
)
from payroll_modules.adjustments.models import (
    AdjustmentKind,
    AdjustmentSummary,
    BulkAssignmentFailure,
    BulkAssignmentResult,
    EmployeeSelector,
    RecurringAdjustment,
)
from payroll_modules.adjustments.orm import RecurringAdjustmentModel
from payroll_modules.directory import EmployeeDirectory
from payroll_modules.salary_profile.models import SalaryType
from payroll_modules.salary_profile.orm import SalaryProfileModel

logger = get_logger("modules.adjustments.service")


class RecurringAdjustmentService:
    """
    Recurring allowances and deductions.

    Transaction boundary: commits on success, rolls back on failure, unless
    ``auto_commit=False``.
    """

    def __init__(
        self,
        session: Session,
        audit: AuditSink | None = None,
        directory: EmployeeDirectory | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._audit = default_audit_sink(session, audit)
        self._directory = directory
        self._auto_commit = auto_commit
        self._temporal = TemporalRecordService(session, RecurringAdjustmentModel)

    # =========================================================================
    # Single-employee mutations
    # =========================================================================

    def add_allowance(
        self,
        employee_id: UUID,
        allowance_type: str,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> RecurringAdjustment:
        """
        Add (or replace) an allowance of ``allowance_type``.

        Raises:
            ValidationError: Unknown type, amount <= 0, bad dates.
            EmployeeNotFoundError: A directory is configured and does not
                know the employee.
        """
        return self._add_owned(AdjustmentKind.ALLOWANCE, employee_id, allowance_type, data, ctx)

    def add_deduction(
        self,
        employee_id: UUID,
        deduction_type: str,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> RecurringAdjustment:
        """Add (or replace) a recurring deduction.  Same rules as allowances."""
        return self._add_owned(AdjustmentKind.DEDUCTION, employee_id, deduction_type, data, ctx)

    def remove_allowance(self, adjustment_id: UUID, ctx: OperationContext) -> RecurringAdjustment:
        return self._remove_owned(AdjustmentKind.ALLOWANCE, adjustment_id, ctx)

    def remove_deduction(self, adjustment_id: UUID, ctx: OperationContext) -> RecurringAdjustment:
        return self._remove_owned(AdjustmentKind.DEDUCTION, adjustment_id, ctx)

    # =========================================================================
    # Bulk assignment
    # =========================================================================

    def bulk_assign_allowances(
        self,
        allowance_type: str,
        data: Mapping[str, Any],
        selector: EmployeeSelector,
        ctx: OperationContext,
    ) -> BulkAssignmentResult:
        return self._bulk_assign(AdjustmentKind.ALLOWANCE, allowance_type, data, selector, ctx)

    def bulk_assign_deductions(
        self,
        deduction_type: str,
        data: Mapping[str, Any],
        selector: EmployeeSelector,
        ctx: OperationContext,
    ) -> BulkAssignmentResult:
        return self._bulk_assign(AdjustmentKind.DEDUCTION, deduction_type, data, selector, ctx)

    def _bulk_assign(
        self,
        kind: AdjustmentKind,
        adjustment_type: str,
        data: Mapping[str, Any],
        selector: EmployeeSelector,
        ctx: OperationContext,
    ) -> BulkAssignmentResult:
        """
        Best-effort assignment over a resolved employee set.

        Raises (before anything is written):
            ValidationError: No selector, an empty resolution, an unknown
                type or an amount <= 0.
        """
        canonical_type = validate_adjustment_type(kind, adjustment_type)
        errors: dict[str, str] = {}
        parse_positive_amount(data.get("amount"), errors)
        if errors:
            raise ValidationError(errors)

        employee_ids = self.resolve_selector(selector)
        if not employee_ids:
            raise ValidationError({"employees": "no employees found matching criteria"})

        payload = dict(data)
        payload.setdefault("effective_date", ctx.today())

        created: list[RecurringAdjustment] = []
        failures: list[BulkAssignmentFailure] = []

        for employee_id in employee_ids:
            try:
                with self._session.begin_nested():
                    model = self._add(kind, employee_id, canonical_type, payload, ctx)
                created.append(model.to_dto())
            except (PayrollKernelError, SQLAlchemyError) as exc:
                code = getattr(exc, "code", "DATABASE_ERROR")
                failures.append(BulkAssignmentFailure(employee_id, code, str(exc)))
                logger.warning(
                    "bulk_adjustment_item_failed",
                    extra={
                        "employee_id": str(employee_id),
                        "kind": kind.value,
                        "adjustment_type": canonical_type,
                        "error_code": code,
                    },
                )

        try:
            commit_or_flush(self._session, self._auto_commit)
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.error(
                "bulk_adjustment_commit_failed",
                exc_info=True,
                extra={"kind": kind.value, "adjustment_type": canonical_type},
            )
            raise

        logger.info(
            "bulk_adjustment_completed",
            extra={
                "kind": kind.value,
                "adjustment_type": canonical_type,
                "requested_count": len(employee_ids),
                "created_count": len(created),
                "failure_count": len(failures),
            },
        )
        return BulkAssignmentResult(
            adjustment_type=canonical_type,
            created=tuple(created),
            failures=tuple(failures),
        )

    def resolve_selector(self, selector: EmployeeSelector) -> list[UUID]:
        """
        Turn a selector into an ordered, de-duplicated list of employee ids.

        Raises:
            ValidationError: Neither ids nor a filter were given, or a
                department/position filter was given without a directory.
        """
        if selector.employee_ids is not None:
            return list(dict.fromkeys(selector.employee_ids))

        if not selector.has_filter:
            raise ValidationError({
                "employees": "specify employee_ids or a department, position "
                             "or salary_type filter",
            })

        candidates: list[UUID] | None = None
        if selector.department_id is not None or selector.position_id is not None:
            if self._directory is None:
                raise ValidationError({
                    "employees": "department/position filters need an employee directory",
                })
            candidates = [
                e.id for e in self._directory.find_employees(
                    department_id=selector.department_id,
                    position_id=selector.position_id,
                )
            ]

        if selector.salary_type is not None:
            try:
                salary_type = SalaryType(selector.salary_type).value
            except ValueError:
                raise ValidationError({
                    "salary_type": f"invalid value {selector.salary_type!r}",
                }) from None
            matching = list(self._session.execute(
                select(SalaryProfileModel.employee_id)
                .where(
                    SalaryProfileModel.salary_type == salary_type,
                    SalaryProfileModel.is_active.is_(True),
                    SalaryProfileModel.end_date.is_(None),
                )
                .order_by(SalaryProfileModel.employee_id)
            ).scalars())
            if candidates is None:
                candidates = matching
            else:
                wanted = set(matching)
                candidates = [c for c in candidates if c in wanted]

        return list(dict.fromkeys(candidates or []))

    # =========================================================================
    # Queries
    # =========================================================================

    def get_active_allowances(self, employee_id: UUID, as_of: date) -> list[RecurringAdjustment]:
        return self._active(AdjustmentKind.ALLOWANCE, employee_id, as_of)

    def get_active_deductions(self, employee_id: UUID, as_of: date) -> list[RecurringAdjustment]:
        return self._active(AdjustmentKind.DEDUCTION, employee_id, as_of)

    def total_active_allowances(self, employee_id: UUID, as_of: date) -> Decimal:
        return _total(self.get_active_allowances(employee_id, as_of))

    def total_active_deductions(self, employee_id: UUID, as_of: date) -> Decimal:
        return _total(self.get_active_deductions(employee_id, as_of))

    def get_active_by_type(
        self,
        employee_id: UUID,
        kind: AdjustmentKind | str,
        adjustment_type: str,
        as_of: date,
    ) -> RecurringAdjustment | None:
        kind = AdjustmentKind(kind)
        canonical_type = validate_adjustment_type(kind, adjustment_type)
        rows = self._temporal.active_on(
            as_of, employee_id=employee_id, kind=kind.value, adjustment_type=canonical_type
        )
        return rows[0].to_dto() if rows else None

    def get_employee_adjustments(
        self,
        employee_id: UUID,
        kind: AdjustmentKind | str,
        as_of: date | None = None,
    ) -> list[RecurringAdjustment]:
        """Active adjustments on ``as_of``, or full history when ``as_of`` is None."""
        kind = AdjustmentKind(kind)
        if as_of is not None:
            return self._active(kind, employee_id, as_of)
        return [
            m.to_dto() for m in self._temporal.history(employee_id=employee_id, kind=kind.value)
        ]

    def get_grouped_summary(self, employee_id: UUID, as_of: date) -> AdjustmentSummary:
        allowances = self.get_active_allowances(employee_id, as_of)
        deductions = self.get_active_deductions(employee_id, as_of)
        return AdjustmentSummary(
            allowances=_group_by_type(allowances),
            deductions=_group_by_type(deductions),
            total_allowances=_total(allowances),
            total_deductions=_total(deductions),
        )

    # =========================================================================
    # Internal
    # =========================================================================

    def _active(self, kind: AdjustmentKind, employee_id: UUID, as_of: date) -> list[RecurringAdjustment]:
        return [
            m.to_dto()
            for m in self._temporal.active_on(as_of, employee_id=employee_id, kind=kind.value)
        ]

    def _add_owned(
        self,
        kind: AdjustmentKind,
        employee_id: UUID,
        adjustment_type: str,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> RecurringAdjustment:
        try:
            model = self._add(kind, employee_id, adjustment_type, data, ctx)
            commit_or_flush(self._session, self._auto_commit)
            return model.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "adjustment_add_failed",
                exc_info=True,
                extra={
                    "employee_id": str(employee_id),
                    "kind": kind.value,
                    "adjustment_type": adjustment_type,
                },
            )
            raise

    def _add(
        self,
        kind: AdjustmentKind,
        employee_id: UUID,
        adjustment_type: str,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> RecurringAdjustmentModel:
        canonical_type = validate_adjustment_type(kind, adjustment_type)
        clean = normalize_adjustment_data(data)
        if self._directory is not None and self._directory.get_employee(employee_id) is None:
            raise EmployeeNotFoundError(str(employee_id))

        effective_date = clean.pop("effective_date", None) or ctx.today()
        end_date = clean.get("end_date")
        if end_date is not None and end_date < effective_date:
            raise ValidationError({"end_date": "cannot precede effective_date"})

        model = RecurringAdjustmentModel(
            employee_id=employee_id,
            kind=kind.value,
            adjustment_type=canonical_type,
            effective_date=effective_date,
            created_by_id=ctx.actor_id,
            **clean,
        )
        superseded = self._temporal.supersede(
            model, effective_date, ctx,
            employee_id=employee_id, kind=kind.value, adjustment_type=canonical_type,
        )

        self._audit.record(
            ctx,
            f"{kind.value}_added",
            "RecurringAdjustment",
            model.id,
            {
                "employee_id": employee_id,
                "adjustment_type": canonical_type,
                "amount": model.amount,
                "effective_date": effective_date,
                "superseded_ids": [s.id for s in superseded],
            },
        )
        logger.info(
            f"{kind.value}_added",
            extra={
                "employee_id": str(employee_id),
                "adjustment_id": str(model.id),
                "adjustment_type": canonical_type,
                "amount": str(model.amount),
                "effective_date": effective_date,
                "superseded_count": len(superseded),
            },
        )
        return model

    def _remove_owned(
        self,
        kind: AdjustmentKind,
        adjustment_id: UUID,
        ctx: OperationContext,
    ) -> RecurringAdjustment:
        try:
            model = self._session.get(RecurringAdjustmentModel, adjustment_id)
            if model is None or model.kind != kind.value:
                raise AdjustmentNotFoundError(str(adjustment_id))
            if not model.is_active:
                raise ClosedRecordError("RecurringAdjustment", str(adjustment_id))

            self._temporal.close(model, ctx.today(), ctx)
            self._audit.record(
                ctx,
                f"{kind.value}_removed",
                "RecurringAdjustment",
                model.id,
                {"employee_id": model.employee_id, "adjustment_type": model.adjustment_type},
            )
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                f"{kind.value}_removed",
                extra={
                    "employee_id": str(model.employee_id),
                    "adjustment_id": str(model.id),
                    "adjustment_type": model.adjustment_type,
                },
            )
            return model.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "adjustment_remove_failed",
                exc_info=True,
                extra={"adjustment_id": str(adjustment_id), "kind": kind.value},
            )
            raise


def _total(adjustments: list[RecurringAdjustment]) -> Decimal:
    return round_money(sum((a.amount for a in adjustments), Decimal("0")))


def _group_by_type(adjustments: list[RecurringAdjustment]) -> dict[str, list[RecurringAdjustment]]:
    grouped: dict[str, list[RecurringAdjustment]] = {}
    for adjustment in adjustments:
        grouped.setdefault(adjustment.adjustment_type, []).append(adjustment)
    return grouped
