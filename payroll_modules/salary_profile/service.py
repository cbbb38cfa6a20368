"""
Salary Profile Service (``payroll_modules.salary_profile.service``).

Responsibility
--------------
The SalaryProfileStore: creates, supersedes and queries effective-dated
salary profiles.  Validation and rate derivation are delegated to
``helpers.py``; history mechanics to the kernel ``TemporalRecordService``.

Invariants enforced
-------------------
* At most one current profile (is_active, no end_date) per employee.
* Salary-affecting edits (basic salary, daily/hourly rate, salary type)
  close the current version with end_date = today and insert a new one.
  Other edits are applied in place.
* Validation failures raise before anything is written.
* Each public mutating method owns the transaction unless constructed with
  ``auto_commit=False``.

Usage::

    service = SalaryProfileService(session)
    profile = service.create_profile(
        employee_id,
        {"salary_type": "monthly", "basic_salary": "22000",
         "payment_method": "bank_transfer", "tax_status": "S"},
        ctx,
    )
    profile.daily_rate   # Decimal("1000.00")
"""

from collections.abc import Mapping
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_config import get_active_config
from payroll_config.schema import PayrollRules
from payroll_kernel.domain.context import OperationContext
from payroll_kernel.exceptions import EmployeeNotFoundError, SalaryProfileNotFoundError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.services.auditor_service import AuditSink
from payroll_kernel.services.temporal_service import TemporalRecordService
from payroll_modules._service_helpers import (
    commit_or_flush,
    default_audit_sink,
    rollback_if_owner,
)
from payroll_modules.directory import EmployeeDirectory
from payroll_modules.salary_profile.helpers import (
    classify_sss_bracket,
    derive_rates,
    is_salary_change,
    normalize_profile_data,
)
from payroll_modules.salary_profile.models import SalaryProfile, SalaryType
from payroll_modules.salary_profile.orm import SalaryProfileModel

logger = get_logger("modules.salary_profile.service")


def _column_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in fields.items()}


class SalaryProfileService:
    """
    Effective-dated salary profiles.

    Transaction boundary: commits on success, rolls back on failure, unless
    ``auto_commit=False`` (then the caller owns the boundary).
    """

    def __init__(
        self,
        session: Session,
        rules: PayrollRules | None = None,
        audit: AuditSink | None = None,
        directory: EmployeeDirectory | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._rules = rules or get_active_config()
        self._audit = default_audit_sink(session, audit)
        self._directory = directory
        self._auto_commit = auto_commit
        self._temporal = TemporalRecordService(session, SalaryProfileModel)

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_profile(
        self,
        employee_id: UUID,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> SalaryProfile:
        """
        Create the employee's current salary profile.

        Any currently active profile is closed with end_date = today.

        Raises:
            ValidationError: Bad enum value, government number or amount.
            EmployeeNotFoundError: A directory is configured and does not
                know the employee.
        """
        try:
            clean = normalize_profile_data(data, self._rules.sss_brackets)
            self._require_employee(employee_id)

            clean["daily_rate"], clean["hourly_rate"] = derive_rates(
                clean["salary_type"],
                clean["basic_salary"],
                clean.get("daily_rate"),
                clean.get("hourly_rate"),
                self._rules.work_schedule,
            )
            if not clean.get("sss_bracket"):
                clean["sss_bracket"] = classify_sss_bracket(
                    clean["basic_salary"], self._rules.sss_brackets
                )
            clean.setdefault(
                "pagibig_employee_rate",
                self._rules.contributions.pagibig_default_percent,
            )
            effective_date = clean.pop("effective_date", None) or ctx.today()

            model = SalaryProfileModel(
                employee_id=employee_id,
                effective_date=effective_date,
                created_by_id=ctx.actor_id,
                **_column_values(clean),
            )
            closed = self._temporal.supersede(
                model, ctx.today(), ctx, employee_id=employee_id
            )

            self._audit.record(
                ctx,
                "salary_profile_created",
                "SalaryProfile",
                model.id,
                {
                    "employee_id": employee_id,
                    "salary_type": model.salary_type,
                    "basic_salary": model.basic_salary,
                    "closed_profile_ids": [c.id for c in closed],
                },
            )
            commit_or_flush(self._session, self._auto_commit)

            logger.info(
                "salary_profile_created",
                extra={
                    "employee_id": str(employee_id),
                    "profile_id": str(model.id),
                    "salary_type": model.salary_type,
                    "basic_salary": str(model.basic_salary),
                    "sss_bracket": model.sss_bracket,
                    "closed_count": len(closed),
                },
            )
            return model.to_dto()

        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "salary_profile_create_failed",
                exc_info=True,
                extra={"employee_id": str(employee_id)},
            )
            raise

    def update_profile(
        self,
        employee_id: UUID,
        changes: Mapping[str, Any],
        ctx: OperationContext,
    ) -> SalaryProfile:
        """
        Update the employee's current profile.

        When basic_salary or salary_type is sent, derived rates are recomputed:
        a monthly profile re-derives daily and hourly rates, a daily profile
        re-derives the hourly rate, unless the caller supplies them.  A new
        daily rate alone re-derives the hourly rate.  Otherwise stored rates
        are kept.  A basic-salary change re-classifies the SSS
        bracket unless one is supplied.

        Returns the current profile after the update (a new version when the
        change was salary-affecting).

        Raises:
            SalaryProfileNotFoundError: No current profile.
            ValidationError: Invalid changes; nothing is written.
        """
        try:
            current = self._get_current_model(employee_id)
            clean = normalize_profile_data(
                changes, self._rules.sss_brackets, require_all=False
            )
            effective_date = clean.pop("effective_date", None)

            before = current.payroll_fields()
            merged = {**before, **clean}
            salary_type = SalaryType(merged["salary_type"])
            # Stored rates stand unless the basis they derive from was sent
            basis_changed = bool({"basic_salary", "salary_type"} & clean.keys())
            if (
                basis_changed
                and salary_type == SalaryType.MONTHLY
                and "daily_rate" not in clean
            ):
                merged["daily_rate"] = None
            if (
                (basis_changed or "daily_rate" in clean)
                and salary_type in (SalaryType.MONTHLY, SalaryType.DAILY)
                and "hourly_rate" not in clean
            ):
                merged["hourly_rate"] = None
            merged["daily_rate"], merged["hourly_rate"] = derive_rates(
                salary_type,
                merged["basic_salary"],
                merged["daily_rate"],
                merged["hourly_rate"],
                self._rules.work_schedule,
            )
            if "sss_bracket" not in clean and merged["basic_salary"] != before["basic_salary"]:
                merged["sss_bracket"] = classify_sss_bracket(
                    merged["basic_salary"], self._rules.sss_brackets
                )

            if is_salary_change(before, merged):
                result = self._supersede(current, merged, effective_date, ctx)
            else:
                for name, value in _column_values(merged).items():
                    if getattr(current, name) != value:
                        setattr(current, name, value)
                if effective_date is not None:
                    current.effective_date = effective_date
                current.updated_by_id = ctx.actor_id
                self._session.flush()
                self._audit.record(
                    ctx,
                    "salary_profile_updated",
                    "SalaryProfile",
                    current.id,
                    {"employee_id": employee_id, "fields": sorted(clean)},
                )
                logger.info(
                    "salary_profile_updated",
                    extra={
                        "employee_id": str(employee_id),
                        "profile_id": str(current.id),
                        "fields": sorted(clean),
                    },
                )
                result = current

            commit_or_flush(self._session, self._auto_commit)
            return result.to_dto()

        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "salary_profile_update_failed",
                exc_info=True,
                extra={"employee_id": str(employee_id)},
            )
            raise

    def _supersede(
        self,
        current: SalaryProfileModel,
        merged: dict[str, Any],
        effective_date: date | None,
        ctx: OperationContext,
    ) -> SalaryProfileModel:
        new_model = SalaryProfileModel(
            employee_id=current.employee_id,
            effective_date=effective_date or ctx.today(),
            created_by_id=ctx.actor_id,
            **_column_values(merged),
        )
        self._temporal.supersede(
            new_model, ctx.today(), ctx, employee_id=current.employee_id
        )
        self._audit.record(
            ctx,
            "salary_profile_superseded",
            "SalaryProfile",
            new_model.id,
            {
                "employee_id": current.employee_id,
                "previous_profile_id": current.id,
                "previous_basic_salary": current.basic_salary,
                "basic_salary": new_model.basic_salary,
                "salary_type": new_model.salary_type,
            },
        )
        logger.info(
            "salary_profile_superseded",
            extra={
                "employee_id": str(current.employee_id),
                "previous_profile_id": str(current.id),
                "profile_id": str(new_model.id),
                "basic_salary": str(new_model.basic_salary),
            },
        )
        return new_model

    # =========================================================================
    # Queries
    # =========================================================================

    def find_active_profile(self, employee_id: UUID) -> SalaryProfile | None:
        model = self._temporal.current(employee_id=employee_id)
        return model.to_dto() if model is not None else None

    def get_active_profile(self, employee_id: UUID) -> SalaryProfile:
        return self._get_current_model(employee_id).to_dto()

    def get_profile_history(self, employee_id: UUID) -> list[SalaryProfile]:
        """Every version, newest first."""
        return [m.to_dto() for m in self._temporal.history(employee_id=employee_id)]

    def get_profile_as_of(self, employee_id: UUID, as_of: date) -> SalaryProfile | None:
        """The version that was in force on ``as_of``."""
        versions = self._temporal.valid_on(as_of, employee_id=employee_id)
        return versions[0].to_dto() if versions else None

    # =========================================================================
    # Internal
    # =========================================================================

    def _get_current_model(self, employee_id: UUID) -> SalaryProfileModel:
        model = self._temporal.current(employee_id=employee_id)
        if model is None:
            raise SalaryProfileNotFoundError(str(employee_id))
        return model

    def _require_employee(self, employee_id: UUID) -> None:
        if self._directory is not None and self._directory.get_employee(employee_id) is None:
            raise EmployeeNotFoundError(str(employee_id))
