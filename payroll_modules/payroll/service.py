"""
Payroll Engine Service (``payroll_modules.payroll.service``).

Responsibility
--------------
The PayrollEngine: payroll period lifecycle and the per-employee payroll
calculation.  It reads the salary profile, attendance, component
assignments and recurring adjustments, advances the loan ledger, and
persists one ``PayrollCalculation`` snapshot per (employee, period).
The arithmetic lives in ``helpers.py``.

Period lifecycle
----------------
    draft --start_calculation--> calculating --finalize_calculation--> calculated
                                                                      (finalized_at set)

``calculate_employee`` on a draft period starts it implicitly.  Once
``finalized_at`` is set the period and its calculations are frozen.

Invariants enforced
-------------------
* net_pay == gross_pay - total_deductions to the cent; every component is
  rounded before it is summed.
* Recalculating deletes the prior row for (employee, period) and inserts a
  new one.  It does NOT undo the previous loan deduction: each call
  advances the loan ledger again.
* Finalization requires at least one calculation and is all-or-nothing.
* The ledgers are composed with ``auto_commit=False``; this service owns
  the transaction.

Failure modes
-------------
* MissingSetupError: no active salary profile.
* PeriodNotFoundError / PeriodFinalizedError / InvalidPeriodTransitionError.
* NoCalculationsError: finalize with nothing calculated (no writes).
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_config import get_active_config
from payroll_config.schema import PayrollRules
from payroll_kernel.db.types import round_money
from payroll_kernel.domain.context import OperationContext
from payroll_kernel.exceptions import (
    CalculationNotFoundError,
    InvalidPeriodTransitionError,
    MissingSetupError,
    NoCalculationsError,
    PayrollKernelError,
    PeriodFinalizedError,
    PeriodNotFoundError,
    ValidationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.auditor_service import AuditSink
from payroll_modules._service_helpers import (
    commit_or_flush,
    default_audit_sink,
    rollback_if_owner,
)
from payroll_modules.adjustments.service import RecurringAdjustmentService
from payroll_modules.attendance import AttendanceSource
from payroll_modules.components.service import ComponentCatalogService
from payroll_modules.loans.service import LoanLedgerService
from payroll_modules.payroll.helpers import (
    aggregate_attendance,
    calculate_basic_pay,
    calculate_contributions,
    calculate_employer_contributions,
    calculate_overtime_pay,
    calculate_time_deduction,
    calculate_withholding_tax,
    normalize_period_data,
)
from payroll_modules.payroll.models import (
    CalculationFailure,
    CalculationStatus,
    ContributionBreakdown,
    PayrollCalculation,
    PayrollPeriod,
    PeriodCalculationResult,
    PeriodStatus,
)
from payroll_modules.payroll.orm import PayrollCalculationModel, PayrollPeriodModel
from payroll_modules.salary_profile.service import SalaryProfileService

logger = get_logger("modules.payroll.service")

ZERO = Decimal("0")

_CALCULABLE = frozenset({PeriodStatus.CALCULATING.value, PeriodStatus.CALCULATED.value})


class PayrollEngineService:
    """
    Payroll periods and per-employee calculations.

    Transaction boundary: commits on success, rolls back on failure, unless
    ``auto_commit=False``.
    """

    def __init__(
        self,
        session: Session,
        attendance: AttendanceSource,
        rules: PayrollRules | None = None,
        audit: AuditSink | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._attendance = attendance
        self._rules = rules or get_active_config()
        self._audit = default_audit_sink(session, audit)
        self._auto_commit = auto_commit

        self._profiles = SalaryProfileService(
            session, rules=self._rules, audit=self._audit, auto_commit=False
        )
        self._components = ComponentCatalogService(
            session, audit=self._audit, auto_commit=False
        )
        self._adjustments = RecurringAdjustmentService(
            session, audit=self._audit, auto_commit=False
        )
        self._loans = LoanLedgerService(
            session, rules=self._rules, audit=self._audit, auto_commit=False
        )

    # =========================================================================
    # Period lifecycle
    # =========================================================================

    def create_period(self, data: Mapping[str, Any], ctx: OperationContext) -> PayrollPeriod:
        """
        Create a draft payroll period.

        Raises:
            ValidationError: Missing code/name/dates, end before start, or a
                duplicate code.
        """
        try:
            clean = normalize_period_data(data)
            exists = self._session.execute(
                select(PayrollPeriodModel.id).where(PayrollPeriodModel.code == clean["code"])
            ).first()
            if exists is not None:
                raise ValidationError({"code": f"period code {clean['code']!r} already exists"})

            period = PayrollPeriodModel(
                status=PeriodStatus.DRAFT.value,
                created_by_id=ctx.actor_id,
                **clean,
            )
            self._session.add(period)
            self._session.flush()

            self._audit.record(
                ctx,
                "payroll_period_created",
                "PayrollPeriod",
                period.id,
                {
                    "code": period.code,
                    "start_date": period.start_date,
                    "end_date": period.end_date,
                },
            )
            commit_or_flush(self._session, self._auto_commit)

            logger.info(
                "payroll_period_created",
                extra={
                    "period_id": str(period.id),
                    "period_code": period.code,
                    "start_date": period.start_date,
                    "end_date": period.end_date,
                },
            )
            return period.to_dto()

        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "payroll_period_create_failed",
                exc_info=True,
                extra={"period_code": data.get("code")},
            )
            raise

    def start_calculation(self, period_id: UUID, ctx: OperationContext) -> PayrollPeriod:
        """
        draft -> calculating.

        Raises:
            PeriodFinalizedError: The period is finalized.
            InvalidPeriodTransitionError: The period is not draft.
        """
        try:
            period = self._get_period_model(period_id, lock=True)
            if period.finalized_at is not None:
                raise PeriodFinalizedError(period.code)
            if period.status != PeriodStatus.DRAFT.value:
                raise InvalidPeriodTransitionError(
                    period.code, period.status, PeriodStatus.CALCULATING.value
                )
            self._begin(period, ctx)
            commit_or_flush(self._session, self._auto_commit)
            return period.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "payroll_start_failed",
                exc_info=True,
                extra={"period_id": str(period_id)},
            )
            raise

    def finalize_calculation(self, period_id: UUID, ctx: OperationContext) -> PayrollPeriod:
        """
        Close the period: aggregate totals, mark every calculation finalized.

        Employer contributions are the employee shares times the configured
        employer multipliers.  Total employer cost = gross + employer
        contributions.

        Raises:
            PeriodFinalizedError: Already finalized.
            NoCalculationsError: Nothing was calculated; nothing is written.
            InvalidPeriodTransitionError: The period was never started.
        """
        try:
            period = self._get_period_model(period_id, lock=True)
            if period.finalized_at is not None:
                raise PeriodFinalizedError(period.code)

            calculations = list(self._session.execute(
                select(PayrollCalculationModel)
                .where(PayrollCalculationModel.period_id == period.id)
                .order_by(PayrollCalculationModel.created_at)
            ).scalars())
            if not calculations:
                raise NoCalculationsError(str(period.id))
            if period.status not in _CALCULABLE:
                raise InvalidPeriodTransitionError(
                    period.code, period.status, PeriodStatus.CALCULATED.value
                )

            employer = calculate_employer_contributions(
                (
                    ContributionBreakdown(
                        sss=c.sss_contribution,
                        philhealth=c.philhealth_contribution,
                        pagibig=c.pagibig_contribution,
                    )
                    for c in calculations
                ),
                self._rules.employer_multipliers,
            )

            def total(attr: str) -> Decimal:
                return round_money(sum((getattr(c, attr) for c in calculations), ZERO))

            now = ctx.now()
            period.total_employees = len(calculations)
            period.total_gross_pay = total("gross_pay")
            period.total_deductions = total("total_deductions")
            period.total_net_pay = total("net_pay")
            period.total_employee_contributions = total("total_contributions")
            period.total_employer_contributions = round_money(employer.total)
            period.total_loan_deductions = total("loan_deductions")
            period.total_employer_cost = round_money(period.total_gross_pay + employer.total)
            period.status = PeriodStatus.CALCULATED.value
            period.calculated_at = now
            period.finalized_at = now
            period.updated_by_id = ctx.actor_id

            for calculation in calculations:
                calculation.status = CalculationStatus.FINALIZED.value
                calculation.updated_by_id = ctx.actor_id
            self._session.flush()

            self._audit.record(
                ctx,
                "payroll_period_finalized",
                "PayrollPeriod",
                period.id,
                {
                    "code": period.code,
                    "total_employees": period.total_employees,
                    "total_gross_pay": period.total_gross_pay,
                    "total_net_pay": period.total_net_pay,
                    "total_employer_cost": period.total_employer_cost,
                },
            )
            commit_or_flush(self._session, self._auto_commit)

            logger.info(
                "payroll_period_finalized",
                extra={
                    "period_id": str(period.id),
                    "period_code": period.code,
                    "total_employees": period.total_employees,
                    "total_gross_pay": str(period.total_gross_pay),
                    "total_net_pay": str(period.total_net_pay),
                    "total_employer_cost": str(period.total_employer_cost),
                },
            )
            return period.to_dto()

        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.error(
                "payroll_finalize_failed",
                exc_info=True,
                extra={"period_id": str(period_id)},
            )
            raise

    # =========================================================================
    # Calculation
    # =========================================================================

    def calculate_employee(
        self,
        employee_id: UUID,
        period_id: UUID,
        ctx: OperationContext,
    ) -> PayrollCalculation:
        """
        Compute and store one employee's payroll for the period.

        Re-running replaces the stored calculation, and advances every active
        loan by another installment.  Callers must run it once per
        (employee, period) or accept the extra loan deduction.

        Raises:
            MissingSetupError: No active salary profile.
            PeriodNotFoundError: Unknown period.
            PeriodFinalizedError: The period is finalized.
        """
        with LogContext.bind(
            correlation_id=ctx.correlation_id,
            actor_id=ctx.actor_id,
            employee_id=employee_id,
            period_id=period_id,
        ):
            try:
                period = self._get_period_model(period_id, lock=True)
                self._require_calculable(period, ctx)
                calculation = self._calculate(employee_id, period, ctx)
                commit_or_flush(self._session, self._auto_commit)
                return calculation.to_dto()
            except Exception:
                rollback_if_owner(self._session, self._auto_commit)
                logger.warning(
                    "payroll_calculation_failed",
                    exc_info=True,
                    extra={"employee_id": str(employee_id), "period_id": str(period_id)},
                )
                raise

    def calculate_period(
        self,
        period_id: UUID,
        employee_ids: Iterable[UUID],
        ctx: OperationContext,
    ) -> PeriodCalculationResult:
        """
        Calculate a batch of employees for one period.

        Each employee runs in its own savepoint; a failure is recorded in the
        result and does not stop the batch.
        """
        try:
            period = self._get_period_model(period_id, lock=True)
            self._require_calculable(period, ctx)
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            raise

        calculations: list[PayrollCalculation] = []
        failures: list[CalculationFailure] = []

        try:
            for employee_id in dict.fromkeys(employee_ids):
                with LogContext.bind(
                    correlation_id=ctx.correlation_id,
                    employee_id=employee_id,
                    period_id=period.id,
                ):
                    try:
                        with self._session.begin_nested():
                            model = self._calculate(employee_id, period, ctx)
                        calculations.append(model.to_dto())
                    except (PayrollKernelError, SQLAlchemyError) as exc:
                        code = getattr(exc, "code", "DATABASE_ERROR")
                        failures.append(CalculationFailure(employee_id, code, str(exc)))
                        logger.warning(
                            "payroll_batch_item_failed",
                            extra={
                                "employee_id": str(employee_id),
                                "period_id": str(period.id),
                                "error_code": code,
                            },
                        )

            commit_or_flush(self._session, self._auto_commit)
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.error(
                "payroll_batch_failed",
                exc_info=True,
                extra={"period_id": str(period_id)},
            )
            raise

        logger.info(
            "payroll_batch_completed",
            extra={
                "period_id": str(period_id),
                "calculated_count": len(calculations),
                "failure_count": len(failures),
            },
        )
        return PeriodCalculationResult(
            period_id=period_id,
            calculations=tuple(calculations),
            failures=tuple(failures),
        )

    def _calculate(
        self,
        employee_id: UUID,
        period: PayrollPeriodModel,
        ctx: OperationContext,
    ) -> PayrollCalculationModel:
        rules = self._rules
        today = ctx.today()

        profile = self._profiles.find_active_profile(employee_id)
        if profile is None:
            raise MissingSetupError(str(employee_id))

        attendance = aggregate_attendance(
            self._attendance.get_finalized_summaries(
                employee_id, period.start_date, period.end_date
            ),
            period.start_date,
            period.end_date,
        )

        # Earnings
        basic_pay = calculate_basic_pay(profile, attendance.days_worked, rules.work_schedule)
        overtime_pay = calculate_overtime_pay(
            attendance.overtime_hours, profile.hourly_rate, rules.overtime.regular_multiplier
        )
        component_earnings = self._components.total_employee_component_amount(employee_id, today)
        allowances = self._adjustments.total_active_allowances(employee_id, today)
        gross_pay = round_money(basic_pay + overtime_pay + component_earnings + allowances)

        # Statutory
        contributions = calculate_contributions(profile, rules.contributions)
        taxable_income = round_money(gross_pay - contributions.total)
        withholding_tax = calculate_withholding_tax(
            taxable_income, profile.tax_status.value, rules.withholding_tax
        )

        # Other deductions
        recurring_deductions = self._adjustments.total_active_deductions(employee_id, today)
        loan_deductions = self._loans.process_deduction(employee_id, ctx)
        late_deduction = calculate_time_deduction(attendance.late_minutes, profile.hourly_rate)
        undertime_deduction = calculate_time_deduction(
            attendance.undertime_minutes, profile.hourly_rate
        )

        total_deductions = round_money(
            contributions.total
            + withholding_tax
            + recurring_deductions
            + loan_deductions
            + late_deduction
            + undertime_deduction
        )
        net_pay = gross_pay - total_deductions

        # The unique (employee, period) row must be gone before the insert
        prior = self._session.execute(
            select(PayrollCalculationModel).where(
                PayrollCalculationModel.employee_id == employee_id,
                PayrollCalculationModel.period_id == period.id,
            )
        ).scalar_one_or_none()
        replaced = prior is not None
        if prior is not None:
            self._session.delete(prior)
            self._session.flush()

        calculation = PayrollCalculationModel(
            employee_id=employee_id,
            period_id=period.id,
            salary_profile_id=profile.id,
            salary_type=profile.salary_type.value,
            basic_salary=profile.basic_salary,
            daily_rate=profile.daily_rate,
            hourly_rate=profile.hourly_rate,
            days_worked=attendance.days_worked,
            total_hours=attendance.total_hours,
            regular_hours=attendance.regular_hours,
            overtime_hours=attendance.overtime_hours,
            late_minutes=attendance.late_minutes,
            undertime_minutes=attendance.undertime_minutes,
            basic_pay=basic_pay,
            overtime_pay=overtime_pay,
            component_earnings=component_earnings,
            total_allowances=allowances,
            gross_pay=gross_pay,
            sss_contribution=contributions.sss,
            philhealth_contribution=contributions.philhealth,
            pagibig_contribution=contributions.pagibig,
            total_contributions=round_money(contributions.total),
            taxable_income=taxable_income,
            withholding_tax=withholding_tax,
            total_recurring_deductions=recurring_deductions,
            loan_deductions=loan_deductions,
            late_deduction=late_deduction,
            undertime_deduction=undertime_deduction,
            total_deductions=total_deductions,
            net_pay=net_pay,
            status=CalculationStatus.CALCULATED.value,
            calculated_at=ctx.now(),
            created_by_id=ctx.actor_id,
        )
        self._session.add(calculation)
        self._session.flush()

        self._audit.record(
            ctx,
            "payroll_calculated",
            "PayrollCalculation",
            calculation.id,
            {
                "employee_id": employee_id,
                "period_id": period.id,
                "gross_pay": gross_pay,
                "total_deductions": total_deductions,
                "net_pay": net_pay,
                "loan_deductions": loan_deductions,
                "replaced_previous": replaced,
            },
        )
        logger.info(
            "payroll_calculated",
            extra={
                "employee_id": str(employee_id),
                "period_id": str(period.id),
                "calculation_id": str(calculation.id),
                "salary_type": profile.salary_type.value,
                "days_worked": attendance.days_worked,
                "gross_pay": str(gross_pay),
                "total_deductions": str(total_deductions),
                "net_pay": str(net_pay),
                "loan_deductions": str(loan_deductions),
                "replaced_previous": replaced,
            },
        )
        return calculation

    # =========================================================================
    # Queries
    # =========================================================================

    def get_period(self, period_id: UUID) -> PayrollPeriod:
        return self._get_period_model(period_id).to_dto()

    def get_period_by_code(self, code: str) -> PayrollPeriod:
        model = self._session.execute(
            select(PayrollPeriodModel).where(PayrollPeriodModel.code == code)
        ).scalar_one_or_none()
        if model is None:
            raise PeriodNotFoundError(code)
        return model.to_dto()

    def list_periods(self, status: PeriodStatus | str | None = None) -> list[PayrollPeriod]:
        stmt = select(PayrollPeriodModel).order_by(PayrollPeriodModel.start_date.desc())
        if status is not None:
            stmt = stmt.where(PayrollPeriodModel.status == PeriodStatus(status).value)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def get_employee_calculation(self, employee_id: UUID, period_id: UUID) -> PayrollCalculation:
        model = self._session.execute(
            select(PayrollCalculationModel).where(
                PayrollCalculationModel.employee_id == employee_id,
                PayrollCalculationModel.period_id == period_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise CalculationNotFoundError(str(employee_id), str(period_id))
        return model.to_dto()

    def get_period_calculations(self, period_id: UUID) -> list[PayrollCalculation]:
        self._get_period_model(period_id)
        return [
            m.to_dto()
            for m in self._session.execute(
                select(PayrollCalculationModel)
                .where(PayrollCalculationModel.period_id == period_id)
                .order_by(PayrollCalculationModel.created_at)
            ).scalars()
        ]

    # =========================================================================
    # Internal
    # =========================================================================

    def _get_period_model(self, period_id: UUID, lock: bool = False) -> PayrollPeriodModel:
        stmt = select(PayrollPeriodModel).where(PayrollPeriodModel.id == period_id)
        if lock:
            stmt = stmt.with_for_update()
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise PeriodNotFoundError(str(period_id))
        return model

    def _require_calculable(self, period: PayrollPeriodModel, ctx: OperationContext) -> None:
        if period.finalized_at is not None:
            raise PeriodFinalizedError(period.code)
        if period.status == PeriodStatus.DRAFT.value:
            self._begin(period, ctx)
        elif period.status not in _CALCULABLE:
            raise InvalidPeriodTransitionError(
                period.code, period.status, PeriodStatus.CALCULATING.value
            )

    def _begin(self, period: PayrollPeriodModel, ctx: OperationContext) -> None:
        period.status = PeriodStatus.CALCULATING.value
        period.calculation_started_at = ctx.now()
        period.updated_by_id = ctx.actor_id
        self._session.flush()
        self._audit.record(
            ctx,
            "payroll_calculation_started",
            "PayrollPeriod",
            period.id,
            {"code": period.code},
        )
        logger.info(
            "payroll_calculation_started",
            extra={"period_id": str(period.id), "period_code": period.code},
        )
