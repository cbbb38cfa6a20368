"""
Loan Ledger Service (``payroll_modules.loans.service``).

Responsibility
--------------
The LoanLedger: loan origination with an amortized installment schedule,
per-payroll deduction processing, early payments, completion and
cancellation.  Amortization math lives in ``helpers.py``.

Invariants enforced
-------------------
* A loan is persisted together with exactly ``term_months`` installments,
  or not at all.
* The balance never increases.  Reaching <= 0 completes the loan and
  clamps the balance to 0.
* ``process_deduction`` advances at most one installment per active loan
  per call.  It is NOT idempotent: the caller must invoke it exactly once
  per (employee, period).
* Early payments only mark installments they fully cover.

Failure modes
-------------
* ValidationError: bad input, or an early payment <= 0 or > balance.
* EligibilityError: the loan-type requirement is unmet.
* LoanNotFoundError / LoanNotActiveError.
* Any error rolls back the whole call (when the service owns the
  transaction).
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_config import get_active_config
from payroll_config.schema import PayrollRules
from payroll_kernel.db.types import round_money, to_decimal
from payroll_kernel.domain.context import OperationContext
from payroll_kernel.exceptions import (
    EligibilityError,
    LoanNotActiveError,
    LoanNotFoundError,
    ValidationError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.services.auditor_service import AuditSink
from payroll_modules._service_helpers import (
    commit_or_flush,
    default_audit_sink,
    rollback_if_owner,
)
from payroll_modules.loans.helpers import (
    add_months,
    apply_early_payment,
    build_installment_schedule,
    calculate_monthly_payment,
    normalize_loan_data,
    schedule_total,
)
from payroll_modules.loans.models import (
    InstallmentStatus,
    Loan,
    LoanDetails,
    LoanInstallment,
    LoanStatus,
    LoanType,
)
from payroll_modules.loans.orm import LoanInstallmentModel, LoanModel
from payroll_modules.salary_profile.models import SalaryProfile
from payroll_modules.salary_profile.service import SalaryProfileService

logger = get_logger("modules.loans.service")

ZERO = Decimal("0")


class LoanLedgerService:
    """
    Employee loans and their repayment schedules.

    Transaction boundary: commits on success, rolls back on failure, unless
    ``auto_commit=False``.
    """

    def __init__(
        self,
        session: Session,
        rules: PayrollRules | None = None,
        audit: AuditSink | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._rules = rules or get_active_config()
        self._audit = default_audit_sink(session, audit)
        self._auto_commit = auto_commit
        self._profiles = SalaryProfileService(
            session, rules=self._rules, audit=self._audit, auto_commit=False
        )

    # =========================================================================
    # Origination
    # =========================================================================

    def create_loan(
        self,
        employee_id: UUID,
        data: Mapping[str, Any],
        ctx: OperationContext,
    ) -> Loan:
        """
        Originate a loan and its installment schedule.

        Raises:
            ValidationError: Unknown loan type, principal <= 0, term <= 0,
                negative rate, or a principal too small for the term.
            EligibilityError: The employee does not meet the loan-type
                requirement.
        """
        try:
            clean = normalize_loan_data(data)
            loan_type = LoanType(clean["loan_type"])
            self._require_eligible(employee_id, loan_type)

            start_date = clean.get("start_date") or ctx.today()
            rate = clean.get("annual_interest_rate")
            if rate is None:
                rate = self._rules.loan_policy.default_rate_for(loan_type.value)

            try:
                schedule = build_installment_schedule(
                    clean["principal"], rate, clean["term_months"], start_date
                )
            except ValueError as exc:
                raise ValidationError({"principal": str(exc)}) from exc

            loan = LoanModel(
                employee_id=employee_id,
                loan_type=loan_type.value,
                principal=clean["principal"],
                annual_interest_rate=rate,
                term_months=clean["term_months"],
                monthly_payment=calculate_monthly_payment(
                    clean["principal"], rate, clean["term_months"]
                ),
                total_amount=schedule_total(schedule),
                start_date=start_date,
                expected_end_date=add_months(start_date, clean["term_months"]),
                balance=clean["principal"],
                status=LoanStatus.ACTIVE.value,
                reason=clean.get("reason"),
                remarks=clean.get("remarks"),
                created_by_id=ctx.actor_id,
            )
            self._session.add(loan)
            self._session.flush()

            for row in schedule:
                self._session.add(LoanInstallmentModel(
                    loan_id=loan.id,
                    employee_id=employee_id,
                    sequence=row.sequence,
                    due_month=row.due_month,
                    amount=row.amount,
                    status=InstallmentStatus.PENDING.value,
                    created_by_id=ctx.actor_id,
                ))
            self._session.flush()

            self._audit.record(
                ctx,
                "loan_created",
                "Loan",
                loan.id,
                {
                    "employee_id": employee_id,
                    "loan_type": loan.loan_type,
                    "principal": loan.principal,
                    "annual_interest_rate": rate,
                    "term_months": loan.term_months,
                    "monthly_payment": loan.monthly_payment,
                },
            )
            commit_or_flush(self._session, self._auto_commit)

            logger.info(
                "loan_created",
                extra={
                    "employee_id": str(employee_id),
                    "loan_id": str(loan.id),
                    "loan_type": loan.loan_type,
                    "principal": str(loan.principal),
                    "monthly_payment": str(loan.monthly_payment),
                    "term_months": loan.term_months,
                    "installment_count": len(schedule),
                },
            )
            return loan.to_dto()

        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "loan_create_failed",
                exc_info=True,
                extra={"employee_id": str(employee_id)},
            )
            raise

    def check_loan_eligibility(self, employee_id: UUID, loan_type: LoanType | str) -> bool:
        return self._ineligibility_reason(employee_id, LoanType(loan_type)) is None

    # =========================================================================
    # Repayment
    # =========================================================================

    def process_deduction(self, employee_id: UUID, ctx: OperationContext) -> Decimal:
        """
        Take this payroll's installment from every active loan.

        For each active loan the earliest pending installment is marked
        processed and its amount is taken off the balance.  A loan whose
        balance reaches <= 0, or that has no pending installment left, is
        completed.

        Returns the total deducted (0 when nothing was pending).
        """
        try:
            loans = self._session.execute(
                select(LoanModel)
                .where(
                    LoanModel.employee_id == employee_id,
                    LoanModel.status == LoanStatus.ACTIVE.value,
                )
                .order_by(LoanModel.start_date, LoanModel.created_at)
                .with_for_update()
            ).scalars().all()

            total = ZERO
            for loan in loans:
                installment = self._next_pending(loan.id)
                if installment is None:
                    continue

                installment.status = InstallmentStatus.PROCESSED.value
                installment.processed_date = ctx.today()
                installment.updated_by_id = ctx.actor_id
                loan.balance = round_money(loan.balance - installment.amount)
                loan.updated_by_id = ctx.actor_id
                total += installment.amount
                self._session.flush()

                logger.info(
                    "loan_deduction_processed",
                    extra={
                        "employee_id": str(employee_id),
                        "loan_id": str(loan.id),
                        "installment_sequence": installment.sequence,
                        "amount": str(installment.amount),
                        "remaining_balance": str(loan.balance),
                    },
                )

                if loan.balance <= 0 or self._next_pending(loan.id) is None:
                    self._complete(loan, ctx)

            total = round_money(total)
            if loans:
                self._audit.record(
                    ctx,
                    "loan_deductions_processed",
                    "Employee",
                    employee_id,
                    {"loan_count": len(loans), "total_deducted": total},
                )
            commit_or_flush(self._session, self._auto_commit)
            return total

        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.error(
                "loan_deduction_failed",
                exc_info=True,
                extra={"employee_id": str(employee_id)},
            )
            raise

    def make_early_payment(
        self,
        loan_id: UUID,
        amount: Decimal | str | int,
        ctx: OperationContext,
    ) -> Loan:
        """
        Pay down a loan outside payroll.

        The balance drops by ``amount``.  Pending installments are marked
        processed oldest-first only while the payment covers them in full.

        Raises:
            LoanNotFoundError: Unknown loan.
            LoanNotActiveError: The loan is completed or cancelled.
            ValidationError: ``amount`` <= 0 or greater than the balance.
        """
        try:
            loan = self._get_locked(loan_id)
            if loan.status != LoanStatus.ACTIVE.value:
                raise LoanNotActiveError(str(loan_id), loan.status)

            try:
                payment = round_money(to_decimal(amount))
            except (InvalidOperation, TypeError):
                raise ValidationError({"payment_amount": "must be a decimal amount"}) from None
            if payment <= 0:
                raise ValidationError({"payment_amount": "must be greater than 0"})
            if payment > loan.balance:
                raise ValidationError({
                    "payment_amount": f"cannot exceed remaining balance of {round_money(loan.balance)}",
                })

            loan.balance = round_money(loan.balance - payment)
            loan.updated_by_id = ctx.actor_id

            pending = self._pending(loan.id)
            covered = apply_early_payment([i.amount for i in pending], payment)
            for installment in pending[:covered]:
                installment.status = InstallmentStatus.PROCESSED.value
                installment.processed_date = ctx.today()
                installment.updated_by_id = ctx.actor_id
            self._session.flush()

            if loan.balance <= 0:
                self._complete(loan, ctx)

            self._audit.record(
                ctx,
                "loan_early_payment",
                "Loan",
                loan.id,
                {
                    "employee_id": loan.employee_id,
                    "payment_amount": payment,
                    "installments_covered": covered,
                    "remaining_balance": loan.balance,
                },
            )
            commit_or_flush(self._session, self._auto_commit)

            logger.info(
                "loan_early_payment",
                extra={
                    "loan_id": str(loan.id),
                    "employee_id": str(loan.employee_id),
                    "payment_amount": str(payment),
                    "installments_covered": covered,
                    "remaining_balance": str(loan.balance),
                },
            )
            return loan.to_dto()

        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning(
                "loan_early_payment_failed",
                exc_info=True,
                extra={"loan_id": str(loan_id)},
            )
            raise

    def complete_loan(self, loan_id: UUID, ctx: OperationContext) -> Loan:
        """Mark an active loan completed (balance clamped to 0)."""
        try:
            loan = self._get_locked(loan_id)
            if loan.status != LoanStatus.ACTIVE.value:
                raise LoanNotActiveError(str(loan_id), loan.status)
            self._complete(loan, ctx)
            commit_or_flush(self._session, self._auto_commit)
            return loan.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            raise

    def cancel_loan(self, loan_id: UUID, reason: str, ctx: OperationContext) -> Loan:
        """
        Cancel an active loan.  Pending installments stay pending and are
        never processed.
        """
        try:
            loan = self._get_locked(loan_id)
            if loan.status != LoanStatus.ACTIVE.value:
                raise LoanNotActiveError(str(loan_id), loan.status)
            if not reason or not reason.strip():
                raise ValidationError({"reason": "is required"})

            loan.status = LoanStatus.CANCELLED.value
            loan.end_date = ctx.today()
            loan.remarks = reason.strip()
            loan.updated_by_id = ctx.actor_id
            self._session.flush()

            self._audit.record(
                ctx, "loan_cancelled", "Loan", loan.id,
                {"employee_id": loan.employee_id, "balance": loan.balance, "reason": loan.remarks},
            )
            commit_or_flush(self._session, self._auto_commit)
            logger.info(
                "loan_cancelled",
                extra={"loan_id": str(loan.id), "employee_id": str(loan.employee_id)},
            )
            return loan.to_dto()
        except Exception:
            rollback_if_owner(self._session, self._auto_commit)
            logger.warning("loan_cancel_failed", exc_info=True, extra={"loan_id": str(loan_id)})
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_loan(self, loan_id: UUID) -> Loan:
        return self._get(loan_id).to_dto()

    def get_employee_loans(self, employee_id: UUID, active_only: bool = False) -> list[Loan]:
        stmt = (
            select(LoanModel)
            .where(LoanModel.employee_id == employee_id)
            .order_by(LoanModel.start_date.desc(), LoanModel.created_at.desc())
        )
        if active_only:
            stmt = stmt.where(LoanModel.status == LoanStatus.ACTIVE.value)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def get_active_loans(
        self,
        employee_id: UUID,
        loan_type: LoanType | str | None = None,
    ) -> list[Loan]:
        loans = self.get_employee_loans(employee_id, active_only=True)
        if loan_type is None:
            return loans
        wanted = LoanType(loan_type)
        return [loan for loan in loans if loan.loan_type == wanted]

    def get_installments(self, loan_id: UUID) -> list[LoanInstallment]:
        self._get(loan_id)
        return [
            m.to_dto()
            for m in self._session.execute(
                select(LoanInstallmentModel)
                .where(LoanInstallmentModel.loan_id == loan_id)
                .order_by(LoanInstallmentModel.sequence)
            ).scalars()
        ]

    def get_loan_details(self, loan_id: UUID) -> LoanDetails:
        loan = self.get_loan(loan_id)
        installments = tuple(self.get_installments(loan_id))

        def total(status: InstallmentStatus) -> Decimal:
            return round_money(sum(
                (i.amount for i in installments if i.status == status), ZERO
            ))

        return LoanDetails(
            loan=loan,
            installments=installments,
            total_processed=total(InstallmentStatus.PROCESSED),
            total_pending=total(InstallmentStatus.PENDING),
        )

    def get_pending_deductions_total(self, employee_id: UUID) -> Decimal:
        """Sum of every pending installment across the employee's loans."""
        pending = self._session.execute(
            select(func.coalesce(func.sum(LoanInstallmentModel.amount), 0)).where(
                LoanInstallmentModel.employee_id == employee_id,
                LoanInstallmentModel.status == InstallmentStatus.PENDING.value,
            )
        ).scalar_one()
        return round_money(to_decimal(pending))

    # =========================================================================
    # Internal
    # =========================================================================

    def _get(self, loan_id: UUID) -> LoanModel:
        loan = self._session.get(LoanModel, loan_id)
        if loan is None:
            raise LoanNotFoundError(str(loan_id))
        return loan

    def _get_locked(self, loan_id: UUID) -> LoanModel:
        loan = self._session.execute(
            select(LoanModel).where(LoanModel.id == loan_id).with_for_update()
        ).scalar_one_or_none()
        if loan is None:
            raise LoanNotFoundError(str(loan_id))
        return loan

    def _pending(self, loan_id: UUID) -> list[LoanInstallmentModel]:
        return list(self._session.execute(
            select(LoanInstallmentModel)
            .where(
                LoanInstallmentModel.loan_id == loan_id,
                LoanInstallmentModel.status == InstallmentStatus.PENDING.value,
            )
            .order_by(LoanInstallmentModel.due_month, LoanInstallmentModel.sequence)
        ).scalars())

    def _next_pending(self, loan_id: UUID) -> LoanInstallmentModel | None:
        pending = self._pending(loan_id)
        return pending[0] if pending else None

    def _complete(self, loan: LoanModel, ctx: OperationContext) -> None:
        loan.status = LoanStatus.COMPLETED.value
        loan.end_date = ctx.today()
        loan.balance = ZERO
        loan.updated_by_id = ctx.actor_id
        self._session.flush()
        self._audit.record(
            ctx, "loan_completed", "Loan", loan.id, {"employee_id": loan.employee_id},
        )
        logger.info(
            "loan_completed",
            extra={"loan_id": str(loan.id), "employee_id": str(loan.employee_id)},
        )

    def _ineligibility_reason(self, employee_id: UUID, loan_type: LoanType) -> str | None:
        profile: SalaryProfile | None = self._profiles.find_active_profile(employee_id)
        if profile is None:
            return "no active salary profile"
        if loan_type == LoanType.SSS and not profile.sss_number:
            return "SSS number not on file"
        if loan_type == LoanType.PAGIBIG and not profile.pagibig_number:
            return "Pag-IBIG number not on file"
        if loan_type == LoanType.HOUSING:
            minimum = self._rules.loan_policy.housing_min_basic_salary
            if profile.basic_salary < minimum:
                return f"basic salary below {minimum}"
        return None

    def _require_eligible(self, employee_id: UUID, loan_type: LoanType) -> None:
        reason = self._ineligibility_reason(employee_id, loan_type)
        if reason is not None:
            logger.warning(
                "loan_eligibility_failed",
                extra={
                    "employee_id": str(employee_id),
                    "loan_type": loan_type.value,
                    "reason": reason,
                },
            )
            raise EligibilityError(str(employee_id), loan_type.value, reason)
