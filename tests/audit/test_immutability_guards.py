"""
ORM-level immutability guards.

Verifies the before_update / before_delete listeners registered by
create_tables():
- Closed effective-dated rows are frozen
- Audit events are append-only
- Finalized periods are frozen
- Loans and installments are never deleted
- The transition INTO a frozen state is itself allowed
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from payroll_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from payroll_kernel.exceptions import ImmutabilityViolationError
from payroll_kernel.models.audit_event import AuditEvent
from payroll_modules.adjustments.orm import RecurringAdjustmentModel
from payroll_modules.loans.orm import LoanInstallmentModel, LoanModel
from payroll_modules.payroll.orm import PayrollPeriodModel


def _expect_violation(session):
    with pytest.raises(ImmutabilityViolationError) as exc_info:
        session.flush()
    session.rollback()
    return exc_info.value


class TestClosedRecords:

    def test_closed_adjustment_frozen(self, adjustment_service, employee_id, ctx, session):
        allowance = adjustment_service.add_allowance(employee_id, "rice", {"amount": "2000"}, ctx)
        adjustment_service.remove_allowance(allowance.id, ctx)

        model = session.get(RecurringAdjustmentModel, allowance.id)
        model.amount = Decimal("1")
        error = _expect_violation(session)
        assert error.entity_type == "RecurringAdjustmentModel"
        assert "amount" in error.reason

    def test_open_adjustment_editable(self, adjustment_service, employee_id, ctx, session):
        allowance = adjustment_service.add_allowance(employee_id, "rice", {"amount": "2000"}, ctx)

        model = session.get(RecurringAdjustmentModel, allowance.id)
        model.description = "Rice subsidy"
        session.flush()
        session.commit()

    def test_audit_columns_may_change_on_closed_row(
        self, adjustment_service, employee_id, ctx, session, test_actor_id,
    ):
        allowance = adjustment_service.add_allowance(employee_id, "rice", {"amount": "2000"}, ctx)
        adjustment_service.remove_allowance(allowance.id, ctx)

        model = session.get(RecurringAdjustmentModel, allowance.id)
        model.updated_by_id = test_actor_id
        session.flush()


class TestAuditEvents:

    def test_update_rejected(self, auditor, monthly_employee, session):
        event = auditor.get_recent_events(limit=1)[0]
        event.event_type = "rewritten"
        _expect_violation(session)

    def test_delete_rejected(self, auditor, monthly_employee, session):
        session.delete(auditor.get_recent_events(limit=1)[0])
        _expect_violation(session)


class TestPayrollRecords:

    def test_finalized_period_frozen(self, payroll_service, monthly_employee, ctx, session):
        period = payroll_service.create_period(
            {"code": "2024-03-A", "name": "March A",
             "start_date": ctx.today(), "end_date": ctx.today()},
            ctx,
        )
        payroll_service.calculate_employee(monthly_employee, period.id, ctx)
        payroll_service.finalize_calculation(period.id, ctx)

        model = session.get(PayrollPeriodModel, period.id)
        model.total_net_pay = Decimal("0")
        _expect_violation(session)

        session.delete(session.get(PayrollPeriodModel, period.id))
        _expect_violation(session)


class TestLoanRecords:

    @pytest.fixture
    def loan(self, loan_service, monthly_employee, ctx):
        return loan_service.create_loan(
            monthly_employee, {"loan_type": "company", "principal": "3000", "term_months": 3}, ctx
        )

    def test_active_loan_cannot_be_deleted(self, loan, session):
        session.delete(session.get(LoanModel, loan.id))
        _expect_violation(session)

    def test_pending_installment_cannot_be_deleted(self, loan, session):
        installment = session.execute(
            select(LoanInstallmentModel).where(LoanInstallmentModel.loan_id == loan.id)
        ).scalars().first()
        session.delete(installment)
        _expect_violation(session)

    def test_active_loan_editable(self, loan, session):
        model = session.get(LoanModel, loan.id)
        model.remarks = "Approved by HR"
        session.flush()


class TestListenerRegistration:

    def test_unregistered_listeners_allow_edits(self, loan_service, monthly_employee, ctx, session):
        loan = loan_service.create_loan(
            monthly_employee, {"loan_type": "company", "principal": "3000", "term_months": 3}, ctx
        )
        loan_service.complete_loan(loan.id, ctx)

        unregister_immutability_listeners()
        try:
            model = session.get(LoanModel, loan.id)
            model.remarks = "Migrated"
            session.flush()
        finally:
            register_immutability_listeners()
        session.rollback()

        model = session.get(LoanModel, loan.id)
        model.remarks = "Edited"
        _expect_violation(session)
