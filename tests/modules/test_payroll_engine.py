"""
Tests for PayrollEngineService.

Validates:
- Period creation and the draft -> calculating -> calculated lifecycle
- Per-employee calculation figures from profile, attendance, components,
  adjustments and loans
- net_pay == gross_pay - total_deductions
- Recalculation replaces the stored row and advances loans again
- Finalization totals, employer contributions and the frozen state
- Batch calculation isolates per-employee failures
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_kernel.exceptions import (
    CalculationNotFoundError,
    ImmutabilityViolationError,
    InvalidPeriodTransitionError,
    MissingSetupError,
    NoCalculationsError,
    PeriodFinalizedError,
    PeriodNotFoundError,
    SalaryProfileNotFoundError,
    StateError,
    ValidationError,
)
from payroll_modules.attendance import AttendanceSummary, InMemoryAttendanceSource
from payroll_modules.payroll.models import CalculationStatus, PeriodStatus
from payroll_modules.payroll.orm import PayrollCalculationModel
from payroll_modules.payroll.service import PayrollEngineService


class _UnavailableAttendance(InMemoryAttendanceSource):

    def get_finalized_summaries(self, employee_id, start_date, end_date):
        raise ConnectionError("timekeeping unavailable")


def _period_data(code="2024-03-A", start=date(2024, 3, 1), end=date(2024, 3, 15)):
    return {"code": code, "name": f"Payroll {code}", "start_date": start, "end_date": end}


@pytest.fixture
def period(payroll_service, ctx):
    return payroll_service.create_period(_period_data(), ctx)


def _present(employee_id, day, **kwargs):
    return AttendanceSummary(
        employee_id=employee_id,
        attendance_date=date(2024, 3, day),
        is_present=True,
        total_hours_worked=kwargs.pop("total_hours_worked", Decimal("8")),
        regular_hours=kwargs.pop("regular_hours", Decimal("8")),
        **kwargs,
    )


class TestPeriodLifecycle:

    def test_create_period_is_draft(self, period):
        assert period.status == PeriodStatus.DRAFT
        assert period.total_employees == 0
        assert period.total_net_pay == Decimal("0")
        assert not period.is_finalized
        assert period.contains(date(2024, 3, 15))
        assert not period.contains(date(2024, 3, 16))

    def test_duplicate_code_rejected(self, payroll_service, period, ctx):
        with pytest.raises(ValidationError) as exc_info:
            payroll_service.create_period(_period_data(), ctx)
        assert "code" in exc_info.value.errors

    def test_start_calculation(self, payroll_service, period, ctx):
        started = payroll_service.start_calculation(period.id, ctx)
        assert started.status == PeriodStatus.CALCULATING
        assert started.calculation_started_at is not None

    def test_start_twice_is_invalid(self, payroll_service, period, ctx):
        payroll_service.start_calculation(period.id, ctx)
        with pytest.raises(InvalidPeriodTransitionError) as exc_info:
            payroll_service.start_calculation(period.id, ctx)
        assert exc_info.value.from_status == "calculating"

    def test_queries(self, payroll_service, period, ctx):
        payroll_service.create_period(
            _period_data("2024-03-B", date(2024, 3, 16), date(2024, 3, 31)), ctx
        )
        assert payroll_service.get_period_by_code("2024-03-A").id == period.id
        assert [p.code for p in payroll_service.list_periods()] == ["2024-03-B", "2024-03-A"]
        assert payroll_service.list_periods(status="calculating") == []

        with pytest.raises(PeriodNotFoundError):
            payroll_service.get_period_by_code("1999-01-A")
        with pytest.raises(PeriodNotFoundError):
            payroll_service.get_period(uuid4())


class TestEmployeeCalculation:

    def test_monthly_employee_without_extras(self, payroll_service, period, monthly_employee, ctx):
        calc = payroll_service.calculate_employee(monthly_employee, period.id, ctx)

        assert calc.basic_pay == Decimal("22000.00")
        assert calc.gross_pay == Decimal("22000.00")
        assert calc.sss_contribution == Decimal("1760.00")
        assert calc.philhealth_contribution == Decimal("605.00")
        assert calc.pagibig_contribution == Decimal("220.00")
        assert calc.taxable_income == Decimal("19415.00")
        assert calc.withholding_tax == Decimal("0.00")
        assert calc.total_deductions == Decimal("2585.00")
        assert calc.net_pay == Decimal("19415.00")
        assert calc.status == CalculationStatus.CALCULATED

    def test_full_calculation(
        self,
        payroll_service,
        component_service,
        adjustment_service,
        loan_service,
        attendance,
        period,
        monthly_employee,
        ctx,
    ):
        for day in range(1, 11):
            attendance.add(_present(monthly_employee, day))
        attendance.add(_present(
            monthly_employee, 11,
            total_hours_worked=Decimal("12"), overtime_hours=Decimal("4"), late_minutes=30,
        ))
        attendance.add(_present(monthly_employee, 12, undertime_minutes=15))
        # Outside the period and not yet finalized: both ignored
        attendance.add(_present(monthly_employee, 20, overtime_hours=Decimal("8")))
        attendance.add(AttendanceSummary(
            employee_id=monthly_employee,
            attendance_date=date(2024, 3, 13),
            is_present=True,
            overtime_hours=Decimal("8"),
            is_finalized=False,
        ))

        hazard = component_service.create_component(
            {"code": "HAZARD", "name": "Hazard Pay", "component_type": "earning",
             "category": "regular", "calculation_method": "fixed_amount"},
            ctx,
        )
        component_service.assign_component_to_employee(
            monthly_employee, hazard.id, {"amount": "1500"}, ctx
        )
        adjustment_service.add_allowance(monthly_employee, "rice", {"amount": "2000"}, ctx)
        adjustment_service.add_deduction(monthly_employee, "canteen", {"amount": "500"}, ctx)
        loan_service.create_loan(
            monthly_employee, {"loan_type": "sss", "principal": "6000", "term_months": 3}, ctx
        )

        calc = payroll_service.calculate_employee(monthly_employee, period.id, ctx)

        assert calc.days_worked == 12
        assert calc.overtime_hours == Decimal("4")
        assert calc.late_minutes == 30
        assert calc.undertime_minutes == 15

        assert calc.basic_pay == Decimal("22000.00")
        assert calc.overtime_pay == Decimal("625.00")
        assert calc.component_earnings == Decimal("1500.00")
        assert calc.total_allowances == Decimal("2000.00")
        assert calc.gross_pay == Decimal("26125.00")

        assert calc.total_contributions == Decimal("2585.00")
        assert calc.taxable_income == Decimal("23540.00")
        # 282480 annual: (282480 - 250000) * 5% / 12
        assert calc.withholding_tax == Decimal("135.33")
        assert calc.total_recurring_deductions == Decimal("500.00")
        assert calc.loan_deductions == Decimal("2000.00")
        assert calc.late_deduction == Decimal("62.50")
        assert calc.undertime_deduction == Decimal("31.25")
        assert calc.total_deductions == Decimal("5314.08")
        assert calc.net_pay == Decimal("20810.92")
        assert calc.net_pay == calc.gross_pay - calc.total_deductions

    def test_daily_employee_paid_for_days_worked(
        self, payroll_service, profile_service, attendance, make_employee, period, ctx,
    ):
        employee = make_employee()
        profile_service.create_profile(
            employee,
            {"salary_type": "daily", "basic_salary": "650", "daily_rate": "650",
             "payment_method": "cash", "tax_status": "S"},
            ctx,
        )
        for day in range(1, 6):
            attendance.add(_present(employee, day))

        calc = payroll_service.calculate_employee(employee, period.id, ctx)

        assert calc.basic_pay == Decimal("3250.00")
        # No government numbers on file
        assert calc.total_contributions == Decimal("0.00")
        assert calc.net_pay == Decimal("3250.00")

    def test_calculation_starts_draft_period(self, payroll_service, period, monthly_employee, ctx):
        payroll_service.calculate_employee(monthly_employee, period.id, ctx)
        assert payroll_service.get_period(period.id).status == PeriodStatus.CALCULATING

    def test_missing_profile(self, payroll_service, period, employee_id, ctx):
        with pytest.raises(MissingSetupError) as exc_info:
            payroll_service.calculate_employee(employee_id, period.id, ctx)

        assert isinstance(exc_info.value, SalaryProfileNotFoundError)
        assert exc_info.value.code == "MISSING_SETUP"
        # The implicit start rolled back with the failure
        assert payroll_service.get_period(period.id).status == PeriodStatus.DRAFT
        with pytest.raises(CalculationNotFoundError):
            payroll_service.get_employee_calculation(employee_id, period.id)

    def test_unknown_period(self, payroll_service, monthly_employee, ctx):
        with pytest.raises(PeriodNotFoundError):
            payroll_service.calculate_employee(monthly_employee, uuid4(), ctx)

    def test_logs_bound_context(self, payroll_service, period, monthly_employee, ctx, captured_logs):
        payroll_service.calculate_employee(monthly_employee, period.id, ctx)

        records = [r for r in captured_logs() if r["message"] == "payroll_calculated"]
        assert len(records) == 1
        assert records[0]["employee_id"] == str(monthly_employee)
        assert records[0]["period_id"] == str(period.id)
        assert records[0]["net_pay"] == "19415.00"
        assert records[0]["replaced_previous"] is False


class TestRecalculation:

    def test_recalculation_replaces_row(self, payroll_service, period, monthly_employee, ctx):
        first = payroll_service.calculate_employee(monthly_employee, period.id, ctx)
        second = payroll_service.calculate_employee(monthly_employee, period.id, ctx)

        calculations = payroll_service.get_period_calculations(period.id)
        assert len(calculations) == 1
        assert calculations[0].id == second.id
        assert second.id != first.id
        assert second.net_pay == first.net_pay

    def test_recalculation_takes_another_loan_installment(
        self, payroll_service, loan_service, period, monthly_employee, ctx,
    ):
        loan = loan_service.create_loan(
            monthly_employee, {"loan_type": "sss", "principal": "6000", "term_months": 3}, ctx
        )

        payroll_service.calculate_employee(monthly_employee, period.id, ctx)
        assert loan_service.get_loan(loan.id).balance == Decimal("4000.00")

        calc = payroll_service.calculate_employee(monthly_employee, period.id, ctx)

        # The earlier deduction is not reversed
        assert calc.loan_deductions == Decimal("2000.00")
        assert loan_service.get_loan(loan.id).balance == Decimal("2000.00")
        assert loan_service.get_loan_details(loan.id).pending_count == 1


class TestFinalization:

    def test_finalize_without_calculations_writes_nothing(
        self, payroll_service, auditor, period, ctx,
    ):
        payroll_service.start_calculation(period.id, ctx)
        events_before = len(auditor.get_recent_events())

        with pytest.raises(NoCalculationsError) as exc_info:
            payroll_service.finalize_calculation(period.id, ctx)

        assert isinstance(exc_info.value, StateError)
        unchanged = payroll_service.get_period(period.id)
        assert unchanged.status == PeriodStatus.CALCULATING
        assert unchanged.finalized_at is None
        assert len(auditor.get_recent_events()) == events_before

    def test_finalize_totals(
        self,
        payroll_service,
        profile_service,
        make_employee,
        monthly_profile_data,
        period,
        monthly_employee,
        ctx,
    ):
        second = make_employee()
        profile_service.create_profile(second, monthly_profile_data, ctx)
        payroll_service.calculate_employee(monthly_employee, period.id, ctx)
        payroll_service.calculate_employee(second, period.id, ctx)

        finalized = payroll_service.finalize_calculation(period.id, ctx)

        assert finalized.status == PeriodStatus.CALCULATED
        assert finalized.is_finalized
        assert finalized.calculated_at is not None
        assert finalized.total_employees == 2
        assert finalized.total_gross_pay == Decimal("44000.00")
        assert finalized.total_deductions == Decimal("5170.00")
        assert finalized.total_net_pay == Decimal("38830.00")
        assert finalized.total_employee_contributions == Decimal("5170.00")
        # SSS 3520 * 1.45 + PhilHealth 1210 * 1.00 + Pag-IBIG 440 * 0.20
        assert finalized.total_employer_contributions == Decimal("6402.00")
        assert finalized.total_employer_cost == Decimal("50402.00")
        assert finalized.total_loan_deductions == Decimal("0.00")

        statuses = {c.status for c in payroll_service.get_period_calculations(period.id)}
        assert statuses == {CalculationStatus.FINALIZED}

    def test_finalized_period_is_frozen(
        self, payroll_service, period, monthly_employee, ctx, session,
    ):
        payroll_service.calculate_employee(monthly_employee, period.id, ctx)
        payroll_service.finalize_calculation(period.id, ctx)

        with pytest.raises(PeriodFinalizedError):
            payroll_service.calculate_employee(monthly_employee, period.id, ctx)
        with pytest.raises(PeriodFinalizedError):
            payroll_service.finalize_calculation(period.id, ctx)
        with pytest.raises(PeriodFinalizedError):
            payroll_service.start_calculation(period.id, ctx)

        calc = payroll_service.get_employee_calculation(monthly_employee, period.id)
        model = session.get(PayrollCalculationModel, calc.id)
        model.net_pay = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestPeriodBatch:

    def test_collects_failures_and_continues(
        self, payroll_service, period, monthly_employee, employee_id, ctx,
    ):
        result = payroll_service.calculate_period(
            period.id, [monthly_employee, employee_id, monthly_employee], ctx
        )

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.calculations[0].employee_id == monthly_employee
        failure = result.failures[0]
        assert failure.employee_id == employee_id
        assert failure.code == "MISSING_SETUP"

        assert len(payroll_service.get_period_calculations(period.id)) == 1
        assert payroll_service.get_period(period.id).status == PeriodStatus.CALCULATING

    def test_batch_advances_each_loan_once(
        self, payroll_service, loan_service, period, monthly_employee, ctx,
    ):
        loan = loan_service.create_loan(
            monthly_employee, {"loan_type": "sss", "principal": "6000", "term_months": 3}, ctx
        )
        result = payroll_service.calculate_period(period.id, [monthly_employee], ctx)

        assert result.success_count == 1
        assert loan_service.get_loan(loan.id).balance == Decimal("4000.00")

    def test_finalized_period_rejects_batch(
        self, payroll_service, period, monthly_employee, ctx,
    ):
        payroll_service.calculate_period(period.id, [monthly_employee], ctx)
        payroll_service.finalize_calculation(period.id, ctx)

        with pytest.raises(PeriodFinalizedError):
            payroll_service.calculate_period(period.id, [monthly_employee], ctx)

    def test_unexpected_error_rolls_back_batch(
        self, session, rules, auditor, period, monthly_employee, ctx, captured_logs,
    ):
        service = PayrollEngineService(session, _UnavailableAttendance(), rules=rules, audit=auditor)

        with pytest.raises(ConnectionError):
            service.calculate_period(period.id, [monthly_employee], ctx)

        # The implicit start is undone along with the batch
        assert service.get_period(period.id).status == PeriodStatus.DRAFT
        assert service.get_period_calculations(period.id) == []
        failures = [r for r in captured_logs() if r["message"] == "payroll_batch_failed"]
        assert failures[0]["exc_type"] == "ConnectionError"
