"""
Payroll ORM Persistence Models (``payroll_modules.payroll.orm``).

Invariants enforced:
    - Period codes are unique (uq_payroll_period_code).
    - One calculation per (employee, period) (uq_payroll_calculation_employee_period).
      Recalculation deletes the prior row before inserting the new one.
    - Finalized periods and calculations are frozen by
      ``payroll_kernel.db.immutability``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.types import ZERO, round_money


class PayrollPeriodModel(TrackedBase):

    __tablename__ = "payroll_periods"

    __table_args__ = (
        UniqueConstraint("code", name="uq_payroll_period_code"),
        Index("idx_payroll_period_dates", "start_date", "end_date"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_net_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_employee_contributions: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    total_employer_contributions: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )
    total_loan_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_employer_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    calculation_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dto(self):
        from payroll_modules.payroll.models import PayrollPeriod, PeriodStatus

        return PayrollPeriod(
            id=self.id,
            code=self.code,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            payment_date=self.payment_date,
            status=PeriodStatus(self.status),
            total_employees=self.total_employees or 0,
            total_gross_pay=round_money(self.total_gross_pay or ZERO),
            total_deductions=round_money(self.total_deductions or ZERO),
            total_net_pay=round_money(self.total_net_pay or ZERO),
            total_employee_contributions=round_money(self.total_employee_contributions or ZERO),
            total_employer_contributions=round_money(self.total_employer_contributions or ZERO),
            total_loan_deductions=round_money(self.total_loan_deductions or ZERO),
            total_employer_cost=round_money(self.total_employer_cost or ZERO),
            calculation_started_at=self.calculation_started_at,
            calculated_at=self.calculated_at,
            finalized_at=self.finalized_at,
        )

    def __repr__(self) -> str:
        return f"<PayrollPeriodModel {self.code} {self.status}>"


class PayrollCalculationModel(TrackedBase):

    __tablename__ = "payroll_calculations"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "period_id", name="uq_payroll_calculation_employee_period"
        ),
        Index("idx_payroll_calculation_period", "period_id", "status"),
    )

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    period_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_periods.id"), nullable=False)

    # Salary profile snapshot
    salary_profile_id: Mapped[UUID] = mapped_column(nullable=False)
    salary_type: Mapped[str] = mapped_column(String(20), nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    daily_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Attendance
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours: Mapped[Decimal] = mapped_column(nullable=False)
    regular_hours: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(nullable=False)
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    undertime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Earnings
    basic_pay: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_pay: Mapped[Decimal] = mapped_column(nullable=False)
    component_earnings: Mapped[Decimal] = mapped_column(nullable=False)
    total_allowances: Mapped[Decimal] = mapped_column(nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(nullable=False)

    # Deductions
    sss_contribution: Mapped[Decimal] = mapped_column(nullable=False)
    philhealth_contribution: Mapped[Decimal] = mapped_column(nullable=False)
    pagibig_contribution: Mapped[Decimal] = mapped_column(nullable=False)
    total_contributions: Mapped[Decimal] = mapped_column(nullable=False)
    taxable_income: Mapped[Decimal] = mapped_column(nullable=False)
    withholding_tax: Mapped[Decimal] = mapped_column(nullable=False)
    total_recurring_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    loan_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    late_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    undertime_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)

    net_pay: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="calculated")
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self):
        from payroll_modules.payroll.models import CalculationStatus, PayrollCalculation

        return PayrollCalculation(
            id=self.id,
            employee_id=self.employee_id,
            period_id=self.period_id,
            salary_profile_id=self.salary_profile_id,
            salary_type=self.salary_type,
            basic_salary=round_money(self.basic_salary),
            daily_rate=round_money(self.daily_rate) if self.daily_rate is not None else None,
            hourly_rate=round_money(self.hourly_rate) if self.hourly_rate is not None else None,
            days_worked=self.days_worked,
            total_hours=self.total_hours,
            regular_hours=self.regular_hours,
            overtime_hours=self.overtime_hours,
            late_minutes=self.late_minutes,
            undertime_minutes=self.undertime_minutes,
            basic_pay=round_money(self.basic_pay),
            overtime_pay=round_money(self.overtime_pay),
            component_earnings=round_money(self.component_earnings),
            total_allowances=round_money(self.total_allowances),
            gross_pay=round_money(self.gross_pay),
            sss_contribution=round_money(self.sss_contribution),
            philhealth_contribution=round_money(self.philhealth_contribution),
            pagibig_contribution=round_money(self.pagibig_contribution),
            total_contributions=round_money(self.total_contributions),
            taxable_income=round_money(self.taxable_income),
            withholding_tax=round_money(self.withholding_tax),
            total_recurring_deductions=round_money(self.total_recurring_deductions),
            loan_deductions=round_money(self.loan_deductions),
            late_deduction=round_money(self.late_deduction),
            undertime_deduction=round_money(self.undertime_deduction),
            total_deductions=round_money(self.total_deductions),
            net_pay=round_money(self.net_pay),
            status=CalculationStatus(self.status),
            calculated_at=self.calculated_at,
        )

    def __repr__(self) -> str:
        return f"<PayrollCalculationModel {self.employee_id} {self.period_id} {self.net_pay}>"
