"""
Tests for the pure payroll arithmetic.

Validates:
- Attendance aggregation re-filters finalized rows inside the period
- Basic pay per salary type
- Overtime and late/undertime charges
- Government contributions on basic salary, gated on registration numbers
- Progressive withholding tax brackets and exemptions
- Employer contribution multipliers
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from payroll_kernel.exceptions import ValidationError
from payroll_modules.attendance import AttendanceSummary
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
from payroll_modules.payroll.models import ContributionBreakdown
from payroll_modules.salary_profile.models import (
    PaymentMethod,
    SalaryProfile,
    SalaryType,
    TaxStatus,
)

EMPLOYEE = uuid4()


def _profile(**overrides) -> SalaryProfile:
    base = SalaryProfile(
        id=uuid4(),
        employee_id=EMPLOYEE,
        salary_type=SalaryType.MONTHLY,
        basic_salary=Decimal("22000.00"),
        daily_rate=Decimal("1000.00"),
        hourly_rate=Decimal("125.00"),
        payment_method=PaymentMethod.BANK_TRANSFER,
        tax_status=TaxStatus.S,
        effective_date=date(2024, 1, 1),
        sss_number="34-1234567-8",
        philhealth_number="123456789012",
        pagibig_number="1234-5678-9012",
    )
    return replace(base, **overrides)


def _day(day: int, **kwargs) -> AttendanceSummary:
    return AttendanceSummary(
        employee_id=EMPLOYEE,
        attendance_date=date(2024, 3, day),
        is_present=kwargs.pop("is_present", True),
        **kwargs,
    )


class TestAggregateAttendance:

    def test_sums_finalized_rows_in_range(self):
        rows = [
            _day(1, total_hours_worked=Decimal("9"), regular_hours=Decimal("8"),
                 overtime_hours=Decimal("1"), late_minutes=10),
            _day(2, total_hours_worked=Decimal("8"), regular_hours=Decimal("8"),
                 undertime_minutes=30),
            _day(3, is_present=False),
        ]
        totals = aggregate_attendance(rows, date(2024, 3, 1), date(2024, 3, 15))
        assert totals.days_worked == 2
        assert totals.total_hours == Decimal("17")
        assert totals.regular_hours == Decimal("16")
        assert totals.overtime_hours == Decimal("1")
        assert totals.late_minutes == 10
        assert totals.undertime_minutes == 30

    def test_ignores_unfinalized_and_out_of_range(self):
        rows = [
            _day(1, is_finalized=False, overtime_hours=Decimal("5")),
            _day(20, overtime_hours=Decimal("5")),
            _day(2),
        ]
        totals = aggregate_attendance(rows, date(2024, 3, 1), date(2024, 3, 15))
        assert totals.days_worked == 1
        assert totals.overtime_hours == Decimal("0")

    def test_empty(self):
        totals = aggregate_attendance([], date(2024, 3, 1), date(2024, 3, 15))
        assert totals.days_worked == 0
        assert totals.total_hours == Decimal("0")


class TestBasicPay:

    def test_monthly_is_flat(self, rules):
        assert calculate_basic_pay(_profile(), 3, rules.work_schedule) == Decimal("22000.00")

    def test_daily_uses_days_worked(self, rules):
        profile = _profile(salary_type=SalaryType.DAILY, daily_rate=Decimal("650.00"))
        assert calculate_basic_pay(profile, 10, rules.work_schedule) == Decimal("6500.00")

    def test_hourly_uses_eight_hour_days(self, rules):
        profile = _profile(salary_type=SalaryType.HOURLY, hourly_rate=Decimal("80.00"))
        assert calculate_basic_pay(profile, 5, rules.work_schedule) == Decimal("3200.00")

    @pytest.mark.parametrize("salary_type", [SalaryType.CONTRACTUAL, SalaryType.PROJECT])
    def test_contractual_and_project_pay_nothing(self, rules, salary_type):
        profile = _profile(salary_type=salary_type)
        assert calculate_basic_pay(profile, 22, rules.work_schedule) == Decimal("0.00")

    def test_daily_without_rate_pays_nothing(self, rules):
        profile = _profile(salary_type=SalaryType.DAILY, daily_rate=None)
        assert calculate_basic_pay(profile, 10, rules.work_schedule) == Decimal("0.00")


class TestOvertimeAndTimeDeductions:

    def test_overtime_at_125_percent(self):
        assert calculate_overtime_pay(
            Decimal("4"), Decimal("125.00"), Decimal("1.25")
        ) == Decimal("625.00")

    def test_no_overtime_without_hourly_rate(self):
        assert calculate_overtime_pay(Decimal("4"), None, Decimal("1.25")) == Decimal("0.00")

    def test_late_minutes_at_hourly_rate(self):
        assert calculate_time_deduction(30, Decimal("125.00")) == Decimal("62.50")

    def test_time_deduction_rounds_half_up(self):
        # 7 / 60 * 100 = 11.666...
        assert calculate_time_deduction(7, Decimal("100.00")) == Decimal("11.67")

    def test_zero_minutes(self):
        assert calculate_time_deduction(0, Decimal("125.00")) == Decimal("0.00")


class TestContributions:

    def test_all_registered(self, rules):
        c = calculate_contributions(_profile(), rules.contributions)
        assert c.sss == Decimal("1760.00")
        assert c.philhealth == Decimal("605.00")
        assert c.pagibig == Decimal("220.00")
        assert c.total == Decimal("2585.00")

    def test_missing_numbers_skip_contribution(self, rules):
        profile = _profile(sss_number=None, philhealth_number=None, pagibig_number=None)
        c = calculate_contributions(profile, rules.contributions)
        assert c.total == Decimal("0")

    def test_pagibig_uses_profile_rate(self, rules):
        profile = _profile(pagibig_employee_rate=Decimal("2.00"))
        assert calculate_contributions(profile, rules.contributions).pagibig == Decimal("440.00")


class TestWithholdingTax:

    @pytest.mark.parametrize("monthly_taxable,expected", [
        (Decimal("20000.00"), Decimal("0.00")),        # 240k annual
        (Decimal("20833.33"), Decimal("0.00")),        # just under 250k
        (Decimal("25000.00"), Decimal("208.33")),      # 300k: 50k * 5% / 12
        (Decimal("50000.00"), Decimal("2291.67")),     # 600k: (7500 + 200k * 10%) / 12
        (Decimal("100000.00"), Decimal("8958.33")),    # 1.2M: (47500 + 400k * 15%) / 12
        (Decimal("200000.00"), Decimal("25625.00")),   # 2.4M: (227500 + 400k * 20%) / 12
    ])
    def test_brackets(self, rules, monthly_taxable, expected):
        assert calculate_withholding_tax(monthly_taxable, "S", rules.withholding_tax) == expected

    def test_bracket_upper_bound_is_inclusive(self, rules):
        five_percent = rules.withholding_tax.brackets[1]
        assert five_percent.contains(Decimal("400000"))
        assert not five_percent.contains(Decimal("400000.01"))

    def test_zero_rated_status_is_exempt(self, rules):
        assert calculate_withholding_tax(
            Decimal("500000.00"), "Z", rules.withholding_tax
        ) == Decimal("0.00")

    def test_non_positive_taxable_income(self, rules):
        assert calculate_withholding_tax(
            Decimal("-100.00"), "S", rules.withholding_tax
        ) == Decimal("0.00")

    @given(
        low=st.decimals(min_value=Decimal("0"), max_value=Decimal("500000"), places=2),
        delta=st.decimals(min_value=Decimal("0"), max_value=Decimal("500000"), places=2),
    )
    @settings(max_examples=200)
    def test_tax_is_monotonic(self, rules, low, delta):
        table = rules.withholding_tax
        assert calculate_withholding_tax(low, "S", table) <= calculate_withholding_tax(
            low + delta, "S", table
        )

    @given(taxable=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=2))
    @settings(max_examples=200)
    def test_tax_never_exceeds_income(self, rules, taxable):
        tax = calculate_withholding_tax(taxable, "ME", rules.withholding_tax)
        assert Decimal("0") <= tax <= taxable


class TestEmployerContributions:

    def test_multipliers_apply_per_kind(self, rules):
        shares = [
            ContributionBreakdown(Decimal("1760.00"), Decimal("605.00"), Decimal("220.00")),
            ContributionBreakdown(Decimal("800.00"), Decimal("275.00"), Decimal("100.00")),
        ]
        employer = calculate_employer_contributions(shares, rules.employer_multipliers)
        assert employer.sss == Decimal("3712.00")       # 2560 * 1.45
        assert employer.philhealth == Decimal("880.00")  # 880 * 1.00
        assert employer.pagibig == Decimal("64.00")      # 320 * 0.20
        assert employer.total == Decimal("4656.00")

    def test_no_shares(self, rules):
        employer = calculate_employer_contributions([], rules.employer_multipliers)
        assert employer.total == Decimal("0")


class TestNormalizePeriodData:

    def test_valid(self):
        clean = normalize_period_data({
            "code": " 2024-03-A ",
            "name": "March 1-15",
            "start_date": date(2024, 3, 1),
            "end_date": date(2024, 3, 15),
        })
        assert clean["code"] == "2024-03-A"
        assert "payment_date" not in clean

    def test_end_before_start(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_period_data({
                "code": "X", "name": "X",
                "start_date": date(2024, 3, 15), "end_date": date(2024, 3, 1),
            })
        assert "end_date" in exc_info.value.errors

    def test_missing_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_period_data({"name": ""})
        assert set(exc_info.value.errors) == {"code", "name", "start_date", "end_date"}
