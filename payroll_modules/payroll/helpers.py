"""
Payroll Calculation Helpers (``payroll_modules.payroll.helpers``).

Responsibility
--------------
The pure arithmetic behind one payslip: attendance aggregation, basic and
overtime pay, government contributions, withholding tax, late/undertime
deductions and employer contributions.  No session, no clock, no I/O.
``PayrollEngineService`` sequences these and persists the result.

Invariants enforced
-------------------
* Every returned amount is a ``Decimal`` rounded with ``round_money``.
* Contributions are computed on the profile's basic salary, not on gross.
* A missing government number means no contribution of that kind.
* A missing hourly rate means no overtime pay and no time deductions.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from payroll_config.schema import (
    ContributionRates,
    EmployerMultipliers,
    WithholdingTaxTable,
    WorkSchedule,
)
from payroll_kernel.db.types import round_money
from payroll_kernel.exceptions import ValidationError
from payroll_modules.attendance import AttendanceSummary
from payroll_modules.payroll.models import AttendanceTotals, ContributionBreakdown
from payroll_modules.salary_profile.models import SalaryProfile, SalaryType

ZERO = Decimal("0")
MONTHS_PER_YEAR = Decimal("12")
MINUTES_PER_HOUR = Decimal("60")


def aggregate_attendance(
    summaries: Iterable[AttendanceSummary],
    start_date: date,
    end_date: date,
) -> AttendanceTotals:
    """
    Total the finalized summaries that fall inside the period.

    Rows that are not finalized or lie outside [start_date, end_date] are
    ignored, whatever the source returned.
    """
    rows = [
        s for s in summaries
        if s.is_finalized and start_date <= s.attendance_date <= end_date
    ]
    return AttendanceTotals(
        days_worked=sum(1 for s in rows if s.is_present),
        total_hours=sum((s.total_hours_worked for s in rows), ZERO),
        regular_hours=sum((s.regular_hours for s in rows), ZERO),
        overtime_hours=sum((s.overtime_hours for s in rows), ZERO),
        late_minutes=sum(s.late_minutes for s in rows),
        undertime_minutes=sum(s.undertime_minutes for s in rows),
    )


def calculate_basic_pay(
    profile: SalaryProfile,
    days_worked: int,
    schedule: WorkSchedule,
) -> Decimal:
    """
    monthly -> basic_salary; daily -> days x daily_rate;
    hourly -> days x hours_per_day x hourly_rate; anything else -> 0.
    """
    if profile.salary_type == SalaryType.MONTHLY:
        return round_money(profile.basic_salary)
    if profile.salary_type == SalaryType.DAILY:
        return round_money(Decimal(days_worked) * (profile.daily_rate or ZERO))
    if profile.salary_type == SalaryType.HOURLY:
        return round_money(
            Decimal(days_worked) * schedule.hours_per_day * (profile.hourly_rate or ZERO)
        )
    return round_money(ZERO)


def calculate_overtime_pay(
    overtime_hours: Decimal,
    hourly_rate: Decimal | None,
    multiplier: Decimal,
) -> Decimal:
    if overtime_hours <= 0 or not hourly_rate:
        return round_money(ZERO)
    return round_money(overtime_hours * hourly_rate * multiplier)


def calculate_contributions(
    profile: SalaryProfile,
    rates: ContributionRates,
) -> ContributionBreakdown:
    """
    Employee-share SSS, PhilHealth and Pag-IBIG on basic salary.

    Pag-IBIG uses the profile's own percentage, falling back to the
    configured default.
    """
    basic = profile.basic_salary
    sss = basic * rates.sss_rate if profile.sss_number else ZERO
    philhealth = basic * rates.philhealth_rate if profile.philhealth_number else ZERO
    pagibig = ZERO
    if profile.pagibig_number:
        percent = profile.pagibig_employee_rate
        if percent is None:
            percent = rates.pagibig_default_percent
        pagibig = basic * percent / Decimal("100")
    return ContributionBreakdown(
        sss=round_money(sss),
        philhealth=round_money(philhealth),
        pagibig=round_money(pagibig),
    )


def calculate_withholding_tax(
    taxable_income: Decimal,
    tax_status: str,
    table: WithholdingTaxTable,
) -> Decimal:
    """
    Monthly withholding from the annualized bracket table.

    Annual income = taxable x 12; tax = base_tax + (annual - lower) x rate
    for the first bracket whose upper bound covers it; the result is
    divided back by 12.
    """
    if tax_status in table.exempt_statuses or taxable_income <= 0:
        return round_money(ZERO)

    annual = taxable_income * MONTHS_PER_YEAR
    for bracket in table.brackets:
        if bracket.contains(annual):
            annual_tax = bracket.base_tax + (annual - bracket.lower) * bracket.rate
            return round_money(annual_tax / MONTHS_PER_YEAR)
    # Unreachable: the last bracket is unbounded
    raise ValueError(f"no tax bracket covers annual income {annual}")


def calculate_time_deduction(minutes: int, hourly_rate: Decimal | None) -> Decimal:
    """Late or undertime minutes charged at the hourly rate."""
    if minutes <= 0 or not hourly_rate:
        return round_money(ZERO)
    return round_money(Decimal(minutes) / MINUTES_PER_HOUR * hourly_rate)


def calculate_employer_contributions(
    employee_shares: Iterable[ContributionBreakdown],
    multipliers: EmployerMultipliers,
) -> ContributionBreakdown:
    """Employer share per kind, as a multiple of the summed employee shares."""
    shares = list(employee_shares)
    sss = sum((s.sss for s in shares), ZERO)
    philhealth = sum((s.philhealth for s in shares), ZERO)
    pagibig = sum((s.pagibig for s in shares), ZERO)
    return ContributionBreakdown(
        sss=round_money(sss * multipliers.sss),
        philhealth=round_money(philhealth * multipliers.philhealth),
        pagibig=round_money(pagibig * multipliers.pagibig),
    )


PERIOD_FIELDS = frozenset({"code", "name", "start_date", "end_date", "payment_date"})


def normalize_period_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate payroll period input.

    Raises:
        ValidationError: Unknown fields, a blank code or name, non-date
            values, or an end date before the start date.
    """
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    for key in data:
        if key not in PERIOD_FIELDS:
            errors[key] = "unknown field"

    for key in ("code", "name"):
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            errors[key] = "is required"
        else:
            clean[key] = value.strip()

    for key in ("start_date", "end_date", "payment_date"):
        value = data.get(key)
        if value is None:
            if key != "payment_date":
                errors[key] = "is required"
            continue
        if isinstance(value, date):
            clean[key] = value
        else:
            errors[key] = "must be a date"

    start, end = clean.get("start_date"), clean.get("end_date")
    if start is not None and end is not None and end < start:
        errors["end_date"] = "cannot precede start_date"

    if errors:
        raise ValidationError(errors)
    return clean
