"""
Salary Profile Helpers (``payroll_modules.salary_profile.helpers``).

Pure validation and derivation functions: government-number formats,
derived daily/hourly rates, SSS bracket classification and detection of
salary-affecting changes.  No I/O.
"""

import re
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll_config.schema import SSSBracketTable, WorkSchedule
from payroll_kernel.db.types import round_money, to_decimal
from payroll_kernel.exceptions import ValidationError
from payroll_modules.salary_profile.models import PaymentMethod, SalaryType, TaxStatus

GOVERNMENT_NUMBER_PATTERNS: dict[str, re.Pattern] = {
    "sss_number": re.compile(r"^\d{2}-\d{7}-\d$"),
    "philhealth_number": re.compile(r"^\d{12}$"),
    "pagibig_number": re.compile(r"^\d{4}-\d{4}-\d{4}$"),
    "tin_number": re.compile(r"^\d{3}-\d{3}-\d{3}-\d{3}$"),
}

_GOVERNMENT_NUMBER_FORMATS = {
    "sss_number": "NN-NNNNNNN-N",
    "philhealth_number": "NNNNNNNNNNNN",
    "pagibig_number": "NNNN-NNNN-NNNN",
    "tin_number": "NNN-NNN-NNN-NNN",
}

# Edits to any of these close the current profile and insert a new version.
SALARY_CHANGE_FIELDS = frozenset({"basic_salary", "daily_rate", "hourly_rate", "salary_type"})

REQUIRED_FIELDS = ("salary_type", "basic_salary", "payment_method", "tax_status")

_ENUM_FIELDS = {
    "salary_type": SalaryType,
    "payment_method": PaymentMethod,
    "tax_status": TaxStatus,
}

_MONEY_FIELDS = ("basic_salary", "daily_rate", "hourly_rate", "withholding_tax_exemption")

_BOOL_FIELDS = (
    "is_tax_exempt",
    "is_substituted_filing",
    "is_sss_voluntary",
    "philhealth_is_indigent",
    "is_entitled_to_rice",
    "is_entitled_to_uniform",
    "is_entitled_to_laundry",
    "is_entitled_to_medical",
)

_TEXT_FIELDS = (
    "sss_bracket",
    "rdo_code",
    "bank_name",
    "bank_code",
    "bank_account_number",
    "bank_account_name",
    "remarks",
)

PROFILE_FIELDS = frozenset(
    set(_ENUM_FIELDS)
    | set(_MONEY_FIELDS)
    | set(_BOOL_FIELDS)
    | set(_TEXT_FIELDS)
    | set(GOVERNMENT_NUMBER_PATTERNS)
    | {"pagibig_employee_rate", "effective_date"}
)


def is_valid_government_number(field_name: str, value: str | None) -> bool:
    """
    Check a government number against its scheme format.

    Empty or missing numbers are valid (not yet on file).
    """
    if value is None or value == "":
        return True
    return bool(GOVERNMENT_NUMBER_PATTERNS[field_name].match(value))


def classify_sss_bracket(basic_salary: Decimal, table: SSSBracketTable) -> str:
    """Return the SSS bracket code whose upper bound exceeds ``basic_salary``."""
    for bracket in table.brackets:
        if bracket.upper is None or basic_salary < bracket.upper:
            return bracket.code
    return table.brackets[-1].code


def derive_rates(
    salary_type: SalaryType,
    basic_salary: Decimal,
    daily_rate: Decimal | None,
    hourly_rate: Decimal | None,
    schedule: WorkSchedule,
) -> tuple[Decimal | None, Decimal | None]:
    """
    Fill in daily and hourly rates that were not supplied.

    Preconditions:
        - ``basic_salary`` is a non-negative Decimal.
    Postconditions:
        - Monthly salaries get ``daily = basic / working days`` when no daily
          rate was supplied.
        - Any daily rate yields ``hourly = daily / hours per day`` when no
          hourly rate was supplied.
        - Derived values are rounded to centavos.
    """
    if salary_type == SalaryType.MONTHLY and daily_rate is None:
        daily_rate = round_money(basic_salary / schedule.working_days_per_month)
    if daily_rate is not None and hourly_rate is None:
        hourly_rate = round_money(daily_rate / schedule.hours_per_day)
    return daily_rate, hourly_rate


def _coerce_money(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return to_decimal(value)


def normalize_profile_data(
    data: Mapping[str, Any],
    sss_brackets: SSSBracketTable,
    *,
    require_all: bool = True,
) -> dict[str, Any]:
    """
    Validate and coerce raw profile input.

    Every problem is collected; the first pass never stops early so the
    caller sees all field errors at once.

    Raises:
        ValidationError: With one message per offending field.
    """
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    for key in data:
        if key not in PROFILE_FIELDS:
            errors[key] = "unknown field"

    if require_all:
        for key in REQUIRED_FIELDS:
            if data.get(key) is None:
                errors[key] = "is required"

    for key, enum_cls in _ENUM_FIELDS.items():
        if data.get(key) is None:
            continue
        try:
            clean[key] = enum_cls(data[key])
        except ValueError:
            errors[key] = f"invalid value {data[key]!r}"

    for key in _MONEY_FIELDS:
        if key not in data:
            continue
        try:
            amount = _coerce_money(data[key])
        except (InvalidOperation, TypeError):
            errors[key] = "must be a decimal amount"
            continue
        if amount is not None and amount < 0:
            errors[key] = "cannot be negative"
        clean[key] = amount

    if data.get("pagibig_employee_rate") is not None:
        try:
            rate = to_decimal(data["pagibig_employee_rate"])
            if rate < 0 or rate > 100:
                errors["pagibig_employee_rate"] = "must be between 0 and 100"
            clean["pagibig_employee_rate"] = rate
        except (InvalidOperation, TypeError):
            errors["pagibig_employee_rate"] = "must be a decimal percentage"

    for key in GOVERNMENT_NUMBER_PATTERNS:
        if key not in data:
            continue
        value = data[key] or None
        if not is_valid_government_number(key, value):
            errors[key] = f"must match {_GOVERNMENT_NUMBER_FORMATS[key]}"
        clean[key] = value

    if data.get("sss_bracket") and data["sss_bracket"] not in sss_brackets.codes:
        errors["sss_bracket"] = f"unknown bracket {data['sss_bracket']!r}"

    for key in _TEXT_FIELDS:
        if key in data:
            clean[key] = data[key] or None

    for key in _BOOL_FIELDS:
        if key in data:
            clean[key] = bool(data[key])

    if data.get("effective_date") is not None:
        if isinstance(data["effective_date"], date):
            clean["effective_date"] = data["effective_date"]
        else:
            errors["effective_date"] = "must be a date"

    if errors:
        raise ValidationError(errors)
    return clean


def is_salary_change(current: Mapping[str, Any], proposed: Mapping[str, Any]) -> bool:
    """True when any salary-affecting field differs between the two versions."""
    return any(current.get(f) != proposed.get(f) for f in SALARY_CHANGE_FIELDS)
