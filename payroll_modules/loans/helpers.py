"""
Loan Helpers (``payroll_modules.loans.helpers``).

Responsibility
--------------
Pure amortization math, schedule construction and origination input
validation.  No I/O, no session, no clock.

Invariants enforced
-------------------
* All inputs and outputs are ``Decimal``; results are rounded to centavos
  with ``round_money``.
* A schedule has exactly ``term`` rows, one per calendar month from the
  start date, with strictly increasing due months.
* For zero-interest loans the final installment absorbs the rounding
  remainder, so the schedule sums to the principal exactly.

Failure modes
-------------
* ``term <= 0``, ``principal <= 0`` or a negative rate -> ``ValueError``.
* A zero-interest principal too small to spread over ``term`` months
  (the last installment would be <= 0) -> ``ValueError``.
"""

import calendar
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll_kernel.db.types import round_money, to_decimal
from payroll_kernel.exceptions import ValidationError
from payroll_modules.loans.models import LoanType, ScheduledInstallment

ZERO = Decimal("0")
ONE = Decimal("1")


def add_months(start: date, months: int) -> date:
    """``start`` shifted by ``months`` calendar months, clamped to month end."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Annual percentage rate -> monthly fraction (12% -> 0.01)."""
    return annual_rate_percent / Decimal("12") / Decimal("100")


def calculate_monthly_payment(
    principal: Decimal,
    annual_rate_percent: Decimal,
    term_months: int,
) -> Decimal:
    """
    Level monthly payment.

    M = P * r(1+r)^n / ((1+r)^n - 1), r = annual / 12 / 100.
    Degrades to P / n when r = 0.

    Preconditions:
        - ``principal`` > 0, ``annual_rate_percent`` >= 0, ``term_months`` > 0.
    Postconditions:
        - Returns a Decimal rounded to 0.01.
    """
    if term_months <= 0:
        raise ValueError("term_months must be positive")
    if principal <= 0:
        raise ValueError("principal must be positive")
    if annual_rate_percent < 0:
        raise ValueError("annual_rate_percent cannot be negative")

    r = monthly_rate(annual_rate_percent)
    if r == 0:
        return round_money(principal / Decimal(term_months))

    growth = (ONE + r) ** term_months
    return round_money(principal * (r * growth) / (growth - ONE))


def build_installment_schedule(
    principal: Decimal,
    annual_rate_percent: Decimal,
    term_months: int,
    start_date: date,
) -> list[ScheduledInstallment]:
    """
    One installment per month starting at ``start_date``.

    Interest-bearing loans repeat the level payment ``term`` times.
    Zero-interest loans put any rounding remainder on the last row.
    """
    payment = calculate_monthly_payment(principal, annual_rate_percent, term_months)
    amounts = [payment] * term_months

    if annual_rate_percent == 0:
        last = principal - payment * (term_months - 1)
        if last <= 0:
            raise ValueError(
                f"principal {principal} is too small to spread over {term_months} months"
            )
        amounts[-1] = round_money(last)

    return [
        ScheduledInstallment(
            sequence=index + 1,
            due_month=add_months(start_date, index),
            amount=amount,
        )
        for index, amount in enumerate(amounts)
    ]


def schedule_total(schedule: list[ScheduledInstallment]) -> Decimal:
    return round_money(sum((row.amount for row in schedule), ZERO))


def apply_early_payment(
    pending_amounts: list[Decimal],
    payment: Decimal,
) -> int:
    """
    How many of the oldest pending installments ``payment`` fully covers.

    Coverage stops at the first installment the remaining payment cannot
    pay in full; the partial remainder marks nothing.
    """
    remaining = payment
    covered = 0
    for amount in pending_amounts:
        if remaining < amount:
            break
        remaining -= amount
        covered += 1
    return covered


LOAN_FIELDS = frozenset({
    "loan_type", "principal", "annual_interest_rate", "term_months",
    "start_date", "reason", "remarks",
})


def normalize_loan_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate loan origination input.

    ``annual_interest_rate`` is optional (the per-type default applies);
    ``start_date`` is optional (today applies).

    Raises:
        ValidationError: Unknown fields or loan type, principal <= 0,
            term <= 0, a negative rate or a non-date start.
    """
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    for key in data:
        if key not in LOAN_FIELDS:
            errors[key] = "unknown field"

    try:
        clean["loan_type"] = LoanType(data.get("loan_type")).value
    except ValueError:
        allowed = ", ".join(t.value for t in LoanType)
        errors["loan_type"] = f"invalid type {data.get('loan_type')!r}; allowed: {allowed}"

    try:
        principal = to_decimal(data.get("principal"))
        if principal <= 0:
            errors["principal"] = "must be greater than 0"
        clean["principal"] = round_money(principal)
    except (InvalidOperation, TypeError):
        errors["principal"] = "must be a decimal amount"

    term = data.get("term_months")
    if isinstance(term, bool) or not isinstance(term, int) or term <= 0:
        errors["term_months"] = "must be a positive integer"
    else:
        clean["term_months"] = term

    if data.get("annual_interest_rate") is not None:
        try:
            rate = to_decimal(data["annual_interest_rate"])
            if rate < 0:
                errors["annual_interest_rate"] = "cannot be negative"
            clean["annual_interest_rate"] = rate
        except (InvalidOperation, TypeError):
            errors["annual_interest_rate"] = "must be a decimal percentage"

    if data.get("start_date") is not None:
        if isinstance(data["start_date"], date):
            clean["start_date"] = data["start_date"]
        else:
            errors["start_date"] = "must be a date"

    for key in ("reason", "remarks"):
        if key in data:
            clean[key] = data[key] or None

    if errors:
        raise ValidationError(errors)
    return clean
