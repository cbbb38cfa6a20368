"""
Recurring Adjustment Helpers (``payroll_modules.adjustments.helpers``).

Pure validation of allowance/deduction input.  No I/O.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from payroll_kernel.db.types import round_money, to_decimal
from payroll_kernel.exceptions import ValidationError
from payroll_modules.adjustments.models import TYPES_BY_KIND, AdjustmentKind

ADJUSTMENT_FIELDS = frozenset({"amount", "effective_date", "end_date", "description"})


def validate_adjustment_type(kind: AdjustmentKind, adjustment_type: str) -> str:
    """
    Return the canonical type value for ``kind``.

    Raises:
        ValidationError: ``adjustment_type`` is not in the closed set.
    """
    kind = AdjustmentKind(kind)
    enum_cls = TYPES_BY_KIND[kind]
    try:
        return enum_cls(adjustment_type).value
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError({
            f"{kind.value}_type": f"invalid type {adjustment_type!r}; allowed: {allowed}",
        }) from None


def parse_positive_amount(value: Any, errors: dict[str, str]) -> Decimal | None:
    """Parse ``value`` as an amount > 0, recording a message on failure."""
    if value is None or value == "":
        errors["amount"] = "is required"
        return None
    try:
        amount = to_decimal(value)
    except (InvalidOperation, TypeError):
        errors["amount"] = "must be a decimal amount"
        return None
    if amount <= 0:
        errors["amount"] = "must be greater than 0"
        return None
    return round_money(amount)


def normalize_adjustment_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate the amount and dates of an allowance or deduction.

    Raises:
        ValidationError: Unknown fields, a non-positive amount, non-date
            values, or an end date before the effective date.
    """
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    for key in data:
        if key not in ADJUSTMENT_FIELDS:
            errors[key] = "unknown field"

    clean["amount"] = parse_positive_amount(data.get("amount"), errors)

    for key in ("effective_date", "end_date"):
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, date):
            clean[key] = value
        else:
            errors[key] = "must be a date"

    start, end = clean.get("effective_date"), clean.get("end_date")
    if start is not None and end is not None and end < start:
        errors["end_date"] = "cannot precede effective_date"

    if "description" in data:
        clean["description"] = data["description"] or None

    if errors:
        raise ValidationError(errors)
    return clean
