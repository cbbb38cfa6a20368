"""
Component Catalog Helpers (``payroll_modules.components.helpers``).

Pure validation of component definitions and assignment input.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from payroll_kernel.db.types import to_decimal
from payroll_kernel.exceptions import ValidationError
from payroll_modules.components.models import (
    AssignmentFrequency,
    CalculationMethod,
    ComponentCategory,
    ComponentType,
)

COMPONENT_FIELDS = frozenset({
    "code", "name", "description", "component_type", "category",
    "calculation_method", "default_amount", "default_percentage",
    "reference_component_id", "ot_multiplier", "is_taxable", "display_order",
    "is_active", "is_system_component",
})

ASSIGNMENT_FIELDS = frozenset({
    "amount", "percentage", "units", "frequency", "effective_date", "remarks",
})

_COMPONENT_ENUMS = {
    "component_type": ComponentType,
    "category": ComponentCategory,
    "calculation_method": CalculationMethod,
}


def _non_negative(errors: dict, clean: dict, data: Mapping, key: str) -> None:
    if data.get(key) is None:
        if key in data:
            clean[key] = None
        return
    try:
        value = to_decimal(data[key])
    except (InvalidOperation, TypeError):
        errors[key] = "must be a decimal number"
        return
    if value < 0:
        errors[key] = "cannot be negative"
    clean[key] = value


def normalize_component_data(
    data: Mapping[str, Any],
    *,
    require_all: bool = True,
) -> dict[str, Any]:
    """
    Validate component definition input.

    Raises:
        ValidationError: Unknown fields, bad enum values, negative amounts,
            or an attempt to flag the component as a system component.
    """
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    for key in data:
        if key not in COMPONENT_FIELDS:
            errors[key] = "unknown field"

    if data.get("is_system_component"):
        errors["is_system_component"] = "system components cannot be created or flagged manually"

    if require_all:
        for key in ("code", "name", "component_type", "category", "calculation_method"):
            if not data.get(key):
                errors[key] = "is required"

    for key in ("code", "name"):
        if key in data:
            value = (data[key] or "").strip()
            if not value:
                errors[key] = "cannot be blank"
            clean[key] = value
    if "description" in data:
        clean["description"] = data["description"] or None

    for key, enum_cls in _COMPONENT_ENUMS.items():
        if data.get(key) is None:
            continue
        try:
            clean[key] = enum_cls(data[key]).value
        except ValueError:
            errors[key] = f"invalid value {data[key]!r}"

    for key in ("default_amount", "default_percentage", "ot_multiplier"):
        _non_negative(errors, clean, data, key)

    if "reference_component_id" in data:
        ref = data["reference_component_id"]
        if ref is not None and not isinstance(ref, UUID):
            errors["reference_component_id"] = "must be a UUID"
        clean["reference_component_id"] = ref

    if "display_order" in data:
        if not isinstance(data["display_order"], int) or data["display_order"] < 0:
            errors["display_order"] = "must be a non-negative integer"
        clean["display_order"] = data["display_order"]

    for key in ("is_taxable", "is_active"):
        if key in data:
            clean[key] = bool(data[key])

    if errors:
        raise ValidationError(errors)
    return clean


def normalize_assignment_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate assignment input; amount defaults to 0, frequency to per_payroll.

    Raises:
        ValidationError: Negative amount/percentage/units, unknown frequency.
    """
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}

    for key in data:
        if key not in ASSIGNMENT_FIELDS:
            errors[key] = "unknown field"

    for key in ("amount", "percentage", "units"):
        _non_negative(errors, clean, data, key)
    if clean.get("amount") is None:
        clean["amount"] = Decimal("0")

    try:
        clean["frequency"] = AssignmentFrequency(
            data.get("frequency") or AssignmentFrequency.PER_PAYROLL
        ).value
    except ValueError:
        errors["frequency"] = f"invalid value {data.get('frequency')!r}"

    if data.get("effective_date") is not None:
        if isinstance(data["effective_date"], date):
            clean["effective_date"] = data["effective_date"]
        else:
            errors["effective_date"] = "must be a date"

    if "remarks" in data:
        clean["remarks"] = data["remarks"] or None

    if errors:
        raise ValidationError(errors)
    return clean
