"""
Configuration loader (``payroll_config.loader``).

Loads a YAML rule set and parses it into the frozen dataclasses of
``payroll_config.schema``.  Runtime callers go through
``payroll_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Inconsistent values  -> ``ValueError`` from schema ``__post_init__``.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import (
    ConfigScope,
    ContributionRates,
    EmployerMultipliers,
    LoanPolicy,
    OvertimeRules,
    PayrollRules,
    SSSBracket,
    SSSBracketTable,
    TaxBracket,
    WithholdingTaxTable,
    WorkSchedule,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    """YAML numbers arrive as int/float; go through str to keep them exact."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Cannot parse decimal from {value!r}")
    result = value if isinstance(value, Decimal) else Decimal(str(value))
    if not result.is_finite():
        raise ValueError(f"Cannot parse decimal from {value!r}")
    return result


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else parse_decimal(value)


def parse_scope(data: dict[str, Any]) -> ConfigScope:
    return ConfigScope(
        jurisdiction=data["jurisdiction"],
        currency=data["currency"],
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
    )


def parse_tax_table(data: dict[str, Any]) -> WithholdingTaxTable:
    brackets = tuple(
        TaxBracket(
            lower=parse_decimal(b["lower"]),
            upper=_optional_decimal(b.get("upper")),
            base_tax=parse_decimal(b.get("base_tax", 0)),
            rate=parse_decimal(b["rate"]),
        )
        for b in data["brackets"]
    )
    return WithholdingTaxTable(
        brackets=brackets,
        exempt_statuses=frozenset(data.get("exempt_statuses", ["Z"])),
    )


def parse_sss_brackets(data: list[dict[str, Any]]) -> SSSBracketTable:
    return SSSBracketTable(
        brackets=tuple(
            SSSBracket(code=b["code"], upper=_optional_decimal(b.get("upper")))
            for b in data
        )
    )


def parse_loan_policy(data: dict[str, Any]) -> LoanPolicy:
    return LoanPolicy(
        default_annual_rates={
            loan_type: parse_decimal(rate)
            for loan_type, rate in data.get("default_annual_rates", {}).items()
        },
        housing_min_basic_salary=parse_decimal(
            data.get("housing_min_basic_salary", "10000")
        ),
    )


def _decimal_fields(cls, data: dict[str, Any]):
    return cls(**{key: parse_decimal(value) for key, value in data.items()})


def parse_rules(data: dict[str, Any]) -> PayrollRules:
    """Parse a complete rule-set document."""
    return PayrollRules(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        scope=parse_scope(data["scope"]),
        work_schedule=_decimal_fields(WorkSchedule, data.get("work_schedule", {})),
        overtime=_decimal_fields(OvertimeRules, data.get("overtime", {})),
        contributions=_decimal_fields(ContributionRates, data.get("contributions", {})),
        employer_multipliers=_decimal_fields(
            EmployerMultipliers, data.get("employer_multipliers", {})
        ),
        withholding_tax=parse_tax_table(data["withholding_tax"]),
        sss_brackets=parse_sss_brackets(data["sss_brackets"]),
        loan_policy=parse_loan_policy(data.get("loans", {})),
        checksum=compute_checksum(data),
    )


def load_rules(path: Path) -> PayrollRules:
    return parse_rules(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
