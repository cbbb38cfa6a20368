"""
Tests for payroll rule loading.

Covers:
- Schema types -- pure construction, validation and immutability
- Loader helpers (parse_decimal, parse_date)
- parse_rules -- dict-to-PayrollRules parsing
- End-to-end (get_active_config) -- shipped default rule set
"""

from __future__ import annotations

import copy
import dataclasses
from datetime import date
from decimal import Decimal

import pytest
import yaml

from payroll_config import _DEFAULT_CONFIG_PATH, get_active_config
from payroll_config.loader import load_yaml_file, parse_date, parse_decimal, parse_rules
from payroll_config.schema import (
    ConfigScope,
    ContributionRates,
    LoanPolicy,
    TaxBracket,
    WithholdingTaxTable,
    WorkSchedule,
)


@pytest.fixture(scope="module")
def default_document() -> dict:
    return load_yaml_file(_DEFAULT_CONFIG_PATH)


# =========================================================================
# 1. Shipped defaults
# =========================================================================


class TestDefaultRuleSet:

    def test_identity(self, rules):
        assert rules.config_id == "PH-PAYROLL-DEFAULT"
        assert rules.version == 1
        assert rules.scope.currency == "PHP"
        assert rules.scope.effective_from == date(2024, 1, 1)
        assert len(rules.checksum) == 64

    def test_rates(self, rules):
        assert rules.work_schedule.working_days_per_month == Decimal("22")
        assert rules.work_schedule.hours_per_day == Decimal("8")
        assert rules.overtime.regular_multiplier == Decimal("1.25")
        assert rules.contributions.sss_rate == Decimal("0.08")
        assert rules.contributions.philhealth_rate == Decimal("0.0275")
        assert rules.contributions.pagibig_default_percent == Decimal("1.00")
        assert rules.employer_multipliers.sss == Decimal("1.45")
        assert rules.employer_multipliers.pagibig == Decimal("0.20")

    def test_brackets(self, rules):
        assert [b.code for b in rules.sss_brackets.brackets] == [
            "E1", "E2", "E3", "E4", "E5", "E6",
        ]
        assert rules.withholding_tax.brackets[-1].rate == Decimal("0.20")
        assert rules.withholding_tax.exempt_statuses == frozenset({"Z"})

    @pytest.mark.parametrize("loan_type, rate", [
        ("sss", "0"),
        ("pagibig", "0"),
        ("company", "1.0"),
        ("emergency", "2.0"),
        ("housing", "0.5"),
        ("unknown", "0"),
    ])
    def test_default_loan_rates(self, rules, loan_type, rate):
        assert rules.loan_policy.default_rate_for(loan_type) == Decimal(rate)

    def test_checksum_is_stable(self, rules):
        assert get_active_config().checksum == rules.checksum

    def test_rules_are_frozen(self, rules):
        with pytest.raises(dataclasses.FrozenInstanceError):
            rules.version = 2  # type: ignore[misc]

    def test_load_from_explicit_path(self, tmp_path, default_document):
        document = copy.deepcopy(default_document)
        document["config_id"] = "PH-PAYROLL-TEST"
        document["overtime"] = {"regular_multiplier": "1.30"}
        path = tmp_path / "rules.yaml"
        path.write_text(yaml.safe_dump(document))

        loaded = get_active_config(path)
        assert loaded.config_id == "PH-PAYROLL-TEST"
        assert loaded.overtime.regular_multiplier == Decimal("1.30")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


# =========================================================================
# 2. Loader helpers
# =========================================================================


class TestParseHelpers:

    @pytest.mark.parametrize("value, expected", [
        ("0.0275", Decimal("0.0275")),
        (22, Decimal("22")),
        (1.25, Decimal("1.25")),
        (Decimal("8"), Decimal("8")),
    ])
    def test_parse_decimal(self, value, expected):
        assert parse_decimal(value) == expected

    @pytest.mark.parametrize("value", [None, True, "NaN", "Infinity"])
    def test_parse_decimal_rejects(self, value):
        with pytest.raises(ValueError):
            parse_decimal(value)

    def test_parse_date(self):
        assert parse_date("2024-01-01") == date(2024, 1, 1)
        assert parse_date(date(2024, 6, 30)) == date(2024, 6, 30)

    def test_parse_date_rejects_numbers(self):
        with pytest.raises(ValueError):
            parse_date(20240101)


# =========================================================================
# 3. Validation
# =========================================================================


class TestValidation:

    def test_bounded_last_tax_bracket(self, default_document):
        document = copy.deepcopy(default_document)
        document["withholding_tax"]["brackets"][-1]["upper"] = "9000000"
        with pytest.raises(ValueError, match="unbounded"):
            parse_rules(document)

    def test_gap_between_tax_brackets(self):
        with pytest.raises(ValueError, match="contiguous"):
            WithholdingTaxTable(brackets=(
                TaxBracket(Decimal("0"), Decimal("250000"), Decimal("0"), Decimal("0")),
                TaxBracket(Decimal("300000"), None, Decimal("0"), Decimal("0.05")),
            ))

    def test_descending_sss_brackets(self, default_document):
        document = copy.deepcopy(default_document)
        document["sss_brackets"][0]["upper"] = "50000"
        with pytest.raises(ValueError, match="ascending"):
            parse_rules(document)

    def test_negative_contribution_rate(self):
        with pytest.raises(ValueError, match="sss_rate"):
            ContributionRates(sss_rate=Decimal("-0.01"))

    def test_negative_loan_rate(self):
        with pytest.raises(ValueError, match="housing"):
            LoanPolicy(default_annual_rates={"housing": Decimal("-1")})

    def test_zero_working_days(self):
        with pytest.raises(ValueError):
            WorkSchedule(working_days_per_month=Decimal("0"))

    def test_scope_window(self):
        with pytest.raises(ValueError):
            ConfigScope("PH", "PHP", date(2024, 6, 1), date(2024, 1, 1))

    def test_missing_required_section(self, default_document):
        document = copy.deepcopy(default_document)
        del document["sss_brackets"]
        with pytest.raises(KeyError):
            parse_rules(document)

    def test_invalid_version(self, default_document):
        document = copy.deepcopy(default_document)
        document["version"] = 0
        with pytest.raises(ValueError):
            parse_rules(document)
