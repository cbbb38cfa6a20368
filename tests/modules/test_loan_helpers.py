"""
Tests for loan amortization helpers.

Validates:
- Closed-form monthly payment and the zero-rate degenerate case
- Installment schedule shape (term rows, strictly increasing months)
- Zero-rate schedules summing to the principal exactly
- Early-payment coverage
- Origination input validation
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from payroll_kernel.exceptions import ValidationError
from payroll_modules.loans.helpers import (
    add_months,
    apply_early_payment,
    build_installment_schedule,
    calculate_monthly_payment,
    normalize_loan_data,
    schedule_total,
)

principals = st.decimals(
    min_value=Decimal("100.00"),
    max_value=Decimal("5000000.00"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
terms = st.integers(min_value=1, max_value=120)
rates = st.decimals(
    min_value=Decimal("0.0"),
    max_value=Decimal("36.0"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestMonthlyPayment:

    def test_interest_bearing_closed_form(self):
        # 20000 at 12% p.a. over 12 months: r = 0.01
        assert calculate_monthly_payment(Decimal("20000"), Decimal("12"), 12) == Decimal("1776.98")

    def test_zero_rate_divides_principal_evenly(self):
        assert calculate_monthly_payment(Decimal("20000"), Decimal("0"), 10) == Decimal("2000.00")

    def test_result_is_rounded_to_cents(self):
        payment = calculate_monthly_payment(Decimal("10000"), Decimal("0"), 3)
        assert payment == Decimal("3333.33")
        assert payment.as_tuple().exponent == -2

    @pytest.mark.parametrize("principal,rate,term", [
        (Decimal("1000"), Decimal("5"), 0),
        (Decimal("0"), Decimal("5"), 12),
        (Decimal("1000"), Decimal("-1"), 12),
    ])
    def test_invalid_inputs_raise(self, principal, rate, term):
        with pytest.raises(ValueError):
            calculate_monthly_payment(principal, rate, term)

    @given(principal=principals, rate=rates, term=terms)
    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    def test_payments_cover_principal(self, principal, rate, term):
        payment = calculate_monthly_payment(principal, rate, term)
        # Level payments never repay less than the principal (allowing one
        # centavo of rounding per installment)
        assert payment * term >= principal - Decimal("0.01") * term


class TestInstallmentSchedule:

    def test_schedule_has_term_rows_with_increasing_months(self):
        schedule = build_installment_schedule(
            Decimal("20000"), Decimal("12"), 12, date(2024, 1, 15)
        )
        assert len(schedule) == 12
        assert [row.sequence for row in schedule] == list(range(1, 13))
        months = [row.due_month for row in schedule]
        assert months == sorted(months)
        assert len(set(months)) == 12
        assert months[0] == date(2024, 1, 15)
        assert months[-1] == date(2024, 12, 15)

    def test_zero_rate_last_installment_absorbs_remainder(self):
        schedule = build_installment_schedule(
            Decimal("10000"), Decimal("0"), 3, date(2024, 1, 1)
        )
        assert [row.amount for row in schedule] == [
            Decimal("3333.33"), Decimal("3333.33"), Decimal("3333.34"),
        ]
        assert schedule_total(schedule) == Decimal("10000.00")

    def test_interest_bearing_total_exceeds_principal(self):
        schedule = build_installment_schedule(
            Decimal("20000"), Decimal("12"), 12, date(2024, 1, 1)
        )
        assert schedule_total(schedule) == Decimal("21323.76")

    def test_principal_too_small_for_term(self):
        with pytest.raises(ValueError):
            build_installment_schedule(Decimal("0.05"), Decimal("0"), 10, date(2024, 1, 1))

    @given(
        principal=principals,
        term=terms,
        start=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)),
    )
    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    def test_zero_rate_schedule_sums_to_principal(self, principal, term, start):
        schedule = build_installment_schedule(principal, Decimal("0"), term, start)
        assert len(schedule) == term
        assert schedule_total(schedule) == principal
        months = [row.due_month for row in schedule]
        assert all(a < b for a, b in zip(months, months[1:]))


class TestAddMonths:

    def test_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_crosses_year_boundary(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_zero_months_is_identity(self):
        assert add_months(date(2024, 5, 20), 0) == date(2024, 5, 20)


class TestEarlyPaymentCoverage:

    def test_covers_whole_installments_only(self):
        pending = [Decimal("1000"), Decimal("1000"), Decimal("1000")]
        assert apply_early_payment(pending, Decimal("2500")) == 2

    def test_partial_payment_covers_nothing(self):
        assert apply_early_payment([Decimal("1000")], Decimal("999.99")) == 0

    def test_exact_payment_covers_all(self):
        pending = [Decimal("500"), Decimal("500")]
        assert apply_early_payment(pending, Decimal("1000")) == 2

    @given(
        amounts=st.lists(
            st.decimals(min_value=Decimal("1"), max_value=Decimal("10000"), places=2),
            max_size=24,
        ),
        payment=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100000"), places=2),
    )
    @settings(max_examples=200)
    def test_covered_sum_never_exceeds_payment(self, amounts, payment):
        covered = apply_early_payment(amounts, payment)
        assert 0 <= covered <= len(amounts)
        assert sum(amounts[:covered], Decimal("0")) <= payment


class TestNormalizeLoanData:

    def test_valid_input(self):
        clean = normalize_loan_data({
            "loan_type": "company",
            "principal": "15000",
            "term_months": 6,
            "reason": "Tuition",
        })
        assert clean["loan_type"] == "company"
        assert clean["principal"] == Decimal("15000.00")
        assert clean["term_months"] == 6
        assert "annual_interest_rate" not in clean

    def test_collects_every_error(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_loan_data({
                "loan_type": "payday",
                "principal": "-5",
                "term_months": 0,
                "annual_interest_rate": "-1",
                "collateral": "car",
            })
        assert set(exc_info.value.errors) == {
            "loan_type", "principal", "term_months", "annual_interest_rate", "collateral",
        }

    def test_boolean_term_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_loan_data({"loan_type": "sss", "principal": "1000", "term_months": True})
        assert "term_months" in exc_info.value.errors

    def test_float_principal_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_loan_data({"loan_type": "sss", "principal": 1000.5, "term_months": 3})
        assert exc_info.value.errors["principal"] == "must be a decimal amount"
