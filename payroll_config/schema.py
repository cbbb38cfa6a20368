"""
Configuration schema (``payroll_config.schema``).

Frozen dataclasses describing the statutory and company payroll rules.
Instances are produced by ``payroll_config.loader`` from YAML and are
immutable at runtime.  Every dataclass validates itself in
``__post_init__`` and raises ``ValueError`` on inconsistent values.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class ConfigScope:
    jurisdiction: str
    currency: str
    effective_from: date
    effective_to: date | None = None

    def __post_init__(self):
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise ValueError("effective_to cannot precede effective_from")


@dataclass(frozen=True)
class WorkSchedule:
    """Divisors used to derive daily and hourly rates."""

    working_days_per_month: Decimal = Decimal("22")
    hours_per_day: Decimal = Decimal("8")

    def __post_init__(self):
        if self.working_days_per_month <= 0:
            raise ValueError("working_days_per_month must be positive")
        if self.hours_per_day <= 0:
            raise ValueError("hours_per_day must be positive")


@dataclass(frozen=True)
class OvertimeRules:
    regular_multiplier: Decimal = Decimal("1.25")

    def __post_init__(self):
        if self.regular_multiplier < 1:
            raise ValueError("regular_multiplier cannot be below 1")


@dataclass(frozen=True)
class ContributionRates:
    """Employee-share government contribution rates, applied to basic salary."""

    sss_rate: Decimal = Decimal("0.08")
    philhealth_rate: Decimal = Decimal("0.0275")
    # Percent, overridable per salary profile
    pagibig_default_percent: Decimal = Decimal("1.00")

    def __post_init__(self):
        for name in ("sss_rate", "philhealth_rate"):
            value = getattr(self, name)
            if value < 0 or value > 1:
                raise ValueError(f"{name} must be between 0 and 1")
        if self.pagibig_default_percent < 0 or self.pagibig_default_percent > 100:
            raise ValueError("pagibig_default_percent must be between 0 and 100")


@dataclass(frozen=True)
class EmployerMultipliers:
    """Employer share expressed as a multiple of the employee share."""

    sss: Decimal = Decimal("1.45")
    philhealth: Decimal = Decimal("1.00")
    pagibig: Decimal = Decimal("0.20")

    def __post_init__(self):
        for name in ("sss", "philhealth", "pagibig"):
            if getattr(self, name) < 0:
                raise ValueError(f"employer multiplier {name} cannot be negative")


@dataclass(frozen=True)
class TaxBracket:
    """
    One annual withholding bracket.

    Tax for annual income ``a`` in this bracket is
    ``base_tax + (a - lower) * rate``.  ``upper`` is inclusive; None means
    unbounded.
    """

    lower: Decimal
    upper: Decimal | None
    base_tax: Decimal
    rate: Decimal

    def __post_init__(self):
        if self.upper is not None and self.upper <= self.lower:
            raise ValueError(f"Tax bracket upper {self.upper} must exceed lower {self.lower}")
        if self.rate < 0 or self.rate > 1:
            raise ValueError("Tax bracket rate must be between 0 and 1")
        if self.base_tax < 0:
            raise ValueError("Tax bracket base_tax cannot be negative")

    def contains(self, annual_income: Decimal) -> bool:
        return self.upper is None or annual_income <= self.upper


@dataclass(frozen=True)
class WithholdingTaxTable:
    brackets: tuple[TaxBracket, ...]
    exempt_statuses: frozenset[str] = frozenset({"Z"})

    def __post_init__(self):
        if not self.brackets:
            raise ValueError("Withholding tax table needs at least one bracket")
        if self.brackets[-1].upper is not None:
            raise ValueError("Last tax bracket must be unbounded")
        for prev, nxt in zip(self.brackets, self.brackets[1:]):
            if prev.upper != nxt.lower:
                raise ValueError(
                    f"Tax brackets must be contiguous: {prev.upper} != {nxt.lower}"
                )


@dataclass(frozen=True)
class SSSBracket:
    """SSS bracket code assigned to salaries strictly below ``upper``."""

    code: str
    upper: Decimal | None


@dataclass(frozen=True)
class SSSBracketTable:
    brackets: tuple[SSSBracket, ...]

    def __post_init__(self):
        if not self.brackets or self.brackets[-1].upper is not None:
            raise ValueError("SSS bracket table must end with an unbounded bracket")
        bounds = [b.upper for b in self.brackets[:-1]]
        if bounds != sorted(bounds):
            raise ValueError("SSS bracket bounds must be ascending")

    @property
    def codes(self) -> frozenset[str]:
        return frozenset(b.code for b in self.brackets)


@dataclass(frozen=True)
class LoanPolicy:
    """Per-type default annual interest (percent) and eligibility thresholds."""

    default_annual_rates: dict[str, Decimal] = field(default_factory=dict)
    housing_min_basic_salary: Decimal = Decimal("10000")

    def __post_init__(self):
        for loan_type, rate in self.default_annual_rates.items():
            if rate < 0:
                raise ValueError(f"Default rate for {loan_type} cannot be negative")

    def default_rate_for(self, loan_type: str) -> Decimal:
        return self.default_annual_rates.get(loan_type, Decimal("0"))


@dataclass(frozen=True)
class PayrollRules:
    """The complete rule set consumed by payroll services."""

    config_id: str
    version: int
    scope: ConfigScope
    work_schedule: WorkSchedule
    overtime: OvertimeRules
    contributions: ContributionRates
    employer_multipliers: EmployerMultipliers
    withholding_tax: WithholdingTaxTable
    sss_brackets: SSSBracketTable
    loan_policy: LoanPolicy
    checksum: str = ""

    def __post_init__(self):
        if self.version < 1:
            raise ValueError("config version must be >= 1")
