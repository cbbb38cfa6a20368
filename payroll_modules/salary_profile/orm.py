"""
Salary Profile ORM Persistence Model (``payroll_modules.salary_profile.orm``).

Invariants enforced:
    - At most one row per employee with ``is_active`` and no ``end_date``
      (maintained by ``SalaryProfileService`` through
      ``TemporalRecordService.supersede``).
    - Closed rows are frozen by the listeners in
      ``payroll_kernel.db.immutability``.
    - Enum fields stored as their ``.value`` string.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.temporal import EffectiveDatedMixin
from payroll_kernel.db.types import round_money


class SalaryProfileModel(TrackedBase, EffectiveDatedMixin):
    """One effective-dated version of an employee's salary setup."""

    __tablename__ = "payroll_salary_profiles"

    __table_args__ = (
        Index("idx_salary_profile_employee", "employee_id", "is_active"),
        Index("idx_salary_profile_effective", "employee_id", "effective_date"),
    )

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    salary_type: Mapped[str] = mapped_column(String(20), nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    daily_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    tax_status: Mapped[str] = mapped_column(String(5), nullable=False)

    sss_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    philhealth_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    pagibig_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    tin_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sss_bracket: Mapped[str | None] = mapped_column(String(5), nullable=True)
    rdo_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    withholding_tax_exemption: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_tax_exempt: Mapped[bool] = mapped_column(Boolean, default=False)
    is_substituted_filing: Mapped[bool] = mapped_column(Boolean, default=False)
    is_sss_voluntary: Mapped[bool] = mapped_column(Boolean, default=False)
    philhealth_is_indigent: Mapped[bool] = mapped_column(Boolean, default=False)
    pagibig_employee_rate: Mapped[Decimal] = mapped_column(default=Decimal("1.00"))

    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    bank_account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_account_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    is_entitled_to_rice: Mapped[bool] = mapped_column(Boolean, default=False)
    is_entitled_to_uniform: Mapped[bool] = mapped_column(Boolean, default=False)
    is_entitled_to_laundry: Mapped[bool] = mapped_column(Boolean, default=False)
    is_entitled_to_medical: Mapped[bool] = mapped_column(Boolean, default=False)

    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def payroll_fields(self) -> dict:
        """Column values a superseding version carries forward."""
        from payroll_modules.salary_profile.helpers import PROFILE_FIELDS

        return {name: getattr(self, name) for name in PROFILE_FIELDS if name != "effective_date"}

    def to_dto(self):
        from payroll_modules.salary_profile.models import (
            PaymentMethod,
            SalaryProfile,
            SalaryType,
            TaxStatus,
        )

        def money(value):
            return None if value is None else round_money(value)

        return SalaryProfile(
            id=self.id,
            employee_id=self.employee_id,
            salary_type=SalaryType(self.salary_type),
            basic_salary=round_money(self.basic_salary),
            daily_rate=money(self.daily_rate),
            hourly_rate=money(self.hourly_rate),
            payment_method=PaymentMethod(self.payment_method),
            tax_status=TaxStatus(self.tax_status),
            effective_date=self.effective_date,
            end_date=self.end_date,
            is_active=bool(self.is_active),
            sss_number=self.sss_number,
            philhealth_number=self.philhealth_number,
            pagibig_number=self.pagibig_number,
            tin_number=self.tin_number,
            sss_bracket=self.sss_bracket,
            rdo_code=self.rdo_code,
            withholding_tax_exemption=money(self.withholding_tax_exemption),
            is_tax_exempt=bool(self.is_tax_exempt),
            is_substituted_filing=bool(self.is_substituted_filing),
            is_sss_voluntary=bool(self.is_sss_voluntary),
            philhealth_is_indigent=bool(self.philhealth_is_indigent),
            pagibig_employee_rate=round_money(self.pagibig_employee_rate),
            bank_name=self.bank_name,
            bank_code=self.bank_code,
            bank_account_number=self.bank_account_number,
            bank_account_name=self.bank_account_name,
            is_entitled_to_rice=bool(self.is_entitled_to_rice),
            is_entitled_to_uniform=bool(self.is_entitled_to_uniform),
            is_entitled_to_laundry=bool(self.is_entitled_to_laundry),
            is_entitled_to_medical=bool(self.is_entitled_to_medical),
            remarks=self.remarks,
        )

    def __repr__(self) -> str:
        return (
            f"<SalaryProfileModel {self.employee_id} {self.salary_type} "
            f"{self.basic_salary} from {self.effective_date}>"
        )
