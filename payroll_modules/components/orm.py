"""
Component Catalog ORM Persistence Models (``payroll_modules.components.orm``).

Invariants enforced:
    - ``code`` is unique (uq_salary_component_code).
    - ``reference_component_id`` is a weak reference: set to NULL when the
      referenced component is deleted.
    - One assignment per (employee, component, effective_date)
      (uq_component_assignment_key).
    - System components and closed assignments are frozen by the listeners
      in ``payroll_kernel.db.immutability``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.temporal import EffectiveDatedMixin
from payroll_kernel.db.types import round_money


def _money(value):
    return None if value is None else round_money(value)


class SalaryComponentModel(TrackedBase):
    """A catalog entry describing how a pay element is computed."""

    __tablename__ = "payroll_salary_components"

    __table_args__ = (
        UniqueConstraint("code", name="uq_salary_component_code"),
        Index("idx_salary_component_type", "component_type", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    component_type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    calculation_method: Mapped[str] = mapped_column(String(30), nullable=False)
    default_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    default_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    reference_component_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_salary_components.id", ondelete="SET NULL"),
        nullable=True,
    )
    ot_multiplier: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_system_component: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self):
        from payroll_modules.components.models import (
            CalculationMethod,
            ComponentCategory,
            ComponentType,
            SalaryComponent,
        )
        return SalaryComponent(
            id=self.id,
            code=self.code,
            name=self.name,
            description=self.description,
            component_type=ComponentType(self.component_type),
            category=ComponentCategory(self.category),
            calculation_method=CalculationMethod(self.calculation_method),
            default_amount=_money(self.default_amount),
            default_percentage=self.default_percentage,
            reference_component_id=self.reference_component_id,
            ot_multiplier=self.ot_multiplier,
            is_taxable=bool(self.is_taxable),
            display_order=self.display_order or 0,
            is_active=bool(self.is_active),
            is_system_component=bool(self.is_system_component),
        )

    def __repr__(self) -> str:
        return f"<SalaryComponentModel {self.code} ({self.component_type})>"


class ComponentAssignmentModel(TrackedBase, EffectiveDatedMixin):
    """An effective-dated component assignment for one employee."""

    __tablename__ = "payroll_component_assignments"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "component_id", "effective_date",
            name="uq_component_assignment_key",
        ),
        Index("idx_component_assignment_employee", "employee_id", "is_active"),
    )

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    component_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_salary_components.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    units: Mapped[Decimal | None] = mapped_column(nullable=True)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="per_payroll")
    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    component: Mapped[SalaryComponentModel] = relationship(lazy="joined")

    def to_dto(self):
        from payroll_modules.components.models import (
            AssignmentFrequency,
            ComponentAssignment,
        )
        return ComponentAssignment(
            id=self.id,
            employee_id=self.employee_id,
            component_id=self.component_id,
            component_code=self.component.code,
            amount=round_money(self.amount),
            percentage=self.percentage,
            units=self.units,
            frequency=AssignmentFrequency(self.frequency),
            effective_date=self.effective_date,
            end_date=self.end_date,
            is_active=bool(self.is_active),
            remarks=self.remarks,
        )

    def __repr__(self) -> str:
        return (
            f"<ComponentAssignmentModel {self.employee_id} "
            f"{self.component_id} from {self.effective_date}>"
        )
