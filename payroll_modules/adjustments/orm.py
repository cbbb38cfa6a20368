"""
Recurring Adjustment ORM Persistence Model (``payroll_modules.adjustments.orm``).

Allowances and deductions share one table, discriminated by ``kind``.

Invariants enforced:
    - At most one active row per (employee, kind, adjustment_type),
      maintained by ``RecurringAdjustmentService`` through
      ``TemporalRecordService.supersede``.
    - Closed rows are frozen by ``payroll_kernel.db.immutability``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.temporal import EffectiveDatedMixin
from payroll_kernel.db.types import round_money


class RecurringAdjustmentModel(TrackedBase, EffectiveDatedMixin):

    __tablename__ = "payroll_recurring_adjustments"

    __table_args__ = (
        Index(
            "idx_recurring_adjustment_key",
            "employee_id", "kind", "adjustment_type", "is_active",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def to_dto(self):
        from payroll_modules.adjustments.models import AdjustmentKind, RecurringAdjustment

        return RecurringAdjustment(
            id=self.id,
            employee_id=self.employee_id,
            kind=AdjustmentKind(self.kind),
            adjustment_type=self.adjustment_type,
            amount=round_money(self.amount),
            effective_date=self.effective_date,
            end_date=self.end_date,
            is_active=bool(self.is_active),
            description=self.description,
        )

    def __repr__(self) -> str:
        return (
            f"<RecurringAdjustmentModel {self.kind}:{self.adjustment_type} "
            f"{self.employee_id} {self.amount}>"
        )
