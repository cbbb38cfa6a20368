"""
Loan ORM Persistence Models (``payroll_modules.loans.orm``).

Invariants enforced:
    - A loan and its installment schedule are inserted in the same
      transaction by ``LoanLedgerService.create_loan``.
    - One installment per (loan, sequence) (uq_loan_installment_sequence).
    - Processed installments and closed loans (completed / cancelled /
      restructured) are frozen by ``payroll_kernel.db.immutability``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.types import round_money


class LoanModel(TrackedBase):

    __tablename__ = "payroll_loans"

    __table_args__ = (
        Index("idx_loan_employee_status", "employee_id", "status"),
    )

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    loan_type: Mapped[str] = mapped_column(String(20), nullable=False)
    principal: Mapped[Decimal] = mapped_column(nullable=False)
    # Percent per annum
    annual_interest_rate: Mapped[Decimal] = mapped_column(nullable=False)
    term_months: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_payment: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    installments: Mapped[list["LoanInstallmentModel"]] = relationship(
        back_populates="loan",
        order_by="LoanInstallmentModel.sequence",
    )

    def to_dto(self):
        from payroll_modules.loans.models import Loan, LoanStatus, LoanType

        return Loan(
            id=self.id,
            employee_id=self.employee_id,
            loan_type=LoanType(self.loan_type),
            principal=round_money(self.principal),
            annual_interest_rate=self.annual_interest_rate,
            term_months=self.term_months,
            monthly_payment=round_money(self.monthly_payment),
            total_amount=round_money(self.total_amount),
            start_date=self.start_date,
            expected_end_date=self.expected_end_date,
            end_date=self.end_date,
            balance=round_money(self.balance),
            status=LoanStatus(self.status),
            reason=self.reason,
            remarks=self.remarks,
        )

    def __repr__(self) -> str:
        return f"<LoanModel {self.loan_type} {self.employee_id} {self.balance}/{self.principal}>"


class LoanInstallmentModel(TrackedBase):

    __tablename__ = "payroll_loan_installments"

    __table_args__ = (
        UniqueConstraint("loan_id", "sequence", name="uq_loan_installment_sequence"),
        Index("idx_loan_installment_pending", "loan_id", "status", "due_month"),
        Index("idx_loan_installment_employee", "employee_id", "status"),
    )

    loan_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_loans.id"), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    due_month: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    processed_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    loan: Mapped[LoanModel] = relationship(back_populates="installments")

    def to_dto(self):
        from payroll_modules.loans.models import InstallmentStatus, LoanInstallment

        return LoanInstallment(
            id=self.id,
            loan_id=self.loan_id,
            employee_id=self.employee_id,
            sequence=self.sequence,
            due_month=self.due_month,
            amount=round_money(self.amount),
            status=InstallmentStatus(self.status),
            processed_date=self.processed_date,
        )

    def __repr__(self) -> str:
        return f"<LoanInstallmentModel {self.loan_id} #{self.sequence} {self.status}>"
