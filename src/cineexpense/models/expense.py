"""Expense, receipt, status history, and payment models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cineexpense.models.base import Base

if TYPE_CHECKING:
    from cineexpense.models.production import Department


class Expense(Base):
    """An expense claim moving through the approval pipeline.

    Never deleted: it is a financial record. Status is only ever written by
    ExpenseService.transition and PaymentService.mark_paid.
    """

    __tablename__ = "expense"

    expense_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    production_id: Mapped[UUID] = mapped_column(
        ForeignKey("production.production_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("department.department_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    submitted_by: Mapped[UUID] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="expense_amount_positive"),
        CheckConstraint(
            "status IN ('Draft', 'Submitted', 'ManagerReturned', 'ManagerRejected', "
            "'ManagerApproved', 'AccountsReturned', 'AccountsApproved', 'Paid')",
            name="expense_status_check",
        ),
    )

    # Relationships
    department: Mapped[Department] = relationship(back_populates="expenses")
    receipts: Mapped[list[ExpenseReceipt]] = relationship(
        back_populates="expense", cascade="all, delete-orphan"
    )
    history: Mapped[list[ExpenseStatusHistory]] = relationship(
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="[ExpenseStatusHistory.performed_at, ExpenseStatusHistory.history_id]",
    )
    payment: Mapped[Payment | None] = relationship(back_populates="expense")


class ExpenseReceipt(Base):
    """Receipt attached to an expense; the file itself lives in the blob store."""

    __tablename__ = "expense_receipt"

    receipt_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    expense_id: Mapped[UUID] = mapped_column(
        ForeignKey("expense.expense_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path: Mapped[str] = mapped_column(String, nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String, nullable=True)
    content_type: Mapped[str | None] = mapped_column(String, nullable=True)
    uploaded_by: Mapped[UUID] = mapped_column(nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    expense: Mapped[Expense] = relationship(back_populates="receipts")


class ExpenseStatusHistory(Base):
    """Append-only record of one status transition."""

    __tablename__ = "expense_status_history"

    history_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    expense_id: Mapped[UUID] = mapped_column(
        ForeignKey("expense.expense_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    performed_by: Mapped[UUID] = mapped_column(nullable=False)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    expense: Mapped[Expense] = relationship(back_populates="history")


class Payment(Base):
    """Immutable payout record; at most one per expense."""

    __tablename__ = "payment"

    payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    expense_id: Mapped[UUID] = mapped_column(
        ForeignKey("expense.expense_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    payment_method: Mapped[str] = mapped_column(String(8), nullable=False)
    reference_number: Mapped[str] = mapped_column(Text, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("payment_method IN ('cash', 'bank')", name="payment_method_check"),
    )

    # Relationships
    expense: Mapped[Expense] = relationship(back_populates="payment")
