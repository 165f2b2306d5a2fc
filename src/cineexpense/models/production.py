"""Production, department, and user models."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cineexpense.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from cineexpense.models.expense import Expense


class Production(Base, TimestampMixin):
    """A film production: the tenant every other record belongs to."""

    __tablename__ = "production"

    production_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="active")
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    budget_alert_threshold: Mapped[Decimal] = mapped_column(
        Numeric(4, 3), nullable=False, default=Decimal("0.80")
    )
    producer_override_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'locked', 'archived')",
            name="production_status_check",
        ),
        CheckConstraint(
            "budget_alert_threshold > 0 AND budget_alert_threshold <= 1",
            name="production_threshold_check",
        ),
    )

    # Relationships
    departments: Mapped[list[Department]] = relationship(back_populates="production")
    users: Mapped[list[AppUser]] = relationship(back_populates="production")


class Department(Base, TimestampMixin):
    """Department within a production, holding the allocated budget."""

    __tablename__ = "department"

    department_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    production_id: Mapped[UUID] = mapped_column(
        ForeignKey("production.production_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    allocated_budget: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("production_id", "name", name="department_production_name_unique"),
        CheckConstraint("allocated_budget >= 0", name="department_budget_non_negative"),
    )

    # Relationships
    production: Mapped[Production] = relationship(back_populates="departments")
    expenses: Mapped[list[Expense]] = relationship(back_populates="department")


class AppUser(Base, TimestampMixin):
    """Production crew member with exactly one role."""

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    production_id: Mapped[UUID] = mapped_column(
        ForeignKey("production.production_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('ADMIN', 'SUPERVISOR', 'MANAGER', 'ACCOUNTS', 'PRODUCER')",
            name="app_user_role_check",
        ),
    )

    # Relationships
    production: Mapped[Production] = relationship(back_populates="users")
