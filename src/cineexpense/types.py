"""Shared value types: roles, statuses, and the acting identity."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Closed set of production roles."""

    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    MANAGER = "MANAGER"
    ACCOUNTS = "ACCOUNTS"
    PRODUCER = "PRODUCER"


class ExpenseStatus(str, Enum):
    """Expense status values."""

    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    MANAGER_RETURNED = "ManagerReturned"
    MANAGER_REJECTED = "ManagerRejected"
    MANAGER_APPROVED = "ManagerApproved"
    ACCOUNTS_RETURNED = "AccountsReturned"
    ACCOUNTS_APPROVED = "AccountsApproved"
    PAID = "Paid"


class ProductionStatus(str, Enum):
    """Production lifecycle values."""

    ACTIVE = "active"
    LOCKED = "locked"
    ARCHIVED = "archived"


class PaymentMethod(str, Enum):
    """How an expense was paid out."""

    CASH = "cash"
    BANK = "bank"


# Expenses counted against a department's allocation
COMMITTED_STATUSES: frozenset[ExpenseStatus] = frozenset(
    {ExpenseStatus.ACCOUNTS_APPROVED, ExpenseStatus.PAID}
)

# Money columns are Numeric(14, 2): twelve integer digits
MAX_AMOUNT = Decimal("1000000000000")


@dataclass(frozen=True)
class Actor:
    """Identity of the caller, as resolved by the identity provider."""

    user_id: UUID
    role: Role
    production_id: UUID

    def has_role(self, role: Role) -> bool:
        """Check whether the actor holds the given role."""
        return self.role == role
