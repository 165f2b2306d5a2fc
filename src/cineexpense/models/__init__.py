"""ORM models."""

from cineexpense.models.base import Base, TimestampMixin
from cineexpense.models.production import AppUser, Department, Production
from cineexpense.models.expense import Expense, ExpenseReceipt, ExpenseStatusHistory, Payment
from cineexpense.models.audit import AuditLog, Notification

__all__ = [
    "Base",
    "TimestampMixin",
    "Production",
    "Department",
    "AppUser",
    "Expense",
    "ExpenseReceipt",
    "ExpenseStatusHistory",
    "Payment",
    "AuditLog",
    "Notification",
]
