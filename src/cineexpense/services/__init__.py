"""Expense workflow services."""

from cineexpense.services.state_machine import ExpenseStateMachine, ProductionStateMachine
from cineexpense.services.expense_service import ExpenseService
from cineexpense.services.payment_service import PaymentService
from cineexpense.services.budget_service import BudgetGuard
from cineexpense.services.production_service import ProductionService

__all__ = [
    "ExpenseStateMachine",
    "ProductionStateMachine",
    "ExpenseService",
    "PaymentService",
    "BudgetGuard",
    "ProductionService",
]
