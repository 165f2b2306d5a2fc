"""Payment recording service."""

from __future__ import annotations

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock, today
from cineexpense.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    WorkflowError,
)
from cineexpense.models import Expense, Payment
from cineexpense.services.expense_service import ExpenseService
from cineexpense.services.lifecycle_gate import ProductionLifecycleGate
from cineexpense.storage import BlobStore
from cineexpense.types import Actor, ExpenseStatus, PaymentMethod, Role

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for marking approved expenses as paid.

    A payment is the AccountsApproved → Paid transition plus an immutable
    payment record, written in the same unit of work.

    Constraints:
    - One payment per expense (unique on expense_id)
    - Only AccountsApproved expenses can be paid
    - ACCOUNTS role only
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        blob_store: BlobStore | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.gate = ProductionLifecycleGate(session)
        self.expenses = ExpenseService(session, self.clock, blob_store)

    async def mark_paid(
        self,
        actor: Actor,
        expense_id: UUID,
        *,
        payment_method: str,
        reference_number: str,
        payment_date: date,
    ) -> Payment:
        """Record the payout of an expense.

        Args:
            actor: Must hold ACCOUNTS
            expense_id: Expense in AccountsApproved
            payment_method: "cash" or "bank"
            reference_number: Bank or voucher reference, non-empty
            payment_date: Not in the future

        Returns:
            The created Payment

        Raises:
            InvalidTransitionError: If the expense is not AccountsApproved
            ConflictError: If a payment already exists for the expense
        """
        try:
            await self.gate.assert_mutable(actor.production_id)
            if not actor.has_role(Role.ACCOUNTS):
                raise ForbiddenError("Role ACCOUNTS is required to mark expenses paid")

            expense = await self.expenses.lock_expense(actor, expense_id)
            if expense.status != ExpenseStatus.ACCOUNTS_APPROVED.value:
                raise InvalidTransitionError(
                    expense.status,
                    ExpenseStatus.PAID,
                    "only AccountsApproved expenses can be paid",
                )

            method = self._validate_method(payment_method)
            reference = (reference_number or "").strip()
            if not reference:
                raise BadRequestError("reference_number is required")
            if payment_date > today(self.clock):
                raise BadRequestError(
                    "Payment date cannot be in the future",
                    {"payment_date": payment_date.isoformat()},
                )
            await self._assert_unpaid(expense)
        except WorkflowError as exc:
            logger.info(
                "refused payment of expense %s by %s: %s %s",
                expense_id,
                actor.user_id,
                exc.code,
                exc.message,
            )
            raise

        payment = Payment(
            expense_id=expense.expense_id,
            payment_method=method.value,
            reference_number=reference,
            payment_date=payment_date,
            created_by=actor.user_id,
            created_at=self.clock.now(),
        )
        self.session.add(payment)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Expense already has a payment", {"expense_id": str(expense_id)}
            ) from exc

        await self.expenses.apply_transition(
            expense,
            actor,
            ExpenseStatus.PAID,
            audit_metadata={
                "payment_id": str(payment.payment_id),
                "payment_method": method.value,
                "reference_number": reference,
            },
        )
        return payment

    async def get_payment(self, actor: Actor, expense_id: UUID) -> Payment | None:
        expense = await self.expenses.get_expense(actor, expense_id)
        result = await self.session.execute(
            select(Payment).where(Payment.expense_id == expense.expense_id)
        )
        return result.scalar_one_or_none()

    async def _assert_unpaid(self, expense: Expense) -> None:
        existing = await self.session.scalar(
            select(Payment.payment_id).where(Payment.expense_id == expense.expense_id)
        )
        if existing is not None:
            raise ConflictError(
                "Expense already has a payment",
                {"expense_id": str(expense.expense_id), "payment_id": str(existing)},
            )

    @staticmethod
    def _validate_method(payment_method: str) -> PaymentMethod:
        try:
            return PaymentMethod(payment_method)
        except ValueError:
            raise BadRequestError(
                f"Unknown payment method '{payment_method}'",
                {"allowed": [m.value for m in PaymentMethod]},
            )
