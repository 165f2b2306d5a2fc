"""Expense service - main orchestrator for the approval pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock, today
from cineexpense.config import get_settings
from cineexpense.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OverBudgetError,
    WorkflowError,
)
from cineexpense.models import (
    Department,
    Expense,
    ExpenseReceipt,
    ExpenseStatusHistory,
    Production,
)
from cineexpense.services.audit_service import AuditService
from cineexpense.services.budget_service import BudgetCheck, BudgetGuard, BudgetUtilization
from cineexpense.services.lifecycle_gate import ProductionLifecycleGate
from cineexpense.services.notification_service import NotificationService
from cineexpense.services.state_machine import ExpenseStateMachine
from cineexpense.storage import BlobStore
from cineexpense.types import MAX_AMOUNT, Actor, ExpenseStatus, Role

logger = logging.getLogger(__name__)

PRODUCER_OVERRIDE_ACTION = "budget:producer-override"


@dataclass(frozen=True)
class ExpenseCreation:
    """A newly created draft plus the duplicate hint shown to the submitter."""

    expense: Expense
    duplicate_warning: bool


@dataclass(frozen=True)
class ApprovalPreview:
    """What a manager sees before approving."""

    expense_id: UUID
    current: BudgetUtilization
    check: BudgetCheck


class ExpenseService:
    """Service for managing the expense lifecycle.

    Operations:
    - create_expense / update_expense: supervisor-owned drafts
    - upload_receipt: attach a receipt while the expense is editable
    - transition: the single write path for status, with the named
      actions (submit, manager_*, accounts_*) as thin wrappers
    - producer_override: budget-blocked approval forced through by a producer

    Every mutating call runs inside the caller's unit of work: the
    production gate first, then a row lock on the expense, then the
    preconditions, then the writes. A refusal raises before anything is
    written; the caller's rollback discards partial writes on any other
    failure.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        blob_store: BlobStore | None = None,
        override_reason_min_length: int | None = None,
        lock_department: bool | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.blob_store = blob_store
        self.override_reason_min_length = max(
            1,
            override_reason_min_length
            if override_reason_min_length is not None
            else get_settings().override_reason_min_length,
        )
        self.gate = ProductionLifecycleGate(session)
        self.budget_guard = BudgetGuard(session, lock_department=lock_department)
        self.audit = AuditService(session, self.clock)
        self.notifications = NotificationService(session, self.clock)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_expense(self, actor: Actor, expense_id: UUID) -> Expense:
        """Load an expense from the actor's production."""
        result = await self.session.execute(
            select(Expense).where(
                Expense.expense_id == expense_id,
                Expense.production_id == actor.production_id,
            )
        )
        expense = result.scalar_one_or_none()
        if expense is None:
            raise NotFoundError("Expense not found", {"expense_id": str(expense_id)})
        return expense

    async def list_expenses(
        self,
        actor: Actor,
        status: str | None = None,
        department_id: UUID | None = None,
        submitted_by: UUID | None = None,
    ) -> list[Expense]:
        query = select(Expense).where(Expense.production_id == actor.production_id)
        if status:
            query = query.where(Expense.status == self._coerce_status(status).value)
        if department_id:
            query = query.where(Expense.department_id == department_id)
        if submitted_by:
            query = query.where(Expense.submitted_by == submitted_by)
        result = await self.session.execute(query.order_by(Expense.created_at.desc()))
        return list(result.scalars().all())

    async def list_receipts(self, actor: Actor, expense_id: UUID) -> list[ExpenseReceipt]:
        await self.get_expense(actor, expense_id)
        result = await self.session.execute(
            select(ExpenseReceipt)
            .where(ExpenseReceipt.expense_id == expense_id)
            .order_by(ExpenseReceipt.uploaded_at)
        )
        return list(result.scalars().all())

    async def get_history(self, actor: Actor, expense_id: UUID) -> list[ExpenseStatusHistory]:
        """Status history in the order the transitions happened."""
        await self.get_expense(actor, expense_id)
        result = await self.session.execute(
            select(ExpenseStatusHistory)
            .where(ExpenseStatusHistory.expense_id == expense_id)
            .order_by(ExpenseStatusHistory.performed_at, ExpenseStatusHistory.history_id)
        )
        return list(result.scalars().all())

    async def budget_check(self, actor: Actor, expense_id: UUID) -> ApprovalPreview:
        """Pre-approval warning: utilization now and after approving this expense."""
        expense = await self.get_expense(actor, expense_id)
        current = await self.budget_guard.get_utilization(
            expense.department_id, expense.production_id
        )
        check = await self.budget_guard.check(
            expense.department_id,
            expense.production_id,
            expense.amount,
            exclude_expense_id=expense.expense_id,
        )
        return ApprovalPreview(expense_id=expense.expense_id, current=current, check=check)

    @staticmethod
    def is_editable(expense: Expense) -> bool:
        """Check if the submitter may still change the expense."""
        return ExpenseStateMachine.is_editable(expense.status)

    # ------------------------------------------------------------------
    # Draft management
    # ------------------------------------------------------------------

    async def create_expense(
        self,
        actor: Actor,
        *,
        department_id: UUID,
        amount: Decimal,
        expense_date: date,
        description: str,
        currency: str | None = None,
    ) -> ExpenseCreation:
        """Create a draft expense owned by the acting supervisor."""
        await self.gate.assert_mutable(actor.production_id)
        if not actor.has_role(Role.SUPERVISOR):
            raise ForbiddenError("Role SUPERVISOR is required to create expenses")

        amount = self._validate_amount(amount)
        self._validate_expense_date(expense_date)
        description = self._validate_description(description)
        await self._load_department(actor, department_id)

        if currency is None:
            currency = await self.session.scalar(
                select(Production.base_currency).where(
                    Production.production_id == actor.production_id
                )
            )
        elif len(currency) != 3:
            raise BadRequestError("currency must be a 3-letter ISO code")

        duplicate_warning = await self._has_duplicate(
            actor.production_id, department_id, amount, expense_date
        )

        now = self.clock.now()
        expense = Expense(
            production_id=actor.production_id,
            department_id=department_id,
            submitted_by=actor.user_id,
            amount=amount,
            currency=currency.upper(),
            expense_date=expense_date,
            description=description,
            status=ExpenseStatus.DRAFT.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(expense)
        await self.session.flush()

        await self.audit.log(
            production_id=actor.production_id,
            entity_type="expense",
            entity_id=expense.expense_id,
            action="created",
            performed_by=actor.user_id,
            metadata={"amount": str(amount), "duplicate_warning": duplicate_warning},
        )
        if duplicate_warning:
            logger.info(
                "expense %s looks like a duplicate (department %s, %s on %s)",
                expense.expense_id,
                department_id,
                amount,
                expense_date,
            )
        return ExpenseCreation(expense=expense, duplicate_warning=duplicate_warning)

    async def update_expense(
        self,
        actor: Actor,
        expense_id: UUID,
        *,
        department_id: UUID | None = None,
        amount: Decimal | None = None,
        expense_date: date | None = None,
        description: str | None = None,
    ) -> Expense:
        """Edit a draft-like expense. Owner only, editable states only."""
        await self.gate.assert_mutable(actor.production_id)
        expense = await self._lock_expense(actor, expense_id)
        self._assert_owner_can_edit(actor, expense)

        changes: dict[str, Any] = {}
        if department_id is not None and department_id != expense.department_id:
            await self._load_department(actor, department_id)
            changes["department_id"] = department_id
        if amount is not None:
            changes["amount"] = self._validate_amount(amount)
        if expense_date is not None:
            self._validate_expense_date(expense_date)
            changes["expense_date"] = expense_date
        if description is not None:
            changes["description"] = self._validate_description(description)

        for field_name, value in changes.items():
            setattr(expense, field_name, value)
        if changes:
            expense.updated_at = self.clock.now()
            await self.session.flush()
        return expense

    async def upload_receipt(
        self,
        actor: Actor,
        expense_id: UUID,
        *,
        filename: str,
        content: bytes,
        content_type: str | None = None,
    ) -> ExpenseReceipt:
        """Store a receipt file and attach it to the expense."""
        await self.gate.assert_mutable(actor.production_id)
        expense = await self._lock_expense(actor, expense_id)
        self._assert_owner_can_edit(actor, expense)

        if not content:
            raise BadRequestError("Receipt file is empty")
        if self.blob_store is None:
            raise RuntimeError("No blob store configured for receipt uploads")

        reference = self.blob_store.reference_for(
            production_id=expense.production_id,
            expense_id=expense.expense_id,
            filename=filename,
        )
        receipt = ExpenseReceipt(
            expense_id=expense.expense_id,
            file_path=reference,
            original_filename=filename,
            content_type=content_type,
            uploaded_by=actor.user_id,
            uploaded_at=self.clock.now(),
        )
        self.session.add(receipt)
        await self.session.flush()
        await self.blob_store.put(reference, content, content_type)
        return receipt

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        actor: Actor,
        expense_id: UUID,
        to_status: str,
        comment: str | None = None,
    ) -> Expense:
        """Move an expense to a new status.

        Preconditions, first failure wins:
        production gate, table membership, mandatory comment, role,
        receipt + ownership (submission), budget (manager approval).

        Raises WorkflowError subclasses; nothing is written on refusal.
        """
        target = self._coerce_status(to_status)
        try:
            await self.gate.assert_mutable(actor.production_id)
            expense = await self._lock_expense(actor, expense_id)
            await self._validate_request(expense, actor, target, comment)

            if target == ExpenseStatus.PAID:
                raise BadRequestError(
                    "Payment details are required to mark an expense paid",
                    {"expense_id": str(expense_id)},
                )
            if target == ExpenseStatus.MANAGER_APPROVED:
                await self._enforce_budget(expense)
        except WorkflowError as exc:
            logger.info(
                "refused expense %s -> %s by %s: %s %s",
                expense_id,
                target.value,
                actor.user_id,
                exc.code,
                exc.message,
            )
            raise

        return await self.apply_transition(expense, actor, target, comment)

    async def submit(self, actor: Actor, expense_id: UUID) -> Expense:
        return await self.transition(actor, expense_id, ExpenseStatus.SUBMITTED)

    async def manager_approve(self, actor: Actor, expense_id: UUID, comment: str | None = None) -> Expense:
        return await self.transition(actor, expense_id, ExpenseStatus.MANAGER_APPROVED, comment)

    async def manager_return(self, actor: Actor, expense_id: UUID, comment: str | None) -> Expense:
        return await self.transition(actor, expense_id, ExpenseStatus.MANAGER_RETURNED, comment)

    async def manager_reject(self, actor: Actor, expense_id: UUID, comment: str | None) -> Expense:
        return await self.transition(actor, expense_id, ExpenseStatus.MANAGER_REJECTED, comment)

    async def accounts_approve(self, actor: Actor, expense_id: UUID, comment: str | None = None) -> Expense:
        return await self.transition(actor, expense_id, ExpenseStatus.ACCOUNTS_APPROVED, comment)

    async def accounts_return(self, actor: Actor, expense_id: UUID, comment: str | None) -> Expense:
        return await self.transition(actor, expense_id, ExpenseStatus.ACCOUNTS_RETURNED, comment)

    async def producer_override(self, actor: Actor, expense_id: UUID, reason: str | None) -> Expense:
        """Force a budget-blocked approval through on a producer's authority.

        Runs the regular Submitted → ManagerApproved transition with the
        manager-role check and the budget gate suppressed. The expense must
        be Submitted, as the transition table already demands.
        """
        target = ExpenseStatus.MANAGER_APPROVED
        justification = (reason or "").strip()
        try:
            await self.gate.assert_mutable(actor.production_id)
            if not actor.has_role(Role.PRODUCER):
                raise ForbiddenError("Role PRODUCER is required for a budget override")
            if not justification:
                raise BadRequestError("An override reason is required")
            if len(justification) < self.override_reason_min_length:
                raise BadRequestError(
                    f"Override reason must be at least "
                    f"{self.override_reason_min_length} characters",
                    {"min_length": self.override_reason_min_length},
                )

            enabled = await self.session.scalar(
                select(Production.producer_override_enabled).where(
                    Production.production_id == actor.production_id
                )
            )
            if not enabled:
                raise ForbiddenError("Producer override is disabled for this production")

            expense = await self._lock_expense(actor, expense_id)
            await self._validate_request(expense, actor, target, justification, enforce_role=False)
        except WorkflowError as exc:
            logger.info(
                "refused producer override of expense %s by %s: %s %s",
                expense_id,
                actor.user_id,
                exc.code,
                exc.message,
            )
            raise

        check = await self.budget_guard.check(
            expense.department_id,
            expense.production_id,
            expense.amount,
            exclude_expense_id=expense.expense_id,
        )
        await self.audit.log(
            production_id=expense.production_id,
            entity_type="expense",
            entity_id=expense.expense_id,
            action=PRODUCER_OVERRIDE_ACTION,
            performed_by=actor.user_id,
            metadata={
                "reason": justification,
                "amount": str(expense.amount),
                "committed": str(check.committed),
                "allocated": str(check.allocated),
                "would_exceed": check.would_exceed,
            },
        )
        logger.warning(
            "producer override on expense %s by %s (projected %s of %s)",
            expense.expense_id,
            actor.user_id,
            check.projected,
            check.allocated,
        )
        return await self.apply_transition(
            expense,
            actor,
            target,
            justification,
            audit_metadata={"acting_role": Role.MANAGER.value, "override": True},
        )

    async def apply_transition(
        self,
        expense: Expense,
        actor: Actor,
        target: ExpenseStatus,
        comment: str | None = None,
        audit_metadata: dict[str, Any] | None = None,
    ) -> Expense:
        """Write the status, one history row, one audit entry, notifications.

        Callers must already hold the row lock and have validated the
        request; PaymentService layers its payment record on top of this.
        """
        from_status = expense.status
        now = self.clock.now()
        note = comment.strip() if comment and comment.strip() else None

        expense.status = target.value
        expense.updated_at = now

        self.session.add(
            ExpenseStatusHistory(
                expense_id=expense.expense_id,
                from_status=from_status,
                to_status=target.value,
                comment=note,
                performed_by=actor.user_id,
                performed_at=now,
            )
        )
        await self.audit.log(
            production_id=expense.production_id,
            entity_type="expense",
            entity_id=expense.expense_id,
            action=f"status:{from_status}->{target.value}",
            performed_by=actor.user_id,
            metadata=audit_metadata,
        )
        await self.notifications.notify_status_change(
            expense, from_status, target.value, actor.user_id, note
        )
        await self.session.flush()

        logger.info(
            "expense %s %s -> %s by %s", expense.expense_id, from_status, target.value, actor.user_id
        )
        return expense

    async def lock_expense(self, actor: Actor, expense_id: UUID) -> Expense:
        """Load the expense with an exclusive row lock for this transaction."""
        return await self._lock_expense(actor, expense_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lock_expense(self, actor: Actor, expense_id: UUID) -> Expense:
        # populate_existing: re-read the row after the lock is granted, so a
        # transition committed meanwhile is seen instead of a stale copy
        result = await self.session.execute(
            select(Expense)
            .where(
                Expense.expense_id == expense_id,
                Expense.production_id == actor.production_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        expense = result.scalar_one_or_none()
        if expense is None:
            raise NotFoundError("Expense not found", {"expense_id": str(expense_id)})
        return expense

    async def _validate_request(
        self,
        expense: Expense,
        actor: Actor,
        target: ExpenseStatus,
        comment: str | None,
        enforce_role: bool = True,
    ) -> None:
        receipt_count = 0
        if target == ExpenseStatus.SUBMITTED:
            receipt_count = await self.session.scalar(
                select(func.count())
                .select_from(ExpenseReceipt)
                .where(ExpenseReceipt.expense_id == expense.expense_id)
            ) or 0

        ExpenseStateMachine.validate_request(
            current_status=expense.status,
            to_status=target,
            actor=actor,
            submitted_by=expense.submitted_by,
            comment=comment,
            receipt_count=receipt_count,
            enforce_role=enforce_role,
        )

    async def _enforce_budget(self, expense: Expense) -> None:
        check = await self.budget_guard.check(
            expense.department_id,
            expense.production_id,
            expense.amount,
            exclude_expense_id=expense.expense_id,
        )
        if check.would_exceed:
            raise OverBudgetError(check.committed, check.candidate, check.allocated)

    async def _load_department(self, actor: Actor, department_id: UUID) -> Department:
        result = await self.session.execute(
            select(Department).where(
                Department.department_id == department_id,
                Department.production_id == actor.production_id,
            )
        )
        department = result.scalar_one_or_none()
        if department is None:
            raise NotFoundError("Department not found", {"department_id": str(department_id)})
        return department

    async def _has_duplicate(
        self,
        production_id: UUID,
        department_id: UUID,
        amount: Decimal,
        expense_date: date,
    ) -> bool:
        """Same department, amount, and date on an expense that was not rejected."""
        count = await self.session.scalar(
            select(func.count())
            .select_from(Expense)
            .where(
                Expense.production_id == production_id,
                Expense.department_id == department_id,
                Expense.amount == amount,
                Expense.expense_date == expense_date,
                Expense.status != ExpenseStatus.MANAGER_REJECTED.value,
            )
        )
        return bool(count)

    def _assert_owner_can_edit(self, actor: Actor, expense: Expense) -> None:
        if expense.submitted_by != actor.user_id:
            raise ForbiddenError("Only the original submitter may modify this expense")
        if not ExpenseStateMachine.is_editable(expense.status):
            raise ConflictError(
                f"Expense in status '{expense.status}' is not editable",
                {"status": expense.status},
            )

    def _validate_amount(self, amount: Decimal) -> Decimal:
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise BadRequestError(f"Invalid amount '{amount}'")
        if not value.is_finite() or value <= 0:
            raise BadRequestError("Amount must be greater than zero", {"amount": str(value)})
        if value >= MAX_AMOUNT:
            raise BadRequestError(
                f"Amount must be less than {MAX_AMOUNT}", {"amount": str(value)}
            )
        if value.as_tuple().exponent < -2:
            raise BadRequestError(
                "Amount cannot have more than two decimal places", {"amount": str(value)}
            )
        return value

    def _validate_expense_date(self, expense_date: date) -> None:
        if expense_date > today(self.clock):
            raise BadRequestError(
                "Expense date cannot be in the future",
                {"expense_date": expense_date.isoformat()},
            )

    @staticmethod
    def _validate_description(description: str) -> str:
        if not description or not description.strip():
            raise BadRequestError("Description is required")
        return description.strip()

    @staticmethod
    def _coerce_status(status: str) -> ExpenseStatus:
        try:
            return ExpenseStatus(status)
        except ValueError:
            raise BadRequestError(f"Unknown expense status '{status}'")
