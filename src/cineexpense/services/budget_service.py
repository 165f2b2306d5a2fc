"""Department budget guard.

Sums committed spend (AccountsApproved + Paid) for a department and tests
a candidate amount against the allocation. The guard runs in the caller's
session, so the sum and the status write that depends on it share one
transaction.

Known race: only the expense row being transitioned is locked. Two
approvals of *different* expenses in the same department can each read a
sum that misses the other. Set ``lock_department`` to serialise them on
the department row instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.calculators import is_over_budget, is_threshold_breached, utilization
from cineexpense.config import get_settings
from cineexpense.errors import NotFoundError
from cineexpense.models import Department, Expense, Production
from cineexpense.types import COMMITTED_STATUSES


@dataclass(frozen=True)
class BudgetUtilization:
    """Committed spend against a department allocation."""

    department_id: UUID
    allocated: Decimal
    committed: Decimal
    utilization: Decimal
    is_threshold: bool


@dataclass(frozen=True)
class BudgetCheck:
    """Outcome of testing one candidate amount against the allocation."""

    department_id: UUID
    allocated: Decimal
    committed: Decimal
    candidate: Decimal
    would_exceed: bool

    @property
    def projected(self) -> Decimal:
        return self.committed + self.candidate

    @property
    def projected_utilization(self) -> Decimal:
        return utilization(self.projected, self.allocated)


class BudgetGuard:
    """Budget checks for the approval path and for reporting."""

    def __init__(self, session: AsyncSession, lock_department: bool | None = None):
        self.session = session
        self.lock_department = (
            get_settings().budget_lock_department if lock_department is None else lock_department
        )

    async def check(
        self,
        department_id: UUID,
        production_id: UUID,
        candidate_amount: Decimal,
        exclude_expense_id: UUID | None = None,
    ) -> BudgetCheck:
        """Evaluate a candidate amount against the department allocation."""
        department = await self._load_department(
            department_id, production_id, for_update=self.lock_department
        )
        committed = await self.committed_sum(
            department_id, production_id, exclude_expense_id=exclude_expense_id
        )
        candidate = Decimal(candidate_amount)
        return BudgetCheck(
            department_id=department_id,
            allocated=department.allocated_budget,
            committed=committed,
            candidate=candidate,
            would_exceed=is_over_budget(committed + candidate, department.allocated_budget),
        )

    async def would_exceed_budget(
        self,
        department_id: UUID,
        production_id: UUID,
        candidate_amount: Decimal,
        exclude_expense_id: UUID | None = None,
    ) -> bool:
        """Check if approving this amount would exceed the department budget."""
        result = await self.check(
            department_id, production_id, candidate_amount, exclude_expense_id
        )
        return result.would_exceed

    async def get_utilization(
        self,
        department_id: UUID,
        production_id: UUID,
        threshold: Decimal | None = None,
    ) -> BudgetUtilization:
        """Committed utilization; threshold defaults to the production's alert level."""
        department = await self._load_department(department_id, production_id)
        if threshold is None:
            threshold = await self._production_threshold(production_id)
        committed = await self.committed_sum(department_id, production_id)
        ratio = utilization(committed, department.allocated_budget)
        return BudgetUtilization(
            department_id=department_id,
            allocated=department.allocated_budget,
            committed=committed,
            utilization=ratio,
            is_threshold=is_threshold_breached(ratio, threshold),
        )

    async def committed_sum(
        self,
        department_id: UUID,
        production_id: UUID,
        exclude_expense_id: UUID | None = None,
    ) -> Decimal:
        """Sum of amounts already financially committed in the department."""
        query = select(func.coalesce(func.sum(Expense.amount), 0)).where(
            Expense.department_id == department_id,
            Expense.production_id == production_id,
            Expense.status.in_([s.value for s in COMMITTED_STATUSES]),
        )
        if exclude_expense_id is not None:
            query = query.where(Expense.expense_id != exclude_expense_id)

        total = await self.session.scalar(query)
        return Decimal(str(total or 0))

    async def _load_department(
        self, department_id: UUID, production_id: UUID, for_update: bool = False
    ) -> Department:
        query = select(Department).where(
            Department.department_id == department_id,
            Department.production_id == production_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        department = result.scalar_one_or_none()
        if department is None:
            raise NotFoundError("Department not found", {"department_id": str(department_id)})
        return department

    async def _production_threshold(self, production_id: UUID) -> Decimal:
        threshold = await self.session.scalar(
            select(Production.budget_alert_threshold).where(
                Production.production_id == production_id
            )
        )
        if threshold is None:
            raise NotFoundError("Production not found", {"production_id": str(production_id)})
        return threshold
