"""Budget reporting."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.models import Department
from cineexpense.services.budget_service import BudgetGuard
from cineexpense.types import Actor


@dataclass(frozen=True)
class DepartmentBudgetLine:
    department_id: UUID
    name: str
    allocated: Decimal
    committed: Decimal
    remaining: Decimal
    utilization: Decimal
    is_threshold: bool


class ReportService:
    """Budget vs. committed spend, one line per department."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.budget_guard = BudgetGuard(session, lock_department=False)

    async def budget_summary(self, actor: Actor) -> list[DepartmentBudgetLine]:
        result = await self.session.execute(
            select(Department)
            .where(Department.production_id == actor.production_id)
            .order_by(Department.name)
        )
        lines = []
        for department in result.scalars().all():
            usage = await self.budget_guard.get_utilization(
                department.department_id, actor.production_id
            )
            lines.append(
                DepartmentBudgetLine(
                    department_id=department.department_id,
                    name=department.name,
                    allocated=usage.allocated,
                    committed=usage.committed,
                    remaining=usage.allocated - usage.committed,
                    utilization=usage.utilization,
                    is_threshold=usage.is_threshold,
                )
            )
        return lines
