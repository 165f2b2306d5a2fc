"""Department administration."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock
from cineexpense.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from cineexpense.models import Department
from cineexpense.services.audit_service import AuditService
from cineexpense.services.lifecycle_gate import ProductionLifecycleGate
from cineexpense.types import MAX_AMOUNT, Actor, Role

logger = logging.getLogger(__name__)


class DepartmentService:
    """Create and maintain departments and their allocations (ADMIN only)."""

    def __init__(self, session: AsyncSession, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.gate = ProductionLifecycleGate(session)
        self.audit = AuditService(session, self.clock)

    async def list_departments(self, actor: Actor) -> list[Department]:
        result = await self.session.execute(
            select(Department)
            .where(Department.production_id == actor.production_id)
            .order_by(Department.name)
        )
        return list(result.scalars().all())

    async def get_department(self, actor: Actor, department_id: UUID) -> Department:
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

    async def create_department(
        self, actor: Actor, *, name: str, allocated_budget: Decimal
    ) -> Department:
        await self._assert_admin(actor)
        name = self._validate_name(name)
        budget = self._validate_budget(allocated_budget)
        await self._assert_name_free(actor.production_id, name)

        department = Department(
            production_id=actor.production_id,
            name=name,
            allocated_budget=budget,
        )
        self.session.add(department)
        await self.session.flush()

        await self.audit.log(
            production_id=actor.production_id,
            entity_type="department",
            entity_id=department.department_id,
            action="created",
            performed_by=actor.user_id,
            metadata={"name": name, "allocated_budget": str(budget)},
        )
        logger.info("department %s created in %s", department.department_id, actor.production_id)
        return department

    async def update_department(
        self,
        actor: Actor,
        department_id: UUID,
        *,
        name: str | None = None,
        allocated_budget: Decimal | None = None,
    ) -> Department:
        """Rename a department or change its allocation."""
        await self._assert_admin(actor)
        department = await self.get_department(actor, department_id)

        metadata: dict[str, str] = {}
        if name is not None:
            name = self._validate_name(name)
            if name != department.name:
                await self._assert_name_free(actor.production_id, name)
                metadata["name"] = name
                department.name = name
        if allocated_budget is not None:
            budget = self._validate_budget(allocated_budget)
            metadata["allocated_budget_from"] = str(department.allocated_budget)
            metadata["allocated_budget_to"] = str(budget)
            department.allocated_budget = budget

        if metadata:
            await self.audit.log(
                production_id=actor.production_id,
                entity_type="department",
                entity_id=department.department_id,
                action="updated",
                performed_by=actor.user_id,
                metadata=metadata,
            )
            await self.session.flush()
        return department

    async def _assert_admin(self, actor: Actor) -> None:
        await self.gate.assert_mutable(actor.production_id)
        if not actor.has_role(Role.ADMIN):
            raise ForbiddenError("Role ADMIN is required to manage departments")

    async def _assert_name_free(self, production_id: UUID, name: str) -> None:
        existing = await self.session.scalar(
            select(Department.department_id).where(
                Department.production_id == production_id,
                Department.name == name,
            )
        )
        if existing is not None:
            raise ConflictError(f"Department '{name}' already exists", {"name": name})

    @staticmethod
    def _validate_name(name: str) -> str:
        if not name or not name.strip():
            raise BadRequestError("Department name is required")
        return name.strip()

    @staticmethod
    def _validate_budget(allocated_budget: Decimal) -> Decimal:
        try:
            budget = Decimal(str(allocated_budget))
        except InvalidOperation:
            raise BadRequestError(f"Invalid allocated_budget '{allocated_budget}'")
        if not budget.is_finite() or budget < 0:
            raise BadRequestError("allocated_budget must be zero or more")
        if budget >= MAX_AMOUNT:
            raise BadRequestError(f"allocated_budget must be less than {MAX_AMOUNT}")
        return budget
