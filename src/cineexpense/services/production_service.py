"""Production onboarding and lifecycle transitions."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock
from cineexpense.config import get_settings
from cineexpense.errors import BadRequestError, ForbiddenError, NotFoundError
from cineexpense.models import Production
from cineexpense.services.audit_service import AuditService
from cineexpense.services.state_machine import ProductionStateMachine
from cineexpense.types import Actor, ProductionStatus, Role

logger = logging.getLogger(__name__)


class ProductionService:
    """Service for productions.

    Operations:
    - create_production: onboard a new production in active status
    - get_production: load one production
    - set_status: move through active/locked/archived (ADMIN only)

    set_status is deliberately not behind the lifecycle gate, otherwise a
    locked production could never be reopened.
    """

    def __init__(self, session: AsyncSession, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.audit = AuditService(session, self.clock)

    async def create_production(
        self,
        *,
        name: str,
        base_currency: str,
        budget_alert_threshold: Decimal | None = None,
        producer_override_enabled: bool = False,
    ) -> Production:
        if not name or not name.strip():
            raise BadRequestError("Production name is required")
        if len(base_currency) != 3:
            raise BadRequestError("base_currency must be a 3-letter ISO code")

        threshold = (
            budget_alert_threshold
            if budget_alert_threshold is not None
            else get_settings().default_budget_alert_threshold
        )
        if not Decimal("0") < threshold <= Decimal("1"):
            raise BadRequestError("budget_alert_threshold must be in (0, 1]")

        production = Production(
            name=name.strip(),
            status=ProductionStatus.ACTIVE.value,
            base_currency=base_currency.upper(),
            budget_alert_threshold=threshold,
            producer_override_enabled=producer_override_enabled,
        )
        self.session.add(production)
        await self.session.flush()
        return production

    async def get_production(self, production_id: UUID, for_update: bool = False) -> Production:
        query = select(Production).where(Production.production_id == production_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        production = result.scalar_one_or_none()
        if production is None:
            raise NotFoundError("Production not found", {"production_id": str(production_id)})
        return production

    async def set_status(
        self,
        actor: Actor,
        production_id: UUID,
        new_status: str,
    ) -> Production:
        """Transition a production, writing one audit entry."""
        if not actor.has_role(Role.ADMIN):
            raise ForbiddenError("Role ADMIN is required to change production status")
        if production_id != actor.production_id:
            raise NotFoundError("Production not found", {"production_id": str(production_id)})

        try:
            target = ProductionStatus(new_status)
        except ValueError:
            raise BadRequestError(f"Unknown production status '{new_status}'")

        production = await self.get_production(production_id, for_update=True)
        current = production.status

        ProductionStateMachine.validate_transition(current, target)

        production.status = target.value
        await self.audit.log(
            production_id=production_id,
            entity_type="production",
            entity_id=production_id,
            action=f"status_changed:{current}->{target.value}",
            performed_by=actor.user_id,
            metadata={"from": current, "to": target.value},
        )
        await self.session.flush()

        logger.info(
            "production %s %s -> %s by %s", production_id, current, target.value, actor.user_id
        )
        return production
