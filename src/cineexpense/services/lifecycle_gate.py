"""Production lifecycle gate checked before every mutating expense operation."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.errors import ForbiddenError
from cineexpense.models import Production
from cineexpense.services.state_machine import ProductionStateMachine

logger = logging.getLogger(__name__)


class ProductionLifecycleGate:
    """Refuses mutation while a production is locked or archived.

    Fails closed: a production that cannot be found is treated the same as
    a frozen one.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def assert_mutable(self, production_id: UUID | None) -> None:
        if production_id is None:
            raise ForbiddenError("Production context missing")

        result = await self.session.execute(
            select(Production.status).where(Production.production_id == production_id)
        )
        status = result.scalar_one_or_none()

        if status is None:
            raise ForbiddenError("Production not found", {"production_id": str(production_id)})

        if not ProductionStateMachine.is_mutable(status):
            logger.info("Refused mutation: production %s is %s", production_id, status)
            raise ForbiddenError(
                f"Production is {status}",
                {"production_id": str(production_id), "status": status},
            )
