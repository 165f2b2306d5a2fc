"""Audit sink: append-only log entries written in the caller's unit of work."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock
from cineexpense.models import AuditLog


class AuditService:
    """Writes audit entries. The core never reads them back."""

    def __init__(self, session: AsyncSession, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    async def log(
        self,
        *,
        production_id: UUID,
        entity_type: str,
        entity_id: UUID,
        action: str,
        performed_by: UUID,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Record an audit entry for an action."""
        entry = AuditLog(
            production_id=production_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            performed_by=performed_by,
            metadata_json=metadata,
            performed_at=self.clock.now(),
        )
        self.session.add(entry)
        return entry
