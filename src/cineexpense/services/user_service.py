"""Production crew accounts."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock
from cineexpense.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from cineexpense.models import AppUser
from cineexpense.services.audit_service import AuditService
from cineexpense.services.lifecycle_gate import ProductionLifecycleGate
from cineexpense.types import Actor, Role

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: AsyncSession, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.gate = ProductionLifecycleGate(session)
        self.audit = AuditService(session, self.clock)

    async def list_users(self, actor: Actor, role: str | None = None) -> list[AppUser]:
        query = select(AppUser).where(AppUser.production_id == actor.production_id)
        if role:
            query = query.where(AppUser.role == self._coerce_role(role).value)
        result = await self.session.execute(query.order_by(AppUser.name))
        return list(result.scalars().all())

    async def get_user(self, actor: Actor, user_id: UUID) -> AppUser:
        result = await self.session.execute(
            select(AppUser).where(
                AppUser.user_id == user_id,
                AppUser.production_id == actor.production_id,
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found", {"user_id": str(user_id)})
        return user

    async def create_user(self, actor: Actor, *, name: str, email: str, role: str) -> AppUser:
        """Add a crew member to the actor's production."""
        await self._assert_admin(actor)
        if not name or not name.strip():
            raise BadRequestError("User name is required")
        email = (email or "").strip().lower()
        if "@" not in email:
            raise BadRequestError(f"Invalid email '{email}'")
        user_role = self._coerce_role(role)

        taken = await self.session.scalar(select(AppUser.user_id).where(AppUser.email == email))
        if taken is not None:
            raise ConflictError("Email is already registered", {"email": email})

        user = AppUser(
            production_id=actor.production_id,
            name=name.strip(),
            email=email,
            role=user_role.value,
            is_active=True,
        )
        self.session.add(user)
        await self.session.flush()

        await self.audit.log(
            production_id=actor.production_id,
            entity_type="user",
            entity_id=user.user_id,
            action="created",
            performed_by=actor.user_id,
            metadata={"role": user_role.value},
        )
        return user

    async def deactivate_user(self, actor: Actor, user_id: UUID) -> AppUser:
        await self._assert_admin(actor)
        user = await self.get_user(actor, user_id)
        if user.is_active:
            user.is_active = False
            await self.audit.log(
                production_id=actor.production_id,
                entity_type="user",
                entity_id=user.user_id,
                action="deactivated",
                performed_by=actor.user_id,
            )
            await self.session.flush()
            logger.info("user %s deactivated by %s", user_id, actor.user_id)
        return user

    async def _assert_admin(self, actor: Actor) -> None:
        await self.gate.assert_mutable(actor.production_id)
        if not actor.has_role(Role.ADMIN):
            raise ForbiddenError("Role ADMIN is required to manage users")

    @staticmethod
    def _coerce_role(role: str) -> Role:
        try:
            return Role(role)
        except ValueError:
            raise BadRequestError(f"Unknown role '{role}'")
