"""In-app notifications for expense status changes."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock
from cineexpense.errors import NotFoundError
from cineexpense.models import AppUser, Expense, Notification
from cineexpense.types import Actor, ExpenseStatus, Role

STATUS_CHANGED = "expense.status_changed"

# Who has to act once an expense lands in a status
NEXT_ACTOR_ROLE: dict[ExpenseStatus, Role] = {
    ExpenseStatus.SUBMITTED: Role.MANAGER,
    ExpenseStatus.MANAGER_APPROVED: Role.ACCOUNTS,
    ExpenseStatus.ACCOUNTS_APPROVED: Role.ACCOUNTS,
}


class NotificationService:
    """Creates and serves per-user notifications."""

    def __init__(self, session: AsyncSession, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    async def create(
        self,
        *,
        production_id: UUID,
        user_id: UUID,
        type: str,
        payload: dict[str, Any],
    ) -> Notification:
        notification = Notification(
            production_id=production_id,
            user_id=user_id,
            type=type,
            payload=payload,
            is_read=False,
            created_at=self.clock.now(),
        )
        self.session.add(notification)
        return notification

    async def notify_status_change(
        self,
        expense: Expense,
        from_status: str,
        to_status: str,
        performed_by: UUID,
        comment: str | None = None,
    ) -> list[Notification]:
        """Tell the submitter and whoever acts next about a transition."""
        recipients: list[UUID] = []
        if expense.submitted_by != performed_by:
            recipients.append(expense.submitted_by)

        next_role = NEXT_ACTOR_ROLE.get(ExpenseStatus(to_status))
        if next_role is not None:
            result = await self.session.execute(
                select(AppUser.user_id).where(
                    AppUser.production_id == expense.production_id,
                    AppUser.role == next_role.value,
                    AppUser.is_active.is_(True),
                )
            )
            for user_id in result.scalars():
                if user_id not in recipients and user_id != performed_by:
                    recipients.append(user_id)

        payload = {
            "expense_id": str(expense.expense_id),
            "from": from_status,
            "to": to_status,
            "comment": comment,
        }
        return [
            await self.create(
                production_id=expense.production_id,
                user_id=user_id,
                type=STATUS_CHANGED,
                payload=payload,
            )
            for user_id in recipients
        ]

    async def list_for_user(self, actor: Actor) -> list[Notification]:
        """Newest first."""
        result = await self.session.execute(
            select(Notification)
            .where(
                Notification.user_id == actor.user_id,
                Notification.production_id == actor.production_id,
            )
            .order_by(Notification.created_at.desc())
        )
        return list(result.scalars().all())

    async def mark_read(self, actor: Actor, notification_id: UUID) -> Notification:
        result = await self.session.execute(
            select(Notification).where(
                Notification.notification_id == notification_id,
                Notification.user_id == actor.user_id,
                Notification.production_id == actor.production_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        await self.session.flush()
        return notification
