"""Notification endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from cineexpense.api.dependencies import ClockDep, CurrentActor, DbSession
from cineexpense.api.schemas import ErrorResponse, NotificationResponse
from cineexpense.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    db: DbSession, actor: CurrentActor, clock: ClockDep
) -> list[NotificationResponse]:
    """The caller's notifications, newest first."""
    notifications = await NotificationService(db, clock).list_for_user(actor)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_notification_read(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    notification_id: Annotated[UUID, Path()],
) -> NotificationResponse:
    notification = await NotificationService(db, clock).mark_read(actor, notification_id)
    return NotificationResponse.model_validate(notification)
