"""User endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from cineexpense.api.dependencies import ClockDep, CurrentActor, DbSession
from cineexpense.api.schemas import ErrorResponse, UserCreate, UserResponse
from cineexpense.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
async def list_users(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    role: Annotated[str | None, Query()] = None,
) -> list[UserResponse]:
    users = await UserService(db, clock).list_users(actor, role=role)
    return [UserResponse.model_validate(u) for u in users]


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def create_user(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    payload: UserCreate,
) -> UserResponse:
    user = await UserService(db, clock).create_user(
        actor, name=payload.name, email=payload.email, role=payload.role
    )
    return UserResponse.model_validate(user)


@router.post(
    "/{user_id}/deactivate",
    response_model=UserResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def deactivate_user(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    user_id: Annotated[UUID, Path()],
) -> UserResponse:
    user = await UserService(db, clock).deactivate_user(actor, user_id)
    return UserResponse.model_validate(user)
