"""Department endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from cineexpense.api.dependencies import ClockDep, CurrentActor, DbSession
from cineexpense.api.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    ErrorResponse,
)
from cineexpense.services.department_service import DepartmentService

router = APIRouter(prefix="/departments", tags=["departments"])

ADMIN_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get("", response_model=list[DepartmentResponse])
async def list_departments(
    db: DbSession, actor: CurrentActor, clock: ClockDep
) -> list[DepartmentResponse]:
    departments = await DepartmentService(db, clock).list_departments(actor)
    return [DepartmentResponse.model_validate(d) for d in departments]


@router.post(
    "",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ADMIN_RESPONSES,
)
async def create_department(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    payload: DepartmentCreate,
) -> DepartmentResponse:
    department = await DepartmentService(db, clock).create_department(
        actor, name=payload.name, allocated_budget=payload.allocated_budget
    )
    return DepartmentResponse.model_validate(department)


@router.get(
    "/{department_id}",
    response_model=DepartmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_department(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    department_id: Annotated[UUID, Path()],
) -> DepartmentResponse:
    department = await DepartmentService(db, clock).get_department(actor, department_id)
    return DepartmentResponse.model_validate(department)


@router.patch(
    "/{department_id}",
    response_model=DepartmentResponse,
    responses={**ADMIN_RESPONSES, 404: {"model": ErrorResponse}},
)
async def update_department(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    department_id: Annotated[UUID, Path()],
    payload: DepartmentUpdate,
) -> DepartmentResponse:
    """Rename a department or change its allocation."""
    department = await DepartmentService(db, clock).update_department(
        actor,
        department_id,
        name=payload.name,
        allocated_budget=payload.allocated_budget,
    )
    return DepartmentResponse.model_validate(department)
