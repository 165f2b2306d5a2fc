"""Production administration endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from cineexpense.api.dependencies import ClockDep, CurrentActor, DbSession
from cineexpense.api.schemas import (
    ErrorResponse,
    ProductionCreate,
    ProductionResponse,
    ProductionStatusUpdate,
)
from cineexpense.errors import NotFoundError
from cineexpense.services.production_service import ProductionService

router = APIRouter(prefix="/productions", tags=["productions"])


@router.post(
    "",
    response_model=ProductionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_production(
    db: DbSession,
    clock: ClockDep,
    payload: ProductionCreate,
) -> ProductionResponse:
    """Onboard a production. No actor yet exists to scope it to."""
    production = await ProductionService(db, clock).create_production(
        name=payload.name,
        base_currency=payload.base_currency,
        budget_alert_threshold=payload.budget_alert_threshold,
        producer_override_enabled=payload.producer_override_enabled,
    )
    return ProductionResponse.model_validate(production)


@router.get(
    "/{production_id}",
    response_model=ProductionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_production(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    production_id: Annotated[UUID, Path()],
) -> ProductionResponse:
    if production_id != actor.production_id:
        raise NotFoundError("Production not found", {"production_id": str(production_id)})
    production = await ProductionService(db, clock).get_production(production_id)
    return ProductionResponse.model_validate(production)


@router.patch(
    "/{production_id}/status",
    response_model=ProductionResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def set_production_status(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    production_id: Annotated[UUID, Path()],
    payload: ProductionStatusUpdate,
) -> ProductionResponse:
    """Lock, unlock, or archive a production (ADMIN)."""
    production = await ProductionService(db, clock).set_status(
        actor, production_id, payload.status
    )
    return ProductionResponse.model_validate(production)
