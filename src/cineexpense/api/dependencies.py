"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.clock import Clock, SystemClock
from cineexpense.config import get_settings
from cineexpense.database import get_session
from cineexpense.storage import BlobStore, LocalBlobStore
from cineexpense.types import Actor, Role


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    One request is one unit of work: commit when the endpoint returns,
    roll back when it raises.
    """
    async with get_session() as session:
        yield session


def get_clock() -> Clock:
    """Clock used by every service in the request."""
    return SystemClock()


def get_blob_store() -> BlobStore:
    """Receipt storage backend."""
    return LocalBlobStore(get_settings().receipt_storage_dir)


def _parse_uuid(value: str | None, header: str) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{header} header is required",
        )
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def get_current_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
    x_production_id: Annotated[str | None, Header()] = None,
) -> Actor:
    """Resolve the caller from identity headers set by the upstream gateway."""
    user_id = _parse_uuid(x_actor_id, "X-Actor-ID")
    production_id = _parse_uuid(x_production_id, "X-Production-ID")
    if not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-Role header is required",
        )
    try:
        role = Role(x_actor_role.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role '{x_actor_role}'",
        )
    return Actor(user_id=user_id, role=role, production_id=production_id)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
ClockDep = Annotated[Clock, Depends(get_clock)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
