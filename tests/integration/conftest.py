"""Integration test fixtures: the ASGI app against the per-test database."""

from collections.abc import AsyncGenerator
from typing import Any
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from cineexpense.api.app import create_app
from cineexpense.api.dependencies import get_blob_store, get_clock, get_db_session
from cineexpense.database import get_session


def actor_headers(user_id: Any, role: str, production_id: Any) -> dict[str, str]:
    """Identity headers the upstream gateway would set."""
    return {
        "X-Actor-ID": str(user_id),
        "X-Actor-Role": role,
        "X-Production-ID": str(production_id),
    }


@pytest.fixture
async def client(session_factory, clock, blob_store) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app()

    async def _db_session():
        async with get_session(session_factory) as session:
            yield session

    app.dependency_overrides[get_db_session] = _db_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def crew(client: AsyncClient) -> dict[str, Any]:
    """A production with one department and a user per role, built over HTTP."""
    response = await client.post(
        "/api/v1/productions",
        json={
            "name": "Harbour Lights",
            "base_currency": "GBP",
            "producer_override_enabled": True,
        },
    )
    assert response.status_code == 201
    production_id = response.json()["production_id"]

    admin = actor_headers(uuid4(), "ADMIN", production_id)
    response = await client.post(
        "/api/v1/departments",
        headers=admin,
        json={"name": "Wardrobe", "allocated_budget": "1000.00"},
    )
    assert response.status_code == 201
    department_id = response.json()["department_id"]

    headers = {"ADMIN": admin}
    for role in ("SUPERVISOR", "MANAGER", "ACCOUNTS", "PRODUCER"):
        response = await client.post(
            "/api/v1/users",
            headers=admin,
            json={"name": f"{role.title()} One", "email": f"{role.lower()}@harbour.test", "role": role},
        )
        assert response.status_code == 201
        headers[role] = actor_headers(response.json()["user_id"], role, production_id)

    return {
        "production_id": production_id,
        "department_id": department_id,
        "headers": headers,
    }
