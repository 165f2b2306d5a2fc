"""Pytest fixtures for expense workflow tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cineexpense.clock import FixedClock
from cineexpense.database import create_schema, get_engine, make_session_factory
from cineexpense.models import AppUser, Department, Expense, Production
from cineexpense.services.expense_service import ExpenseService
from cineexpense.services.payment_service import PaymentService
from cineexpense.storage import LocalBlobStore
from cineexpense.types import Actor, Role

EXPENSE_DATE = date(2023, 12, 30)


@pytest.fixture
async def engine(tmp_path):
    """Create a fresh SQLite database per test."""
    # A file rather than :memory: so every pooled connection sees the same data
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2024-01-01 12:00 UTC."""
    return FixedClock()


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "receipts")


@pytest.fixture
async def production(session: AsyncSession) -> Production:
    """Create an active production with producer override enabled."""
    production = Production(
        name="Night Shoot",
        status="active",
        base_currency="USD",
        budget_alert_threshold=Decimal("0.80"),
        producer_override_enabled=True,
    )
    session.add(production)
    await session.flush()
    return production


@pytest.fixture
async def department(session: AsyncSession, production: Production) -> Department:
    """Camera department with 1000.00 allocated."""
    department = Department(
        production_id=production.production_id,
        name="Camera",
        allocated_budget=Decimal("1000.00"),
    )
    session.add(department)
    await session.flush()
    return department


@pytest.fixture
async def users(session: AsyncSession, production: Production) -> dict[Role, AppUser]:
    """One active user per role."""
    created = {}
    for role in Role:
        user = AppUser(
            production_id=production.production_id,
            name=f"{role.value.title()} User",
            email=f"{role.value.lower()}@nightshoot.test",
            role=role.value,
            is_active=True,
        )
        session.add(user)
        created[role] = user
    await session.flush()
    return created


@pytest.fixture
def actors(users: dict[Role, AppUser], production: Production) -> dict[Role, Actor]:
    return {
        role: Actor(user_id=user.user_id, role=role, production_id=production.production_id)
        for role, user in users.items()
    }


@pytest.fixture
def expense_service(session, clock, blob_store) -> ExpenseService:
    return ExpenseService(
        session,
        clock,
        blob_store,
        override_reason_min_length=10,
        lock_department=False,
    )


@pytest.fixture
def payment_service(session, clock, blob_store) -> PaymentService:
    return PaymentService(session, clock, blob_store)


@pytest.fixture
def make_expense(
    expense_service: ExpenseService,
    actors: dict[Role, Actor],
    department: Department,
) -> Callable[..., Awaitable[Expense]]:
    """Build an expense and drive it forward to the requested status."""

    async def _make(amount: str = "100.00", status: str = "Draft", receipt: bool = True) -> Expense:
        supervisor = actors[Role.SUPERVISOR]
        created = await expense_service.create_expense(
            supervisor,
            department_id=department.department_id,
            amount=Decimal(amount),
            expense_date=EXPENSE_DATE,
            description="Lens rental",
        )
        expense = created.expense
        if receipt:
            await expense_service.upload_receipt(
                supervisor,
                expense.expense_id,
                filename="receipt.pdf",
                content=b"%PDF-1.4 receipt",
                content_type="application/pdf",
            )
        if status == "Draft":
            return expense

        await expense_service.submit(supervisor, expense.expense_id)
        if status == "Submitted":
            return expense

        await expense_service.manager_approve(actors[Role.MANAGER], expense.expense_id)
        if status == "ManagerApproved":
            return expense

        await expense_service.accounts_approve(actors[Role.ACCOUNTS], expense.expense_id)
        if status == "AccountsApproved":
            return expense

        raise ValueError(f"make_expense cannot build status {status}")

    return _make
