"""Tests for production lifecycle and administration services."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from cineexpense.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from cineexpense.models import AuditLog
from cineexpense.services.department_service import DepartmentService
from cineexpense.services.production_service import ProductionService
from cineexpense.services.report_service import ReportService
from cineexpense.services.user_service import UserService
from cineexpense.types import Actor, Role


@pytest.fixture
def production_service(session, clock) -> ProductionService:
    return ProductionService(session, clock)


class TestProductionService:
    async def test_create_production(self, production_service):
        production = await production_service.create_production(
            name="Desert Run",
            base_currency="eur",
            budget_alert_threshold=Decimal("0.75"),
        )
        assert production.status == "active"
        assert production.base_currency == "EUR"
        assert production.producer_override_enabled is False

        loaded = await production_service.get_production(production.production_id)
        assert loaded is production

    async def test_create_rejects_bad_threshold(self, production_service):
        with pytest.raises(BadRequestError):
            await production_service.create_production(
                name="Desert Run", base_currency="EUR", budget_alert_threshold=Decimal("1.5")
            )

    async def test_get_missing(self, production_service):
        with pytest.raises(NotFoundError):
            await production_service.get_production(uuid4())

    async def test_lock_and_unlock(self, session, production_service, production, actors):
        admin = actors[Role.ADMIN]

        await production_service.set_status(admin, production.production_id, "locked")
        assert production.status == "locked"
        await production_service.set_status(admin, production.production_id, "active")
        assert production.status == "active"

        actions = (
            await session.execute(
                select(AuditLog.action).where(AuditLog.entity_id == production.production_id)
            )
        ).scalars().all()
        assert sorted(actions) == [
            "status_changed:active->locked",
            "status_changed:locked->active",
        ]

    async def test_unlock_is_not_gated(self, session, production_service, production, actors):
        production.status = "locked"
        await session.flush()

        await production_service.set_status(actors[Role.ADMIN], production.production_id, "active")
        assert production.status == "active"

    @pytest.mark.parametrize("target", ["active", "locked", "archived"])
    async def test_archived_is_terminal(
        self, session, production_service, production, actors, target
    ):
        await production_service.set_status(
            actors[Role.ADMIN], production.production_id, "archived"
        )

        with pytest.raises(InvalidTransitionError):
            await production_service.set_status(
                actors[Role.ADMIN], production.production_id, target
            )
        assert production.status == "archived"

    async def test_requires_admin(self, production_service, production, actors):
        with pytest.raises(ForbiddenError):
            await production_service.set_status(
                actors[Role.PRODUCER], production.production_id, "locked"
            )
        assert production.status == "active"

    async def test_unknown_status(self, production_service, production, actors):
        with pytest.raises(BadRequestError):
            await production_service.set_status(
                actors[Role.ADMIN], production.production_id, "paused"
            )

    async def test_other_production(self, production_service, actors):
        with pytest.raises(NotFoundError):
            await production_service.set_status(actors[Role.ADMIN], uuid4(), "locked")


class TestDepartmentService:
    async def test_create_and_list(self, session, clock, actors, department):
        service = DepartmentService(session, clock)

        created = await service.create_department(
            actors[Role.ADMIN], name="Art", allocated_budget=Decimal("5000")
        )
        assert created.allocated_budget == Decimal("5000")

        names = [d.name for d in await service.list_departments(actors[Role.SUPERVISOR])]
        assert names == ["Art", "Camera"]

    async def test_duplicate_name(self, session, clock, actors, department):
        service = DepartmentService(session, clock)
        with pytest.raises(ConflictError):
            await service.create_department(
                actors[Role.ADMIN], name="Camera", allocated_budget=Decimal("1")
            )

    async def test_negative_budget(self, session, clock, actors):
        service = DepartmentService(session, clock)
        with pytest.raises(BadRequestError):
            await service.create_department(
                actors[Role.ADMIN], name="Art", allocated_budget=Decimal("-1")
            )

    async def test_budget_must_fit_money_column(self, session, clock, actors):
        service = DepartmentService(session, clock)
        with pytest.raises(BadRequestError):
            await service.create_department(
                actors[Role.ADMIN], name="Art", allocated_budget=Decimal("1000000000000")
            )

    async def test_admin_only(self, session, clock, actors):
        service = DepartmentService(session, clock)
        with pytest.raises(ForbiddenError):
            await service.create_department(
                actors[Role.MANAGER], name="Art", allocated_budget=Decimal("100")
            )

    async def test_update_allocation(self, session, clock, actors, department):
        service = DepartmentService(session, clock)
        updated = await service.update_department(
            actors[Role.ADMIN], department.department_id, allocated_budget=Decimal("1500.00")
        )
        assert updated.allocated_budget == Decimal("1500.00")

    async def test_locked_production(self, session, clock, actors, production):
        production.status = "locked"
        await session.flush()

        with pytest.raises(ForbiddenError):
            await DepartmentService(session, clock).create_department(
                actors[Role.ADMIN], name="Art", allocated_budget=Decimal("100")
            )


class TestUserService:
    async def test_create_user(self, session, clock, actors):
        service = UserService(session, clock)
        user = await service.create_user(
            actors[Role.ADMIN], name="Dana Grip", email="Dana@NightShoot.test", role="SUPERVISOR"
        )
        assert user.email == "dana@nightshoot.test"
        assert user.is_active is True

        supervisors = await service.list_users(actors[Role.ADMIN], role="SUPERVISOR")
        assert user.user_id in {u.user_id for u in supervisors}

    async def test_duplicate_email(self, session, clock, actors):
        service = UserService(session, clock)
        with pytest.raises(ConflictError):
            await service.create_user(
                actors[Role.ADMIN], name="Again", email="manager@nightshoot.test", role="MANAGER"
            )

    async def test_unknown_role(self, session, clock, actors):
        with pytest.raises(BadRequestError):
            await UserService(session, clock).create_user(
                actors[Role.ADMIN], name="X", email="x@nightshoot.test", role="DIRECTOR"
            )

    async def test_deactivate(self, session, clock, actors, users):
        service = UserService(session, clock)
        user = await service.deactivate_user(actors[Role.ADMIN], users[Role.MANAGER].user_id)
        assert user.is_active is False

    async def test_admin_only(self, session, clock, actors, production):
        with pytest.raises(ForbiddenError):
            await UserService(session, clock).create_user(
                Actor(uuid4(), Role.PRODUCER, production.production_id),
                name="X",
                email="x@nightshoot.test",
                role="MANAGER",
            )


class TestReportService:
    async def test_budget_summary(self, session, make_expense, actors, department):
        await make_expense(amount="850.00", status="AccountsApproved")
        await make_expense(amount="50.00", status="ManagerApproved")

        lines = await ReportService(session).budget_summary(actors[Role.PRODUCER])

        assert len(lines) == 1
        line = lines[0]
        assert line.name == "Camera"
        assert line.committed == Decimal("850")
        assert line.remaining == Decimal("150")
        assert line.utilization == Decimal("0.85")
        assert line.is_threshold is True
