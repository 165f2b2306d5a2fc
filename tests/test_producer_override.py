"""Tests for the producer budget override."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from cineexpense.errors import BadRequestError, ForbiddenError, InvalidTransitionError, OverBudgetError
from cineexpense.models import AuditLog
from cineexpense.types import Role

REASON = "Reshoot approved by the studio"


@pytest.fixture
async def blocked_expense(make_expense, expense_service, actors):
    """A Submitted expense the manager cannot approve for budget reasons."""
    await make_expense(amount="800.00", status="AccountsApproved")
    expense = await make_expense(amount="500.00", status="Submitted")
    with pytest.raises(OverBudgetError):
        await expense_service.manager_approve(actors[Role.MANAGER], expense.expense_id)
    return expense


class TestProducerOverride:
    async def test_override_approves(self, session, blocked_expense, expense_service, actors):
        producer = actors[Role.PRODUCER]

        await expense_service.producer_override(producer, blocked_expense.expense_id, REASON)

        assert blocked_expense.status == "ManagerApproved"
        history = await expense_service.get_history(producer, blocked_expense.expense_id)
        assert history[-1].from_status == "Submitted"
        assert history[-1].to_status == "ManagerApproved"
        assert history[-1].comment == REASON
        assert history[-1].performed_by == producer.user_id

        entries = (
            await session.execute(
                select(AuditLog)
                .where(AuditLog.entity_id == blocked_expense.expense_id)
                .order_by(AuditLog.performed_at)
            )
        ).scalars().all()
        actions = [e.action for e in entries]
        assert "budget:producer-override" in actions
        assert "status:Submitted->ManagerApproved" in actions
        override = next(e for e in entries if e.action == "budget:producer-override")
        assert override.metadata_json["reason"] == REASON
        assert override.metadata_json["would_exceed"] is True

    async def test_overridden_expense_continues_to_accounts(
        self, blocked_expense, expense_service, actors
    ):
        await expense_service.producer_override(
            actors[Role.PRODUCER], blocked_expense.expense_id, REASON
        )
        await expense_service.accounts_approve(actors[Role.ACCOUNTS], blocked_expense.expense_id)

        usage = await expense_service.budget_guard.get_utilization(
            blocked_expense.department_id, blocked_expense.production_id
        )
        assert usage.committed == Decimal("1300")
        assert usage.is_threshold is True

    @pytest.mark.parametrize("reason", [None, "", "    ", "too short"])
    async def test_reason_required(self, blocked_expense, expense_service, actors, reason):
        with pytest.raises(BadRequestError):
            await expense_service.producer_override(
                actors[Role.PRODUCER], blocked_expense.expense_id, reason
            )
        assert blocked_expense.status == "Submitted"

    @pytest.mark.parametrize("role", [Role.MANAGER, Role.ADMIN, Role.ACCOUNTS])
    async def test_producer_only(self, blocked_expense, expense_service, actors, role):
        with pytest.raises(ForbiddenError):
            await expense_service.producer_override(actors[role], blocked_expense.expense_id, REASON)

    async def test_disabled_for_production(
        self, session, blocked_expense, expense_service, actors, production
    ):
        production.producer_override_enabled = False
        await session.flush()

        with pytest.raises(ForbiddenError):
            await expense_service.producer_override(
                actors[Role.PRODUCER], blocked_expense.expense_id, REASON
            )

    @pytest.mark.parametrize("status", ["Draft", "ManagerApproved"])
    async def test_requires_submitted(self, make_expense, expense_service, actors, status):
        expense = await make_expense(status=status)

        with pytest.raises(InvalidTransitionError):
            await expense_service.producer_override(
                actors[Role.PRODUCER], expense.expense_id, REASON
            )
        assert expense.status == status
