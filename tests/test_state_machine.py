"""Tests for expense and production state machines."""

from uuid import uuid4

import pytest

from cineexpense.errors import BadRequestError, ForbiddenError, InvalidTransitionError
from cineexpense.services.state_machine import ExpenseStateMachine, ProductionStateMachine
from cineexpense.types import Actor, ExpenseStatus, Role

ALL_STATUSES = [s.value for s in ExpenseStatus]

ALLOWED = {
    ("Draft", "Submitted"),
    ("Submitted", "ManagerApproved"),
    ("Submitted", "ManagerRejected"),
    ("Submitted", "ManagerReturned"),
    ("ManagerReturned", "Submitted"),
    ("ManagerRejected", "Submitted"),
    ("ManagerApproved", "AccountsApproved"),
    ("ManagerApproved", "AccountsReturned"),
    ("AccountsReturned", "Submitted"),
    ("AccountsApproved", "Paid"),
}


def _actor(role: Role, user_id=None) -> Actor:
    return Actor(user_id=user_id or uuid4(), role=role, production_id=uuid4())


class TestExpenseStateMachine:
    """Test expense transition table."""

    def test_valid_transitions(self):
        """Every listed pair is allowed."""
        for from_status, to_status in ALLOWED:
            assert ExpenseStateMachine.can_transition(from_status, to_status) is True

    def test_table_is_closed(self):
        """Every pair outside the table is refused."""
        for from_status in ALL_STATUSES:
            for to_status in ALL_STATUSES:
                if (from_status, to_status) in ALLOWED:
                    continue
                assert ExpenseStateMachine.can_transition(from_status, to_status) is False
                with pytest.raises(InvalidTransitionError):
                    ExpenseStateMachine.validate_transition(from_status, to_status)

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ExpenseStateMachine.validate_transition("Draft", "Paid")

        assert exc_info.value.from_status == "Draft"
        assert exc_info.value.to_status == "Paid"
        assert exc_info.value.code == "CONFLICT"
        assert "Draft" in exc_info.value.message
        assert "Paid" in exc_info.value.message

    def test_unknown_status_is_not_a_transition(self):
        assert ExpenseStateMachine.can_transition("Draft", "Approved") is False
        assert ExpenseStateMachine.can_transition("Pending", "Submitted") is False

    def test_paid_is_terminal(self):
        assert ExpenseStateMachine.is_terminal("Paid") is True
        assert ExpenseStateMachine.get_next_statuses("Paid") == []
        for status in ALL_STATUSES:
            if status != "Paid":
                assert ExpenseStateMachine.is_terminal(status) is False

    def test_get_next_statuses(self):
        assert ExpenseStateMachine.get_next_statuses("Submitted") == [
            ExpenseStatus.MANAGER_APPROVED,
            ExpenseStatus.MANAGER_REJECTED,
            ExpenseStatus.MANAGER_RETURNED,
        ]

    def test_editable_statuses(self):
        editable = {s for s in ALL_STATUSES if ExpenseStateMachine.is_editable(s)}
        assert editable == {"Draft", "ManagerReturned", "ManagerRejected", "AccountsReturned"}

    def test_comment_required(self):
        assert ExpenseStateMachine.requires_comment("ManagerReturned")
        assert ExpenseStateMachine.requires_comment("ManagerRejected")
        assert ExpenseStateMachine.requires_comment("AccountsReturned")
        assert not ExpenseStateMachine.requires_comment("ManagerApproved")
        assert not ExpenseStateMachine.requires_comment("AccountsApproved")

    def test_required_roles(self):
        assert ExpenseStateMachine.required_role("Submitted") == Role.SUPERVISOR
        assert ExpenseStateMachine.required_role("ManagerApproved") == Role.MANAGER
        assert ExpenseStateMachine.required_role("AccountsReturned") == Role.ACCOUNTS
        assert ExpenseStateMachine.required_role("Paid") == Role.ACCOUNTS


class TestValidateRequest:
    """Order of request-level preconditions."""

    def test_table_checked_before_comment(self):
        with pytest.raises(InvalidTransitionError):
            ExpenseStateMachine.validate_request(
                current_status="Draft",
                to_status="ManagerReturned",
                actor=_actor(Role.MANAGER),
                submitted_by=uuid4(),
                comment=None,
                receipt_count=1,
            )

    @pytest.mark.parametrize("comment", [None, "", "   "])
    def test_blank_comment_refused(self, comment):
        with pytest.raises(BadRequestError):
            ExpenseStateMachine.validate_request(
                current_status="Submitted",
                to_status="ManagerRejected",
                actor=_actor(Role.MANAGER),
                submitted_by=uuid4(),
                comment=comment,
                receipt_count=1,
            )

    def test_comment_checked_before_role(self):
        """A supervisor returning without a comment hears about the comment first."""
        with pytest.raises(BadRequestError):
            ExpenseStateMachine.validate_request(
                current_status="Submitted",
                to_status="ManagerReturned",
                actor=_actor(Role.SUPERVISOR),
                submitted_by=uuid4(),
                comment="",
                receipt_count=1,
            )

    def test_role_mismatch(self):
        with pytest.raises(ForbiddenError) as exc_info:
            ExpenseStateMachine.validate_request(
                current_status="Submitted",
                to_status="ManagerApproved",
                actor=_actor(Role.ACCOUNTS),
                submitted_by=uuid4(),
                comment=None,
                receipt_count=1,
            )
        assert exc_info.value.context["required_role"] == "MANAGER"

    def test_role_check_can_be_suppressed(self):
        ExpenseStateMachine.validate_request(
            current_status="Submitted",
            to_status="ManagerApproved",
            actor=_actor(Role.PRODUCER),
            submitted_by=uuid4(),
            comment="forced",
            receipt_count=1,
            enforce_role=False,
        )

    def test_submission_needs_receipt(self):
        owner = uuid4()
        with pytest.raises(BadRequestError):
            ExpenseStateMachine.validate_request(
                current_status="Draft",
                to_status="Submitted",
                actor=_actor(Role.SUPERVISOR, owner),
                submitted_by=owner,
                comment=None,
                receipt_count=0,
            )

    def test_submission_by_other_supervisor(self):
        with pytest.raises(ForbiddenError):
            ExpenseStateMachine.validate_request(
                current_status="Draft",
                to_status="Submitted",
                actor=_actor(Role.SUPERVISOR),
                submitted_by=uuid4(),
                comment=None,
                receipt_count=1,
            )

    def test_valid_submission(self):
        owner = uuid4()
        ExpenseStateMachine.validate_request(
            current_status="ManagerReturned",
            to_status="Submitted",
            actor=_actor(Role.SUPERVISOR, owner),
            submitted_by=owner,
            comment=None,
            receipt_count=2,
        )


class TestProductionStateMachine:
    """Test production lifecycle transitions."""

    def test_valid_transitions(self):
        assert ProductionStateMachine.can_transition("active", "locked") is True
        assert ProductionStateMachine.can_transition("locked", "active") is True
        assert ProductionStateMachine.can_transition("active", "archived") is True
        assert ProductionStateMachine.can_transition("locked", "archived") is True

    def test_no_self_transitions(self):
        assert ProductionStateMachine.can_transition("active", "active") is False
        assert ProductionStateMachine.can_transition("locked", "locked") is False

    @pytest.mark.parametrize("target", ["active", "locked", "archived"])
    def test_archived_is_terminal(self, target):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ProductionStateMachine.validate_transition("archived", target)
        assert "archived" in exc_info.value.message

    def test_is_mutable(self):
        assert ProductionStateMachine.is_mutable("active") is True
        assert ProductionStateMachine.is_mutable("locked") is False
        assert ProductionStateMachine.is_mutable("archived") is False
