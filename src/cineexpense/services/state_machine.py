"""Expense and production state machines with transition validation.

Both machines are pure rule tables. Persistence, locking, and side effects
live in ExpenseService / PaymentService / ProductionService.
"""

from __future__ import annotations

from uuid import UUID

from cineexpense.errors import (
    BadRequestError,
    ForbiddenError,
    InvalidTransitionError,
)
from cineexpense.types import Actor, ExpenseStatus, ProductionStatus, Role


class ExpenseStateMachine:
    """State machine for expense status transitions.

    Allowed transitions:
    - Draft → Submitted
    - Submitted → ManagerApproved | ManagerRejected | ManagerReturned
    - ManagerReturned → Submitted
    - ManagerRejected → Submitted (resubmission)
    - ManagerApproved → AccountsApproved | AccountsReturned
    - AccountsReturned → Submitted
    - AccountsApproved → Paid
    - Paid is terminal
    """

    VALID_TRANSITIONS: dict[ExpenseStatus, frozenset[ExpenseStatus]] = {
        ExpenseStatus.DRAFT: frozenset({ExpenseStatus.SUBMITTED}),
        ExpenseStatus.SUBMITTED: frozenset(
            {
                ExpenseStatus.MANAGER_APPROVED,
                ExpenseStatus.MANAGER_REJECTED,
                ExpenseStatus.MANAGER_RETURNED,
            }
        ),
        ExpenseStatus.MANAGER_RETURNED: frozenset({ExpenseStatus.SUBMITTED}),
        ExpenseStatus.MANAGER_REJECTED: frozenset({ExpenseStatus.SUBMITTED}),
        ExpenseStatus.MANAGER_APPROVED: frozenset(
            {ExpenseStatus.ACCOUNTS_APPROVED, ExpenseStatus.ACCOUNTS_RETURNED}
        ),
        ExpenseStatus.ACCOUNTS_RETURNED: frozenset({ExpenseStatus.SUBMITTED}),
        ExpenseStatus.ACCOUNTS_APPROVED: frozenset({ExpenseStatus.PAID}),
        ExpenseStatus.PAID: frozenset(),  # Terminal state
    }

    # Role that must perform the transition *into* each status
    REQUIRED_ROLE: dict[ExpenseStatus, Role | None] = {
        ExpenseStatus.DRAFT: None,  # only ever set at creation
        ExpenseStatus.SUBMITTED: Role.SUPERVISOR,
        ExpenseStatus.MANAGER_APPROVED: Role.MANAGER,
        ExpenseStatus.MANAGER_RETURNED: Role.MANAGER,
        ExpenseStatus.MANAGER_REJECTED: Role.MANAGER,
        ExpenseStatus.ACCOUNTS_APPROVED: Role.ACCOUNTS,
        ExpenseStatus.ACCOUNTS_RETURNED: Role.ACCOUNTS,
        ExpenseStatus.PAID: Role.ACCOUNTS,
    }

    COMMENT_REQUIRED = frozenset(
        {
            ExpenseStatus.MANAGER_RETURNED,
            ExpenseStatus.MANAGER_REJECTED,
            ExpenseStatus.ACCOUNTS_RETURNED,
        }
    )

    # Statuses in which the submitter may edit fields and attach receipts
    EDITABLE = frozenset(
        {
            ExpenseStatus.DRAFT,
            ExpenseStatus.MANAGER_RETURNED,
            ExpenseStatus.MANAGER_REJECTED,
            ExpenseStatus.ACCOUNTS_RETURNED,
        }
    )

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        try:
            source = ExpenseStatus(from_status)
            target = ExpenseStatus(to_status)
        except ValueError:
            return False
        return target in cls.VALID_TRANSITIONS[source]

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[ExpenseStatus]:
        """Get list of valid next statuses from current status."""
        return sorted(cls.VALID_TRANSITIONS[ExpenseStatus(current_status)], key=lambda s: s.value)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS[ExpenseStatus(status)]

    @classmethod
    def is_editable(cls, status: str) -> bool:
        """Check if the submitter may still modify the expense."""
        return ExpenseStatus(status) in cls.EDITABLE

    @classmethod
    def requires_comment(cls, to_status: str) -> bool:
        return ExpenseStatus(to_status) in cls.COMMENT_REQUIRED

    @classmethod
    def required_role(cls, to_status: str) -> Role | None:
        return cls.REQUIRED_ROLE[ExpenseStatus(to_status)]

    @classmethod
    def validate_request(
        cls,
        *,
        current_status: str,
        to_status: str,
        actor: Actor,
        submitted_by: UUID,
        comment: str | None,
        receipt_count: int,
        enforce_role: bool = True,
    ) -> None:
        """Run the request-level preconditions in order; first failure wins.

        1. target reachable from the current status
        2. comment present where the target requires one
        3. actor holds the role the target requires
        4. for submission: a receipt exists and the actor is the submitter

        The production gate runs before this and the budget gate after it;
        both need the database.
        """
        cls.validate_transition(current_status, to_status)
        target = ExpenseStatus(to_status)

        if target in cls.COMMENT_REQUIRED and not (comment and comment.strip()):
            raise BadRequestError(
                f"A comment is required to move an expense to '{target.value}'",
                {"to_status": target.value},
            )

        required = cls.REQUIRED_ROLE[target]
        if enforce_role and required is not None and not actor.has_role(required):
            raise ForbiddenError(
                f"Role {required.value} is required to move an expense to "
                f"'{target.value}' (actor role: {actor.role.value})",
                {"required_role": required.value, "actor_role": actor.role.value},
            )

        if target == ExpenseStatus.SUBMITTED:
            if receipt_count < 1:
                raise BadRequestError(
                    "At least one receipt must be attached before submission",
                    {"receipt_count": receipt_count},
                )
            if actor.user_id != submitted_by:
                raise ForbiddenError(
                    "Only the original submitter may submit this expense"
                )


class ProductionStateMachine:
    """State machine for production lifecycle.

    Allowed transitions:
    - active → locked | archived
    - locked → active | archived
    - archived is terminal
    """

    VALID_TRANSITIONS: dict[ProductionStatus, frozenset[ProductionStatus]] = {
        ProductionStatus.ACTIVE: frozenset({ProductionStatus.LOCKED, ProductionStatus.ARCHIVED}),
        ProductionStatus.LOCKED: frozenset({ProductionStatus.ACTIVE, ProductionStatus.ARCHIVED}),
        ProductionStatus.ARCHIVED: frozenset(),  # Terminal state
    }

    # Statuses that refuse every mutating expense/payment operation
    FROZEN = frozenset({ProductionStatus.LOCKED, ProductionStatus.ARCHIVED})

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        try:
            source = ProductionStatus(from_status)
            target = ProductionStatus(to_status)
        except ValueError:
            return False
        return target in cls.VALID_TRANSITIONS[source]

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if ProductionStatus(from_status) == ProductionStatus.ARCHIVED:
            raise InvalidTransitionError(
                from_status, to_status, "archived productions cannot transition"
            )
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_mutable(cls, status: str) -> bool:
        """Check if expenses in a production with this status may change."""
        return ProductionStatus(status) not in cls.FROZEN
