"""Error taxonomy for the expense workflow.

Every refusal is raised as a subclass of WorkflowError carrying a stable
machine-readable ``code`` and a message that names the current state and
the attempted target (conflicts) or the missing precondition (everything
else). The request layer maps codes onto HTTP status codes; nothing is
retried internally.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class WorkflowError(Exception):
    """Base exception for all workflow refusals."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class NotFoundError(WorkflowError):
    """Referenced entity does not exist in the caller's production."""

    code = "NOT_FOUND"


class BadRequestError(WorkflowError):
    """Structurally invalid input or a missing precondition artefact."""

    code = "BAD_REQUEST"


class ForbiddenError(WorkflowError):
    """Wrong role, not the owner, or the production refuses mutation."""

    code = "FORBIDDEN"


class ConflictError(WorkflowError):
    """Requested change is incompatible with current state."""

    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """Raised when a status transition is not in the transition table."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Cannot transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(
            msg, {"from_status": self.from_status, "to_status": self.to_status}
        )


class OverBudgetError(ConflictError):
    """Approving the expense would push its department over budget."""

    def __init__(self, committed: Decimal, candidate: Decimal, allocated: Decimal):
        self.committed = committed
        self.candidate = candidate
        self.allocated = allocated
        super().__init__(
            "Over budget — producer override required",
            {
                "committed": str(committed),
                "candidate": str(candidate),
                "projected": str(committed + candidate),
                "allocated": str(allocated),
            },
        )
