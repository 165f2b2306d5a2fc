"""Expense API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Path, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from cineexpense.api.dependencies import BlobStoreDep, ClockDep, CurrentActor, DbSession
from cineexpense.api.schemas import (
    BudgetCheckResponse,
    ErrorResponse,
    ExpenseCreate,
    ExpenseCreateResponse,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseUpdate,
    MarkPaidRequest,
    OverrideRequest,
    PaymentResponse,
    ReceiptResponse,
    StatusHistoryResponse,
    TransitionRequest,
)
from cineexpense.clock import Clock
from cineexpense.services.expense_service import ExpenseService
from cineexpense.services.payment_service import PaymentService
from cineexpense.storage import BlobStore

router = APIRouter(prefix="/expenses", tags=["expenses"])

ExpenseId = Annotated[UUID, Path()]

TRANSITION_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _service(db: AsyncSession, clock: Clock, blob_store: BlobStore) -> ExpenseService:
    return ExpenseService(db, clock, blob_store)


# ============================================================================
# Expense CRUD
# ============================================================================


@router.post(
    "",
    response_model=ExpenseCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_expense(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    payload: ExpenseCreate,
) -> ExpenseCreateResponse:
    """Create a draft expense."""
    created = await _service(db, clock, blob_store).create_expense(
        actor,
        department_id=payload.department_id,
        amount=payload.amount,
        expense_date=payload.expense_date,
        description=payload.description,
        currency=payload.currency,
    )
    return ExpenseCreateResponse(
        expense=ExpenseResponse.model_validate(created.expense),
        duplicate_warning=created.duplicate_warning,
    )


@router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    department_id: UUID | None = None,
    submitted_by: UUID | None = None,
) -> ExpenseListResponse:
    """List expenses in the caller's production."""
    expenses = await _service(db, clock, blob_store).list_expenses(
        actor, status=status_filter, department_id=department_id, submitted_by=submitted_by
    )
    return ExpenseListResponse(
        items=[ExpenseResponse.model_validate(e) for e in expenses],
        total=len(expenses),
    )


@router.get(
    "/{expense_id}",
    response_model=ExpenseResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_expense(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
) -> ExpenseResponse:
    expense = await _service(db, clock, blob_store).get_expense(actor, expense_id)
    return ExpenseResponse.model_validate(expense)


@router.patch(
    "/{expense_id}",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def update_expense(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: ExpenseUpdate,
) -> ExpenseResponse:
    """Edit a Draft or returned expense."""
    expense = await _service(db, clock, blob_store).update_expense(
        actor,
        expense_id,
        department_id=payload.department_id,
        amount=payload.amount,
        expense_date=payload.expense_date,
        description=payload.description,
    )
    return ExpenseResponse.model_validate(expense)


# ============================================================================
# Receipts and history
# ============================================================================


@router.post(
    "/{expense_id}/upload-receipt",
    response_model=ReceiptResponse,
    status_code=status.HTTP_201_CREATED,
    responses=TRANSITION_RESPONSES,
)
async def upload_receipt(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    file: Annotated[UploadFile, File()],
) -> ReceiptResponse:
    """Attach a receipt file to the expense."""
    content = await file.read()
    receipt = await _service(db, clock, blob_store).upload_receipt(
        actor,
        expense_id,
        filename=file.filename or "receipt",
        content=content,
        content_type=file.content_type,
    )
    return ReceiptResponse.model_validate(receipt)


@router.get(
    "/{expense_id}/receipts",
    response_model=list[ReceiptResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_receipts(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
) -> list[ReceiptResponse]:
    receipts = await _service(db, clock, blob_store).list_receipts(actor, expense_id)
    return [ReceiptResponse.model_validate(r) for r in receipts]


@router.get(
    "/{expense_id}/history",
    response_model=list[StatusHistoryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_history(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
) -> list[StatusHistoryResponse]:
    """Status history, oldest first."""
    history = await _service(db, clock, blob_store).get_history(actor, expense_id)
    return [StatusHistoryResponse.model_validate(h) for h in history]


@router.get(
    "/{expense_id}/budget-check",
    response_model=BudgetCheckResponse,
    responses={404: {"model": ErrorResponse}},
)
async def budget_check(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
) -> BudgetCheckResponse:
    """Utilization now and after approving this expense."""
    preview = await _service(db, clock, blob_store).budget_check(actor, expense_id)
    return BudgetCheckResponse(
        expense_id=preview.expense_id,
        department_id=preview.check.department_id,
        allocated=preview.check.allocated,
        committed=preview.check.committed,
        candidate=preview.check.candidate,
        projected=preview.check.projected,
        utilization=preview.current.utilization,
        projected_utilization=preview.check.projected_utilization,
        is_threshold=preview.current.is_threshold,
        would_exceed=preview.check.would_exceed,
    )


# ============================================================================
# Transitions
# ============================================================================


@router.post(
    "/{expense_id}/submit",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def submit_expense(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
) -> ExpenseResponse:
    expense = await _service(db, clock, blob_store).submit(actor, expense_id)
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/manager/approve",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def manager_approve(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: TransitionRequest | None = None,
) -> ExpenseResponse:
    comment = payload.comment if payload else None
    expense = await _service(db, clock, blob_store).manager_approve(actor, expense_id, comment)
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/manager/return",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def manager_return(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: TransitionRequest,
) -> ExpenseResponse:
    expense = await _service(db, clock, blob_store).manager_return(
        actor, expense_id, payload.comment
    )
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/manager/reject",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def manager_reject(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: TransitionRequest,
) -> ExpenseResponse:
    expense = await _service(db, clock, blob_store).manager_reject(
        actor, expense_id, payload.comment
    )
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/accounts/approve",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def accounts_approve(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: TransitionRequest | None = None,
) -> ExpenseResponse:
    comment = payload.comment if payload else None
    expense = await _service(db, clock, blob_store).accounts_approve(actor, expense_id, comment)
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/accounts/return",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def accounts_return(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: TransitionRequest,
) -> ExpenseResponse:
    expense = await _service(db, clock, blob_store).accounts_return(
        actor, expense_id, payload.comment
    )
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/accounts/mark-paid",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=TRANSITION_RESPONSES,
)
async def mark_paid(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: MarkPaidRequest,
) -> PaymentResponse:
    """Record the payout and move the expense to Paid."""
    payment = await PaymentService(db, clock, blob_store).mark_paid(
        actor,
        expense_id,
        payment_method=payload.payment_method,
        reference_number=payload.reference_number,
        payment_date=payload.payment_date,
    )
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{expense_id}/producer/override-budget",
    response_model=ExpenseResponse,
    responses=TRANSITION_RESPONSES,
)
async def producer_override(
    db: DbSession,
    actor: CurrentActor,
    clock: ClockDep,
    blob_store: BlobStoreDep,
    expense_id: ExpenseId,
    payload: OverrideRequest,
) -> ExpenseResponse:
    """Approve an over-budget expense on the producer's authority."""
    expense = await _service(db, clock, blob_store).producer_override(
        actor, expense_id, payload.reason
    )
    return ExpenseResponse.model_validate(expense)
