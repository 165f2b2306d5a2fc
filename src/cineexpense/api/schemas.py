"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Expense schemas
# ============================================================================


class ExpenseCreate(BaseModel):
    """Schema for creating a draft expense."""

    department_id: UUID
    amount: Decimal
    expense_date: date
    description: str
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class ExpenseUpdate(BaseModel):
    """Schema for editing a draft or returned expense."""

    department_id: UUID | None = None
    amount: Decimal | None = None
    expense_date: date | None = None
    description: str | None = None


class ExpenseResponse(BaseModel):
    """Schema for expense response."""

    model_config = ConfigDict(from_attributes=True)

    expense_id: UUID
    production_id: UUID
    department_id: UUID
    submitted_by: UUID
    amount: Decimal
    currency: str
    expense_date: date
    description: str
    status: str
    created_at: datetime
    updated_at: datetime | None = None


class ExpenseCreateResponse(BaseModel):
    """Created expense plus the duplicate hint."""

    expense: ExpenseResponse
    duplicate_warning: bool


class ExpenseListResponse(BaseModel):
    items: list[ExpenseResponse]
    total: int


class TransitionRequest(BaseModel):
    """Comment on a transition; mandatory for returns and rejections."""

    comment: str | None = None


class OverrideRequest(BaseModel):
    """Producer justification for forcing an over-budget approval."""

    reason: str | None = None


class ReceiptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    receipt_id: UUID
    expense_id: UUID
    file_path: str
    original_filename: str | None = None
    content_type: str | None = None
    uploaded_by: UUID
    uploaded_at: datetime


class StatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    history_id: int
    expense_id: UUID
    from_status: str | None = None
    to_status: str
    comment: str | None = None
    performed_by: UUID
    performed_at: datetime


class BudgetCheckResponse(BaseModel):
    """Manager's pre-approval warning."""

    expense_id: UUID
    department_id: UUID
    allocated: Decimal
    committed: Decimal
    candidate: Decimal
    projected: Decimal
    utilization: Decimal
    projected_utilization: Decimal
    is_threshold: bool
    would_exceed: bool


# ============================================================================
# Payment schemas
# ============================================================================


class MarkPaidRequest(BaseModel):
    """Schema for recording a payment."""

    payment_method: str
    reference_number: str = ""
    payment_date: date


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: UUID
    expense_id: UUID
    payment_method: str
    reference_number: str
    payment_date: date
    created_by: UUID
    created_at: datetime


# ============================================================================
# Production schemas
# ============================================================================


class ProductionCreate(BaseModel):
    name: str = Field(min_length=1)
    base_currency: str = Field(min_length=3, max_length=3)
    budget_alert_threshold: Decimal | None = Field(default=None, gt=0, le=1)
    producer_override_enabled: bool = False


class ProductionStatusUpdate(BaseModel):
    status: str


class ProductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    production_id: UUID
    name: str
    status: str
    base_currency: str
    budget_alert_threshold: Decimal
    producer_override_enabled: bool


# ============================================================================
# Department schemas
# ============================================================================


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1)
    allocated_budget: Decimal


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    allocated_budget: Decimal | None = None


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    department_id: UUID
    production_id: UUID
    name: str
    allocated_budget: Decimal


# ============================================================================
# User schemas
# ============================================================================


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    production_id: UUID
    name: str
    email: str
    role: str
    is_active: bool


# ============================================================================
# Notification schemas
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: UUID
    user_id: UUID
    type: str
    payload: dict[str, Any]
    is_read: bool
    created_at: datetime


# ============================================================================
# Report schemas
# ============================================================================


class BudgetLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    department_id: UUID
    name: str
    allocated: Decimal
    committed: Decimal
    remaining: Decimal
    utilization: Decimal
    is_threshold: bool


class BudgetReportResponse(BaseModel):
    items: list[BudgetLineResponse]
