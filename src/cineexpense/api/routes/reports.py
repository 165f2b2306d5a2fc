"""Reporting endpoints."""

from fastapi import APIRouter

from cineexpense.api.dependencies import CurrentActor, DbSession
from cineexpense.api.schemas import BudgetLineResponse, BudgetReportResponse
from cineexpense.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/budget-vs-actual", response_model=BudgetReportResponse)
async def budget_vs_actual(db: DbSession, actor: CurrentActor) -> BudgetReportResponse:
    """Committed spend against allocation for every department."""
    lines = await ReportService(db).budget_summary(actor)
    return BudgetReportResponse(items=[BudgetLineResponse.model_validate(line) for line in lines])
