"""API for dashboard summary (main page)."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from src.core.backend import AccountingBackendClient, get_backend
from src.core.config import settings
from src.core.exceptions import NotFoundError
from src.modules.dashboard.schemas import DashboardResponse, TimeFilter, TimeRange
from src.modules.dashboard.service import DashboardService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get(
    "",
    response_model=ApiResponse[DashboardResponse],
)
async def get_dashboard(
    time_filter: TimeFilter = Query(TimeFilter.MONTH),
    time_range: TimeRange = Query(TimeRange.LAST_30_DAYS),
    backend: AccountingBackendClient = Depends(get_backend),
):
    """Cards (students, pending invoices, revenue) and the school activity chart."""
    data = await DashboardService(backend).get_summary(time_filter, time_range)
    return ApiResponse(data=DashboardResponse(**data))


@router.get("/export")
async def export_dashboard(
    time_filter: TimeFilter = Query(TimeFilter.MONTH),
    time_range: TimeRange = Query(TimeRange.LAST_30_DAYS),
    backend: AccountingBackendClient = Depends(get_backend),
):
    """Activity chart data as CSV."""
    content = await DashboardService(backend).export_activity(time_filter, time_range)
    if content is None:
        raise NotFoundError("Dashboard activity")
    prefix = settings.export_prefix.lower()
    filename = f"{prefix}-academy-data-{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
