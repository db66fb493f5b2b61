"""Service for dashboard summary (main page cards and activity chart)."""

import csv
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from io import StringIO

from src.core.backend import AccountingBackendClient
from src.modules.dashboard.schemas import (
    ActivityPoint,
    DashboardData,
    RecentInvoice,
    RecentStudent,
    TimeFilter,
    TimeRange,
)
from src.shared.utils.money import round_money


def _day(value: datetime) -> date:
    """Calendar day in UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def _uniform_quantity(items) -> int:
    """Items list sums quantities (default 1 each); anything else counts as one purchase."""
    if not isinstance(items, list):
        return 1
    total = 0
    for item in items:
        quantity = item.get("quantity") if isinstance(item, dict) else None
        total += quantity or 1
    return total


def build_activity_series(data: DashboardData) -> list[ActivityPoint]:
    """Group invoices, uniforms and enrollments by day, oldest first."""
    points: dict[date, ActivityPoint] = {}

    def point(day: date) -> ActivityPoint:
        if day not in points:
            points[day] = ActivityPoint(date=day)
        return points[day]

    for invoice in data.invoices:
        p = point(_day(invoice.created_at))
        p.invoices = round_money(p.invoices + invoice.total)
    for uniform in data.uniforms:
        point(_day(uniform.created_at)).uniforms += _uniform_quantity(uniform.items)
    for student in data.students:
        point(_day(student.created_at)).students += 1

    return [points[day] for day in sorted(points)]


def filter_start(time_filter: TimeFilter, now: datetime) -> date | None:
    """
    First day kept by the time filter; None keeps everything.

    Weeks start on Sunday.
    """
    today = now.date()
    if time_filter == TimeFilter.TODAY:
        return today
    if time_filter == TimeFilter.WEEK:
        return today - timedelta(days=(today.weekday() + 1) % 7)
    if time_filter == TimeFilter.MONTH:
        return today.replace(day=1)
    if time_filter == TimeFilter.YEAR:
        return today.replace(month=1, day=1)
    return None


def filter_series(
    series: list[ActivityPoint],
    time_filter: TimeFilter,
    time_range: TimeRange,
    now: datetime | None = None,
) -> list[ActivityPoint]:
    """Apply the time filter, then the trailing range.

    Points are dated at UTC midnight, so the trailing range counts from the
    exact current instant.
    """
    now = now or datetime.now(timezone.utc)
    start = filter_start(time_filter, now)
    if start is not None:
        series = [p for p in series if p.date >= start]
    range_start = now - timedelta(days=time_range.days)
    return [
        p
        for p in series
        if datetime.combine(p.date, time.min, tzinfo=timezone.utc) >= range_start
    ]


RECENT_LIMIT = 6


def recent_students(data: DashboardData) -> list[RecentStudent]:
    return [
        RecentStudent(id=s.id, name=s.name or "", admission_id=s.admission_id or "")
        for s in data.students[:RECENT_LIMIT]
    ]


def recent_invoices(data: DashboardData) -> list[RecentInvoice]:
    return [
        RecentInvoice(
            id=inv.id,
            student_name=(inv.student.name if inv.student else None) or "",
            amount=inv.total,
            status=inv.status,
            date=inv.due_date,
        )
        for inv in data.invoices[:RECENT_LIMIT]
    ]


def build_activity_csv(series: list[ActivityPoint]) -> str:
    out = StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(["Date", "Invoices", "Uniforms", "Students"])
    for p in series:
        writer.writerow([p.date.isoformat(), str(p.invoices), p.uniforms, p.students])
    return out.getvalue()


class DashboardService:
    """Aggregates backend dashboard data for the main page."""

    def __init__(self, backend: AccountingBackendClient):
        self.backend = backend

    async def get_data(self) -> DashboardData:
        payload = await self.backend.get_dashboard_data()
        return DashboardData.model_validate(payload)

    async def get_summary(
        self,
        time_filter: TimeFilter = TimeFilter.MONTH,
        time_range: TimeRange = TimeRange.LAST_30_DAYS,
        now: datetime | None = None,
    ) -> dict:
        data = await self.get_data()
        series = filter_series(build_activity_series(data), time_filter, time_range, now)
        return {
            "total_students": data.stats.total_students,
            "pending_invoices": data.stats.pending_invoices,
            "total_revenue": data.stats.total_revenue or Decimal("0"),
            "time_filter": time_filter,
            "time_range": time_range,
            "activity": series,
            "recent_students": recent_students(data),
            "recent_invoices": recent_invoices(data),
        }

    async def export_activity(
        self,
        time_filter: TimeFilter = TimeFilter.MONTH,
        time_range: TimeRange = TimeRange.LAST_30_DAYS,
        now: datetime | None = None,
    ) -> str | None:
        """CSV of the filtered series, falling back to the full series; None if no data."""
        series = build_activity_series(await self.get_data())
        filtered = filter_series(series, time_filter, time_range, now)
        export = filtered or series
        if not export:
            return None
        return build_activity_csv(export)
