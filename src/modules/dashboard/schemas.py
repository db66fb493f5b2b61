"""Schemas for dashboard API (main page summary)."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from src.shared.schemas.base import BaseSchema, WireSchema
from src.shared.utils.money import ZERO, to_amount


class TimeFilter(StrEnum):
    """Window start for the activity chart."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class TimeRange(StrEnum):
    """Trailing window applied after the time filter."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"

    @property
    def days(self) -> int:
        return int(self.value.rstrip("d"))


# --- Backend payload ---


class DashboardStats(WireSchema):
    total_students: int = 0
    pending_invoices: int = 0
    total_revenue: Decimal = ZERO

    @field_validator("total_revenue", mode="before")
    @classmethod
    def coerce_revenue(cls, v):
        return to_amount(v)


class ActivityStudent(WireSchema):
    id: str | None = None
    name: str | None = None
    admission_id: str | None = None
    created_at: datetime


class InvoiceStudentRef(WireSchema):
    name: str | None = None


class ActivityInvoice(WireSchema):
    id: str | None = None
    total: Decimal = ZERO
    status: str | None = None
    student: InvoiceStudentRef | None = None
    due_date: datetime | None = None
    created_at: datetime

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, v):
        return to_amount(v)


class ActivityUniform(WireSchema):
    id: str | None = None
    items: Any = None
    created_at: datetime


class DashboardData(WireSchema):
    """Raw payload of the backend dashboard endpoint."""

    stats: DashboardStats = Field(default_factory=DashboardStats)
    students: list[ActivityStudent] = Field(default_factory=list)
    invoices: list[ActivityInvoice] = Field(default_factory=list)
    uniforms: list[ActivityUniform] = Field(default_factory=list)


# --- API ---


class ActivityPoint(BaseSchema):
    """One day of the school activity chart."""

    date: date
    invoices: Decimal = ZERO
    uniforms: int = 0
    students: int = 0


class RecentStudent(BaseSchema):
    id: str | None = None
    name: str = ""
    admission_id: str = ""


class RecentInvoice(BaseSchema):
    """Row of the recent invoices table; date is the due date."""

    id: str | None = None
    student_name: str = ""
    amount: Decimal = ZERO
    status: str | None = None
    date: datetime | None = None


class DashboardResponse(BaseSchema):
    """Summary data for main page: cards, activity chart and recent records."""

    total_students: int = 0
    pending_invoices: int = 0
    total_revenue: Decimal = ZERO
    time_filter: TimeFilter = TimeFilter.MONTH
    time_range: TimeRange = TimeRange.LAST_30_DAYS
    activity: list[ActivityPoint] = Field(default_factory=list)
    recent_students: list[RecentStudent] = Field(default_factory=list)
    recent_invoices: list[RecentInvoice] = Field(default_factory=list)
