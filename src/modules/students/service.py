"""Service for Students module."""

import logging
from datetime import date, datetime, time, timezone

from src.core.backend import AccountingBackendClient
from src.core.exceptions import ValidationError
from src.modules.invoices.models import FeeType
from src.modules.invoices.schemas import Invoice, Pagination
from src.modules.students.schemas import Student, StudentCreate, StudentDetail, Term
from src.shared.utils.money import sum_money

logger = logging.getLogger(__name__)

ALL_TERMS = "all"
YEARS_SHOWN = 5

# (name, (start month, day), (end month, day))
TERM_CALENDAR = (
    ("Term 1", (1, 14), (4, 10)),
    ("Term 2", (5, 13), (8, 7)),
    ("Term 3", (9, 9), (12, 1)),
)


def get_terms(year: int) -> list[Term]:
    """Term windows of a school year (inclusive, whole days)."""
    return [
        Term(
            name=name,
            start=datetime.combine(date(year, *start), time.min, tzinfo=timezone.utc),
            end=datetime.combine(date(year, *end), time.max, tzinfo=timezone.utc),
        )
        for name, start, end in TERM_CALENDAR
    ]


def available_years(current_year: int) -> list[int]:
    return [current_year - i for i in range(YEARS_SHOWN)]


def search_students(students: list[Student], query: str | None) -> list[Student]:
    """Case-insensitive substring search on name, admission id or class."""
    if not query:
        return list(students)
    return [s for s in students if s.matches(query)]


def school_fees_invoices(
    invoices: list[Invoice],
    year: int,
    term: str = ALL_TERMS,
) -> list[Invoice]:
    """Invoices containing a School Fees item, restricted to a term when one is chosen."""
    result = [inv for inv in invoices if inv.has_fee_type(FeeType.SCHOOL_FEES.value)]
    if term == ALL_TERMS:
        return result
    window = next((t for t in get_terms(year) if t.name == term), None)
    if window is None:
        raise ValidationError(f"Unknown term: {term}", field="term")
    return [
        inv
        for inv in result
        if inv.created_at is not None and window.start <= _as_utc(inv.created_at) <= window.end
    ]


def invoices_total(invoices: list[Invoice]):
    return sum_money(inv.total for inv in invoices)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class StudentService:
    """Student directory, detail and creation through the accounting backend."""

    def __init__(self, backend: AccountingBackendClient):
        self.backend = backend

    async def list_students(self, page: int = 1, limit: int = 10) -> tuple[list[Student], Pagination]:
        payload = await self.backend.list_students(page=page, limit=limit)
        students = [Student.model_validate(row) for row in payload.get("data") or []]
        pagination = Pagination.model_validate(
            payload.get("pagination") or {"total": len(students), "page": page, "limit": limit}
        )
        return students, pagination

    async def search(self, query: str | None) -> list[Student]:
        rows = await self.backend.get_all_students()
        return search_students([Student.model_validate(row) for row in rows], query)

    async def get_student(self, student_id: str) -> StudentDetail:
        data = await self.backend.get_student(student_id)
        return StudentDetail.model_validate(data)

    async def create_student(self, data: StudentCreate):
        created = await self.backend.create_student(data.to_wire())
        logger.info("Student %s created in class %s", data.name, data.class_name)
        return created
