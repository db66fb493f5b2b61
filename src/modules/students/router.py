"""API endpoints for Students module."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from src.core.backend import AccountingBackendClient, get_backend
from src.modules.students.schemas import (
    SchoolFeesResponse,
    Student,
    StudentCreate,
    StudentDetail,
    StudentDetailResponse,
    StudentSummary,
)
from src.modules.students.service import (
    ALL_TERMS,
    TERM_CALENDAR,
    StudentService,
    available_years,
    invoices_total,
    school_fees_invoices,
)
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/students", tags=["Students"])


def _student_to_summary(student: Student) -> StudentSummary:
    return StudentSummary(
        id=student.id,
        name=student.name,
        admission_id=student.admission_id,
        class_name=student.class_name,
        contact=student.contact,
        parent_contact=student.parent_contact,
        created_at=student.created_at,
    )


@router.get(
    "",
    response_model=ApiResponse[PaginatedResponse[StudentSummary]],
)
async def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    backend: AccountingBackendClient = Depends(get_backend),
):
    """List students (paginated by the backend)."""
    students, pagination = await StudentService(backend).list_students(page=page, limit=limit)
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[_student_to_summary(s) for s in students],
            total=pagination.total,
            page=pagination.page,
            limit=limit,
        )
    )


@router.get(
    "/search",
    response_model=ApiResponse[list[StudentSummary]],
)
async def search_students(
    q: str | None = Query(None, description="Search by name, admission id or class"),
    backend: AccountingBackendClient = Depends(get_backend),
):
    students = await StudentService(backend).search(q)
    return ApiResponse(data=[_student_to_summary(s) for s in students])


@router.post(
    "",
    response_model=ApiResponse[dict | None],
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    data: StudentCreate,
    backend: AccountingBackendClient = Depends(get_backend),
):
    """Create a new student."""
    created = await StudentService(backend).create_student(data)
    return ApiResponse(
        message="Student created successfully",
        data=created if isinstance(created, dict) else None,
    )


@router.get(
    "/{student_id}",
    response_model=ApiResponse[StudentDetailResponse],
    response_model_by_alias=False,
)
async def get_student(
    student_id: str,
    backend: AccountingBackendClient = Depends(get_backend),
):
    """Student profile with every invoice and the grand total."""
    student: StudentDetail = await StudentService(backend).get_student(student_id)
    return ApiResponse(
        data=StudentDetailResponse(
            student=_student_to_summary(student),
            fees=student.fees,
            invoices=student.invoices,
            grand_total=invoices_total(student.invoices),
        )
    )


@router.get(
    "/{student_id}/school-fees",
    response_model=ApiResponse[SchoolFeesResponse],
    response_model_by_alias=False,
)
async def get_student_school_fees(
    student_id: str,
    year: int | None = Query(None, ge=2000, le=2100),
    term: str = Query(ALL_TERMS, description="all | Term 1 | Term 2 | Term 3"),
    backend: AccountingBackendClient = Depends(get_backend),
):
    """School-fees invoices of a student, filtered by year and term."""
    current_year = date.today().year
    selected_year = year or current_year
    student = await StudentService(backend).get_student(student_id)
    invoices = school_fees_invoices(student.invoices, selected_year, term)
    return ApiResponse(
        data=SchoolFeesResponse(
            year=selected_year,
            term=term,
            available_years=available_years(current_year),
            available_terms=[ALL_TERMS] + [name for name, _, _ in TERM_CALENDAR],
            invoices=invoices,
            total=invoices_total(invoices),
        )
    )
