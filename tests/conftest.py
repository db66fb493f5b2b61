import json
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from src.core.backend import AccountingBackendClient
from src.main import app
from src.modules.students.schemas import Student

BACKEND_BASE_URL = "http://backend.test/api/accounting"
PREFIX = "/api/accounting"


STUDENTS = [
    {
        "id": "stu-1",
        "name": "Tariro Moyo",
        "admissionId": "VVA-001",
        "class": "8A",
        "contact": "0772000001",
        "parentContact": "0772000101",
        "fees": 130,
        "createdAt": "2025-01-20T08:00:00.000Z",
    },
    {
        "id": "stu-2",
        "name": "Kudzai Ndlovu",
        "admissionId": "VVA-002",
        "class": "7B",
        "contact": "0772000002",
        "parentContact": "0772000102",
        "fees": 130,
        "createdAt": "2025-02-03T08:00:00.000Z",
    },
    {
        "id": "stu-3",
        "name": "Rudo Chikore",
        "admissionId": "VVA-003",
        "class": "8a",
        "contact": "0772000003",
        "parentContact": "0772000103",
        "fees": 150,
        "createdAt": "2025-02-03T09:00:00.000Z",
    },
]


def make_invoice(
    invoice_id: str,
    student_id: str = "stu-1",
    total: float = 100,
    status: str = "Pending",
    created_at: str = "2025-02-10T10:00:00.000Z",
    items: list[dict] | None = None,
    **extra: Any,
) -> dict:
    student = next(s for s in STUDENTS if s["id"] == student_id)
    return {
        "id": invoice_id,
        "invoiceNumber": extra.pop("invoiceNumber", None),
        "studentId": student_id,
        "student": {
            "name": student["name"],
            "admissionId": student["admissionId"],
            "class": student["class"],
            "contact": student["contact"],
        },
        "items": items if items is not None else [{"feeType": "School Fees", "amount": total}],
        "total": total,
        "dueDate": "2025-03-01T00:00:00.000Z",
        "status": status,
        "createdAt": created_at,
        "payments": extra.pop("payments", []),
        **extra,
    }


class FakeAccountingBackend:
    """In-memory stand-in for the accounting backend, served through httpx.MockTransport."""

    def __init__(self):
        self.students: list[dict] = [dict(s) for s in STUDENTS]
        self.invoices: list[dict] = []
        self.credit_invoices: dict[str, list[dict]] = {}
        self.dashboard: dict = {"stats": {}, "students": [], "invoices": [], "uniforms": []}
        self.create_invoice_error: tuple[int, dict] | None = None
        self.created_invoices: list[dict] = []
        self.created_students: list[dict] = []
        self.requests: list[httpx.Request] = []

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == PREFIX + path]

    @staticmethod
    def _page(rows: list[dict], request: httpx.Request) -> dict:
        page = int(request.url.params.get("page", 1))
        limit = int(request.url.params.get("limit", 10))
        chunk = rows if limit == 0 else rows[(page - 1) * limit : page * limit]
        total_pages = 1 if limit == 0 else (len(rows) + limit - 1) // limit
        return {
            "success": True,
            "data": chunk,
            "pagination": {
                "total": len(rows),
                "page": page,
                "limit": limit,
                "totalPages": total_pages,
            },
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(PREFIX):]
        method = request.method

        if method == "GET" and path == "/":
            return httpx.Response(200, json=self.dashboard)
        if method == "GET" and path == "/students/":
            return httpx.Response(200, json=self._page(self.students, request))
        if method == "POST" and path == "/students/new":
            body = json.loads(request.content)
            student = {"id": f"stu-{len(self.students) + 1}", **body}
            self.created_students.append(body)
            self.students.append(student)
            return httpx.Response(201, json={"success": True, "data": student})
        if method == "GET" and path.startswith("/students/"):
            student_id = path.split("/")[2]
            student = next((s for s in self.students if s["id"] == student_id), None)
            if student is None:
                return httpx.Response(404, json={"error": "Student not found"})
            invoices = [i for i in self.invoices if i["studentId"] == student_id]
            return httpx.Response(
                200,
                json={"success": True, "data": {**student, "invoices": invoices, "uniforms": []}},
            )
        if method == "GET" and path == "/invoices/":
            status = request.url.params.get("status")
            rows = [i for i in self.invoices if not status or i["status"] == status]
            return httpx.Response(200, json=self._page(rows, request))
        if method == "POST" and path == "/invoices/new":
            body = json.loads(request.content)
            if self.create_invoice_error is not None:
                status_code, error_body = self.create_invoice_error
                return httpx.Response(status_code, json=error_body)
            self.created_invoices.append(body)
            return httpx.Response(
                201,
                json={"success": True, "data": {"id": f"inv-new-{len(self.created_invoices)}", **body}},
            )
        if method == "GET" and path.startswith("/invoices/student/"):
            student_id = path.split("/")[3]
            return httpx.Response(200, json=self.credit_invoices.get(student_id, []))
        if method == "DELETE" and path.startswith("/invoices/"):
            invoice_id = path.split("/")[2]
            before = len(self.invoices)
            self.invoices = [i for i in self.invoices if i["id"] != invoice_id]
            if len(self.invoices) == before:
                return httpx.Response(404, json={"error": "Invoice not found"})
            return httpx.Response(200, json={"success": True})

        return httpx.Response(404, json={"error": f"No route {method} {path}"})


@pytest.fixture
def students() -> list[Student]:
    return [Student.model_validate(s) for s in STUDENTS]


@pytest.fixture
def backend() -> FakeAccountingBackend:
    return FakeAccountingBackend()


@pytest.fixture
async def backend_client(
    backend: FakeAccountingBackend,
) -> AsyncGenerator[AccountingBackendClient, None]:
    """Real AccountingBackendClient talking to the fake backend."""
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(backend.handler),
        base_url=BACKEND_BASE_URL,
    )
    yield AccountingBackendClient(http=http)
    await http.aclose()


@pytest.fixture
async def client(
    backend_client: AccountingBackendClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with the backend client swapped for the fake."""
    app.state.backend = backend_client
    app.state.drafts._drafts.clear()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.state.backend = None
