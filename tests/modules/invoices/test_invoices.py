from datetime import date
from decimal import Decimal
from io import BytesIO
from unittest.mock import patch

import pytest
from httpx import AsyncClient
from openpyxl import load_workbook

from src.modules.invoices.export import build_invoices_csv, export_filename, invoice_row
from src.modules.invoices.models import InvoiceStatus
from src.modules.invoices.schemas import ComposedInvoice, CreditSettlement, Invoice, LineItem

from tests.conftest import FakeAccountingBackend, make_invoice

FAKE_PDF = b"%PDF-1.4 fake pdf content"


@pytest.fixture
def seeded(backend: FakeAccountingBackend) -> FakeAccountingBackend:
    backend.invoices = [
        make_invoice("inv-1", "stu-1", total=130, status="Paid", invoiceNumber="1001"),
        make_invoice(
            "inv-2",
            "stu-2",
            total=45.5,
            status="Pending",
            items=[
                {"feeType": "Uniform", "amount": 30},
                {"name": "Tie", "amount": 15.5, "quantity": 1},
            ],
        ),
        make_invoice("inv-3", "stu-3", total=200, status="Overdue"),
    ]
    return backend


class TestInvoiceSchemas:
    """Backend payload parsing and submission payload shape."""

    def test_invoice_tolerates_missing_items(self):
        invoice = Invoice.model_validate(
            {"id": "abcdef123456", "items": None, "total": "not a number", "payments": None}
        )
        assert invoice.items == []
        assert invoice.payments == []
        assert invoice.total == Decimal("0")
        assert invoice.display_number == "INV-abcdef12"
        assert invoice.student_name == ""

    def test_display_number_prefers_invoice_number(self):
        invoice = Invoice.model_validate(make_invoice("inv-1", invoiceNumber=1001))
        assert invoice.display_number == "INV-1001"
        assert invoice.student.class_name == "8A"

    def test_line_item_wire_omits_empty_description(self):
        assert LineItem(amount=Decimal("12.50")).to_wire() == {
            "feeType": "School Fees",
            "amount": 12.5,
        }

    def test_credit_settlement_sets_amount_due(self):
        composed = ComposedInvoice(
            student_id="stu-1",
            items=[LineItem(amount=Decimal("100"))],
            due_date=date(2025, 3, 1),
            settlement=CreditSettlement(amount_due=Decimal("100")),
        )
        assert composed.to_wire() == {
            "studentId": "stu-1",
            "items": [{"feeType": "School Fees", "amount": 100.0}],
            "dueDate": "2025-03-01",
            "paymentMethod": "Credit",
            "amountDue": 100.0,
        }


class TestInvoiceExport:
    """Register rows and file names."""

    def test_row_lists_items_and_admission_id(self):
        invoice = Invoice.model_validate(
            make_invoice(
                "inv-2",
                "stu-2",
                total=45.5,
                items=[
                    {"feeType": "Uniform", "amount": 30},
                    {"name": "Tie", "amount": 15.5},
                ],
            )
        )
        row = invoice_row(invoice)
        assert row[0] == "INV-inv-2"
        assert row[1] == "Kudzai Ndlovu"
        assert row[2] == "VVA-002"
        assert row[3] == "Uniform ($30.00); Tie ($15.50)"
        assert row[4] == Decimal("45.50")
        assert row[5] == "2025-03-01"
        assert row[7] == "2025-02-10"

    def test_items_use_currency_symbol(self):
        invoice = Invoice.model_validate(
            make_invoice("inv-3", items=[{"feeType": "School Fees", "amount": 1250}])
        )
        content = build_invoices_csv([invoice], currency_symbol="US$")
        assert "School Fees (US$1,250.00)" in content
        assert invoice_row(invoice, "ZWG ")[3] == "School Fees (ZWG 1,250.00)"

    def test_csv_header(self):
        content = build_invoices_csv([])
        assert content == (
            "Invoice ID,Student Name,Student Admission ID,Items,"
            "Total Amount,Due Date,Status,Created At\n"
        )

    def test_filename(self):
        today = date(2025, 3, 1)
        assert export_filename("Vumba", None, "csv", today) == "Vumba_Invoices_All_20250301.csv"
        assert (
            export_filename("Vumba", InvoiceStatus.PAID, "xlsx", today)
            == "Vumba_Invoices_Paid_20250301.xlsx"
        )


class TestInvoiceEndpoints:
    """List, export, delete and PDF endpoints."""

    async def test_list_invoices(self, client: AsyncClient, seeded: FakeAccountingBackend):
        response = await client.get("/api/v1/invoices", params={"page": 1, "limit": 2})
        assert response.status_code == 200
        data = response.json()["data"]
        assert [i["id"] for i in data["items"]] == ["inv-1", "inv-2"]
        assert data["total"] == 3
        assert data["pages"] == 2
        assert data["items"][0]["student"]["class_name"] == "8A"

    async def test_list_invoices_by_status(self, client: AsyncClient, seeded: FakeAccountingBackend):
        response = await client.get("/api/v1/invoices", params={"status": "Overdue"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert [i["id"] for i in data["items"]] == ["inv-3"]
        assert data["status"] == "Overdue"
        assert seeded.requests[-1].url.params["status"] == "Overdue"

    async def test_list_invoices_unknown_status(self, client: AsyncClient):
        response = await client.get("/api/v1/invoices", params={"status": "Cancelled"})
        assert response.status_code == 422
        assert response.json()["success"] is False

    async def test_export_csv(self, client: AsyncClient, seeded: FakeAccountingBackend):
        response = await client.get("/api/v1/invoices/export", params={"status": "Paid"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "Vumba_Invoices_Paid_" in response.headers["content-disposition"]
        lines = response.text.strip().split("\n")
        assert len(lines) == 2
        assert lines[1].startswith("INV-1001,Tariro Moyo,VVA-001,")
        # Export ignores pagination
        assert seeded.requests[-1].url.params["limit"] == "0"

    async def test_export_xlsx(self, client: AsyncClient, seeded: FakeAccountingBackend):
        response = await client.get("/api/v1/invoices/export", params={"format": "xlsx"})
        assert response.status_code == 200
        ws = load_workbook(BytesIO(response.content)).active
        assert ws.cell(row=1, column=1).value == "Invoice ID"
        assert ws.cell(row=2, column=1).value == "INV-1001"
        assert ws.cell(row=5, column=1).value == "TOTAL"
        assert ws.cell(row=5, column=5).value == pytest.approx(375.5)

    async def test_export_unsupported_format(self, client: AsyncClient, seeded):
        response = await client.get("/api/v1/invoices/export", params={"format": "pdf"})
        assert response.status_code == 400

    async def test_export_nothing_matches(self, client: AsyncClient, seeded):
        response = await client.get("/api/v1/invoices/export", params={"status": "Pending"})
        assert response.status_code == 200

        seeded.invoices = []
        response = await client.get("/api/v1/invoices/export")
        assert response.status_code == 404
        assert response.json()["message"] == "No invoices to download based on current filters."

    async def test_delete_invoice(self, client: AsyncClient, seeded: FakeAccountingBackend):
        response = await client.delete("/api/v1/invoices/inv-2")
        assert response.status_code == 200
        assert response.json()["message"] == "Invoice deleted successfully!"
        assert [i["id"] for i in seeded.invoices] == ["inv-1", "inv-3"]

    async def test_delete_missing_invoice(self, client: AsyncClient, seeded):
        response = await client.delete("/api/v1/invoices/inv-404")
        assert response.status_code == 404
        assert response.json()["message"] == "Invoice not found"

    async def test_invoice_pdf(self, client: AsyncClient, seeded):
        with patch("src.modules.invoices.router.pdf_service") as mock_svc:
            mock_svc.generate_invoice_pdf.return_value = FAKE_PDF
            response = await client.get("/api/v1/invoices/inv-1/pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="Invoice_1001.pdf"' in response.headers["content-disposition"]
        assert response.content == FAKE_PDF
        context = mock_svc.generate_invoice_pdf.call_args.args[0]
        assert context["invoice"]["number"] == "1001"

    async def test_invoice_pdf_not_found(self, client: AsyncClient, seeded):
        response = await client.get("/api/v1/invoices/inv-404/pdf")
        assert response.status_code == 404


class TestInvoiceDrafts:
    """Composer sessions over HTTP."""

    async def _create_draft(self, client: AsyncClient) -> dict:
        response = await client.post("/api/v1/invoices/drafts")
        assert response.status_code == 201
        return response.json()["data"]

    async def test_new_draft_defaults(self, client: AsyncClient):
        draft = await self._create_draft(client)
        assert draft["student_id"] is None
        assert draft["payment_method"] == "Cash"
        assert draft["due_date"] == date.today().isoformat()
        assert len(draft["items"]) == 1
        assert draft["items"][0]["fee_type"] == "School Fees"
        assert draft["can_add_item"] is True
        assert draft["can_remove_item"] is False
        assert draft["amount_due"] is None
        assert "Fulfillment" in draft["fee_types"]
        assert draft["payment_methods"] == ["Card", "Ecocash", "Cash", "Credit"]

    async def test_student_picker_search(self, client: AsyncClient):
        draft = await self._create_draft(client)
        response = await client.get(
            f"/api/v1/invoices/drafts/{draft['id']}/students", params={"q": "8A"}
        )
        assert response.status_code == 200
        options = response.json()["data"]
        assert [o["id"] for o in options] == ["stu-1", "stu-3"]
        assert options[0]["label"] == "Tariro Moyo (VVA-001) - 8A"

    async def test_cash_invoice_flow(self, client: AsyncClient, backend: FakeAccountingBackend):
        draft = await self._create_draft(client)
        url = f"/api/v1/invoices/drafts/{draft['id']}"

        response = await client.patch(url, json={"student_id": "stu-1", "due_date": "2025-03-01"})
        assert response.status_code == 200
        response = await client.patch(f"{url}/items/0", json={"field": "amount", "value": "100"})
        assert Decimal(response.json()["data"]["total"]) == Decimal("100")

        response = await client.post(f"{url}/submit")
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "The invoice has been successfully created."
        assert body["data"]["redirect_to"] == "/invoices"
        assert backend.created_invoices == [
            {
                "studentId": "stu-1",
                "items": [{"feeType": "School Fees", "amount": 100.0}],
                "dueDate": "2025-03-01",
                "paymentMethod": "Cash",
            }
        ]

        # Draft is gone after a successful submission
        response = await client.get(url)
        assert response.status_code == 404

    async def test_credit_invoice_flow(self, client: AsyncClient, backend: FakeAccountingBackend):
        draft = await self._create_draft(client)
        url = f"/api/v1/invoices/drafts/{draft['id']}"
        await client.patch(url, json={"student_id": "stu-2"})
        await client.patch(f"{url}/items/0", json={"field": "amount", "value": 60})
        await client.post(f"{url}/items")
        await client.patch(f"{url}/items/1", json={"field": "fee_type", "value": "Uniform"})
        await client.patch(f"{url}/items/1", json={"field": "amount", "value": 40})

        response = await client.patch(url, json={"payment_method": "Credit"})
        data = response.json()["data"]
        assert data["is_credit_payment"] is True
        assert Decimal(data["amount_due"]) == Decimal("100")
        assert data["can_remove_item"] is True

        response = await client.post(f"{url}/submit")
        assert response.status_code == 201
        payload = backend.created_invoices[0]
        assert payload["paymentMethod"] == "Credit"
        assert payload["amountDue"] == 100.0
        assert payload["items"][1] == {"feeType": "Uniform", "amount": 40.0}

    async def test_fulfillment_flow(self, client: AsyncClient, backend: FakeAccountingBackend):
        backend.credit_invoices["stu-1"] = [
            {"id": "cr-1", "total": 250, "status": "Pending", "dueDate": "2025-01-31T00:00:00Z"},
            {"id": "cr-2", "total": 90, "status": "Overdue", "dueDate": None},
        ]
        draft = await self._create_draft(client)
        url = f"/api/v1/invoices/drafts/{draft['id']}"

        await client.patch(url, json={"student_id": "stu-1"})
        response = await client.patch(
            f"{url}/items/0", json={"field": "fee_type", "value": "Fulfillment"}
        )
        data = response.json()["data"]
        assert data["is_fulfillment"] is True
        assert data["can_add_item"] is False
        assert data["credit_lookup_pending"] is False
        assert [c["id"] for c in data["credit_invoices"]] == ["cr-1", "cr-2"]
        assert data["selected_credit_invoice_id"] == "cr-1"
        assert Decimal(data["items"][0]["amount"]) == Decimal("250")
        assert len(backend.calls("GET", "/invoices/student/stu-1/credit-outstanding")) == 1

        response = await client.patch(url, json={"credit_invoice_id": "cr-2"})
        assert Decimal(response.json()["data"]["items"][0]["amount"]) == Decimal("90")

        response = await client.post(f"{url}/items")
        assert response.status_code == 409

        response = await client.post(f"{url}/submit")
        assert response.status_code == 201
        payload = backend.created_invoices[0]
        assert payload["linkedInvoiceId"] == "cr-2"
        assert payload["items"] == [{"feeType": "Fulfillment", "amount": 90.0}]

    async def test_validation_blocks_submission(
        self, client: AsyncClient, backend: FakeAccountingBackend
    ):
        draft = await self._create_draft(client)
        url = f"/api/v1/invoices/drafts/{draft['id']}"

        response = await client.post(f"{url}/submit")
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Please select a student"
        assert body["errors"][0]["field"] == "student_id"

        await client.patch(url, json={"student_id": "stu-1"})
        response = await client.post(f"{url}/submit")
        assert response.json()["message"] == "All items must have a positive amount"

        assert backend.calls("POST", "/invoices/new") == []

    async def test_server_error_keeps_draft(
        self, client: AsyncClient, backend: FakeAccountingBackend
    ):
        backend.create_invoice_error = (400, {"error": "Student has an overdue credit invoice"})
        draft = await self._create_draft(client)
        url = f"/api/v1/invoices/drafts/{draft['id']}"
        await client.patch(url, json={"student_id": "stu-1"})
        await client.patch(f"{url}/items/0", json={"field": "amount", "value": 100})

        response = await client.post(f"{url}/submit")
        assert response.status_code == 400
        assert response.json()["message"] == "Student has an overdue credit invoice"

        response = await client.get(url)
        data = response.json()["data"]
        assert data["student_id"] == "stu-1"
        assert Decimal(data["items"][0]["amount"]) == Decimal("100")
        assert data["is_submitting"] is False

    async def test_server_error_without_message(
        self, client: AsyncClient, backend: FakeAccountingBackend
    ):
        backend.create_invoice_error = (500, {})
        draft = await self._create_draft(client)
        url = f"/api/v1/invoices/drafts/{draft['id']}"
        await client.patch(url, json={"student_id": "stu-1"})
        await client.patch(f"{url}/items/0", json={"field": "amount", "value": 100})

        response = await client.post(f"{url}/submit")
        assert response.status_code == 502
        assert response.json()["message"] == "Failed to create invoice"

    async def test_remove_last_item_rejected(self, client: AsyncClient):
        draft = await self._create_draft(client)
        response = await client.delete(f"/api/v1/invoices/drafts/{draft['id']}/items/0")
        assert response.status_code == 409

    async def test_discard_draft(self, client: AsyncClient):
        draft = await self._create_draft(client)
        url = f"/api/v1/invoices/drafts/{draft['id']}"
        response = await client.delete(url)
        assert response.status_code == 204
        response = await client.get(url)
        assert response.status_code == 404
        assert response.json()["success"] is False
