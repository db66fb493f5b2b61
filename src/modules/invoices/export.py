"""Export the invoice register to CSV and Excel (XLSX)."""

import csv
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO, StringIO
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font

from src.modules.invoices.models import InvoiceStatus
from src.modules.invoices.schemas import Invoice
from src.shared.utils.money import format_currency

HEADERS = [
    "Invoice ID",
    "Student Name",
    "Student Admission ID",
    "Items",
    "Total Amount",
    "Due Date",
    "Status",
    "Created At",
]


def _iso_date(value: datetime | None) -> str:
    return value.date().isoformat() if value else ""


def _items_summary(invoice: Invoice, currency_symbol: str = "$") -> str:
    return "; ".join(
        f"{item.label} ({format_currency(item.amount, currency_symbol)})" for item in invoice.items
    )


def invoice_row(invoice: Invoice, currency_symbol: str = "$") -> list[Any]:
    """One register row; shared by CSV and XLSX."""
    return [
        invoice.display_number,
        invoice.student_name,
        (invoice.student.admission_id if invoice.student else None) or "",
        _items_summary(invoice, currency_symbol),
        invoice.total,
        _iso_date(invoice.due_date),
        invoice.status,
        _iso_date(invoice.created_at),
    ]


def export_filename(
    prefix: str,
    status: InvoiceStatus | None,
    extension: str,
    today: date | None = None,
) -> str:
    """E.g. ``Vumba_Invoices_Paid_20250301.csv``."""
    stamp = (today or date.today()).strftime("%Y%m%d")
    label = status.value if status else "All"
    return f"{prefix}_Invoices_{label}_{stamp}.{extension}"


def build_invoices_csv(invoices: list[Invoice], currency_symbol: str = "$") -> str:
    """Build CSV content for the invoice register."""
    out = StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(HEADERS)
    for invoice in invoices:
        row = invoice_row(invoice, currency_symbol)
        row[4] = str(row[4])
        writer.writerow(row)
    return out.getvalue()


def _cell_value(v: Any) -> Any:
    """Convert value for Excel (Decimal -> float)."""
    if isinstance(v, Decimal):
        return float(v)
    return v


def build_invoices_xlsx(
    invoices: list[Invoice],
    title: str = "Invoices",
    currency_symbol: str = "$",
) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    for j, header in enumerate(HEADERS, start=1):
        ws.cell(row=1, column=j, value=header).font = Font(bold=True)
    row = 2
    for invoice in invoices:
        for j, val in enumerate(invoice_row(invoice, currency_symbol), start=1):
            ws.cell(row=row, column=j, value=_cell_value(val))
        row += 1
    total = sum((invoice.total for invoice in invoices), Decimal("0"))
    ws.cell(row=row, column=1, value="TOTAL").font = Font(bold=True)
    ws.cell(row=row, column=5, value=_cell_value(total)).font = Font(bold=True)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
