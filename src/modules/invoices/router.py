"""API endpoints for Invoices module (list, export, PDF, composer drafts)."""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from src.core.backend import AccountingBackendClient, get_backend
from src.core.config import settings
from src.core.pdf import build_invoice_context, invoice_pdf_filename, pdf_service
from src.modules.invoices.composer import InvoiceComposer
from src.modules.invoices.drafts import DraftStore, get_draft_store
from src.modules.invoices.export import (
    build_invoices_csv,
    build_invoices_xlsx,
    export_filename,
)
from src.modules.invoices.models import InvoiceStatus
from src.modules.invoices.schemas import (
    CreditInvoiceOption,
    DraftResponse,
    DraftUpdate,
    InvoiceListResponse,
    LineItemUpdate,
    StudentOption,
    SubmitResponse,
)
from src.modules.invoices.service import InvoiceService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/invoices", tags=["Invoices"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _draft_to_response(draft_id: str, composer: InvoiceComposer) -> DraftResponse:
    """Snapshot composer state plus derived values."""
    return DraftResponse(
        id=draft_id,
        student_id=composer.student_id,
        due_date=composer.due_date,
        payment_method=composer.payment_method,
        search_query=composer.search_query,
        items=[item.model_copy() for item in composer.items],
        total=composer.total,
        amount_due=composer.amount_due,
        is_credit_payment=composer.is_credit_payment,
        is_fulfillment=composer.is_fulfillment,
        can_add_item=composer.can_add_item,
        can_remove_item=composer.can_remove_item,
        credit_invoices=[
            CreditInvoiceOption(
                id=inv.id,
                total=inv.total,
                due_date=inv.due_date,
                status=inv.status,
            )
            for inv in composer.credit_invoices
        ],
        selected_credit_invoice_id=composer.selected_credit_invoice_id,
        credit_lookup_pending=composer.credit_lookup_pending,
        is_submitting=composer.is_submitting,
    )


# --- Invoice list ---


@router.get(
    "",
    response_model=ApiResponse[InvoiceListResponse],
    response_model_by_alias=False,
)
async def list_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    status: InvoiceStatus | None = Query(None),
    backend: AccountingBackendClient = Depends(get_backend),
):
    """List invoices, optionally filtered by status."""
    service = InvoiceService(backend)
    invoices, pagination = await service.list_invoices(page=page, limit=limit, status=status)
    pages = pagination.total_pages or ((pagination.total + limit - 1) // limit)
    return ApiResponse(
        data=InvoiceListResponse(
            items=invoices,
            total=pagination.total,
            page=pagination.page,
            limit=pagination.limit,
            pages=pages,
            status=status,
        )
    )


@router.get("/export")
async def export_invoices(
    status: InvoiceStatus | None = Query(None),
    format: str = Query("csv", description="Format: csv | xlsx"),
    backend: AccountingBackendClient = Depends(get_backend),
):
    """Export every invoice matching the status filter as CSV or XLSX."""
    fmt = format.lower()
    if fmt not in ("csv", "xlsx"):
        return Response(
            content="Only CSV and XLSX formats are supported",
            status_code=400,
        )
    service = InvoiceService(backend)
    invoices = await service.list_invoices_for_export(status)
    filename = export_filename(settings.export_prefix, status, fmt)
    if fmt == "csv":
        return Response(
            content=build_invoices_csv(invoices, settings.currency_symbol),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return Response(
        content=build_invoices_xlsx(invoices, currency_symbol=settings.currency_symbol),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- Composer drafts ---


@router.post(
    "/drafts",
    response_model=ApiResponse[DraftResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_draft(
    backend: AccountingBackendClient = Depends(get_backend),
    drafts: DraftStore = Depends(get_draft_store),
):
    """Open a new invoice draft with default values."""
    composer = await InvoiceService(backend).new_composer()
    draft_id = drafts.create(composer)
    return ApiResponse(data=_draft_to_response(draft_id, composer))


@router.get(
    "/drafts/{draft_id}",
    response_model=ApiResponse[DraftResponse],
)
async def get_draft(
    draft_id: str,
    drafts: DraftStore = Depends(get_draft_store),
):
    composer = drafts.get(draft_id)
    await composer.load_credit_invoices()
    return ApiResponse(data=_draft_to_response(draft_id, composer))


@router.patch(
    "/drafts/{draft_id}",
    response_model=ApiResponse[DraftResponse],
)
async def update_draft(
    draft_id: str,
    data: DraftUpdate,
    drafts: DraftStore = Depends(get_draft_store),
):
    """
    Update draft fields. Only fields present in the body are applied, in the
    order student, due date, payment method, search query, credit invoice.
    """
    composer = drafts.get(draft_id)
    fields = data.model_fields_set
    if "student_id" in fields:
        composer.select_student(data.student_id)
    if "due_date" in fields:
        composer.set_due_date(data.due_date)
    if "payment_method" in fields and data.payment_method is not None:
        composer.set_payment_method(data.payment_method)
    if "search_query" in fields:
        composer.set_search_query(data.search_query)
    await composer.load_credit_invoices()
    if "credit_invoice_id" in fields:
        composer.select_credit_invoice(data.credit_invoice_id)
    return ApiResponse(data=_draft_to_response(draft_id, composer))


@router.get(
    "/drafts/{draft_id}/students",
    response_model=ApiResponse[list[StudentOption]],
)
async def list_draft_students(
    draft_id: str,
    q: str | None = Query(None, description="Search by name, admission id or class"),
    drafts: DraftStore = Depends(get_draft_store),
):
    """Student picker entries matching the draft's search query."""
    composer = drafts.get(draft_id)
    if q is not None:
        composer.set_search_query(q)
    return ApiResponse(
        data=[
            StudentOption(
                id=s.id,
                label=s.label,
                name=s.name,
                admission_id=s.admission_id,
                class_name=s.class_name,
            )
            for s in composer.filtered_students
        ]
    )


@router.post(
    "/drafts/{draft_id}/items",
    response_model=ApiResponse[DraftResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_draft_item(
    draft_id: str,
    drafts: DraftStore = Depends(get_draft_store),
):
    composer = drafts.get(draft_id)
    composer.add_item()
    return ApiResponse(data=_draft_to_response(draft_id, composer))


@router.patch(
    "/drafts/{draft_id}/items/{index}",
    response_model=ApiResponse[DraftResponse],
)
async def update_draft_item(
    draft_id: str,
    index: int,
    data: LineItemUpdate,
    drafts: DraftStore = Depends(get_draft_store),
):
    composer = drafts.get(draft_id)
    composer.update_item(index, data.field, data.value)
    await composer.load_credit_invoices()
    return ApiResponse(data=_draft_to_response(draft_id, composer))


@router.delete(
    "/drafts/{draft_id}/items/{index}",
    response_model=ApiResponse[DraftResponse],
)
async def remove_draft_item(
    draft_id: str,
    index: int,
    drafts: DraftStore = Depends(get_draft_store),
):
    composer = drafts.get(draft_id)
    composer.remove_item(index)
    return ApiResponse(data=_draft_to_response(draft_id, composer))


@router.post(
    "/drafts/{draft_id}/submit",
    response_model=ApiResponse[SubmitResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_draft(
    draft_id: str,
    drafts: DraftStore = Depends(get_draft_store),
):
    """Validate and create the invoice; the draft is discarded on success only."""
    composer = drafts.get(draft_id)
    created = await composer.submit()
    drafts.discard(draft_id)
    return ApiResponse(
        message="The invoice has been successfully created.",
        data=SubmitResponse(invoice=created),
    )


@router.delete(
    "/drafts/{draft_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def discard_draft(
    draft_id: str,
    drafts: DraftStore = Depends(get_draft_store),
):
    """Cancel: drop the draft without creating anything."""
    drafts.discard(draft_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Single invoice ---


@router.delete(
    "/{invoice_id}",
    response_model=ApiResponse[None],
)
async def delete_invoice(
    invoice_id: str,
    backend: AccountingBackendClient = Depends(get_backend),
):
    await InvoiceService(backend).delete_invoice(invoice_id)
    return ApiResponse(message="Invoice deleted successfully!", data=None)


@router.get("/{invoice_id}/pdf")
async def get_invoice_pdf(
    invoice_id: str,
    backend: AccountingBackendClient = Depends(get_backend),
):
    """Download invoice as PDF."""
    invoice = await InvoiceService(backend).get_invoice(invoice_id)
    context = build_invoice_context(invoice, settings.school_info, settings.currency_symbol)
    pdf_bytes = pdf_service.generate_invoice_pdf(context)
    filename = invoice_pdf_filename(invoice)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
