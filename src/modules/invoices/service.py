"""Service for Invoices module (listing, deletion, lookups for exports)."""

import logging

from src.core.backend import AccountingBackendClient
from src.core.exceptions import AppException, NotFoundError
from src.modules.invoices.composer import InvoiceComposer
from src.modules.invoices.models import InvoiceStatus
from src.modules.invoices.schemas import Invoice, Pagination
from src.modules.students.schemas import Student

logger = logging.getLogger(__name__)


class NoInvoicesToExportError(AppException):
    """Export requested but the current filters match nothing."""

    def __init__(self):
        super().__init__(
            message="No invoices to download based on current filters.",
            status_code=404,
        )


class InvoiceService:
    """Read/delete invoices through the accounting backend."""

    def __init__(self, backend: AccountingBackendClient):
        self.backend = backend

    async def list_invoices(
        self,
        page: int = 1,
        limit: int = 10,
        status: InvoiceStatus | None = None,
    ) -> tuple[list[Invoice], Pagination]:
        payload = await self.backend.list_invoices(
            page=page,
            limit=limit,
            status=status.value if status else None,
        )
        invoices = [Invoice.model_validate(row) for row in payload.get("data") or []]
        pagination = Pagination.model_validate(
            payload.get("pagination") or {"total": len(invoices), "page": page, "limit": limit}
        )
        return invoices, pagination

    async def list_all_invoices(self, status: InvoiceStatus | None = None) -> list[Invoice]:
        rows = await self.backend.get_all_invoices(status=status.value if status else None)
        return [Invoice.model_validate(row) for row in rows]

    async def list_invoices_for_export(self, status: InvoiceStatus | None = None) -> list[Invoice]:
        """All invoices matching the filter (no pagination); empty result is an error."""
        invoices = await self.list_all_invoices(status)
        if not invoices:
            raise NoInvoicesToExportError()
        return invoices

    async def get_invoice(self, invoice_id: str) -> Invoice:
        # The backend has no single-invoice endpoint; the list carries everything the PDF needs
        for invoice in await self.list_all_invoices():
            if invoice.id == invoice_id:
                return invoice
        raise NotFoundError("Invoice", invoice_id)

    async def delete_invoice(self, invoice_id: str) -> None:
        await self.backend.delete_invoice(invoice_id)
        logger.info("Invoice %s deleted", invoice_id)

    async def new_composer(self) -> InvoiceComposer:
        """Composer preloaded with the student directory for the picker."""
        rows = await self.backend.get_all_students()
        students = [Student.model_validate(row) for row in rows]
        return InvoiceComposer(self.backend, students=students)
