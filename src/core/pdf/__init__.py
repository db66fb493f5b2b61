from src.core.pdf.service import (
    build_invoice_context,
    invoice_pdf_filename,
    pdf_service,
)

__all__ = ["pdf_service", "build_invoice_context", "invoice_pdf_filename"]
