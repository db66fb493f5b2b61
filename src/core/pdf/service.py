"""PDF generation service (invoice) from HTML templates."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from num2words import num2words

from src.core.exceptions import PdfGenerationUnavailableError

TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "pdf"

STATUS_COLORS = {
    "Paid": "#27ae60",
    "Pending": "#e67e22",
}
DEFAULT_STATUS_COLOR = "#c0392b"


def _amount_to_words(amount: float) -> str:
    """Convert amount to words (e.g. 150 -> 'One Hundred And Fifty Dollars Only')."""
    amount_int = int(round(amount, 0))
    words = num2words(amount_int, lang="en").title()
    return f"{words} Dollars Only"


class PDFService:
    """Generate PDF documents from Jinja2 templates and WeasyPrint."""

    def __init__(self) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=True,
        )

    def render_invoice_html(self, context: dict) -> str:
        template = self._env.get_template("invoice.html")
        return template.render(**context)

    def generate_invoice_pdf(self, context: dict) -> bytes:
        """Render invoice template with context and return PDF bytes."""
        try:
            from weasyprint import HTML
        except (OSError, ImportError) as e:
            raise PdfGenerationUnavailableError(
                f"PDF generation unavailable (WeasyPrint/system libs). On macOS: brew install pango glib. {e!s}"
            ) from e
        html_content = self.render_invoice_html(context)
        try:
            return HTML(string=html_content).write_pdf()
        except Exception as e:
            raise PdfGenerationUnavailableError(str(e)) from e


def build_invoice_context(invoice, school_info: dict[str, str], currency_symbol: str = "$") -> dict:
    """Build template context for invoice PDF from a backend invoice."""
    student = invoice.student
    lines = [
        {
            "fee_type": item.fee_type or item.name or "",
            "description": item.description or "",
            "amount": float(item.amount),
        }
        for item in invoice.items
    ]
    payments = [
        {
            "date": payment.date,
            "method": payment.method,
            "amount": float(payment.amount),
        }
        for payment in invoice.payments
    ]
    total = float(invoice.total)
    return {
        "invoice": {
            "number": invoice.invoice_number or invoice.id[:8],
            "created_at": invoice.created_at,
            "due_date": invoice.due_date,
            "status": invoice.status,
            "status_color": STATUS_COLORS.get(invoice.status, DEFAULT_STATUS_COLOR),
            "total": total,
            "total_in_words": _amount_to_words(total),
            "lines": lines,
            "payments": payments,
            "student": {
                "name": student.name if student else "",
                "class_name": (student.class_name if student else None) or "",
                "contact": (student.contact if student else None) or "",
            },
        },
        "school_info": school_info,
        "currency": currency_symbol,
    }


def invoice_pdf_filename(invoice) -> str:
    return f"Invoice_{invoice.invoice_number or invoice.id[:8]}.pdf"


pdf_service = PDFService()
