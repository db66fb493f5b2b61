"""Schemas for Invoices module."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import Field, field_validator

from src.modules.invoices.models import (
    DEFAULT_FEE_TYPE,
    FeeType,
    InvoiceStatus,
    PaymentMethod,
)
from src.shared.schemas.base import BaseSchema, WireSchema
from src.shared.utils.money import ZERO, to_amount


# --- Backend invoice payloads (read-only) ---


class InvoiceItem(WireSchema):
    """Line of an issued invoice; older invoices carry `name` instead of `feeType`."""

    fee_type: str | None = None
    name: str | None = None
    amount: Decimal = ZERO
    description: str | None = None
    quantity: int | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return to_amount(v)

    @property
    def label(self) -> str:
        return self.name or self.fee_type or ""


class InvoicePayment(WireSchema):
    """Payment recorded against an invoice."""

    amount: Decimal = ZERO
    date: datetime | None = None
    method: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return to_amount(v)


class InvoiceStudent(WireSchema):
    """Student block embedded in an invoice."""

    name: str = ""
    admission_id: str | None = None
    class_name: str | None = Field(None, alias="class")
    contact: str | None = None


class Invoice(WireSchema):
    """Invoice as listed by the accounting backend."""

    id: str
    invoice_number: str | None = None
    student_id: str | None = None
    student: InvoiceStudent | None = None
    items: list[InvoiceItem] = Field(default_factory=list)
    total: Decimal = ZERO
    due_date: datetime | None = None
    status: str = InvoiceStatus.PENDING.value
    created_at: datetime | None = None
    payments: list[InvoicePayment] = Field(default_factory=list)

    @field_validator("id", "student_id", "invoice_number", mode="before")
    @classmethod
    def coerce_str(cls, v):
        return None if v is None else str(v)

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, v):
        return to_amount(v)

    @field_validator("items", "payments", mode="before")
    @classmethod
    def coerce_list(cls, v):
        # Items are stored as JSON on the backend and may come back as null
        return v if isinstance(v, list) else []

    @property
    def display_number(self) -> str:
        return f"INV-{self.invoice_number or self.id[:8]}"

    @property
    def student_name(self) -> str:
        return self.student.name if self.student else ""

    def has_fee_type(self, fee_type: str) -> bool:
        return any(item.fee_type == fee_type for item in self.items)


class CreditInvoice(WireSchema):
    """Outstanding invoice issued on credit; selectable as a fulfillment target."""

    id: str
    total: Decimal = ZERO
    due_date: datetime | None = None
    status: str = InvoiceStatus.PENDING.value
    items: list[InvoiceItem] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)

    @field_validator("total", mode="before")
    @classmethod
    def coerce_total(cls, v):
        return to_amount(v)

    @field_validator("items", mode="before")
    @classmethod
    def coerce_items(cls, v):
        return v if isinstance(v, list) else []


class Pagination(WireSchema):
    """Pagination block of backend list responses."""

    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0


# --- Composer ---


class LineItem(BaseSchema):
    """Line item of the invoice being composed."""

    fee_type: FeeType = DEFAULT_FEE_TYPE
    amount: Decimal = ZERO
    description: str | None = None

    @property
    def is_fulfillment(self) -> bool:
        return self.fee_type == FeeType.FULFILLMENT

    def to_wire(self) -> dict:
        data: dict[str, Any] = {
            "feeType": self.fee_type.value,
            "amount": float(self.amount),
        }
        if self.description:
            data["description"] = self.description
        return data


class StandardSettlement(BaseSchema):
    """Paid up front (card, Ecocash or cash)."""

    kind: Literal["standard"] = "standard"
    payment_method: Literal[PaymentMethod.CARD, PaymentMethod.ECOCASH, PaymentMethod.CASH]


class CreditSettlement(BaseSchema):
    """Issued on credit: the whole total is owed."""

    kind: Literal["credit"] = "credit"
    amount_due: Decimal

    @property
    def payment_method(self) -> PaymentMethod:
        return PaymentMethod.CREDIT


Settlement = Annotated[
    Union[StandardSettlement, CreditSettlement],
    Field(discriminator="kind"),
]


class FulfillmentLink(BaseSchema):
    """Settles a previously issued credit invoice."""

    linked_invoice_id: str


class ComposedInvoice(BaseSchema):
    """
    Validated draft ready for submission.

    Payment and fulfillment modes are explicit variants here; the backend's
    "field present implies mode active" format only exists in `to_wire`.
    """

    student_id: str
    items: list[LineItem]
    due_date: date
    settlement: Settlement
    fulfillment: FulfillmentLink | None = None

    def to_wire(self) -> dict:
        payload: dict[str, Any] = {
            "studentId": self.student_id,
            "items": [item.to_wire() for item in self.items],
            "dueDate": self.due_date.isoformat(),
            "paymentMethod": self.settlement.payment_method.value,
        }
        if isinstance(self.settlement, CreditSettlement):
            payload["amountDue"] = float(self.settlement.amount_due)
        if self.fulfillment is not None:
            payload["linkedInvoiceId"] = self.fulfillment.linked_invoice_id
        return payload


# --- Composer API ---


class DraftUpdate(BaseSchema):
    """Partial update of draft fields; only fields present in the body are applied."""

    student_id: str | None = None
    due_date: date | None = None
    payment_method: PaymentMethod | None = None
    search_query: str | None = None
    credit_invoice_id: str | None = None


class LineItemUpdate(BaseSchema):
    """Set one field of one line item."""

    field: Literal["fee_type", "amount", "description"]
    value: Any = None


class StudentOption(BaseSchema):
    """Student entry of the composer's picker."""

    id: str
    label: str
    name: str
    admission_id: str
    class_name: str


class CreditInvoiceOption(BaseSchema):
    """Outstanding credit invoice offered for fulfillment."""

    id: str
    total: Decimal
    due_date: datetime | None = None
    status: str


class DraftResponse(BaseSchema):
    """Composer state with derived values, as rendered by the new-invoice page."""

    id: str
    student_id: str | None = None
    due_date: date | None = None
    payment_method: PaymentMethod
    search_query: str = ""
    items: list[LineItem]
    total: Decimal
    amount_due: Decimal | None = None
    is_credit_payment: bool
    is_fulfillment: bool
    can_add_item: bool
    can_remove_item: bool
    credit_invoices: list[CreditInvoiceOption] = Field(default_factory=list)
    selected_credit_invoice_id: str | None = None
    credit_lookup_pending: bool = False
    is_submitting: bool = False
    fee_types: list[str] = Field(default_factory=lambda: [f.value for f in FeeType])
    payment_methods: list[str] = Field(default_factory=lambda: [m.value for m in PaymentMethod])


class SubmitResponse(BaseSchema):
    """Result of a successful submission; the client navigates to `redirect_to`."""

    invoice: Any = None
    redirect_to: str = "/invoices"


# --- Listing ---


class InvoiceListResponse(BaseSchema):
    """Invoice list page: current page of invoices plus pagination."""

    items: list[Invoice]
    total: int
    page: int
    limit: int
    pages: int
    status: InvoiceStatus | None = None
