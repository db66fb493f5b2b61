"""Invoice composer: draft state, derived values, credit fulfillment and submission."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from src.core.backend import AccountingBackendClient
from src.core.exceptions import BackendError, ComposerStateError, ValidationError
from src.modules.invoices.models import DEFAULT_PAYMENT_METHOD, FeeType, PaymentMethod
from src.modules.invoices.schemas import (
    ComposedInvoice,
    CreditInvoice,
    CreditSettlement,
    FulfillmentLink,
    LineItem,
    StandardSettlement,
)
from src.modules.students.schemas import Student
from src.shared.utils.money import ZERO, sum_money, to_amount

logger = logging.getLogger(__name__)

ITEM_FIELDS = ("fee_type", "amount", "description")


class InvoiceComposer:
    """
    State of one "create invoice" session.

    Setters re-run the dependent rules synchronously. The only asynchronous
    dependency is the outstanding-credit lookup: a state change that needs it
    marks it pending, and `load_credit_invoices` performs it. Each lookup is
    tagged with the student id and a generation number; a response that
    arrives after the key changed is discarded.
    """

    def __init__(
        self,
        backend: AccountingBackendClient,
        students: list[Student] | None = None,
        today: date | None = None,
    ):
        self.backend = backend
        self.students: list[Student] = list(students or [])
        self._today = today
        self.reset()

    def reset(self) -> None:
        """Start a fresh draft (also used after a successful submission)."""
        self.student_id: str | None = None
        self.items: list[LineItem] = [LineItem()]
        self.due_date: date | None = self._today or date.today()
        self.payment_method: PaymentMethod = DEFAULT_PAYMENT_METHOD
        self.search_query = ""
        self.credit_invoices: list[CreditInvoice] = []
        self.selected_credit_invoice_id: str | None = None
        self.is_submitting = False
        self._lookup_key: str | None = None
        self._lookup_generation = getattr(self, "_lookup_generation", 0) + 1
        self._lookup_pending = False

    # --- Derived values ---

    @property
    def total(self) -> Decimal:
        return sum_money(item.amount for item in self.items)

    @property
    def is_credit_payment(self) -> bool:
        return self.payment_method == PaymentMethod.CREDIT

    @property
    def is_fulfillment(self) -> bool:
        return any(item.is_fulfillment for item in self.items)

    @property
    def amount_due(self) -> Decimal | None:
        """Mirrors the total for credit invoices; not settable."""
        return self.total if self.is_credit_payment else None

    @property
    def filtered_students(self) -> list[Student]:
        if not self.search_query:
            return list(self.students)
        return [s for s in self.students if s.matches(self.search_query)]

    @property
    def can_add_item(self) -> bool:
        return not self.is_fulfillment and not self.is_submitting

    @property
    def can_remove_item(self) -> bool:
        return len(self.items) > 1 and not self.is_fulfillment and not self.is_submitting

    @property
    def credit_lookup_pending(self) -> bool:
        return self._lookup_pending

    @property
    def selected_credit_invoice(self) -> CreditInvoice | None:
        if self.selected_credit_invoice_id is None:
            return None
        for invoice in self.credit_invoices:
            if invoice.id == self.selected_credit_invoice_id:
                return invoice
        return None

    def _fulfillment_index(self) -> int | None:
        for index, item in enumerate(self.items):
            if item.is_fulfillment:
                return index
        return None

    # --- Setters ---

    def select_student(self, student_id: str | None) -> None:
        self._ensure_not_submitting()
        self.student_id = student_id or None
        self._sync_credit_lookup()

    def set_due_date(self, due_date: date | None) -> None:
        self._ensure_not_submitting()
        self.due_date = due_date

    def set_payment_method(self, method: PaymentMethod | str) -> None:
        self._ensure_not_submitting()
        try:
            self.payment_method = PaymentMethod(method)
        except ValueError:
            raise ValidationError(f"Unknown payment method: {method}", field="payment_method")

    def set_search_query(self, query: str | None) -> None:
        self.search_query = (query or "").strip()

    def select_credit_invoice(self, credit_invoice_id: str | None) -> None:
        self._ensure_not_submitting()
        if credit_invoice_id is None:
            self.selected_credit_invoice_id = None
            return
        if not self.is_fulfillment:
            raise ComposerStateError(
                "Credit invoices can only be selected for a fulfillment item",
                field="credit_invoice_id",
            )
        if not any(inv.id == credit_invoice_id for inv in self.credit_invoices):
            raise ValidationError(
                "Selected credit invoice is not outstanding for this student",
                field="credit_invoice_id",
            )
        self.selected_credit_invoice_id = credit_invoice_id
        self._sync_fulfillment_amount()

    # --- Item operations ---

    def add_item(self) -> LineItem:
        self._ensure_not_submitting()
        if self.is_fulfillment:
            raise ComposerStateError("Items cannot be added to a fulfillment invoice")
        item = LineItem()
        self.items.append(item)
        return item

    def remove_item(self, index: int) -> None:
        self._ensure_not_submitting()
        self._check_index(index)
        if self.is_fulfillment:
            raise ComposerStateError("Items cannot be removed from a fulfillment invoice")
        if len(self.items) <= 1:
            raise ComposerStateError("An invoice needs at least one item")
        del self.items[index]

    def update_item(self, index: int, field: str, value: Any) -> LineItem:
        self._ensure_not_submitting()
        self._check_index(index)
        item = self.items[index]

        if field == "fee_type":
            try:
                fee_type = FeeType(value)
            except ValueError:
                raise ValidationError(f"Unknown fee type: {value}", field="fee_type")
            if self.is_fulfillment and not item.is_fulfillment and fee_type == FeeType.FULFILLMENT:
                raise ComposerStateError("Only one fulfillment item is allowed")
            item.fee_type = fee_type
            if fee_type == FeeType.FULFILLMENT:
                item.amount = ZERO
                self.selected_credit_invoice_id = None
            self._sync_credit_lookup()
        elif field == "amount":
            if item.is_fulfillment:
                raise ComposerStateError(
                    "Fulfillment amount follows the selected credit invoice",
                    field="amount",
                )
            item.amount = to_amount(value)
        elif field == "description":
            item.description = str(value) if value not in (None, "") else None
        else:
            raise ValidationError(f"Unknown item field: {field}", field="field")
        return item

    # --- Credit invoice lookup ---

    def _sync_credit_lookup(self) -> None:
        """Request a lookup when fulfillment needs one, otherwise drop credit state."""
        key = self.student_id if self.is_fulfillment else None
        if key is None:
            if self._lookup_key is not None or self._lookup_pending:
                self._lookup_generation += 1
            self._lookup_key = None
            self._lookup_pending = False
            self.credit_invoices = []
            self.selected_credit_invoice_id = None
            return
        if key != self._lookup_key:
            self._lookup_key = key
            self._lookup_generation += 1
            self._lookup_pending = True
            self.credit_invoices = []
            self.selected_credit_invoice_id = None

    async def load_credit_invoices(self) -> bool:
        """
        Perform the pending outstanding-credit lookup.

        Returns True when the response was applied, False when nothing was
        pending or the response arrived for a superseded key.
        """
        if not self._lookup_pending or self._lookup_key is None:
            return False
        key, generation = self._lookup_key, self._lookup_generation
        self._lookup_pending = False
        try:
            raw = await self.backend.get_outstanding_credit_invoices(key)
        except BackendError:
            if self._is_current(key, generation):
                self._lookup_pending = True
            raise
        invoices = [CreditInvoice.model_validate(item) for item in raw]
        return self.apply_credit_invoices(key, generation, invoices)

    def apply_credit_invoices(
        self,
        key: str,
        generation: int,
        invoices: list[CreditInvoice],
    ) -> bool:
        if not self._is_current(key, generation):
            logger.info(
                "Discarding stale credit invoice lookup for student %s (generation %s)",
                key,
                generation,
            )
            return False
        self.credit_invoices = invoices
        if self.selected_credit_invoice is None:
            self.selected_credit_invoice_id = invoices[0].id if invoices else None
        self._sync_fulfillment_amount()
        return True

    def _is_current(self, key: str, generation: int) -> bool:
        return key == self._lookup_key and generation == self._lookup_generation

    def _sync_fulfillment_amount(self) -> None:
        """Copy the selected credit invoice total onto the fulfillment item."""
        selected = self.selected_credit_invoice
        index = self._fulfillment_index()
        if selected is None or index is None:
            return
        self.items[index].amount = selected.total

    # --- Validation & submission ---

    def validate(self) -> None:
        """Raise ValidationError for the first failing rule."""
        if not self.student_id:
            raise ValidationError("Please select a student", field="student_id")
        if self.due_date is None:
            raise ValidationError("Please select a due date", field="due_date")
        if not self.items:
            raise ValidationError("Please add at least one item", field="items")
        if any(not item.is_fulfillment and item.amount <= 0 for item in self.items):
            raise ValidationError("All items must have a positive amount", field="items")
        if self.is_fulfillment:
            selected = self.selected_credit_invoice
            if selected is None:
                raise ValidationError(
                    "Please select a credit invoice to fulfill",
                    field="credit_invoice_id",
                )
            item = self.items[self._fulfillment_index()]
            if item.amount != selected.total:
                raise ValidationError(
                    "Fulfillment amount must equal the selected credit invoice total",
                    field="items",
                )

    def compose(self) -> ComposedInvoice:
        """Validate and build the tagged submission model."""
        self.validate()
        if self.is_credit_payment:
            settlement = CreditSettlement(amount_due=self.total)
        else:
            settlement = StandardSettlement(payment_method=self.payment_method)
        fulfillment = None
        if self.is_fulfillment:
            fulfillment = FulfillmentLink(linked_invoice_id=self.selected_credit_invoice_id)
        return ComposedInvoice(
            student_id=self.student_id,
            items=[item.model_copy() for item in self.items],
            due_date=self.due_date,
            settlement=settlement,
            fulfillment=fulfillment,
        )

    async def submit(self) -> Any:
        """
        Validate and create the invoice. The draft is cleared only on success;
        on failure the BackendError (server message or fallback) propagates.
        """
        if self.is_submitting:
            raise ComposerStateError("Invoice submission already in progress")
        payload = self.compose().to_wire()
        self.is_submitting = True
        try:
            created = await self.backend.create_invoice(payload)
        finally:
            self.is_submitting = False
        logger.info(
            "Invoice created for student %s (%s, total %s)",
            payload["studentId"],
            payload["paymentMethod"],
            self.total,
        )
        self.reset()
        return created

    # --- Helpers ---

    def _ensure_not_submitting(self) -> None:
        if self.is_submitting:
            raise ComposerStateError("Draft is locked while the invoice is being submitted")

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.items):
            raise ValidationError(f"No item at position {index}", field="index")
