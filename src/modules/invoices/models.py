"""Invoice enumerations shared by the composer, listing and exports."""

from enum import StrEnum


class FeeType(StrEnum):
    """Fee type of an invoice line item."""

    SCHOOL_FEES = "School Fees"
    UNIFORM = "Uniform"
    PRACTICAL_FEES = "Practical Fees"
    HOLIDAY_LESSONS = "Holiday Lessons"
    TRIPS = "Trips"
    EXAM_FEES = "Exam Fees"
    PROJECT_FEES = "Project Fees"
    OTHER = "Other"
    # Amount mirrors the total of the outstanding credit invoice being settled
    FULFILLMENT = "Fulfillment"


class PaymentMethod(StrEnum):
    """Payment method options."""

    CARD = "Card"
    ECOCASH = "Ecocash"
    CASH = "Cash"
    CREDIT = "Credit"


class InvoiceStatus(StrEnum):
    """Invoice status as reported by the accounting backend."""

    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


DEFAULT_FEE_TYPE = FeeType.SCHOOL_FEES
DEFAULT_PAYMENT_METHOD = PaymentMethod.CASH
