"""Schemas for Students module."""

import re
from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator

from src.shared.schemas.base import BaseSchema, WireSchema
from src.modules.invoices.schemas import Invoice

# Zimbabwe numbers are entered as plain digits, e.g. 0772...
CONTACT_REGEX = re.compile(r"^\d{4,}$")

DEFAULT_TERMLY_FEES = Decimal("130")


class Student(WireSchema):
    """Student as returned by the accounting backend directory."""

    id: str
    name: str
    admission_id: str = ""
    class_name: str = Field("", alias="class")
    contact: str | None = None
    parent_contact: str | None = None
    fees: Decimal | None = None
    created_at: datetime | None = None

    @field_validator("id", "name", "admission_id", "class_name", mode="before")
    @classmethod
    def coerce_str(cls, v):
        if v is None:
            return ""
        return str(v)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, admission id or class."""
        needle = query.lower()
        return (
            needle in self.name.lower()
            or needle in self.admission_id.lower()
            or needle in self.class_name.lower()
        )

    @property
    def label(self) -> str:
        return f"{self.name} ({self.admission_id}) - {self.class_name}"


class StudentDetail(Student):
    """Student with invoice history (detail page)."""

    invoices: list[Invoice] = Field(default_factory=list)
    uniforms: list = Field(default_factory=list)


class StudentCreate(WireSchema):
    """New student form."""

    name: str = Field(..., min_length=1, max_length=200)
    class_name: str = Field(..., min_length=1, max_length=50, alias="class")
    contact: str
    parent_contact: str
    fees: Decimal = Field(DEFAULT_TERMLY_FEES, gt=0)

    @field_validator("name", "class_name", mode="before")
    @classmethod
    def strip_required(cls, v):
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("Required")
        return v

    @field_validator("contact")
    @classmethod
    def validate_contact(cls, v: str) -> str:
        v = v.strip()
        if not CONTACT_REGEX.match(v):
            raise ValueError("Enter a valid number (e.g., 0772...)")
        return v

    @field_validator("parent_contact")
    @classmethod
    def validate_parent_contact(cls, v: str) -> str:
        v = v.strip()
        if not CONTACT_REGEX.match(v):
            raise ValueError("Enter a valid number")
        return v

    def to_wire(self) -> dict:
        return {
            "name": self.name,
            "class": self.class_name,
            "contact": self.contact,
            "parentContact": self.parent_contact,
            "fees": float(self.fees),
        }


class StudentSummary(BaseSchema):
    """Row of the students list page."""

    id: str
    name: str
    admission_id: str
    class_name: str
    contact: str | None = None
    parent_contact: str | None = None
    created_at: datetime | None = None


class Term(BaseSchema):
    """School term window within a year."""

    name: str
    start: datetime
    end: datetime


class StudentDetailResponse(BaseSchema):
    """Student detail page: profile, all invoices and grand total."""

    student: StudentSummary
    fees: Decimal | None = None
    invoices: list[Invoice] = Field(default_factory=list)
    grand_total: Decimal = Decimal("0.00")


class SchoolFeesResponse(BaseSchema):
    """School-fees invoices for a student filtered by year/term."""

    year: int
    term: str
    available_years: list[int]
    available_terms: list[str]
    invoices: list[Invoice] = Field(default_factory=list)
    total: Decimal = Decimal("0.00")
