from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from siteflow.business.quotations.schemas import LineItem


InvoiceStatus = Literal["Draft", "Issued", "Paid", "Cancelled"]


class Invoice(BaseModel):
    invoice_id: str = ""
    invoice_number: str = ""
    project_id: str = ""
    client_id: str = ""
    contractor_id: str = ""
    quotation_id: str | None = None
    description: str = ""
    currency: str = "ZAR"
    items: list[LineItem] = Field(default_factory=list)
    markup_rate: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    tax_total: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")
    status: InvoiceStatus = "Draft"
    issued_date: datetime | None = None
    due_date: datetime | None = None
    paid_date: datetime | None = None
    paid_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MarkInvoicePaidRequest(BaseModel):
    paid_date: datetime | None = None
    paid_by: str | None = None


class MarkOverdueResponse(BaseModel):
    invoice_id: str
    status: str
    overdue: bool
