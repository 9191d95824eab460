from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


QuotationStatus = Literal[
    "Draft",
    "PendingPMApproval",
    "SentToClient",
    "PMRejected",
    "ClientAccepted",
    "ClientDeclined",
]


class LineItem(BaseModel):
    name: str = ""
    quantity: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")


class Quotation(BaseModel):
    quotation_id: str = ""
    project_id: str = ""
    client_id: str = ""
    contractor_id: str = ""
    description: str = ""
    currency: str = "ZAR"
    items: list[LineItem] = Field(default_factory=list)
    markup_rate: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    tax_total: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")
    status: QuotationStatus = "Draft"
    valid_until: datetime | None = None
    admin_approved_at: datetime | None = None
    sent_at: datetime | None = None
    pm_rejected_at: datetime | None = None
    pm_reject_reason: str | None = None
    client_responded_at: datetime | None = None
    client_decision_note: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PmRejectRequest(BaseModel):
    reason: str | None = None


class ClientDecisionRequest(BaseModel):
    accept: bool
    note: str | None = None
