from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from siteflow import events
from siteflow.business.invoices.repository import InvoiceRepository
from siteflow.business.invoices.schemas import Invoice, InvoiceStatus
from siteflow.business.quotations import pricing
from siteflow.core.errors import InvalidTransitionError, PreconditionError
from siteflow.metrics import observe_transition
from siteflow.notifications.schemas import SystemEvent, TemplateValue
from siteflow.notifications.templates import INVOICE_WORKFLOW
from siteflow.platform.documents import DocumentStore


logger = logging.getLogger("siteflow.invoices")

CANCELLABLE_STATUSES: frozenset[str] = frozenset({"Draft", "Issued"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class InvoiceWorkflowService:
    store: DocumentStore
    clock: Callable[[], datetime] = _utcnow

    def issue(self, invoice_id: str) -> Invoice | None:
        invoice = self._load(invoice_id)
        if invoice is None or invoice.status == "Issued":
            return invoice
        self._require_status(invoice, "Draft", "Invoice must be in Draft status to issue")
        if invoice.due_date is None:
            raise PreconditionError("DueDate must be set before issuing invoice")

        invoice.issued_date = self.clock()
        self._transition(invoice, "Issued")
        self._publish(invoice, "issued")
        return invoice

    def mark_paid(self, invoice_id: str, paid_date: datetime | None, paid_by: str | None) -> Invoice | None:
        invoice = self._load(invoice_id)
        if invoice is None or invoice.status == "Paid":
            return invoice
        self._require_status(invoice, "Issued", "Invoice must be in Issued status to mark as paid")
        if not paid_by or not paid_by.strip():
            raise PreconditionError("PaidBy is required")

        invoice.paid_date = paid_date or self.clock()
        invoice.paid_by = paid_by.strip()
        self._transition(invoice, "Paid")
        self._publish(invoice, "paid", paidBy=invoice.paid_by, paidDate=invoice.paid_date)
        return invoice

    def cancel(self, invoice_id: str) -> Invoice | None:
        invoice = self._load(invoice_id)
        if invoice is None or invoice.status == "Cancelled":
            return invoice
        if invoice.status not in CANCELLABLE_STATUSES:
            raise InvalidTransitionError(
                "invoice",
                invoice.status,
                "Invoice can only be cancelled if in Draft or Issued status",
            )

        self._transition(invoice, "Cancelled")
        self._publish(invoice, "cancelled")
        return invoice

    def mark_overdue(self, invoice_id: str, now: datetime | None = None) -> bool | None:
        """Publish an ``overdue`` event for an issued invoice past its due date.

        Status is left at Issued. Returns ``None`` for an unknown id and
        whether the event fired otherwise.
        """
        invoice = self._load(invoice_id)
        if invoice is None:
            return None
        current = now or self.clock()
        if invoice.status != "Issued" or invoice.due_date is None or _aware(invoice.due_date) >= current:
            return False

        logger.info("invoice.overdue", extra={"entity_type": "invoice", "entity_id": invoice_id})
        self._publish(invoice, "overdue")
        return True

    def _load(self, invoice_id: str) -> Invoice | None:
        invoice = InvoiceRepository(self.store).get(invoice_id)
        if invoice is not None:
            pricing.recalculate(invoice)
        return invoice

    def _require_status(self, invoice: Invoice, required: InvoiceStatus, message: str) -> None:
        if invoice.status != required:
            raise InvalidTransitionError("invoice", invoice.status, message)

    def _transition(self, invoice: Invoice, to_status: InvoiceStatus) -> None:
        from_status = invoice.status
        invoice.status = to_status
        invoice.updated_at = self.clock()
        InvoiceRepository(self.store).update(invoice)
        observe_transition("invoice", to_status)
        logger.info(
            "invoice.transition",
            extra={
                "entity_type": "invoice",
                "entity_id": invoice.invoice_id,
                "from_status": from_status,
                "to_status": to_status,
            },
        )

    def _publish(self, invoice: Invoice, action: str, **extra: TemplateValue) -> None:
        data: dict[str, TemplateValue] = {
            "invoiceId": invoice.invoice_id,
            "invoiceNumber": invoice.invoice_number,
            "invoiceAmount": invoice.grand_total,
            "dueDate": invoice.due_date,
            "clientId": invoice.client_id,
            "contractorId": invoice.contractor_id,
        }
        data.update(extra)
        events.publish(
            SystemEvent(
                event_type=INVOICE_WORKFLOW,
                action=action,
                entity_type="invoice",
                entity_id=invoice.invoice_id,
                project_id=invoice.project_id,
                data=data,
            )
        )
