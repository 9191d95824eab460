from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from siteflow import events
from siteflow.business.invoices.repository import InvoiceRepository
from siteflow.business.invoices.schemas import Invoice
from siteflow.business.quotations import pricing
from siteflow.business.quotations.repository import QuotationRepository
from siteflow.business.quotations.schemas import Quotation, QuotationStatus
from siteflow.core.config import get_settings
from siteflow.core.errors import InvalidTransitionError, PreconditionError
from siteflow.metrics import observe_transition
from siteflow.notifications.locks import KeyedLockRegistry, workflow_locks
from siteflow.notifications.schemas import SystemEvent, TemplateValue
from siteflow.notifications.templates import INVOICE_WORKFLOW, QUOTATION_WORKFLOW
from siteflow.platform.documents import DocumentStore


logger = logging.getLogger("siteflow.quotations")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def new_invoice_number(now: datetime) -> str:
    return f"INV-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


@dataclass(slots=True)
class QuoteWorkflowService:
    """Quotation lifecycle: Draft -> PendingPMApproval -> SentToClient -> ClientAccepted/ClientDeclined.

    Every operation returns ``None`` for an unknown id, returns the quotation
    unchanged when it is already in the target state, and raises
    ``InvalidTransitionError`` naming the required state otherwise.
    """

    store: DocumentStore
    clock: Callable[[], datetime] = _utcnow
    locks: KeyedLockRegistry = field(default_factory=lambda: workflow_locks)

    def submit_for_approval(self, quotation_id: str) -> Quotation | None:
        quotation = self._load(quotation_id)
        if quotation is None or quotation.status == "PendingPMApproval":
            return quotation
        self._require_status(quotation, "Draft", "Quotation must be in Draft status to submit for approval")

        pricing.recalculate(quotation)
        if not quotation.items or quotation.grand_total <= 0:
            raise PreconditionError("Quotation must have items and GrandTotal > 0 to submit for approval")

        self._transition(quotation, "PendingPMApproval")
        self._publish(quotation, "submitted")
        return quotation

    def pm_approve(self, quotation_id: str) -> Quotation | None:
        quotation = self._load(quotation_id)
        if quotation is None or quotation.status == "SentToClient":
            return quotation
        self._require_status(quotation, "PendingPMApproval", "Quotation must be pending PM approval to approve")

        now = self.clock()
        quotation.admin_approved_at = now
        quotation.sent_at = now
        self._transition(quotation, "SentToClient")
        self._publish(quotation, "approved")
        self._publish(quotation, "sent")
        return quotation

    def pm_reject(self, quotation_id: str, reason: str | None = None) -> Quotation | None:
        quotation = self._load(quotation_id)
        if quotation is None or quotation.status == "PMRejected":
            return quotation
        self._require_status(quotation, "PendingPMApproval", "Quotation must be pending PM approval to reject")

        quotation.pm_rejected_at = self.clock()
        quotation.pm_reject_reason = reason
        self._transition(quotation, "PMRejected")
        self._publish(quotation, "rejected", reason=reason)
        return quotation

    def send_to_client(self, quotation_id: str) -> Quotation | None:
        quotation = self._load(quotation_id)
        if quotation is None or quotation.status == "SentToClient":
            return quotation
        self._require_status(quotation, "PendingPMApproval", "Quotation must be pending PM approval to send to client")

        quotation.sent_at = self.clock()
        self._transition(quotation, "SentToClient")
        self._publish(quotation, "sent")
        return quotation

    def client_decision(self, quotation_id: str, accept: bool, note: str | None = None) -> Quotation | None:
        quotation = self._load(quotation_id)
        if quotation is None:
            return None

        target: QuotationStatus = "ClientAccepted" if accept else "ClientDeclined"
        if quotation.status == target:
            return quotation
        if quotation.status in {"ClientAccepted", "ClientDeclined"}:
            raise InvalidTransitionError(
                "quotation",
                quotation.status,
                f"Quotation has already been decided ({quotation.status})",
            )
        self._require_status(quotation, "SentToClient", "Quotation must be sent to client before a decision")

        now = self.clock()
        if quotation.valid_until is not None and now >= _aware(quotation.valid_until):
            raise PreconditionError("Quotation has expired")

        quotation.client_responded_at = now
        quotation.client_decision_note = note
        self._transition(quotation, target)
        self._publish(quotation, "accepted" if accept else "declined", note=note)
        return quotation

    def convert_to_invoice(self, quotation_id: str) -> Invoice | None:
        with self.locks.hold(f"quotation:{quotation_id}:convert"):
            quotation = self._load(quotation_id)
            if quotation is None:
                return None

            invoices = InvoiceRepository(self.store)
            existing = invoices.find_by_quotation(quotation_id)
            if existing is not None:
                return existing

            self._require_status(quotation, "ClientAccepted", "Quotation must be accepted by the client before conversion")

            now = self.clock()
            invoice = Invoice(
                invoice_number=new_invoice_number(now),
                project_id=quotation.project_id,
                client_id=quotation.client_id,
                contractor_id=quotation.contractor_id,
                quotation_id=quotation_id,
                description=quotation.description,
                currency=quotation.currency,
                items=[item.model_copy() for item in quotation.items],
                markup_rate=quotation.markup_rate,
                status="Draft",
                due_date=now + timedelta(days=get_settings().invoice_due_days),
                created_at=now,
                updated_at=now,
            )
            pricing.recalculate(invoice)
            invoices.add(invoice)

        logger.info(
            "quotation.converted",
            extra={"entity_type": "invoice", "entity_id": invoice.invoice_id, "action": "created"},
        )
        self._publish(quotation, "converted", invoiceNumber=invoice.invoice_number)
        events.publish(
            SystemEvent(
                event_type=INVOICE_WORKFLOW,
                action="created",
                entity_type="invoice",
                entity_id=invoice.invoice_id,
                project_id=invoice.project_id,
                data={
                    "invoiceId": invoice.invoice_id,
                    "invoiceNumber": invoice.invoice_number,
                    "invoiceAmount": invoice.grand_total,
                    "dueDate": invoice.due_date,
                    "clientId": invoice.client_id,
                    "contractorId": invoice.contractor_id,
                    "quoteId": quotation_id,
                },
            )
        )
        return invoice

    def _load(self, quotation_id: str) -> Quotation | None:
        quotation = QuotationRepository(self.store).get(quotation_id)
        if quotation is not None:
            pricing.recalculate(quotation)
        return quotation

    def _require_status(self, quotation: Quotation, required: QuotationStatus, message: str) -> None:
        if quotation.status != required:
            raise InvalidTransitionError("quotation", quotation.status, message)

    def _transition(self, quotation: Quotation, to_status: QuotationStatus) -> None:
        from_status = quotation.status
        quotation.status = to_status
        quotation.updated_at = self.clock()
        QuotationRepository(self.store).update(quotation)
        observe_transition("quotation", to_status)
        logger.info(
            "quotation.transition",
            extra={
                "entity_type": "quotation",
                "entity_id": quotation.quotation_id,
                "from_status": from_status,
                "to_status": to_status,
            },
        )

    def _publish(self, quotation: Quotation, action: str, **extra: TemplateValue) -> None:
        data: dict[str, TemplateValue] = {
            "quoteId": quotation.quotation_id,
            "quoteTotal": quotation.grand_total,
            "quoteDescription": quotation.description,
            "clientId": quotation.client_id,
            "contractorId": quotation.contractor_id,
            "projectId": quotation.project_id,
            "validUntil": quotation.valid_until,
        }
        data.update(extra)
        events.publish(
            SystemEvent(
                event_type=QUOTATION_WORKFLOW,
                action=action,
                entity_type="quotation",
                entity_id=quotation.quotation_id,
                project_id=quotation.project_id,
                data=data,
            )
        )
