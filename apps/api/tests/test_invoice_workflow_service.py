from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from siteflow import events
from siteflow.business.invoices.repository import InvoiceRepository
from siteflow.business.invoices.schemas import Invoice
from siteflow.business.invoices.service import InvoiceWorkflowService
from siteflow.business.quotations.schemas import LineItem
from siteflow.core.errors import InvalidTransitionError, PreconditionError
from siteflow.core.events import event_bus
from siteflow.platform.documents import InMemoryDocumentStore


NOW = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_events() -> Generator[None, None, None]:
    event_bus.clear()
    events.published_events.clear()
    yield
    event_bus.clear()
    events.published_events.clear()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def service(store: InMemoryDocumentStore) -> InvoiceWorkflowService:
    return InvoiceWorkflowService(store=store, clock=lambda: NOW)


def _seed_invoice(store: InMemoryDocumentStore, invoice_id: str = "inv-1", **overrides: object) -> Invoice:
    payload: dict[str, object] = {
        "invoice_number": "INV-20260401-ABCDEF12",
        "project_id": "p1",
        "client_id": "client-1",
        "contractor_id": "contractor-1",
        "items": [LineItem(name="Labour", quantity=Decimal("4"), unit_price=Decimal("125"), tax_rate=Decimal("0.15"))],
        "due_date": NOW + timedelta(days=30),
    }
    payload.update(overrides)
    return InvoiceRepository(store).add_with_id(invoice_id, Invoice(**payload))


def test_issue_requires_due_date(store: InMemoryDocumentStore, service: InvoiceWorkflowService) -> None:
    _seed_invoice(store, due_date=None)

    with pytest.raises(PreconditionError) as exc_info:
        service.issue("inv-1")

    assert exc_info.value.message == "DueDate must be set before issuing invoice"
    assert InvoiceRepository(store).get("inv-1").status == "Draft"


def test_issue_sets_issued_date_and_publishes(store: InMemoryDocumentStore, service: InvoiceWorkflowService) -> None:
    _seed_invoice(store)

    invoice = service.issue("inv-1")
    again = service.issue("inv-1")

    assert invoice is not None and again is not None
    assert invoice.status == "Issued"
    assert invoice.issued_date == NOW
    assert invoice.grand_total == Decimal("575.00")
    assert [event.action for event in events.published_events] == ["issued"]
    assert events.published_events[0].data["invoiceNumber"] == "INV-20260401-ABCDEF12"


def test_mark_paid_requires_payer(store: InMemoryDocumentStore, service: InvoiceWorkflowService) -> None:
    _seed_invoice(store, status="Issued")

    with pytest.raises(PreconditionError) as exc_info:
        service.mark_paid("inv-1", NOW, "   ")

    assert exc_info.value.message == "PaidBy is required"


def test_mark_paid_requires_issued(store: InMemoryDocumentStore, service: InvoiceWorkflowService) -> None:
    _seed_invoice(store)

    with pytest.raises(InvalidTransitionError):
        service.mark_paid("inv-1", NOW, "client-1")


def test_mark_paid_records_payment(store: InMemoryDocumentStore, service: InvoiceWorkflowService) -> None:
    _seed_invoice(store, status="Issued")
    paid_on = NOW - timedelta(days=1)

    invoice = service.mark_paid("inv-1", paid_on, "client-1")

    assert invoice is not None
    assert invoice.status == "Paid"
    assert invoice.paid_date == paid_on
    assert invoice.paid_by == "client-1"
    stored = InvoiceRepository(store).get("inv-1")
    assert stored is not None and stored.status == "Paid"
    assert events.published_events[-1].action == "paid"


def test_cancel_paid_invoice_fails(store: InMemoryDocumentStore, service: InvoiceWorkflowService) -> None:
    _seed_invoice(store, status="Paid")

    with pytest.raises(InvalidTransitionError) as exc_info:
        service.cancel("inv-1")

    assert exc_info.value.message == "Invoice can only be cancelled if in Draft or Issued status"


@pytest.mark.parametrize("status", ["Draft", "Issued"])
def test_cancel_from_open_states(store: InMemoryDocumentStore, service: InvoiceWorkflowService, status: str) -> None:
    _seed_invoice(store, status=status)

    invoice = service.cancel("inv-1")

    assert invoice is not None
    assert invoice.status == "Cancelled"
    assert [event.action for event in events.published_events] == ["cancelled"]


def test_unknown_invoice_returns_none(service: InvoiceWorkflowService) -> None:
    assert service.issue("missing") is None
    assert service.mark_paid("missing", NOW, "someone") is None
    assert service.cancel("missing") is None
    assert service.mark_overdue("missing") is None


def test_mark_overdue_only_fires_past_due(store: InMemoryDocumentStore, service: InvoiceWorkflowService) -> None:
    _seed_invoice(store, status="Issued", due_date=NOW - timedelta(days=1))
    _seed_invoice(store, "inv-2", status="Issued", due_date=NOW + timedelta(days=1))
    _seed_invoice(store, "inv-3", status="Paid", due_date=NOW - timedelta(days=1))

    assert service.mark_overdue("inv-1") is True
    assert service.mark_overdue("inv-2") is False
    assert service.mark_overdue("inv-3") is False
    assert service.mark_overdue("inv-2", now=NOW + timedelta(days=2)) is True

    assert [event.entity_id for event in events.published_events] == ["inv-1", "inv-2"]
    assert InvoiceRepository(store).get("inv-1").status == "Issued"
