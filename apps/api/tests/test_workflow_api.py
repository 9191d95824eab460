from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from siteflow import events
from siteflow.api.dependencies import get_dispatcher, get_document_store
from siteflow.business.directory import ProjectRepository, UserRepository
from siteflow.business.directory.schemas import Project, User
from siteflow.business.invoices.repository import InvoiceRepository
from siteflow.business.quotations.repository import QuotationRepository
from siteflow.business.quotations.schemas import LineItem, Quotation
from siteflow.core.config import get_settings
from siteflow.core.errors import DocumentStoreError
from siteflow.main import app
from siteflow.messaging.rate_limit import reset_rate_limiter
from siteflow.notifications.dispatcher import LoggingNotificationDispatcher
from siteflow.platform.documents import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def reset_state() -> Generator[None, None, None]:
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()
    yield
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    users = UserRepository(store)
    users.add_with_id("pm-1", User(role="ProjectManager", full_name="Pat"))
    users.add_with_id("client-1", User(role="Client", full_name="Cleo", device_token="token-client"))
    users.add_with_id("contractor-1", User(role="Contractor", full_name="Cas"))
    ProjectRepository(store).add_with_id(
        "p1",
        Project(name="Harbour House", project_manager_id="pm-1", client_id="client-1", contractor_ids=["contractor-1"]),
    )
    QuotationRepository(store).add_with_id(
        "q1",
        Quotation(
            project_id="p1",
            client_id="client-1",
            contractor_id="contractor-1",
            description="Roof repairs",
            items=[
                LineItem(name="Labour", quantity=Decimal("2"), unit_price=Decimal("100"), tax_rate=Decimal("0.15")),
                LineItem(name="Materials", quantity=Decimal("1"), unit_price=Decimal("50"), tax_rate=Decimal("0.15")),
            ],
        ),
    )
    QuotationRepository(store).add_with_id("q-empty", Quotation(project_id="p1", client_id="client-1"))
    return store


@pytest.fixture()
def dispatcher() -> LoggingNotificationDispatcher:
    return LoggingNotificationDispatcher()


@pytest.fixture()
def client(store: InMemoryDocumentStore, dispatcher: LoggingNotificationDispatcher) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_quotation_lifecycle_over_http_creates_workflow_messages(client: TestClient, store: InMemoryDocumentStore) -> None:
    submitted = client.post("/quotations/q1/submit")
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "PendingPMApproval"
    assert Decimal(submitted.json()["grand_total"]) == Decimal("287.50")

    approved = client.post("/quotations/q1/approve")
    assert approved.status_code == 200
    assert approved.json()["status"] == "SentToClient"

    accepted = client.post("/quotations/q1/decision", json={"accept": True, "note": "Go ahead"})
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ClientAccepted"

    first = client.post("/quotations/q1/convert")
    second = client.post("/quotations/q1/convert")
    assert first.status_code == 200
    assert first.json()["invoice_id"] == second.json()["invoice_id"]
    assert first.json()["status"] == "Draft"
    assert len(InvoiceRepository(store).list()) == 1

    listed = client.get("/workflow-messages", params={"project_id": "p1"})
    assert listed.status_code == 200
    keys = {(item["workflow_type"], item["action"]) for item in listed.json()}
    assert keys == {
        ("quotation_workflow", "submitted"),
        ("quotation_workflow", "approved"),
        ("quotation_workflow", "sent"),
        ("quotation_workflow", "accepted"),
        ("quotation_workflow", "converted"),
        ("invoice_workflow", "created"),
    }
    by_action = {item["action"]: item for item in listed.json()}
    assert by_action["sent"]["recipients"] == ["client-1"]
    assert by_action["accepted"]["recipients"] == ["pm-1", "contractor-1"]


def test_invalid_transition_maps_to_conflict(client: TestClient) -> None:
    response = client.post("/quotations/q1/approve")

    assert response.status_code == 409
    body = response.json()
    assert body["kind"] == "invalid_state"
    assert body["detail"] == "Quotation must be pending PM approval to approve"
    assert body["correlation_id"] == response.headers["x-correlation-id"]


def test_precondition_maps_to_unprocessable(client: TestClient) -> None:
    response = client.post("/quotations/q-empty/submit")

    assert response.status_code == 422
    assert response.json()["kind"] == "precondition_failed"


def test_unknown_entities_map_to_not_found(client: TestClient) -> None:
    assert client.post("/quotations/missing/submit").status_code == 404
    assert client.post("/invoices/missing/issue").status_code == 404
    assert client.get("/workflow-messages/missing").status_code == 404


def test_invoice_payment_requires_payer(client: TestClient) -> None:
    client.post("/quotations/q1/submit")
    client.post("/quotations/q1/approve")
    client.post("/quotations/q1/decision", json={"accept": True})
    invoice_id = client.post("/quotations/q1/convert").json()["invoice_id"]

    issued = client.post(f"/invoices/{invoice_id}/issue")
    assert issued.status_code == 200
    assert issued.json()["status"] == "Issued"

    unpaid = client.post(f"/invoices/{invoice_id}/pay", json={})
    assert unpaid.status_code == 422
    assert unpaid.json()["detail"] == "PaidBy is required"

    paid = client.post(f"/invoices/{invoice_id}/pay", json={"paid_by": "client-1"})
    assert paid.status_code == 200
    assert paid.json()["paid_by"] == "client-1"

    cancelled = client.post(f"/invoices/{invoice_id}/cancel")
    assert cancelled.status_code == 409

    overdue = client.post(f"/invoices/{invoice_id}/overdue")
    assert overdue.status_code == 200
    assert overdue.json() == {"invoice_id": invoice_id, "status": "Paid", "overdue": False}


def test_event_ingestion_is_deduplicated(client: TestClient) -> None:
    event = {
        "event_type": "task_assignment",
        "action": "assigned",
        "entity_type": "task",
        "entity_id": "t9",
        "project_id": "p1",
        "data": {"assigneeId": "contractor-1", "taskName": "Pour slab", "projectId": "p1"},
    }

    first = client.post("/workflow-messages/events", json=event)
    second = client.post("/workflow-messages/events", json=event)

    assert first.json() == {"processed": True}
    assert second.json() == {"processed": True}
    messages = client.get("/workflow-messages", params={"workflow_type": "task_assignment"}).json()
    assert len(messages) == 1
    assert messages[0]["subject"] == "New Task Assigned - Pour slab"

    read = client.post(f"/workflow-messages/{messages[0]['workflow_message_id']}/read", json={"user_id": "contractor-1"})
    assert read.status_code == 200
    assert read.json()["read_by"] == "contractor-1"


def test_event_without_template_is_not_processed(client: TestClient) -> None:
    response = client.post(
        "/workflow-messages/events",
        json={"event_type": "quotation_workflow", "action": "archived", "entity_type": "quotation", "entity_id": "q1"},
    )

    assert response.status_code == 200
    assert response.json() == {"processed": False}


def test_templates_and_system_alerts(client: TestClient, dispatcher: LoggingNotificationDispatcher) -> None:
    templates = client.get("/workflow-messages/templates")
    assert templates.status_code == 200
    keys = [(item["workflow_type"], item["action"]) for item in templates.json()]
    assert ("system_alert", "*") in keys
    assert ("quotation_workflow", "submitted") in keys

    template = client.get("/workflow-messages/templates/invoice_workflow/overdue")
    assert template.json()["priority"] == "urgent"
    assert client.get("/workflow-messages/templates/invoice_workflow/nope").status_code == 404

    alert = client.post(
        "/workflow-messages/system-alerts",
        json={"alert_type": "maintenance", "message": "Tonight 22:00", "recipients": ["client-1", "pm-1"]},
    )
    assert alert.json() == {"processed": True}
    assert [entry["target"] for entry in dispatcher.sent] == ["token-client"]


def test_direct_message_spam_and_rate_limit(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {
        "sender_id": "pm-1",
        "receiver_id": "client-1",
        "project_id": "p1",
        "subject": "Access",
        "content": "Gate code is 4411",
    }
    assert client.post("/messages", json=payload).status_code == 201
    assert client.post("/messages", json=payload).status_code == 201

    spam = client.post("/messages", json=payload)
    assert spam.status_code == 422
    assert spam.json()["validation"]["severity"] == "Critical"
    assert "Message appears to be spam" in spam.json()["validation"]["errors"]

    monkeypatch.setenv("MAX_MESSAGES_PER_HOUR", "3")
    get_settings.cache_clear()
    limited = client.post("/messages", json={**payload, "content": "Different words entirely"})
    assert limited.status_code == 429
    assert limited.json()["validation"]["severity"] == "Warning"


def test_validate_endpoint_returns_structured_result(client: TestClient) -> None:
    response = client.post("/messages/validate", json={"content": "hi"})

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is False
    assert "Sender ID is required" in body["errors"]
    assert body["severity"] == "Error"


def test_validate_endpoint_does_not_consume_send_slots(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_MESSAGES_PER_HOUR", "1")
    get_settings.cache_clear()
    payload = {
        "sender_id": "pm-1",
        "receiver_id": "client-1",
        "project_id": "p1",
        "subject": "Delivery",
        "content": "Steel arrives Thursday",
    }

    for _ in range(2):
        assert client.post("/messages/validate", json=payload).json()["is_valid"] is True

    assert client.post("/messages", json=payload).status_code == 201
    assert client.post("/messages/validate", json=payload).json()["errors"] == [
        "Rate limit exceeded. Please wait before sending another message."
    ]


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class _OfflineStore(InMemoryDocumentStore):
    def get(self, collection: str, document_id: str):  # type: ignore[no-untyped-def]
        raise DocumentStoreError(f"failed to read {collection}/{document_id}")


def test_store_failure_maps_to_service_unavailable() -> None:
    app.dependency_overrides[get_document_store] = lambda: _OfflineStore()
    try:
        with TestClient(app) as test_client:
            response = test_client.post("/quotations/q1/submit", headers={"X-Correlation-Id": "corr-503"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json() == {
        "detail": "failed to read quotations/q1",
        "kind": "infrastructure",
        "correlation_id": "corr-503",
    }
