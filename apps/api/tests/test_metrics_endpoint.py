from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from siteflow.api.dependencies import get_document_store
from siteflow.business.directory import ProjectRepository, UserRepository
from siteflow.business.directory.schemas import Project, User
from siteflow.business.quotations.repository import QuotationRepository
from siteflow.business.quotations.schemas import LineItem, Quotation
from siteflow.core.auth import AuthUser, get_current_user
from siteflow.core.config import get_settings
from siteflow.main import app
from siteflow.messaging.rate_limit import reset_rate_limiter
from siteflow.platform.documents import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    UserRepository(store).add_with_id("pm-1", User(role="ProjectManager"))
    UserRepository(store).add_with_id("client-1", User(role="Client"))
    ProjectRepository(store).add_with_id("p1", Project(project_manager_id="pm-1", client_id="client-1"))
    QuotationRepository(store).add_with_id(
        "q1",
        Quotation(
            project_id="p1",
            client_id="client-1",
            items=[LineItem(name="Tiles", quantity=Decimal("10"), unit_price=Decimal("12.5"))],
        ),
    )
    return store


@pytest.fixture()
def client(store: InMemoryDocumentStore) -> Generator[TestClient, None, None]:
    def override_auth_user() -> AuthUser:
        return AuthUser(sub="metrics-admin", roles=["system.metrics.read"])

    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_current_user] = override_auth_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_workflow_metrics(client: TestClient) -> None:
    assert client.get("/health").status_code == 200
    assert client.post("/quotations/q1/submit").status_code == 200
    assert client.post("/quotations/q1/approve").status_code == 200
    assert client.post("/messages", json={"receiver_id": "client-1", "content": "hello"}).status_code == 422

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "workflow_transitions_total" in body
    assert "workflow_messages_total" in body
    assert "message_validation_rejections_total" in body

    assert 'path="/health"' in body
    assert 'path="/quotations/{id}/approve"' in body
    assert 'to_status="SentToClient"' in body
    assert 'workflow_type="quotation_workflow"' in body
    assert 'outcome="created"' in body

    transitions = REGISTRY.get_sample_value(
        "workflow_transitions_total", {"entity_type": "quotation", "to_status": "SentToClient"}
    )
    created = REGISTRY.get_sample_value(
        "workflow_messages_total", {"workflow_type": "quotation_workflow", "outcome": "created"}
    )
    assert transitions is not None and transitions >= 1
    assert created is not None and created >= 1
    assert 'reason="invalid"' in body


def test_metrics_requires_permission(client: TestClient) -> None:
    app.dependency_overrides[get_current_user] = lambda: AuthUser(sub="viewer", roles=["user"])

    response = client.get("/metrics")

    assert response.status_code == 403


def test_metrics_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")

    assert response.status_code == 404
