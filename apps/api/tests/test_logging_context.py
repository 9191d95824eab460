from __future__ import annotations

import json
import logging
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from siteflow import events
from siteflow.api.dependencies import get_document_store
from siteflow.business.directory import ProjectRepository, UserRepository
from siteflow.business.directory.schemas import Project, User
from siteflow.business.quotations.repository import QuotationRepository
from siteflow.business.quotations.schemas import LineItem, Quotation
from siteflow.core.config import get_settings
from siteflow.logging import JsonLogFormatter
from siteflow.main import app
from siteflow.messaging.rate_limit import reset_rate_limiter
from siteflow.platform.documents import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    events.published_events.clear()
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    events.published_events.clear()
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    store = InMemoryDocumentStore()
    UserRepository(store).add_with_id("pm-1", User(role="ProjectManager"))
    ProjectRepository(store).add_with_id("p1", Project(project_manager_id="pm-1"))
    QuotationRepository(store).add_with_id(
        "q1",
        Quotation(project_id="p1", items=[LineItem(name="Scaffold", quantity=Decimal("3"), unit_price=Decimal("40"))]),
    )

    app.dependency_overrides[get_document_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.post("/quotations/q1/submit", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 200

    records = [record for record in caplog.records if record.name == "siteflow.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "POST"
        and getattr(record, "path", None) == "/quotations/{id}/submit"
        and getattr(record, "status_code", None) == 200
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_transition_and_workflow_message_logs_share_correlation_id(
    client: TestClient,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)

    response = client.post("/quotations/q1/submit", headers={"X-Correlation-Id": "abc-456"})
    assert response.status_code == 200

    transitions = [record for record in caplog.records if record.name == "siteflow.quotations"]
    assert any(
        record.getMessage() == "quotation.transition"
        and getattr(record, "entity_id", None) == "q1"
        and getattr(record, "to_status", None) == "PendingPMApproval"
        and getattr(record, "correlation_id", None) == "abc-456"
        for record in transitions
    )

    created = [record for record in caplog.records if record.getMessage() == "workflow_message.created"]
    assert created
    assert getattr(created[-1], "dedup_key", None) == "quotation:q1:submitted"
    assert getattr(created[-1], "correlation_id", None) == "abc-456"


def test_json_formatter_keeps_known_fields_only() -> None:
    record = logging.LogRecord(
        name="siteflow.notifications",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="workflow_message.no_recipients",
        args=(),
        exc_info=None,
    )
    record.correlation_id = "corr-1"
    record.entity_id = "q9"
    record.error = "x" * 900
    record.password = "hunter2"

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["msg"] == "workflow_message.no_recipients"
    assert payload["correlation_id"] == "corr-1"
    assert payload["fields"]["entity_id"] == "q9"
    assert len(payload["fields"]["error"]) == 500
    assert "password" not in payload["fields"]
