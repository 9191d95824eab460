from __future__ import annotations

import os
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

os.environ.setdefault("OTEL_ENABLED", "true")

from siteflow.api.dependencies import get_document_store
from siteflow.business.directory import ProjectRepository, UserRepository
from siteflow.business.directory.schemas import Project, User
from siteflow.business.quotations.repository import QuotationRepository
from siteflow.business.quotations.schemas import LineItem, Quotation
from siteflow.core.config import get_settings
from siteflow.main import app
from siteflow.messaging.rate_limit import reset_rate_limiter
from siteflow.otel import correlation_request_hook, setup_inmemory_otel
from siteflow.platform.documents import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel()
    exporter.clear()
    return exporter


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    store = InMemoryDocumentStore()
    UserRepository(store).add_with_id("pm-1", User(role="ProjectManager"))
    ProjectRepository(store).add_with_id("p1", Project(project_manager_id="pm-1"))
    QuotationRepository(store).add_with_id(
        "q1",
        Quotation(project_id="p1", items=[LineItem(name="Paint", quantity=Decimal("4"), unit_price=Decimal("25"))]),
    )

    app.dependency_overrides[get_document_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/health", headers={"X-Correlation-Id": "otel-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_workflow_message_span_contains_dedup_key_and_correlation(
    client: TestClient,
    span_exporter: InMemorySpanExporter,
) -> None:
    response = client.post("/quotations/q1/submit", headers={"X-Correlation-Id": "otel-wf-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    workflow_spans = [span for span in spans if span.name == "workflow_message.process_event"]
    assert workflow_spans
    assert any(
        span.attributes.get("dedup_key") == "quotation:q1:submitted"
        and span.attributes.get("outcome") == "created"
        and span.attributes.get("correlation_id") == "otel-wf-corr-1"
        for span in workflow_spans
    )


def test_spans_carry_siteflow_resource(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    assert client.get("/health").status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    resource = spans[-1].resource.attributes
    assert resource["service.namespace"] == "siteflow"
    assert resource["service.name"] == get_settings().otel_service_name


class _RecordingSpan:
    def __init__(self) -> None:
        self.attributes: dict[str, str] = {}

    def is_recording(self) -> bool:
        return True

    def set_attribute(self, key: str, value: str) -> None:
        self.attributes[key] = value


def test_request_hook_falls_back_to_request_id() -> None:
    span = _RecordingSpan()

    correlation_request_hook(span, {"headers": [(b"x-request-id", b"req-9")]})

    assert span.attributes == {"correlation_id": "req-9"}
