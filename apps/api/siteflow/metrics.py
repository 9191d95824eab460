from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

workflow_transitions_total = Counter(
    "workflow_transitions_total",
    "Lifecycle transitions applied, by entity type and target status",
    ["entity_type", "to_status"],
)

workflow_messages_total = Counter(
    "workflow_messages_total",
    "System events processed into workflow messages, by outcome",
    ["workflow_type", "outcome"],
)

message_validation_rejections_total = Counter(
    "message_validation_rejections_total",
    "Direct messages rejected by validation, by reason",
    ["reason"],
)


_UUID_RE = re.compile(r"\b[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}\b")
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_ids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_ids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        route_path = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_transition(entity_type: str, to_status: str) -> None:
    workflow_transitions_total.labels(entity_type=entity_type, to_status=to_status).inc()


def observe_workflow_message(workflow_type: str, outcome: str) -> None:
    workflow_messages_total.labels(workflow_type=workflow_type or "unknown", outcome=outcome).inc()


def observe_validation_rejection(reason: str) -> None:
    message_validation_rejections_total.labels(reason=reason).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
