from __future__ import annotations

import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from siteflow.context import reset_actor_id, reset_correlation_id, set_actor_id, set_correlation_id


_MAX_INBOUND_LENGTH = 128


def _inbound_correlation_id(request: Request) -> str | None:
    raw = request.headers.get("x-correlation-id") or request.headers.get("x-request-id")
    if not raw:
        return None
    raw = raw.strip()
    if not raw or len(raw) > _MAX_INBOUND_LENGTH:
        return None
    return raw


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to the request; it is echoed back and stamped on published events."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = _inbound_correlation_id(request) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_token = set_correlation_id(correlation_id)
        actor_token = set_actor_id(None)
        span = trace.get_current_span()
        if span is not None and span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_actor_id(actor_token)
            reset_correlation_id(correlation_token)

        response.headers["x-correlation-id"] = correlation_id
        return response
