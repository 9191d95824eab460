from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from siteflow.api.dependencies import get_dispatcher, get_document_store
from siteflow.api.errors import workflow_error_handler
from siteflow.api.routes import router as api_router
from siteflow.core.config import get_settings
from siteflow.core.errors import WorkflowError
from siteflow.core.events import InternalEvent, event_bus
from siteflow.logging import configure_logging
from siteflow.middleware.correlation_id import CorrelationIdMiddleware
from siteflow.middleware.request_logging import RequestLoggingMiddleware
from siteflow.notifications.service import WorkflowMessageService
from siteflow.notifications.subscriptions import make_workflow_event_handler, register_workflow_subscribers
from siteflow.otel import configure_tracing, correlation_request_hook


configure_logging()
logger = logging.getLogger("siteflow.lifecycle")


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system.started", extra={"status": "started"})


def _override_or(dependency):  # type: ignore[no-untyped-def]
    override = app.dependency_overrides.get(dependency) if "app" in globals() else None
    return (override or dependency)()


def _workflow_message_service() -> WorkflowMessageService:
    # Subscribers run outside a request, so dependency overrides are resolved by hand.
    return WorkflowMessageService(
        store=_override_or(get_document_store),
        dispatcher=_override_or(get_dispatcher),
    )


_workflow_event_handler = make_workflow_event_handler(_workflow_message_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe("system.started", _on_system_started)
    register_workflow_subscribers(event_bus, _workflow_event_handler)
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_exception_handler(WorkflowError, workflow_error_handler)  # type: ignore[arg-type]
app.include_router(api_router)

configure_tracing(settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=correlation_request_hook)
