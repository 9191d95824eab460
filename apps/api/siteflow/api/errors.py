from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from siteflow.context import get_correlation_id
from siteflow.core.errors import ErrorKind, MessageRejectedError, WorkflowError
from siteflow.messaging.validation import RATE_LIMIT_MESSAGE


logger = logging.getLogger("siteflow.api.errors")

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.PRECONDITION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.VALIDATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INFRASTRUCTURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: WorkflowError) -> int:
    if isinstance(exc, MessageRejectedError) and RATE_LIMIT_MESSAGE in exc.result.errors:
        return status.HTTP_429_TOO_MANY_REQUESTS
    return _STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = status_for(exc)
    body: dict[str, object] = {
        "detail": exc.message,
        "kind": exc.kind.value,
        "correlation_id": get_correlation_id() or getattr(request.state, "correlation_id", None),
    }
    if isinstance(exc, MessageRejectedError):
        body["validation"] = exc.result.model_dump(mode="json")

    if exc.kind is ErrorKind.INFRASTRUCTURE:
        logger.error("api.workflow_error", exc_info=exc, extra={"path": request.url.path, "status_code": status_code})
    else:
        logger.info(
            "api.workflow_error",
            extra={"path": request.url.path, "status_code": status_code, "reason": exc.kind.value},
        )
    return JSONResponse(status_code=status_code, content=body)
