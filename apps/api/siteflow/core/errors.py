from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    PRECONDITION_FAILED = "precondition_failed"
    VALIDATION_FAILED = "validation_failed"
    INFRASTRUCTURE = "infrastructure"


class WorkflowError(Exception):
    """Base class for business-rule and infrastructure failures raised by the workflow core.

    Callers branch on ``kind`` rather than on the concrete subclass when they only
    need to pick a response (HTTP status, retry, user message).
    """

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidTransitionError(WorkflowError):
    """Raised when an entity is not in the state a transition requires."""

    kind = ErrorKind.INVALID_STATE

    def __init__(self, entity_type: str, current_status: str, message: str) -> None:
        self.entity_type = entity_type
        self.current_status = current_status
        super().__init__(message)


class PreconditionError(WorkflowError):
    """Raised when the state is right but a business precondition is not met."""

    kind = ErrorKind.PRECONDITION_FAILED


class MessageRejectedError(WorkflowError):
    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, result: Any) -> None:
        self.result = result
        errors = getattr(result, "errors", None) or ["Message rejected"]
        super().__init__("; ".join(errors))


class DocumentStoreError(WorkflowError):
    kind = ErrorKind.INFRASTRUCTURE
