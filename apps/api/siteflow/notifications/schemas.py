from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Literal, Union

from pydantic import BaseModel, Field


TemplateValue = Union[str, int, float, Decimal, datetime, date, list[str], None]
Priority = Literal["low", "normal", "high", "urgent"]
WorkflowMessageStatus = Literal["pending", "sent", "failed", "cancelled"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SystemEvent(BaseModel):
    event_type: str = ""
    action: str = ""
    entity_type: str = ""
    entity_id: str = ""
    project_id: str = ""
    user_id: str = ""
    data: dict[str, TemplateValue] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    correlation_id: str | None = None

    @property
    def dedup_key(self) -> str:
        return f"{self.entity_type}:{self.entity_id}:{self.action}"


class MessageTemplate(BaseModel):
    workflow_type: str
    action: str
    subject_template: str
    content_template: str
    priority: Priority = "normal"


class WorkflowMessage(BaseModel):
    workflow_message_id: str = ""
    workflow_type: str = ""
    entity_type: str = ""
    entity_id: str = ""
    action: str = ""
    project_id: str = ""
    subject: str = ""
    content: str = ""
    priority: Priority = "normal"
    recipients: list[str] = Field(default_factory=list)
    is_system_generated: bool = True
    status: WorkflowMessageStatus = "pending"
    created_at: datetime | None = None
    sent_at: datetime | None = None
    read_by: str | None = None
    read_at: datetime | None = None
    metadata: dict[str, TemplateValue] = Field(default_factory=dict)


class ProcessEventResponse(BaseModel):
    processed: bool


class MarkReadRequest(BaseModel):
    user_id: str | None = None


class SystemAlertRequest(BaseModel):
    alert_type: str = Field(min_length=1)
    message: str = Field(min_length=1)
    recipients: list[str] = Field(min_length=1)
