from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Literal

from pydantic import BaseModel, Field, field_serializer

from siteflow.core.config import Settings


MessageType = Literal["direct", "thread", "broadcast", "workflow"]


class ValidationSeverity(IntEnum):
    INFO = 0
    WARNING = 1
    ERROR = 2
    CRITICAL = 3


@dataclass(frozen=True, slots=True)
class MessageValidationRules:
    max_subject_length: int = 200
    min_content_length: int = 1
    max_content_length: int = 5000
    max_messages_per_hour: int = 50
    max_messages_per_day: int = 200
    spam_detection_threshold: int = 2
    spam_time_window_minutes: int = 10
    spam_similarity_threshold: float = 0.8

    @classmethod
    def from_settings(cls, settings: Settings) -> MessageValidationRules:
        return cls(
            max_subject_length=settings.message_max_subject_length,
            min_content_length=settings.message_min_content_length,
            max_content_length=settings.message_max_content_length,
            max_messages_per_hour=settings.max_messages_per_hour,
            max_messages_per_day=settings.max_messages_per_day,
            spam_detection_threshold=settings.spam_detection_threshold,
            spam_time_window_minutes=settings.spam_time_window_minutes,
            spam_similarity_threshold=settings.spam_similarity_threshold,
        )


class MessageValidationResult(BaseModel):
    """Outcome of a validation pass.

    Errors block creation and warnings only flag the message for review.
    ``severity`` is monotonic: ``raise_severity`` never lowers it.
    """

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    severity: ValidationSeverity = ValidationSeverity.INFO

    def raise_severity(self, level: ValidationSeverity) -> None:
        if level > self.severity:
            self.severity = level

    def add_error(self, message: str, level: ValidationSeverity = ValidationSeverity.ERROR) -> None:
        self.errors.append(message)
        self.raise_severity(level)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
        self.raise_severity(ValidationSeverity.WARNING)

    def finish(self) -> MessageValidationResult:
        self.is_valid = not self.errors
        return self

    @field_serializer("severity")
    def _serialize_severity(self, value: ValidationSeverity) -> str:
        return value.name.capitalize()


class CreateMessageRequest(BaseModel):
    sender_id: str = ""
    receiver_id: str = ""
    project_id: str = ""
    subject: str = ""
    content: str = ""
    thread_id: str | None = None
    parent_message_id: str | None = None
    thread_participants: list[str] = Field(default_factory=list)
    message_type: MessageType = "direct"


class CreateThreadRequest(BaseModel):
    sender_id: str = ""
    project_id: str = ""
    subject: str = ""
    content: str = ""
    participants: list[str] = Field(default_factory=list)
    thread_type: str = "general"
    tags: list[str] = Field(default_factory=list)


class ReplyToMessageRequest(BaseModel):
    sender_id: str = ""
    parent_message_id: str = ""
    content: str = ""
    additional_recipients: list[str] = Field(default_factory=list)


class BroadcastMessageRequest(BaseModel):
    sender_id: str = ""
    project_id: str = ""
    subject: str = ""
    content: str = ""
    recipients: list[str] = Field(default_factory=list)


class Message(BaseModel):
    message_id: str = ""
    sender_id: str
    receiver_id: str = ""
    project_id: str = ""
    subject: str = ""
    content: str
    sent_at: datetime
    is_read: bool = False
    read_at: datetime | None = None
    thread_id: str = ""
    parent_message_id: str | None = None
    is_thread_starter: bool = False
    thread_depth: int = 0
    thread_participants: list[str] = Field(default_factory=list)
    message_type: MessageType = "direct"


class MessageThread(BaseModel):
    thread_id: str = ""
    project_id: str
    subject: str
    starter_user_id: str
    participants: list[str] = Field(default_factory=list)
    message_count: int = 0
    last_message_at: datetime
    thread_type: str = "general"
    tags: list[str] = Field(default_factory=list)
    is_active: bool = True
