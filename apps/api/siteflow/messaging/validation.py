from __future__ import annotations

import logging
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from siteflow.business.directory import UserRepository
from siteflow.messaging.rate_limit import SlidingWindowRateLimiter, get_rate_limiter
from siteflow.messaging.repository import MessageRepository, MessageThreadRepository
from siteflow.messaging.schemas import (
    BroadcastMessageRequest,
    CreateMessageRequest,
    CreateThreadRequest,
    MessageValidationResult,
    MessageValidationRules,
    ReplyToMessageRequest,
    ValidationSeverity,
)
from siteflow.platform.documents import DocumentStore


logger = logging.getLogger("siteflow.messaging.validation")

SPAM_KEYWORDS: tuple[str, ...] = (
    "click here",
    "free money",
    "urgent",
    "act now",
    "limited time",
    "guaranteed",
    "no risk",
    "make money",
    "work from home",
    "get rich",
    "instant",
    "miracle",
    "secret",
    "exclusive",
)

SPAM_MESSAGE = "Message appears to be spam"
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait before sending another message."
SUSPICIOUS_CONTENT_WARNING = "Message contains potentially suspicious content"
CAPITALIZATION_WARNING = "Message contains excessive capitalization"
PUNCTUATION_WARNING = "Message contains excessive punctuation"

CAPITALIZATION_RATIO = 0.7
PUNCTUATION_RATIO = 0.3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def word_similarity(left: str, right: str) -> float:
    """Jaccard similarity of the lowercase, space-separated word sets."""
    if not left or not right:
        return 0.0
    left_words = set(left.lower().split())
    right_words = set(right.lower().split())
    union = left_words | right_words
    if not union:
        return 0.0
    return len(left_words & right_words) / len(union)


def is_excessive_capitalization(content: str) -> bool:
    letters = [char for char in content if char.isalpha()]
    if not letters:
        return False
    upper = sum(1 for char in letters if char.isupper())
    return upper / len(letters) > CAPITALIZATION_RATIO


def is_excessive_punctuation(content: str) -> bool:
    if not content:
        return False
    punctuation = sum(1 for char in content if unicodedata.category(char).startswith("P"))
    return punctuation / len(content) > PUNCTUATION_RATIO


@dataclass(slots=True)
class MessageValidationService:
    store: DocumentStore
    rules: MessageValidationRules = field(default_factory=MessageValidationRules)
    rate_limiter: SlidingWindowRateLimiter = field(default_factory=get_rate_limiter)
    clock: Callable[[], datetime] = _utcnow

    def validate_message(self, request: CreateMessageRequest, *, record_attempt: bool = True) -> MessageValidationResult:
        """Check a message before it is sent.

        With ``record_attempt=False`` the rate limit is consulted but no send slot is used.
        """
        result = MessageValidationResult()
        in_thread = bool(request.thread_id)

        if not request.sender_id.strip():
            result.add_error("Sender ID is required")
        if not in_thread:
            if not request.receiver_id.strip():
                result.add_error("Receiver ID is required")
            if not request.project_id.strip():
                result.add_error("Project ID is required")
            if not request.subject.strip():
                result.add_error("Subject is required")

        if request.subject.strip() and len(request.subject) > self.rules.max_subject_length:
            result.add_error(f"Subject cannot exceed {self.rules.max_subject_length} characters")
        self._check_content(request.content, result)

        users = UserRepository(self.store)
        if request.sender_id and users.get(request.sender_id) is None:
            result.add_error("Sender not found")
        if not in_thread and request.receiver_id and users.get(request.receiver_id) is None:
            result.add_error("Receiver not found")

        project_id = request.project_id
        if in_thread:
            thread = MessageThreadRepository(self.store).get(request.thread_id or "")
            if thread is None:
                result.add_error("Thread not found")
            else:
                project_id = project_id or thread.project_id
        for participant_id in request.thread_participants:
            if users.get(participant_id) is None:
                result.add_error(f"Participant {participant_id} not found")

        # Spam is counted per (sender, project); thread messages inherit the thread's project.
        if project_id and self.is_spam(request.sender_id, request.content, project_id):
            result.add_error(SPAM_MESSAGE, ValidationSeverity.CRITICAL)

        if self.is_rate_limited(request.sender_id, record_attempt=record_attempt):
            result.add_error(RATE_LIMIT_MESSAGE, ValidationSeverity.WARNING)

        self._check_quality(request.content, result)
        return result.finish()

    def validate_thread(self, request: CreateThreadRequest) -> MessageValidationResult:
        result = MessageValidationResult()

        if not request.project_id.strip():
            result.add_error("Project ID is required")
        self._check_subject(request.subject, result)
        self._check_content(request.content, result)

        if not request.participants:
            result.add_error("At least one participant is required")
        users = UserRepository(self.store)
        for participant_id in request.participants:
            if users.get(participant_id) is None:
                result.add_error(f"Participant {participant_id} not found")

        return result.finish()

    def validate_reply(self, request: ReplyToMessageRequest) -> MessageValidationResult:
        result = MessageValidationResult()

        if not request.parent_message_id.strip():
            result.add_error("Parent message ID is required")
        self._check_content(request.content, result)

        if request.parent_message_id and MessageRepository(self.store).get(request.parent_message_id) is None:
            result.add_error("Parent message not found")

        return result.finish()

    def validate_broadcast(self, request: BroadcastMessageRequest) -> MessageValidationResult:
        result = MessageValidationResult()

        if not request.sender_id.strip():
            result.add_error("Sender ID is required")
        if not request.project_id.strip():
            result.add_error("Project ID is required")
        self._check_subject(request.subject, result)
        self._check_content(request.content, result)

        if request.sender_id and UserRepository(self.store).get(request.sender_id) is None:
            result.add_error("Sender not found")

        return result.finish()

    def is_spam(self, sender_id: str, content: str, project_id: str) -> bool:
        since = self.clock() - timedelta(minutes=self.rules.spam_time_window_minutes)
        recent = MessageRepository(self.store).recent_from_sender(sender_id, project_id, since)
        if not recent:
            return False

        normalized = content.lower()
        duplicates = sum(1 for message in recent if message.content.lower() == normalized)
        if duplicates >= self.rules.spam_detection_threshold:
            logger.info("message.spam_detected", extra={"sender_id": sender_id, "project_id": project_id, "reason": "duplicate"})
            return True

        similar = sum(
            1
            for message in recent
            if word_similarity(message.content, content) >= self.rules.spam_similarity_threshold
        )
        if similar >= self.rules.spam_detection_threshold:
            logger.info("message.spam_detected", extra={"sender_id": sender_id, "project_id": project_id, "reason": "similar"})
            return True
        return False

    def is_rate_limited(self, sender_id: str, *, record_attempt: bool = True) -> bool:
        check = self.rate_limiter.hit if record_attempt else self.rate_limiter.peek
        limited = check(
            sender_id,
            per_hour=self.rules.max_messages_per_hour,
            per_day=self.rules.max_messages_per_day,
        )
        if limited:
            logger.info("message.rate_limited", extra={"sender_id": sender_id})
        return limited

    def contains_spam_keywords(self, content: str) -> bool:
        lowered = content.lower()
        return any(keyword in lowered for keyword in SPAM_KEYWORDS)

    def spam_keywords(self) -> list[str]:
        return list(SPAM_KEYWORDS)

    def _check_subject(self, subject: str, result: MessageValidationResult) -> None:
        if not subject.strip():
            result.add_error("Subject is required")
        elif len(subject) > self.rules.max_subject_length:
            result.add_error(f"Subject cannot exceed {self.rules.max_subject_length} characters")

    def _check_content(self, content: str, result: MessageValidationResult) -> None:
        if not content.strip():
            result.add_error("Content is required")
        elif len(content) < self.rules.min_content_length:
            result.add_error(f"Content must be at least {self.rules.min_content_length} character(s)")
        elif len(content) > self.rules.max_content_length:
            result.add_error(f"Content cannot exceed {self.rules.max_content_length} characters")

    def _check_quality(self, content: str, result: MessageValidationResult) -> None:
        if self.contains_spam_keywords(content):
            result.add_warning(SUSPICIOUS_CONTENT_WARNING)
        if is_excessive_capitalization(content):
            result.add_warning(CAPITALIZATION_WARNING)
        if is_excessive_punctuation(content):
            result.add_warning(PUNCTUATION_WARNING)
