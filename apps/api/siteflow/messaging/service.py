from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from siteflow.business.directory import ProjectRepository, UserRepository
from siteflow.core.errors import MessageRejectedError
from siteflow.messaging.repository import MessageRepository, MessageThreadRepository
from siteflow.messaging.schemas import (
    BroadcastMessageRequest,
    CreateMessageRequest,
    CreateThreadRequest,
    Message,
    MessageThread,
    MessageValidationResult,
    ReplyToMessageRequest,
)
from siteflow.messaging.validation import RATE_LIMIT_MESSAGE, SPAM_MESSAGE, MessageValidationService
from siteflow.metrics import observe_validation_rejection
from siteflow.notifications.dispatcher import LoggingNotificationDispatcher, NotificationDispatcher
from siteflow.platform.documents import DocumentStore, new_document_id


logger = logging.getLogger("siteflow.messaging")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rejection_reason(result: MessageValidationResult) -> str:
    if SPAM_MESSAGE in result.errors:
        return "spam"
    if RATE_LIMIT_MESSAGE in result.errors:
        return "rate_limited"
    return "invalid"


def _unique(values: list[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


@dataclass(slots=True)
class MessagingService:
    """Persists user-to-user messages once they pass validation, then pushes them."""

    store: DocumentStore
    validator: MessageValidationService
    dispatcher: NotificationDispatcher = field(default_factory=LoggingNotificationDispatcher)
    clock: Callable[[], datetime] = _utcnow

    def send_message(self, request: CreateMessageRequest) -> Message:
        self._require_valid(self.validator.validate_message(request), request.sender_id)

        threads = MessageThreadRepository(self.store)
        thread = threads.get(request.thread_id) if request.thread_id else None
        now = self.clock()

        message = Message(
            sender_id=request.sender_id,
            receiver_id=request.receiver_id,
            project_id=request.project_id or (thread.project_id if thread else ""),
            subject=request.subject or (thread.subject if thread else ""),
            content=request.content,
            sent_at=now,
            thread_id=thread.thread_id if thread else "",
            parent_message_id=request.parent_message_id,
            thread_participants=(
                list(thread.participants)
                if thread
                else _unique([request.sender_id, request.receiver_id, *request.thread_participants])
            ),
            message_type="thread" if thread else request.message_type,
            is_thread_starter=thread is None,
        )
        if thread is None:
            # A new conversation: the starter message id doubles as the thread id.
            message_id = new_document_id()
            message.thread_id = message_id
            MessageRepository(self.store).add_with_id(message_id, message)
            threads.add_with_id(
                message_id,
                MessageThread(
                    project_id=message.project_id,
                    subject=message.subject,
                    starter_user_id=message.sender_id,
                    participants=list(message.thread_participants),
                    message_count=1,
                    last_message_at=now,
                ),
            )
        else:
            MessageRepository(self.store).add(message)
            self._touch_thread(thread, now)

        receivers = [request.receiver_id] if request.receiver_id else [
            participant for participant in message.thread_participants if participant != request.sender_id
        ]
        self._push(receivers, message)
        logger.info(
            "message.sent",
            extra={"sender_id": message.sender_id, "project_id": message.project_id, "recipient_count": len(receivers)},
        )
        return message

    def create_thread(self, request: CreateThreadRequest) -> MessageThread:
        self._require_valid(self.validator.validate_thread(request), request.sender_id)

        now = self.clock()
        participants = _unique([request.sender_id, *request.participants])
        thread = MessageThreadRepository(self.store).add(
            MessageThread(
                project_id=request.project_id,
                subject=request.subject,
                starter_user_id=request.sender_id,
                participants=participants,
                message_count=1,
                last_message_at=now,
                thread_type=request.thread_type,
                tags=list(request.tags),
            )
        )
        starter = MessageRepository(self.store).add(
            Message(
                sender_id=request.sender_id,
                project_id=request.project_id,
                subject=request.subject,
                content=request.content,
                sent_at=now,
                thread_id=thread.thread_id,
                is_thread_starter=True,
                thread_participants=participants,
                message_type="thread",
            )
        )
        self._push([participant for participant in participants if participant != request.sender_id], starter)
        return thread

    def reply_to_message(self, request: ReplyToMessageRequest) -> Message:
        self._require_valid(self.validator.validate_reply(request), request.sender_id)

        messages = MessageRepository(self.store)
        parent = messages.get(request.parent_message_id)
        if parent is None:
            raise MessageRejectedError(MessageValidationResult(is_valid=False, errors=["Parent message not found"]))

        now = self.clock()
        receiver_id = parent.sender_id if parent.sender_id != request.sender_id else parent.receiver_id
        subject = parent.subject if parent.subject.startswith("Re: ") else f"Re: {parent.subject}"
        participants = _unique([*parent.thread_participants, parent.sender_id, *request.additional_recipients])
        reply = messages.add(
            Message(
                sender_id=request.sender_id,
                receiver_id=receiver_id,
                project_id=parent.project_id,
                subject=subject,
                content=request.content,
                sent_at=now,
                thread_id=parent.thread_id or parent.message_id,
                parent_message_id=parent.message_id,
                thread_depth=parent.thread_depth + 1,
                thread_participants=participants,
                message_type="thread",
            )
        )

        thread = MessageThreadRepository(self.store).get(reply.thread_id)
        if thread is not None:
            self._touch_thread(thread, now)

        self._push([participant for participant in participants if participant != request.sender_id], reply)
        return reply

    def broadcast(self, request: BroadcastMessageRequest) -> list[Message]:
        self._require_valid(self.validator.validate_broadcast(request), request.sender_id)

        recipients = request.recipients or self._project_participants(request.project_id)
        active = UserRepository(self.store).active_user_ids()
        recipients = [user_id for user_id in _unique(recipients) if user_id != request.sender_id and user_id in active]

        now = self.clock()
        messages = MessageRepository(self.store)
        sent: list[Message] = []
        for receiver_id in recipients:
            message = messages.add(
                Message(
                    sender_id=request.sender_id,
                    receiver_id=receiver_id,
                    project_id=request.project_id,
                    subject=request.subject,
                    content=request.content,
                    sent_at=now,
                    message_type="broadcast",
                )
            )
            self._push([receiver_id], message)
            sent.append(message)

        logger.info(
            "message.broadcast",
            extra={"sender_id": request.sender_id, "project_id": request.project_id, "recipient_count": len(sent)},
        )
        return sent

    def _require_valid(self, result: MessageValidationResult, sender_id: str) -> None:
        if result.is_valid:
            return
        reason = _rejection_reason(result)
        observe_validation_rejection(reason)
        logger.info("message.rejected", extra={"sender_id": sender_id, "reason": reason})
        raise MessageRejectedError(result)

    def _touch_thread(self, thread: MessageThread, now: datetime) -> None:
        thread.message_count += 1
        thread.last_message_at = now
        MessageThreadRepository(self.store).update(thread)

    def _project_participants(self, project_id: str) -> list[str]:
        project = ProjectRepository(self.store).get(project_id)
        if project is None:
            return []
        return [project.client_id, project.project_manager_id, *project.contractor_ids]

    def _push(self, receiver_ids: list[str], message: Message) -> None:
        users = UserRepository(self.store)
        for receiver_id in receiver_ids:
            user = users.get(receiver_id)
            if user is None or not user.device_token:
                continue
            try:
                self.dispatcher.send_to_device(
                    user.device_token,
                    message.subject or "New message",
                    message.content,
                    {"messageId": message.message_id, "threadId": message.thread_id},
                )
            except Exception:
                logger.exception("message.push_failed", extra={"sender_id": message.sender_id})
