from __future__ import annotations

from fastapi import APIRouter, Depends, status

from siteflow.api.dependencies import get_message_validation_service, get_messaging_service
from siteflow.core.auth import AuthUser, get_current_user
from siteflow.messaging.schemas import (
    BroadcastMessageRequest,
    CreateMessageRequest,
    CreateThreadRequest,
    Message,
    MessageThread,
    MessageValidationResult,
    ReplyToMessageRequest,
)
from siteflow.messaging.service import MessagingService
from siteflow.messaging.validation import MessageValidationService


router = APIRouter(prefix="/messages", tags=["messages"])


def _with_sender(payload, user: AuthUser):  # type: ignore[no-untyped-def]
    if not payload.sender_id and not user.is_anonymous:
        payload.sender_id = user.sub
    return payload


@router.post("/validate", response_model=MessageValidationResult)
def validate_message(
    payload: CreateMessageRequest,
    validator: MessageValidationService = Depends(get_message_validation_service),
    user: AuthUser = Depends(get_current_user),
) -> MessageValidationResult:
    """Preview validation for a draft; the sender's rate-limit slots are left untouched."""
    return validator.validate_message(_with_sender(payload, user), record_attempt=False)


@router.post("/validate/thread", response_model=MessageValidationResult)
def validate_thread(
    payload: CreateThreadRequest,
    validator: MessageValidationService = Depends(get_message_validation_service),
) -> MessageValidationResult:
    return validator.validate_thread(payload)


@router.post("/validate/reply", response_model=MessageValidationResult)
def validate_reply(
    payload: ReplyToMessageRequest,
    validator: MessageValidationService = Depends(get_message_validation_service),
) -> MessageValidationResult:
    return validator.validate_reply(payload)


@router.post("/validate/broadcast", response_model=MessageValidationResult)
def validate_broadcast(
    payload: BroadcastMessageRequest,
    validator: MessageValidationService = Depends(get_message_validation_service),
    user: AuthUser = Depends(get_current_user),
) -> MessageValidationResult:
    return validator.validate_broadcast(_with_sender(payload, user))


@router.get("/spam-keywords", response_model=list[str])
def spam_keywords(validator: MessageValidationService = Depends(get_message_validation_service)) -> list[str]:
    return validator.spam_keywords()


@router.post("", response_model=Message, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: CreateMessageRequest,
    service: MessagingService = Depends(get_messaging_service),
    user: AuthUser = Depends(get_current_user),
) -> Message:
    return service.send_message(_with_sender(payload, user))


@router.post("/threads", response_model=MessageThread, status_code=status.HTTP_201_CREATED)
def create_thread(
    payload: CreateThreadRequest,
    service: MessagingService = Depends(get_messaging_service),
    user: AuthUser = Depends(get_current_user),
) -> MessageThread:
    return service.create_thread(_with_sender(payload, user))


@router.post("/broadcast", response_model=list[Message], status_code=status.HTTP_201_CREATED)
def broadcast(
    payload: BroadcastMessageRequest,
    service: MessagingService = Depends(get_messaging_service),
    user: AuthUser = Depends(get_current_user),
) -> list[Message]:
    return service.broadcast(_with_sender(payload, user))


@router.post("/{message_id}/reply", response_model=Message, status_code=status.HTTP_201_CREATED)
def reply_to_message(
    message_id: str,
    payload: ReplyToMessageRequest,
    service: MessagingService = Depends(get_messaging_service),
    user: AuthUser = Depends(get_current_user),
) -> Message:
    payload.parent_message_id = message_id
    return service.reply_to_message(_with_sender(payload, user))
