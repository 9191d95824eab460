from __future__ import annotations

from datetime import datetime

from siteflow.messaging.schemas import Message, MessageThread
from siteflow.platform.documents import BaseDocumentRepository


class MessageRepository(BaseDocumentRepository[Message]):
    collection = "messages"
    id_field = "message_id"
    schema = Message

    def recent_from_sender(self, sender_id: str, project_id: str, since: datetime) -> list[Message]:
        return [
            message
            for message in self.list()
            if message.sender_id == sender_id and message.project_id == project_id and message.sent_at > since
        ]

    def list_for_thread(self, thread_id: str) -> list[Message]:
        messages = [message for message in self.list() if message.thread_id == thread_id]
        return sorted(messages, key=lambda message: message.sent_at)


class MessageThreadRepository(BaseDocumentRepository[MessageThread]):
    collection = "message-threads"
    id_field = "thread_id"
    schema = MessageThread
