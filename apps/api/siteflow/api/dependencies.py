from __future__ import annotations

from fastapi import Depends

from siteflow.business.invoices.service import InvoiceWorkflowService
from siteflow.business.quotations.service import QuoteWorkflowService
from siteflow.core.config import get_settings
from siteflow.core.database import SessionLocal
from siteflow.messaging.schemas import MessageValidationRules
from siteflow.messaging.service import MessagingService
from siteflow.messaging.validation import MessageValidationService
from siteflow.notifications.dispatcher import LoggingNotificationDispatcher, NotificationDispatcher
from siteflow.notifications.service import WorkflowMessageService
from siteflow.platform.documents import DocumentStore, InMemoryDocumentStore, SqlDocumentStore


_memory_store = InMemoryDocumentStore()
_dispatcher = LoggingNotificationDispatcher()


def get_document_store() -> DocumentStore:
    if get_settings().document_store_backend.lower() == "sql":
        return SqlDocumentStore(SessionLocal)
    return _memory_store


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def get_quote_workflow_service(store: DocumentStore = Depends(get_document_store)) -> QuoteWorkflowService:
    return QuoteWorkflowService(store=store)


def get_invoice_workflow_service(store: DocumentStore = Depends(get_document_store)) -> InvoiceWorkflowService:
    return InvoiceWorkflowService(store=store)


def get_workflow_message_service(
    store: DocumentStore = Depends(get_document_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> WorkflowMessageService:
    return WorkflowMessageService(store=store, dispatcher=dispatcher)


def get_message_validation_service(store: DocumentStore = Depends(get_document_store)) -> MessageValidationService:
    return MessageValidationService(store=store, rules=MessageValidationRules.from_settings(get_settings()))


def get_messaging_service(
    store: DocumentStore = Depends(get_document_store),
    validator: MessageValidationService = Depends(get_message_validation_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> MessagingService:
    return MessagingService(store=store, validator=validator, dispatcher=dispatcher)
