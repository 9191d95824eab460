from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from siteflow.business.directory import ProjectRepository, ProjectTaskRepository, UserRepository
from siteflow.business.invoices.repository import InvoiceRepository
from siteflow.business.quotations.repository import QuotationRepository
from siteflow.core.config import get_settings
from siteflow.messaging.repository import MessageRepository
from siteflow.messaging.schemas import Message
from siteflow.metrics import observe_workflow_message
from siteflow.notifications.dispatcher import LoggingNotificationDispatcher, NotificationDispatcher
from siteflow.notifications.locks import KeyedLockRegistry, workflow_locks
from siteflow.notifications.recipients import RecipientResolver
from siteflow.notifications.repository import WorkflowMessageRepository
from siteflow.notifications.schemas import MessageTemplate, SystemEvent, TemplateValue, WorkflowMessage, utcnow
from siteflow.notifications.templates import (
    INVOICE_WORKFLOW,
    PROJECT_UPDATE,
    QUOTATION_WORKFLOW,
    SYSTEM_ALERT,
    TASK_ASSIGNMENT,
    TemplateCatalog,
    default_catalog,
    render_template,
)
from siteflow.otel import get_tracer
from siteflow.platform.documents import DocumentStore, new_document_id


logger = logging.getLogger("siteflow.notifications")
tracer = get_tracer("siteflow.notifications")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _default_window() -> timedelta:
    return timedelta(seconds=get_settings().workflow_dedup_window_seconds)


def _default_currency_symbol() -> str:
    return get_settings().currency_symbol


@dataclass(slots=True)
class WorkflowMessageService:
    """Turns system events into persisted, recipient-targeted workflow messages.

    Delivery of the same ``entity_type:entity_id:action`` triple inside the
    dedup window yields exactly one message per process: the duplicate scan and
    the insert run under that key's lock.
    """

    store: DocumentStore
    catalog: TemplateCatalog = field(default_factory=lambda: default_catalog)
    dispatcher: NotificationDispatcher = field(default_factory=LoggingNotificationDispatcher)
    locks: KeyedLockRegistry = field(default_factory=lambda: workflow_locks)
    clock: Callable[[], datetime] = utcnow
    dedup_window: timedelta = field(default_factory=_default_window)
    currency_symbol: str = field(default_factory=_default_currency_symbol)

    def process_system_event(self, event: SystemEvent) -> bool:
        if not all((event.event_type, event.entity_type, event.entity_id, event.action)):
            logger.warning("workflow_message.invalid_event", extra={"event_type": event.event_type, "action": event.action})
            observe_workflow_message(event.event_type, "invalid")
            return False

        with tracer.start_as_current_span("workflow_message.process_event") as span:
            span.set_attribute("event_type", event.event_type)
            span.set_attribute("entity_type", event.entity_type)
            span.set_attribute("action", event.action)
            span.set_attribute("dedup_key", event.dedup_key)
            if event.correlation_id:
                span.set_attribute("correlation_id", event.correlation_id)

            with self.locks.hold(event.dedup_key):
                if self._is_duplicate(event):
                    logger.info("workflow_message.duplicate", extra={"dedup_key": event.dedup_key})
                    span.set_attribute("outcome", "duplicate")
                    observe_workflow_message(event.event_type, "duplicate")
                    return True

                template = self.catalog.get(event.event_type, event.action)
                if template is None:
                    logger.warning(
                        "workflow_message.template_missing",
                        extra={"event_type": event.event_type, "action": event.action},
                    )
                    span.set_attribute("outcome", "dropped")
                    observe_workflow_message(event.event_type, "dropped")
                    return False

                recipients = RecipientResolver(self.store).resolve(event)
                if not recipients:
                    logger.warning(
                        "workflow_message.no_recipients",
                        extra={"event_type": event.event_type, "entity_id": event.entity_id, "action": event.action},
                    )
                    span.set_attribute("outcome", "dropped")
                    observe_workflow_message(event.event_type, "dropped")
                    return False

                message = self._create(event, template, recipients)

            span.set_attribute("outcome", "created")
            span.set_attribute("recipient_count", len(recipients))

        observe_workflow_message(event.event_type, "created")
        logger.info(
            "workflow_message.created",
            extra={
                "workflow_message_id": message.workflow_message_id,
                "dedup_key": event.dedup_key,
                "recipient_count": len(recipients),
            },
        )
        self._fan_out(message)
        return True

    def list_workflow_messages(
        self, project_id: str | None = None, workflow_type: str | None = None
    ) -> list[WorkflowMessage]:
        messages = WorkflowMessageRepository(self.store).list()
        if project_id:
            messages = [message for message in messages if message.project_id == project_id]
        if workflow_type:
            messages = [message for message in messages if message.workflow_type == workflow_type]
        return sorted(messages, key=lambda message: message.created_at or _EPOCH, reverse=True)

    def get_workflow_message(self, workflow_message_id: str) -> WorkflowMessage | None:
        return WorkflowMessageRepository(self.store).get(workflow_message_id)

    def mark_read(self, workflow_message_id: str, user_id: str | None) -> WorkflowMessage | None:
        repo = WorkflowMessageRepository(self.store)
        message = repo.get(workflow_message_id)
        if message is None:
            return None
        message.read_by = user_id
        message.read_at = self.clock()
        return repo.update(message)

    def list_templates(self) -> list[MessageTemplate]:
        return self.catalog.list()

    def get_template(self, workflow_type: str, action: str) -> MessageTemplate | None:
        return self.catalog.get(workflow_type, action)

    def send_quote_approval_notification(self, quote_id: str, action: str, user_id: str = "") -> bool:
        quotation = QuotationRepository(self.store).get(quote_id)
        if quotation is None:
            logger.warning("workflow_message.entity_missing", extra={"entity_type": "quotation", "entity_id": quote_id})
            return False
        return self.process_system_event(
            SystemEvent(
                event_type=QUOTATION_WORKFLOW,
                action=action,
                entity_type="quotation",
                entity_id=quote_id,
                project_id=quotation.project_id,
                user_id=user_id,
                data={
                    "quoteId": quote_id,
                    "quoteTotal": quotation.grand_total,
                    "quoteDescription": quotation.description,
                    "clientId": quotation.client_id,
                    "contractorId": quotation.contractor_id,
                    "projectId": quotation.project_id,
                    "validUntil": quotation.valid_until,
                    "action": action,
                    "userId": user_id,
                },
            )
        )

    def send_invoice_payment_notification(self, invoice_id: str, action: str, user_id: str = "") -> bool:
        invoice = InvoiceRepository(self.store).get(invoice_id)
        if invoice is None:
            logger.warning("workflow_message.entity_missing", extra={"entity_type": "invoice", "entity_id": invoice_id})
            return False
        return self.process_system_event(
            SystemEvent(
                event_type=INVOICE_WORKFLOW,
                action=action,
                entity_type="invoice",
                entity_id=invoice_id,
                project_id=invoice.project_id,
                user_id=user_id,
                data={
                    "invoiceId": invoice_id,
                    "invoiceNumber": invoice.invoice_number,
                    "invoiceAmount": invoice.grand_total,
                    "dueDate": invoice.due_date,
                    "clientId": invoice.client_id,
                    "contractorId": invoice.contractor_id,
                    "action": action,
                    "userId": user_id,
                },
            )
        )

    def send_project_update_notification(self, project_id: str, update_type: str, user_id: str = "") -> bool:
        project = ProjectRepository(self.store).get(project_id)
        if project is None:
            logger.warning("workflow_message.entity_missing", extra={"entity_type": "project", "entity_id": project_id})
            return False
        return self.process_system_event(
            SystemEvent(
                event_type=PROJECT_UPDATE,
                action=update_type,
                entity_type="project",
                entity_id=project_id,
                project_id=project_id,
                user_id=user_id,
                data={
                    "projectName": project.name,
                    "projectStatus": project.status,
                    "projectManagerId": project.project_manager_id,
                    "clientId": project.client_id,
                    "updateType": update_type,
                    "userId": user_id,
                },
            )
        )

    def send_task_assignment_notification(self, task_id: str, user_id: str = "") -> bool:
        task = ProjectTaskRepository(self.store).get(task_id)
        if task is None:
            logger.warning("workflow_message.entity_missing", extra={"entity_type": "task", "entity_id": task_id})
            return False
        project = ProjectRepository(self.store).get(task.project_id)
        return self.process_system_event(
            SystemEvent(
                event_type=TASK_ASSIGNMENT,
                action="assigned",
                entity_type="task",
                entity_id=task_id,
                project_id=task.project_id,
                user_id=user_id,
                data={
                    "taskName": task.name,
                    "taskDescription": task.description,
                    "projectId": task.project_id,
                    "assigneeId": task.assigned_to,
                    "dueDate": task.due_date,
                    "projectName": project.name if project else "",
                    "userId": user_id,
                },
            )
        )

    def send_system_alert(self, alert_type: str, message: str, recipients: list[str]) -> bool:
        return self.process_system_event(
            SystemEvent(
                event_type=SYSTEM_ALERT,
                action=alert_type,
                entity_type="system",
                entity_id=f"{alert_type}-{uuid.uuid4().hex[:8]}",
                data={"alertType": alert_type, "message": message, "recipients": list(recipients)},
            )
        )

    def _is_duplicate(self, event: SystemEvent) -> bool:
        cutoff = self.clock() - self.dedup_window
        for existing in WorkflowMessageRepository(self.store).list():
            if (
                existing.entity_type == event.entity_type
                and existing.entity_id == event.entity_id
                and existing.action == event.action
                and existing.created_at is not None
                and existing.created_at >= cutoff
            ):
                return True
        return False

    def _create(self, event: SystemEvent, template: MessageTemplate, recipients: list[str]) -> WorkflowMessage:
        data: dict[str, TemplateValue] = dict(event.data)
        now = self.clock()
        message = WorkflowMessage(
            workflow_type=event.event_type,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            action=event.action,
            project_id=event.project_id,
            subject=render_template(template.subject_template, data, currency_symbol=self.currency_symbol),
            content=render_template(template.content_template, data, currency_symbol=self.currency_symbol),
            priority=template.priority,
            recipients=recipients,
            status="sent",
            created_at=now,
            sent_at=now,
            metadata=data,
        )
        return WorkflowMessageRepository(self.store).add_with_id(new_document_id(), message)

    def _fan_out(self, workflow_message: WorkflowMessage) -> None:
        messages = MessageRepository(self.store)
        users = UserRepository(self.store)
        for recipient_id in workflow_message.recipients:
            thread_id = new_document_id()
            messages.add_with_id(
                thread_id,
                Message(
                    sender_id="system",
                    receiver_id=recipient_id,
                    project_id=workflow_message.project_id,
                    subject=workflow_message.subject,
                    content=workflow_message.content,
                    sent_at=workflow_message.sent_at or self.clock(),
                    thread_id=thread_id,
                    is_thread_starter=True,
                    thread_participants=[recipient_id],
                    message_type="workflow",
                ),
            )

            user = users.get(recipient_id)
            if user is None or not user.device_token:
                continue
            try:
                self.dispatcher.send_to_device(
                    user.device_token,
                    workflow_message.subject,
                    workflow_message.content,
                    {
                        "workflowMessageId": workflow_message.workflow_message_id,
                        "entityType": workflow_message.entity_type,
                        "entityId": workflow_message.entity_id,
                        "action": workflow_message.action,
                    },
                )
            except Exception:
                logger.exception(
                    "workflow_message.dispatch_failed",
                    extra={"workflow_message_id": workflow_message.workflow_message_id},
                )
