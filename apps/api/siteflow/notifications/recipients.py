from __future__ import annotations

from collections.abc import Callable

from siteflow.business.directory import ProjectRepository, ProjectTaskRepository, UserRepository
from siteflow.business.invoices.repository import InvoiceRepository
from siteflow.business.quotations.repository import QuotationRepository
from siteflow.notifications.schemas import SystemEvent
from siteflow.notifications.templates import (
    INVOICE_WORKFLOW,
    PROJECT_UPDATE,
    QUOTATION_WORKFLOW,
    SYSTEM_ALERT,
    TASK_ASSIGNMENT,
)
from siteflow.platform.documents import DocumentStore


class RecipientResolver:
    """Maps a system event to the users who should receive its workflow message.

    Candidates come from a per-event-type rule table; the result is
    de-duplicated in order and restricted to currently active users.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.users = UserRepository(store)
        self.projects = ProjectRepository(store)
        self.tasks = ProjectTaskRepository(store)
        self.quotations = QuotationRepository(store)
        self.invoices = InvoiceRepository(store)
        self._rules: dict[str, Callable[[SystemEvent], list[str]]] = {
            TASK_ASSIGNMENT: self._task_assignment,
            QUOTATION_WORKFLOW: self._quotation_workflow,
            INVOICE_WORKFLOW: self._invoice_workflow,
            PROJECT_UPDATE: self._project_update,
            SYSTEM_ALERT: self._system_alert,
        }

    def resolve(self, event: SystemEvent) -> list[str]:
        rule = self._rules.get(event.event_type)
        if rule is None:
            return []
        candidates = rule(event)
        if not candidates:
            return []

        active = self.users.active_user_ids()
        recipients: list[str] = []
        for user_id in candidates:
            if user_id and user_id in active and user_id not in recipients:
                recipients.append(user_id)
        return recipients

    def _task_assignment(self, event: SystemEvent) -> list[str]:
        assignee = _text(event, "assigneeId")
        if assignee is None:
            task = self.tasks.get(event.entity_id)
            assignee = task.assigned_to if task is not None else None
        return [assignee] if assignee else []

    def _quotation_workflow(self, event: SystemEvent) -> list[str]:
        client_id = _text(event, "clientId")
        contractor_id = _text(event, "contractorId")
        if client_id is None or contractor_id is None:
            quotation = self.quotations.get(event.entity_id)
            if quotation is not None:
                client_id = client_id or quotation.client_id
                contractor_id = contractor_id or quotation.contractor_id

        if event.action == "sent":
            return [client_id] if client_id else []
        if event.action in {"submitted", "approved", "rejected"}:
            return self._project_manager(event)
        if event.action in {"accepted", "declined", "converted"}:
            return self._project_manager(event) + ([contractor_id] if contractor_id else [])
        return []

    def _invoice_workflow(self, event: SystemEvent) -> list[str]:
        client_id = _text(event, "clientId")
        contractor_id = _text(event, "contractorId")
        if client_id is None or contractor_id is None:
            invoice = self.invoices.get(event.entity_id)
            if invoice is not None:
                client_id = client_id or invoice.client_id
                contractor_id = contractor_id or invoice.contractor_id

        if event.action in {"created", "issued", "overdue", "cancelled"}:
            return [client_id] if client_id else []
        if event.action == "paid":
            return self._project_manager(event) + ([contractor_id] if contractor_id else [])
        return []

    def _project_update(self, event: SystemEvent) -> list[str]:
        project_id = event.project_id or event.entity_id
        project = self.projects.get(project_id)
        if project is None:
            return []
        participants = [project.client_id, project.project_manager_id, *project.contractor_ids]
        participants.extend(task.assigned_to for task in self.tasks.list_for_project(project_id))
        return participants

    def _system_alert(self, event: SystemEvent) -> list[str]:
        raw = event.data.get("recipients")
        if isinstance(raw, list):
            return [str(item) for item in raw]
        if isinstance(raw, str):
            return [item.strip() for item in raw.split(",") if item.strip()]
        return []

    def _project_manager(self, event: SystemEvent) -> list[str]:
        project = self.projects.get(event.project_id)
        if project is not None and project.project_manager_id:
            return [project.project_manager_id]
        fallback = _text(event, "projectManagerId")
        return [fallback] if fallback else []


def _text(event: SystemEvent, key: str) -> str | None:
    value = event.data.get(key)
    if isinstance(value, str) and value:
        return value
    return None
