from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from siteflow.api.dependencies import get_workflow_message_service
from siteflow.core.auth import AuthUser, get_current_user
from siteflow.notifications.schemas import (
    MarkReadRequest,
    MessageTemplate,
    ProcessEventResponse,
    SystemAlertRequest,
    SystemEvent,
    WorkflowMessage,
)
from siteflow.notifications.service import WorkflowMessageService


router = APIRouter(prefix="/workflow-messages", tags=["workflow-messages"])


def _actor(user: AuthUser) -> str:
    return "" if user.is_anonymous else user.sub


@router.post("/events", response_model=ProcessEventResponse)
def process_system_event(
    event: SystemEvent,
    service: WorkflowMessageService = Depends(get_workflow_message_service),
    user: AuthUser = Depends(get_current_user),
) -> ProcessEventResponse:
    if not event.user_id:
        event.user_id = _actor(user)
    return ProcessEventResponse(processed=service.process_system_event(event))


@router.get("", response_model=list[WorkflowMessage])
def list_workflow_messages(
    project_id: str | None = Query(default=None),
    workflow_type: str | None = Query(default=None),
    service: WorkflowMessageService = Depends(get_workflow_message_service),
) -> list[WorkflowMessage]:
    return service.list_workflow_messages(project_id=project_id, workflow_type=workflow_type)


@router.get("/templates", response_model=list[MessageTemplate])
def list_templates(service: WorkflowMessageService = Depends(get_workflow_message_service)) -> list[MessageTemplate]:
    return service.list_templates()


@router.get("/templates/{workflow_type}/{action}", response_model=MessageTemplate)
def get_template(
    workflow_type: str,
    action: str,
    service: WorkflowMessageService = Depends(get_workflow_message_service),
) -> MessageTemplate:
    template = service.get_template(workflow_type, action)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="template not found")
    return template


@router.post("/system-alerts", response_model=ProcessEventResponse)
def send_system_alert(
    payload: SystemAlertRequest,
    service: WorkflowMessageService = Depends(get_workflow_message_service),
) -> ProcessEventResponse:
    return ProcessEventResponse(processed=service.send_system_alert(payload.alert_type, payload.message, payload.recipients))


@router.post("/quotations/{quote_id}/notify", response_model=ProcessEventResponse)
def notify_quotation(
    quote_id: str,
    action: str = Query(min_length=1),
    service: WorkflowMessageService = Depends(get_workflow_message_service),
    user: AuthUser = Depends(get_current_user),
) -> ProcessEventResponse:
    return ProcessEventResponse(processed=service.send_quote_approval_notification(quote_id, action, _actor(user)))


@router.post("/invoices/{invoice_id}/notify", response_model=ProcessEventResponse)
def notify_invoice(
    invoice_id: str,
    action: str = Query(min_length=1),
    service: WorkflowMessageService = Depends(get_workflow_message_service),
    user: AuthUser = Depends(get_current_user),
) -> ProcessEventResponse:
    return ProcessEventResponse(processed=service.send_invoice_payment_notification(invoice_id, action, _actor(user)))


@router.post("/projects/{project_id}/notify", response_model=ProcessEventResponse)
def notify_project(
    project_id: str,
    update_type: str = Query(min_length=1),
    service: WorkflowMessageService = Depends(get_workflow_message_service),
    user: AuthUser = Depends(get_current_user),
) -> ProcessEventResponse:
    return ProcessEventResponse(processed=service.send_project_update_notification(project_id, update_type, _actor(user)))


@router.post("/tasks/{task_id}/notify", response_model=ProcessEventResponse)
def notify_task_assignment(
    task_id: str,
    service: WorkflowMessageService = Depends(get_workflow_message_service),
    user: AuthUser = Depends(get_current_user),
) -> ProcessEventResponse:
    return ProcessEventResponse(processed=service.send_task_assignment_notification(task_id, _actor(user)))


@router.get("/{workflow_message_id}", response_model=WorkflowMessage)
def get_workflow_message(
    workflow_message_id: str,
    service: WorkflowMessageService = Depends(get_workflow_message_service),
) -> WorkflowMessage:
    message = service.get_workflow_message(workflow_message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="workflow message not found")
    return message


@router.post("/{workflow_message_id}/read", response_model=WorkflowMessage)
def mark_workflow_message_read(
    workflow_message_id: str,
    payload: MarkReadRequest,
    service: WorkflowMessageService = Depends(get_workflow_message_service),
    user: AuthUser = Depends(get_current_user),
) -> WorkflowMessage:
    message = service.mark_read(workflow_message_id, payload.user_id or _actor(user) or None)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="workflow message not found")
    return message
