"""Workflow message templates and placeholder rendering.

Placeholders are ``{key}`` or ``{key:format}``. A key missing from the event
data, or a format the value cannot take, leaves the placeholder in the output
verbatim; a ``None`` value renders as an empty string.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal

from siteflow.notifications.schemas import MessageTemplate, TemplateValue


QUOTATION_WORKFLOW = "quotation_workflow"
INVOICE_WORKFLOW = "invoice_workflow"
TASK_ASSIGNMENT = "task_assignment"
PROJECT_UPDATE = "project_update"
SYSTEM_ALERT = "system_alert"

WORKFLOW_TYPES = (QUOTATION_WORKFLOW, INVOICE_WORKFLOW, TASK_ASSIGNMENT, PROJECT_UPDATE, SYSTEM_ALERT)

ANY_ACTION = "*"

_PLACEHOLDER_RE = re.compile(r"\{(\w+)(?::([^{}]+))?\}")


DEFAULT_TEMPLATES: tuple[MessageTemplate, ...] = (
    MessageTemplate(
        workflow_type=QUOTATION_WORKFLOW,
        action="submitted",
        subject_template="Quotation Awaiting Approval - {quoteId}",
        content_template="Quotation {quoteId} for project {projectId} has been submitted for approval. Amount: {quoteTotal:C}.",
    ),
    MessageTemplate(
        workflow_type=QUOTATION_WORKFLOW,
        action="approved",
        subject_template="Quotation Approved - {quoteId}",
        content_template="Quotation {quoteId} has been approved. Amount: {quoteTotal:C}. You can proceed with the work.",
        priority="high",
    ),
    MessageTemplate(
        workflow_type=QUOTATION_WORKFLOW,
        action="rejected",
        subject_template="Quotation Rejected - {quoteId}",
        content_template="Quotation {quoteId} has been rejected. Reason: {reason}. Please review and resubmit with necessary changes.",
    ),
    MessageTemplate(
        workflow_type=QUOTATION_WORKFLOW,
        action="sent",
        subject_template="New Quotation Available - {quoteId}",
        content_template="A quotation for project {projectId} is ready for your review. Amount: {quoteTotal:C}. Valid until {validUntil:%Y-%m-%d}.",
        priority="high",
    ),
    MessageTemplate(
        workflow_type=QUOTATION_WORKFLOW,
        action="accepted",
        subject_template="Quotation Accepted - {quoteId}",
        content_template="The client accepted quotation {quoteId} ({quoteTotal:C}). Note: {note}",
        priority="high",
    ),
    MessageTemplate(
        workflow_type=QUOTATION_WORKFLOW,
        action="declined",
        subject_template="Quotation Declined - {quoteId}",
        content_template="The client declined quotation {quoteId}. Note: {note}",
    ),
    MessageTemplate(
        workflow_type=QUOTATION_WORKFLOW,
        action="converted",
        subject_template="Quotation Converted - {quoteId}",
        content_template="Quotation {quoteId} has been converted to invoice {invoiceNumber}.",
    ),
    MessageTemplate(
        workflow_type=INVOICE_WORKFLOW,
        action="created",
        subject_template="New Invoice Generated - {invoiceNumber}",
        content_template="A new invoice has been generated. Invoice Number: {invoiceNumber}, Amount: {invoiceAmount:C}.",
    ),
    MessageTemplate(
        workflow_type=INVOICE_WORKFLOW,
        action="issued",
        subject_template="Invoice Issued - {invoiceNumber}",
        content_template="Invoice {invoiceNumber} for {invoiceAmount:C} has been issued. Payment is due by {dueDate:%Y-%m-%d}.",
        priority="high",
    ),
    MessageTemplate(
        workflow_type=INVOICE_WORKFLOW,
        action="paid",
        subject_template="Invoice Paid - {invoiceNumber}",
        content_template="Invoice {invoiceNumber} has been paid successfully. Amount: {invoiceAmount:C}. Thank you for your payment.",
        priority="high",
    ),
    MessageTemplate(
        workflow_type=INVOICE_WORKFLOW,
        action="cancelled",
        subject_template="Invoice Cancelled - {invoiceNumber}",
        content_template="Invoice {invoiceNumber} has been cancelled. No payment is required.",
    ),
    MessageTemplate(
        workflow_type=INVOICE_WORKFLOW,
        action="overdue",
        subject_template="Invoice Overdue - {invoiceNumber}",
        content_template="Invoice {invoiceNumber} is now overdue. Amount: {invoiceAmount:C}. Please process payment as soon as possible.",
        priority="urgent",
    ),
    MessageTemplate(
        workflow_type=TASK_ASSIGNMENT,
        action="assigned",
        subject_template="New Task Assigned - {taskName}",
        content_template="You have been assigned to task {taskName} on project {projectId}. Due: {dueDate:%Y-%m-%d}.",
        priority="high",
    ),
    MessageTemplate(
        workflow_type=PROJECT_UPDATE,
        action="status_changed",
        subject_template="Project Status Update - {projectName}",
        content_template="Project {projectName} status has been updated. Please check the project dashboard for details.",
    ),
    MessageTemplate(
        workflow_type=PROJECT_UPDATE,
        action="milestone_reached",
        subject_template="Project Milestone Reached - {projectName}",
        content_template="A milestone has been reached for project {projectName}. Great progress!",
    ),
    MessageTemplate(
        workflow_type=SYSTEM_ALERT,
        action="maintenance",
        subject_template="System Maintenance Scheduled",
        content_template="System maintenance has been scheduled. The system may be temporarily unavailable during this time. {message}",
        priority="high",
    ),
    MessageTemplate(
        workflow_type=SYSTEM_ALERT,
        action=ANY_ACTION,
        subject_template="System Alert: {alertType}",
        content_template="{message}",
        priority="high",
    ),
)


class TemplateCatalog:
    def __init__(self, templates: tuple[MessageTemplate, ...] | list[MessageTemplate] = DEFAULT_TEMPLATES) -> None:
        self._templates: dict[tuple[str, str], MessageTemplate] = {}
        for template in templates:
            self.register(template)

    def register(self, template: MessageTemplate) -> None:
        key = (template.workflow_type, template.action)
        if key in self._templates:
            raise ValueError(f"duplicate template for {template.workflow_type}/{template.action}")
        self._templates[key] = template

    def get(self, workflow_type: str, action: str) -> MessageTemplate | None:
        template = self._templates.get((workflow_type, action))
        if template is None:
            template = self._templates.get((workflow_type, ANY_ACTION))
        return template

    def list(self) -> list[MessageTemplate]:
        return list(self._templates.values())


def _format_value(value: TemplateValue, fmt: str | None, currency_symbol: str) -> str | None:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, str) and fmt is not None and "%" in fmt:
        # Dates arriving over JSON are ISO strings.
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if isinstance(value, (datetime, date)):
        if fmt is None:
            return value.isoformat()
        try:
            return value.strftime(fmt)
        except ValueError:
            return None
    if isinstance(value, (int, float, Decimal)):
        if fmt is None:
            return str(value)
        if fmt in {"C", "c"}:
            return f"{currency_symbol} {Decimal(str(value)):,.2f}"
    if fmt is None:
        return str(value)
    try:
        return format(value, fmt)
    except (ValueError, TypeError):
        return None


def render_template(template: str, data: Mapping[str, TemplateValue], *, currency_symbol: str = "R") -> str:
    def _replace(match: re.Match[str]) -> str:
        key, fmt = match.group(1), match.group(2)
        if key not in data:
            return match.group(0)
        rendered = _format_value(data[key], fmt, currency_symbol)
        return match.group(0) if rendered is None else rendered

    return _PLACEHOLDER_RE.sub(_replace, template)


default_catalog = TemplateCatalog()
