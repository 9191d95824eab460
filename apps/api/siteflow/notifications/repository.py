from __future__ import annotations

from siteflow.notifications.schemas import WorkflowMessage
from siteflow.platform.documents import BaseDocumentRepository


class WorkflowMessageRepository(BaseDocumentRepository[WorkflowMessage]):
    collection = "workflow-messages"
    id_field = "workflow_message_id"
    schema = WorkflowMessage
