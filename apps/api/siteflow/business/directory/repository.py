from __future__ import annotations

from siteflow.business.directory.schemas import Project, ProjectTask, User
from siteflow.platform.documents import BaseDocumentRepository


class UserRepository(BaseDocumentRepository[User]):
    collection = "users"
    id_field = "user_id"
    schema = User

    def active_user_ids(self) -> set[str]:
        return {user.user_id for user in self.list() if user.is_active}


class ProjectRepository(BaseDocumentRepository[Project]):
    collection = "projects"
    id_field = "project_id"
    schema = Project


class ProjectTaskRepository(BaseDocumentRepository[ProjectTask]):
    collection = "tasks"
    id_field = "task_id"
    schema = ProjectTask

    def list_for_project(self, project_id: str) -> list[ProjectTask]:
        return [task for task in self.list() if task.project_id == project_id]
