from siteflow.business.directory.repository import ProjectRepository, ProjectTaskRepository, UserRepository
from siteflow.business.directory.schemas import Project, ProjectTask, User

__all__ = ["Project", "ProjectRepository", "ProjectTask", "ProjectTaskRepository", "User", "UserRepository"]
