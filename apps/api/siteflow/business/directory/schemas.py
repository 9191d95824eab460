from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    user_id: str = ""
    role: str = ""
    full_name: str = ""
    email: str = ""
    is_active: bool = True
    device_token: str = ""


class Project(BaseModel):
    project_id: str = ""
    project_manager_id: str = ""
    client_id: str = ""
    name: str = ""
    description: str = ""
    status: str = ""
    contractor_ids: list[str] = Field(default_factory=list)


class ProjectTask(BaseModel):
    task_id: str = ""
    project_id: str = ""
    name: str = ""
    description: str = ""
    assigned_to: str = ""
    status: str = ""
    due_date: datetime | None = None
