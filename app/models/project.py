"""Project model definitions."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


UNKNOWN_PROJECT_NAME = "Unknown Project"
DEFAULT_PROJECT_COLOR = "#1976D2"


class ProjectStatus(str, Enum):
    """Project lifecycle states."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Project(BaseModel):
    """Project that time is logged against.

    Projects are managed elsewhere; this service only reads them.
    """

    id: str = Field(alias="_id", serialization_alias="id")
    name: str
    user_id: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    description: Optional[str] = None
    project_number: Optional[str] = None
    color: Optional[str] = None
    is_enterprise_wide: bool = False
    allow_time_tracking: bool = True
    require_task_selection: bool = False

    model_config = {"populate_by_name": True}

    def is_accessible_by(self, user_id: str) -> bool:
        """Owners and, for enterprise-wide projects, everyone may log time."""
        return self.is_enterprise_wide or self.user_id == user_id


class ProjectRef(BaseModel):
    """Minimal project display fields attached to aggregates."""

    id: Optional[str] = None
    name: str = UNKNOWN_PROJECT_NAME
    color: str = DEFAULT_PROJECT_COLOR
    project_number: Optional[str] = None

    @classmethod
    def from_doc(cls, project_id: Optional[str], doc: Optional[dict]) -> "ProjectRef":
        """Build display fields, falling back to the sentinel when the join missed."""
        if not doc:
            return cls(id=project_id)
        return cls(
            id=project_id,
            name=doc.get("name") or UNKNOWN_PROJECT_NAME,
            color=doc.get("color") or DEFAULT_PROJECT_COLOR,
            project_number=doc.get("project_number"),
        )
