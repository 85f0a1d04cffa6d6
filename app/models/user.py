"""User model definitions."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Roles assigned by the identity provider."""

    ADMIN = "admin"
    MANAGER = "manager"
    PROJECT_MANAGER = "project_manager"
    EMPLOYEE = "employee"
    VIEWER = "viewer"


class User(BaseModel):
    """User as stored by the identity provider. Read-only for this service."""

    id: str = Field(alias="_id", serialization_alias="id")
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.EMPLOYEE
    organization_id: Optional[str] = None
    department_id: Optional[str] = None
    is_active: bool = True

    model_config = {"populate_by_name": True}

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email or self.id
