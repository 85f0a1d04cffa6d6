"""Permission model definitions."""
from pydantic import BaseModel

from app.models.user import UserRole


class Permissions(BaseModel):
    """What a role may do. Defaults deny everything."""

    can_create_projects: bool = False
    can_edit_projects: bool = False
    can_delete_projects: bool = False
    can_view_all_projects: bool = False

    can_create_tasks: bool = False
    can_edit_tasks: bool = False
    can_delete_tasks: bool = False
    can_view_all_tasks: bool = False

    can_create_time_entries: bool = False
    can_edit_time_entries: bool = False
    can_delete_time_entries: bool = False
    can_view_all_time_entries: bool = False

    can_create_employees: bool = False
    can_edit_employees: bool = False
    can_delete_employees: bool = False
    can_view_all_employees: bool = False

    can_create_departments: bool = False
    can_edit_departments: bool = False
    can_delete_departments: bool = False
    can_view_all_departments: bool = False

    can_create_organizations: bool = False
    can_edit_organizations: bool = False
    can_delete_organizations: bool = False
    can_view_all_organizations: bool = False

    can_manage_users: bool = False
    can_manage_system: bool = False
    can_view_reports: bool = False


class RoleInfo(BaseModel):
    """Current role of the caller with its permissions."""

    role: UserRole
    permissions: Permissions
