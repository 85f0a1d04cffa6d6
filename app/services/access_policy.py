"""Access policy - maps a role to the operations it may perform.

The policy is a pure function of the role; it holds no state and is
recomputed for every request. Ownership checks are separate and always
applied by the services.
"""
from typing import Union

from app.models.permissions import Permissions
from app.models.user import UserRole


ACTIONS = ("create", "edit", "delete", "view_all")
RESOURCES = (
    "projects",
    "tasks",
    "time_entries",
    "employees",
    "departments",
    "organizations",
)


def _grant(resource: str, actions: str) -> dict[str, bool]:
    """
    Expand a compact action string into permission flags.

    Args:
        resource: Resource name, e.g. "time_entries"
        actions: Letters from "CEDV" (create, edit, delete, view all)

    Returns:
        Mapping of permission field names to True

    Examples:
        >>> _grant("tasks", "EV")
        {'can_edit_tasks': True, 'can_view_all_tasks': True}
    """
    letters = dict(zip("CEDV", ACTIONS))
    return {f"can_{letters[letter]}_{resource}": True for letter in actions}


def _role_grants(**resources: str) -> dict[str, bool]:
    grants: dict[str, bool] = {}
    for resource, actions in resources.items():
        grants.update(_grant(resource, actions))
    return grants


ROLE_PERMISSIONS: dict[UserRole, Permissions] = {
    UserRole.ADMIN: Permissions(
        **_role_grants(**{resource: "CEDV" for resource in RESOURCES}),
        can_manage_users=True,
        can_manage_system=True,
        can_view_reports=True,
    ),
    UserRole.MANAGER: Permissions(
        **_role_grants(
            projects="CEV",
            tasks="CEDV",
            time_entries="CEDV",
            employees="CEDV",
            departments="CEV",
            organizations="V",
        ),
        can_view_reports=True,
    ),
    UserRole.PROJECT_MANAGER: Permissions(
        **_role_grants(
            projects="CEDV",
            tasks="CEDV",
            time_entries="CED",
            employees="V",
        ),
        can_view_reports=True,
    ),
    UserRole.EMPLOYEE: Permissions(
        **_role_grants(tasks="E", time_entries="CED"),
    ),
    UserRole.VIEWER: Permissions(),
}


def resolve_role(role: Union[UserRole, str, None]) -> UserRole:
    """
    Normalize a stored role; unknown or missing roles fall back to employee.

    Examples:
        >>> resolve_role("manager")
        <UserRole.MANAGER: 'manager'>
        >>> resolve_role("superhero")
        <UserRole.EMPLOYEE: 'employee'>
    """
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return UserRole.EMPLOYEE


def permissions_for(role: Union[UserRole, str, None]) -> Permissions:
    """
    Get the permissions granted to a role.

    Args:
        role: Role name or enum value

    Returns:
        A fresh Permissions object (safe for callers to mutate)
    """
    return ROLE_PERMISSIONS[resolve_role(role)].model_copy()
