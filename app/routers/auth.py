"""Authentication and authorization dependencies."""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError

from app.database import get_database
from app.models.permissions import Permissions
from app.models.user import UserRole
from app.services.access_policy import permissions_for
from app.services.user_service import UserService
from app.utils.auth import verify_access_token


security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Dependency to get current user ID from JWT token.

    Args:
        credentials: HTTP bearer credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is missing or invalid (401)
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        token = credentials.credentials
        user_id = verify_access_token(token)
        return user_id
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


async def get_current_role(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
) -> UserRole:
    """Dependency to get the caller's role (employee when unknown)."""
    service = UserService(db)
    return await service.get_role(user_id)


async def get_permissions(role: UserRole = Depends(get_current_role)) -> Permissions:
    """Dependency to get the permissions of the caller's role."""
    return permissions_for(role)


def require_permission(permission: str):
    """
    Dependency factory for permission-based access control.

    Args:
        permission: Name of a Permissions flag, e.g. "can_create_time_entries"

    Returns:
        Dependency returning the caller's permissions, or raising 403
    """
    if permission not in Permissions.model_fields:
        raise ValueError(f"Unknown permission: {permission}")

    async def permission_checker(
        permissions: Permissions = Depends(get_permissions),
    ) -> Permissions:
        if not getattr(permissions, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted",
            )
        return permissions

    return permission_checker
