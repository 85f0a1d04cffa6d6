"""User service - read-only lookups of externally managed users."""
import logging
from typing import Optional

from app.errors import NotFoundError, storage_errors
from app.models.permissions import RoleInfo
from app.models.user import User, UserRole
from app.services.access_policy import permissions_for, resolve_role


log = logging.getLogger(__name__)


class UserService:
    """Service for looking up users and their roles."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]

    @storage_errors("users.get")
    async def get_user(self, user_id: str) -> User:
        """
        Get user by ID.

        Args:
            user_id: User ID (the token subject)

        Returns:
            User object

        Raises:
            NotFoundError: If user not found
        """
        user_doc = await self.users.find_one({"_id": user_id})
        if not user_doc:
            raise NotFoundError("User not found")

        return User(
            _id=str(user_doc["_id"]),
            email=user_doc.get("email"),
            first_name=user_doc.get("first_name"),
            last_name=user_doc.get("last_name"),
            role=resolve_role(user_doc.get("role")),
            organization_id=user_doc.get("organization_id"),
            department_id=user_doc.get("department_id"),
            is_active=user_doc.get("is_active", True),
        )

    @storage_errors("users.role")
    async def get_role(self, user_id: str) -> UserRole:
        """
        Get the role of a user.

        Users without a record (or without a role) are treated as employees.
        """
        user_doc: Optional[dict] = await self.users.find_one({"_id": user_id}, {"role": 1})
        if not user_doc:
            log.debug("No user record for %s, using default role", user_id)
            return UserRole.EMPLOYEE
        return resolve_role(user_doc.get("role"))

    async def get_role_info(self, user_id: str) -> RoleInfo:
        """Get the caller's role together with its permissions."""
        role = await self.get_role(user_id)
        return RoleInfo(role=role, permissions=permissions_for(role))
