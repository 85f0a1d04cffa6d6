"""User endpoints - information about the caller."""
from fastapi import APIRouter, Depends, HTTPException, status

from app.database import get_database
from app.errors import NotFoundError
from app.routers.auth import get_current_user_id
from app.routers.schemas import RoleInfoResponse, UserResponse, to_response
from app.services.user_service import UserService


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get current authenticated user.

    - Requires authentication
    - Returns 404 if the identity provider has no record of the user
    """
    service = UserService(db)
    try:
        user = await service.get_user(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return UserResponse(**user.model_dump(), display_name=user.display_name)


@router.get("/current-role", response_model=RoleInfoResponse)
async def get_current_role_info(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get the caller's role and what it permits.

    - Requires authentication
    - Users without a stored role are employees
    """
    service = UserService(db)
    role_info = await service.get_role_info(user_id)
    return to_response(RoleInfoResponse, role_info)
