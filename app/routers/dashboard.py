"""Dashboard endpoints - aggregated hours for the current user."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.database import get_database
from app.errors import ValidationError
from app.routers.auth import get_current_user_id
from app.routers.schemas import (
    ActivityResponse,
    DashboardStatsResponse,
    DepartmentHoursResponse,
    ProjectBreakdownResponse,
    to_response,
)
from app.services.dashboard_service import DashboardService


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStatsResponse)
async def get_stats(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get hours for today, this week and this month.

    - Requires authentication
    - endDate shifts "today"; startDate clips every period
    """
    service = DashboardService(db)
    try:
        stats = await service.dashboard_stats(user_id, start_date=start_date, end_date=end_date)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())
    return to_response(DashboardStatsResponse, stats)


@router.get("/project-breakdown", response_model=list[ProjectBreakdownResponse])
async def get_project_breakdown(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get hours per project with percentages.

    - Requires authentication
    - Largest project first
    """
    service = DashboardService(db)
    try:
        items = await service.project_breakdown(user_id, start_date=start_date, end_date=end_date)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())
    return [to_response(ProjectBreakdownResponse, item) for item in items]


@router.get("/recent-activity", response_model=list[ActivityResponse])
async def get_recent_activity(
    limit: Optional[int] = Query(None, ge=1, le=100),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get the most recent time entries.

    - Requires authentication
    - Newest first, 10 items unless limit is given
    """
    service = DashboardService(db)
    try:
        items = await service.recent_activity(
            user_id,
            limit=limit,
            start_date=start_date,
            end_date=end_date,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())
    return [to_response(ActivityResponse, item) for item in items]


@router.get("/department-hours", response_model=list[DepartmentHoursResponse])
async def get_department_hours(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get hours per department across the user's organization.

    - Requires authentication
    - Users without a department are grouped under "No Department"
    """
    service = DashboardService(db)
    try:
        items = await service.department_hours_summary(
            user_id,
            start_date=start_date,
            end_date=end_date,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())
    return [to_response(DepartmentHoursResponse, item) for item in items]
