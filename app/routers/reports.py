"""Report endpoints - cross-user views for managers."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.database import get_database
from app.errors import ValidationError
from app.models.permissions import Permissions
from app.routers.auth import require_permission
from app.routers.schemas import ProjectTimeEntryResponse, to_response
from app.services.dashboard_service import DashboardService


router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/project-time-entries/{project_id}", response_model=list[ProjectTimeEntryResponse])
async def get_project_time_entries(
    project_id: str,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    _: Permissions = Depends(require_permission("can_view_reports")),
    db=Depends(get_database),
):
    """
    Get every user's time entries on a project.

    - Requires authentication
    - Requires the view-reports permission (admins, managers, project managers)
    """
    service = DashboardService(db)
    try:
        rows = await service.project_time_entries(
            project_id,
            start_date=start_date,
            end_date=end_date,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())
    return [to_response(ProjectTimeEntryResponse, row) for row in rows]
