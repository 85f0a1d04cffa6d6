"""Time entry endpoints - manual entries and timers."""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.database import get_database
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.permissions import Permissions
from app.models.time_entry import TimeEntryCreate, TimeEntryUpdate
from app.routers.auth import get_current_user_id, get_permissions, require_permission
from app.routers.schemas import (
    TimeEntryCreateRequest,
    TimeEntryResponse,
    TimeEntryUpdateRequest,
    TimerStartRequest,
    TimerSwitchResponse,
    to_response,
    to_service_model,
)
from app.services.time_entry_service import TimeEntryService
from app.services.timer_service import TimerService


log = logging.getLogger(__name__)

router = APIRouter(prefix="/time-entries", tags=["time-entries"])


def _bad_request(e: ValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())


@router.get("", response_model=list[TimeEntryResponse])
async def list_entries(
    project_id: Optional[str] = Query(None, alias="projectId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    limit: Optional[int] = Query(None, ge=1),
    offset: Optional[int] = Query(None, ge=0),
    for_user_id: Optional[str] = Query(None, alias="userId"),
    user_id: str = Depends(get_current_user_id),
    permissions: Permissions = Depends(get_permissions),
    db=Depends(get_database),
):
    """
    List time entries.

    - Requires authentication
    - Optional filters: projectId, startDate, endDate
    - Paging with limit/offset
    - userId selects another user's entries (requires view-all permission)
    - Sorted by date, then creation time, newest first
    """
    if for_user_id and for_user_id != user_id:
        if not permissions.can_view_all_time_entries:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
        user_id = for_user_id

    service = TimeEntryService(db)
    try:
        entries = await service.list_entries(
            user_id=user_id,
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        raise _bad_request(e)
    return [to_response(TimeEntryResponse, entry) for entry in entries]


@router.get("/active", response_model=Optional[TimeEntryResponse])
async def get_active_timer(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get the currently running timer.

    - Requires authentication
    - Returns null if no timer is running
    """
    service = TimerService(db)
    entry = await service.get_active_timer(user_id=user_id)
    if not entry:
        return None
    return to_response(TimeEntryResponse, entry)


@router.post("", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    body: TimeEntryCreateRequest,
    user_id: str = Depends(get_current_user_id),
    _: Permissions = Depends(require_permission("can_create_time_entries")),
    db=Depends(get_database),
):
    """
    Create a manual time entry.

    - Requires authentication
    - Give a duration (hours), or a start and end time
    - Project must be owned by the user or enterprise-wide
    """
    entry_create = to_service_model(TimeEntryCreate, body)
    service = TimeEntryService(db)
    try:
        entry = await service.create(user_id=user_id, entry_create=entry_create)
    except ValidationError as e:
        raise _bad_request(e)
    return to_response(TimeEntryResponse, entry)


@router.post("/start", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
async def start_timer(
    body: TimerStartRequest,
    user_id: str = Depends(get_current_user_id),
    _: Permissions = Depends(require_permission("can_create_time_entries")),
    db=Depends(get_database),
):
    """
    Start a new timer.

    - Requires authentication
    - Only one timer can run at a time (409 otherwise)
    """
    service = TimerService(db)
    try:
        entry = await service.start_timer(
            user_id=user_id,
            project_id=body.project_id,
            task_id=body.task_id,
            description=body.description,
        )
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationError as e:
        raise _bad_request(e)
    return to_response(TimeEntryResponse, entry)


@router.post("/switch", response_model=TimerSwitchResponse)
async def switch_timer(
    body: TimerStartRequest,
    user_id: str = Depends(get_current_user_id),
    _: Permissions = Depends(require_permission("can_create_time_entries")),
    db=Depends(get_database),
):
    """
    Stop the running timer (if any) and start a new one.

    - Requires authentication
    - The old timer keeps running if the new project cannot be used
    """
    service = TimerService(db)
    try:
        stopped, started = await service.switch_timer(
            user_id=user_id,
            project_id=body.project_id,
            task_id=body.task_id,
            description=body.description,
        )
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationError as e:
        raise _bad_request(e)
    return TimerSwitchResponse(
        stopped=to_response(TimeEntryResponse, stopped) if stopped else None,
        started=to_response(TimeEntryResponse, started),
    )


@router.get("/{entry_id}", response_model=TimeEntryResponse)
async def get_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    permissions: Permissions = Depends(get_permissions),
    db=Depends(get_database),
):
    """
    Get a specific time entry by ID.

    - Requires authentication
    - User must own the entry, unless allowed to view all entries
    """
    scope = None if permissions.can_view_all_time_entries else user_id
    service = TimeEntryService(db)
    try:
        entry = await service.get(entry_id, user_id=scope)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return to_response(TimeEntryResponse, entry)


@router.put("/{entry_id}", response_model=TimeEntryResponse)
async def update_entry(
    entry_id: str,
    body: TimeEntryUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    _: Permissions = Depends(require_permission("can_edit_time_entries")),
    db=Depends(get_database),
):
    """
    Update a time entry.

    - Requires authentication
    - User must own the entry
    - Omitted fields stay unchanged; duration follows start/end changes
    """
    entry_update = to_service_model(TimeEntryUpdate, body)
    service = TimeEntryService(db)
    try:
        entry = await service.update(entry_id, entry_update, user_id=user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationError as e:
        raise _bad_request(e)
    return to_response(TimeEntryResponse, entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    permissions: Permissions = Depends(require_permission("can_delete_time_entries")),
    db=Depends(get_database),
):
    """
    Delete a time entry.

    - Requires authentication
    - User must own the entry, unless allowed to view all entries
    - Hard delete (permanent)
    """
    scope = None if permissions.can_view_all_time_entries else user_id
    service = TimeEntryService(db)
    if not await service.delete(entry_id, user_id=scope):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time entry not found")
    log.info("Time entry %s deleted by user %s", entry_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{entry_id}/stop", response_model=TimeEntryResponse)
async def stop_timer(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    _: Permissions = Depends(require_permission("can_edit_time_entries")),
    db=Depends(get_database),
):
    """
    Stop a running timer.

    - Requires authentication
    - User must own the entry
    - Entry must be running (400 otherwise)
    """
    service = TimerService(db)
    try:
        entry = await service.stop_timer(entry_id=entry_id, user_id=user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ValidationError as e:
        raise _bad_request(e)
    return to_response(TimeEntryResponse, entry)
