"""Dashboard aggregate model definitions."""
import datetime as dt
from typing import Optional

from pydantic import BaseModel

from app.models.project import ProjectRef
from app.models.time_entry import TimeEntryStatus


NO_DEPARTMENT_NAME = "No Department"


class DashboardStats(BaseModel):
    """Hour totals for the current day, week and month."""

    today_hours: float = 0.0
    week_hours: float = 0.0
    month_hours: float = 0.0
    active_project_count: int = 0


class ProjectBreakdownItem(BaseModel):
    """Hours logged against one project."""

    project: ProjectRef
    total_hours: float
    entry_count: int
    percentage: int


class ActivityItem(BaseModel):
    """One entry in the recent activity feed."""

    id: str
    description: str = ""
    date: dt.date
    hours: float
    status: TimeEntryStatus
    project_id: Optional[str] = None
    project_name: str
    project_color: str
    task_name: Optional[str] = None
    created_at: dt.datetime


class DepartmentHours(BaseModel):
    """Hours summed per department."""

    department_name: str
    total_hours: float
    employee_count: int
    entry_count: int


class ProjectTimeEntry(BaseModel):
    """A time entry row in the per-project report."""

    id: str
    user_id: str
    user_name: str
    description: str = ""
    date: dt.date
    hours: float
    status: TimeEntryStatus
    task_name: Optional[str] = None
    billable: bool = False
