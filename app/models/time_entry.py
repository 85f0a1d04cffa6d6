"""Time entry model definitions."""
import datetime as dt
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator


class TimeEntryStatus(str, Enum):
    """Time entry lifecycle states."""

    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"


# A start/end value is either a full datetime or a wall-clock time on the
# entry's date.
ClockValue = Union[dt.datetime, dt.time]


class TimeEntryFlags(BaseModel):
    """Boolean flags shared by create and read models."""

    billable: bool = False
    is_billable: bool = False
    is_approved: bool = False
    is_template: bool = False


class TimeEntryCreate(TimeEntryFlags):
    """Manual time entry creation model."""

    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: str = ""
    date: dt.date
    start_time: Optional[ClockValue] = None
    end_time: Optional[ClockValue] = None
    duration: Optional[float] = Field(None, ge=0, le=24)
    hours: Optional[float] = Field(None, ge=0, le=24)
    status: TimeEntryStatus = TimeEntryStatus.DRAFT
    is_manual_entry: Optional[bool] = None
    is_timer_entry: bool = False

    @model_validator(mode="after")
    def check_time_range(self):
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be provided together")
        return self

    @property
    def requested_duration(self) -> Optional[float]:
        """Duration is authoritative over hours when both are given."""
        return self.duration if self.duration is not None else self.hours


class TimeEntryUpdate(BaseModel):
    """Time entry update model - all fields optional."""

    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None
    start_time: Optional[ClockValue] = None
    end_time: Optional[ClockValue] = None
    duration: Optional[float] = Field(None, ge=0, le=24)
    hours: Optional[float] = Field(None, ge=0, le=24)
    status: Optional[TimeEntryStatus] = None
    billable: Optional[bool] = None
    is_billable: Optional[bool] = None
    is_approved: Optional[bool] = None
    is_template: Optional[bool] = None

    @property
    def requested_duration(self) -> Optional[float]:
        return self.duration if self.duration is not None else self.hours


class TimeEntry(TimeEntryFlags):
    """Full time entry model with database fields and display joins."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: str = ""
    date: dt.date
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration: float = 0.0
    hours: float = 0.0
    status: TimeEntryStatus = TimeEntryStatus.DRAFT
    is_manual_entry: bool = True
    is_timer_entry: bool = False
    created_at: dt.datetime
    updated_at: dt.datetime

    # Filled from joins; None when the entry has no project/task
    project_name: Optional[str] = None
    project_color: Optional[str] = None
    project_number: Optional[str] = None
    task_name: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def is_running(self) -> bool:
        return self.status == TimeEntryStatus.RUNNING
