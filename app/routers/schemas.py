"""Request and response schemas for the HTTP API.

The API speaks camelCase JSON; service models stay snake_case. Every schema
accepts both spellings on input and emits camelCase.
"""
import datetime as dt
from typing import Optional, TypeVar

from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as ModelValidationError
from pydantic.alias_generators import to_camel

from app.models.permissions import Permissions
from app.models.time_entry import ClockValue, TimeEntryStatus
from app.models.user import UserRole


ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def to_service_model(model_cls: type[ModelT], body: BaseModel) -> ModelT:
    """
    Convert a request schema into the service model.

    Cross-field checks of the service model fail the same way as field
    checks of the request itself.

    Args:
        model_cls: Service model class, e.g. TimeEntryCreate
        body: Parsed request body

    Returns:
        Service model instance (only fields the client sent are set)

    Raises:
        RequestValidationError: If the service model rejects the data
    """
    try:
        return model_cls.model_validate(body.model_dump(exclude_unset=True))
    except ModelValidationError as e:
        raise RequestValidationError(
            [{"loc": ("body", *err["loc"]), "msg": err["msg"], "type": err["type"]} for err in e.errors()]
        )


def to_response(schema_cls: type[ModelT], model: BaseModel) -> ModelT:
    return schema_cls.model_validate(model.model_dump())


# Time entries

class TimeEntryCreateRequest(CamelModel):
    """Body of POST /time-entries."""

    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: str = ""
    date: dt.date
    start_time: Optional[ClockValue] = None
    end_time: Optional[ClockValue] = None
    duration: Optional[float] = Field(None, ge=0, le=24)
    hours: Optional[float] = Field(None, ge=0, le=24)
    status: TimeEntryStatus = TimeEntryStatus.DRAFT
    billable: bool = False
    is_billable: bool = False
    is_approved: bool = False
    is_template: bool = False
    is_manual_entry: Optional[bool] = None
    is_timer_entry: bool = False


class TimeEntryUpdateRequest(CamelModel):
    """Body of PUT /time-entries/{id}; omitted fields stay unchanged."""

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


class TimerStartRequest(CamelModel):
    """Body of POST /time-entries/start and /time-entries/switch."""

    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: str = ""


class TimeEntryResponse(CamelModel):
    id: str
    user_id: str
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: str = ""
    date: dt.date
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration: float
    hours: float
    status: TimeEntryStatus
    billable: bool
    is_billable: bool
    is_approved: bool
    is_manual_entry: bool
    is_timer_entry: bool
    is_template: bool
    created_at: dt.datetime
    updated_at: dt.datetime
    project_name: Optional[str] = None
    project_color: Optional[str] = None
    project_number: Optional[str] = None
    task_name: Optional[str] = None


class TimerSwitchResponse(CamelModel):
    stopped: Optional[TimeEntryResponse] = None
    started: TimeEntryResponse


# Dashboard and reports

class DashboardStatsResponse(CamelModel):
    today_hours: float
    week_hours: float
    month_hours: float
    active_project_count: int


class ProjectRefResponse(CamelModel):
    id: Optional[str] = None
    name: str
    color: str
    project_number: Optional[str] = None


class ProjectBreakdownResponse(CamelModel):
    project: ProjectRefResponse
    total_hours: float
    entry_count: int
    percentage: int


class ActivityResponse(CamelModel):
    id: str
    description: str
    date: dt.date
    hours: float
    status: TimeEntryStatus
    project_id: Optional[str] = None
    project_name: str
    project_color: str
    task_name: Optional[str] = None
    created_at: dt.datetime


class DepartmentHoursResponse(CamelModel):
    department_name: str
    total_hours: float
    employee_count: int
    entry_count: int


class ProjectTimeEntryResponse(CamelModel):
    id: str
    user_id: str
    user_name: str
    description: str
    date: dt.date
    hours: float
    status: TimeEntryStatus
    task_name: Optional[str] = None
    billable: bool


# Users

class UserResponse(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    role: UserRole
    organization_id: Optional[str] = None
    department_id: Optional[str] = None
    is_active: bool


# Same flags as Permissions, emitted as canCreateProjects etc.
PermissionsResponse = create_model(
    "PermissionsResponse",
    __base__=CamelModel,
    **{name: (bool, False) for name in Permissions.model_fields},
)


class RoleInfoResponse(CamelModel):
    role: UserRole
    permissions: PermissionsResponse
