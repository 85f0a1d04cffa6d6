"""Dashboard service - read-only aggregates over time entries.

The aggregation math lives in module-level functions that work on plain
documents; ``DashboardService`` only fetches the documents. Aggregates never
fail for lack of data: empty inputs produce zeros and empty lists.
"""
import logging
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from app.config import settings
from app.errors import ValidationError, storage_errors
from app.models.dashboard import (
    NO_DEPARTMENT_NAME,
    ActivityItem,
    DashboardStats,
    DepartmentHours,
    ProjectBreakdownItem,
    ProjectTimeEntry,
)
from app.models.project import ProjectRef, ProjectStatus
from app.models.time_entry import TimeEntryStatus
from app.services.time_entry_service import check_date_range, date_range_query
from app.utils.hours import (
    datetime_to_day,
    day_to_datetime,
    local_today,
    month_bounds,
    round_hours,
    round_percentage,
    week_bounds,
)


log = logging.getLogger(__name__)

Period = tuple[date, date]

NEWEST_FIRST = [("date", -1), ("created_at", -1)]


def entry_hours(doc: dict) -> float:
    """Hours recorded on an entry document; running timers count as zero."""
    if doc.get("status") == TimeEntryStatus.RUNNING.value:
        return 0.0
    value = doc.get("hours")
    if value is None:
        value = doc.get("duration")
    return float(value or 0.0)


def stats_periods(reference: date, not_before: Optional[date] = None) -> dict[str, Period]:
    """
    Today, this week (Monday start) and this month around a reference day.

    Args:
        reference: Day treated as "today"
        not_before: Optional lower bound each period is clipped to

    Returns:
        Mapping of period name to inclusive (start, end) days
    """
    periods = {
        "today": (reference, reference),
        "week": week_bounds(reference),
        "month": month_bounds(reference),
    }
    if not_before:
        periods = {
            name: (max(start, not_before), end)
            for name, (start, end) in periods.items()
        }
    return periods


def sum_hours(docs: Iterable[dict], period: Period) -> float:
    """Sum the hours of entries whose date falls inside the period."""
    start, end = period
    if start > end:
        return 0.0
    total = sum(
        entry_hours(doc)
        for doc in docs
        if start <= datetime_to_day(doc["date"]) <= end
    )
    return round_hours(total)


def build_dashboard_stats(
    docs: list[dict],
    periods: dict[str, Period],
    active_project_count: int = 0,
) -> DashboardStats:
    return DashboardStats(
        today_hours=sum_hours(docs, periods["today"]),
        week_hours=sum_hours(docs, periods["week"]),
        month_hours=sum_hours(docs, periods["month"]),
        active_project_count=active_project_count,
    )


def build_project_breakdown(
    docs: list[dict],
    projects: dict[str, dict],
) -> list[ProjectBreakdownItem]:
    """
    Group entries by project with hour totals and share of the grand total.

    Percentages are rounded individually, so they may not add up to
    exactly 100.

    Args:
        docs: Time entry documents
        projects: Project documents by ID (missing ones get the sentinel name)

    Returns:
        Breakdown items sorted by total hours, largest first
    """
    hours_by_project: dict[Optional[str], float] = defaultdict(float)
    counts: dict[Optional[str], int] = defaultdict(int)
    for doc in docs:
        project_id = doc.get("project_id")
        hours_by_project[project_id] += entry_hours(doc)
        counts[project_id] += 1

    grand_total = sum(hours_by_project.values())

    items = []
    for project_id, hours in hours_by_project.items():
        percentage = round_percentage(100 * hours / grand_total) if grand_total > 0 else 0
        items.append(ProjectBreakdownItem(
            project=ProjectRef.from_doc(project_id, projects.get(project_id)),
            total_hours=round_hours(hours),
            entry_count=counts[project_id],
            percentage=percentage,
        ))

    items.sort(key=lambda item: item.total_hours, reverse=True)
    return items


def build_activity(
    docs: list[dict],
    projects: dict[str, dict],
    tasks: dict[str, dict],
) -> list[ActivityItem]:
    items = []
    for doc in docs:
        ref = ProjectRef.from_doc(doc.get("project_id"), projects.get(doc.get("project_id")))
        task = tasks.get(doc.get("task_id"))
        items.append(ActivityItem(
            id=str(doc["_id"]),
            description=doc.get("description") or "",
            date=datetime_to_day(doc["date"]),
            hours=round_hours(entry_hours(doc)),
            status=doc.get("status", TimeEntryStatus.DRAFT.value),
            project_id=doc.get("project_id"),
            project_name=ref.name,
            project_color=ref.color,
            task_name=(task.get("name") or task.get("title")) if task else None,
            created_at=doc["created_at"],
        ))
    return items


def department_name_for(user: Optional[dict], departments: dict[str, dict]) -> str:
    """
    Resolve the department bucket of a user.

    Users without a department, or whose department no longer exists, go
    to the "No Department" bucket.
    """
    if not user:
        return NO_DEPARTMENT_NAME
    department = departments.get(user.get("department_id"))
    if department and department.get("name"):
        return department["name"]
    # Older user records carry the department name directly
    return user.get("department") or NO_DEPARTMENT_NAME


def build_department_summary(
    docs: list[dict],
    users: dict[str, dict],
    departments: dict[str, dict],
) -> list[DepartmentHours]:
    hours: dict[str, float] = defaultdict(float)
    entry_counts: dict[str, int] = defaultdict(int)
    employees: dict[str, set] = defaultdict(set)

    for doc in docs:
        name = department_name_for(users.get(doc["user_id"]), departments)
        hours[name] += entry_hours(doc)
        entry_counts[name] += 1
        employees[name].add(doc["user_id"])

    summary = [
        DepartmentHours(
            department_name=name,
            total_hours=round_hours(total),
            employee_count=len(employees[name]),
            entry_count=entry_counts[name],
        )
        for name, total in hours.items()
    ]
    summary.sort(key=lambda item: (-item.total_hours, item.department_name))
    return summary


def user_display_name(user_id: str, user: Optional[dict]) -> str:
    if not user:
        return user_id
    name = " ".join(part for part in (user.get("first_name"), user.get("last_name")) if part)
    return name or user.get("email") or user_id


class DashboardService:
    """Service computing dashboard statistics for a user."""

    def __init__(
        self,
        db,
        calendar_timezone: Optional[str] = None,
        recent_activity_limit: Optional[int] = None,
    ):
        """Initialize service with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.projects = db["projects"]
        self.tasks = db["tasks"]
        self.users = db["users"]
        self.departments = db["departments"]
        self.calendar_timezone = calendar_timezone or settings.calendar_timezone
        self.recent_activity_limit = recent_activity_limit or settings.recent_activity_limit

    async def _find(self, collection, query: dict, sort=None, limit: Optional[int] = None) -> list[dict]:
        cursor = collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def _by_id(self, collection, ids: Iterable[Optional[str]]) -> dict[str, dict]:
        """Fetch documents by ID; IDs that do not resolve are simply absent."""
        wanted = list({i for i in ids if i})
        if not wanted:
            return {}
        docs = await self._find(collection, {"_id": {"$in": wanted}})
        return {doc["_id"]: doc for doc in docs}

    @storage_errors("dashboard.stats")
    async def dashboard_stats(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> DashboardStats:
        """
        Get today/week/month hour totals and the active project count.

        Args:
            user_id: User ID
            start_date: Optional lower bound for every period
            end_date: Optional day treated as "today" (defaults to today)

        Returns:
            Dashboard statistics; zeros when the user has no entries
        """
        check_date_range(start_date, end_date)
        reference = end_date or local_today(self.calendar_timezone)
        periods = stats_periods(reference, start_date)

        earliest = min(start for start, _ in periods.values())
        latest = max(end for _, end in periods.values())
        docs = await self._find(self.time_entries, {
            "user_id": user_id,
            "date": {"$gte": day_to_datetime(earliest), "$lte": day_to_datetime(latest)},
        })

        active_project_count = await self.projects.count_documents({
            "status": ProjectStatus.ACTIVE.value,
            "$or": [{"user_id": user_id}, {"is_enterprise_wide": True}],
        })

        return build_dashboard_stats(docs, periods, active_project_count)

    @storage_errors("dashboard.project_breakdown")
    async def project_breakdown(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ProjectBreakdownItem]:
        """
        Get hours per project with each project's share of the total.

        Args:
            user_id: User ID
            start_date: Optional first day (inclusive)
            end_date: Optional last day (inclusive)

        Returns:
            Breakdown sorted by hours, largest first
        """
        query = {"user_id": user_id, **date_range_query(start_date, end_date)}
        docs = await self._find(self.time_entries, query)
        projects = await self._by_id(self.projects, (doc.get("project_id") for doc in docs))
        return build_project_breakdown(docs, projects)

    @storage_errors("dashboard.recent_activity")
    async def recent_activity(
        self,
        user_id: str,
        limit: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ActivityItem]:
        """
        Get the user's most recent time entries with project display fields.

        Args:
            user_id: User ID
            limit: Maximum number of items (defaults to the configured limit)
            start_date: Optional first day (inclusive)
            end_date: Optional last day (inclusive)

        Returns:
            Activity items, newest first
        """
        if limit is not None and limit < 1:
            raise ValidationError("limit must be at least 1", field="limit")

        query = {"user_id": user_id, **date_range_query(start_date, end_date)}
        docs = await self._find(
            self.time_entries,
            query,
            sort=NEWEST_FIRST,
            limit=limit or self.recent_activity_limit,
        )
        projects = await self._by_id(self.projects, (doc.get("project_id") for doc in docs))
        tasks = await self._by_id(self.tasks, (doc.get("task_id") for doc in docs))
        return build_activity(docs, projects, tasks)

    @storage_errors("dashboard.department_hours")
    async def department_hours_summary(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[DepartmentHours]:
        """
        Get hours per department across the caller's organization.

        Callers without an organization only see their own hours.

        Args:
            user_id: User ID of the caller
            start_date: Optional first day (inclusive)
            end_date: Optional last day (inclusive)

        Returns:
            Department summaries sorted by hours, largest first
        """
        range_query = date_range_query(start_date, end_date)

        caller = await self.users.find_one({"_id": user_id})
        organization_id = caller.get("organization_id") if caller else None

        if organization_id:
            members = await self._find(self.users, {"organization_id": organization_id})
            users = {member["_id"]: member for member in members}
        else:
            users = {user_id: caller} if caller else {}
        user_ids = list(users) or [user_id]

        docs = await self._find(self.time_entries, {"user_id": {"$in": user_ids}, **range_query})
        departments = await self._by_id(
            self.departments,
            (user.get("department_id") for user in users.values()),
        )
        return build_department_summary(docs, users, departments)

    @storage_errors("reports.project_time_entries")
    async def project_time_entries(
        self,
        project_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ProjectTimeEntry]:
        """
        Get every user's time entries on a project, for reporting.

        Args:
            project_id: Project ID
            start_date: Optional first day (inclusive)
            end_date: Optional last day (inclusive)

        Returns:
            Report rows, newest first
        """
        query = {"project_id": project_id, **date_range_query(start_date, end_date)}
        docs = await self._find(self.time_entries, query, sort=NEWEST_FIRST)
        users = await self._by_id(self.users, (doc["user_id"] for doc in docs))
        tasks = await self._by_id(self.tasks, (doc.get("task_id") for doc in docs))

        rows = []
        for doc in docs:
            task = tasks.get(doc.get("task_id"))
            rows.append(ProjectTimeEntry(
                id=str(doc["_id"]),
                user_id=doc["user_id"],
                user_name=user_display_name(doc["user_id"], users.get(doc["user_id"])),
                description=doc.get("description") or "",
                date=datetime_to_day(doc["date"]),
                hours=round_hours(entry_hours(doc)),
                status=doc.get("status", TimeEntryStatus.DRAFT.value),
                task_name=(task.get("name") or task.get("title")) if task else None,
                billable=bool(doc.get("billable") or doc.get("is_billable")),
            ))
        return rows
