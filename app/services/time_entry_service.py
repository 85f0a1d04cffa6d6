"""Time entry service - storage and invariants for time entries."""
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError as ModelValidationError
from pymongo import ReturnDocument

from app.config import settings
from app.errors import ConflictError, NotFoundError, StorageError, ValidationError, storage_errors
from app.models.project import Project, ProjectRef
from app.models.time_entry import (
    ClockValue,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryStatus,
    TimeEntryUpdate,
)
from app.utils.hours import (
    ROUNDING_TOLERANCE,
    as_utc,
    at_wall_clock,
    datetime_to_day,
    day_to_datetime,
    hours_between,
    round_hours,
    utcnow,
)


log = logging.getLogger(__name__)

# Manual entries given only a duration are displayed as starting here
MANUAL_ENTRY_START = time(9, 0)
MAX_ENTRY_HOURS = 24

# Patch fields where an explicit null clears the stored value
CLEARABLE_FIELDS = {"project_id", "task_id", "start_time", "end_time"}
COPIED_FIELDS = (
    "description",
    "billable",
    "is_billable",
    "is_approved",
    "is_template",
    "project_id",
    "task_id",
)


def check_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    """Raise ValidationError when the range is reversed."""
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must not be after end_date", field="start_date")


def date_range_query(start_date: Optional[date], end_date: Optional[date]) -> dict:
    """Build a Mongo filter on the ``date`` field for an inclusive day range."""
    check_date_range(start_date, end_date)
    condition = {}
    if start_date:
        condition["$gte"] = day_to_datetime(start_date)
    if end_date:
        condition["$lte"] = day_to_datetime(end_date)
    return {"date": condition} if condition else {}


class TimeEntryService:
    """Service for creating, reading, updating and deleting time entries."""

    def __init__(self, db, calendar_timezone: Optional[str] = None):
        """Initialize service with database connection."""
        self.db = db
        self.calendar_timezone = calendar_timezone or settings.calendar_timezone
        self.time_entries = db["time_entries"]
        self.projects = db["projects"]
        self.tasks = db["tasks"]

    def doc_to_entry(
        self,
        doc: dict,
        project: Optional[dict] = None,
        task: Optional[dict] = None,
    ) -> TimeEntry:
        """
        Convert database document to TimeEntry model.

        Project and task documents, when given, fill the display fields.
        An entry whose project no longer exists gets the sentinel name.
        """
        duration = doc.get("duration")
        if duration is None:
            duration = doc.get("hours") or 0.0

        project_fields = {}
        if doc.get("project_id"):
            ref = ProjectRef.from_doc(doc["project_id"], project)
            project_fields = {
                "project_name": ref.name,
                "project_color": ref.color,
                "project_number": ref.project_number,
            }

        return TimeEntry(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            project_id=doc.get("project_id"),
            task_id=doc.get("task_id"),
            description=doc.get("description") or "",
            date=datetime_to_day(doc["date"]),
            start_time=doc.get("start_time"),
            end_time=doc.get("end_time"),
            duration=duration,
            hours=duration,
            status=doc.get("status", TimeEntryStatus.DRAFT.value),
            billable=doc.get("billable", False),
            is_billable=doc.get("is_billable", False),
            is_approved=doc.get("is_approved", False),
            is_manual_entry=doc.get("is_manual_entry", True),
            is_timer_entry=doc.get("is_timer_entry", False),
            is_template=doc.get("is_template", False),
            created_at=doc["created_at"],
            updated_at=doc.get("updated_at", doc["created_at"]),
            task_name=(task.get("name") or task.get("title")) if task else None,
            **project_fields,
        )

    def entry_query(self, entry_id: str, user_id: Optional[str] = None) -> dict:
        """
        Build the lookup filter for one entry.

        Malformed ids are reported exactly like missing ones.
        """
        try:
            object_id = ObjectId(entry_id)
        except (InvalidId, TypeError):
            raise NotFoundError("Time entry not found")

        query = {"_id": object_id}
        if user_id is not None:
            query["user_id"] = user_id
        return query

    async def _load_joins(self, docs: list[dict]) -> tuple[dict, dict]:
        """Fetch the projects and tasks referenced by a batch of entries."""
        project_ids = list({doc["project_id"] for doc in docs if doc.get("project_id")})
        task_ids = list({doc["task_id"] for doc in docs if doc.get("task_id")})

        projects = {}
        if project_ids:
            cursor = self.projects.find({"_id": {"$in": project_ids}})
            projects = {p["_id"]: p for p in await cursor.to_list(length=None)}

        tasks = {}
        if task_ids:
            cursor = self.tasks.find({"_id": {"$in": task_ids}})
            tasks = {t["_id"]: t for t in await cursor.to_list(length=None)}

        return projects, tasks

    async def enrich(self, docs: list[dict]) -> list[TimeEntry]:
        projects, tasks = await self._load_joins(docs)
        return [
            self.doc_to_entry(
                doc,
                project=projects.get(doc.get("project_id")),
                task=tasks.get(doc.get("task_id")),
            )
            for doc in docs
        ]

    async def check_project(
        self,
        user_id: str,
        project_id: Optional[str],
        task_id: Optional[str],
    ) -> tuple[Optional[dict], Optional[dict]]:
        """
        Validate that time may be logged against a project/task.

        Args:
            user_id: User logging the time
            project_id: Optional project ID
            task_id: Optional task ID

        Returns:
            Tuple of (project document, task document), either may be None

        Raises:
            ValidationError: If the project/task is missing, inaccessible,
                closed for time tracking, or a required task is absent
        """
        if not project_id:
            if task_id:
                raise ValidationError("task_id requires a project_id", field="task_id")
            return None, None

        project_doc = await self.projects.find_one({"_id": project_id})
        if not project_doc:
            raise ValidationError("Project not found", field="project_id")

        try:
            project = Project.model_validate(project_doc)
        except ModelValidationError as e:
            log.error("Malformed project document %s: %s", project_id, e)
            raise StorageError("Project record is malformed") from e

        if not project.is_accessible_by(user_id):
            raise ValidationError("Project not found", field="project_id")
        if not project.allow_time_tracking:
            raise ValidationError("Time tracking is disabled for this project", field="project_id")
        if project.require_task_selection and not task_id:
            raise ValidationError("A task is required for this project", field="task_id")

        task_doc = None
        if task_id:
            task_doc = await self.tasks.find_one({"_id": task_id, "project_id": project_id})
            if not task_doc:
                raise ValidationError("Task not found", field="task_id")

        return project_doc, task_doc

    def _to_datetime(self, value: Optional[ClockValue], day: date) -> Optional[datetime]:
        if value is None:
            return None
        if isinstance(value, datetime):
            return as_utc(value)
        return at_wall_clock(day, value, self.calendar_timezone)

    def _resolve_times(
        self,
        day: date,
        start_time: Optional[datetime],
        end_time: Optional[datetime],
        duration: Optional[float],
        default_start: Optional[datetime] = None,
    ) -> tuple[Optional[datetime], Optional[datetime], float]:
        """
        Reconcile start/end times with a duration.

        - start and end: duration is derived; an explicit duration must agree
        - duration only: a start/end pair is synthesized for display
        - neither: invalid

        Args:
            day: Calendar day of the entry
            start_time: Start time, already normalized to UTC
            end_time: End time, already normalized to UTC
            duration: Requested duration in hours
            default_start: Start used when synthesizing (defaults to 09:00)

        Returns:
            Tuple of (start_time, end_time, duration)

        Raises:
            ValidationError: If the values are inconsistent or missing
        """
        if start_time is not None and end_time is not None:
            if end_time <= start_time:
                raise ValidationError("end_time must be after start_time", field="end_time")
            derived = hours_between(start_time, end_time)
            if derived > MAX_ENTRY_HOURS:
                raise ValidationError(
                    f"Time entries cannot exceed {MAX_ENTRY_HOURS} hours",
                    field="end_time",
                )
            if duration is None:
                return start_time, end_time, derived
            if abs(round_hours(duration) - derived) > ROUNDING_TOLERANCE:
                raise ValidationError(
                    "duration does not match start_time and end_time",
                    field="duration",
                )
            return start_time, end_time, round_hours(duration)

        if start_time is not None or end_time is not None:
            raise ValidationError(
                "start_time and end_time must be provided together",
                field="start_time" if start_time is None else "end_time",
            )

        if duration is None:
            raise ValidationError(
                "Either duration or start_time and end_time is required",
                field="duration",
            )

        duration = round_hours(duration)
        if duration == 0:
            return None, None, 0.0

        start = default_start or at_wall_clock(day, MANUAL_ENTRY_START, self.calendar_timezone)
        return start, start + timedelta(hours=duration), duration

    @storage_errors("time_entries.create")
    async def create(
        self,
        user_id: str,
        entry_create: TimeEntryCreate,
    ) -> TimeEntry:
        """
        Create a manual time entry.

        Args:
            user_id: User ID who owns the entry
            entry_create: Time entry creation data

        Returns:
            Created time entry

        Raises:
            ValidationError: If required data is missing or inconsistent
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")
        if entry_create.status == TimeEntryStatus.RUNNING:
            raise ValidationError("Start a timer to create a running entry", field="status")

        project_doc, task_doc = await self.check_project(
            user_id, entry_create.project_id, entry_create.task_id
        )

        start_time, end_time, duration = self._resolve_times(
            entry_create.date,
            self._to_datetime(entry_create.start_time, entry_create.date),
            self._to_datetime(entry_create.end_time, entry_create.date),
            entry_create.requested_duration,
        )

        is_manual_entry = entry_create.is_manual_entry
        if is_manual_entry is None:
            is_manual_entry = not entry_create.is_timer_entry

        now = utcnow()
        entry_doc = {
            "user_id": user_id,
            "project_id": entry_create.project_id,
            "task_id": entry_create.task_id,
            "description": entry_create.description,
            "date": day_to_datetime(entry_create.date),
            "start_time": start_time,
            "end_time": end_time,
            "duration": duration,
            "hours": duration,
            "status": entry_create.status.value,
            "billable": entry_create.billable,
            "is_billable": entry_create.is_billable,
            "is_approved": entry_create.is_approved,
            "is_manual_entry": is_manual_entry,
            "is_timer_entry": entry_create.is_timer_entry,
            "is_template": entry_create.is_template,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.time_entries.insert_one(entry_doc)
        entry_doc["_id"] = result.inserted_id

        return self.doc_to_entry(entry_doc, project=project_doc, task=task_doc)

    @storage_errors("time_entries.get")
    async def get(self, entry_id: str, user_id: Optional[str] = None) -> TimeEntry:
        """
        Get a time entry by ID.

        Args:
            entry_id: Time entry ID
            user_id: When given, only an entry owned by this user is returned

        Returns:
            Time entry with project/task display fields

        Raises:
            NotFoundError: If no entry matches (including someone else's entry)
        """
        doc = await self.time_entries.find_one(self.entry_query(entry_id, user_id))
        if not doc:
            raise NotFoundError("Time entry not found")

        entries = await self.enrich([doc])
        return entries[0]

    @storage_errors("time_entries.list")
    async def list_entries(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[TimeEntry]:
        """
        List time entries for a user with optional filtering.

        Args:
            user_id: User ID
            project_id: Optional project filter
            start_date: Optional first day (inclusive)
            end_date: Optional last day (inclusive)
            limit: Optional maximum number of entries
            offset: Optional number of entries to skip

        Returns:
            Entries sorted by date, then creation time, newest first
        """
        if (limit is not None and limit < 0) or (offset is not None and offset < 0):
            raise ValidationError("limit and offset must not be negative", field="limit")

        query = {"user_id": user_id}
        if project_id:
            query["project_id"] = project_id
        query.update(date_range_query(start_date, end_date))

        cursor = self.time_entries.find(query).sort([("date", -1), ("created_at", -1)])
        if offset:
            cursor = cursor.skip(offset)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=None)

        return await self.enrich(docs)

    def _recalculate_times(
        self,
        existing: dict,
        changes: dict,
        day: date,
        requested_duration: Optional[float],
    ) -> tuple[Optional[datetime], Optional[datetime], float]:
        """Work out start, end and duration after a patch."""
        start = existing.get("start_time")
        end = existing.get("end_time")
        start = as_utc(start) if start else None
        end = as_utc(end) if end else None

        # Moving the entry to another day keeps its wall-clock times
        old_day = datetime_to_day(existing["date"])
        if day != old_day:
            shift = timedelta(days=(day - old_day).days)
            start = start + shift if start else None
            end = end + shift if end else None

        if "start_time" in changes or "end_time" in changes:
            if "start_time" in changes:
                start = self._to_datetime(changes["start_time"], day)
            if "end_time" in changes:
                end = self._to_datetime(changes["end_time"], day)
            if start is None and end is None:
                duration = requested_duration
                if duration is None:
                    duration = existing.get("duration") or 0.0
                return None, None, round_hours(duration)
            return self._resolve_times(day, start, end, requested_duration)

        if requested_duration is not None:
            return self._resolve_times(day, None, None, requested_duration, default_start=start)

        duration = existing.get("duration")
        if duration is None:
            duration = existing.get("hours") or 0.0
        return start, end, duration

    @storage_errors("time_entries.update")
    async def update(
        self,
        entry_id: str,
        entry_update: TimeEntryUpdate,
        user_id: Optional[str] = None,
    ) -> TimeEntry:
        """
        Update a time entry.

        Only fields present in the patch change. Duration is recomputed when
        the times change, and all invariants are checked again.

        Args:
            entry_id: Time entry ID
            entry_update: Update data
            user_id: When given, only an entry owned by this user is updated

        Returns:
            Updated time entry

        Raises:
            NotFoundError: If entry not found
            ValidationError: If the patch breaks an invariant
            ConflictError: If the patch would change a running timer, or the
                entry's status changed while the patch was being applied
        """
        query = self.entry_query(entry_id, user_id)
        existing = await self.time_entries.find_one(query)
        if not existing:
            raise NotFoundError("Time entry not found")

        changes = entry_update.model_dump(exclude_unset=True)
        changes = {
            key: value
            for key, value in changes.items()
            if value is not None or key in CLEARABLE_FIELDS
        }

        running = existing.get("status") == TimeEntryStatus.RUNNING.value
        if "status" in changes:
            new_status = TimeEntryStatus(changes["status"])
            if new_status == TimeEntryStatus.RUNNING and not running:
                raise ValidationError("Start a timer to create a running entry", field="status")
            if running and new_status != TimeEntryStatus.RUNNING:
                raise ConflictError("Time entry is running; stop the timer instead")
            changes["status"] = new_status.value

        time_fields = {"start_time", "end_time", "duration", "hours", "date"}
        if running and (changes.keys() - {"start_time"}) & time_fields:
            raise ConflictError("Cannot change the duration of a running time entry")

        if "project_id" in changes or "task_id" in changes:
            await self.check_project(
                existing["user_id"],
                changes.get("project_id", existing.get("project_id")),
                changes.get("task_id", existing.get("task_id")),
            )

        day = changes.get("date") or datetime_to_day(existing["date"])
        update_doc = {}

        if running and "start_time" in changes:
            start = self._to_datetime(changes["start_time"], day)
            if start is None or start > utcnow():
                raise ValidationError("A running timer needs a start_time in the past", field="start_time")
            update_doc["start_time"] = start
        elif changes.keys() & time_fields:
            start, end, duration = self._recalculate_times(
                existing, changes, day, entry_update.requested_duration
            )
            update_doc.update(
                start_time=start,
                end_time=end,
                duration=duration,
                hours=duration,
                date=day_to_datetime(day),
            )

        for key in COPIED_FIELDS:
            if key in changes:
                update_doc[key] = changes[key]
        if "status" in changes:
            update_doc["status"] = changes["status"]

        update_doc["updated_at"] = utcnow()

        # Only applies if the entry kept the status the patch was checked against
        updated_doc = await self.time_entries.find_one_and_update(
            {**query, "status": existing.get("status")},
            {"$set": update_doc},
            return_document=ReturnDocument.AFTER,
        )
        if not updated_doc:
            if await self.time_entries.find_one(query):
                log.warning("Time entry %s changed during update", entry_id)
                raise ConflictError("Time entry was modified concurrently; retry the update")
            raise NotFoundError("Time entry not found")

        entries = await self.enrich([updated_doc])
        return entries[0]

    @storage_errors("time_entries.delete")
    async def delete(self, entry_id: str, user_id: Optional[str] = None) -> bool:
        """
        Delete a time entry.

        Args:
            entry_id: Time entry ID
            user_id: When given, only an entry owned by this user is deleted

        Returns:
            True if an entry was removed
        """
        try:
            query = self.entry_query(entry_id, user_id)
        except NotFoundError:
            return False

        # Hard delete (permanent)
        result = await self.time_entries.delete_one(query)
        return result.deleted_count > 0
