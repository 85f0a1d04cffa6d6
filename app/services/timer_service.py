"""Timer service - business logic for running timers."""
import logging
from datetime import timedelta
from typing import Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.config import settings
from app.errors import ConflictError, NotFoundError, ValidationError, storage_errors
from app.models.time_entry import TimeEntry, TimeEntryStatus
from app.services.time_entry_service import MAX_ENTRY_HOURS, TimeEntryService
from app.utils.hours import as_utc, day_to_datetime, hours_between, local_today, utcnow


log = logging.getLogger(__name__)

# Smallest end - start gap recorded when a stop races a skewed clock
MIN_TIMER_SPAN = timedelta(seconds=1)


class TimerService:
    """Service for starting and stopping timers.

    A user has at most one running entry. The database enforces this with a
    partial unique index on ``user_id`` for ``status == "running"``.
    """

    def __init__(self, db, calendar_timezone: Optional[str] = None):
        """Initialize service with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.calendar_timezone = calendar_timezone or settings.calendar_timezone
        self.entries = TimeEntryService(db, self.calendar_timezone)

    async def _find_running(self, user_id: str) -> Optional[dict]:
        return await self.time_entries.find_one({
            "user_id": user_id,
            "status": TimeEntryStatus.RUNNING.value,
        })

    @storage_errors("timers.start")
    async def start_timer(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        description: str = "",
    ) -> TimeEntry:
        """
        Start a new timer.

        Args:
            user_id: User ID
            project_id: Optional project ID
            task_id: Optional task ID
            description: Optional description

        Returns:
            Created running time entry

        Raises:
            ConflictError: If a timer is already running
            ValidationError: If the project/task cannot be used
        """
        # Check if timer is already running
        if await self._find_running(user_id):
            raise ConflictError("Timer already running")

        project_doc, task_doc = await self.entries.check_project(user_id, project_id, task_id)

        now = utcnow()
        entry_doc = {
            "user_id": user_id,
            "project_id": project_id,
            "task_id": task_id,
            "description": description or "",
            "date": day_to_datetime(local_today(self.calendar_timezone)),
            "start_time": now,
            "end_time": None,
            "duration": 0.0,
            "hours": 0.0,
            "status": TimeEntryStatus.RUNNING.value,
            "billable": False,
            "is_billable": False,
            "is_approved": False,
            "is_manual_entry": False,
            "is_timer_entry": True,
            "is_template": False,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.time_entries.insert_one(entry_doc)
        except DuplicateKeyError:
            # Another request started a timer between the check and the insert
            log.warning("Concurrent timer start rejected for user %s", user_id)
            raise ConflictError("Timer already running")
        entry_doc["_id"] = result.inserted_id

        log.info("Timer %s started for user %s", entry_doc["_id"], user_id)
        return self.entries.doc_to_entry(entry_doc, project=project_doc, task=task_doc)

    @storage_errors("timers.stop")
    async def stop_timer(self, entry_id: str, user_id: str) -> TimeEntry:
        """
        Stop a running timer.

        Args:
            entry_id: Time entry ID of the running timer
            user_id: User ID (must own the entry)

        Returns:
            Stopped time entry with end_time and duration

        Raises:
            NotFoundError: If the entry does not exist or belongs to someone else
            ValidationError: If the entry is not running
        """
        query = self.entries.entry_query(entry_id, user_id)
        running_timer = await self.time_entries.find_one(query)
        if not running_timer:
            raise NotFoundError("Time entry not found")
        if running_timer.get("status") != TimeEntryStatus.RUNNING.value:
            raise ValidationError("Time entry is not running", field="status")

        end_time = utcnow()
        start_time = as_utc(running_timer["start_time"])
        if end_time <= start_time:
            # Start was stamped by a server whose clock runs ahead of ours
            log.warning(
                "Timer %s started at %s, after stop time %s; recording zero duration",
                entry_id, start_time.isoformat(), end_time.isoformat(),
            )
            end_time = start_time + MIN_TIMER_SPAN
        duration = hours_between(start_time, end_time)
        if duration > MAX_ENTRY_HOURS:
            log.warning("Timer %s ran for %.2fh, longer than a manual entry may be", entry_id, duration)

        update_doc = {
            "end_time": end_time,
            "duration": duration,
            "hours": duration,
            "status": TimeEntryStatus.STOPPED.value,
            "updated_at": end_time,
        }

        # Only succeeds if nobody stopped it in the meantime
        updated_doc = await self.time_entries.find_one_and_update(
            {**query, "status": TimeEntryStatus.RUNNING.value},
            {"$set": update_doc},
            return_document=ReturnDocument.AFTER,
        )
        if not updated_doc:
            raise ValidationError("Time entry is not running", field="status")

        log.info("Timer %s stopped for user %s after %.2fh", entry_id, user_id, duration)
        entries = await self.entries.enrich([updated_doc])
        return entries[0]

    @storage_errors("timers.active")
    async def get_active_timer(self, user_id: str) -> Optional[TimeEntry]:
        """
        Get the currently running timer, if any.

        Elapsed time is not stored; clients compute it from start_time.

        Args:
            user_id: User ID

        Returns:
            Running time entry, or None
        """
        running_timer = await self._find_running(user_id)
        if not running_timer:
            return None

        entries = await self.entries.enrich([running_timer])
        return entries[0]

    @storage_errors("timers.switch")
    async def switch_timer(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        description: str = "",
    ) -> tuple[Optional[TimeEntry], TimeEntry]:
        """
        Stop the running timer (if any) and start a new one.

        Args:
            user_id: User ID
            project_id: Optional project ID for the new timer
            task_id: Optional task ID for the new timer
            description: Optional description for the new timer

        Returns:
            Tuple of (stopped entry or None, started entry)
        """
        # Validate the new target first so a bad request leaves the old timer running
        await self.entries.check_project(user_id, project_id, task_id)

        stopped = None
        active = await self.get_active_timer(user_id)
        if active:
            stopped = await self.stop_timer(active.id, user_id)

        started = await self.start_timer(
            user_id=user_id,
            project_id=project_id,
            task_id=task_id,
            description=description,
        )
        return stopped, started
