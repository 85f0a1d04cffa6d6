"""Tests for dashboard aggregation."""
import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from app.errors import ValidationError
from app.services.dashboard_service import (
    DashboardService,
    build_activity,
    build_dashboard_stats,
    build_department_summary,
    build_project_breakdown,
    entry_hours,
    stats_periods,
    sum_hours,
    user_display_name,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def entry(day: date, hours: float, project_id=None, user_id="user-a", status="stopped", **extra):
    doc = {
        "_id": ObjectId(),
        "user_id": user_id,
        "project_id": project_id,
        "date": datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc),
        "hours": hours,
        "duration": hours,
        "status": status,
        "created_at": utc(day.year, day.month, day.day, 18),
    }
    doc.update(extra)
    return doc


class TestEntryHours:
    """Tests for reading hours off an entry."""

    def test_prefers_hours(self):
        assert entry_hours({"hours": 2.0, "duration": 3.0}) == 2.0

    def test_falls_back_to_duration(self):
        assert entry_hours({"duration": 1.25}) == 1.25

    def test_running_counts_zero(self):
        assert entry_hours({"hours": 5.0, "status": "running"}) == 0.0

    def test_missing_counts_zero(self):
        assert entry_hours({}) == 0.0


class TestStatsPeriods:
    """Tests for today/week/month boundaries."""

    def test_periods(self):
        periods = stats_periods(date(2024, 1, 17))

        assert periods["today"] == (date(2024, 1, 17), date(2024, 1, 17))
        assert periods["week"] == (date(2024, 1, 15), date(2024, 1, 21))
        assert periods["month"] == (date(2024, 1, 1), date(2024, 1, 31))

    def test_clipped_by_start_date(self):
        periods = stats_periods(date(2024, 1, 17), not_before=date(2024, 1, 16))

        assert periods["today"] == (date(2024, 1, 17), date(2024, 1, 17))
        assert periods["week"] == (date(2024, 1, 16), date(2024, 1, 21))
        assert periods["month"] == (date(2024, 1, 16), date(2024, 1, 31))

    def test_clipping_can_empty_a_period(self):
        periods = stats_periods(date(2024, 1, 17), not_before=date(2024, 1, 18))

        assert sum_hours([entry(date(2024, 1, 17), 3)], periods["today"]) == 0.0


class TestDashboardStats:
    """Tests for hour totals."""

    def test_no_entries_all_zero(self):
        stats = build_dashboard_stats([], stats_periods(date(2024, 1, 17)))

        assert stats.today_hours == 0
        assert stats.week_hours == 0
        assert stats.month_hours == 0
        assert stats.active_project_count == 0

    def test_sums_per_period(self):
        docs = [
            entry(date(2024, 1, 17), 2.5),
            entry(date(2024, 1, 17), 1.25),
            entry(date(2024, 1, 15), 4),
            entry(date(2024, 1, 3), 8),
            entry(date(2023, 12, 31), 6),
        ]
        stats = build_dashboard_stats(docs, stats_periods(date(2024, 1, 17)), active_project_count=3)

        assert stats.today_hours == 3.75
        assert stats.week_hours == 7.75
        assert stats.month_hours == 15.75
        assert stats.active_project_count == 3

    def test_sum_rounds_to_two_decimals(self):
        docs = [entry(date(2024, 1, 17), 0.1), entry(date(2024, 1, 17), 0.2)]

        assert sum_hours(docs, (date(2024, 1, 17), date(2024, 1, 17))) == 0.3


class TestProjectBreakdown:
    """Tests for per-project grouping."""

    def test_percentages(self):
        """Test 3h on X and 1h on Y split 75/25."""
        docs = [
            entry(date(2024, 1, 15), 2, project_id="x"),
            entry(date(2024, 1, 16), 1, project_id="x"),
            entry(date(2024, 1, 16), 1, project_id="y"),
        ]
        projects = {
            "x": {"_id": "x", "name": "Project X", "color": "#FF0000"},
            "y": {"_id": "y", "name": "Project Y"},
        }

        items = build_project_breakdown(docs, projects)

        assert [item.project.name for item in items] == ["Project X", "Project Y"]
        assert items[0].total_hours == 3
        assert items[0].entry_count == 2
        assert items[0].percentage == 75
        assert items[0].project.color == "#FF0000"
        assert items[1].percentage == 25
        assert items[1].project.color == "#1976D2"

    def test_hours_sum_to_total(self):
        docs = [
            entry(date(2024, 1, 15), 1, project_id="a"),
            entry(date(2024, 1, 15), 1, project_id="b"),
            entry(date(2024, 1, 15), 1, project_id="c"),
        ]

        items = build_project_breakdown(docs, {})

        assert sum(item.total_hours for item in items) == 3
        assert all(item.percentage == 33 for item in items)

    def test_missing_project_uses_sentinel(self):
        items = build_project_breakdown([entry(date(2024, 1, 15), 2, project_id="gone")], {})

        assert items[0].project.id == "gone"
        assert items[0].project.name == "Unknown Project"

    def test_zero_total(self):
        items = build_project_breakdown([entry(date(2024, 1, 15), 0, project_id="a")], {})

        assert items[0].percentage == 0

    def test_empty(self):
        assert build_project_breakdown([], {}) == []


class TestDepartmentSummary:
    """Tests for per-department grouping."""

    def test_groups_by_department(self):
        docs = [
            entry(date(2024, 1, 15), 4, user_id="ada"),
            entry(date(2024, 1, 16), 2, user_id="ada"),
            entry(date(2024, 1, 15), 3, user_id="bob"),
            entry(date(2024, 1, 15), 1, user_id="cy"),
        ]
        users = {
            "ada": {"_id": "ada", "department_id": "eng"},
            "bob": {"_id": "bob", "department_id": "eng"},
            "cy": {"_id": "cy"},
        }
        departments = {"eng": {"_id": "eng", "name": "Engineering"}}

        summary = build_department_summary(docs, users, departments)

        assert summary[0].department_name == "Engineering"
        assert summary[0].total_hours == 9
        assert summary[0].employee_count == 2
        assert summary[0].entry_count == 3
        assert summary[1].department_name == "No Department"
        assert summary[1].total_hours == 1

    def test_deleted_department(self):
        docs = [entry(date(2024, 1, 15), 2, user_id="ada")]
        users = {"ada": {"_id": "ada", "department_id": "removed"}}

        summary = build_department_summary(docs, users, {})

        assert summary[0].department_name == "No Department"


class TestDisplayHelpers:
    """Tests for activity and name helpers."""

    def test_activity_items(self):
        docs = [entry(date(2024, 1, 15), 1.5, project_id="x", task_id="t1", description="Review")]
        projects = {"x": {"_id": "x", "name": "Project X", "color": "#00FF00"}}
        tasks = {"t1": {"_id": "t1", "name": "Code review"}}

        items = build_activity(docs, projects, tasks)

        assert items[0].project_name == "Project X"
        assert items[0].project_color == "#00FF00"
        assert items[0].task_name == "Code review"
        assert items[0].hours == 1.5
        assert items[0].date == date(2024, 1, 15)

    def test_user_display_name(self):
        assert user_display_name("u1", {"first_name": "Ada", "last_name": "Lovelace"}) == "Ada Lovelace"
        assert user_display_name("u1", {"email": "ada@example.com"}) == "ada@example.com"
        assert user_display_name("u1", None) == "u1"


def make_db():
    collections = {
        name: AsyncMock()
        for name in ("time_entries", "projects", "tasks", "users", "departments")
    }
    mock_db = MagicMock()
    mock_db.__getitem__.side_effect = lambda key: collections[key]
    return mock_db, collections


def make_cursor(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.mark.asyncio
class TestDashboardService:
    """Tests for DashboardService queries."""

    async def test_stats_for_new_user(self):
        """Test a user with no entries gets zeros."""
        mock_db, collections = make_db()
        collections["time_entries"].find = MagicMock(return_value=make_cursor([]))
        collections["projects"].count_documents.return_value = 0

        service = DashboardService(mock_db)
        stats = await service.dashboard_stats("user-a", end_date=date(2024, 1, 17))

        assert stats.model_dump() == {
            "today_hours": 0.0,
            "week_hours": 0.0,
            "month_hours": 0.0,
            "active_project_count": 0,
        }
        query = collections["time_entries"].find.call_args[0][0]
        assert query["date"] == {"$gte": utc(2024, 1, 1), "$lte": utc(2024, 1, 31)}
        collections["projects"].count_documents.assert_called_once_with({
            "status": "active",
            "$or": [{"user_id": "user-a"}, {"is_enterprise_wide": True}],
        })

    async def test_stats_reversed_range(self):
        mock_db, _ = make_db()
        service = DashboardService(mock_db)

        with pytest.raises(ValidationError):
            await service.dashboard_stats(
                "user-a", start_date=date(2024, 2, 1), end_date=date(2024, 1, 1)
            )

    async def test_project_breakdown_joins_projects(self):
        mock_db, collections = make_db()
        collections["time_entries"].find = MagicMock(return_value=make_cursor([
            entry(date(2024, 1, 15), 3, project_id="x"),
            entry(date(2024, 1, 15), 1, project_id="y"),
        ]))
        collections["projects"].find = MagicMock(return_value=make_cursor([
            {"_id": "x", "name": "Project X"},
        ]))

        service = DashboardService(mock_db)
        items = await service.project_breakdown("user-a")

        assert [(i.project.name, i.percentage) for i in items] == [
            ("Project X", 75),
            ("Unknown Project", 25),
        ]

    async def test_recent_activity_default_limit(self):
        mock_db, collections = make_db()
        cursor = make_cursor([])
        collections["time_entries"].find = MagicMock(return_value=cursor)

        service = DashboardService(mock_db, recent_activity_limit=10)
        items = await service.recent_activity("user-a")

        assert items == []
        cursor.sort.assert_called_once_with([("date", -1), ("created_at", -1)])
        cursor.limit.assert_called_once_with(10)

    async def test_recent_activity_invalid_limit(self):
        mock_db, _ = make_db()
        service = DashboardService(mock_db)

        with pytest.raises(ValidationError):
            await service.recent_activity("user-a", limit=0)

    async def test_department_hours_without_organization(self):
        """Test callers without an organization only see their own hours."""
        mock_db, collections = make_db()
        collections["users"].find_one.return_value = {"_id": "user-a"}
        collections["time_entries"].find = MagicMock(return_value=make_cursor([
            entry(date(2024, 1, 15), 2),
        ]))

        service = DashboardService(mock_db)
        summary = await service.department_hours_summary("user-a")

        query = collections["time_entries"].find.call_args[0][0]
        assert query == {"user_id": {"$in": ["user-a"]}}
        assert summary[0].department_name == "No Department"
        assert summary[0].employee_count == 1

    async def test_department_hours_for_organization(self):
        mock_db, collections = make_db()
        collections["users"].find_one.return_value = {"_id": "ada", "organization_id": "org-1"}
        collections["users"].find = MagicMock(return_value=make_cursor([
            {"_id": "ada", "organization_id": "org-1", "department_id": "eng"},
            {"_id": "bob", "organization_id": "org-1", "department_id": "ops"},
        ]))
        collections["departments"].find = MagicMock(return_value=make_cursor([
            {"_id": "eng", "name": "Engineering"},
            {"_id": "ops", "name": "Operations"},
        ]))
        collections["time_entries"].find = MagicMock(return_value=make_cursor([
            entry(date(2024, 1, 15), 2, user_id="ada"),
            entry(date(2024, 1, 15), 5, user_id="bob"),
        ]))

        service = DashboardService(mock_db)
        summary = await service.department_hours_summary("ada")

        assert [(s.department_name, s.total_hours) for s in summary] == [
            ("Operations", 5),
            ("Engineering", 2),
        ]

    async def test_project_time_entries(self):
        mock_db, collections = make_db()
        collections["time_entries"].find = MagicMock(return_value=make_cursor([
            entry(date(2024, 1, 15), 2, project_id="x", user_id="ada", billable=True),
        ]))
        collections["users"].find = MagicMock(return_value=make_cursor([
            {"_id": "ada", "first_name": "Ada", "last_name": "Lovelace"},
        ]))

        service = DashboardService(mock_db)
        rows = await service.project_time_entries("x", start_date=date(2024, 1, 1))

        assert rows[0].user_name == "Ada Lovelace"
        assert rows[0].hours == 2
        assert rows[0].billable is True
        query = collections["time_entries"].find.call_args[0][0]
        assert query == {"project_id": "x", "date": {"$gte": utc(2024, 1, 1)}}
