"""Integration tests for dashboard, report and user endpoints."""
import pytest


USERS = [
    {"_id": "ada", "first_name": "Ada", "last_name": "Lovelace", "role": "employee",
     "organization_id": "org-1", "department_id": "eng"},
    {"_id": "bob", "first_name": "Bob", "role": "employee",
     "organization_id": "org-1", "department_id": "ops"},
    {"_id": "cy", "first_name": "Cy", "role": "project_manager", "organization_id": "org-1"},
    {"_id": "outsider", "role": "employee", "organization_id": "org-2", "department_id": "eng"},
]
DEPARTMENTS = [
    {"_id": "eng", "name": "Engineering", "organization_id": "org-1"},
    {"_id": "ops", "name": "Operations", "organization_id": "org-1"},
]
PROJECTS = [
    {"_id": "x", "name": "Project X", "user_id": "ada", "status": "active", "color": "#FF0000"},
    {"_id": "y", "name": "Project Y", "user_id": "ada", "status": "active"},
    {"_id": "old", "name": "Old", "user_id": "ada", "status": "archived"},
    {"_id": "shared", "name": "Shared", "user_id": "cy", "status": "active", "is_enterprise_wide": True},
]


async def log_hours(client, headers, day, hours, project_id=None):
    body = {"date": day, "duration": hours}
    if project_id:
        body["projectId"] = project_id
    response = await client.post("/time-entries", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
class TestDashboardStats:
    """Tests for GET /dashboard/stats."""

    async def test_new_user_gets_zeros(self, app_client, auth_headers, seed):
        await seed(users=USERS)

        response = await app_client.get("/dashboard/stats", headers=auth_headers("bob"))

        assert response.status_code == 200
        assert response.json() == {
            "todayHours": 0.0,
            "weekHours": 0.0,
            "monthHours": 0.0,
            "activeProjectCount": 0,
        }

    async def test_period_totals(self, app_client, auth_headers, seed):
        await seed(users=USERS, projects=PROJECTS)
        headers = auth_headers("ada")

        await log_hours(app_client, headers, "2024-01-17", 2.5, "x")
        await log_hours(app_client, headers, "2024-01-15", 1, "y")
        await log_hours(app_client, headers, "2024-01-02", 4)
        await log_hours(app_client, headers, "2023-12-29", 8)

        response = await app_client.get(
            "/dashboard/stats",
            params={"endDate": "2024-01-17"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json() == {
            "todayHours": 2.5,
            "weekHours": 3.5,
            "monthHours": 7.5,
            "activeProjectCount": 3,
        }

    async def test_reversed_range(self, app_client, auth_headers, seed):
        await seed(users=USERS)

        response = await app_client.get(
            "/dashboard/stats",
            params={"startDate": "2024-02-01", "endDate": "2024-01-01"},
            headers=auth_headers("ada"),
        )

        assert response.status_code == 400


@pytest.mark.asyncio
class TestProjectBreakdown:
    """Tests for GET /dashboard/project-breakdown."""

    async def test_three_to_one_split(self, app_client, auth_headers, seed):
        """Test 3h on X and 1h on Y split 75/25."""
        await seed(users=USERS, projects=PROJECTS)
        headers = auth_headers("ada")

        await log_hours(app_client, headers, "2024-01-15", 2, "x")
        await log_hours(app_client, headers, "2024-01-16", 1, "x")
        await log_hours(app_client, headers, "2024-01-16", 1, "y")

        response = await app_client.get("/dashboard/project-breakdown", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert [(item["project"]["name"], item["totalHours"], item["percentage"]) for item in data] == [
            ("Project X", 3.0, 75),
            ("Project Y", 1.0, 25),
        ]
        assert data[0]["entryCount"] == 2
        assert data[0]["project"]["color"] == "#FF0000"

    async def test_empty(self, app_client, auth_headers, seed):
        await seed(users=USERS)

        response = await app_client.get("/dashboard/project-breakdown", headers=auth_headers("ada"))

        assert response.json() == []


@pytest.mark.asyncio
class TestRecentActivity:
    """Tests for GET /dashboard/recent-activity."""

    async def test_newest_first_with_limit(self, app_client, auth_headers, seed):
        await seed(users=USERS, projects=PROJECTS)
        headers = auth_headers("ada")

        await log_hours(app_client, headers, "2024-01-14", 1, "x")
        await log_hours(app_client, headers, "2024-01-16", 2, "y")
        await log_hours(app_client, headers, "2024-01-15", 3)

        response = await app_client.get(
            "/dashboard/recent-activity",
            params={"limit": 2},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert [item["date"] for item in data] == ["2024-01-16", "2024-01-15"]
        assert data[0]["projectName"] == "Project Y"
        assert data[1]["projectName"] == "Unknown Project"


@pytest.mark.asyncio
class TestDepartmentHours:
    """Tests for GET /dashboard/department-hours."""

    async def test_organization_summary(self, app_client, auth_headers, seed):
        await seed(users=USERS, departments=DEPARTMENTS, projects=PROJECTS)

        await log_hours(app_client, auth_headers("ada"), "2024-01-15", 2)
        await log_hours(app_client, auth_headers("ada"), "2024-01-16", 1)
        await log_hours(app_client, auth_headers("bob"), "2024-01-15", 5)
        await log_hours(app_client, auth_headers("cy"), "2024-01-15", 1.5)
        await log_hours(app_client, auth_headers("outsider"), "2024-01-15", 9)

        response = await app_client.get("/dashboard/department-hours", headers=auth_headers("ada"))

        assert response.status_code == 200
        assert response.json() == [
            {"departmentName": "Operations", "totalHours": 5.0, "employeeCount": 1, "entryCount": 1},
            {"departmentName": "Engineering", "totalHours": 3.0, "employeeCount": 1, "entryCount": 2},
            {"departmentName": "No Department", "totalHours": 1.5, "employeeCount": 1, "entryCount": 1},
        ]


@pytest.mark.asyncio
class TestReports:
    """Tests for GET /reports/project-time-entries/{project_id}."""

    async def test_requires_view_reports(self, app_client, auth_headers, seed):
        await seed(users=USERS)

        response = await app_client.get("/reports/project-time-entries/shared", headers=auth_headers("ada"))

        assert response.status_code == 403

    async def test_lists_every_users_entries(self, app_client, auth_headers, seed):
        await seed(users=USERS, projects=PROJECTS)

        await log_hours(app_client, auth_headers("ada"), "2024-01-15", 2, "shared")
        await log_hours(app_client, auth_headers("bob"), "2024-01-16", 1, "shared")

        response = await app_client.get("/reports/project-time-entries/shared", headers=auth_headers("cy"))

        assert response.status_code == 200
        data = response.json()
        assert [(row["userName"], row["hours"]) for row in data] == [
            ("Bob", 1.0),
            ("Ada Lovelace", 2.0),
        ]


@pytest.mark.asyncio
class TestCurrentRole:
    """Tests for GET /users/current-role."""

    async def test_role_and_permissions(self, app_client, auth_headers, seed):
        await seed(users=USERS)

        response = await app_client.get("/users/current-role", headers=auth_headers("cy"))

        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "project_manager"
        assert data["permissions"]["canViewReports"] is True
        assert data["permissions"]["canViewAllTimeEntries"] is False

    async def test_unknown_user_is_employee(self, app_client, auth_headers):
        response = await app_client.get("/users/current-role", headers=auth_headers("stranger"))

        assert response.status_code == 200
        assert response.json()["role"] == "employee"
        assert response.json()["permissions"]["canCreateTimeEntries"] is True


@pytest.mark.asyncio
class TestHealth:
    """Tests for the service endpoints."""

    async def test_root(self, app_client):
        response = await app_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_health(self, app_client):
        response = await app_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
class TestCurrentUser:
    """Tests for GET /users/me."""

    async def test_me(self, app_client, auth_headers, seed):
        await seed(users=USERS)

        response = await app_client.get("/users/me", headers=auth_headers("ada"))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "ada"
        assert data["displayName"] == "Ada Lovelace"
        assert data["departmentId"] == "eng"

    async def test_me_without_record(self, app_client, auth_headers):
        response = await app_client.get("/users/me", headers=auth_headers("stranger"))

        assert response.status_code == 404
