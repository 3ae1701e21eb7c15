"""
Daily operations report and the scheduler endpoint.
"""

from datetime import date, datetime, timedelta

import pytest

from portal.core.constants import AttendanceStatus, RequestStatus, TaskStatus
from portal.db.models import (
    Task, Team, AttendanceRecord, MaintenanceRequest, PurchaseRequisition
)
from portal.services.report_service import ReportService

CRON_HEADERS = {"Authorization": "Bearer cron-test-secret"}


@pytest.fixture
def operations(db_session, staff, other_staff):
    today = date.today()
    yesterday = today - timedelta(days=1)
    stores = Team(name="Stores", branch="Main Branch")
    kitchen = Team(name="Kitchen", branch="Main Branch")
    db_session.add_all([stores, kitchen])
    db_session.flush()

    db_session.add_all([
        Task(title="Open shift", status=TaskStatus.PENDING.value, due_date=today,
             assigned_staff_ids=[staff.id], assigned_team_ids=[stores.id]),
        Task(title="Count stock", status=TaskStatus.COMPLETED.value, due_date=today,
             assigned_staff_ids=[staff.id, other_staff.id], assigned_team_ids=[stores.id],
             updated_at=datetime.now()),
        Task(title="Deep clean", status=TaskStatus.IN_PROGRESS.value, due_date=yesterday,
             assigned_staff_ids=[other_staff.id], assigned_team_ids=[kitchen.id]),
        Task(title="Fix freezer", status=TaskStatus.COMPLETED.value, due_date=yesterday,
             assigned_staff_ids=[staff.id], assigned_team_ids=[],
             updated_at=datetime.now()),
        AttendanceRecord(staff_id=staff.id, date=today, status=AttendanceStatus.PRESENT.value),
        AttendanceRecord(staff_id=other_staff.id, date=today, status=AttendanceStatus.ABSENT.value),
        MaintenanceRequest(title="Leaking tap", status=RequestStatus.PENDING.value),
        PurchaseRequisition(title="New scale", status=RequestStatus.APPROVED.value),
    ])
    db_session.commit()
    return {"stores": stores, "kitchen": kitchen}


class TestDailyReportFigures:
    def test_report(self, db_session, operations, staff, other_staff):
        report = ReportService(db_session).build_daily_report()

        assert report["date"] == date.today().isoformat()
        assert report["today_tasks"] == 2
        assert report["completed_today"] == 2
        assert report["in_progress"] == 1
        assert report["overdue"] == 1
        assert report["attendance"] == {"present": 1, "absent": 1, "leave": 0}
        assert report["pending_requests"]["maintenance"] == 1
        assert report["pending_requests"]["purchase"] == 0
        assert report["top_performers"] == [
            {"staff_id": staff.id, "staff_name": "Sam Staff", "tasks_completed": 2},
            {"staff_id": other_staff.id, "staff_name": "Olive Other", "tasks_completed": 1},
        ]
        teams = {t["team_name"]: t for t in report["team_performance"]}
        assert (teams["Stores"]["total_tasks"], teams["Stores"]["completion_rate"]) == (2, 50)
        assert (teams["Kitchen"]["total_tasks"], teams["Kitchen"]["completion_rate"]) == (1, 0)

    def test_empty_day(self, db_session):
        report = ReportService(db_session).build_daily_report()

        assert report["today_tasks"] == 0
        assert report["top_performers"] == []
        assert report["team_performance"] == []


class TestOverdueTasks:
    def test_row_level_check(self):
        today = date.today()
        yesterday = today - timedelta(days=1)

        assert Task(status=TaskStatus.PENDING.value, due_date=yesterday).is_overdue(today) is True
        assert Task(status=TaskStatus.COMPLETED.value, due_date=yesterday).is_overdue(today) is False
        assert Task(status=TaskStatus.PENDING.value, due_date=today).is_overdue(today) is False
        assert Task(status=TaskStatus.PENDING.value, due_date=None).is_overdue(today) is False

    def test_query_filter_matches_row_check(self, db_session, operations):
        today = date.today()

        overdue = db_session.query(Task).filter(Task.is_overdue(today)).all()

        assert [t.title for t in overdue] == ["Deep clean"]
        assert all(t.is_overdue(today) for t in overdue)


class TestDailyReportEndpoint:
    """Scheduler calls are authorized with CRON_SECRET."""

    def test_missing_secret(self, client, admin):
        response = client.get("/api/cron/daily-report")

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_wrong_secret(self, client, admin):
        response = client.get("/api/cron/daily-report", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_secret_as_query_parameter(self, client, admin):
        response = client.get("/api/cron/daily-report", params={"secret": "cron-test-secret"})

        assert response.status_code == 200

    def test_no_admin(self, client):
        response = client.get("/api/cron/daily-report", headers=CRON_HEADERS)

        assert response.status_code == 404
        assert response.json()["error"] == "No admin found"

    def test_sends_one_message_per_recipient(self, client, transport, admin, operations):
        response = client.get("/api/cron/daily-report", headers=CRON_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Daily report sent"
        assert body["recipients"] == ["admin@example.com", "reports@example.com"]
        assert body["report"]["today_tasks"] == 2
        assert [m["recipients"] for m in transport.sent] == [["admin@example.com"], ["reports@example.com"]]
        assert set(transport.subjects()) == {f"Daily report • {date.today().isoformat()}"}
