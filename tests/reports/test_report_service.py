from __future__ import annotations

from datetime import date, datetime, time

import pytest

from src.clinic_attendance.clinic_attendance.attendance.model import AttendanceRecord
from src.clinic_attendance.clinic_attendance.core.enums import AttendanceStatus, Role
from src.clinic_attendance.clinic_attendance.core.exceptions import AuthorizationError, ValidationError


def _worked(attendance_repo, day, *, employee="e1", late=0, early=0, total=480, **extra):
    return attendance_repo.add(
        AttendanceRecord(
            record_id=0,
            employee_id=employee,
            clinic_id="clinic-1",
            work_date=date(2025, 3, day),
            status=AttendanceStatus.CHECKED_OUT,
            check_in_time=datetime(2025, 3, day, 9, late),
            check_out_time=datetime(2025, 3, day, 18),
            scheduled_start=time(9),
            scheduled_end=time(18),
            late_minutes=late,
            early_leave_minutes=early,
            total_work_minutes=total,
            **extra,
        )
    )


@pytest.fixture
def first_week(attendance_repo, clock):
    # Friday evening of the first full week of March 2025.
    clock.now = datetime(2025, 3, 7, 20, 0)
    _worked(attendance_repo, 3, late=10, total=500)
    _worked(attendance_repo, 4, total=480)
    attendance_repo.add(
        AttendanceRecord(record_id=0, employee_id="e1", clinic_id="clinic-1", work_date=date(2025, 3, 5), status=AttendanceStatus.ON_LEAVE)
    )
    # 6 March: no record at all.
    _worked(attendance_repo, 7, early=30, total=450)
    _worked(attendance_repo, 3, employee="e2", total=300, notes="half day")
    return attendance_repo


def test_monthly_statistics(container, first_week):
    stats = container.report_service.monthly_statistics(
        current_role=Role.STAFF,
        current_employee_id="e1",
        clinic_id="clinic-1",
        employee_id="e1",
        year=2025,
        month=3,
    )

    assert stats.total_work_days == 5
    assert (stats.present_days, stats.leave_days, stats.absent_days) == (3, 1, 1)
    assert (stats.late_count, stats.total_late_minutes, stats.avg_late_minutes) == (1, 10, 10.0)
    assert (stats.early_leave_count, stats.total_early_leave_minutes) == (1, 30)
    assert stats.overtime_count == 0
    assert stats.total_work_minutes == 1430
    assert stats.avg_work_minutes_per_day == 476.7
    assert stats.attendance_rate == 75.0
    assert stats.to_dict()["month"] == 3


def test_staff_cannot_read_someone_elses_statistics(container, first_week):
    with pytest.raises(AuthorizationError):
        container.report_service.monthly_statistics(
            current_role=Role.STAFF,
            current_employee_id="e2",
            clinic_id="clinic-1",
            employee_id="e1",
            year=2025,
            month=3,
        )


def test_invalid_month(container):
    with pytest.raises(ValidationError):
        container.report_service.monthly_statistics(
            current_role=Role.ADMIN,
            current_employee_id="admin-1",
            clinic_id="clinic-1",
            employee_id="e1",
            year=2025,
            month=13,
        )


def test_attendance_report_rows_and_summary(container, first_week):
    report = container.report_service.build_attendance_report(
        current_role=Role.ADMIN,
        current_employee_id="admin-1",
        clinic_id="clinic-1",
        start=date(2025, 3, 1),
        end=date(2025, 3, 31),
    )

    assert len(report.rows) == 5
    newest = report.rows[0]
    assert newest["work_date"] == "2025-03-07"
    assert newest["scheduled"] == "09:00-18:00"
    assert newest["worked_hours"] == "07:30"

    leave_row = next(r for r in report.rows if r["status"] == "on_leave")
    assert (leave_row["check_in"], leave_row["check_out"]) == ("-", "-")

    assert report.summary == [
        {"employee_id": "e1", "days": 3, "late_count": 1, "total_minutes": 1430, "total_hours": "23:50"},
        {"employee_id": "e2", "days": 1, "late_count": 0, "total_minutes": 300, "total_hours": "05:00"},
    ]


def test_staff_report_is_limited_to_self(container, first_week):
    report = container.report_service.build_attendance_report(
        current_role=Role.STAFF,
        current_employee_id="e2",
        clinic_id="clinic-1",
        start=date(2025, 3, 1),
        end=date(2025, 3, 31),
        employee_id="e1",
    )

    assert [r["employee_id"] for r in report.rows] == ["e2"]
    assert report.rows[0]["notes"] == "half day"
