from __future__ import annotations

import threading
from datetime import date, datetime, time, timedelta

import pytest

from src.clinic_attendance.clinic_attendance.attendance.model import AttendanceRecord, ScanEvent
from src.clinic_attendance.clinic_attendance.attendance.verifier import AttendanceVerifier
from src.clinic_attendance.clinic_attendance.core.enums import AttendanceStatus, ScanAction
from src.clinic_attendance.clinic_attendance.core.exceptions import (
    AlreadyCompleted,
    InvalidSequence,
    OutOfRange,
    TokenExpired,
    TokenNotFound,
)
from src.clinic_attendance.clinic_attendance.geofence.model import Branch, Coordinate
from src.clinic_attendance.clinic_attendance.schedules.model import DaySchedule
from src.clinic_attendance.clinic_attendance.tokens.model import Geofence

MONDAY = date(2025, 3, 3)
CENTER = Coordinate(37.5, 127.0)
NORTH_200M = Coordinate(37.5 + 200 / 111_194.93, 127.0)
NORTH_500M = Coordinate(37.5 + 500 / 111_194.93, 127.0)


def _at(h, m=0, s=0, day=MONDAY):
    return datetime.combine(day, time(h, m, s))


def _scan(token, at, *, employee="e1", clinic="clinic-1", location=CENTER, branch_id=None):
    return ScanEvent(
        token=token.secret if hasattr(token, "secret") else token,
        employee_id=employee,
        clinic_id=clinic,
        timestamp=at,
        branch_id=branch_id,
        location=location,
        device_info="pytest",
    )


@pytest.fixture
def fenced_token(container, fixed_now):
    return container.token_manager.issue("clinic-1", geofence=Geofence(center=CENTER, radius_meters=50), now=fixed_now)


def test_check_in_then_check_out_reconciles(container, fenced_token, attendance_repo):
    verifier = container.verifier

    first = verifier.verify(_scan(fenced_token, _at(9, 10)))
    assert first.action == ScanAction.CHECK_IN
    assert first.record.status == AttendanceStatus.CHECKED_IN
    assert first.record.late_minutes == 10
    assert (first.record.scheduled_start, first.record.scheduled_end) == (time(9), time(18))

    second = verifier.verify(_scan(fenced_token, _at(18, 30)))
    assert second.action == ScanAction.CHECK_OUT
    assert second.record.status == AttendanceStatus.CHECKED_OUT

    stored = attendance_repo.get_by_id(first.record.record_id)
    assert stored == second.record
    assert (stored.check_in_lat, stored.check_in_lon) == (37.5, 127.0)
    assert (stored.check_out_lat, stored.check_out_lon) == (37.5, 127.0)
    assert stored.check_out_device == "pytest"
    assert stored.metrics.to_dict() == {
        "late_minutes": 10,
        "early_leave_minutes": 0,
        "overtime_minutes": 30,
        "total_work_minutes": 500,
    }


def test_scan_accepts_url_form(container, fenced_token):
    url = container.token_manager.scan_url(fenced_token)

    result = container.verifier.verify(_scan(url, _at(9)))

    assert result.action == ScanAction.CHECK_IN


def test_unknown_token(container, attendance_repo):
    with pytest.raises(TokenNotFound):
        container.verifier.verify(_scan("nope", _at(9)))
    assert attendance_repo.writes == 0


def test_token_of_another_clinic_is_not_found(container, fenced_token, attendance_repo):
    with pytest.raises(TokenNotFound):
        container.verifier.verify(_scan(fenced_token, _at(9), clinic="clinic-2"))
    assert attendance_repo.writes == 0


def test_yesterdays_token_is_expired(container, fenced_token, attendance_repo):
    with pytest.raises(TokenExpired):
        container.verifier.verify(_scan(fenced_token, _at(9, day=MONDAY + timedelta(days=1))))
    assert attendance_repo.writes == 0


def test_superseded_token_is_expired(container, fenced_token, fixed_now):
    container.token_manager.issue("clinic-1", now=fixed_now + timedelta(minutes=1), rotate=True)

    with pytest.raises(TokenExpired):
        container.verifier.verify(_scan(fenced_token, _at(9)))


def test_scan_200m_from_50m_fence_is_out_of_range(container, fenced_token, attendance_repo):
    with pytest.raises(OutOfRange) as exc:
        container.verifier.verify(_scan(fenced_token, _at(9), location=NORTH_200M))

    assert exc.value.distance_meters == pytest.approx(200.0, abs=0.5)
    assert attendance_repo.writes == 0


def test_missing_location_is_skipped_unless_required(container, fenced_token, attendance_repo, schedules_repo):
    result = container.verifier.verify(_scan(fenced_token, _at(9), location=None))
    assert result.action == ScanAction.CHECK_IN

    strict = AttendanceVerifier(
        container.token_manager,
        attendance_repo,
        container.schedule_service,
        location_required=True,
    )
    with pytest.raises(OutOfRange):
        strict.verify(_scan(fenced_token, _at(9), employee="e2", location=None))


def test_same_scan_twice_does_not_check_in_twice(container, fenced_token, attendance_repo):
    scan = _scan(fenced_token, _at(9, 5))

    first = container.verifier.verify(scan)
    again = container.verifier.verify(scan)

    assert again.action == ScanAction.CHECK_IN
    assert again.duplicate is True
    assert again.record == first.record
    assert attendance_repo.writes == 1


def test_rescan_inside_debounce_window_is_duplicate(container, fenced_token, attendance_repo):
    container.verifier.verify(_scan(fenced_token, _at(9, 5)))

    result = container.verifier.verify(_scan(fenced_token, _at(9, 5, 45)))

    assert result.duplicate is True
    assert attendance_repo.get_by_id(result.record.record_id).check_out_time is None


def test_scan_before_check_in_is_invalid_sequence(container, fenced_token, attendance_repo):
    container.verifier.verify(_scan(fenced_token, _at(9, 5)))

    with pytest.raises(InvalidSequence) as exc:
        container.verifier.verify(_scan(fenced_token, _at(8, 59)))

    assert exc.value.record.check_in_time == _at(9, 5)
    assert attendance_repo.writes == 1


def test_third_scan_is_already_completed(container, fenced_token, attendance_repo):
    container.verifier.verify(_scan(fenced_token, _at(9)))
    container.verifier.verify(_scan(fenced_token, _at(18)))

    with pytest.raises(AlreadyCompleted) as exc:
        container.verifier.verify(_scan(fenced_token, _at(19)))

    assert exc.value.record.status == AttendanceStatus.CHECKED_OUT
    assert attendance_repo.writes == 2


def test_sunday_day_off_still_records_work(container, attendance_repo):
    sunday = date(2025, 3, 2)
    token = container.token_manager.issue("clinic-1", now=_at(7, day=sunday))

    container.verifier.verify(_scan(token, _at(10, day=sunday)))
    out = container.verifier.verify(_scan(token, _at(14, 15, day=sunday)))

    assert out.record.status == AttendanceStatus.CHECKED_OUT
    assert (out.record.late_minutes, out.record.early_leave_minutes, out.record.overtime_minutes) == (0, 0, 0)
    assert out.record.total_work_minutes == 255
    assert out.record.scheduled_start is None


@pytest.mark.parametrize("status", [AttendanceStatus.ON_LEAVE, AttendanceStatus.ABSENT])
def test_day_marked_by_admin_rejects_scan(container, fenced_token, attendance_repo, status):
    attendance_repo.add(AttendanceRecord(record_id=0, employee_id="e1", clinic_id="clinic-1", work_date=MONDAY, status=status))

    with pytest.raises(InvalidSequence):
        container.verifier.verify(_scan(fenced_token, _at(9)))
    assert attendance_repo.writes == 0


def test_pre_created_row_is_checked_in_in_place(container, fenced_token, attendance_repo):
    row = attendance_repo.add(AttendanceRecord(record_id=0, employee_id="e1", clinic_id="clinic-1", work_date=MONDAY))

    result = container.verifier.verify(_scan(fenced_token, _at(9, 3)))

    assert result.record.record_id == row.record_id
    assert attendance_repo.get_by_id(row.record_id).status == AttendanceStatus.CHECKED_IN
    assert attendance_repo.get_by_id(row.record_id).late_minutes == 3


def test_manually_edited_record_is_not_reconciled_on_checkout(container, fenced_token, attendance_repo):
    row = attendance_repo.add(
        AttendanceRecord(
            record_id=0,
            employee_id="e1",
            clinic_id="clinic-1",
            work_date=MONDAY,
            status=AttendanceStatus.CHECKED_IN,
            check_in_time=_at(9, 10),
            is_manually_edited=True,
            notes="fixed by admin",
        )
    )

    result = container.verifier.verify(_scan(fenced_token, _at(18, 30)))

    stored = attendance_repo.get_by_id(row.record_id)
    assert result.action == ScanAction.CHECK_OUT
    assert stored.check_out_time == _at(18, 30)
    assert stored.late_minutes == 0
    assert stored.total_work_minutes == 0


def test_check_out_stores_the_window_it_was_reconciled_against(container, fenced_token, attendance_repo, schedules_repo):
    container.verifier.verify(_scan(fenced_token, _at(9, 10)))

    # Monday hours change to 10:00-17:00 (no break) while the employee is at work.
    schedules_repo.clinic_hours["clinic-1"][1] = DaySchedule(is_working=True, start=time(10), end=time(17))
    out = container.verifier.verify(_scan(fenced_token, _at(17, 30)))

    stored = attendance_repo.get_by_id(out.record.record_id)
    assert stored == out.record
    assert (stored.scheduled_start, stored.scheduled_end) == (time(10), time(17))
    assert stored.metrics.to_dict() == {
        "late_minutes": 0,
        "early_leave_minutes": 0,
        "overtime_minutes": 30,
        "total_work_minutes": 500,
    }


def test_clinic_wide_token_uses_nearest_branch(container, branches_repo, attendance_repo, fixed_now):
    branches_repo.branches["gangnam"] = Branch(branch_id="gangnam", clinic_id="clinic-1", name="Gangnam", latitude=37.5, longitude=127.0, radius_meters=300)
    branches_repo.branches["far"] = Branch(branch_id="far", clinic_id="clinic-1", name="Far", latitude=37.6, longitude=127.1)
    token = container.token_manager.issue("clinic-1", now=fixed_now)

    result = container.verifier.verify(_scan(token, _at(9), location=NORTH_200M))
    assert result.record.branch_id == "gangnam"
    assert result.distance_meters == pytest.approx(200.0, abs=0.5)

    with pytest.raises(OutOfRange):
        container.verifier.verify(_scan(token, _at(9), employee="e2", location=NORTH_500M))


def test_branch_token_rejects_other_branch(container, fixed_now):
    token = container.token_manager.issue("clinic-1", "b1", now=fixed_now)

    with pytest.raises(TokenNotFound):
        container.verifier.verify(_scan(token, _at(9), branch_id="b2"))


def test_racing_check_ins_resolve_to_one(container, fenced_token, attendance_repo, clock):
    clock.now = _at(9)
    barrier = threading.Barrier(6)
    results, errors = [], []

    def worker():
        barrier.wait()
        try:
            results.append(container.attendance_service.verify_scan(_scan(fenced_token, None)))
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert attendance_repo.writes == 1
    assert sum(1 for r in results if not r.duplicate) == 1
    assert all(r.action == ScanAction.CHECK_IN for r in results)
