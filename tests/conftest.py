from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, time
from typing import Optional

import pytest

from src.clinic_attendance.clinic_attendance.attendance.model import AttendanceRecord, ReconciliationResult, RecordFilter
from src.clinic_attendance.clinic_attendance.container import wire
from src.clinic_attendance.clinic_attendance.core.enums import AttendanceStatus
from src.clinic_attendance.clinic_attendance.core.exceptions import RecordConflict, TokenCycleConflict
from src.clinic_attendance.clinic_attendance.geofence.model import Branch
from src.clinic_attendance.clinic_attendance.schedules.model import DaySchedule
from src.clinic_attendance.clinic_attendance.tokens.model import QRToken

CLINIC = "clinic-1"


class InMemorySchedules:
    def __init__(self):
        self.clinic_hours: dict[str, list[Optional[DaySchedule]]] = {}
        # employee_id -> (owning clinic, weekly override)
        self.overrides: dict[str, tuple[str, dict[int, DaySchedule]]] = {}

    def get_clinic_hours(self, clinic_id: str):
        return list(self.clinic_hours.get(clinic_id, [None] * 7))

    def save_clinic_hours(self, clinic_id: str, hours) -> None:
        week = self.clinic_hours.setdefault(clinic_id, [None] * 7)
        for day, d in hours.items():
            week[day] = d

    def get_employee_override(self, employee_id: str, clinic_id: str):
        owner, schedule = self.overrides.get(employee_id, (None, None))
        return schedule if owner == clinic_id else None

    def save_employee_override(self, *, employee_id: str, clinic_id: str, schedule) -> bool:
        owner, _ = self.overrides.get(employee_id, (clinic_id, None))
        if owner != clinic_id:
            return False
        self.overrides[employee_id] = (clinic_id, dict(schedule))
        return True

    def clear_employee_override(self, employee_id: str, clinic_id: str) -> bool:
        owner, _ = self.overrides.get(employee_id, (None, None))
        if owner != clinic_id:
            return False
        del self.overrides[employee_id]
        return True


class InMemoryBranches:
    def __init__(self, branches: Optional[list[Branch]] = None):
        self.branches = {b.branch_id: b for b in branches or []}

    def list_active(self, clinic_id: str):
        return [b for b in self.branches.values() if b.clinic_id == clinic_id and b.is_active]

    def get_by_id(self, branch_id: str):
        return self.branches.get(branch_id)


class InMemoryTokens:
    """Mirrors the MySQL unique keys: secret, and (clinic, branch, valid_from)."""

    def __init__(self):
        self._lock = threading.Lock()
        self.rows: list[QRToken] = []
        self._id = 0

    def _scope(self, clinic_id, branch_id):
        return [t for t in self.rows if t.clinic_id == clinic_id and (t.branch_id or "") == (branch_id or "")]

    def get_by_secret(self, secret: str):
        return next((t for t in self.rows if t.secret == secret), None)

    def get_valid(self, *, clinic_id, branch_id, at):
        valid = [t for t in self._scope(clinic_id, branch_id) if t.is_valid_at(at)]
        return max(valid, key=lambda t: t.token_id) if valid else None

    def get_latest(self, *, clinic_id, branch_id):
        scope = self._scope(clinic_id, branch_id)
        return max(scope, key=lambda t: t.token_id) if scope else None

    def insert(self, token: QRToken, *, supersede_at: datetime) -> QRToken:
        with self._lock:
            for t in self._scope(token.clinic_id, token.branch_id):
                if t.valid_from == token.valid_from:
                    raise TokenCycleConflict("cycle already issued")
            if self.get_by_secret(token.secret):
                raise TokenCycleConflict("secret collision")

            self._id += 1
            stored = replace(token, token_id=self._id)
            self.rows = [
                replace(t, superseded_at=supersede_at)
                if (
                    t.clinic_id == token.clinic_id
                    and (t.branch_id or "") == (token.branch_id or "")
                    and t.superseded_at is None
                    and t.valid_until >= supersede_at
                )
                else t
                for t in self.rows
            ]
            self.rows.append(stored)
            return stored


class InMemoryAttendance:
    def __init__(self):
        self._lock = threading.Lock()
        self.by_id: dict[int, AttendanceRecord] = {}
        self._id = 0
        self.writes = 0

    def add(self, record: AttendanceRecord) -> AttendanceRecord:
        self._id += 1
        stored = replace(record, record_id=self._id)
        self.by_id[self._id] = stored
        return stored

    def get_by_id(self, record_id: int):
        return self.by_id.get(record_id)

    def get_for_employee_and_date(self, *, employee_id, clinic_id, work_date):
        return next(
            (
                r
                for r in list(self.by_id.values())
                if r.employee_id == employee_id and r.clinic_id == clinic_id and r.work_date == work_date
            ),
            None,
        )

    def create_checkin(self, *, employee_id, clinic_id, work_date, branch_id, check_in_time, location, device_info,
                       scheduled_start, scheduled_end, late_minutes):
        with self._lock:
            if self.get_for_employee_and_date(employee_id=employee_id, clinic_id=clinic_id, work_date=work_date):
                raise RecordConflict("duplicate day")
            self.writes += 1
            return self.add(
                AttendanceRecord(
                    record_id=0,
                    employee_id=employee_id,
                    clinic_id=clinic_id,
                    work_date=work_date,
                    branch_id=branch_id,
                    status=AttendanceStatus.CHECKED_IN,
                    check_in_time=check_in_time,
                    check_in_lat=location.lat if location else None,
                    check_in_lon=location.lon if location else None,
                    check_in_device=device_info,
                    scheduled_start=scheduled_start,
                    scheduled_end=scheduled_end,
                    late_minutes=late_minutes,
                )
            )

    def mark_checkin(self, *, record_id, branch_id, check_in_time, location, device_info,
                     scheduled_start, scheduled_end, late_minutes) -> bool:
        with self._lock:
            r = self.by_id.get(record_id)
            if r is None or r.check_in_time is not None or r.status != AttendanceStatus.NOT_CHECKED_IN:
                return False
            self.writes += 1
            self.by_id[record_id] = replace(
                r,
                branch_id=branch_id or r.branch_id,
                status=AttendanceStatus.CHECKED_IN,
                check_in_time=check_in_time,
                check_in_lat=location.lat if location else None,
                check_in_lon=location.lon if location else None,
                check_in_device=device_info,
                scheduled_start=scheduled_start,
                scheduled_end=scheduled_end,
                late_minutes=late_minutes,
            )
            return True

    def mark_checkout(self, *, record_id, expected_check_in, check_out_time, location, device_info, metrics,
                      scheduled_start=None, scheduled_end=None) -> bool:
        with self._lock:
            r = self.by_id.get(record_id)
            if r is None or r.check_in_time != expected_check_in or r.check_out_time is not None:
                return False
            self.writes += 1
            updated = replace(
                r,
                status=AttendanceStatus.CHECKED_OUT,
                check_out_time=check_out_time,
                check_out_lat=location.lat if location else None,
                check_out_lon=location.lon if location else None,
                check_out_device=device_info,
            )
            if metrics is not None:
                updated = replace(updated, scheduled_start=scheduled_start, scheduled_end=scheduled_end, **metrics.to_dict())
            self.by_id[record_id] = updated
            return True

    def save_metrics(self, record_id: int, metrics: ReconciliationResult, *, clear_manual_edit: bool = False) -> bool:
        r = self.by_id[record_id]
        self.by_id[record_id] = replace(
            r,
            **metrics.to_dict(),
            is_manually_edited=r.is_manually_edited and not clear_manual_edit,
        )
        return True

    def apply_manual_edit(self, *, record_id, check_in_time, check_out_time, status, notes, edited_by, edited_at) -> bool:
        r = self.by_id[record_id]
        self.by_id[record_id] = replace(
            r,
            check_in_time=check_in_time,
            check_out_time=check_out_time,
            status=status,
            notes=notes,
            is_manually_edited=True,
            edited_by=edited_by,
            edited_at=edited_at,
        )
        return True

    def list_records(self, flt: RecordFilter, *, page: int, page_size: int):
        rows = [
            r
            for r in list(self.by_id.values())
            if r.clinic_id == flt.clinic_id
            and flt.start_date <= r.work_date <= flt.end_date
            and (not flt.branch_id or r.branch_id == flt.branch_id)
            and (not flt.employee_id or r.employee_id == flt.employee_id)
            and (flt.status is None or r.status == flt.status)
        ]
        rows.sort(key=lambda r: (-r.work_date.toordinal(), r.employee_id))
        start = (page - 1) * page_size
        return rows[start:start + page_size], len(rows)

    def list_for_clinic_date(self, clinic_id: str, work_date: date):
        return sorted(
            (r for r in list(self.by_id.values()) if r.clinic_id == clinic_id and r.work_date == work_date),
            key=lambda r: r.employee_id,
        )

    def list_for_employee(self, *, employee_id, clinic_id, start_date=None, end_date=None, limit=None):
        rows = [
            r
            for r in list(self.by_id.values())
            if r.employee_id == employee_id
            and r.clinic_id == clinic_id
            and (start_date is None or r.work_date >= start_date)
            and (end_date is None or r.work_date <= end_date)
        ]
        rows.sort(key=lambda r: r.work_date, reverse=True)
        return rows[:limit] if limit is not None else rows


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


WEEKDAY = DaySchedule(
    is_working=True,
    start=time(9, 0),
    end=time(18, 0),
    break_start=time(12, 0),
    break_end=time(13, 0),
)


@pytest.fixture
def fixed_now() -> datetime:
    # Monday
    return datetime(2025, 3, 3, 8, 30, 0)


@pytest.fixture
def clock(fixed_now) -> Clock:
    return Clock(fixed_now)


@pytest.fixture
def schedules_repo() -> InMemorySchedules:
    repo = InMemorySchedules()
    # Sunday and Saturday have no clinic_hours row: day off.
    repo.clinic_hours[CLINIC] = [None, WEEKDAY, WEEKDAY, WEEKDAY, WEEKDAY, WEEKDAY, None]
    return repo


@pytest.fixture
def branches_repo() -> InMemoryBranches:
    return InMemoryBranches()


@pytest.fixture
def tokens_repo() -> InMemoryTokens:
    return InMemoryTokens()


@pytest.fixture
def attendance_repo() -> InMemoryAttendance:
    return InMemoryAttendance()


@pytest.fixture
def container(schedules_repo, branches_repo, tokens_repo, attendance_repo, clock):
    return wire(
        schedules_repo=schedules_repo,
        branches_repo=branches_repo,
        tokens_repo=tokens_repo,
        attendance_repo=attendance_repo,
        settings={"QR_BASE_URL": "https://clinic.test", "SCAN_DEBOUNCE_SECONDS": 60},
        clock=clock,
    )
