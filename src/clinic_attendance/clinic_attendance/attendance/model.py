from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional, Sequence

from ..common.datetime_utils import format_hhmm
from ..core.enums import AttendanceStatus, ScanAction
from ..geofence.model import Coordinate


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ReconciliationResult:
    late_minutes: int = 0
    early_leave_minutes: int = 0
    overtime_minutes: int = 0
    total_work_minutes: int = 0

    def to_dict(self) -> dict:
        return {
            "late_minutes": self.late_minutes,
            "early_leave_minutes": self.early_leave_minutes,
            "overtime_minutes": self.overtime_minutes,
            "total_work_minutes": self.total_work_minutes,
        }


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one employee's attendance for one clinic work day."""

    record_id: int
    employee_id: str
    clinic_id: str
    work_date: date
    status: AttendanceStatus = AttendanceStatus.NOT_CHECKED_IN
    branch_id: Optional[str] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    check_in_lat: Optional[float] = None
    check_in_lon: Optional[float] = None
    check_out_lat: Optional[float] = None
    check_out_lon: Optional[float] = None
    check_in_device: Optional[str] = None
    check_out_device: Optional[str] = None
    scheduled_start: Optional[time] = None
    scheduled_end: Optional[time] = None
    late_minutes: int = 0
    early_leave_minutes: int = 0
    overtime_minutes: int = 0
    total_work_minutes: int = 0
    is_manually_edited: bool = False
    edited_by: Optional[str] = None
    edited_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def metrics(self) -> ReconciliationResult:
        return ReconciliationResult(
            late_minutes=self.late_minutes,
            early_leave_minutes=self.early_leave_minutes,
            overtime_minutes=self.overtime_minutes,
            total_work_minutes=self.total_work_minutes,
        )

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "employee_id": self.employee_id,
            "clinic_id": self.clinic_id,
            "branch_id": self.branch_id,
            "work_date": self.work_date.isoformat(),
            "status": self.status.value,
            "check_in_time": _iso(self.check_in_time),
            "check_out_time": _iso(self.check_out_time),
            "scheduled_start": format_hhmm(self.scheduled_start),
            "scheduled_end": format_hhmm(self.scheduled_end),
            **self.metrics.to_dict(),
            "is_manually_edited": self.is_manually_edited,
            "edited_by": self.edited_by,
            "edited_at": _iso(self.edited_at),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class ScanEvent:
    """What the employee's device submitted, with identity from the session."""

    token: str
    employee_id: str
    clinic_id: str
    timestamp: Optional[datetime] = None
    branch_id: Optional[str] = None
    location: Optional[Coordinate] = None
    device_info: Optional[str] = None


@dataclass(frozen=True)
class ScanResult:
    action: ScanAction
    record: AttendanceRecord
    duplicate: bool = False
    distance_meters: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "success": True,
            "action": self.action.value,
            "duplicate": self.duplicate,
            "distance_meters": round(self.distance_meters, 1) if self.distance_meters is not None else None,
            "record": self.record.to_dict(),
        }


@dataclass(frozen=True)
class RecordEdit:
    """Admin correction; fields left as None keep their stored value."""

    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    status: Optional[AttendanceStatus] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RecordFilter:
    clinic_id: str
    start_date: date
    end_date: date
    branch_id: Optional[str] = None
    employee_id: Optional[str] = None
    status: Optional[AttendanceStatus] = None


@dataclass(frozen=True)
class RecordPage:
    records: Sequence[AttendanceRecord]
    total_count: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.total_count > self.page * self.page_size

    def to_dict(self) -> dict:
        return {
            "records": [r.to_dict() for r in self.records],
            "total_count": self.total_count,
            "page": self.page,
            "page_size": self.page_size,
            "has_more": self.has_more,
        }


@dataclass(frozen=True)
class TeamMemberStatus:
    employee_id: str
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    scheduled_start: Optional[time] = None
    late_minutes: int = 0


@dataclass(frozen=True)
class TeamStatus:
    work_date: date
    members: Sequence[TeamMemberStatus] = field(default_factory=tuple)

    @property
    def checked_in(self) -> int:
        return sum(1 for m in self.members if m.check_in_time is not None)

    @property
    def on_leave(self) -> int:
        return sum(1 for m in self.members if m.status == AttendanceStatus.ON_LEAVE)

    @property
    def not_checked_in(self) -> int:
        return len(self.members) - self.checked_in - self.on_leave

    @property
    def late_count(self) -> int:
        return sum(1 for m in self.members if m.late_minutes > 0)

    def to_dict(self) -> dict:
        return {
            "date": self.work_date.isoformat(),
            "total_employees": len(self.members),
            "checked_in": self.checked_in,
            "not_checked_in": self.not_checked_in,
            "on_leave": self.on_leave,
            "late_count": self.late_count,
            "employees": [
                {
                    "employee_id": m.employee_id,
                    "status": m.status.value,
                    "check_in_time": _iso(m.check_in_time),
                    "scheduled_start": format_hhmm(m.scheduled_start),
                    "late_minutes": m.late_minutes,
                }
                for m in self.members
            ],
        }
