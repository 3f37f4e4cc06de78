from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from ..geofence.model import Coordinate
from .model import AttendanceRecord, ReconciliationResult, RecordFilter


class AttendanceRepository(Protocol):
    """Record store keyed by (employee_id, clinic_id, work_date).

    Writes made by the scan flow are single conditional statements: a `False`
    return means another writer got there first and nothing was changed.
    """

    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_employee_and_date(self, *, employee_id: str, clinic_id: str, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create_checkin(
        self,
        *,
        employee_id: str,
        clinic_id: str,
        work_date: date,
        branch_id: Optional[str],
        check_in_time: datetime,
        location: Optional[Coordinate],
        device_info: Optional[str],
        scheduled_start: Optional[time],
        scheduled_end: Optional[time],
        late_minutes: int,
    ) -> AttendanceRecord:
        """Insert a checked-in record. Raises RecordConflict if the day's row already exists."""

        raise NotImplementedError

    def mark_checkin(
        self,
        *,
        record_id: int,
        branch_id: Optional[str],
        check_in_time: datetime,
        location: Optional[Coordinate],
        device_info: Optional[str],
        scheduled_start: Optional[time],
        scheduled_end: Optional[time],
        late_minutes: int,
    ) -> bool:
        """Check in on an existing row, only while its check_in_time is still unset."""

        raise NotImplementedError

    def mark_checkout(
        self,
        *,
        record_id: int,
        expected_check_in: datetime,
        check_out_time: datetime,
        location: Optional[Coordinate],
        device_info: Optional[str],
        metrics: Optional[ReconciliationResult],
        scheduled_start: Optional[time] = None,
        scheduled_end: Optional[time] = None,
    ) -> bool:
        """Check out only while check_out_time is unset.

        `metrics=None` leaves the stored minutes and scheduled window alone.
        """

        raise NotImplementedError

    def save_metrics(self, record_id: int, metrics: ReconciliationResult, *, clear_manual_edit: bool = False) -> bool:
        raise NotImplementedError

    def apply_manual_edit(
        self,
        *,
        record_id: int,
        check_in_time: Optional[datetime],
        check_out_time: Optional[datetime],
        status: AttendanceStatus,
        notes: Optional[str],
        edited_by: str,
        edited_at: datetime,
    ) -> bool:
        raise NotImplementedError

    def list_records(self, flt: RecordFilter, *, page: int, page_size: int) -> tuple[Sequence[AttendanceRecord], int]:
        """One page of matching records (newest work day first) and the total count."""

        raise NotImplementedError

    def list_for_clinic_date(self, clinic_id: str, work_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_employee(
        self,
        *,
        employee_id: str,
        clinic_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
