from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from ..common.datetime_utils import now_local, to_local_naive
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_PAGE_SIZE, DEFAULT_SCAN_CLOCK_SKEW_SECONDS
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import AuthorizationError, ConcurrentUpdate, NotFoundError, ValidationError
from ..schedules.service import ScheduleService
from .model import (
    AttendanceRecord,
    RecordEdit,
    RecordFilter,
    RecordPage,
    ScanEvent,
    ScanResult,
    TeamMemberStatus,
    TeamStatus,
)
from .reconciliation import ReconciliationEngine
from .repository import AttendanceRepository
from .verifier import AttendanceVerifier

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        verifier: AttendanceVerifier,
        attendance: AttendanceRepository,
        schedules: ScheduleService,
        *,
        engine: Optional[ReconciliationEngine] = None,
        clock: Callable[[], datetime] = now_local,
        clock_skew_seconds: int = DEFAULT_SCAN_CLOCK_SKEW_SECONDS,
    ):
        self._verifier = verifier
        self._attendance = attendance
        self._schedules = schedules
        self._engine = engine or ReconciliationEngine()
        self._clock = clock
        self._max_skew = timedelta(seconds=int(clock_skew_seconds))

    def verify_scan(self, scan: ScanEvent) -> ScanResult:
        """Run the verifier, retrying exactly once when a concurrent writer won the race.

        The scan is always stamped with server time. `scan.timestamp`, when the
        device sends one, is only compared against it.
        """

        now = self._clock()
        if scan.timestamp is not None and abs(to_local_naive(scan.timestamp) - now) > self._max_skew:
            logger.warning(
                "scan rejected, device time %s vs server %s employee=%s",
                scan.timestamp.isoformat(),
                now.isoformat(),
                scan.employee_id,
            )
            raise ValidationError("Device clock differs from server time; sync the clock and scan again")
        scan = replace(scan, timestamp=now)
        try:
            return self._verifier.verify(scan)
        except ConcurrentUpdate:
            logger.info("scan lost a concurrent update, retrying once employee=%s clinic=%s", scan.employee_id, scan.clinic_id)
            return self._verifier.verify(scan)

    def _get_in_clinic(self, record_id: int, clinic_id: str) -> AttendanceRecord:
        record = self._attendance.get_by_id(record_id)
        if record is None or record.clinic_id != clinic_id:
            raise NotFoundError("Attendance record not found")
        return record

    def edit_record(
        self,
        *,
        current_role: Role,
        clinic_id: str,
        record_id: int,
        edited_by: str,
        edit: RecordEdit,
    ) -> AttendanceRecord:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only clinic admins can edit attendance records")

        record = self._get_in_clinic(record_id, clinic_id)
        check_in = to_local_naive(edit.check_in_time) if edit.check_in_time else record.check_in_time
        check_out = to_local_naive(edit.check_out_time) if edit.check_out_time else record.check_out_time
        if check_out is not None and check_in is None:
            raise ValidationError("A check-out time needs a check-in time")
        if check_in is not None and check_out is not None and check_out <= check_in:
            raise ValidationError("Check-out must be after check-in")

        status = edit.status or record.status
        notes = edit.notes if edit.notes is not None else record.notes
        edited_at = self._clock()

        self._attendance.apply_manual_edit(
            record_id=record.record_id,
            check_in_time=check_in,
            check_out_time=check_out,
            status=status,
            notes=notes,
            edited_by=edited_by,
            edited_at=edited_at,
        )
        logger.info("record edited record_id=%s by=%s status=%s", record.record_id, edited_by, status.value)

        return replace(
            record,
            check_in_time=check_in,
            check_out_time=check_out,
            status=status,
            notes=notes,
            is_manually_edited=True,
            edited_by=edited_by,
            edited_at=edited_at,
        )

    def reconcile_record(
        self,
        *,
        current_role: Role,
        clinic_id: str,
        record_id: int,
        clear_manual_edit: bool = False,
    ) -> AttendanceRecord:
        """Explicit re-trigger; a manually edited record is only touched when `clear_manual_edit` is set."""

        if current_role != Role.ADMIN:
            raise AuthorizationError("Only clinic admins can re-run reconciliation")

        record = self._get_in_clinic(record_id, clinic_id)
        if record.is_manually_edited and not clear_manual_edit:
            raise ValidationError("Record was edited manually; clear the manual edit flag to reconcile it")
        if record.check_in_time is None:
            raise ValidationError("Record has no check-in to reconcile")

        schedule = self._schedules.effective_for(
            clinic_id=record.clinic_id,
            employee_id=record.employee_id,
            work_date=record.work_date,
        )
        metrics = self._engine.reconcile(record, schedule)
        self._attendance.save_metrics(record.record_id, metrics, clear_manual_edit=clear_manual_edit)
        logger.info("record reconciled record_id=%s %s", record.record_id, metrics)

        return replace(
            record,
            late_minutes=metrics.late_minutes,
            early_leave_minutes=metrics.early_leave_minutes,
            overtime_minutes=metrics.overtime_minutes,
            total_work_minutes=metrics.total_work_minutes,
            is_manually_edited=record.is_manually_edited and not clear_manual_edit,
        )

    def today_record(self, *, employee_id: str, clinic_id: str, today: Optional[date] = None) -> Optional[AttendanceRecord]:
        today = today or self._clock().date()
        return self._attendance.get_for_employee_and_date(employee_id=employee_id, clinic_id=clinic_id, work_date=today)

    def history(self, *, employee_id: str, clinic_id: str, limit: int = DEFAULT_HISTORY_LIMIT):
        return self._attendance.list_for_employee(employee_id=employee_id, clinic_id=clinic_id, limit=limit)

    def records(
        self,
        *,
        current_role: Role,
        current_employee_id: str,
        flt: RecordFilter,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> RecordPage:
        if flt.start_date > flt.end_date:
            raise ValidationError("start_date must not be after end_date")
        if page < 1 or page_size < 1:
            raise ValidationError("page and page_size must be positive")

        # Staff only ever see their own records.
        if current_role != Role.ADMIN:
            flt = replace(flt, employee_id=current_employee_id)

        rows, total = self._attendance.list_records(flt, page=page, page_size=page_size)
        return RecordPage(records=rows, total_count=total, page=page, page_size=page_size)

    def team_status(
        self,
        *,
        current_role: Role,
        clinic_id: str,
        work_date: date,
        employee_ids: Optional[Iterable[str]] = None,
    ) -> TeamStatus:
        """Who is in today. Employees without a record count as not checked in."""

        if current_role != Role.ADMIN:
            raise AuthorizationError("Only clinic admins can view team attendance")

        by_employee = {r.employee_id: r for r in self._attendance.list_for_clinic_date(clinic_id, work_date)}
        ids = list(employee_ids) if employee_ids is not None else sorted(by_employee)

        members = []
        for employee_id in ids:
            record = by_employee.get(employee_id)
            if record is None:
                members.append(TeamMemberStatus(employee_id=employee_id, status=AttendanceStatus.NOT_CHECKED_IN))
                continue
            members.append(
                TeamMemberStatus(
                    employee_id=employee_id,
                    status=record.status,
                    check_in_time=record.check_in_time,
                    scheduled_start=record.scheduled_start,
                    late_minutes=record.late_minutes,
                )
            )
        return TeamStatus(work_date=work_date, members=tuple(members))
