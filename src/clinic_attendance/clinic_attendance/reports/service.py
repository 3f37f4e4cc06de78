from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import format_hhmm, now_local
from ..core.enums import AttendanceStatus, Role
from ..core.exceptions import AuthorizationError, ValidationError
from ..attendance.model import RecordFilter
from ..attendance.repository import AttendanceRepository
from ..schedules.service import ScheduleService
from .model import MonthlyStatistics, ReportData

_REPORT_PAGE_SIZE = 500


def _hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _avg(total: int, count: int) -> float:
    return round(total / count, 1) if count else 0.0


class ReportService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        schedules: ScheduleService,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._schedules = schedules
        self._clock = clock

    def _authorize(self, current_role: Role, current_employee_id: str, employee_id: Optional[str]) -> None:
        if current_role != Role.ADMIN and employee_id != current_employee_id:
            raise AuthorizationError("Staff can only view their own attendance")

    def monthly_statistics(
        self,
        *,
        current_role: Role,
        current_employee_id: str,
        clinic_id: str,
        employee_id: str,
        year: int,
        month: int,
    ) -> MonthlyStatistics:
        """Figures for one month; days after today are neither scheduled nor absent yet."""

        self._authorize(current_role, current_employee_id, employee_id)
        if not 1 <= int(month) <= 12:
            raise ValidationError("month must be 1..12")

        first = date(int(year), int(month), 1)
        last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
        cutoff = min(last, self._clock().date())

        records = {
            r.work_date: r
            for r in self._attendance.list_for_employee(
                employee_id=employee_id,
                clinic_id=clinic_id,
                start_date=first,
                end_date=last,
            )
        }

        work_days = present = absent = leave = 0
        late_n = late_m = early_n = early_m = ot_n = ot_m = worked = 0

        day = first
        while day <= cutoff:
            schedule = self._schedules.effective_for(clinic_id=clinic_id, employee_id=employee_id, work_date=day)
            record = records.get(day)
            if schedule.is_working:
                work_days += 1

            if record is not None and record.status == AttendanceStatus.ON_LEAVE:
                leave += 1
            elif record is not None and record.check_in_time is not None:
                present += 1
                worked += record.total_work_minutes
                if record.late_minutes > 0:
                    late_n += 1
                    late_m += record.late_minutes
                if record.early_leave_minutes > 0:
                    early_n += 1
                    early_m += record.early_leave_minutes
                if record.overtime_minutes > 0:
                    ot_n += 1
                    ot_m += record.overtime_minutes
            elif schedule.is_working or (record is not None and record.status == AttendanceStatus.ABSENT):
                absent += 1
            day += timedelta(days=1)

        expected = work_days - leave
        return MonthlyStatistics(
            employee_id=employee_id,
            clinic_id=clinic_id,
            year=first.year,
            month=first.month,
            total_work_days=work_days,
            present_days=present,
            absent_days=absent,
            leave_days=leave,
            late_count=late_n,
            total_late_minutes=late_m,
            avg_late_minutes=_avg(late_m, late_n),
            early_leave_count=early_n,
            total_early_leave_minutes=early_m,
            avg_early_leave_minutes=_avg(early_m, early_n),
            overtime_count=ot_n,
            total_overtime_minutes=ot_m,
            avg_overtime_minutes=_avg(ot_m, ot_n),
            total_work_minutes=worked,
            avg_work_minutes_per_day=_avg(worked, present),
            attendance_rate=round(min(present, expected) * 100 / expected, 1) if expected > 0 else 0.0,
        )

    def build_attendance_report(
        self,
        *,
        current_role: Role,
        current_employee_id: str,
        clinic_id: str,
        start: date,
        end: date,
        employee_id: Optional[str] = None,
    ) -> ReportData:
        if current_role != Role.ADMIN:
            employee_id = current_employee_id
        if start > end:
            raise ValidationError("start must not be after end")

        flt = RecordFilter(clinic_id=clinic_id, start_date=start, end_date=end, employee_id=employee_id)
        query_rows = []
        page = 1
        while True:
            rows, total = self._attendance.list_records(flt, page=page, page_size=_REPORT_PAGE_SIZE)
            query_rows.extend(rows)
            if not rows or page * _REPORT_PAGE_SIZE >= total:
                break
            page += 1

        summary_map: dict[str, dict] = {}
        out_rows: list[dict] = []

        for r in sorted(query_rows, key=lambda x: (x.work_date, x.employee_id), reverse=True):
            out_rows.append(
                {
                    "work_date": r.work_date.strftime("%Y-%m-%d"),
                    "employee_id": r.employee_id,
                    "branch_id": r.branch_id or "-",
                    "scheduled": (
                        f"{format_hhmm(r.scheduled_start)}-{format_hhmm(r.scheduled_end)}"
                        if r.scheduled_start and r.scheduled_end
                        else "-"
                    ),
                    "check_in": r.check_in_time.strftime("%H:%M") if r.check_in_time else "-",
                    "check_out": r.check_out_time.strftime("%H:%M") if r.check_out_time else "-",
                    "status": r.status.value,
                    "late_minutes": r.late_minutes,
                    "early_leave_minutes": r.early_leave_minutes,
                    "overtime_minutes": r.overtime_minutes,
                    "worked_hours": _hhmm(r.total_work_minutes),
                    "manually_edited": "yes" if r.is_manually_edited else "",
                    "notes": r.notes or "",
                }
            )

            s = summary_map.get(r.employee_id)
            if not s:
                s = {"employee_id": r.employee_id, "days": 0, "late_count": 0, "total_minutes": 0}
                summary_map[r.employee_id] = s
            if r.check_in_time is not None:
                s["days"] += 1
            if r.late_minutes > 0:
                s["late_count"] += 1
            s["total_minutes"] += r.total_work_minutes

        summary = [
            {
                "employee_id": s["employee_id"],
                "days": s["days"],
                "late_count": s["late_count"],
                "total_minutes": s["total_minutes"],
                "total_hours": _hhmm(s["total_minutes"]),
            }
            for s in summary_map.values()
        ]
        summary.sort(key=lambda x: x["total_minutes"], reverse=True)
        return ReportData(rows=out_rows, summary=summary)
