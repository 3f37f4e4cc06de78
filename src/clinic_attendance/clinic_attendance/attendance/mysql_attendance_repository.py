from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, Sequence

from mysql.connector.errors import IntegrityError

from ..core.enums import AttendanceStatus
from ..core.exceptions import RecordConflict
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key, normalize_mysql_time
from ..geofence.model import Coordinate
from .model import AttendanceRecord, ReconciliationResult, RecordFilter
from .repository import AttendanceRepository

_COLUMNS = """
    record_id, employee_id, clinic_id, branch_id, work_date,
    check_in_time, check_out_time, check_in_lat, check_in_lon, check_out_lat, check_out_lon,
    check_in_device, check_out_device, scheduled_start, scheduled_end,
    late_minutes, early_leave_minutes, overtime_minutes, total_work_minutes,
    status, is_manually_edited, edited_by, edited_at, notes
"""


def _row_to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        employee_id=r["employee_id"],
        clinic_id=r["clinic_id"],
        branch_id=r.get("branch_id"),
        work_date=r["work_date"],
        status=AttendanceStatus(r["status"]),
        check_in_time=r.get("check_in_time"),
        check_out_time=r.get("check_out_time"),
        check_in_lat=r.get("check_in_lat"),
        check_in_lon=r.get("check_in_lon"),
        check_out_lat=r.get("check_out_lat"),
        check_out_lon=r.get("check_out_lon"),
        check_in_device=r.get("check_in_device"),
        check_out_device=r.get("check_out_device"),
        scheduled_start=normalize_mysql_time(r.get("scheduled_start")),
        scheduled_end=normalize_mysql_time(r.get("scheduled_end")),
        late_minutes=int(r.get("late_minutes") or 0),
        early_leave_minutes=int(r.get("early_leave_minutes") or 0),
        overtime_minutes=int(r.get("overtime_minutes") or 0),
        total_work_minutes=int(r.get("total_work_minutes") or 0),
        is_manually_edited=bool(r.get("is_manually_edited")),
        edited_by=r.get("edited_by"),
        edited_at=r.get("edited_at"),
        notes=r.get("notes"),
    )


def _lat(location: Optional[Coordinate]) -> Optional[float]:
    return location.lat if location else None


def _lon(location: Optional[Coordinate]) -> Optional[float]:
    return location.lon if location else None


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, record_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s", (int(record_id),))
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def get_for_employee_and_date(self, *, employee_id: str, clinic_id: str, work_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE employee_id=%s AND clinic_id=%s AND work_date=%s
                """,
                (employee_id, clinic_id, work_date),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

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
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(
                        employee_id, clinic_id, branch_id, work_date, check_in_time,
                        check_in_lat, check_in_lon, check_in_device,
                        scheduled_start, scheduled_end, late_minutes, status
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        employee_id,
                        clinic_id,
                        branch_id,
                        work_date,
                        check_in_time,
                        _lat(location),
                        _lon(location),
                        device_info,
                        scheduled_start,
                        scheduled_end,
                        int(late_minutes),
                        AttendanceStatus.CHECKED_IN.value,
                    ),
                )
                record_id = int(cur.lastrowid)
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise RecordConflict(f"attendance already exists for employee={employee_id} date={work_date}")
            raise

        return AttendanceRecord(
            record_id=record_id,
            employee_id=employee_id,
            clinic_id=clinic_id,
            branch_id=branch_id,
            work_date=work_date,
            status=AttendanceStatus.CHECKED_IN,
            check_in_time=check_in_time,
            check_in_lat=_lat(location),
            check_in_lon=_lon(location),
            check_in_device=device_info,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            late_minutes=int(late_minutes),
        )

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET branch_id=COALESCE(%s, branch_id), check_in_time=%s,
                    check_in_lat=%s, check_in_lon=%s, check_in_device=%s,
                    scheduled_start=%s, scheduled_end=%s, late_minutes=%s, status=%s
                WHERE record_id=%s AND check_in_time IS NULL AND status=%s
                """,
                (
                    branch_id,
                    check_in_time,
                    _lat(location),
                    _lon(location),
                    device_info,
                    scheduled_start,
                    scheduled_end,
                    int(late_minutes),
                    AttendanceStatus.CHECKED_IN.value,
                    int(record_id),
                    AttendanceStatus.NOT_CHECKED_IN.value,
                ),
            )
            return cur.rowcount > 0

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
        sets = ["check_out_time=%s", "check_out_lat=%s", "check_out_lon=%s", "check_out_device=%s", "status=%s"]
        params: list[object] = [
            check_out_time,
            _lat(location),
            _lon(location),
            device_info,
            AttendanceStatus.CHECKED_OUT.value,
        ]
        if metrics is not None:
            # Metrics and the window they were computed against are written together.
            sets += [
                "scheduled_start=%s",
                "scheduled_end=%s",
                "late_minutes=%s",
                "early_leave_minutes=%s",
                "overtime_minutes=%s",
                "total_work_minutes=%s",
            ]
            params += [
                scheduled_start,
                scheduled_end,
                metrics.late_minutes,
                metrics.early_leave_minutes,
                metrics.overtime_minutes,
                metrics.total_work_minutes,
            ]
        params += [int(record_id), expected_check_in]

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE attendance_records
                SET {", ".join(sets)}
                WHERE record_id=%s AND check_in_time=%s AND check_out_time IS NULL
                """,
                tuple(params),
            )
            return cur.rowcount > 0

    def save_metrics(self, record_id: int, metrics: ReconciliationResult, *, clear_manual_edit: bool = False) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET late_minutes=%s, early_leave_minutes=%s, overtime_minutes=%s, total_work_minutes=%s,
                    is_manually_edited=IF(%s, 0, is_manually_edited)
                WHERE record_id=%s
                """,
                (
                    metrics.late_minutes,
                    metrics.early_leave_minutes,
                    metrics.overtime_minutes,
                    metrics.total_work_minutes,
                    bool(clear_manual_edit),
                    int(record_id),
                ),
            )
            return cur.rowcount > 0

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET check_in_time=%s, check_out_time=%s, status=%s, notes=%s,
                    is_manually_edited=1, edited_by=%s, edited_at=%s
                WHERE record_id=%s
                """,
                (check_in_time, check_out_time, status.value, notes, edited_by, edited_at, int(record_id)),
            )
            return cur.rowcount > 0

    def list_records(self, flt: RecordFilter, *, page: int, page_size: int) -> tuple[Sequence[AttendanceRecord], int]:
        clauses = ["clinic_id=%s", "work_date BETWEEN %s AND %s"]
        params: list[object] = [flt.clinic_id, flt.start_date, flt.end_date]

        if flt.branch_id:
            clauses.append("branch_id=%s")
            params.append(flt.branch_id)
        if flt.employee_id:
            clauses.append("employee_id=%s")
            params.append(flt.employee_id)
        if flt.status is not None:
            clauses.append("status=%s")
            params.append(flt.status.value)

        where = " AND ".join(clauses)
        offset = (int(page) - 1) * int(page_size)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM attendance_records WHERE {where}", tuple(params))
            total = int((fetchone(cur) or {}).get("n") or 0)

            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE {where}
                ORDER BY work_date DESC, employee_id ASC
                LIMIT %s OFFSET %s
                """,
                tuple(params) + (int(page_size), offset),
            )
            return [_row_to_record(r) for r in fetchall(cur)], total

    def list_for_clinic_date(self, clinic_id: str, work_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE clinic_id=%s AND work_date=%s
                ORDER BY employee_id
                """,
                (clinic_id, work_date),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_for_employee(
        self,
        *,
        employee_id: str,
        clinic_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> Sequence[AttendanceRecord]:
        clauses = ["employee_id=%s", "clinic_id=%s"]
        params: list[object] = [employee_id, clinic_id]
        if start_date is not None:
            clauses.append("work_date >= %s")
            params.append(start_date)
        if end_date is not None:
            clauses.append("work_date <= %s")
            params.append(end_date)

        sql = f"SELECT {_COLUMNS} FROM attendance_records WHERE {' AND '.join(clauses)} ORDER BY work_date DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_record(r) for r in fetchall(cur)]
