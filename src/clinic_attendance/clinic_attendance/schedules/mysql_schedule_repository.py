from __future__ import annotations

import json
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, normalize_mysql_time
from .model import ClinicHours, DaySchedule, WeeklySchedule, weekly_schedule_from_dict, weekly_schedule_to_dict
from .repository import ScheduleRepository


class MySQLScheduleRepository(ScheduleRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_clinic_hours(self, clinic_id: str) -> Sequence[Optional[DaySchedule]]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT clinic_id, day_of_week, is_open, open_time, close_time, break_start, break_end
                FROM clinic_hours
                WHERE clinic_id=%s
                """,
                (clinic_id,),
            )
            rows = fetchall(cur)

        week: list[Optional[DaySchedule]] = [None] * 7
        for r in rows:
            day = int(r["day_of_week"])
            if not 0 <= day <= 6:
                continue
            week[day] = ClinicHours(
                clinic_id=r["clinic_id"],
                day_of_week=day,
                is_open=bool(r["is_open"]),
                open_time=normalize_mysql_time(r.get("open_time")),
                close_time=normalize_mysql_time(r.get("close_time")),
                break_start=normalize_mysql_time(r.get("break_start")),
                break_end=normalize_mysql_time(r.get("break_end")),
            ).to_day_schedule()
        return week

    def save_clinic_hours(self, clinic_id: str, hours: WeeklySchedule) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            for day, day_schedule in sorted(hours.items()):
                row = ClinicHours.from_day_schedule(clinic_id, day, day_schedule)
                cur.execute(
                    """
                    INSERT INTO clinic_hours(clinic_id, day_of_week, is_open, open_time, close_time, break_start, break_end)
                    VALUES(%s,%s,%s,%s,%s,%s,%s)
                    ON DUPLICATE KEY UPDATE
                        is_open=VALUES(is_open), open_time=VALUES(open_time), close_time=VALUES(close_time),
                        break_start=VALUES(break_start), break_end=VALUES(break_end)
                    """,
                    (
                        row.clinic_id,
                        row.day_of_week,
                        int(row.is_open),
                        row.open_time,
                        row.close_time,
                        row.break_start,
                        row.break_end,
                    ),
                )

    def get_employee_override(self, employee_id: str, clinic_id: str) -> Optional[WeeklySchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT work_schedule FROM employee_work_schedules WHERE employee_id=%s AND clinic_id=%s",
                (employee_id, clinic_id),
            )
            r = fetchone(cur)
        if not r or not r.get("work_schedule"):
            return None

        raw = r["work_schedule"]
        data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
        return weekly_schedule_from_dict(data) or None

    def save_employee_override(self, *, employee_id: str, clinic_id: str, schedule: WeeklySchedule) -> bool:
        payload = json.dumps(weekly_schedule_to_dict(schedule))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT clinic_id FROM employee_work_schedules WHERE employee_id=%s FOR UPDATE",
                (employee_id,),
            )
            owner = fetchone(cur)
            if owner and owner["clinic_id"] != clinic_id:
                return False
            cur.execute(
                """
                INSERT INTO employee_work_schedules(employee_id, clinic_id, work_schedule)
                VALUES(%s,%s,%s)
                ON DUPLICATE KEY UPDATE work_schedule=VALUES(work_schedule)
                """,
                (employee_id, clinic_id, payload),
            )
            return True

    def clear_employee_override(self, employee_id: str, clinic_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM employee_work_schedules WHERE employee_id=%s AND clinic_id=%s",
                (employee_id, clinic_id),
            )
            return cur.rowcount > 0
