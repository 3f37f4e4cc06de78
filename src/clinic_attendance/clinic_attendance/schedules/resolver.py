"""Merge clinic-wide opening hours with an employee's own weekly schedule.

The employee override wins per day; clinic hours fill the gaps; a day found
in neither source is a day off. Nothing here caches: callers re-resolve
whenever either source changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence

from ..common.datetime_utils import day_of_week, format_hhmm
from ..core.enums import DayOfWeek
from ..core.exceptions import ValidationError
from .model import DaySchedule, WeeklySchedule

ClinicWeek = Sequence[Optional[DaySchedule]]


@dataclass(frozen=True)
class ScheduleResolver:
    def resolve(
        self,
        clinic_hours: Optional[ClinicWeek],
        employee_override: Optional[WeeklySchedule],
        day: int,
    ) -> DaySchedule:
        day = DayOfWeek(day).value

        if employee_override and employee_override.get(day) is not None:
            return employee_override[day]

        if clinic_hours and day < len(clinic_hours) and clinic_hours[day] is not None:
            return clinic_hours[day]

        return DaySchedule.off()

    def resolve_for_date(
        self,
        clinic_hours: Optional[ClinicWeek],
        employee_override: Optional[WeeklySchedule],
        work_date: date,
    ) -> DaySchedule:
        return self.resolve(clinic_hours, employee_override, day_of_week(work_date))

    def resolve_week(
        self,
        clinic_hours: Optional[ClinicWeek],
        employee_override: Optional[WeeklySchedule],
    ) -> WeeklySchedule:
        return {d.value: self.resolve(clinic_hours, employee_override, d.value) for d in DayOfWeek}


def validate_day_schedule(day: DaySchedule, *, label: str = "day") -> DaySchedule:
    if not day.is_working:
        if any(t is not None for t in (day.start, day.end, day.break_start, day.break_end)):
            raise ValidationError(f"{label}: a day off must not carry working hours")
        return day

    if day.start is None or day.end is None:
        raise ValidationError(f"{label}: a working day needs both start and end")
    if day.start >= day.end:
        raise ValidationError(f"{label}: start must be before end")

    if (day.break_start is None) != (day.break_end is None):
        raise ValidationError(f"{label}: set both break start and break end, or neither")
    if day.has_break:
        if day.break_start >= day.break_end:
            raise ValidationError(f"{label}: break start must be before break end")
        if day.break_start < day.start or day.break_end > day.end:
            raise ValidationError(f"{label}: break must fall inside working hours")
    return day


def validate_weekly_schedule(schedule: WeeklySchedule) -> WeeklySchedule:
    for day, day_schedule in schedule.items():
        validate_day_schedule(day_schedule, label=DayOfWeek(day).key)
    return schedule


def _span_minutes(start, end) -> int:
    anchor = date(2000, 1, 1)
    return int((datetime.combine(anchor, end) - datetime.combine(anchor, start)).total_seconds() // 60)


def scheduled_work_minutes(day: DaySchedule) -> int:
    if not day.is_working or day.start is None or day.end is None:
        return 0
    minutes = _span_minutes(day.start, day.end)
    if day.has_break:
        minutes -= _span_minutes(day.break_start, day.break_end)
    return max(minutes, 0)


def weekly_work_minutes(schedule: WeeklySchedule) -> int:
    return sum(scheduled_work_minutes(d) for d in schedule.values())


def format_day_schedule(day: DaySchedule) -> str:
    if not day.is_working:
        return "day off"
    if day.start is None or day.end is None:
        return "not set"
    text = f"{format_hhmm(day.start)}-{format_hhmm(day.end)}"
    if day.has_break:
        text += f" (break {format_hhmm(day.break_start)}-{format_hhmm(day.break_end)})"
    return text
