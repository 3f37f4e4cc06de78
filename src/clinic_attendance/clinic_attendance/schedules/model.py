from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Any, Mapping, Optional

from ..common.datetime_utils import format_hhmm, parse_hhmm
from ..core.enums import DayOfWeek
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class DaySchedule:
    """Expected working window for one day of the week."""

    is_working: bool
    start: Optional[time] = None
    end: Optional[time] = None
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @classmethod
    def off(cls) -> "DaySchedule":
        return cls(is_working=False)

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def to_dict(self) -> dict:
        return {
            "is_working": self.is_working,
            "start": format_hhmm(self.start),
            "end": format_hhmm(self.end),
            "break_start": format_hhmm(self.break_start),
            "break_end": format_hhmm(self.break_end),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DaySchedule":
        # Stored work_schedule JSON predates this service and uses camelCase keys.
        is_working = bool(data.get("is_working", data.get("isWorking", False)))
        if not is_working:
            return cls.off()
        return cls(
            is_working=True,
            start=parse_hhmm(data.get("start")),
            end=parse_hhmm(data.get("end")),
            break_start=parse_hhmm(data.get("break_start", data.get("breakStart"))),
            break_end=parse_hhmm(data.get("break_end", data.get("breakEnd"))),
        )


# Keyed by DayOfWeek value (0=Sunday). Missing keys mean "no override for that day".
WeeklySchedule = dict[int, DaySchedule]


def weekly_schedule_to_dict(schedule: WeeklySchedule) -> dict[str, dict]:
    return {DayOfWeek(day).key: day_schedule.to_dict() for day, day_schedule in sorted(schedule.items())}


def weekly_schedule_from_dict(data: Mapping[str, Any]) -> WeeklySchedule:
    """Accepts day names ('monday') or day numbers ('1') as keys."""
    out: WeeklySchedule = {}
    for key, value in data.items():
        if value is None:
            continue
        k = str(key).strip().lower()
        try:
            day = DayOfWeek(int(k)) if k.isdigit() else DayOfWeek[k.upper()]
        except (KeyError, ValueError):
            raise ValidationError(f"Unknown day of week: {key!r}")
        if not isinstance(value, Mapping):
            raise ValidationError(f"{day.key}: expected an object")
        out[day.value] = DaySchedule.from_dict(value)
    return out


@dataclass(frozen=True)
class ClinicHours:
    """One clinic_hours row (one per clinic per day of week)."""

    clinic_id: str
    day_of_week: int
    is_open: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    def to_day_schedule(self) -> DaySchedule:
        if not self.is_open:
            return DaySchedule.off()
        return DaySchedule(
            is_working=True,
            start=self.open_time,
            end=self.close_time,
            break_start=self.break_start,
            break_end=self.break_end,
        )

    @classmethod
    def from_day_schedule(cls, clinic_id: str, day_of_week: int, day: DaySchedule) -> "ClinicHours":
        return cls(
            clinic_id=clinic_id,
            day_of_week=int(day_of_week),
            is_open=day.is_working,
            open_time=day.start,
            close_time=day.end,
            break_start=day.break_start,
            break_end=day.break_end,
        )
