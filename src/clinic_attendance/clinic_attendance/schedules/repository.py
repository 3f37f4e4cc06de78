from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import DaySchedule, WeeklySchedule


class ScheduleRepository(Protocol):
    def get_clinic_hours(self, clinic_id: str) -> Sequence[Optional[DaySchedule]]:
        """Seven entries indexed by day of week (0=Sunday); None where no row exists."""

        raise NotImplementedError

    def save_clinic_hours(self, clinic_id: str, hours: WeeklySchedule) -> None:
        raise NotImplementedError

    def get_employee_override(self, employee_id: str, clinic_id: str) -> Optional[WeeklySchedule]:
        raise NotImplementedError

    def save_employee_override(self, *, employee_id: str, clinic_id: str, schedule: WeeklySchedule) -> bool:
        """Upsert the override. False when the employee's override belongs to another clinic."""

        raise NotImplementedError

    def clear_employee_override(self, employee_id: str, clinic_id: str) -> bool:
        raise NotImplementedError
