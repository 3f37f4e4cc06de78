from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .model import DaySchedule, WeeklySchedule
from .repository import ScheduleRepository
from .resolver import ScheduleResolver, validate_weekly_schedule, weekly_work_minutes

logger = logging.getLogger(__name__)


class ScheduleService:
    def __init__(self, schedules: ScheduleRepository, *, resolver: Optional[ScheduleResolver] = None):
        self._schedules = schedules
        self._resolver = resolver or ScheduleResolver()

    def effective_for(self, *, clinic_id: str, employee_id: str, work_date: date) -> DaySchedule:
        # Both sources are read on every call so edits apply to the next scan.
        clinic_hours = self._schedules.get_clinic_hours(clinic_id)
        override = self._schedules.get_employee_override(employee_id, clinic_id)
        return self._resolver.resolve_for_date(clinic_hours, override, work_date)

    def effective_week(self, *, clinic_id: str, employee_id: str) -> WeeklySchedule:
        clinic_hours = self._schedules.get_clinic_hours(clinic_id)
        override = self._schedules.get_employee_override(employee_id, clinic_id)
        return self._resolver.resolve_week(clinic_hours, override)

    def clinic_week(self, clinic_id: str) -> WeeklySchedule:
        return self._resolver.resolve_week(self._schedules.get_clinic_hours(clinic_id), None)

    def weekly_minutes(self, *, clinic_id: str, employee_id: str) -> int:
        return weekly_work_minutes(self.effective_week(clinic_id=clinic_id, employee_id=employee_id))

    def update_clinic_hours(self, *, current_role: Role, clinic_id: str, hours: WeeklySchedule) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only clinic admins can change clinic hours")
        if not hours:
            raise ValidationError("At least one day is required")

        validate_weekly_schedule(hours)
        self._schedules.save_clinic_hours(clinic_id, hours)
        logger.info("clinic hours updated clinic=%s days=%s", clinic_id, sorted(hours))

    def update_employee_schedule(
        self,
        *,
        current_role: Role,
        clinic_id: str,
        employee_id: str,
        schedule: WeeklySchedule,
    ) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only clinic admins can change work schedules")
        if not schedule:
            raise ValidationError("At least one day is required")

        validate_weekly_schedule(schedule)
        if not self._schedules.save_employee_override(employee_id=employee_id, clinic_id=clinic_id, schedule=schedule):
            raise NotFoundError("Employee not found in this clinic")
        logger.info("work schedule updated employee=%s clinic=%s days=%s", employee_id, clinic_id, sorted(schedule))

    def initialize_from_clinic(self, *, current_role: Role, clinic_id: str, employee_id: str) -> WeeklySchedule:
        """Seed an employee's own schedule with a copy of the clinic hours."""

        week = self.clinic_week(clinic_id)
        self.update_employee_schedule(
            current_role=current_role,
            clinic_id=clinic_id,
            employee_id=employee_id,
            schedule=week,
        )
        return week

    def clear_employee_schedule(self, *, current_role: Role, clinic_id: str, employee_id: str) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only clinic admins can change work schedules")
        if not self._schedules.clear_employee_override(employee_id, clinic_id):
            raise ValidationError("Employee has no schedule override in this clinic")
