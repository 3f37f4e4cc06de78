from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from ...common.datetime_utils import at_time, minutes_between
from ...schedules.model import DaySchedule
from ..model import ReconciliationResult
from .base import ReconciliationStrategy, worked_minutes


class WorkingDayStrategy(ReconciliationStrategy):
    """Scheduled day: late, early leave and overtime are measured against the window."""

    def reconcile(
        self,
        *,
        check_in: datetime,
        check_out: Optional[datetime],
        schedule: DaySchedule,
        work_date: date,
    ) -> ReconciliationResult:
        late = 0
        if schedule.start is not None:
            start = at_time(work_date, schedule.start)
            if check_in > start:
                late = minutes_between(start, check_in)

        if check_out is None:
            return ReconciliationResult(late_minutes=late)

        early = overtime = 0
        if schedule.end is not None:
            end = at_time(work_date, schedule.end)
            if check_out < end:
                early = minutes_between(check_out, end)
            elif check_out > end:
                overtime = minutes_between(end, check_out)

        return ReconciliationResult(
            late_minutes=late,
            early_leave_minutes=early,
            overtime_minutes=overtime,
            total_work_minutes=worked_minutes(check_in, check_out, schedule, work_date),
        )
