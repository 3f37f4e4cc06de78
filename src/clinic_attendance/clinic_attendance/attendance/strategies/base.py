from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from ...common.datetime_utils import at_time
from ...schedules.model import DaySchedule
from ..model import ReconciliationResult


def worked_minutes(check_in: datetime, check_out: datetime, schedule: DaySchedule, work_date: date) -> int:
    """Actual elapsed time minus the part of the break inside [check_in, check_out]."""
    seconds = (check_out - check_in).total_seconds()
    if schedule.has_break:
        b_start = max(check_in, at_time(work_date, schedule.break_start))
        b_end = min(check_out, at_time(work_date, schedule.break_end))
        if b_end > b_start:
            seconds -= (b_end - b_start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


class ReconciliationStrategy(ABC):
    """Strategy Pattern: how raw timestamps turn into minutes for one kind of day."""

    @abstractmethod
    def reconcile(
        self,
        *,
        check_in: datetime,
        check_out: Optional[datetime],
        schedule: DaySchedule,
        work_date: date,
    ) -> ReconciliationResult:
        raise NotImplementedError
