from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from ...schedules.model import DaySchedule
from ..model import ReconciliationResult
from .base import ReconciliationStrategy, worked_minutes


class DayOffStrategy(ReconciliationStrategy):
    """Scan on a non-working day: no penalty or credit, only time worked."""

    def reconcile(
        self,
        *,
        check_in: datetime,
        check_out: Optional[datetime],
        schedule: DaySchedule,
        work_date: date,
    ) -> ReconciliationResult:
        if check_out is None:
            return ReconciliationResult()
        return ReconciliationResult(total_work_minutes=worked_minutes(check_in, check_out, schedule, work_date))
