"""Derive late / early-leave / overtime / total-work minutes from a record.

`reconcile` is pure and can be re-run at any time from the raw timestamps
and the resolved schedule. Whether a record may be reconciled at all
(manual edits) is decided by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..schedules.model import DaySchedule
from .factory import ReconciliationStrategyFactory
from .model import AttendanceRecord, ReconciliationResult


@dataclass(frozen=True)
class ReconciliationEngine:
    factory: ReconciliationStrategyFactory = field(default_factory=ReconciliationStrategyFactory)

    def reconcile(self, record: AttendanceRecord, schedule: DaySchedule) -> ReconciliationResult:
        if record.check_in_time is None:
            return ReconciliationResult()

        strategy = self.factory.for_schedule(schedule)
        return strategy.reconcile(
            check_in=record.check_in_time,
            check_out=record.check_out_time,
            schedule=schedule,
            work_date=record.work_date,
        )
