from __future__ import annotations

from dataclasses import dataclass

from ..schedules.model import DaySchedule
from .strategies.base import ReconciliationStrategy
from .strategies.day_off_strategy import DayOffStrategy
from .strategies.working_day_strategy import WorkingDayStrategy


@dataclass
class ReconciliationStrategyFactory:
    """Factory Pattern: choose the reconciliation strategy from the resolved day."""

    def for_schedule(self, schedule: DaySchedule) -> ReconciliationStrategy:
        if not schedule.is_working:
            return DayOffStrategy()
        return WorkingDayStrategy()
