from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class MonthlyStatistics:
    """Read-model: one employee's attendance figures for a calendar month."""

    employee_id: str
    clinic_id: str
    year: int
    month: int

    total_work_days: int = 0
    present_days: int = 0
    absent_days: int = 0
    leave_days: int = 0

    late_count: int = 0
    total_late_minutes: int = 0
    avg_late_minutes: float = 0.0

    early_leave_count: int = 0
    total_early_leave_minutes: int = 0
    avg_early_leave_minutes: float = 0.0

    overtime_count: int = 0
    total_overtime_minutes: int = 0
    avg_overtime_minutes: float = 0.0

    total_work_minutes: int = 0
    avg_work_minutes_per_day: float = 0.0

    attendance_rate: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReportData:
    rows: list[dict]
    summary: list[dict]
