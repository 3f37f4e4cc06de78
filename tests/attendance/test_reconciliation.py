from datetime import date, datetime, time, timedelta

import pytest

from src.clinic_attendance.clinic_attendance.attendance.factory import ReconciliationStrategyFactory
from src.clinic_attendance.clinic_attendance.attendance.model import AttendanceRecord, ReconciliationResult
from src.clinic_attendance.clinic_attendance.attendance.reconciliation import ReconciliationEngine
from src.clinic_attendance.clinic_attendance.attendance.strategies.day_off_strategy import DayOffStrategy
from src.clinic_attendance.clinic_attendance.attendance.strategies.working_day_strategy import WorkingDayStrategy
from src.clinic_attendance.clinic_attendance.schedules.model import DaySchedule

MONDAY = date(2025, 3, 3)
SUNDAY = date(2025, 3, 2)
WITH_LUNCH = DaySchedule(is_working=True, start=time(9), end=time(18), break_start=time(12), break_end=time(13))
NO_BREAK = DaySchedule(is_working=True, start=time(9), end=time(17))


def _record(check_in, check_out=None, work_date=MONDAY):
    return AttendanceRecord(
        record_id=1,
        employee_id="e1",
        clinic_id="clinic-1",
        work_date=work_date,
        check_in_time=check_in,
        check_out_time=check_out,
    )


def _at(h, m=0, s=0, day=MONDAY):
    return datetime.combine(day, time(h, m, s))


def test_late_arrival_with_overtime_counts_actual_time():
    result = ReconciliationEngine().reconcile(_record(_at(9, 10), _at(18, 30)), WITH_LUNCH)

    assert result == ReconciliationResult(late_minutes=10, early_leave_minutes=0, overtime_minutes=30, total_work_minutes=500)


@pytest.mark.parametrize("schedule, expected_total", [(WITH_LUNCH, 480), (NO_BREAK, 480)])
def test_exact_schedule_has_no_penalties(schedule, expected_total):
    check_in = datetime.combine(MONDAY, schedule.start)
    check_out = datetime.combine(MONDAY, schedule.end)

    result = ReconciliationEngine().reconcile(_record(check_in, check_out), schedule)

    assert (result.late_minutes, result.early_leave_minutes, result.overtime_minutes) == (0, 0, 0)
    assert result.total_work_minutes == expected_total


@pytest.mark.parametrize("n", [1, 15, 59, 180])
def test_late_minutes(n):
    result = ReconciliationEngine().reconcile(_record(_at(9) + timedelta(minutes=n)), WITH_LUNCH)

    assert result.late_minutes == n


@pytest.mark.parametrize("m", [1, 30, 120])
def test_early_leave_minutes(m):
    result = ReconciliationEngine().reconcile(_record(_at(9), _at(18) - timedelta(minutes=m)), WITH_LUNCH)

    assert result.early_leave_minutes == m
    assert result.overtime_minutes == 0


@pytest.mark.parametrize("k", [1, 45, 200])
def test_overtime_minutes(k):
    result = ReconciliationEngine().reconcile(_record(_at(9), _at(18) + timedelta(minutes=k)), WITH_LUNCH)

    assert result.overtime_minutes == k
    assert result.early_leave_minutes == 0


def test_partial_break_overlap_only_subtracts_overlap():
    result = ReconciliationEngine().reconcile(_record(_at(12, 30), _at(18)), WITH_LUNCH)

    assert result.late_minutes == 210
    # 330 minutes on site minus the 30 minutes of lunch after arrival
    assert result.total_work_minutes == 300


def test_worked_entirely_inside_break_is_zero():
    result = ReconciliationEngine().reconcile(_record(_at(12, 10), _at(12, 50)), WITH_LUNCH)

    assert result.total_work_minutes == 0


def test_minutes_are_floored():
    result = ReconciliationEngine().reconcile(_record(_at(9, 10, 59), _at(18, 0, 30)), NO_BREAK)

    assert result.late_minutes == 10
    assert result.overtime_minutes == 60


def test_missing_checkout_only_late():
    result = ReconciliationEngine().reconcile(_record(_at(9, 20)), WITH_LUNCH)

    assert result == ReconciliationResult(late_minutes=20)


def test_day_off_counts_time_without_penalties():
    record = _record(_at(10, day=SUNDAY), _at(15, 5, day=SUNDAY), work_date=SUNDAY)

    result = ReconciliationEngine().reconcile(record, DaySchedule.off())

    assert result == ReconciliationResult(total_work_minutes=305)


def test_no_check_in_is_all_zero():
    assert ReconciliationEngine().reconcile(_record(None), WITH_LUNCH) == ReconciliationResult()


def test_factory_picks_strategy_by_day_type():
    factory = ReconciliationStrategyFactory()

    assert isinstance(factory.for_schedule(WITH_LUNCH), WorkingDayStrategy)
    assert isinstance(factory.for_schedule(DaySchedule.off()), DayOffStrategy)
