from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.reconciliation import ReconciliationEngine
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .attendance.verifier import AttendanceVerifier
from .common.datetime_utils import now_local
from .core.constants import (
    DEFAULT_RADIUS_METERS,
    DEFAULT_SCAN_CLOCK_SKEW_SECONDS,
    DEFAULT_SCAN_DEBOUNCE_SECONDS,
    DEFAULT_WEEK_START_DAY,
)
from .core.enums import RefreshPeriod
from .database.connection import DBConfig, DatabaseConnection
from .geofence.mysql_branch_repository import MySQLBranchRepository
from .geofence.repository import BranchRepository
from .reports.service import ReportService
from .schedules.mysql_schedule_repository import MySQLScheduleRepository
from .schedules.repository import ScheduleRepository
from .schedules.service import ScheduleService
from .tokens.manager import QRTokenManager
from .tokens.mysql_token_repository import MySQLTokenRepository
from .tokens.repository import TokenRepository
from .tokens.service import TokenService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    clock: Callable[[], datetime]

    schedules_repo: ScheduleRepository
    branches_repo: BranchRepository
    tokens_repo: TokenRepository
    attendance_repo: AttendanceRepository

    token_manager: QRTokenManager
    verifier: AttendanceVerifier

    schedule_service: ScheduleService
    token_service: TokenService
    attendance_service: AttendanceService
    report_service: ReportService


def wire(
    *,
    schedules_repo: ScheduleRepository,
    branches_repo: BranchRepository,
    tokens_repo: TokenRepository,
    attendance_repo: AttendanceRepository,
    settings: Optional[Mapping[str, Any]] = None,
    conn: Optional[DatabaseConnection] = None,
    clock: Callable[[], datetime] = now_local,
) -> Container:
    """Build services on top of any repository implementations (MySQL in the app, fakes in tests)."""

    s = dict(settings or {})
    engine = ReconciliationEngine()

    schedule_service = ScheduleService(schedules_repo)
    token_manager = QRTokenManager(
        tokens_repo,
        branches_repo,
        auto_rotate=bool(s.get("QR_AUTO_ROTATE", True)),
        default_period=RefreshPeriod(str(s.get("QR_DEFAULT_REFRESH_PERIOD", RefreshPeriod.DAILY.value))),
        week_start_day=int(s.get("QR_WEEK_START_DAY", DEFAULT_WEEK_START_DAY)),
        default_radius_meters=float(s.get("QR_DEFAULT_RADIUS_METERS", DEFAULT_RADIUS_METERS)),
        base_url=str(s.get("QR_BASE_URL", "")),
        clock=clock,
    )
    verifier = AttendanceVerifier(
        token_manager,
        attendance_repo,
        schedule_service,
        branches_repo,
        engine=engine,
        location_required=bool(s.get("LOCATION_REQUIRED", False)),
        debounce_seconds=int(s.get("SCAN_DEBOUNCE_SECONDS", DEFAULT_SCAN_DEBOUNCE_SECONDS)),
    )

    return Container(
        conn=conn,
        clock=clock,
        schedules_repo=schedules_repo,
        branches_repo=branches_repo,
        tokens_repo=tokens_repo,
        attendance_repo=attendance_repo,
        token_manager=token_manager,
        verifier=verifier,
        schedule_service=schedule_service,
        token_service=TokenService(token_manager),
        attendance_service=AttendanceService(
            verifier,
            attendance_repo,
            schedule_service,
            engine=engine,
            clock=clock,
            clock_skew_seconds=int(s.get("SCAN_CLOCK_SKEW_SECONDS", DEFAULT_SCAN_CLOCK_SKEW_SECONDS)),
        ),
        report_service=ReportService(attendance_repo, schedule_service, clock=clock),
    )


def build_container(*, db_config: dict, settings: Optional[Mapping[str, Any]] = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    return wire(
        schedules_repo=MySQLScheduleRepository(conn),
        branches_repo=MySQLBranchRepository(conn),
        tokens_repo=MySQLTokenRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        settings=settings,
        conn=conn,
    )
