"""Turn one QR scan into a check-in or a check-out.

Checks run in a fixed order: token lookup, token window, location, then the
record's state machine. Every failure is raised before anything is written,
and each write is a single conditional statement so two racing scans for
the same employee/day cannot both succeed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from ..common.datetime_utils import to_local_naive
from ..core.constants import DEFAULT_SCAN_DEBOUNCE_SECONDS
from ..core.enums import AttendanceStatus, GeoDecision, ScanAction
from ..core.exceptions import (
    AlreadyCompleted,
    ConcurrentUpdate,
    InvalidSequence,
    OutOfRange,
    RecordConflict,
    TokenExpired,
    TokenNotFound,
)
from ..geofence.checker import haversine_meters, nearest_branch, within
from ..geofence.model import Coordinate
from ..geofence.repository import BranchRepository
from ..schedules.service import ScheduleService
from ..tokens.manager import QRTokenManager
from ..tokens.model import QRToken
from .model import AttendanceRecord, ScanEvent, ScanResult
from .reconciliation import ReconciliationEngine
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Placement:
    branch_id: Optional[str]
    distance_meters: Optional[float] = None


class AttendanceVerifier:
    def __init__(
        self,
        tokens: QRTokenManager,
        attendance: AttendanceRepository,
        schedules: ScheduleService,
        branches: Optional[BranchRepository] = None,
        *,
        engine: Optional[ReconciliationEngine] = None,
        location_required: bool = False,
        debounce_seconds: int = DEFAULT_SCAN_DEBOUNCE_SECONDS,
    ):
        self._tokens = tokens
        self._attendance = attendance
        self._schedules = schedules
        self._branches = branches
        self._engine = engine or ReconciliationEngine()
        self._location_required = bool(location_required)
        self._debounce = timedelta(seconds=int(debounce_seconds))

    def verify(self, scan: ScanEvent) -> ScanResult:
        at = to_local_naive(scan.timestamp)

        token = self._resolve_token(scan)
        if not self._tokens.validate(token, at):
            raise TokenExpired("This QR code has expired; refresh the clinic QR and scan again")

        placement = self._check_location(token, scan)

        record = self._attendance.get_for_employee_and_date(
            employee_id=scan.employee_id,
            clinic_id=scan.clinic_id,
            work_date=at.date(),
        )

        if record is None or record.check_in_time is None:
            return self._check_in(scan, at, record, placement)
        if record.check_out_time is None:
            return self._check_out(scan, at, record, placement)
        raise AlreadyCompleted("Already checked in and out today", record=record)

    def _resolve_token(self, scan: ScanEvent) -> QRToken:
        token = self._tokens.find_by_secret(scan.token)
        # A token from another clinic or branch is reported exactly like an unknown one.
        if token is None or token.clinic_id != scan.clinic_id:
            raise TokenNotFound("Unknown QR code")
        if scan.branch_id and token.branch_id and token.branch_id != scan.branch_id:
            raise TokenNotFound("Unknown QR code")
        return token

    def _check_location(self, token: QRToken, scan: ScanEvent) -> _Placement:
        branch_id = token.branch_id or scan.branch_id
        reported = scan.location

        geofence = token.geofence
        if geofence is not None:
            decision = within(reported, geofence.center, geofence.radius_meters, required=self._location_required)
            distance = haversine_meters(reported, geofence.center) if reported else None
            self._raise_if_outside(decision, distance, geofence.radius_meters)
            return _Placement(branch_id=branch_id, distance_meters=distance)

        if self._branches is None:
            return _Placement(branch_id=branch_id)

        if branch_id:
            branch = self._branches.get_by_id(branch_id)
            if branch is None or branch.clinic_id != token.clinic_id:
                return _Placement(branch_id=branch_id)
            decision = within(reported, branch.center, branch.radius_meters, required=self._location_required)
            distance = haversine_meters(reported, branch.center) if reported and branch.center else None
            self._raise_if_outside(decision, distance, branch.radius_meters)
            return _Placement(branch_id=branch_id, distance_meters=distance)

        # Clinic-wide QR: attribute the scan to the nearest branch and hold it to that branch's radius.
        if reported is None:
            return _Placement(branch_id=None)
        match = nearest_branch(reported, self._branches.list_active(token.clinic_id))
        if match is None:
            return _Placement(branch_id=None)
        if not match.within_radius:
            self._raise_if_outside(GeoDecision.FAIL, match.distance_meters, match.branch.radius_meters, match.branch.name)
        return _Placement(branch_id=match.branch.branch_id, distance_meters=match.distance_meters)

    @staticmethod
    def _raise_if_outside(
        decision: GeoDecision,
        distance: Optional[float],
        radius: float,
        site: str = "the clinic",
    ) -> None:
        if decision != GeoDecision.FAIL:
            return
        if distance is None:
            raise OutOfRange("Location is required to check in at this clinic")
        raise OutOfRange(
            f"You are {round(distance)} m from {site} (allowed {round(radius)} m); move closer and scan again",
            distance_meters=distance,
        )

    def _check_in(
        self,
        scan: ScanEvent,
        at: datetime,
        record: Optional[AttendanceRecord],
        placement: _Placement,
    ) -> ScanResult:
        if record is not None and not record.status.can_transition_to(AttendanceStatus.CHECKED_IN):
            raise InvalidSequence(f"Today is recorded as {record.status.value}; ask an admin to correct it", record=record)

        schedule = self._schedules.effective_for(clinic_id=scan.clinic_id, employee_id=scan.employee_id, work_date=at.date())
        provisional = AttendanceRecord(
            record_id=0,
            employee_id=scan.employee_id,
            clinic_id=scan.clinic_id,
            work_date=at.date(),
            check_in_time=at,
        )
        late = self._engine.reconcile(provisional, schedule).late_minutes

        fields = dict(
            branch_id=placement.branch_id,
            check_in_time=at,
            location=scan.location,
            device_info=scan.device_info,
            scheduled_start=schedule.start,
            scheduled_end=schedule.end,
            late_minutes=late,
        )

        if record is None:
            try:
                saved = self._attendance.create_checkin(
                    employee_id=scan.employee_id,
                    clinic_id=scan.clinic_id,
                    work_date=at.date(),
                    **fields,
                )
            except RecordConflict:
                raise ConcurrentUpdate("Another scan created today's record first")
        else:
            if not self._attendance.mark_checkin(record_id=record.record_id, **fields):
                raise ConcurrentUpdate("Another scan checked in first", record=record)
            saved = replace(
                record,
                branch_id=placement.branch_id or record.branch_id,
                status=AttendanceStatus.CHECKED_IN,
                check_in_time=at,
                check_in_lat=scan.location.lat if scan.location else None,
                check_in_lon=scan.location.lon if scan.location else None,
                check_in_device=scan.device_info,
                scheduled_start=schedule.start,
                scheduled_end=schedule.end,
                late_minutes=late,
            )

        logger.info(
            "check-in employee=%s clinic=%s branch=%s at=%s late=%s",
            scan.employee_id,
            scan.clinic_id,
            saved.branch_id,
            at.isoformat(),
            late,
        )
        return ScanResult(action=ScanAction.CHECK_IN, record=saved, distance_meters=placement.distance_meters)

    def _check_out(
        self,
        scan: ScanEvent,
        at: datetime,
        record: AttendanceRecord,
        placement: _Placement,
    ) -> ScanResult:
        check_in = record.check_in_time
        if at < check_in:
            raise InvalidSequence("Scan time is earlier than today's check-in", record=record)
        if at - check_in <= self._debounce:
            return ScanResult(
                action=ScanAction.CHECK_IN,
                record=record,
                duplicate=True,
                distance_meters=placement.distance_meters,
            )
        if not record.status.can_transition_to(AttendanceStatus.CHECKED_OUT):
            raise InvalidSequence(f"Today is recorded as {record.status.value}; ask an admin to correct it", record=record)

        checked_out = replace(
            record,
            status=AttendanceStatus.CHECKED_OUT,
            check_out_time=at,
            check_out_lat=scan.location.lat if scan.location else None,
            check_out_lon=scan.location.lon if scan.location else None,
            check_out_device=scan.device_info,
        )

        metrics = None
        if not record.is_manually_edited:
            schedule = self._schedules.effective_for(
                clinic_id=record.clinic_id,
                employee_id=record.employee_id,
                work_date=record.work_date,
            )
            metrics = self._engine.reconcile(checked_out, schedule)
            checked_out = replace(
                checked_out,
                scheduled_start=schedule.start,
                scheduled_end=schedule.end,
                late_minutes=metrics.late_minutes,
                early_leave_minutes=metrics.early_leave_minutes,
                overtime_minutes=metrics.overtime_minutes,
                total_work_minutes=metrics.total_work_minutes,
            )

        ok = self._attendance.mark_checkout(
            record_id=record.record_id,
            expected_check_in=check_in,
            check_out_time=at,
            location=scan.location,
            device_info=scan.device_info,
            metrics=metrics,
            scheduled_start=checked_out.scheduled_start,
            scheduled_end=checked_out.scheduled_end,
        )
        if not ok:
            raise ConcurrentUpdate("Another scan checked out first", record=record)

        logger.info(
            "check-out employee=%s clinic=%s at=%s total=%s reconciled=%s",
            record.employee_id,
            record.clinic_id,
            at.isoformat(),
            checked_out.total_work_minutes,
            metrics is not None,
        )
        return ScanResult(action=ScanAction.CHECK_OUT, record=checked_out, distance_meters=placement.distance_meters)
