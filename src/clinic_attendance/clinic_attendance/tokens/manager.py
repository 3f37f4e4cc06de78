"""Issue, rotate and validate clinic QR tokens.

Rotation is lazy: nothing runs in the background, `current_token` issues a
fresh token on demand once the previous window has closed. The store's
unique key on (clinic, branch, valid_from) makes concurrent issuance for the
same cycle single-writer; the loser re-reads the winner's row.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import day_of_week, end_of_window, now_local, start_of_day
from ..core.constants import DEFAULT_RADIUS_METERS, DEFAULT_WEEK_START_DAY, QR_URL_MARKER
from ..core.enums import RefreshPeriod
from ..core.exceptions import TokenCycleConflict, ValidationError
from ..geofence.repository import BranchRepository
from .model import Geofence, QRToken
from .repository import TokenRepository

logger = logging.getLogger(__name__)


def extract_secret(scanned: str) -> str:
    """Accept a bare secret or the '<base>/qr/<secret>' URL printed in the QR image."""
    value = (scanned or "").strip()
    if QR_URL_MARKER in value:
        value = value.rsplit(QR_URL_MARKER, 1)[-1]
    return value.split("?", 1)[0].split("#", 1)[0].strip("/ ")


def _new_secret() -> str:
    return secrets.token_urlsafe(24)


class QRTokenManager:
    def __init__(
        self,
        tokens: TokenRepository,
        branches: Optional[BranchRepository] = None,
        *,
        auto_rotate: bool = True,
        default_period: RefreshPeriod = RefreshPeriod.DAILY,
        week_start_day: int = DEFAULT_WEEK_START_DAY,
        default_radius_meters: float = DEFAULT_RADIUS_METERS,
        base_url: str = "",
        clock: Callable[[], datetime] = now_local,
        secret_factory: Callable[[], str] = _new_secret,
    ):
        if not 0 <= int(week_start_day) <= 6:
            raise ValueError("week_start_day must be 0 (Sunday) .. 6 (Saturday)")
        if default_period == RefreshPeriod.CUSTOM:
            raise ValueError("default refresh period cannot be custom")

        self._tokens = tokens
        self._branches = branches
        self._auto_rotate = bool(auto_rotate)
        self._default_period = default_period
        self._week_start_day = int(week_start_day)
        self._default_radius = float(default_radius_meters)
        self._base_url = base_url.rstrip("/")
        self._clock = clock
        self._secret_factory = secret_factory

    def cycle_window(
        self,
        refresh_period: RefreshPeriod,
        now: datetime,
        *,
        valid_until: Optional[datetime] = None,
    ) -> tuple[datetime, datetime]:
        if refresh_period == RefreshPeriod.DAILY:
            start = start_of_day(now)
            return start, end_of_window(start + timedelta(days=1))

        if refresh_period == RefreshPeriod.WEEKLY:
            days_back = (day_of_week(now.date()) - self._week_start_day) % 7
            start = start_of_day(now) - timedelta(days=days_back)
            return start, end_of_window(start + timedelta(days=7))

        if valid_until is None:
            raise ValidationError("A custom refresh period needs an explicit valid_until")
        if valid_until < now:
            raise ValidationError("valid_until must not be in the past")
        return now, valid_until

    def issue(
        self,
        clinic_id: str,
        branch_id: Optional[str] = None,
        refresh_period: RefreshPeriod = RefreshPeriod.DAILY,
        geofence: Optional[Geofence] = None,
        *,
        valid_until: Optional[datetime] = None,
        now: Optional[datetime] = None,
        rotate: bool = False,
    ) -> QRToken:
        now = now or self._clock()
        valid_from, window_end = self.cycle_window(refresh_period, now, valid_until=valid_until)

        if rotate:
            valid_from = now
        else:
            existing = self._tokens.get_valid(clinic_id=clinic_id, branch_id=branch_id, at=now)
            if existing and self._same_cycle(existing, window_end, refresh_period):
                return existing

        def build(start: datetime) -> QRToken:
            return QRToken(
                token_id=0,
                clinic_id=clinic_id,
                branch_id=branch_id,
                secret=self._secret_factory(),
                valid_from=start,
                valid_until=window_end,
                refresh_period=refresh_period,
                center_lat=geofence.center.lat if geofence else None,
                center_lon=geofence.center.lon if geofence else None,
                radius_meters=geofence.radius_meters if geofence else None,
                created_at=now,
            )

        try:
            token = self._tokens.insert(build(valid_from), supersede_at=now)
        except TokenCycleConflict:
            winner = self._tokens.get_valid(clinic_id=clinic_id, branch_id=branch_id, at=now)
            if winner is not None and self._same_cycle(winner, window_end, refresh_period):
                logger.info("token issuance raced clinic=%s branch=%s, using token_id=%s", clinic_id, branch_id, winner.token_id)
                return winner
            if valid_from == now:
                raise
            # The cycle-start slot is taken by a superseded token or one with another period; start this one now.
            token = self._tokens.insert(build(now), supersede_at=now)

        logger.info(
            "issued QR token clinic=%s branch=%s period=%s window=%s..%s",
            clinic_id,
            branch_id,
            refresh_period.value,
            token.valid_from.isoformat(),
            token.valid_until.isoformat(),
        )
        return token

    @staticmethod
    def _same_cycle(token: QRToken, window_end: datetime, refresh_period: RefreshPeriod) -> bool:
        return token.valid_until == window_end and token.refresh_period == refresh_period

    def current_token(self, clinic_id: str, branch_id: Optional[str] = None, *, now: Optional[datetime] = None) -> Optional[QRToken]:
        now = now or self._clock()
        token = self._tokens.get_valid(clinic_id=clinic_id, branch_id=branch_id, at=now)
        if token or not self._auto_rotate:
            return token

        period, geofence = self._rotation_policy(clinic_id, branch_id)
        return self.issue(clinic_id, branch_id, period, geofence, now=now)

    def _rotation_policy(self, clinic_id: str, branch_id: Optional[str]) -> tuple[RefreshPeriod, Optional[Geofence]]:
        latest = self._tokens.get_latest(clinic_id=clinic_id, branch_id=branch_id)
        if latest:
            period = latest.refresh_period
            if period == RefreshPeriod.CUSTOM:
                period = self._default_period
            return period, latest.geofence

        geofence = None
        if branch_id and self._branches:
            branch = self._branches.get_by_id(branch_id)
            if branch and branch.clinic_id == clinic_id and branch.center:
                geofence = Geofence(center=branch.center, radius_meters=float(branch.radius_meters or self._default_radius))
        return self._default_period, geofence

    def validate(self, token: QRToken, now: datetime) -> bool:
        return token.is_valid_at(now)

    def find_by_secret(self, scanned: str) -> Optional[QRToken]:
        secret = extract_secret(scanned)
        if not secret:
            return None
        return self._tokens.get_by_secret(secret)

    def scan_url(self, token: QRToken) -> str:
        if not self._base_url:
            return token.secret
        return f"{self._base_url}{QR_URL_MARKER}{token.secret}"
