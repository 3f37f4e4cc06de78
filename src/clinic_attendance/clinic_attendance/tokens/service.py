from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.validators import require_latitude, require_longitude, require_non_negative
from ..core.enums import RefreshPeriod, Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..geofence.model import Coordinate
from .manager import QRTokenManager
from .model import Geofence, QRToken
from .qr_image import render_qr_png


@dataclass(frozen=True)
class IssueTokenInput:
    refresh_period: RefreshPeriod
    branch_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_meters: Optional[float] = None
    valid_until: Optional[datetime] = None
    rotate: bool = False


class TokenService:
    """Use cases around the clinic's current QR code."""

    def __init__(self, manager: QRTokenManager):
        self._manager = manager

    def current(self, *, clinic_id: str, branch_id: Optional[str] = None) -> QRToken:
        token = self._manager.current_token(clinic_id, branch_id)
        if token is None:
            raise NotFoundError("No valid QR code for this clinic; ask an admin to issue one")
        return token

    def issue(self, *, current_role: Role, clinic_id: str, data: IssueTokenInput) -> QRToken:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only clinic admins can issue QR codes")

        geofence = None
        if data.latitude is not None or data.longitude is not None:
            center = Coordinate.maybe(require_latitude(data.latitude), require_longitude(data.longitude))
            if center is None:
                raise ValidationError("Both latitude and longitude are required for a geofence")
            radius = require_non_negative(data.radius_meters, "radius_meters")
            if radius is None:
                raise ValidationError("radius_meters is required for a geofence")
            geofence = Geofence(center=center, radius_meters=radius)

        return self._manager.issue(
            clinic_id,
            data.branch_id,
            data.refresh_period,
            geofence,
            valid_until=data.valid_until,
            rotate=data.rotate,
        )

    def to_public_dict(self, token: QRToken) -> dict:
        geofence = token.geofence
        return {
            "secret": token.secret,
            "url": self._manager.scan_url(token),
            "branch_id": token.branch_id,
            "refresh_period": token.refresh_period.value,
            "valid_from": token.valid_from.isoformat(),
            "valid_until": token.valid_until.isoformat(),
            "geofence": (
                {
                    "latitude": geofence.center.lat,
                    "longitude": geofence.center.lon,
                    "radius_meters": geofence.radius_meters,
                }
                if geofence
                else None
            ),
        }

    def render_png(self, token: QRToken) -> bytes:
        return render_qr_png(self._manager.scan_url(token))
