from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import RefreshPeriod
from ..geofence.model import Coordinate


@dataclass(frozen=True)
class Geofence:
    center: Coordinate
    radius_meters: float


@dataclass(frozen=True)
class QRToken:
    """Domain entity: one issued QR token.

    Window fields are never rewritten after insert; rotation adds a new row
    and stamps `superseded_at` on the previous one.
    """

    token_id: int
    clinic_id: str
    branch_id: Optional[str]
    secret: str
    valid_from: datetime
    valid_until: datetime
    refresh_period: RefreshPeriod
    center_lat: Optional[float] = None
    center_lon: Optional[float] = None
    radius_meters: Optional[float] = None
    created_at: Optional[datetime] = None
    superseded_at: Optional[datetime] = None

    @property
    def geofence(self) -> Optional[Geofence]:
        center = Coordinate.maybe(self.center_lat, self.center_lon)
        if center is None or self.radius_meters is None:
            return None
        return Geofence(center=center, radius_meters=float(self.radius_meters))

    def is_valid_at(self, now: datetime) -> bool:
        if self.superseded_at is not None and self.superseded_at <= now:
            return False
        return self.valid_from <= now <= self.valid_until
