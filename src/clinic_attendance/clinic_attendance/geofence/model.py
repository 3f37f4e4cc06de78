from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    @classmethod
    def maybe(cls, lat: Optional[float], lon: Optional[float]) -> Optional["Coordinate"]:
        if lat is None or lon is None:
            return None
        return cls(lat=float(lat), lon=float(lon))


@dataclass(frozen=True)
class Branch:
    """A clinic site with its own attendance radius."""

    branch_id: str
    clinic_id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_meters: float = 100
    is_active: bool = True

    @property
    def center(self) -> Optional[Coordinate]:
        return Coordinate.maybe(self.latitude, self.longitude)


@dataclass(frozen=True)
class BranchMatch:
    branch: Branch
    distance_meters: float
    within_radius: bool
