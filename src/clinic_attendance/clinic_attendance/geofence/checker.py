from __future__ import annotations

import math
from typing import Iterable, Optional

from ..core.constants import EARTH_RADIUS_METERS
from ..core.enums import GeoDecision
from .model import Branch, BranchMatch, Coordinate


def haversine_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance on a sphere of mean Earth radius (no altitude)."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lon - a.lon)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def within(
    reported: Optional[Coordinate],
    center: Optional[Coordinate],
    radius_meters: Optional[float],
    *,
    required: bool = False,
) -> GeoDecision:
    if center is None or radius_meters is None:
        return GeoDecision.SKIP

    if reported is None:
        return GeoDecision.FAIL if required else GeoDecision.SKIP

    if haversine_meters(reported, center) <= radius_meters:
        return GeoDecision.PASS
    return GeoDecision.FAIL


def nearest_branch(reported: Coordinate, branches: Iterable[Branch]) -> Optional[BranchMatch]:
    """Closest active branch that has coordinates, or None when there is none."""
    best: Optional[BranchMatch] = None
    for branch in branches:
        center = branch.center
        if not branch.is_active or center is None:
            continue
        distance = haversine_meters(reported, center)
        if best is None or distance < best.distance_meters:
            best = BranchMatch(branch=branch, distance_meters=distance, within_radius=distance <= branch.radius_meters)
    return best
