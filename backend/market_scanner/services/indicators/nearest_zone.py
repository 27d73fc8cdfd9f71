"""Nearest structural zone to a spot price and its proximity class."""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from market_scanner.services.indicators.zones import OcZone

ZoneStatus = Literal["AT_ZONE", "NEAR", "FAR"]

AT_ZONE_ATR = 0.10
NEAR_ATR = 0.25
# Percent thresholds, used only when no ATR is available.
AT_ZONE_PCT = 0.10
NEAR_PCT = 0.5


@dataclass(frozen=True)
class NearestZoneInfo:
    spot: float
    zone_low: float
    zone_high: float
    zone_mid: float
    score: int
    zone_type: str | None
    distance: float
    distance_pct: float
    distance_atr: float | None
    status: ZoneStatus


def _zone_mid(zone: OcZone) -> float:
    if math.isfinite(zone.zone_mid) and zone.zone_mid != 0:
        return zone.zone_mid
    return (zone.zone_low + zone.zone_high) / 2


def classify_proximity(distance: float, distance_pct: float, atr: float | None) -> ZoneStatus:
    if atr is not None and atr > 0:
        if distance <= AT_ZONE_ATR * atr:
            return "AT_ZONE"
        if distance <= NEAR_ATR * atr:
            return "NEAR"
        return "FAR"
    if distance_pct <= AT_ZONE_PCT:
        return "AT_ZONE"
    if distance_pct <= NEAR_PCT:
        return "NEAR"
    return "FAR"


def compute_nearest_zone_info(
    zones: Sequence[OcZone] | None,
    spot: float | None,
    atr20: float | None,
) -> NearestZoneInfo | None:
    """Zone whose mid is closest to ``spot``; the first zone wins an exact tie."""
    if not zones or spot is None or not math.isfinite(spot):
        return None

    best: OcZone | None = None
    best_distance = math.inf
    for zone in zones:
        if not math.isfinite(zone.zone_low) or not math.isfinite(zone.zone_high):
            continue
        d = abs(spot - _zone_mid(zone))
        if d < best_distance:
            best, best_distance = zone, d

    if best is None:
        return None

    distance_pct = best_distance / abs(spot) * 100 if spot != 0 else math.inf
    atr = atr20 if atr20 is not None and atr20 > 0 else None

    return NearestZoneInfo(
        spot=spot,
        zone_low=best.zone_low,
        zone_high=best.zone_high,
        zone_mid=_zone_mid(best),
        score=best.score,
        zone_type=best.zone_type,
        distance=best_distance,
        distance_pct=distance_pct,
        distance_atr=best_distance / atr if atr else None,
        status=classify_proximity(best_distance, distance_pct, atr),
    )
