"""Sweet-spot gate: price at a zone and a pullback that matches history."""

import math
from dataclasses import dataclass

from market_scanner.services.indicators.nearest_zone import NearestZoneInfo
from market_scanner.services.indicators.pullback import BUCKET_BOUNDS

MEAN_TOLERANCE = 0.05  # absolute depth, i.e. 5 percentage points

REASON_NO_ZONE = "Price is not at or near a structural zone."
REASON_NO_DEPTH = "Pullback depth unavailable for current session."
REASON_ALIGNED = "Pullback aligns with historical behaviour and price is near zone."
REASON_NOT_ALIGNED = "Current pullback does not align with historical sweet spot."


@dataclass(frozen=True)
class SweetSpotSignal:
    is_sweet_spot: bool
    reason: str


def buckets_align(current: str | None, dominant: str | None) -> bool:
    """Buckets align when their numeric ranges intersect (edges included)."""
    if not current or not dominant:
        return False
    if current == dominant:
        return True
    if current not in BUCKET_BOUNDS or dominant not in BUCKET_BOUNDS:
        return False
    cur_min, cur_max = BUCKET_BOUNDS[current]
    dom_min, dom_max = BUCKET_BOUNDS[dominant]
    return cur_min <= dom_max and dom_min <= cur_max


def evaluate_sweet_spot(
    nearest_zone: NearestZoneInfo | None,
    depth: float | None,
    bucket: str | None,
    typical_mean: float | None,
    dominant_bucket: str | None,
) -> SweetSpotSignal:
    if nearest_zone is None or nearest_zone.status not in ("AT_ZONE", "NEAR"):
        return SweetSpotSignal(False, REASON_NO_ZONE)

    if depth is None or not math.isfinite(depth):
        return SweetSpotSignal(False, REASON_NO_DEPTH)

    near_mean = (
        typical_mean is not None
        and math.isfinite(typical_mean)
        and abs(depth - typical_mean) <= MEAN_TOLERANCE
    )
    if buckets_align(bucket, dominant_bucket) or near_mean:
        return SweetSpotSignal(True, REASON_ALIGNED)
    return SweetSpotSignal(False, REASON_NOT_ALIGNED)
