"""Structural zones from clustered daily opens/closes, plus the liquidity map."""

from collections.abc import Sequence
from dataclasses import dataclass

from market_scanner.schemas.market import OhlcBar

DEFAULT_MAX_ZONES = 5
CLOSE_WEIGHT = 2
OPEN_WEIGHT = 1


@dataclass(frozen=True)
class OcZone:
    zone_low: float
    zone_high: float
    zone_mid: float
    score: int
    zone_type: str | None = None


@dataclass(frozen=True)
class LiquidityMap:
    highs: tuple[float, ...]
    lows: tuple[float, ...]


def nearest_above(levels: Sequence[float], price: float) -> float | None:
    above = [p for p in levels if p > price]
    return min(above) if above else None


def nearest_below(levels: Sequence[float], price: float) -> float | None:
    below = [p for p in levels if p < price]
    return max(below) if below else None


def create_liquidity_map(bars: Sequence[OhlcBar]) -> LiquidityMap:
    return LiquidityMap(
        highs=tuple(b.high for b in bars),
        lows=tuple(b.low for b in bars),
    )


def cluster_points(points: Sequence[float], cluster_radius: float) -> list[list[float]]:
    """Single-linkage chain over sorted points.

    A point joins the running cluster when its gap to the previous point is
    <= cluster_radius, so membership is transitive through intermediate points.
    """
    ordered = sorted(points)
    if not ordered:
        return []
    clusters: list[list[float]] = []
    current = [ordered[0]]
    for point in ordered[1:]:
        if abs(point - current[-1]) <= cluster_radius:
            current.append(point)
        else:
            clusters.append(current)
            current = [point]
    clusters.append(current)
    return clusters


def score_zone(bars: Sequence[OhlcBar], zone_low: float, zone_high: float) -> int:
    score = 0
    for bar in bars:
        if zone_low <= bar.close <= zone_high:
            score += CLOSE_WEIGHT
        if zone_low <= bar.open <= zone_high:
            score += OPEN_WEIGHT
    return score


def find_structural_zones(
    bars: Sequence[OhlcBar],
    cluster_radius: float,
    lookback: int,
    max_zones: int = DEFAULT_MAX_ZONES,
) -> list[OcZone]:
    """
    Cluster opens and closes of the last ``lookback`` bars into zones.

    Zones are ranked by score descending; equal scores keep the lower zone first.
    Returns an empty list when fewer than ``lookback`` bars are available.
    """
    if lookback < 1 or len(bars) < lookback:
        return []

    window = bars[-lookback:]
    points: list[float] = []
    for bar in window:
        points.append(bar.open)
        points.append(bar.close)

    zones: list[OcZone] = []
    for cluster in cluster_points(points, cluster_radius):
        low = cluster[0]
        high = cluster[-1]
        zones.append(
            OcZone(
                zone_low=low,
                zone_high=high,
                zone_mid=(low + high) / 2,
                score=score_zone(window, low, high),
            )
        )

    zones.sort(key=lambda z: (-z.score, z.zone_low))
    return zones[:max_zones]
