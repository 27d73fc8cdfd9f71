"""Pullback depth into the prior session, historical depth stats per trend scenario."""

import math
import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date as Date
from typing import Literal

from market_scanner.schemas.market import OhlcBar
from market_scanner.services.indicators.trend import (
    BEAR,
    BULL,
    DEFAULT_BEAR_THRESHOLD,
    DEFAULT_BULL_THRESHOLD,
    DEFAULT_TREND_LOOKBACK,
    Alignment,
    Trend,
    classify_alignment,
    classify_macro_trend,
    classify_trend_day,
)

SweetspotState = Literal["not_touched", "currently_in", "touched_and_rejected"]

PULLBACK_BUCKETS: tuple[str, ...] = (
    "0-0.382",
    "0.382-0.5",
    "0.5-0.618",
    "0.618-0.786",
    "0.786-1.0",
    "1.0+",
)
# Upper bound (exclusive) of each bucket except the last.
BUCKET_EDGES: tuple[float, ...] = (0.382, 0.5, 0.618, 0.786, 1.0)
# Numeric [min, max] of each bucket as its label reads; "1.0+" is the point 1.0.
BUCKET_BOUNDS: dict[str, tuple[float, float]] = {
    "0-0.382": (0.0, 0.382),
    "0.382-0.5": (0.382, 0.5),
    "0.5-0.618": (0.5, 0.618),
    "0.618-0.786": (0.618, 0.786),
    "0.786-1.0": (0.786, 1.0),
    "1.0+": (1.0, 1.0),
}

TINY_RANGE = 1e-6
DEFAULT_PULLBACK_LOOKBACK = 60


@dataclass(frozen=True)
class PullbackScenarioKey:
    macro_trend_prev: Trend
    trend_day_prev: Trend
    alignment_prev: Alignment


@dataclass(frozen=True)
class CandlePairPullbackRecord:
    symbol: str
    prev_index: int
    curr_index: int
    date_prev: Date
    date_curr: Date
    prev_high: float
    prev_low: float
    curr_high: float
    curr_low: float
    scenario: PullbackScenarioKey
    depth_into_prev_pct: float
    bucket: str


@dataclass(frozen=True)
class PullbackScenarioStats:
    key: PullbackScenarioKey
    lookback_days: int
    sample_count: int
    mean_depth_pct: float
    median_depth_pct: float
    min_depth_pct: float
    max_depth_pct: float
    bucket_counts: dict[str, int] = field(default_factory=dict)

    @property
    def dominant_bucket(self) -> str | None:
        """Most populated bucket; the shallower bucket wins a tie."""
        best: str | None = None
        best_count = 0
        for bucket in PULLBACK_BUCKETS:
            count = self.bucket_counts.get(bucket, 0)
            if count > best_count:
                best, best_count = bucket, count
        return best


@dataclass(frozen=True)
class CurrentPullbackSnapshot:
    depth_into_prev_pct: float | None
    bucket: str | None
    scenario: PullbackScenarioKey | None
    typical_mean_pct: float | None
    typical_median_pct: float | None
    dominant_bucket: str | None
    sample_count: int
    lookback_days: int


def classify_pullback_bucket(depth: float | None) -> str | None:
    if depth is None or not math.isfinite(depth):
        return None
    for bucket, edge in zip(PULLBACK_BUCKETS, BUCKET_EDGES):
        if depth < edge:
            return bucket
    return PULLBACK_BUCKETS[-1]


def compute_live_pullback_into_prev(
    prev: OhlcBar,
    current_price: float,
    macro_trend: Trend,
) -> float | None:
    """
    Retracement of ``current_price`` into the prior bar's range.

    Floored at 0 but never capped at 1: values above 1 mean price swept beyond
    the prior range. None for a Neutral macro trend or a degenerate range.
    """
    if current_price is None or not math.isfinite(current_price):
        return None
    rng = prev.high - prev.low
    if not math.isfinite(rng) or rng <= 0:
        return None
    if macro_trend == BULL:
        depth = (prev.high - current_price) / rng
    elif macro_trend == BEAR:
        depth = (current_price - prev.low) / rng
    else:
        return None
    if not math.isfinite(depth):
        return None
    return max(0.0, depth)


def compute_depth_into_previous(prev: OhlcBar, curr: OhlcBar) -> float | None:
    """Overlap of the two ranges plus any overshoot beyond the prior range, over prior range."""
    rng = prev.high - prev.low
    if not math.isfinite(rng) or rng <= TINY_RANGE:
        return None
    overlap = max(0.0, min(prev.high, curr.high) - max(prev.low, curr.low))
    overshoot = max(prev.low - curr.low, curr.high - prev.high, 0.0)
    depth = (overlap + overshoot) / rng
    return depth if math.isfinite(depth) else None


def classify_scenario(
    bars: Sequence[OhlcBar],
    trend_lookback: int = DEFAULT_TREND_LOOKBACK,
    bull_threshold: float = DEFAULT_BULL_THRESHOLD,
    bear_threshold: float = DEFAULT_BEAR_THRESHOLD,
) -> PullbackScenarioKey:
    """Scenario as of the last bar of ``bars``; callers pass bars up to the prior bar only."""
    macro, _ = classify_macro_trend(bars, trend_lookback, bull_threshold, bear_threshold)
    trend_day = classify_trend_day(bars[-2], bars[-1]) if len(bars) >= 2 else "Neutral"
    return PullbackScenarioKey(
        macro_trend_prev=macro,
        trend_day_prev=trend_day,
        alignment_prev=classify_alignment(macro, trend_day),
    )


def build_candle_pair_pullbacks(
    symbol: str,
    bars: Sequence[OhlcBar],
    *,
    trend_lookback: int = DEFAULT_TREND_LOOKBACK,
    lookback_days: int = DEFAULT_PULLBACK_LOOKBACK,
    bull_threshold: float = DEFAULT_BULL_THRESHOLD,
    bear_threshold: float = DEFAULT_BEAR_THRESHOLD,
) -> list[CandlePairPullbackRecord]:
    if len(bars) < 2:
        return []

    records: list[CandlePairPullbackRecord] = []
    start = max(1, len(bars) - lookback_days + 1)
    for curr_index in range(start, len(bars)):
        prev_index = curr_index - 1
        prev = bars[prev_index]
        curr = bars[curr_index]

        depth = compute_depth_into_previous(prev, curr)
        if depth is None:
            continue

        # Only bars up to and including prev feed the scenario label.
        history = bars[max(0, prev_index - trend_lookback): prev_index + 1]
        scenario = classify_scenario(history, trend_lookback, bull_threshold, bear_threshold)

        records.append(
            CandlePairPullbackRecord(
                symbol=symbol,
                prev_index=prev_index,
                curr_index=curr_index,
                date_prev=prev.date,
                date_curr=curr.date,
                prev_high=prev.high,
                prev_low=prev.low,
                curr_high=curr.high,
                curr_low=curr.low,
                scenario=scenario,
                depth_into_prev_pct=depth,
                bucket=classify_pullback_bucket(depth),
            )
        )
    return records


def build_pullback_scenario_stats(
    records: Sequence[CandlePairPullbackRecord],
    lookback_days: int,
) -> list[PullbackScenarioStats]:
    groups: dict[PullbackScenarioKey, list[CandlePairPullbackRecord]] = {}
    for record in records:
        groups.setdefault(record.scenario, []).append(record)

    stats: list[PullbackScenarioStats] = []
    for key, group in groups.items():
        depths = sorted(r.depth_into_prev_pct for r in group)
        bucket_counts = {bucket: 0 for bucket in PULLBACK_BUCKETS}
        for record in group:
            bucket_counts[record.bucket] += 1
        stats.append(
            PullbackScenarioStats(
                key=key,
                lookback_days=lookback_days,
                sample_count=len(depths),
                mean_depth_pct=sum(depths) / len(depths),
                median_depth_pct=statistics.median(depths),
                min_depth_pct=depths[0],
                max_depth_pct=depths[-1],
                bucket_counts=bucket_counts,
            )
        )
    return stats


def compute_current_pullback_snapshot(
    symbol: str,
    bars: Sequence[OhlcBar],
    reference_price: float | None,
    *,
    trend_lookback: int = DEFAULT_TREND_LOOKBACK,
    lookback_days: int = DEFAULT_PULLBACK_LOOKBACK,
    bull_threshold: float = DEFAULT_BULL_THRESHOLD,
    bear_threshold: float = DEFAULT_BEAR_THRESHOLD,
) -> CurrentPullbackSnapshot:
    """Live depth of ``reference_price`` into the prior bar, with matching history."""
    if len(bars) < 2:
        return CurrentPullbackSnapshot(
            depth_into_prev_pct=None,
            bucket=None,
            scenario=None,
            typical_mean_pct=None,
            typical_median_pct=None,
            dominant_bucket=None,
            sample_count=0,
            lookback_days=lookback_days,
        )

    scenario = classify_scenario(bars[:-1], trend_lookback, bull_threshold, bear_threshold)
    depth = None
    if reference_price is not None:
        depth = compute_live_pullback_into_prev(bars[-2], reference_price, scenario.macro_trend_prev)

    records = build_candle_pair_pullbacks(
        symbol,
        bars,
        trend_lookback=trend_lookback,
        lookback_days=lookback_days,
        bull_threshold=bull_threshold,
        bear_threshold=bear_threshold,
    )
    matching = next(
        (s for s in build_pullback_scenario_stats(records, lookback_days) if s.key == scenario),
        None,
    )

    return CurrentPullbackSnapshot(
        depth_into_prev_pct=depth,
        bucket=classify_pullback_bucket(depth) if depth is not None else None,
        scenario=scenario,
        typical_mean_pct=matching.mean_depth_pct if matching else None,
        typical_median_pct=matching.median_depth_pct if matching else None,
        dominant_bucket=matching.dominant_bucket if matching else None,
        sample_count=matching.sample_count if matching else 0,
        lookback_days=lookback_days,
    )


def typical_bucket(snapshot: CurrentPullbackSnapshot) -> str | None:
    """Dominant historical bucket, else the bucket the typical mean falls in."""
    if snapshot.dominant_bucket is not None:
        return snapshot.dominant_bucket
    if snapshot.typical_mean_pct is not None:
        return classify_pullback_bucket(snapshot.typical_mean_pct)
    return None


def project_bucket_band(
    prev: OhlcBar,
    bucket: str | None,
    macro_trend: Trend,
) -> tuple[float, float] | None:
    """
    Price band a pullback bucket covers inside the prior bar's range.

    Bull measures down from the prior high, Bear measures up from the prior low.
    """
    if bucket not in BUCKET_BOUNDS:
        return None
    rng = prev.high - prev.low
    if not math.isfinite(rng) or rng <= 0:
        return None
    frac_min, frac_max = BUCKET_BOUNDS[bucket]
    if macro_trend == BULL:
        return prev.high - frac_max * rng, prev.high - frac_min * rng
    if macro_trend == BEAR:
        return prev.low + frac_min * rng, prev.low + frac_max * rng
    return None


def classify_sweetspot_state(
    sweetspot_low: float,
    sweetspot_high: float,
    high_today: float,
    low_today: float,
    current_price: float,
) -> SweetspotState | None:
    values = (sweetspot_low, sweetspot_high, high_today, low_today, current_price)
    if any(v is None or not math.isfinite(v) for v in values):
        return None
    if sweetspot_low >= sweetspot_high:
        return None

    if not (high_today >= sweetspot_low and low_today <= sweetspot_high):
        return "not_touched"
    if sweetspot_low <= current_price <= sweetspot_high:
        return "currently_in"
    return "touched_and_rejected"
