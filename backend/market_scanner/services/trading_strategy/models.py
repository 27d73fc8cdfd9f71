"""Trade models A-D: zone entries with swing / prior-day stops, trend-day continuation,
sweet-spot pending limits.

Every model applies the same gates: latest spread under the cap, risk in
(0, risk_cap], reward:risk >= min_rr. Trades failing a gate are dropped.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from market_scanner.schemas.market import OhlcBar
from market_scanner.services.indicators.pullback import (
    CurrentPullbackSnapshot,
    project_bucket_band,
    typical_bucket,
)
from market_scanner.services.indicators.trend import BEAR, BULL, NEUTRAL, Trend, classify_trend_day
from market_scanner.services.indicators.zones import LiquidityMap, OcZone, nearest_above, nearest_below
from market_scanner.services.scan_config import SymbolRiskProfile
from market_scanner.services.trading_strategy.types import (
    PENDING_LIMIT,
    Direction,
    ModelTag,
    StopType,
    TradeCandidate,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_RR = 2.0


@dataclass(frozen=True)
class ModelContext:
    """Everything the models read for one symbol scan."""

    bias: Trend
    zones: Sequence[OcZone]
    liquidity: LiquidityMap
    bars: Sequence[OhlcBar]
    profile: SymbolRiskProfile
    min_rr: float = DEFAULT_MIN_RR
    spread_cap: float | None = None
    reference_price: float | None = None
    pullback: CurrentPullbackSnapshot | None = None
    is_sweet_spot: bool = False


def _spread_blocked(ctx: ModelContext) -> bool:
    if ctx.spread_cap is None or not ctx.bars:
        return False
    spread = ctx.bars[-1].spread
    return spread is not None and spread > ctx.spread_cap


def _build_candidate(
    ctx: ModelContext,
    model: ModelTag,
    direction: Direction,
    entry: float,
    stop: float,
    tp1: float,
    stop_type: StopType,
    placement: str | None = None,
) -> TradeCandidate | None:
    if direction == "Long":
        risk = entry - stop
        reward = tp1 - entry
    else:
        risk = stop - entry
        reward = entry - tp1
    if risk <= 0 or risk > ctx.profile.risk_cap:
        return None
    rr = reward / risk
    if rr < ctx.min_rr:
        return None
    return TradeCandidate(
        model=model,
        direction=direction,
        entry=entry,
        stop=stop,
        tp1=tp1,
        risk_price=risk,
        reward_price=reward,
        rr=rr,
        stop_type=stop_type,
        placement=placement,
    )


def _direction(bias: Trend) -> Direction | None:
    if bias == BULL:
        return "Long"
    if bias == BEAR:
        return "Short"
    return None


def _target(ctx: ModelContext, direction: Direction, entry: float) -> float | None:
    if direction == "Long":
        return nearest_above(ctx.liquidity.highs, entry)
    return nearest_below(ctx.liquidity.lows, entry)


def _swing_stop(ctx: ModelContext, direction: Direction, entry: float) -> float | None:
    buffer = ctx.profile.sl_buffer
    if direction == "Long":
        swing_low = nearest_below(ctx.liquidity.lows, entry)
        return swing_low - buffer if swing_low is not None else None
    swing_high = nearest_above(ctx.liquidity.highs, entry)
    return swing_high + buffer if swing_high is not None else None


def _prior_day_stop(ctx: ModelContext, direction: Direction, bar: OhlcBar) -> float:
    if direction == "Long":
        return bar.low - ctx.profile.sl_buffer
    return bar.high + ctx.profile.sl_buffer


def _zones_on_entry_side(ctx: ModelContext, direction: Direction, price: float) -> list[OcZone]:
    """Longs buy zones below price, shorts sell zones above it."""
    if direction == "Long":
        return [z for z in ctx.zones if z.zone_mid < price]
    return [z for z in ctx.zones if z.zone_mid > price]


def generate_model_a_trades(ctx: ModelContext) -> list[TradeCandidate]:
    """Zone entry, stop beyond the nearest swing, target at the nearest opposite swing."""
    direction = _direction(ctx.bias)
    if direction is None or not ctx.bars or _spread_blocked(ctx):
        return []

    trades: list[TradeCandidate] = []
    for zone in _zones_on_entry_side(ctx, direction, ctx.bars[-1].close):
        entry = zone.zone_mid
        stop = _swing_stop(ctx, direction, entry)
        if stop is None:
            continue
        tp1 = _target(ctx, direction, entry)
        if tp1 is None:
            continue
        trade = _build_candidate(ctx, "A", direction, entry, stop, tp1, "Swing")
        if trade is not None:
            trades.append(trade)
    return trades


def generate_model_b_trades(ctx: ModelContext) -> list[TradeCandidate]:
    """As model A, with the stop beyond the prior day's low (long) or high (short)."""
    direction = _direction(ctx.bias)
    if direction is None or len(ctx.bars) < 2 or _spread_blocked(ctx):
        return []

    prev_bar = ctx.bars[-2]
    trades: list[TradeCandidate] = []
    for zone in _zones_on_entry_side(ctx, direction, ctx.bars[-1].close):
        entry = zone.zone_mid
        tp1 = _target(ctx, direction, entry)
        if tp1 is None:
            continue
        stop = _prior_day_stop(ctx, direction, prev_bar)
        trade = _build_candidate(ctx, "B", direction, entry, stop, tp1, "PD")
        if trade is not None:
            trades.append(trade)
    return trades


def classify_continuation_day(reference: OhlcBar, trend_bar: OhlcBar) -> Trend:
    """
    Trend-day rule against the bar before. When both extremes were broken the
    day is decided by its close versus the reference close (a heuristic).
    """
    trend_day = classify_trend_day(reference, trend_bar)
    if trend_day != NEUTRAL:
        return trend_day
    if trend_bar.high > reference.high and trend_bar.low < reference.low:
        return BULL if trend_bar.close >= reference.close else BEAR
    return NEUTRAL


def generate_model_c_trades(ctx: ModelContext) -> list[TradeCandidate]:
    """Continuation after a trend day: re-entries at the trend bar's high/close/low."""
    if len(ctx.bars) < 3 or _spread_blocked(ctx):
        return []

    current, trend_bar, reference = ctx.bars[-1], ctx.bars[-2], ctx.bars[-3]
    trend_day = classify_continuation_day(reference, trend_bar)
    direction = _direction(trend_day)
    if direction is None:
        return []

    if direction == "Long":
        entry_levels = [trend_bar.high, trend_bar.close, trend_bar.low]
    else:
        entry_levels = [trend_bar.low, trend_bar.close, trend_bar.high]

    trades: list[TradeCandidate] = []
    seen: set[tuple[str, float, str]] = set()

    def push(model: ModelTag, entry: float, stop: float, tp1: float, stop_type: StopType) -> None:
        key = (direction, entry, stop_type)
        if key in seen:
            return
        trade = _build_candidate(ctx, model, direction, entry, stop, tp1, stop_type)
        if trade is None:
            return
        trades.append(trade)
        seen.add(key)

    for entry in entry_levels:
        # The level must have been revisited by today's range.
        if entry < current.low or entry > current.high:
            continue
        tp1 = _target(ctx, direction, entry)
        if tp1 is None:
            continue
        swing_stop = _swing_stop(ctx, direction, entry)
        if swing_stop is not None:
            push("C1", entry, swing_stop, tp1, "Swing")
        push("C2", entry, _prior_day_stop(ctx, direction, trend_bar), tp1, "PD")

    return trades


def generate_model_d_trades(ctx: ModelContext) -> list[TradeCandidate]:
    """Pending limit at the best zone inside the typical-pullback band, sweet spots only."""
    if not ctx.is_sweet_spot or len(ctx.bars) < 2 or _spread_blocked(ctx):
        return []
    pullback = ctx.pullback
    if pullback is None or pullback.scenario is None:
        return []

    macro = pullback.scenario.macro_trend_prev
    direction = _direction(macro)
    if direction is None:
        return []

    band = project_bucket_band(ctx.bars[-2], typical_bucket(pullback), macro)
    if band is None:
        return []
    band_low, band_high = band

    in_band = [z for z in ctx.zones if band_low <= z.zone_mid <= band_high]
    if not in_band:
        return []
    best = max(in_band, key=lambda z: z.score)
    entry = best.zone_mid

    price = ctx.reference_price if ctx.reference_price is not None else ctx.bars[-1].close
    if direction == "Long" and entry >= price:
        return []
    if direction == "Short" and entry <= price:
        return []

    tp1 = _target(ctx, direction, entry)
    if tp1 is None:
        return []

    trades: list[TradeCandidate] = []
    swing_stop = _swing_stop(ctx, direction, entry)
    if swing_stop is not None:
        trade = _build_candidate(ctx, "D", direction, entry, swing_stop, tp1, "Swing", PENDING_LIMIT)
        if trade is not None:
            trades.append(trade)
    pd_stop = _prior_day_stop(ctx, direction, ctx.bars[-2])
    trade = _build_candidate(ctx, "D", direction, entry, pd_stop, tp1, "PD", PENDING_LIMIT)
    if trade is not None:
        trades.append(trade)
    return trades


def generate_all_trades(ctx: ModelContext) -> list[TradeCandidate]:
    trades = [
        *generate_model_a_trades(ctx),
        *generate_model_b_trades(ctx),
        *generate_model_c_trades(ctx),
        *generate_model_d_trades(ctx),
    ]
    logger.debug("Generated %d trade candidates (bias=%s)", len(trades), ctx.bias)
    return trades
