"""Scan orchestration: runs the analysis pipeline per symbol and fans out across symbols.

The analysis itself is synchronous and pure; fetching bars and live prices are
the only awaits. A failure inside one symbol's scan becomes that symbol's error
entry and never touches the other symbols.
"""

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date as Date
from typing import Literal, Protocol

from market_scanner.schemas.market import LivePriceSnapshot, OhlcBar, PriceSource
from market_scanner.services.bar_source import BarSource
from market_scanner.services.errors import InsufficientDataError
from market_scanner.services.indicators.nearest_zone import NearestZoneInfo, compute_nearest_zone_info
from market_scanner.services.indicators.pullback import (
    CurrentPullbackSnapshot,
    SweetspotState,
    classify_sweetspot_state,
    compute_current_pullback_snapshot,
    project_bucket_band,
    typical_bucket,
)
from market_scanner.services.indicators.trend import TrendAnalysis, classify_trend
from market_scanner.services.indicators.zones import (
    LiquidityMap,
    OcZone,
    create_liquidity_map,
    find_structural_zones,
)
from market_scanner.services.scan_config import ScanConfig
from market_scanner.services.trading_strategy.diagnostics import (
    CandidateDiagnostics,
    build_candidate_diagnostics,
)
from market_scanner.services.trading_strategy.models import ModelContext, generate_all_trades
from market_scanner.services.trading_strategy.sweet_spot import SweetSpotSignal, evaluate_sweet_spot
from market_scanner.services.trading_strategy.types import TradeCandidate

logger = logging.getLogger(__name__)


class PriceSourceClient(Protocol):
    async def get_price(self, symbol: str) -> LivePriceSnapshot:
        ...


@dataclass(frozen=True)
class ReferencePrice:
    """Spot used for nearest zone, live pullback depth and the sweet-spot gate."""

    price: float
    source: PriceSource
    reason: str


@dataclass(frozen=True)
class SweetspotBand:
    bucket: str
    low: float
    high: float
    state: SweetspotState | None


@dataclass(frozen=True)
class SymbolScanResult:
    symbol: str
    last_bar_date: Date
    last_close: float
    trend: TrendAnalysis
    zones: list[OcZone]
    liquidity: LiquidityMap
    reference_price: ReferencePrice
    live_price: LivePriceSnapshot | None
    pullback: CurrentPullbackSnapshot
    sweetspot: SweetspotBand | None
    nearest_zone: NearestZoneInfo | None
    sweet_spot: SweetSpotSignal
    trades: list[TradeCandidate]
    diagnostics: CandidateDiagnostics


@dataclass(frozen=True)
class SymbolScanOk:
    result: SymbolScanResult
    status: Literal["ok"] = "ok"

    @property
    def symbol(self) -> str:
        return self.result.symbol


@dataclass(frozen=True)
class SymbolScanError:
    symbol: str
    error: str
    status: Literal["error"] = "error"


SymbolScanEntry = SymbolScanOk | SymbolScanError


@dataclass(frozen=True)
class ScanResponse:
    date: Date
    symbols: dict[str, SymbolScanEntry]


def resolve_reference_price(
    symbol: str,
    config: ScanConfig,
    bars: Sequence[OhlcBar],
    live: LivePriceSnapshot | None,
) -> ReferencePrice:
    """Manual close override first, then the live spot, then the last daily close."""
    manual = config.manual_closes.get(symbol)
    if manual is not None and math.isfinite(manual):
        return ReferencePrice(manual, "manual", "manual close override")
    if live is not None and live.spot is not None and math.isfinite(live.spot):
        return ReferencePrice(live.spot, "live", "live price")
    if live is None:
        reason = "live price source not configured"
    elif live.error is not None:
        reason = f"live price unavailable: {live.error.message}"
    else:
        reason = "live price unavailable"
    return ReferencePrice(bars[-1].close, "fallback", f"{reason}; using last daily close")


def _sweetspot_band(
    bars: Sequence[OhlcBar],
    pullback: CurrentPullbackSnapshot,
    price: float,
) -> SweetspotBand | None:
    if pullback.scenario is None or len(bars) < 2:
        return None
    bucket = typical_bucket(pullback)
    band = project_bucket_band(bars[-2], bucket, pullback.scenario.macro_trend_prev)
    if band is None:
        return None
    low, high = band
    today = bars[-1]
    return SweetspotBand(
        bucket=bucket,
        low=low,
        high=high,
        state=classify_sweetspot_state(low, high, today.high, today.low, price),
    )


async def _fetch_inputs(
    symbol: str,
    config: ScanConfig,
    bar_source: BarSource,
    price_source: PriceSourceClient | None,
) -> tuple[list[OhlcBar], LivePriceSnapshot | None]:
    needed = config.bars_needed
    if price_source is None or symbol in config.manual_closes:
        return await bar_source.get_bars(symbol, needed), None
    bars, live = await asyncio.gather(
        bar_source.get_bars(symbol, needed),
        price_source.get_price(symbol),
    )
    return bars, live


async def scan_symbol(
    symbol: str,
    config: ScanConfig,
    bar_source: BarSource,
    price_source: PriceSourceClient | None = None,
) -> SymbolScanResult:
    profile = config.risk_profile(symbol)
    bars, live = await _fetch_inputs(symbol, config, bar_source, price_source)

    needed = config.bars_needed
    if len(bars) < needed:
        raise InsufficientDataError(symbol, len(bars), needed)

    trend = classify_trend(
        bars,
        trend_lookback=config.trend_lookback,
        structure_lookback=config.structure_lookback,
        atr_window=config.atr_window,
        bull_threshold=config.macro_bull_threshold,
        bear_threshold=config.macro_bear_threshold,
    )
    zones = find_structural_zones(bars, profile.cluster_radius, config.structure_lookback)
    liquidity = create_liquidity_map(bars[-config.structure_lookback:])

    reference = resolve_reference_price(symbol, config, bars, live)
    pullback = compute_current_pullback_snapshot(
        symbol,
        bars,
        reference.price,
        trend_lookback=config.trend_lookback,
        lookback_days=config.pullback_lookback,
        bull_threshold=config.macro_bull_threshold,
        bear_threshold=config.macro_bear_threshold,
    )
    sweetspot = _sweetspot_band(bars, pullback, reference.price)
    nearest = compute_nearest_zone_info(zones, reference.price, trend.atr20)
    sweet_spot = evaluate_sweet_spot(
        nearest,
        pullback.depth_into_prev_pct,
        pullback.bucket,
        pullback.typical_mean_pct,
        pullback.dominant_bucket,
    )

    ctx = ModelContext(
        bias=trend.macro_trend,
        zones=zones,
        liquidity=liquidity,
        bars=bars,
        profile=profile,
        min_rr=config.min_rr,
        spread_cap=config.spread_cap,
        reference_price=reference.price,
        pullback=pullback,
        is_sweet_spot=sweet_spot.is_sweet_spot,
    )
    trades = generate_all_trades(ctx)

    logger.debug(
        "%s: trend=%s zones=%d trades=%d ref=%s(%s)",
        symbol,
        trend.macro_trend,
        len(zones),
        len(trades),
        reference.price,
        reference.source,
    )

    return SymbolScanResult(
        symbol=symbol,
        last_bar_date=bars[-1].date,
        last_close=bars[-1].close,
        trend=trend,
        zones=zones,
        liquidity=liquidity,
        reference_price=reference,
        live_price=live,
        pullback=pullback,
        sweetspot=sweetspot,
        nearest_zone=nearest,
        sweet_spot=sweet_spot,
        trades=trades,
        diagnostics=build_candidate_diagnostics(
            trend.macro_trend, trend.location, nearest, pullback, trades
        ),
    )


async def _scan_entry(
    symbol: str,
    config: ScanConfig,
    bar_source: BarSource,
    price_source: PriceSourceClient | None,
) -> SymbolScanEntry:
    try:
        scan = scan_symbol(symbol, config, bar_source, price_source)
        if config.scan_timeout_seconds:
            result = await asyncio.wait_for(scan, timeout=config.scan_timeout_seconds)
        else:
            result = await scan
    except asyncio.TimeoutError:
        logger.warning("Scan timed out for %s", symbol)
        return SymbolScanError(symbol, f"Scan timed out after {config.scan_timeout_seconds}s")
    except Exception as e:
        logger.warning("Error scanning %s: %s", symbol, e)
        return SymbolScanError(symbol, str(e) or "Unexpected error while scanning")
    return SymbolScanOk(result)


async def scan_market(
    config: ScanConfig,
    bar_source: BarSource,
    price_source: PriceSourceClient | None = None,
) -> ScanResponse:
    """Scan every configured symbol concurrently; the response lists every symbol."""
    symbols = list(dict.fromkeys(config.symbols))
    entries = await asyncio.gather(
        *(_scan_entry(symbol, config, bar_source, price_source) for symbol in symbols)
    )
    return ScanResponse(date=config.date, symbols=dict(zip(symbols, entries)))
