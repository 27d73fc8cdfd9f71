"""Convert scan results to the JSON payload served by the scan route."""

from market_scanner.services.indicators.nearest_zone import NearestZoneInfo
from market_scanner.services.indicators.pullback import CurrentPullbackSnapshot
from market_scanner.services.indicators.trend import TrendAnalysis
from market_scanner.services.indicators.zones import OcZone
from market_scanner.services.scanner import (
    ScanResponse,
    SymbolScanEntry,
    SymbolScanError,
    SymbolScanOk,
    SymbolScanResult,
)
from market_scanner.services.trading_strategy.types import TradeCandidate


def _zone(z: OcZone) -> dict:
    return {
        "zone_low": z.zone_low,
        "zone_high": z.zone_high,
        "zone_mid": z.zone_mid,
        "score": z.score,
        "zone_type": z.zone_type,
    }


def _trade(t: TradeCandidate) -> dict:
    return {
        "model": t.model,
        "direction": t.direction,
        "entry": t.entry,
        "stop": t.stop,
        "tp1": t.tp1,
        "risk_price": t.risk_price,
        "reward_price": t.reward_price,
        "rr": t.rr,
        "status": t.status,
        "stopType": t.stop_type,
        "placement": t.placement,
    }


def _trend(t: TrendAnalysis) -> dict:
    d = t.diagnostics
    return {
        "macroTrend": t.macro_trend,
        "latestTrendDay": t.latest_trend_day,
        "alignment": t.alignment,
        "location": t.location,
        "atr20": t.atr20,
        "macroTrendDiagnostics": {
            "window": d.window,
            "bullDays": d.bull_days,
            "bearDays": d.bear_days,
            "neutralDays": d.neutral_days,
            "bullShare": d.bull_share,
            "bearShare": d.bear_share,
            "score": d.score,
        },
    }


def _pullback(p: CurrentPullbackSnapshot) -> dict:
    scenario = None
    if p.scenario is not None:
        scenario = {
            "macroTrendPrev": p.scenario.macro_trend_prev,
            "trendDayPrev": p.scenario.trend_day_prev,
            "alignmentPrev": p.scenario.alignment_prev,
        }
    return {
        "depthIntoPrevPct": p.depth_into_prev_pct,
        "bucket": p.bucket,
        "scenario": scenario,
        "typicalMeanPct": p.typical_mean_pct,
        "typicalMedianPct": p.typical_median_pct,
        "dominantBucket": p.dominant_bucket,
        "sampleCount": p.sample_count,
        "lookbackDays": p.lookback_days,
    }


def _nearest_zone(n: NearestZoneInfo | None) -> dict | None:
    if n is None:
        return None
    return {
        "spot": n.spot,
        "zone_low": n.zone_low,
        "zone_high": n.zone_high,
        "zone_mid": n.zone_mid,
        "score": n.score,
        "zone_type": n.zone_type,
        "distance": n.distance,
        "distancePct": n.distance_pct,
        "distanceAtr": n.distance_atr,
        "status": n.status,
    }


def symbol_result_to_payload(r: SymbolScanResult) -> dict:
    live = r.live_price.model_dump() if r.live_price is not None else None
    sweetspot = None
    if r.sweetspot is not None:
        sweetspot = {
            "bucket": r.sweetspot.bucket,
            "low": r.sweetspot.low,
            "high": r.sweetspot.high,
            "state": r.sweetspot.state,
        }
    return {
        "symbol": r.symbol,
        "lastBarDate": r.last_bar_date.isoformat(),
        "lastClose": r.last_close,
        **_trend(r.trend),
        "trend": r.trend.macro_trend,
        "zones": [_zone(z) for z in r.zones],
        "liquidity": {"highs": list(r.liquidity.highs), "lows": list(r.liquidity.lows)},
        "referencePrice": {
            "price": r.reference_price.price,
            "source": r.reference_price.source,
            "reason": r.reference_price.reason,
        },
        "livePrice": live,
        "pullback": _pullback(r.pullback),
        "sweetspot": sweetspot,
        "nearestZone": _nearest_zone(r.nearest_zone),
        "sweetSpot": {
            "isSweetSpot": r.sweet_spot.is_sweet_spot,
            "reason": r.sweet_spot.reason,
        },
        "trades": [_trade(t) for t in r.trades],
        "candidate": {
            "status": r.diagnostics.status,
            "summary": r.diagnostics.summary,
            "conditions": [
                {"id": c.id, "label": c.label, "passed": c.passed}
                for c in r.diagnostics.conditions
            ],
        },
    }


def scan_entry_to_payload(entry: SymbolScanEntry) -> dict:
    if isinstance(entry, SymbolScanOk):
        return {"status": "ok", **symbol_result_to_payload(entry.result)}
    if isinstance(entry, SymbolScanError):
        return {"status": "error", "symbol": entry.symbol, "error": entry.error}
    raise TypeError(f"Unknown scan entry type: {type(entry).__name__}")


def scan_response_to_payload(response: ScanResponse) -> dict:
    return {
        "date": response.date.isoformat(),
        "symbols": {symbol: scan_entry_to_payload(entry) for symbol, entry in response.symbols.items()},
    }
