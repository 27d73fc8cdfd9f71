"""Trend-day, macro trend, alignment, location and ATR over daily bars."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from market_scanner.schemas.market import OhlcBar

Trend = Literal["Bull", "Bear", "Neutral"]
Alignment = Literal["AlignedLong", "AlignedShort", "CounterLong", "CounterShort", "Neutral"]
Location = Literal["Discount", "Mid", "Premium"]

BULL: Trend = "Bull"
BEAR: Trend = "Bear"
NEUTRAL: Trend = "Neutral"

DEFAULT_TREND_LOOKBACK = 10
DEFAULT_STRUCTURE_LOOKBACK = 20
DEFAULT_ATR_WINDOW = 20
DEFAULT_BULL_THRESHOLD = 0.6
DEFAULT_BEAR_THRESHOLD = 0.6

DISCOUNT_EDGE = 1 / 3
PREMIUM_EDGE = 2 / 3


@dataclass(frozen=True)
class MacroTrendDiagnostics:
    window: int = 0
    bull_days: int = 0
    bear_days: int = 0
    neutral_days: int = 0
    bull_share: float = 0.0
    bear_share: float = 0.0
    score: float = 0.0  # mean of Bull=+1 / Bear=-1 / Neutral=0


@dataclass(frozen=True)
class TrendAnalysis:
    macro_trend: Trend
    latest_trend_day: Trend
    alignment: Alignment
    location: Location
    atr20: float
    diagnostics: MacroTrendDiagnostics


NEUTRAL_ANALYSIS = TrendAnalysis(
    macro_trend=NEUTRAL,
    latest_trend_day=NEUTRAL,
    alignment="Neutral",
    location="Mid",
    atr20=0.0,
    diagnostics=MacroTrendDiagnostics(),
)


def classify_trend_day(prev: OhlcBar, curr: OhlcBar) -> Trend:
    """
    Bull: curr breaks prev high and closes above it without closing below prev low.
    Bear: the mirror. A break that closes back inside the prior range is a
    stop-hunt and counts as Neutral.
    """
    closed_above = curr.close > prev.high
    closed_below = curr.close < prev.low
    if curr.high > prev.high and closed_above and not closed_below:
        return BULL
    if curr.low < prev.low and closed_below and not closed_above:
        return BEAR
    return NEUTRAL


def trend_days(bars: Sequence[OhlcBar]) -> list[Trend]:
    """Trend day of every bar that has a predecessor (len(bars) - 1 entries)."""
    return [classify_trend_day(bars[i - 1], bars[i]) for i in range(1, len(bars))]


def classify_macro_trend(
    bars: Sequence[OhlcBar],
    window: int = DEFAULT_TREND_LOOKBACK,
    bull_threshold: float = DEFAULT_BULL_THRESHOLD,
    bear_threshold: float = DEFAULT_BEAR_THRESHOLD,
) -> tuple[Trend, MacroTrendDiagnostics]:
    """Dominant side of the last ``window`` trend days.

    Bull when Bull days make up at least ``bull_threshold`` of the non-neutral
    days and strictly outnumber Bear days; Bear symmetric.
    """
    if len(bars) < 2 or window < 1:
        return NEUTRAL, MacroTrendDiagnostics()

    days = trend_days(bars[-(window + 1):])
    bull = days.count(BULL)
    bear = days.count(BEAR)
    neutral = len(days) - bull - bear
    directional = bull + bear
    bull_share = bull / directional if directional else 0.0
    bear_share = bear / directional if directional else 0.0

    diagnostics = MacroTrendDiagnostics(
        window=len(days),
        bull_days=bull,
        bear_days=bear,
        neutral_days=neutral,
        bull_share=bull_share,
        bear_share=bear_share,
        score=(bull - bear) / len(days),
    )

    if directional and bull_share >= bull_threshold and bull > bear:
        return BULL, diagnostics
    if directional and bear_share >= bear_threshold and bear > bull:
        return BEAR, diagnostics
    return NEUTRAL, diagnostics


def classify_alignment(macro_trend: Trend, trend_day: Trend) -> Alignment:
    if macro_trend == NEUTRAL or trend_day == NEUTRAL:
        return "Neutral"
    if macro_trend == trend_day:
        return "AlignedLong" if trend_day == BULL else "AlignedShort"
    return "CounterLong" if trend_day == BULL else "CounterShort"


def classify_location(bars: Sequence[OhlcBar], lookback: int = DEFAULT_STRUCTURE_LOOKBACK) -> Location:
    if not bars:
        return "Mid"
    window = bars[-max(1, lookback):]
    max_high = max(b.high for b in window)
    min_low = min(b.low for b in window)
    pos = 0.5
    if max_high != min_low:
        pos = (bars[-1].close - min_low) / (max_high - min_low)
    if pos < DISCOUNT_EDGE:
        return "Discount"
    if pos > PREMIUM_EDGE:
        return "Premium"
    return "Mid"


def true_range(prev: OhlcBar, curr: OhlcBar) -> float:
    return max(
        curr.high - curr.low,
        abs(curr.high - prev.close),
        abs(curr.low - prev.close),
    )


def compute_atr(bars: Sequence[OhlcBar], window: int = DEFAULT_ATR_WINDOW) -> float:
    """Simple mean of the window's true ranges (window - 1 samples)."""
    atr_bars = bars[-max(2, window):]
    if len(atr_bars) < 2:
        return 0.0
    total = sum(true_range(atr_bars[i - 1], atr_bars[i]) for i in range(1, len(atr_bars)))
    return total / (len(atr_bars) - 1)


def classify_trend(
    bars: Sequence[OhlcBar],
    *,
    trend_lookback: int = DEFAULT_TREND_LOOKBACK,
    structure_lookback: int = DEFAULT_STRUCTURE_LOOKBACK,
    atr_window: int = DEFAULT_ATR_WINDOW,
    bull_threshold: float = DEFAULT_BULL_THRESHOLD,
    bear_threshold: float = DEFAULT_BEAR_THRESHOLD,
) -> TrendAnalysis:
    """Classify everything as of the last bar in ``bars``."""
    if len(bars) < 2:
        return NEUTRAL_ANALYSIS

    macro_trend, diagnostics = classify_macro_trend(
        bars, trend_lookback, bull_threshold, bear_threshold
    )
    latest = classify_trend_day(bars[-2], bars[-1])
    return TrendAnalysis(
        macro_trend=macro_trend,
        latest_trend_day=latest,
        alignment=classify_alignment(macro_trend, latest),
        location=classify_location(bars, structure_lookback),
        atr20=compute_atr(bars, atr_window),
        diagnostics=diagnostics,
    )
