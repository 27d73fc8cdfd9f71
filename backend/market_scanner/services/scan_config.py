"""Resolved scan configuration.

Process-wide defaults live in ``Settings``; a request may override some of them
through ``ScanOptions``. ``resolve_scan_config`` merges the two once per scan and
the resulting ``ScanConfig`` is passed by parameter into every component.
"""

from dataclasses import dataclass, field
from datetime import date as Date

from market_scanner.config import Settings
from market_scanner.services.errors import UnknownSymbolError

MIN_STRUCTURE_LOOKBACK = 1
MIN_TREND_LOOKBACK = 1
MIN_ATR_WINDOW = 2
MIN_PULLBACK_LOOKBACK = 2


@dataclass(frozen=True)
class SymbolRiskProfile:
    risk_cap: float
    cluster_radius: float
    sl_buffer: float


@dataclass
class ScanFilters:
    min_rr: float | None = None
    spread_cap: float | None = None


@dataclass
class ScanParams:
    atr_window: int | None = None
    structure_lookback: int | None = None
    trend_lookback: int | None = None
    pullback_lookback: int | None = None
    macro_bull_threshold: float | None = None
    macro_bear_threshold: float | None = None


@dataclass
class ScanOptions:
    """Per-request overrides. ``None`` everywhere means "use the defaults"."""

    date: Date | None = None
    symbols: list[str] | None = None
    filters: ScanFilters = field(default_factory=ScanFilters)
    params: ScanParams = field(default_factory=ScanParams)
    manual_closes: dict[str, float] = field(default_factory=dict)
    # Per-symbol risk overrides, merged over the settings dicts.
    risk_cap: dict[str, float] = field(default_factory=dict)
    cluster_radius: dict[str, float] = field(default_factory=dict)
    sl_buffer: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ScanConfig:
    date: Date
    symbols: tuple[str, ...]
    structure_lookback: int
    trend_lookback: int
    atr_window: int
    pullback_lookback: int
    macro_bull_threshold: float
    macro_bear_threshold: float
    min_rr: float
    spread_cap: float | None
    risk_profiles: dict[str, SymbolRiskProfile]
    manual_closes: dict[str, float] = field(default_factory=dict)
    scan_timeout_seconds: float | None = None

    @property
    def bars_needed(self) -> int:
        """Bars required by the widest sub-analysis."""
        return max(
            self.structure_lookback + self.trend_lookback + 2,
            self.atr_window + 1,
            self.pullback_lookback + self.trend_lookback + 1,
        )

    def risk_profile(self, symbol: str) -> SymbolRiskProfile:
        profile = self.risk_profiles.get(symbol)
        if profile is None:
            raise UnknownSymbolError(f"No risk profile configured for {symbol}")
        return profile


def _floor(value: int | None, default: int, minimum: int) -> int:
    return max(minimum, int(value if value is not None else default))


def build_risk_profiles(
    settings: Settings,
    risk_cap: dict[str, float] | None = None,
    cluster_radius: dict[str, float] | None = None,
    sl_buffer: dict[str, float] | None = None,
) -> dict[str, SymbolRiskProfile]:
    """
    Per-symbol risk profiles, request overrides taking precedence over settings.

    Symbols missing any of the three values after the merge get no profile.
    """
    caps = {**settings.risk_cap, **(risk_cap or {})}
    radii = {**settings.oc_cluster_radius, **(cluster_radius or {})}
    buffers = {**settings.sl_buffer, **(sl_buffer or {})}

    profiles: dict[str, SymbolRiskProfile] = {}
    for symbol, cap in caps.items():
        if symbol not in radii or symbol not in buffers:
            continue
        profiles[symbol] = SymbolRiskProfile(
            risk_cap=cap,
            cluster_radius=radii[symbol],
            sl_buffer=buffers[symbol],
        )
    return profiles


def resolve_scan_config(
    settings: Settings,
    options: ScanOptions | None = None,
    today: Date | None = None,
) -> ScanConfig:
    options = options or ScanOptions()
    params = options.params
    filters = options.filters

    symbols = tuple(options.symbols) if options.symbols else tuple(settings.symbols)
    scan_date = options.date or today or Date.today()

    return ScanConfig(
        date=scan_date,
        symbols=symbols,
        structure_lookback=_floor(
            params.structure_lookback, settings.structure_lookback, MIN_STRUCTURE_LOOKBACK
        ),
        trend_lookback=_floor(params.trend_lookback, settings.trend_lookback, MIN_TREND_LOOKBACK),
        atr_window=_floor(params.atr_window, settings.atr_window, MIN_ATR_WINDOW),
        pullback_lookback=_floor(
            params.pullback_lookback, settings.pullback_lookback, MIN_PULLBACK_LOOKBACK
        ),
        macro_bull_threshold=(
            params.macro_bull_threshold
            if params.macro_bull_threshold is not None
            else settings.macro_bull_threshold
        ),
        macro_bear_threshold=(
            params.macro_bear_threshold
            if params.macro_bear_threshold is not None
            else settings.macro_bear_threshold
        ),
        min_rr=filters.min_rr if filters.min_rr is not None else settings.min_rr,
        spread_cap=filters.spread_cap if filters.spread_cap is not None else settings.spread_cap,
        risk_profiles=build_risk_profiles(
            settings, options.risk_cap, options.cluster_radius, options.sl_buffer
        ),
        manual_closes=dict(options.manual_closes),
        scan_timeout_seconds=settings.scan_timeout_seconds,
    )
