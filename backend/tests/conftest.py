"""Shared bar builders and fakes for the scanner tests."""

from datetime import date, timedelta

import pytest

from market_scanner.config import Settings
from market_scanner.schemas.market import LivePriceError, LivePriceSnapshot, OhlcBar
from market_scanner.services.errors import BarSourceError
from market_scanner.services.scan_config import SymbolRiskProfile

BASE_DATE = date(2025, 1, 1)


def make_bars(rows, start: date = BASE_DATE, spread: float | None = None) -> list[OhlcBar]:
    """rows: iterable of (open, high, low, close); one calendar day apart."""
    return [
        OhlcBar(
            date=start + timedelta(days=i),
            open=o,
            high=h,
            low=l,
            close=c,
            spread=spread,
        )
        for i, (o, h, l, c) in enumerate(rows)
    ]


def bull_staircase(n: int, base: float = 2000.0, step: float = 20.0) -> list[OhlcBar]:
    """
    Every bar breaks and closes above the previous high (a Bull trend day).

    Bar i: open = base + step*i, close = open + 15, high = open + 16, low = open - 4,
    so each close and the next open sit 5 apart and cluster together.
    """
    rows = []
    for i in range(n):
        o = base + step * i
        rows.append((o, o + 16, o - 4, o + 15))
    return make_bars(rows)


def bear_staircase(n: int, base: float = 2000.0, step: float = 20.0) -> list[OhlcBar]:
    rows = []
    for i in range(n):
        o = base - step * i
        rows.append((o, o + 4, o - 16, o - 15))
    return make_bars(rows)


class InMemoryBarSource:
    def __init__(self, data: dict[str, list[OhlcBar]], failing: set[str] | None = None) -> None:
        self._data = data
        self._failing = failing or set()
        self.requests: list[tuple[str, int]] = []

    async def get_bars(self, symbol: str, count: int) -> list[OhlcBar]:
        self.requests.append((symbol, count))
        if symbol in self._failing:
            raise BarSourceError(f"bar store unavailable for {symbol}")
        return self._data.get(symbol, [])[-count:]


class FixedPriceSource:
    def __init__(self, prices: dict[str, float | None]) -> None:
        self._prices = prices
        self.calls: list[str] = []

    async def get_price(self, symbol: str) -> LivePriceSnapshot:
        self.calls.append(symbol)
        spot = self._prices.get(symbol)
        if spot is None:
            return LivePriceSnapshot(
                symbol=symbol,
                spot=None,
                source="fallback",
                error=LivePriceError(code="HTTP_ERROR", message="HTTP 503"),
            )
        return LivePriceSnapshot(symbol=symbol, spot=spot, source="live")


@pytest.fixture
def gold_profile() -> SymbolRiskProfile:
    return SymbolRiskProfile(risk_cap=40.0, cluster_radius=5.0, sl_buffer=2.0)


@pytest.fixture
def test_settings() -> Settings:
    """Small windows so a 30-bar history is enough for every sub-analysis."""
    return Settings(
        _env_file=None,
        structure_lookback=20,
        trend_lookback=5,
        atr_window=20,
        pullback_lookback=15,
        fx_api_url=None,
        fx_api_key=None,
    )
