"""
Scan orchestration tests: end-to-end pipeline, reference prices and batch isolation
Run with: pytest backend/tests/test_scanner.py -v
"""

import asyncio
from datetime import date

import pytest

from conftest import FixedPriceSource, InMemoryBarSource, bear_staircase, bull_staircase
from market_scanner.config import Settings
from market_scanner.services.errors import InsufficientDataError
from market_scanner.services.scan_config import ScanOptions, resolve_scan_config
from market_scanner.services.scan_format import scan_response_to_payload
from market_scanner.services.scanner import (
    SymbolScanError,
    SymbolScanOk,
    resolve_reference_price,
    scan_market,
    scan_symbol,
)

SYMBOLS = ["XAUUSD", "EURUSD", "GBPJPY", "GBPUSD"]
SCAN_DATE = date(2025, 2, 1)


def _config(settings, **options):
    return resolve_scan_config(settings, ScanOptions(**options), today=SCAN_DATE)


class TestScanSymbol:
    def test_bull_staircase_yields_model_a_longs(self, test_settings):
        """Thirty bars suffice only under the reduced test windows (20/5/20/15 need 27 bars)."""
        config = _config(test_settings)
        source = InMemoryBarSource({"XAUUSD": bull_staircase(30)})

        result = asyncio.run(scan_symbol("XAUUSD", config, source))

        assert source.requests == [("XAUUSD", 27)]
        assert result.trend.macro_trend == "Bull"
        assert result.trend.alignment == "AlignedLong"
        assert len(result.zones) == 5
        assert all(z.score == 3 for z in result.zones)

        model_a = [t for t in result.trades if t.model == "A"]
        assert len(model_a) == 5
        for trade in model_a:
            assert trade.direction == "Long"
            assert trade.stop < trade.entry < trade.tp1
            assert trade.risk_price == pytest.approx(3.5)
            assert trade.rr >= 2.0

    def test_reference_falls_back_to_last_close(self, test_settings):
        bars = bull_staircase(30)
        result = asyncio.run(scan_symbol("XAUUSD", _config(test_settings), InMemoryBarSource({"XAUUSD": bars})))

        assert result.reference_price.source == "fallback"
        assert result.reference_price.price == bars[-1].close
        assert result.live_price is None
        assert result.last_bar_date == bars[-1].date

    def test_bear_staircase_is_short_biased(self, test_settings):
        result = asyncio.run(
            scan_symbol("XAUUSD", _config(test_settings), InMemoryBarSource({"XAUUSD": bear_staircase(30)}))
        )
        assert result.trend.macro_trend == "Bear"
        assert all(t.direction == "Short" for t in result.trades if t.model in ("A", "B"))

    def test_history_shorter_than_needed(self, test_settings):
        source = InMemoryBarSource({"XAUUSD": bull_staircase(10)})
        with pytest.raises(Exception, match="Insufficient data for XAUUSD: got 10, need 27"):
            asyncio.run(scan_symbol("XAUUSD", _config(test_settings), source))

    def test_default_windows_need_more_than_thirty_bars(self):
        config = _config(Settings(_env_file=None))
        source = InMemoryBarSource({"XAUUSD": bull_staircase(30)})

        assert config.bars_needed == 71
        with pytest.raises(InsufficientDataError, match="got 30, need 71"):
            asyncio.run(scan_symbol("XAUUSD", config, source))


class TestReferencePrice:
    def test_manual_close_wins_and_skips_live_lookup(self, test_settings):
        prices = FixedPriceSource({"XAUUSD": 2600.0})
        config = _config(test_settings, manual_closes={"XAUUSD": 2555.5})

        result = asyncio.run(
            scan_symbol("XAUUSD", config, InMemoryBarSource({"XAUUSD": bull_staircase(30)}), prices)
        )

        assert result.reference_price.source == "manual"
        assert result.reference_price.price == 2555.5
        assert prices.calls == []

    def test_live_price_used_when_available(self, test_settings):
        prices = FixedPriceSource({"XAUUSD": 2600.0})
        result = asyncio.run(
            scan_symbol("XAUUSD", _config(test_settings), InMemoryBarSource({"XAUUSD": bull_staircase(30)}), prices)
        )

        assert result.reference_price.source == "live"
        assert result.reference_price.price == 2600.0
        assert result.live_price.spot == 2600.0

    def test_failed_live_lookup_is_explained(self, test_settings):
        bars = bull_staircase(30)
        prices = FixedPriceSource({"XAUUSD": None})
        live = asyncio.run(prices.get_price("XAUUSD"))

        reference = resolve_reference_price("XAUUSD", _config(test_settings), bars, live)

        assert reference.source == "fallback"
        assert reference.price == bars[-1].close
        assert "HTTP 503" in reference.reason


class TestScanMarket:
    def test_one_failing_symbol_does_not_poison_the_batch(self, test_settings):
        data = {symbol: bull_staircase(30) for symbol in SYMBOLS}
        source = InMemoryBarSource(data, failing={"GBPJPY"})

        response = asyncio.run(scan_market(_config(test_settings, symbols=SYMBOLS), source))

        assert list(response.symbols) == SYMBOLS
        assert response.date == SCAN_DATE
        errors = {s: e for s, e in response.symbols.items() if isinstance(e, SymbolScanError)}
        assert list(errors) == ["GBPJPY"]
        assert "bar store unavailable" in errors["GBPJPY"].error
        assert sum(isinstance(e, SymbolScanOk) for e in response.symbols.values()) == 3

    def test_insufficient_data_becomes_error_entry(self, test_settings):
        source = InMemoryBarSource({"XAUUSD": bull_staircase(30), "EURUSD": bull_staircase(5)})

        response = asyncio.run(scan_market(_config(test_settings, symbols=["XAUUSD", "EURUSD"]), source))

        assert response.symbols["XAUUSD"].status == "ok"
        assert response.symbols["EURUSD"].status == "error"
        assert response.symbols["EURUSD"].error == "Insufficient data for EURUSD: got 5, need 27"

    def test_symbol_without_profile(self, test_settings):
        source = InMemoryBarSource({"BTCUSD": bull_staircase(30)})
        response = asyncio.run(scan_market(_config(test_settings, symbols=["BTCUSD"]), source))
        assert response.symbols["BTCUSD"].error == "No risk profile configured for BTCUSD"
        assert source.requests == []

    def test_duplicate_symbols_scanned_once(self, test_settings):
        source = InMemoryBarSource({"XAUUSD": bull_staircase(30)})
        response = asyncio.run(scan_market(_config(test_settings, symbols=["XAUUSD", "XAUUSD"]), source))
        assert list(response.symbols) == ["XAUUSD"]
        assert len(source.requests) == 1

    def test_slow_symbol_times_out(self, test_settings):
        class SlowSource(InMemoryBarSource):
            async def get_bars(self, symbol, count):
                if symbol == "EURUSD":
                    await asyncio.sleep(5)
                return await super().get_bars(symbol, count)

        settings = test_settings.model_copy(update={"scan_timeout_seconds": 0.2})
        source = SlowSource({s: bull_staircase(30) for s in ("XAUUSD", "EURUSD")})

        response = asyncio.run(scan_market(_config(settings, symbols=["XAUUSD", "EURUSD"]), source))

        assert response.symbols["XAUUSD"].status == "ok"
        assert response.symbols["EURUSD"].error == "Scan timed out after 0.2s"

    def test_payload_shape(self, test_settings):
        source = InMemoryBarSource({"XAUUSD": bull_staircase(30)}, failing={"EURUSD"})
        response = asyncio.run(scan_market(_config(test_settings, symbols=["XAUUSD", "EURUSD"]), source))

        payload = scan_response_to_payload(response)

        assert payload["date"] == "2025-02-01"
        ok = payload["symbols"]["XAUUSD"]
        assert ok["status"] == "ok"
        assert ok["trend"] == "Bull"
        assert ok["macroTrend"] == "Bull"
        assert ok["referencePrice"]["source"] == "fallback"
        assert ok["candidate"]["status"] in ("none", "watch", "long", "short")
        assert {t["model"] for t in ok["trades"]} >= {"A"}
        assert payload["symbols"]["EURUSD"] == {
            "status": "error",
            "symbol": "EURUSD",
            "error": "bar store unavailable for EURUSD",
        }
