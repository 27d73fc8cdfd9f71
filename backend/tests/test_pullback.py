"""
Pullback depth, scenario statistics and sweet-spot band tests
Run with: pytest backend/tests/test_pullback.py -v
"""

import math
from datetime import date

import pytest

from conftest import bull_staircase, make_bars
from market_scanner.services.indicators.pullback import (
    CandlePairPullbackRecord,
    PullbackScenarioKey,
    build_candle_pair_pullbacks,
    build_pullback_scenario_stats,
    classify_pullback_bucket,
    classify_sweetspot_state,
    compute_current_pullback_snapshot,
    compute_depth_into_previous,
    compute_live_pullback_into_prev,
    project_bucket_band,
    typical_bucket,
)

ALIGNED_LONG = PullbackScenarioKey("Bull", "Bull", "AlignedLong")


def _record(depth: float, scenario: PullbackScenarioKey = ALIGNED_LONG) -> CandlePairPullbackRecord:
    return CandlePairPullbackRecord(
        symbol="XAUUSD",
        prev_index=0,
        curr_index=1,
        date_prev=date(2025, 1, 1),
        date_curr=date(2025, 1, 2),
        prev_high=110.0,
        prev_low=100.0,
        curr_high=110.0,
        curr_low=100.0,
        scenario=scenario,
        depth_into_prev_pct=depth,
        bucket=classify_pullback_bucket(depth),
    )


class TestBuckets:
    @pytest.mark.parametrize(
        "depth,bucket",
        [
            (0.0, "0-0.382"),
            (0.381, "0-0.382"),
            (0.382, "0.382-0.5"),
            (0.5, "0.5-0.618"),
            (0.7, "0.618-0.786"),
            (0.9, "0.786-1.0"),
            (1.0, "1.0+"),
            (2.5, "1.0+"),
        ],
    )
    def test_half_open_buckets(self, depth, bucket):
        assert classify_pullback_bucket(depth) == bucket

    def test_unknown_depth(self):
        assert classify_pullback_bucket(None) is None
        assert classify_pullback_bucket(math.nan) is None


class TestDepth:
    def test_overshoot_is_not_capped(self):
        """Price swept 1.5 ranges below the prior low of a Bull day."""
        prev, curr = make_bars([(102.0, 110.0, 100.0, 108.0), (108.0, 110.0, 85.0, 90.0)])

        live = compute_live_pullback_into_prev(prev, 85.0, "Bull")
        historical = compute_depth_into_previous(prev, curr)

        assert live == pytest.approx(2.5)
        assert historical == pytest.approx(2.5)
        assert classify_pullback_bucket(live) == "1.0+"

    def test_live_depth_bear_measures_from_low(self):
        (prev,) = make_bars([(102.0, 110.0, 100.0, 108.0)])
        assert compute_live_pullback_into_prev(prev, 104.0, "Bear") == pytest.approx(0.4)

    def test_live_depth_floored_at_zero(self):
        (prev,) = make_bars([(102.0, 110.0, 100.0, 108.0)])
        assert compute_live_pullback_into_prev(prev, 115.0, "Bull") == 0.0

    def test_neutral_macro_has_no_depth(self):
        (prev,) = make_bars([(102.0, 110.0, 100.0, 108.0)])
        assert compute_live_pullback_into_prev(prev, 105.0, "Neutral") is None

    def test_degenerate_prior_range(self):
        prev, curr = make_bars([(100.0, 100.0, 100.0, 100.0), (100.0, 101.0, 99.0, 100.0)])
        assert compute_live_pullback_into_prev(prev, 100.0, "Bull") is None
        assert compute_depth_into_previous(prev, curr) is None

    def test_inside_bar_depth_is_overlap(self):
        prev, curr = make_bars([(102.0, 110.0, 100.0, 108.0), (105.0, 108.0, 104.0, 106.0)])
        assert compute_depth_into_previous(prev, curr) == pytest.approx(0.4)


class TestCandlePairs:
    def test_lookback_window(self):
        records = build_candle_pair_pullbacks("XAUUSD", bull_staircase(15), trend_lookback=5, lookback_days=10)

        assert len(records) == 9
        assert records[0].curr_index == 6
        assert records[-1].curr_index == 14
        assert all(r.prev_index == r.curr_index - 1 for r in records)

    def test_staircase_depth_is_full_range(self):
        records = build_candle_pair_pullbacks("XAUUSD", bull_staircase(15), trend_lookback=5, lookback_days=10)
        assert all(r.depth_into_prev_pct == 1.0 for r in records)
        assert all(r.bucket == "1.0+" for r in records)
        assert all(r.scenario == ALIGNED_LONG for r in records)

    def test_scenario_uses_only_prior_bars(self):
        """Reshaping the retrace bar moves its depth but never its scenario label."""
        bars = bull_staircase(15)
        last = bars[-1]
        reshaped = bars[:-1] + [last.model_copy(update={"high": last.high - 30, "low": last.low - 60, "close": last.low - 50})]

        original = build_candle_pair_pullbacks("XAUUSD", bars, trend_lookback=5, lookback_days=10)
        changed = build_candle_pair_pullbacks("XAUUSD", reshaped, trend_lookback=5, lookback_days=10)

        assert original[-1].scenario == changed[-1].scenario
        assert original[-1].depth_into_prev_pct != changed[-1].depth_into_prev_pct

    def test_too_few_bars(self):
        assert build_candle_pair_pullbacks("XAUUSD", bull_staircase(1)) == []


class TestScenarioStats:
    def test_even_sample_median_and_buckets(self):
        records = [_record(d) for d in (0.2, 0.45, 0.5, 1.2)]
        (stats,) = build_pullback_scenario_stats(records, lookback_days=60)

        assert stats.sample_count == 4
        assert stats.mean_depth_pct == pytest.approx(0.5875)
        assert stats.median_depth_pct == pytest.approx(0.475)
        assert stats.min_depth_pct == 0.2
        assert stats.max_depth_pct == 1.2
        assert stats.bucket_counts["0-0.382"] == 1
        assert stats.bucket_counts["0.382-0.5"] == 1
        assert stats.bucket_counts["0.5-0.618"] == 1
        assert stats.bucket_counts["1.0+"] == 1

    def test_odd_sample_median(self):
        (stats,) = build_pullback_scenario_stats([_record(d) for d in (0.3, 0.7, 0.4)], lookback_days=60)
        assert stats.median_depth_pct == 0.4

    def test_tie_goes_to_shallower_bucket(self):
        (stats,) = build_pullback_scenario_stats([_record(d) for d in (0.2, 0.45, 0.5, 1.2)], 60)
        assert stats.dominant_bucket == "0-0.382"

    def test_grouped_per_scenario(self):
        short = PullbackScenarioKey("Bear", "Bear", "AlignedShort")
        records = [_record(0.3), _record(0.6, short), _record(0.4)]
        stats = {s.key: s for s in build_pullback_scenario_stats(records, 60)}

        assert stats[ALIGNED_LONG].sample_count == 2
        assert stats[short].sample_count == 1
        assert stats[short].dominant_bucket == "0.5-0.618"


class TestCurrentSnapshot:
    def test_live_depth_with_matching_history(self):
        bars = bull_staircase(15)
        prev = bars[-2]
        price = prev.high - 0.5 * (prev.high - prev.low)

        snapshot = compute_current_pullback_snapshot(
            "XAUUSD", bars, price, trend_lookback=5, lookback_days=10
        )

        assert snapshot.scenario == ALIGNED_LONG
        assert snapshot.depth_into_prev_pct == pytest.approx(0.5)
        assert snapshot.bucket == "0.5-0.618"
        assert snapshot.sample_count == 9
        assert snapshot.typical_mean_pct == 1.0
        assert snapshot.dominant_bucket == "1.0+"
        assert typical_bucket(snapshot) == "1.0+"

    def test_no_reference_price(self):
        snapshot = compute_current_pullback_snapshot("XAUUSD", bull_staircase(15), None, trend_lookback=5)
        assert snapshot.depth_into_prev_pct is None
        assert snapshot.bucket is None

    def test_single_bar(self):
        snapshot = compute_current_pullback_snapshot("XAUUSD", bull_staircase(1), 2000.0)
        assert snapshot.scenario is None
        assert snapshot.sample_count == 0


class TestSweetspotBand:
    def test_bull_band_measured_from_high(self):
        (prev,) = make_bars([(102.0, 110.0, 100.0, 108.0)])
        low, high = project_bucket_band(prev, "0.382-0.5", "Bull")
        assert low == pytest.approx(105.0)
        assert high == pytest.approx(106.18)

    def test_bear_band_measured_from_low(self):
        (prev,) = make_bars([(108.0, 110.0, 100.0, 102.0)])
        low, high = project_bucket_band(prev, "0.382-0.5", "Bear")
        assert low == pytest.approx(103.82)
        assert high == pytest.approx(105.0)

    def test_no_band_without_bucket_or_direction(self):
        (prev,) = make_bars([(102.0, 110.0, 100.0, 108.0)])
        assert project_bucket_band(prev, None, "Bull") is None
        assert project_bucket_band(prev, "0.382-0.5", "Neutral") is None

    @pytest.mark.parametrize(
        "high_today,low_today,price,state",
        [
            (110.0, 106.0, 108.0, "not_touched"),
            (108.0, 101.0, 103.0, "currently_in"),
            (108.0, 104.0, 107.0, "touched_and_rejected"),
        ],
    )
    def test_states(self, high_today, low_today, price, state):
        assert classify_sweetspot_state(100.0, 105.0, high_today, low_today, price) == state

    def test_invalid_band(self):
        assert classify_sweetspot_state(105.0, 105.0, 110.0, 100.0, 105.0) is None
        assert classify_sweetspot_state(100.0, 105.0, math.nan, 100.0, 103.0) is None
