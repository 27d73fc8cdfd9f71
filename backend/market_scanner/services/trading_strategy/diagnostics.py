"""Candidate filter report shown next to each symbol: which conditions pass and why not."""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from market_scanner.services.indicators.nearest_zone import NearestZoneInfo
from market_scanner.services.indicators.pullback import CurrentPullbackSnapshot
from market_scanner.services.indicators.trend import BEAR, BULL, Location, Trend
from market_scanner.services.trading_strategy.types import TradeCandidate

CandidateStatus = Literal["none", "watch", "long", "short"]

EXPECTED_LOCATION: dict[str, Location] = {BULL: "Discount", BEAR: "Premium"}


@dataclass(frozen=True)
class CandidateCondition:
    id: str
    label: str
    passed: bool


@dataclass(frozen=True)
class CandidateDiagnostics:
    summary: str
    conditions: list[CandidateCondition]
    status: CandidateStatus


def build_candidate_diagnostics(
    trend: Trend,
    location: Location,
    nearest_zone: NearestZoneInfo | None,
    pullback: CurrentPullbackSnapshot | None,
    trades: Sequence[TradeCandidate] | None = None,
) -> CandidateDiagnostics:
    directional = trend in (BULL, BEAR)
    location_ok = not directional or location == EXPECTED_LOCATION[trend]
    zone_ok = nearest_zone is not None and nearest_zone.status in ("AT_ZONE", "NEAR")
    depth = pullback.depth_into_prev_pct if pullback is not None else None
    depth_ok = depth is not None and math.isfinite(depth)

    conditions = [
        CandidateCondition("trend", "Directional trend identified (Bull/Bear)", directional),
        CandidateCondition(
            "location", "Location aligns with bias (Bull -> Discount, Bear -> Premium)", location_ok
        ),
        CandidateCondition("zone", "Price is at or near a structural zone", zone_ok),
        CandidateCondition("pullback", "Pullback depth available for the session", depth_ok),
    ]
    if trades is not None:
        conditions.append(
            CandidateCondition("model-signal", "At least one model produced a trade setup", bool(trades))
        )

    failing = [c for c in conditions if not c.passed]
    if not failing:
        summary = "All candidate filters are satisfied."
    else:
        plural = "" if len(failing) == 1 else "s"
        labels = "; ".join(c.label.lower() for c in failing)
        summary = f"Blocked by {len(failing)} filter{plural}: {labels}."
        if directional and not location_ok:
            summary += f" ({location} vs expected {EXPECTED_LOCATION[trend]} for {trend} bias.)"

    return CandidateDiagnostics(
        summary=summary,
        conditions=conditions,
        status=_candidate_status(trend, failing, trades or []),
    )


def _candidate_status(
    trend: Trend,
    failing: list[CandidateCondition],
    trades: Sequence[TradeCandidate],
) -> CandidateStatus:
    if trend not in (BULL, BEAR):
        return "none"
    direction = "Long" if trend == BULL else "Short"
    if not failing and any(t.direction == direction for t in trades):
        return "long" if trend == BULL else "short"
    return "watch"
