"""Trading strategy module: produces trade candidates from zones, liquidity and pullback context."""

from market_scanner.services.trading_strategy.types import TradeCandidate
from market_scanner.services.trading_strategy.models import (
    ModelContext,
    generate_all_trades,
    generate_model_a_trades,
    generate_model_b_trades,
    generate_model_c_trades,
    generate_model_d_trades,
)
from market_scanner.services.trading_strategy.sweet_spot import SweetSpotSignal, evaluate_sweet_spot
from market_scanner.services.trading_strategy.diagnostics import (
    CandidateDiagnostics,
    build_candidate_diagnostics,
)

__all__ = [
    "TradeCandidate",
    "ModelContext",
    "generate_all_trades",
    "generate_model_a_trades",
    "generate_model_b_trades",
    "generate_model_c_trades",
    "generate_model_d_trades",
    "SweetSpotSignal",
    "evaluate_sweet_spot",
    "CandidateDiagnostics",
    "build_candidate_diagnostics",
]
