"""Trading strategy types."""

from dataclasses import dataclass
from typing import Literal

ModelTag = Literal["A", "B", "C1", "C2", "D"]
Direction = Literal["Long", "Short"]
StopType = Literal["Swing", "PD"]

PENDING_LIMIT = "PENDING_LIMIT"


@dataclass(frozen=True)
class TradeCandidate:
    """A trade idea emitted by one of the models. Only valid trades are ever built."""

    model: ModelTag
    direction: Direction
    entry: float
    stop: float
    tp1: float
    risk_price: float  # |entry - stop|
    reward_price: float  # |tp1 - entry|
    rr: float
    stop_type: StopType
    status: Literal["VALID"] = "VALID"
    placement: str | None = None  # PENDING_LIMIT for model D
