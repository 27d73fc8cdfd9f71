from datetime import date as Date
from typing import Literal

from pydantic import BaseModel, ConfigDict

PriceSource = Literal["live", "fallback", "manual"]


class OhlcBar(BaseModel):
    """One daily bar. Bars are passed around ascending by date, one per day."""

    model_config = ConfigDict(frozen=True)

    date: Date
    open: float
    high: float
    low: float
    close: float
    tick_volume: float | None = None
    volume: float | None = None
    spread: float | None = None


class LivePriceError(BaseModel):
    code: str
    message: str


class LivePriceSnapshot(BaseModel):
    """Result of a live price lookup; spot is None when the provider gave nothing usable."""

    symbol: str
    spot: float | None
    source: PriceSource
    error: LivePriceError | None = None
