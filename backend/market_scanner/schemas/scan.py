from datetime import date as Date
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from market_scanner.services.scan_config import ScanFilters, ScanOptions, ScanParams


class ScanFiltersIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    min_rr: float | None = Field(default=None, gt=0, allow_inf_nan=False, alias="minRr")
    spread_cap: float | None = Field(default=None, ge=0, allow_inf_nan=False, alias="spreadCap")


class ScanParamsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    atr_window: int | None = Field(default=None, ge=1, le=500, alias="atrWindow")
    structure_lookback: int | None = Field(default=None, ge=1, le=500, alias="structureLookback")
    trend_lookback: int | None = Field(default=None, ge=1, le=500, alias="trendLookback")
    pullback_lookback: int | None = Field(default=None, ge=1, le=2000, alias="pullbackLookback")
    macro_bull_threshold: float | None = Field(default=None, gt=0, le=1, alias="macroBullThreshold")
    macro_bear_threshold: float | None = Field(default=None, gt=0, le=1, alias="macroBearThreshold")


PositivePrice = Annotated[float, Field(gt=0, allow_inf_nan=False)]
NonNegativePrice = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class ScanRequest(BaseModel):
    """Body of POST /api/v1/scan. Every field is optional."""

    model_config = ConfigDict(populate_by_name=True)

    date: Date | None = None
    symbols: list[str] | None = None
    filters: ScanFiltersIn = Field(default_factory=ScanFiltersIn)
    params: ScanParamsIn = Field(default_factory=ScanParamsIn)
    manual_closes: dict[str, float] = Field(default_factory=dict, alias="manualCloses")
    risk_cap: dict[str, PositivePrice] = Field(default_factory=dict, alias="riskCap")
    cluster_radius: dict[str, NonNegativePrice] = Field(default_factory=dict, alias="clusterRadius")
    sl_buffer: dict[str, NonNegativePrice] = Field(default_factory=dict, alias="slBuffer")

    def to_options(self, supported: list[str]) -> ScanOptions:
        """Unsupported symbols are dropped; an empty selection means all symbols."""
        allowed = set(supported)
        symbols = [s.strip().upper() for s in self.symbols or []]
        symbols = [s for s in symbols if s in allowed]
        return ScanOptions(
            date=self.date,
            symbols=symbols or None,
            filters=ScanFilters(**self.filters.model_dump()),
            params=ScanParams(**self.params.model_dump()),
            manual_closes=_per_symbol(self.manual_closes, allowed),
            risk_cap=_per_symbol(self.risk_cap, allowed),
            cluster_radius=_per_symbol(self.cluster_radius, allowed),
            sl_buffer=_per_symbol(self.sl_buffer, allowed),
        )


def _per_symbol(values: dict[str, float], allowed: set[str]) -> dict[str, float]:
    return {s.strip().upper(): v for s, v in values.items() if s.strip().upper() in allowed}
