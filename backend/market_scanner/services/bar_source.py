"""Daily bar sources. The scanner only needs ``get_bars(symbol, count)``."""

import asyncio
import io
import logging
from pathlib import Path
from typing import Protocol

import pandas as pd

from market_scanner.schemas.market import OhlcBar
from market_scanner.services.errors import BarSourceError

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ["OPEN", "HIGH", "LOW", "CLOSE"]
REQUIRED_COLUMNS = ["DATE", *PRICE_COLUMNS]
OPTIONAL_COLUMNS = {"TICKVOL": "tick_volume", "VOL": "volume", "SPREAD": "spread"}


class BarSource(Protocol):
    async def get_bars(self, symbol: str, count: int) -> list[OhlcBar]:
        """Up to ``count`` most recent daily bars, ascending by date."""
        ...


def _read_tsv(source) -> pd.DataFrame:
    return pd.read_csv(source, sep="\t", dtype=str, index_col=False, skipinitialspace=True)


def _frame_to_bars(df: pd.DataFrame) -> list[OhlcBar]:
    """
    Turn a raw MT5 daily export into bars.

    Headers may carry angle brackets (<DATE>). Dates are YYYY.MM.DD or ISO.
    Rows with an unreadable date or a missing/non-finite price are skipped.
    """
    df = df.rename(columns=lambda c: str(c).strip().strip("<>").upper())
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise BarSourceError(f"Required columns not found in CSV header: {', '.join(df.columns)}")

    out = pd.DataFrame()
    out["date"] = pd.to_datetime(
        df["DATE"].str.strip().str.replace(".", "-", regex=False),
        format="%Y-%m-%d",
        errors="coerce",
    )
    for col in PRICE_COLUMNS:
        out[col.lower()] = pd.to_numeric(df[col], errors="coerce")
    for col, field in OPTIONAL_COLUMNS.items():
        if col in df.columns:
            out[field] = pd.to_numeric(df[col], errors="coerce")

    # "inf" parses as a number; treat it like any other bad price.
    numeric = out.columns.drop("date")
    out[numeric] = out[numeric].replace([float("inf"), float("-inf")], float("nan"))
    out = out.dropna(subset=["date", "open", "high", "low", "close"]).sort_values("date", kind="stable")

    bars: list[OhlcBar] = []
    for record in out.to_dict("records"):
        extras = {
            field: (None if pd.isna(record[field]) else float(record[field]))
            for field in OPTIONAL_COLUMNS.values()
            if field in record
        }
        bars.append(
            OhlcBar(
                date=record["date"].date(),
                open=float(record["open"]),
                high=float(record["high"]),
                low=float(record["low"]),
                close=float(record["close"]),
                **extras,
            )
        )
    return bars


def parse_broker_csv(text: str) -> list[OhlcBar]:
    """Parse a tab-separated MT5 daily export (<DATE> <OPEN> <HIGH> <LOW> <CLOSE> ...)."""
    if not text.strip():
        return []
    try:
        df = _read_tsv(io.StringIO(text))
    except pd.errors.ParserError as e:
        raise BarSourceError(f"Malformed CSV: {e}") from e
    return _frame_to_bars(df)


class CsvBarSource:
    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)

    def _path(self, symbol: str) -> Path:
        """data/XAUUSD_Daily.csv"""
        return self._data_dir / f"{symbol}_Daily.csv"

    def _load(self, symbol: str) -> list[OhlcBar]:
        path = self._path(symbol)
        try:
            df = _read_tsv(path)
        except OSError as e:
            raise BarSourceError(f"Failed to load bars for {symbol} from {path}: {e}") from e
        except pd.errors.EmptyDataError as e:
            raise BarSourceError(f"No bars parsed from CSV for {symbol}") from e
        except pd.errors.ParserError as e:
            raise BarSourceError(f"Failed to load bars for {symbol} from {path}: {e}") from e
        bars = _frame_to_bars(df)
        if not bars:
            raise BarSourceError(f"No bars parsed from CSV for {symbol}")
        return bars

    async def get_bars(self, symbol: str, count: int) -> list[OhlcBar]:
        bars = await asyncio.to_thread(self._load, symbol)
        logger.debug("Loaded %d bars for %s, returning last %d", len(bars), symbol, count)
        return bars[-count:] if count > 0 else []
