"""Scan failures. Each one is fatal to a single symbol's scan, never to the batch."""


class ScanError(Exception):
    """Base class for per-symbol scan failures."""


class InsufficientDataError(ScanError):
    def __init__(self, symbol: str, got: int, need: int) -> None:
        super().__init__(f"Insufficient data for {symbol}: got {got}, need {need}")
        self.symbol = symbol
        self.got = got
        self.need = need


class BarSourceError(ScanError):
    """Bar history could not be loaded."""


class UnknownSymbolError(ScanError):
    """No risk profile is configured for the symbol."""
