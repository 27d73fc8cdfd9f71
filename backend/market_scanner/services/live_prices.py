"""Live spot prices from an HTTP quote provider, with bounded retry."""

import asyncio
import logging
import math

import httpx

from market_scanner.schemas.market import LivePriceError, LivePriceSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5

# Internal symbol -> provider ticker.
SYMBOL_TO_TICKER = {
    "XAUUSD": "XAUUSD",
    "EURUSD": "EURUSD",
    "GBPUSD": "GBPUSD",
    "GBPJPY": "GBPJPY",
}


def _failed(symbol: str, code: str, message: str) -> LivePriceSnapshot:
    return LivePriceSnapshot(
        symbol=symbol,
        spot=None,
        source="fallback",
        error=LivePriceError(code=code, message=message),
    )


class LivePriceClient:
    def __init__(
        self,
        api_url: str | None,
        api_key: str | None,
        *,
        timeout: float = 10.0,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._backoff_seconds = backoff_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_url and self._api_key)

    async def get_price(self, symbol: str) -> LivePriceSnapshot:
        """
        Fetch the current price. Never raises: failures come back as a snapshot
        with ``spot=None`` and an error. Retries only network errors and 5xx,
        sleeping ``backoff_seconds * attempt`` between attempts.
        """
        if not self.configured:
            return _failed(symbol, "CONFIG_MISSING", "FX_API_URL or FX_API_KEY not set")

        params = {"symbol": SYMBOL_TO_TICKER.get(symbol, symbol), "apikey": self._api_key}
        last_error = _failed(symbol, "HTTP_ERROR", "no attempt made")

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for attempt in range(1, self._max_attempts + 1):
                try:
                    response = await client.get(self._api_url, params=params)
                except httpx.TransportError as e:
                    logger.warning("Live price %s attempt %d failed: %s", symbol, attempt, e)
                    last_error = _failed(symbol, "NETWORK_ERROR", str(e))
                else:
                    if response.status_code >= 500:
                        logger.warning(
                            "Live price %s attempt %d: HTTP %d", symbol, attempt, response.status_code
                        )
                        last_error = _failed(symbol, "HTTP_ERROR", f"HTTP {response.status_code}")
                    elif response.status_code >= 400:
                        logger.warning("Live price %s rejected: HTTP %d", symbol, response.status_code)
                        return _failed(symbol, "HTTP_ERROR", f"HTTP {response.status_code}")
                    else:
                        return self._parse(symbol, response)

                if attempt < self._max_attempts:
                    await asyncio.sleep(self._backoff_seconds * attempt)

        return last_error

    def _parse(self, symbol: str, response: httpx.Response) -> LivePriceSnapshot:
        try:
            price = float(response.json()["price"])
            if not math.isfinite(price):
                raise ValueError(f"non-finite price {price}")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Live price parse failed for %s: %s", symbol, e)
            return _failed(symbol, "PARSE_ERROR", f"Unparsable price payload: {e}")
        return LivePriceSnapshot(symbol=symbol, spot=price, source="live")
