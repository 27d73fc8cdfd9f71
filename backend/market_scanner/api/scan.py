"""Scan API: runs the daily structure scan over the configured symbols."""
import logging

from fastapi import APIRouter, Body, Depends, HTTPException

from market_scanner.config import Settings, settings
from market_scanner.schemas.scan import ScanRequest
from market_scanner.services.bar_source import BarSource, CsvBarSource
from market_scanner.services.live_prices import LivePriceClient
from market_scanner.services.scan_config import ScanOptions, resolve_scan_config
from market_scanner.services.scan_format import scan_response_to_payload
from market_scanner.services.scanner import PriceSourceClient, scan_market

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["scan"])


def get_settings() -> Settings:
    return settings


def get_bar_source(app_settings: Settings = Depends(get_settings)) -> BarSource:
    return CsvBarSource(app_settings.data_dir)


def get_price_source(app_settings: Settings = Depends(get_settings)) -> PriceSourceClient:
    return LivePriceClient(
        app_settings.fx_api_url,
        app_settings.fx_api_key,
        timeout=app_settings.live_price_timeout,
        max_attempts=app_settings.live_price_max_attempts,
        backoff_seconds=app_settings.live_price_backoff_seconds,
    )


async def _run_scan(
    options: ScanOptions,
    app_settings: Settings,
    bar_source: BarSource,
    price_source: PriceSourceClient,
) -> dict:
    config = resolve_scan_config(app_settings, options)
    try:
        response = await scan_market(config, bar_source, price_source)
    except Exception as e:
        logger.exception("Scan failed")
        raise HTTPException(status_code=500, detail="Scan failed") from e
    return {"signals": [scan_response_to_payload(response)]}


@router.get("/scan")
async def get_scan(
    app_settings: Settings = Depends(get_settings),
    bar_source: BarSource = Depends(get_bar_source),
    price_source: PriceSourceClient = Depends(get_price_source),
) -> dict:
    """[Dashboard] Scan all configured symbols with default parameters."""
    return await _run_scan(ScanOptions(), app_settings, bar_source, price_source)


@router.post("/scan")
async def post_scan(
    request: ScanRequest | None = Body(default=None),
    app_settings: Settings = Depends(get_settings),
    bar_source: BarSource = Depends(get_bar_source),
    price_source: PriceSourceClient = Depends(get_price_source),
) -> dict:
    """[Dashboard] Scan with per-request symbols, filters, windows and manual closes."""
    options = (request or ScanRequest()).to_options(app_settings.symbols)
    return await _run_scan(options, app_settings, bar_source, price_source)
