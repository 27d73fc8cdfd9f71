from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Daily Structure Scanner"
    cors_origins: list[str] = ["http://localhost:3000"]

    symbols: list[str] = ["XAUUSD", "EURUSD", "GBPJPY", "GBPUSD"]
    # Broker CSV exports: <data_dir>/<SYMBOL>_Daily.csv
    data_dir: str = "data"

    # Live price provider (price disabled when url/key missing)
    fx_api_url: str | None = None
    fx_api_key: str | None = None
    live_price_timeout: float = 10.0
    live_price_max_attempts: int = 3
    live_price_backoff_seconds: float = 0.5

    scan_timeout_seconds: float = 30.0

    # Windows (daily bars)
    structure_lookback: int = 20
    trend_lookback: int = 10
    atr_window: int = 20
    pullback_lookback: int = 60
    macro_bull_threshold: float = 0.6
    macro_bear_threshold: float = 0.6

    min_rr: float = 2.0
    spread_cap: float | None = None

    # Per-symbol risk, in price units
    risk_cap: dict[str, float] = {
        "XAUUSD": 40.0,
        "EURUSD": 0.0040,
        "GBPJPY": 0.0040,
        "GBPUSD": 0.0040,
    }
    oc_cluster_radius: dict[str, float] = {
        "XAUUSD": 5.0,
        "EURUSD": 0.0005,
        "GBPJPY": 0.0005,
        "GBPUSD": 0.0005,
    }
    sl_buffer: dict[str, float] = {
        "XAUUSD": 2.0,
        "EURUSD": 0.0005,
        "GBPJPY": 0.0005,
        "GBPUSD": 0.0005,
    }

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
