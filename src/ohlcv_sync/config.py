"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class CryptoCompareSettings(BaseSettings):
    """CryptoCompare API connection settings."""

    model_config = SettingsConfigDict(env_prefix="CRYPTOCOMPARE_")

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://min-api.cryptocompare.com/data/v2"
    max_page_size: int = 2000  # upstream hard limit per call
    request_timeout: float = 30.0


class FetchSettings(BaseSettings):
    """What to fetch and how politely to walk the history.

    All fields configurable via FETCH_ environment variable prefix.
    List fields take JSON, e.g. FETCH_TRADING_SYMBOLS='["BTC","ETH"]'.
    """

    model_config = SettingsConfigDict(env_prefix="FETCH_")

    trading_symbols: list[str] = ["BTC", "ETH"]
    vs_currency: str = "USD"

    # Most recent buckets fetched per run in refresh mode
    limit_minute: int = 120
    limit_hourly: int = 48
    limit_daily: int = 7

    page_delay_seconds: float = 10.0  # fixed pause between history pages
    clock_skew_seconds: int = 5  # forward slack on the first cursor
    queue_size: int = 10
    download_workers: int = 1


class DatabaseSettings(BaseSettings):
    """SQLite storage location."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    path: str = "data/ohlcv.db"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" for machine-readable output
    cryptocompare: CryptoCompareSettings = CryptoCompareSettings()
    fetch: FetchSettings = FetchSettings()
    database: DatabaseSettings = DatabaseSettings()
