"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from klinedata.exceptions import UnsupportedIntervalError
from klinedata.intervals import Interval


class ExchangeSettings(BaseSettings):
    """Binance public market-data connection settings."""

    model_config = SettingsConfigDict(env_prefix="BINANCE_")

    base_url: str = ""  # empty keeps the ccxt default endpoint
    enable_rate_limit: bool = True


class LoaderSettings(BaseSettings):
    """Batch load parameters.

    default_interval and max_records_per_call together decide how much time
    one exchange call covers. Binance caps klines at 1000 per call; 500 is
    its default limit.
    """

    model_config = SettingsConfigDict(env_prefix="LOADER_")

    default_interval: str = "1m"
    max_records_per_call: int = 500
    max_concurrency: int = 4  # simultaneous exchange calls per load
    request_timeout: float = 10.0  # seconds per sub-range fetch attempt
    max_retries: int = 3
    retry_base_delay: float = 0.5
    raise_on_partial: bool = True

    @field_validator("default_interval")
    @classmethod
    def _known_interval(cls, value: str) -> str:
        try:
            Interval.from_label(value)
        except UnsupportedIntervalError as e:
            raise ValueError(str(e)) from e
        return value

    @field_validator("max_records_per_call", "max_concurrency", "max_retries")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class CacheSettings(BaseSettings):
    """Cache index configuration.

    An empty redis_url selects the process-local in-memory index.
    """

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    redis_url: str = ""
    ttl_seconds: int = 3600
    key_prefix: str = "klineData"
    single_flight: bool = True


class DatabaseSettings(BaseSettings):
    """Durable store location."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    path: str = "data/klines.db"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    exchange: ExchangeSettings = ExchangeSettings()
    loader: LoaderSettings = LoaderSettings()
    cache: CacheSettings = CacheSettings()
    database: DatabaseSettings = DatabaseSettings()
