"""Shared test fixtures for the kline data service."""

import pytest

from klinedata.config import (
    AppSettings,
    CacheSettings,
    DatabaseSettings,
    LoaderSettings,
)


@pytest.fixture
def loader_settings() -> LoaderSettings:
    """Small batches, no retry delay, short timeout."""
    return LoaderSettings(
        default_interval="1m",
        max_records_per_call=10,
        max_concurrency=2,
        request_timeout=0.5,
        max_retries=3,
        retry_base_delay=0.0,
        raise_on_partial=True,
    )


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings(redis_url="", ttl_seconds=3600, key_prefix="klineData")


@pytest.fixture
def mock_settings(tmp_path, loader_settings, cache_settings) -> AppSettings:
    """Return AppSettings with test defaults (in-memory cache, temp database)."""
    return AppSettings(
        log_level="DEBUG",
        loader=loader_settings,
        cache=cache_settings,
        database=DatabaseSettings(path=str(tmp_path / "klines.db")),
    )
