"""Tests for the interval catalog and bucket alignment."""

import pytest

from klinedata.exceptions import InputInvalidError, UnsupportedIntervalError
from klinedata.intervals import Interval, bucket_start, resolve_interval


class TestIntervalCatalog:
    def test_durations(self) -> None:
        assert Interval.ONE_MINUTE.milliseconds == 60_000
        assert Interval.FIVE_MINUTES.milliseconds == 300_000
        assert Interval.ONE_HOUR.milliseconds == 3_600_000
        assert Interval.ONE_DAY.milliseconds == 86_400_000

    def test_from_label(self) -> None:
        assert Interval.from_label("5m") is Interval.FIVE_MINUTES
        assert Interval.from_label("1d") is Interval.ONE_DAY

    def test_unknown_label_fails_fast(self) -> None:
        with pytest.raises(UnsupportedIntervalError, match="Unsupported interval: 2h"):
            Interval.from_label("2h")

    def test_unsupported_interval_is_input_error(self) -> None:
        """Callers catching InputInvalidError also see bad interval labels."""
        with pytest.raises(InputInvalidError):
            resolve_interval("1w")

    def test_labels_in_catalog_order(self) -> None:
        assert Interval.labels() == ["1m", "5m", "1h", "1d"]


class TestBucketStart:
    def test_aligns_down(self) -> None:
        assert bucket_start(3_599_999, "1h") == 0
        assert bucket_start(3_600_001, Interval.ONE_HOUR) == 3_600_000

    def test_boundary_belongs_to_bucket_it_starts(self) -> None:
        assert bucket_start(300_000, "5m") == 300_000

    def test_zero(self) -> None:
        assert Interval.ONE_DAY.bucket_start(0) == 0

    def test_real_timestamp(self) -> None:
        # 2024-01-01T12:34:56.789Z
        ts = 1_704_112_496_789
        assert bucket_start(ts, "1m") == 1_704_112_440_000
        assert bucket_start(ts, "1d") == 1_704_067_200_000
