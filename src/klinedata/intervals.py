"""Interval catalog and bucket alignment arithmetic.

Every timestamp in the system is epoch milliseconds. A bucket is the
interval-aligned slot a timestamp falls into:
    bucket_start(t) = floor(t / interval_ms) * interval_ms
"""

from enum import Enum

from klinedata.exceptions import UnsupportedIntervalError


class Interval(Enum):
    """Supported candle intervals as (label, duration in milliseconds)."""

    ONE_MINUTE = ("1m", 60_000)
    FIVE_MINUTES = ("5m", 300_000)
    ONE_HOUR = ("1h", 3_600_000)
    ONE_DAY = ("1d", 86_400_000)

    def __init__(self, label: str, milliseconds: int) -> None:
        self.label = label
        self.milliseconds = milliseconds

    @classmethod
    def from_label(cls, label: str) -> "Interval":
        """Look up an interval by its exchange label ("1m", "1h", ...)."""
        for interval in cls:
            if interval.label == label:
                return interval
        raise UnsupportedIntervalError(f"Unsupported interval: {label}")

    @classmethod
    def labels(cls) -> list[str]:
        return [interval.label for interval in cls]

    def bucket_start(self, timestamp_ms: int) -> int:
        """Start of the bucket containing timestamp_ms."""
        return (timestamp_ms // self.milliseconds) * self.milliseconds


def resolve_interval(interval: Interval | str) -> Interval:
    """Accept either an Interval member or its label."""
    if isinstance(interval, Interval):
        return interval
    return Interval.from_label(interval)


def bucket_start(timestamp_ms: int, interval: Interval | str) -> int:
    """Align timestamp_ms down to the start of its interval bucket.

    Timestamps are non-negative, so floor division matches truncation.
    """
    return resolve_interval(interval).bucket_start(timestamp_ms)
