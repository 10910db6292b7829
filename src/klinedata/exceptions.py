"""Custom exceptions for the kline data service.

Validation, exchange and load failures all derive from KlineDataError so
callers can catch the whole family at the service boundary. Cache and
store I/O errors are not wrapped and propagate as raised by redis/aiosqlite.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from klinedata.data.loader import LoadReport


class KlineDataError(Exception):
    """Base exception for all kline data errors."""


class InputInvalidError(KlineDataError):
    """Raised when request parameters fail validation (range order, unknown symbol)."""


class UnsupportedIntervalError(InputInvalidError):
    """Raised when an interval label is not in the interval catalog."""


class RecordInvalidError(KlineDataError, ValueError):
    """Raised when a kline record violates its field constraints."""


class FetchError(KlineDataError):
    """Raised on transport failure or a malformed/empty exchange response."""


class ParseError(KlineDataError):
    """Raised when a single exchange row cannot be converted to a record."""


class PartialLoadError(KlineDataError):
    """Raised when one or more sub-ranges of a load failed.

    The sub-ranges that succeeded are already persisted; the attached
    report lists which ones failed.
    """

    def __init__(self, report: LoadReport) -> None:
        self.report = report
        failed = len(report.failed_batches)
        super().__init__(
            f"{failed} of {len(report.batches)} batches failed for {report.symbol}"
        )
