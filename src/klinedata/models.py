"""Kline (OHLCV candle) record model.

CRITICAL: All prices and volumes use Decimal. Never use float for prices or volumes;
aggregation sums thousands of values and binary floating point drifts.
Each decimal field is limited to 20 integer digits and 8 fractional digits,
the precision of the durable store columns.
"""

from dataclasses import asdict, dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Self

from klinedata.exceptions import ParseError, RecordInvalidError

MAX_INTEGER_DIGITS = 20
MAX_FRACTION_DIGITS = 8

DECIMAL_FIELDS = (
    "open_price",
    "high_price",
    "low_price",
    "close_price",
    "volume",
    "quote_asset_volume",
    "taker_buy_base_volume",
    "taker_buy_quote_volume",
)

# Binance kline row: openTime, open, high, low, close, volume, closeTime,
# quoteAssetVolume, numberOfTrades, takerBuyBase, takerBuyQuote, ignore
EXCHANGE_ROW_LENGTH = 12


def _check_digits(name: str, value: Decimal) -> None:
    if not value.is_finite():
        raise RecordInvalidError(f"{name} must be finite, got {value}")
    if value.is_zero():
        return
    _, digit_tuple, raw_exponent = value.as_tuple()
    exponent = int(raw_exponent)
    digits = list(digit_tuple)
    # trailing fractional zeros carry no precision
    while exponent < 0 and len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    fraction_digits = max(0, -exponent)
    integer_digits = max(0, len(digits) + exponent)
    if fraction_digits > MAX_FRACTION_DIGITS or integer_digits > MAX_INTEGER_DIGITS:
        raise RecordInvalidError(
            f"{name}={value} exceeds {MAX_INTEGER_DIGITS} integer / "
            f"{MAX_FRACTION_DIGITS} fraction digits"
        )


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float) or isinstance(value, bool):
        raise RecordInvalidError(f"{name} must be Decimal, str or int, got {type(value).__name__}")
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise RecordInvalidError(f"{name}={value!r} is not a decimal") from e


@dataclass(frozen=True)
class KlineData:
    """A single OHLCV candle.

    Identified by (symbol, open_time, close_time). Instances are immutable;
    aggregation produces new records rather than editing inputs.

    Decimal fields accept Decimal, str or int; str and int are converted on
    construction. Floats are rejected.
    """

    symbol: str
    open_time: int
    close_time: int
    open_price: Decimal
    high_price: Decimal
    low_price: Decimal
    close_price: Decimal
    volume: Decimal
    quote_asset_volume: Decimal
    number_of_trades: int
    taker_buy_base_volume: Decimal
    taker_buy_quote_volume: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.symbol, str) or not self.symbol:
            raise RecordInvalidError("symbol must be a non-empty string")
        for name in ("open_time", "close_time", "number_of_trades"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise RecordInvalidError(f"{name} must be an int, got {value!r}")
            if value < 0:
                raise RecordInvalidError(f"{name} must be non-negative, got {value}")
        if self.open_time >= self.close_time:
            raise RecordInvalidError(
                f"open_time {self.open_time} must be before close_time {self.close_time}"
            )
        for name in DECIMAL_FIELDS:
            value = _to_decimal(name, getattr(self, name))
            _check_digits(name, value)
            object.__setattr__(self, name, value)

    @property
    def key(self) -> tuple[str, int, int]:
        """Primary key in the durable store."""
        return (self.symbol, self.open_time, self.close_time)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe mapping; decimals rendered as strings to keep precision."""
        data = asdict(self)
        for name in DECIMAL_FIELDS:
            data[name] = format(data[name], "f")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        names = {f.name for f in fields(cls)}
        missing = names - data.keys()
        if missing:
            raise RecordInvalidError(f"missing fields: {sorted(missing)}")
        return cls(**{name: data[name] for name in names})

    @classmethod
    def from_exchange_row(cls, symbol: str, row: list | tuple) -> Self:
        """Build a record from one Binance kline row.

        Raises ParseError if the row is not a list, is short or any value
        does not parse.
        """
        if not isinstance(row, (list, tuple)):
            raise ParseError(f"row is not a list: {row!r}")
        if len(row) < EXCHANGE_ROW_LENGTH:
            raise ParseError(
                f"row has {len(row)} columns, expected {EXCHANGE_ROW_LENGTH}: {row!r}"
            )
        try:
            return cls(
                symbol=symbol,
                open_time=int(row[0]),
                open_price=Decimal(str(row[1])),
                high_price=Decimal(str(row[2])),
                low_price=Decimal(str(row[3])),
                close_price=Decimal(str(row[4])),
                volume=Decimal(str(row[5])),
                close_time=int(row[6]),
                quote_asset_volume=Decimal(str(row[7])),
                number_of_trades=int(row[8]),
                taker_buy_base_volume=Decimal(str(row[9])),
                taker_buy_quote_volume=Decimal(str(row[10])),
            )
        except (InvalidOperation, TypeError, ValueError, KeyError, IndexError) as e:
            # RecordInvalidError is a ValueError, so field violations land here too
            raise ParseError(f"unparseable row {row!r}: {e}") from e
