"""Bucket aggregation: resample klines into a coarser interval.

Records are grouped by the target-interval bucket their open_time falls
in; each group becomes one new record:

- open_time: bucket start; close_time: latest member's close_time
- open_price: earliest member's; close_price: latest member's
- high_price / low_price: max / min over the group
- volume, quote_asset_volume, taker_buy_*_volume: exact Decimal sums
- number_of_trades: integer sum

Output is ordered by bucket start. Inputs are never modified.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal, localcontext

from klinedata.exceptions import InputInvalidError
from klinedata.intervals import Interval, resolve_interval
from klinedata.models import KlineData

# 20 integer + 8 fraction digits already fills the default 28-digit context
_SUM_PRECISION = 60

_SUMMED_FIELDS = (
    "volume",
    "quote_asset_volume",
    "taker_buy_base_volume",
    "taker_buy_quote_volume",
)


def _reduce_bucket(bucket_start: int, members: list[KlineData]) -> KlineData:
    first = min(members, key=lambda record: record.open_time)
    last = max(members, key=lambda record: record.open_time)

    with localcontext() as ctx:
        ctx.prec = _SUM_PRECISION
        sums = {
            name: sum((getattr(record, name) for record in members), Decimal(0))
            for name in _SUMMED_FIELDS
        }

    return KlineData(
        symbol=first.symbol,
        open_time=bucket_start,
        close_time=last.close_time,
        open_price=first.open_price,
        high_price=max(record.high_price for record in members),
        low_price=min(record.low_price for record in members),
        close_price=last.close_price,
        number_of_trades=sum(record.number_of_trades for record in members),
        **sums,
    )


def aggregate_klines(
    records: Iterable[KlineData],
    target_interval: Interval | str,
) -> list[KlineData]:
    """Resample records into target_interval buckets.

    Records may arrive in any order. Every record must span no more than
    one target bucket; resampling into a finer interval raises
    InputInvalidError. Empty input returns an empty list.
    """
    interval = resolve_interval(target_interval)

    groups: dict[int, list[KlineData]] = defaultdict(list)
    for record in records:
        if record.close_time - record.open_time + 1 > interval.milliseconds:
            raise InputInvalidError(
                f"cannot aggregate {record.symbol} records spanning "
                f"{record.close_time - record.open_time + 1}ms into {interval.label}"
            )
        groups[interval.bucket_start(record.open_time)].append(record)

    return [_reduce_bucket(start, groups[start]) for start in sorted(groups)]
