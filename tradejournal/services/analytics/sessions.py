"""
Time-of-day performance: trades bucketed by local entry time.

Keys are ``HH:MM`` floored to 30 minutes; the date is discarded, so a
bucket mixes every day that traded in that half hour.
"""
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from tradejournal.schemas.analytics import TimeBucket
from tradejournal.services.analytics.core import profit_factor, realized_pl
from tradejournal.utils.date_utils import time_bucket_key

BUCKET_MINUTES = 30


@dataclass
class _BucketStats:
    """Accumulator for one time-of-day bucket."""

    pls: list[float] = field(default_factory=list)

    def record(self, trade) -> None:
        self.pls.append(realized_pl(trade))

    def to_bucket(self, key: str, include_profit_factor: bool) -> TimeBucket:
        count = len(self.pls)
        wins = sum(1 for pl in self.pls if pl > 0)
        losses = sum(1 for pl in self.pls if pl < 0)
        total_pl = sum(self.pls)
        return TimeBucket(
            bucket=key,
            trade_count=count,
            wins=wins,
            losses=losses,
            win_rate=wins / count * 100 if count else 0.0,
            total_pl=total_pl,
            avg_pl=total_pl / count if count else 0.0,
            profit_factor=profit_factor(self.pls) if include_profit_factor else None,
        )


def group_by_entry_time_bucket(trades, tz: ZoneInfo, include_profit_factor: bool = False) -> list[TimeBucket]:
    buckets: dict[str, _BucketStats] = {}
    for trade in trades:
        key = time_bucket_key(trade.enter_time, tz, BUCKET_MINUTES)
        buckets.setdefault(key, _BucketStats()).record(trade)

    return [
        buckets[key].to_bucket(key, include_profit_factor)
        for key in sorted(buckets)
    ]
