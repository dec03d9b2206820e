"""
Calendar binning of trades by local exit date.

``group_by_day`` is the primitive: every other view (week/month/year
totals, the month calendar, the monthly grid and the year heatmap)
folds over its day map, so the partition stays lossless.
"""
import calendar
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from zoneinfo import ZoneInfo

from tradejournal.config import DATE_FORMAT
from tradejournal.schemas.analytics import (
    CalendarDay, DaySummary, MonthCalendar, MonthSummary, PeriodSummary
)
from tradejournal.services.analytics.core import realized_pl
from tradejournal.utils.date_utils import day_key, week_key

HEATMAP_TIERS = 4


@dataclass
class DayBucket:
    date: str
    total_pl: float = 0.0
    trade_count: int = 0
    trades: list = field(default_factory=list)

    def add(self, trade) -> None:
        self.total_pl += realized_pl(trade)
        self.trade_count += 1
        self.trades.append(trade)

    def summary(self) -> DaySummary:
        return DaySummary(
            date=self.date,
            total_pl=self.total_pl,
            trade_count=self.trade_count,
            trade_ids=[t.id for t in self.trades if getattr(t, "id", None) is not None],
        )


def group_by_day(trades, tz: ZoneInfo) -> dict[str, DayBucket]:
    days: dict[str, DayBucket] = {}
    for trade in trades:
        key = day_key(trade.exit_time, tz)
        if key not in days:
            days[key] = DayBucket(date=key)
        days[key].add(trade)
    return dict(sorted(days.items()))


def day_status(bucket: DayBucket | None) -> str:
    if bucket is None or bucket.trade_count == 0:
        return "none"
    if bucket.total_pl > 0:
        return "profit"
    if bucket.total_pl < 0:
        return "loss"
    return "flat"


def _fold(day_map: dict[str, DayBucket], key_fn) -> dict[str, PeriodSummary]:
    periods: dict[str, PeriodSummary] = {}
    for day, bucket in day_map.items():
        key = key_fn(day)
        period = periods.setdefault(key, PeriodSummary(key=key))
        period.total_pl += bucket.total_pl
        period.trade_count += bucket.trade_count
        status = day_status(bucket)
        if status == "profit":
            period.win_days += 1
        elif status == "loss":
            period.loss_days += 1
        elif status == "flat":
            period.flat_days += 1
    return dict(sorted(periods.items()))


def group_by_week(day_map: dict[str, DayBucket]) -> dict[str, PeriodSummary]:
    return _fold(day_map, week_key)


def group_by_month(day_map: dict[str, DayBucket]) -> dict[str, PeriodSummary]:
    return _fold(day_map, lambda day: day[:7])


def group_by_year(day_map: dict[str, DayBucket]) -> dict[str, PeriodSummary]:
    return _fold(day_map, lambda day: day[:4])


def monthly_grid(day_map: dict[str, DayBucket], year: int) -> list[MonthSummary]:
    months = group_by_month({d: b for d, b in day_map.items() if d.startswith(f"{year:04d}-")})
    grid = []
    for month in range(1, 13):
        key = f"{year:04d}-{month:02d}"
        period = months.get(key, PeriodSummary(key=key))
        grid.append(MonthSummary(month=month, **period.model_dump()))
    return grid


def _calendar_day(day: date, bucket: DayBucket | None) -> CalendarDay:
    key = day.strftime(DATE_FORMAT)
    if bucket is None:
        return CalendarDay(date=key)
    return CalendarDay(
        date=key,
        total_pl=bucket.total_pl,
        trade_count=bucket.trade_count,
        status=day_status(bucket),
    )


def month_calendar(day_map: dict[str, DayBucket], year: int, month: int) -> MonthCalendar:
    # calendar.monthrange uses Monday=0; shift so Sunday=0
    first_weekday, days_in_month = calendar.monthrange(year, month)
    days = [
        _calendar_day(date(year, month, d), day_map.get(f"{year:04d}-{month:02d}-{d:02d}"))
        for d in range(1, days_in_month + 1)
    ]
    return MonthCalendar(year=year, month=month, first_weekday=(first_weekday + 1) % 7, days=days)


def intensity_tier(pl: float, max_abs_pl: float) -> int:
    if max_abs_pl <= 0 or pl == 0 or math.isnan(pl):
        return 0
    tier = math.ceil(abs(pl) / max_abs_pl * HEATMAP_TIERS)
    return min(max(tier, 1), HEATMAP_TIERS)


def year_heatmap(day_map: dict[str, DayBucket], year: int) -> list[CalendarDay]:
    in_year = {d: b for d, b in day_map.items() if d.startswith(f"{year:04d}-")}
    max_abs_pl = max(
        (abs(b.total_pl) for b in in_year.values() if not math.isnan(b.total_pl)),
        default=0.0,
    )

    cells = []
    day = date(year, 1, 1)
    while day.year == year:
        cell = _calendar_day(day, in_year.get(day.strftime(DATE_FORMAT)))
        if cell.status in ("profit", "loss"):
            cell.intensity = intensity_tier(cell.total_pl, max_abs_pl)
        cells.append(cell)
        day += timedelta(days=1)
    return cells
