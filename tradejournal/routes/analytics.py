from dataclasses import dataclass
from zoneinfo import ZoneInfo
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from typing import Literal, Optional
from loguru import logger

from tradejournal.config import DEFAULT_TIMEZONE
from tradejournal.db import db
from tradejournal.schemas.analytics import (
    DaySummary, EquityPoint, MonthCalendar, MonthSummary, PeriodSummary, TimeBucket, TradeStats, CalendarDay
)
from tradejournal.schemas.trade import Trade
from tradejournal.services.analytics import (
    PERIOD_MAP, equity_curve, group_by_day, group_by_entry_time_bucket,
    month_calendar, monthly_grid, summarize, year_heatmap,
)
from tradejournal.services.auth.dependencies import get_current_user
from tradejournal.utils.date_utils import resolve_timezone

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@dataclass
class AnalyticsContext:
    """Snapshot of the caller's trades plus the time zone to bin them in."""
    trades: list[Trade]
    tz: ZoneInfo


async def get_analytics_context(
    tz: str = Query(DEFAULT_TIMEZONE, description="IANA time zone used for day and time-of-day keys"),
    ticker: Optional[str] = Query(None),
    tag_id: Optional[int] = Query(None),
    current_user=Depends(get_current_user),
) -> AnalyticsContext:
    try:
        zone = resolve_timezone(tz)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    rows = await db.list_trades(current_user["id"], ticker=ticker, tag_id=tag_id)
    logger.debug(f"Analytics over {len(rows)} trades for user {current_user['id']} ({tz})")
    return AnalyticsContext(trades=[Trade.model_validate(r) for r in rows], tz=zone)


@router.get("/summary", response_model=TradeStats)
async def summary(ctx: AnalyticsContext = Depends(get_analytics_context)):
    return summarize(ctx.trades)

@router.get("/equity", response_model=list[EquityPoint])
async def equity(ctx: AnalyticsContext = Depends(get_analytics_context)):
    return equity_curve(ctx.trades, ctx.tz)

@router.get("/calendar/days", response_model=list[DaySummary])
async def calendar_days(ctx: AnalyticsContext = Depends(get_analytics_context)):
    return [bucket.summary() for bucket in group_by_day(ctx.trades, ctx.tz).values()]

@router.get("/calendar/month/{year}/{month}", response_model=MonthCalendar)
async def calendar_month(
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    ctx: AnalyticsContext = Depends(get_analytics_context),
):
    return month_calendar(group_by_day(ctx.trades, ctx.tz), year, month)

@router.get("/calendar/grid/{year}", response_model=list[MonthSummary])
async def calendar_grid(year: int = Path(ge=1970, le=9999), ctx: AnalyticsContext = Depends(get_analytics_context)):
    return monthly_grid(group_by_day(ctx.trades, ctx.tz), year)

@router.get("/calendar/heatmap/{year}", response_model=list[CalendarDay])
async def calendar_heatmap(year: int = Path(ge=1970, le=9999), ctx: AnalyticsContext = Depends(get_analytics_context)):
    return year_heatmap(group_by_day(ctx.trades, ctx.tz), year)

@router.get("/calendar/{period}", response_model=list[PeriodSummary])
async def calendar_period(
    period: Literal["week", "month", "year"],
    ctx: AnalyticsContext = Depends(get_analytics_context),
):
    day_map = group_by_day(ctx.trades, ctx.tz)
    return list(PERIOD_MAP[period](day_map).values())

@router.get("/time-of-day", response_model=list[TimeBucket])
async def time_of_day(
    profit_factor: bool = Query(False, description="Include per-bucket profit factor"),
    ctx: AnalyticsContext = Depends(get_analytics_context),
):
    return group_by_entry_time_bucket(ctx.trades, ctx.tz, include_profit_factor=profit_factor)
