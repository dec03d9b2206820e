from tradejournal.services.analytics.core import (
    realized_pl, trade_duration_ms, format_duration, profit_factor,
    max_drawdown, longest_streaks, summarize, equity_curve,
)
from tradejournal.services.analytics.calendar_bins import (
    DayBucket, group_by_day, group_by_week, group_by_month, group_by_year,
    monthly_grid, month_calendar, year_heatmap,
)
from tradejournal.services.analytics.sessions import group_by_entry_time_bucket


PERIOD_MAP = {
    "week": group_by_week,
    "month": group_by_month,
    "year": group_by_year,
}
