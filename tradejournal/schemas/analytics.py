from pydantic import BaseModel
from datetime import date
from typing import Literal, Optional


class TradeStats(BaseModel):
    total_pl: float = 0.0
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    avg_duration: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    max_drawdown: float = 0.0
    longest_win_streak: int = 0
    longest_loss_streak: int = 0


class EquityPoint(BaseModel):
    date: date
    pl: float
    trade_count: int
    equity: float
    peak: float
    drawdown: float


class DaySummary(BaseModel):
    date: str
    total_pl: float
    trade_count: int
    trade_ids: list[int] = []


class PeriodSummary(BaseModel):
    key: str
    total_pl: float = 0.0
    trade_count: int = 0
    win_days: int = 0
    loss_days: int = 0
    flat_days: int = 0


class MonthSummary(PeriodSummary):
    month: int


DayStatus = Literal["none", "flat", "profit", "loss"]


class CalendarDay(BaseModel):
    date: str
    total_pl: float = 0.0
    trade_count: int = 0
    status: DayStatus = "none"
    intensity: int = 0


class MonthCalendar(BaseModel):
    year: int
    month: int
    # 0 = Sunday
    first_weekday: int
    days: list[CalendarDay]


class TimeBucket(BaseModel):
    bucket: str
    trade_count: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    total_pl: float = 0.0
    avg_pl: float = 0.0
    profit_factor: Optional[float] = None
