"""
Per-trade normalization and summary statistics.

Every function here works on any object exposing the trade attributes
(``enter_price``, ``exit_price``, ``quantity``, ``manual_pl``, ``enter_time``,
``exit_time``), so it can be fed pydantic models or plain rows alike.
P/L is derived on every call and never stored.
"""
import math
from datetime import datetime
from zoneinfo import ZoneInfo

import pandas as pd

from tradejournal.schemas.analytics import EquityPoint, TradeStats
from tradejournal.utils.date_utils import to_local


def _num(value) -> float:
    if value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def realized_pl(trade) -> float:
    manual_pl = getattr(trade, "manual_pl", None)
    if manual_pl is not None:
        return _num(manual_pl)
    return (_num(trade.exit_price) - _num(trade.enter_price)) * _num(trade.quantity)


def trade_duration_ms(trade) -> float:
    enter_time: datetime | None = trade.enter_time
    exit_time: datetime | None = trade.exit_time
    if enter_time is None or exit_time is None:
        return math.nan
    return (exit_time - enter_time).total_seconds() * 1000


def format_duration(milliseconds: float) -> str:
    total_seconds = int(milliseconds // 1000)
    days, rem = divmod(total_seconds, 24 * 60 * 60)
    hours, rem = divmod(rem, 60 * 60)
    minutes, seconds = divmod(rem, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def profit_factor(pls: list[float]) -> float:
    gross_wins = sum(pl for pl in pls if pl > 0)
    gross_losses = -sum(pl for pl in pls if pl < 0)
    if gross_losses == 0:
        # no losing trades: report gross wins instead of infinity
        return gross_wins
    return gross_wins / gross_losses


def update_iteration_data(equity: float, peak_equity: float, max_drawdown: float) -> tuple[float, float, float]:
    if equity > peak_equity:
        peak_equity = equity

    drawdown = peak_equity - equity

    if drawdown > max_drawdown:
        max_drawdown = drawdown

    return drawdown, max_drawdown, peak_equity


def _by_exit_time(trades) -> list:
    return sorted(trades, key=lambda t: t.exit_time)


def max_drawdown(trades) -> float:
    """Largest peak-to-trough fall of cumulative P/L, peak starting at zero."""
    equity = peak_equity = worst = 0.0
    for trade in _by_exit_time(trades):
        equity += realized_pl(trade)
        _, worst, peak_equity = update_iteration_data(equity, peak_equity, worst)
    return worst


def longest_streaks(trades) -> tuple[int, int]:
    """Return (longest winning run, longest losing run).

    A trade with zero P/L counts as a loss here.
    """
    best_win = best_loss = 0
    run, run_is_win = 0, None
    for trade in _by_exit_time(trades):
        is_win = realized_pl(trade) > 0
        run = run + 1 if is_win == run_is_win else 1
        run_is_win = is_win
        if is_win:
            best_win = max(best_win, run)
        else:
            best_loss = max(best_loss, run)
    return best_win, best_loss


def summarize(trades) -> TradeStats:
    trades = list(trades)
    if not trades:
        return TradeStats()

    pls = [realized_pl(t) for t in trades]
    wins = [pl for pl in pls if pl > 0]
    losses = [pl for pl in pls if pl < 0]
    total = len(trades)

    win_rate = len(wins) / total * 100
    avg_win = sum(wins) / len(wins) if wins else 0.0
    avg_loss = sum(losses) / len(losses) if losses else 0.0
    win_streak, loss_streak = longest_streaks(trades)

    return TradeStats(
        total_pl=sum(pls),
        total_trades=total,
        wins=len(wins),
        losses=len(losses),
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        best_trade=max(pls),
        worst_trade=min(pls),
        avg_duration=sum(trade_duration_ms(t) for t in trades) / total,
        profit_factor=profit_factor(pls),
        expectancy=win_rate / 100 * avg_win + (1 - win_rate / 100) * avg_loss,
        max_drawdown=max_drawdown(trades),
        longest_win_streak=win_streak,
        longest_loss_streak=loss_streak,
    )


def equity_curve(trades, tz: ZoneInfo) -> list[EquityPoint]:
    """Daily cumulative P/L keyed by local exit date."""
    trades = list(trades)
    if not trades:
        return []

    df = pd.DataFrame({
        "trading_date": [to_local(t.exit_time, tz).date() for t in trades],
        "pnl": [realized_pl(t) for t in trades],
    })
    df_daily = df.groupby("trading_date").agg(
        pnl=("pnl", "sum"),
        num_trades=("pnl", "count"),
    ).reset_index()

    df_daily["equity"] = df_daily["pnl"].cumsum()
    df_daily["peak"] = df_daily["equity"].cummax().clip(lower=0)
    df_daily["drawdown"] = df_daily["peak"] - df_daily["equity"]

    return [
        EquityPoint(
            date=row.trading_date,
            pl=float(row.pnl),
            trade_count=int(row.num_trades),
            equity=float(row.equity),
            peak=float(row.peak),
            drawdown=float(row.drawdown),
        )
        for row in df_daily.itertuples(index=False)
    ]
