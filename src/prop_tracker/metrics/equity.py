from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from prop_tracker.metrics.ordering import sort_chronologically
from prop_tracker.models import Trade


@dataclass(frozen=True)
class EquityPoint:
    trade_number: int
    date: str
    pnl: float
    cumulative: float


@dataclass(frozen=True)
class DailyEquityPoint:
    date: str
    equity: float


@dataclass(frozen=True)
class DrawdownPoint:
    trade_number: int
    date: str
    equity: float
    peak: float
    drawdown_pct: float


@dataclass(frozen=True)
class DrawdownSeries:
    points: list[DrawdownPoint]
    max_drawdown_pct: float


def compute_equity_curve(trades: Iterable[Trade]) -> list[EquityPoint]:
    cumulative = 0.0
    points: list[EquityPoint] = []
    for idx, trade in enumerate(sort_chronologically(trades), start=1):
        cumulative += trade.pnl
        points.append(EquityPoint(trade_number=idx, date=trade.date, pnl=trade.pnl, cumulative=cumulative))
    return points


def compute_daily_equity_curve(trades: Iterable[Trade], starting_capital: float) -> list[DailyEquityPoint]:
    """One point per trading day at the day's closing equity.

    The series opens with an anchor at ``starting_capital`` on the day before
    the first trade so a chart starts from the account's initial balance.
    """
    curve = compute_equity_curve(trades)
    if not curve:
        return []

    closing: dict[str, float] = {}
    for point in curve:
        closing[point.date] = starting_capital + point.cumulative

    anchor_day = (date.fromisoformat(curve[0].date) - timedelta(days=1)).isoformat()
    points = [DailyEquityPoint(date=anchor_day, equity=starting_capital)]
    for day, equity in closing.items():
        points.append(DailyEquityPoint(date=day, equity=equity))
    return points


def compute_drawdown(trades: Iterable[Trade], starting_capital: float = 0.0) -> DrawdownSeries:
    peak = starting_capital
    max_dd = 0.0
    points: list[DrawdownPoint] = []

    for point in compute_equity_curve(trades):
        equity = starting_capital + point.cumulative
        peak = max(peak, equity)
        drawdown = (peak - equity) / peak * 100 if peak > 0 else 0.0
        max_dd = max(max_dd, drawdown)
        points.append(
            DrawdownPoint(
                trade_number=point.trade_number,
                date=point.date,
                equity=equity,
                peak=peak,
                drawdown_pct=drawdown,
            )
        )

    return DrawdownSeries(points=points, max_drawdown_pct=max_dd)
