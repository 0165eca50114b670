from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

from prop_tracker.metrics.ordering import sort_chronologically
from prop_tracker.models import DailyEntry, Trade

STREAK_GREEN = "green"
STREAK_RED = "red"


@dataclass(frozen=True)
class MonthSummary:
    month: str
    total_pnl: float
    win_days: int
    loss_days: int
    days_with_data: int
    trading_days: int
    win_rate: float


@dataclass(frozen=True)
class Streak:
    count: int
    kind: str | None


@dataclass(frozen=True)
class CalendarDay:
    date: str
    day: int
    in_month: bool
    pnl: float | None
    trade_count: int
    has_notes: bool
    trades: list[Trade] = field(default_factory=list)


@dataclass(frozen=True)
class CalendarMonth:
    month: str
    label: str
    prev_month: str
    next_month: str
    weeks: list[list[CalendarDay]]
    summary: MonthSummary


def trades_by_date(trades: Iterable[Trade]) -> dict[str, list[Trade]]:
    buckets: dict[str, list[Trade]] = defaultdict(list)
    for trade in sort_chronologically(trades):
        buckets[trade.date].append(trade)
    return dict(buckets)


def resolved_daily_pnl(trades: Iterable[Trade], entries: Iterable[DailyEntry]) -> dict[str, float]:
    """Day P&L keyed by date. Trades on a day always win; the manual entry is used only when there are none."""
    daily: dict[str, float] = {}
    for trade in trades:
        daily[trade.date] = daily.get(trade.date, 0.0) + trade.pnl
    for entry in entries:
        if entry.pnl is None or entry.date in daily:
            continue
        daily[entry.date] = entry.pnl
    return dict(sorted(daily.items()))


def month_summary(trades: Iterable[Trade], entries: Iterable[DailyEntry], month: str) -> MonthSummary:
    trade_list = [trade for trade in trades if trade.date.startswith(month)]
    entry_list = [entry for entry in entries if entry.date.startswith(month)]
    daily = resolved_daily_pnl(trade_list, entry_list)

    win_days = sum(1 for pnl in daily.values() if pnl > 0)
    loss_days = sum(1 for pnl in daily.values() if pnl < 0)
    decisive = win_days + loss_days
    return MonthSummary(
        month=month,
        total_pnl=sum(daily.values()),
        win_days=win_days,
        loss_days=loss_days,
        days_with_data=len(daily),
        trading_days=len({trade.date for trade in trade_list}),
        win_rate=win_days / decisive * 100 if decisive else 0.0,
    )


def current_streak(entries: Iterable[DailyEntry]) -> Streak:
    ordered = sorted(
        (entry for entry in entries if entry.pnl is not None and entry.pnl != 0),
        key=lambda entry: entry.date,
        reverse=True,
    )
    if not ordered:
        return Streak(count=0, kind=None)
    green = ordered[0].pnl > 0
    count = 0
    for entry in ordered:
        if (entry.pnl > 0) != green:
            break
        count += 1
    return Streak(count=count, kind=STREAK_GREEN if green else STREAK_RED)


def calendar_month(
    trades: Iterable[Trade],
    entries: Iterable[DailyEntry],
    month: str | None = None,
    today: date | None = None,
) -> CalendarMonth:
    reference = today or date.today()
    month_start = parse_month(month) or date(reference.year, reference.month, 1)
    month_end = shift_month(month_start, 1) - timedelta(days=1)
    month_key = month_start.strftime("%Y-%m")

    trade_list = list(trades)
    entry_list = list(entries)
    by_date = trades_by_date(trade_list)
    entry_map = {entry.date: entry for entry in entry_list}
    daily = resolved_daily_pnl(trade_list, entry_list)

    grid_start = month_start - timedelta(days=month_start.weekday())
    grid_end = month_end + timedelta(days=(6 - month_end.weekday()))

    weeks: list[list[CalendarDay]] = []
    cursor = grid_start
    while cursor <= grid_end:
        week = []
        for _ in range(7):
            key = cursor.isoformat()
            day_trades = by_date.get(key, [])
            entry = entry_map.get(key)
            week.append(
                CalendarDay(
                    date=key,
                    day=cursor.day,
                    in_month=cursor.month == month_start.month,
                    pnl=daily.get(key),
                    trade_count=len(day_trades),
                    has_notes=bool(entry is not None and entry.notes),
                    trades=day_trades,
                )
            )
            cursor += timedelta(days=1)
        weeks.append(week)

    return CalendarMonth(
        month=month_key,
        label=month_start.strftime("%B %Y"),
        prev_month=shift_month(month_start, -1).strftime("%Y-%m"),
        next_month=shift_month(month_start, 1).strftime("%Y-%m"),
        weeks=weeks,
        summary=month_summary(trade_list, entry_list, month_key),
    )


def parse_month(value: str | None) -> date | None:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        return None
    return date(parsed.year, parsed.month, 1)


def shift_month(value: date, delta: int) -> date:
    year = value.year + (value.month - 1 + delta) // 12
    month = (value.month - 1 + delta) % 12 + 1
    return date(year, month, 1)
