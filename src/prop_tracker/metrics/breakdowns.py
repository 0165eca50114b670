from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Hashable, Iterable, Mapping, Sequence

from prop_tracker.metrics.ordering import sort_chronologically
from prop_tracker.metrics.summary import profit_factor, win_rate_pct
from prop_tracker.models import (
    DIRECTION_LONG,
    DIRECTION_SHORT,
    RESULT_LOSS,
    RESULT_WIN,
    Trade,
    TradingSetup,
)

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
DEFAULT_RR_EDGES = (1.0, 1.5, 2.0, 2.5, 3.0)
DEFAULT_FREQUENCY_BINS: tuple[tuple[int, int | None], ...] = ((1, 1), (2, 3), (4, 5), (6, None))
RATING_VALUES = (1, 2, 3, 4, 5)


@dataclass(frozen=True)
class GroupSummary:
    key: Any
    label: str
    count: int
    wins: int
    losses: int
    total_pnl: float
    win_rate: float
    avg_pnl: float


@dataclass(frozen=True)
class SetupSummary:
    setup_id: str
    name: str
    count: int
    total_pnl: float
    win_rate: float
    avg_pnl: float
    profit_factor: float


@dataclass(frozen=True)
class DirectionByInstrument:
    instrument: str
    long_pnl: float
    long_trades: int
    short_pnl: float
    short_trades: int


@dataclass(frozen=True)
class FrequencyBucket:
    label: str
    min_trades: int
    max_trades: int | None
    days: int
    total_pnl: float
    avg_pnl: float


def summarize_group(key: Any, trades: Sequence[Trade], label: str | None = None) -> GroupSummary:
    wins = sum(1 for trade in trades if trade.result == RESULT_WIN)
    losses = sum(1 for trade in trades if trade.result == RESULT_LOSS)
    total = len(trades)
    total_pnl = sum(trade.pnl for trade in trades)
    return GroupSummary(
        key=key,
        label=label if label is not None else str(key),
        count=total,
        wins=wins,
        losses=losses,
        total_pnl=total_pnl,
        win_rate=win_rate_pct(wins, losses),
        avg_pnl=total_pnl / total if total else 0.0,
    )


def group_trades(trades: Iterable[Trade], key_fn: Callable[[Trade], Hashable | None]) -> dict[Any, list[Trade]]:
    buckets: dict[Any, list[Trade]] = defaultdict(list)
    for trade in trades:
        key = key_fn(trade)
        if key is None:
            continue
        buckets[key].append(trade)
    return dict(buckets)


def breakdown_by_instrument(trades: Iterable[Trade]) -> list[GroupSummary]:
    rows = [summarize_group(key, items) for key, items in group_trades(trades, lambda t: t.instrument).items()]
    return sorted(rows, key=lambda row: row.total_pnl, reverse=True)


def breakdown_by_setup(
    trades: Iterable[Trade],
    setups: Iterable[TradingSetup] = (),
) -> list[SetupSummary]:
    names = {setup.setup_id: setup.name for setup in setups}
    rows: list[SetupSummary] = []
    for setup_id, items in group_trades(trades, lambda t: t.setup_id).items():
        summary = summarize_group(setup_id, items)
        gross_profit = sum(trade.pnl for trade in items if trade.result == RESULT_WIN)
        gross_loss = abs(sum(trade.pnl for trade in items if trade.result == RESULT_LOSS))
        rows.append(
            SetupSummary(
                setup_id=setup_id,
                name=names.get(setup_id, "Unknown"),
                count=summary.count,
                total_pnl=summary.total_pnl,
                win_rate=summary.win_rate,
                avg_pnl=summary.avg_pnl,
                profit_factor=profit_factor(gross_profit, gross_loss),
            )
        )
    return sorted(rows, key=lambda row: row.total_pnl, reverse=True)


def breakdown_by_weekday(trades: Iterable[Trade]) -> list[GroupSummary]:
    buckets = group_trades(trades, lambda t: date.fromisoformat(t.date).weekday())
    return [summarize_group(day, buckets.get(day, []), WEEKDAY_LABELS[day]) for day in range(7)]


def breakdown_by_hour(trades: Iterable[Trade]) -> list[GroupSummary]:
    buckets = group_trades(trades, _trade_hour)
    return [summarize_group(hour, buckets[hour], f"{hour:02d}:00") for hour in sorted(buckets)]


def breakdown_by_month(trades: Iterable[Trade]) -> list[GroupSummary]:
    buckets = group_trades(trades, lambda t: t.date[:7])
    return [summarize_group(month, buckets[month]) for month in sorted(buckets)]


def breakdown_by_direction(trades: Iterable[Trade]) -> list[GroupSummary]:
    buckets = group_trades(trades, lambda t: t.direction)
    return [
        summarize_group(direction, buckets.get(direction, []), direction.capitalize())
        for direction in (DIRECTION_LONG, DIRECTION_SHORT)
    ]


def breakdown_by_contracts(trades: Iterable[Trade]) -> list[GroupSummary]:
    buckets = group_trades(trades, lambda t: t.contracts)
    return [summarize_group(size, buckets[size], f"{size} ct") for size in sorted(buckets)]


def breakdown_by_rating(trades: Iterable[Trade]) -> list[GroupSummary]:
    buckets = group_trades(trades, lambda t: t.rating if t.rating else None)
    return [summarize_group(rating, buckets.get(rating, []), f"{rating} Star") for rating in RATING_VALUES]


def breakdown_by_risk_reward(
    trades: Iterable[Trade],
    edges: Sequence[float] = DEFAULT_RR_EDGES,
) -> list[GroupSummary]:
    bins = risk_reward_bins(edges)
    with_rr = [trade for trade in trades if trade.risk_reward is not None]
    rows: list[GroupSummary] = []
    for label, low, high in bins:
        items = [trade for trade in with_rr if low <= trade.risk_reward < high]
        rows.append(summarize_group(label, items, label))
    return rows


def risk_reward_bins(edges: Sequence[float]) -> list[tuple[str, float, float]]:
    ordered = sorted(edge for edge in edges if edge > 0)
    if not ordered:
        return [("all", -math.inf, math.inf)]
    bins = [(f"<{_format_edge(ordered[0])}", -math.inf, ordered[0])]
    for low, high in zip(ordered, ordered[1:]):
        bins.append((f"{_format_edge(low)}-{_format_edge(high)}", low, high))
    bins.append((f">{_format_edge(ordered[-1])}", ordered[-1], math.inf))
    return bins


def direction_by_instrument(trades: Iterable[Trade]) -> list[DirectionByInstrument]:
    rows: list[DirectionByInstrument] = []
    for instrument, items in group_trades(trades, lambda t: t.instrument).items():
        longs = [trade for trade in items if trade.direction == DIRECTION_LONG]
        shorts = [trade for trade in items if trade.direction != DIRECTION_LONG]
        rows.append(
            DirectionByInstrument(
                instrument=instrument,
                long_pnl=sum(trade.pnl for trade in longs),
                long_trades=len(longs),
                short_pnl=sum(trade.pnl for trade in shorts),
                short_trades=len(shorts),
            )
        )
    return rows


def performance_after_result(trades: Iterable[Trade]) -> dict[str, GroupSummary]:
    ordered = sort_chronologically(trades)
    after_win: list[Trade] = []
    after_loss: list[Trade] = []
    for prev, curr in zip(ordered, ordered[1:]):
        if prev.result == RESULT_WIN:
            after_win.append(curr)
        elif prev.result == RESULT_LOSS:
            after_loss.append(curr)
    return {
        "after_win": summarize_group("after_win", after_win, "After Win"),
        "after_loss": summarize_group("after_loss", after_loss, "After Loss"),
    }


def trade_frequency_impact(
    trades: Iterable[Trade],
    bins: Sequence[tuple[int, int | None]] = DEFAULT_FREQUENCY_BINS,
) -> list[FrequencyBucket]:
    per_day: dict[str, list[float]] = defaultdict(list)
    for trade in trades:
        per_day[trade.date].append(trade.pnl)

    rows: list[FrequencyBucket] = []
    for low, high in bins:
        day_pnls = [
            sum(values)
            for values in per_day.values()
            if len(values) >= low and (high is None or len(values) <= high)
        ]
        total = sum(day_pnls)
        rows.append(
            FrequencyBucket(
                label=_frequency_label(low, high),
                min_trades=low,
                max_trades=high,
                days=len(day_pnls),
                total_pnl=total,
                avg_pnl=total / len(day_pnls) if day_pnls else 0.0,
            )
        )
    return rows


def group_to_dict(row: GroupSummary) -> dict[str, Any]:
    return {
        "key": row.key,
        "label": row.label,
        "count": row.count,
        "wins": row.wins,
        "losses": row.losses,
        "total_pnl": row.total_pnl,
        "win_rate": row.win_rate,
        "avg_pnl": row.avg_pnl,
    }


def rows_to_dicts(rows: Iterable[Any]) -> list[dict[str, Any]]:
    output: list[dict[str, Any]] = []
    for row in rows:
        if isinstance(row, GroupSummary):
            output.append(group_to_dict(row))
        elif isinstance(row, Mapping):
            output.append(dict(row))
        else:
            output.append({key: _json_value(value) for key, value in vars(row).items()})
    return output


def _json_value(value: Any) -> Any:
    if isinstance(value, float) and math.isinf(value):
        return "∞" if value > 0 else "-∞"
    return value


def _trade_hour(trade: Trade) -> int | None:
    if not trade.time:
        return None
    return int(trade.time.split(":")[0])


def _format_edge(value: float) -> str:
    return f"{value:g}"


def _frequency_label(low: int, high: int | None) -> str:
    if high is None:
        return f"{low}+ trades"
    if low == high:
        return f"{low} trade" if low == 1 else f"{low} trades"
    return f"{low}-{high} trades"
