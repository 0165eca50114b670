from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from prop_tracker.models import Trade

DATE_RANGES = ("all", "ytd", "90d", "30d", "7d")

_DAY_WINDOWS = {"90d": 90, "30d": 30, "7d": 7}


def range_start(date_range: str, today: date | None = None) -> str | None:
    """ISO start date for a range preset, ``None`` for ``all`` or unknown presets."""
    reference = today or date.today()
    if date_range == "ytd":
        return date(reference.year, 1, 1).isoformat()
    days = _DAY_WINDOWS.get(date_range)
    if days is None:
        return None
    return (reference - timedelta(days=days)).isoformat()


def filter_by_range(trades: Iterable[Trade], date_range: str, today: date | None = None) -> list[Trade]:
    start = range_start(date_range, today)
    if start is None:
        return list(trades)
    return [trade for trade in trades if trade.date >= start]


def filter_by_dates(
    trades: Iterable[Trade],
    start: str | None = None,
    end: str | None = None,
) -> list[Trade]:
    output = []
    for trade in trades:
        if start is not None and trade.date < start:
            continue
        if end is not None and trade.date > end:
            continue
        output.append(trade)
    return output


def filter_trades(
    trades: Iterable[Trade],
    *,
    setup_id: str | None = None,
    result: str | None = None,
    instrument: str | None = None,
) -> list[Trade]:
    output = list(trades)
    if setup_id and setup_id != "all":
        output = [trade for trade in output if trade.setup_id == setup_id]
    if result and result != "all":
        output = [trade for trade in output if trade.result == result]
    if instrument and instrument != "all":
        output = [trade for trade in output if trade.instrument == instrument]
    return output


def instruments(trades: Iterable[Trade]) -> list[str]:
    return sorted({trade.instrument for trade in trades})
