from __future__ import annotations

from typing import Iterable

from prop_tracker.models import Trade


def chronological_key(trade: Trade) -> tuple[str, str]:
    # Missing time sorts before any clock time on the same day.
    return trade.date, trade.time or ""


def sort_chronologically(trades: Iterable[Trade]) -> list[Trade]:
    return sorted(trades, key=chronological_key)


def sort_newest_first(trades: Iterable[Trade]) -> list[Trade]:
    return sorted(trades, key=chronological_key, reverse=True)
