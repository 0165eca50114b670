from __future__ import annotations

import pytest
from factories import make_trade

from prop_tracker.metrics.equity import compute_daily_equity_curve, compute_drawdown, compute_equity_curve


def test_equity_curve_is_cumulative_in_chronological_order() -> None:
    trades = [
        make_trade(-50.0, date="2025-01-02", time="11:00"),
        make_trade(100.0, date="2025-01-02", time="10:00"),
        make_trade(25.0, date="2025-01-03"),
    ]

    curve = compute_equity_curve(trades)

    assert [point.trade_number for point in curve] == [1, 2, 3]
    assert [point.pnl for point in curve] == [100.0, -50.0, 25.0]
    assert [point.cumulative for point in curve] == [100.0, 50.0, 75.0]


def test_daily_equity_collapses_days_and_anchors_at_starting_capital() -> None:
    trades = [
        make_trade(100.0, date="2025-01-02", time="10:00"),
        make_trade(-50.0, date="2025-01-02", time="11:00"),
        make_trade(25.0, date="2025-01-03"),
    ]

    curve = compute_daily_equity_curve(trades, starting_capital=1000.0)

    assert [(point.date, point.equity) for point in curve] == [
        ("2025-01-01", 1000.0),
        ("2025-01-02", 1050.0),
        ("2025-01-03", 1075.0),
    ]


def test_daily_equity_anchor_crosses_month_boundary() -> None:
    curve = compute_daily_equity_curve([make_trade(10.0, date="2025-03-01")], starting_capital=50000.0)

    assert curve[0].date == "2025-02-28"
    assert curve[0].equity == 50000.0


def test_empty_curves() -> None:
    assert compute_equity_curve([]) == []
    assert compute_daily_equity_curve([], starting_capital=1000.0) == []
    series = compute_drawdown([])
    assert series.points == []
    assert series.max_drawdown_pct == 0.0


def test_drawdown_tracks_running_peak() -> None:
    trades = [
        make_trade(100.0, date="2025-01-01"),
        make_trade(-220.0, date="2025-01-02"),
        make_trade(50.0, date="2025-01-03"),
    ]

    series = compute_drawdown(trades, starting_capital=1000.0)

    assert [point.equity for point in series.points] == [1100.0, 880.0, 930.0]
    assert [point.peak for point in series.points] == [1100.0, 1100.0, 1100.0]
    assert series.points[1].drawdown_pct == pytest.approx(20.0)
    assert series.points[2].drawdown_pct == pytest.approx(170 / 1100 * 100)
    assert series.max_drawdown_pct == pytest.approx(20.0)


def test_drawdown_is_zero_while_peak_is_zero() -> None:
    series = compute_drawdown([make_trade(-10.0), make_trade(-5.0)])

    assert [point.drawdown_pct for point in series.points] == [0.0, 0.0]
    assert series.max_drawdown_pct == 0.0
