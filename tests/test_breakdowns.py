from __future__ import annotations

import pytest
from factories import make_trade

from prop_tracker.metrics.breakdowns import (
    WEEKDAY_LABELS,
    breakdown_by_contracts,
    breakdown_by_direction,
    breakdown_by_hour,
    breakdown_by_instrument,
    breakdown_by_month,
    breakdown_by_rating,
    breakdown_by_risk_reward,
    breakdown_by_setup,
    breakdown_by_weekday,
    direction_by_instrument,
    performance_after_result,
    risk_reward_bins,
    rows_to_dicts,
    trade_frequency_impact,
)
from prop_tracker.models import TradingSetup


def test_instrument_breakdown_sorted_by_total_pnl() -> None:
    trades = [
        make_trade(100.0, instrument="ES"),
        make_trade(-40.0, instrument="ES"),
        make_trade(250.0, instrument="NQ"),
        make_trade(-10.0, instrument="CL"),
    ]

    rows = breakdown_by_instrument(trades)

    assert [row.key for row in rows] == ["NQ", "ES", "CL"]
    es = rows[1]
    assert es.count == 2
    assert es.total_pnl == 60.0
    assert es.win_rate == 50.0
    assert es.avg_pnl == 30.0


def test_weekday_breakdown_reports_every_day() -> None:
    # 2025-01-06 is a Monday
    trades = [make_trade(10.0, date="2025-01-06"), make_trade(-5.0, date="2025-01-10")]

    rows = breakdown_by_weekday(trades)

    assert [row.label for row in rows] == list(WEEKDAY_LABELS)
    assert rows[0].count == 1
    assert rows[4].total_pnl == -5.0
    assert rows[6].count == 0
    assert rows[6].win_rate == 0.0


def test_hour_breakdown_only_includes_timed_hours() -> None:
    trades = [
        make_trade(10.0, time="09:45"),
        make_trade(5.0, time="09:59"),
        make_trade(-3.0, time="14:10"),
        make_trade(7.0),
    ]

    rows = breakdown_by_hour(trades)

    assert [(row.key, row.label, row.count) for row in rows] == [(9, "09:00", 2), (14, "14:00", 1)]


def test_month_direction_contracts_and_rating_breakdowns() -> None:
    trades = [
        make_trade(10.0, date="2025-02-03", direction="short", contracts=2, rating=4),
        make_trade(-4.0, date="2025-01-15", contracts=1, rating=4),
        make_trade(6.0, date="2025-01-20", contracts=2),
    ]

    assert [row.key for row in breakdown_by_month(trades)] == ["2025-01", "2025-02"]

    direction = breakdown_by_direction(trades)
    assert [(row.key, row.count) for row in direction] == [("long", 2), ("short", 1)]
    assert [row.label for row in breakdown_by_direction([])] == ["Long", "Short"]

    contracts = breakdown_by_contracts(trades)
    assert [(row.label, row.total_pnl) for row in contracts] == [("1 ct", -4.0), ("2 ct", 16.0)]

    rating = breakdown_by_rating(trades)
    assert [row.key for row in rating] == [1, 2, 3, 4, 5]
    assert rating[3].count == 2
    assert rating[0].count == 0


def test_risk_reward_bins_are_half_open() -> None:
    trades = [
        make_trade(1.0, risk_reward=0.5),
        make_trade(1.0, risk_reward=1.0),
        make_trade(1.0, risk_reward=1.5),
        make_trade(1.0, risk_reward=2.99),
        make_trade(1.0, risk_reward=3.0),
        make_trade(1.0, risk_reward=7.0),
        make_trade(1.0),
    ]

    rows = breakdown_by_risk_reward(trades)

    assert [row.label for row in rows] == ["<1", "1-1.5", "1.5-2", "2-2.5", "2.5-3", ">3"]
    assert [row.count for row in rows] == [1, 1, 1, 0, 1, 2]


def test_risk_reward_bins_from_custom_edges() -> None:
    bins = risk_reward_bins([2.0, 1.0])

    assert [label for label, _, _ in bins] == ["<1", "1-2", ">2"]


def test_setup_breakdown_resolves_names_and_profit_factor() -> None:
    trades = [
        make_trade(100.0, setup_id="orb"),
        make_trade(-50.0, setup_id="orb"),
        make_trade(20.0, setup_id="gone"),
    ]
    setups = [TradingSetup(setup_id="orb", name="Opening Range Breakout")]

    rows = breakdown_by_setup(trades, setups)

    assert [(row.setup_id, row.name) for row in rows] == [("orb", "Opening Range Breakout"), ("gone", "Unknown")]
    assert rows[0].profit_factor == 2.0
    assert rows_to_dicts(rows)[1]["profit_factor"] == "∞"


def test_direction_by_instrument_splits_long_and_short() -> None:
    trades = [
        make_trade(30.0, instrument="ES", direction="long"),
        make_trade(-10.0, instrument="ES", direction="short"),
        make_trade(5.0, instrument="ES", direction="short"),
    ]

    [row] = direction_by_instrument(trades)

    assert (row.long_pnl, row.long_trades) == (30.0, 1)
    assert (row.short_pnl, row.short_trades) == (-5.0, 2)


def test_performance_after_result_ignores_breakeven_predecessors() -> None:
    trades = [
        make_trade(100.0, date="2025-01-01"),
        make_trade(-50.0, date="2025-01-02"),
        make_trade(0.0, date="2025-01-03"),
        make_trade(30.0, date="2025-01-04"),
        make_trade(20.0, date="2025-01-05"),
    ]

    result = performance_after_result(trades)

    after_win = result["after_win"]
    assert after_win.count == 2
    assert after_win.total_pnl == -30.0
    assert after_win.win_rate == 50.0
    after_loss = result["after_loss"]
    assert after_loss.count == 1
    assert after_loss.total_pnl == 0.0
    assert after_loss.win_rate == 0.0


def test_trade_frequency_impact_buckets_days() -> None:
    trades = [make_trade(10.0, date="2025-01-01")]
    trades += [make_trade(pnl, date="2025-01-02") for pnl in (5.0, 5.0, -20.0)]
    trades += [make_trade(1.0, date="2025-01-03") for _ in range(6)]

    rows = trade_frequency_impact(trades)

    assert [row.label for row in rows] == ["1 trade", "2-3 trades", "4-5 trades", "6+ trades"]
    assert [row.days for row in rows] == [1, 1, 0, 1]
    assert [row.total_pnl for row in rows] == [10.0, -10.0, 0.0, 6.0]
    assert rows[2].avg_pnl == 0.0
    assert rows[3].avg_pnl == pytest.approx(6.0)
