from __future__ import annotations

import math

import pytest
from factories import make_trade

from prop_tracker.metrics.equity import compute_equity_curve
from prop_tracker.metrics.ordering import chronological_key, sort_chronologically, sort_newest_first
from prop_tracker.metrics.summary import (
    PROFIT_FACTOR_DISPLAY_INFINITY,
    compute_trade_stats,
    format_profit_factor,
    max_streaks,
    profit_factor,
    result_distribution,
    stats_to_dict,
    trade_list_stats,
    trade_list_stats_to_dict,
    win_rate_pct,
)
from prop_tracker.models import DirectAccount, SplitAccounts


def test_three_day_sequence_streaks_and_equity() -> None:
    trades = [
        make_trade(200.0, "win", date="2025-01-03"),
        make_trade(300.0, "win", date="2025-01-01"),
        make_trade(-100.0, "loss", date="2025-01-02"),
    ]

    stats = compute_trade_stats(trades)

    assert stats.max_consecutive_wins == 1
    assert stats.max_consecutive_losses == 1
    assert compute_equity_curve(trades)[-1].cumulative == 400.0


def test_empty_input_returns_neutral_stats() -> None:
    stats = compute_trade_stats([])

    assert stats.total_trades == 0
    assert stats.win_rate == 0.0
    assert stats.profit_factor == 0.0
    assert stats.expectancy == 0.0
    assert stats.avg_trade == 0.0
    assert stats.largest_win == 0.0
    assert stats.largest_loss == 0.0
    assert stats.avg_risk_reward == 0.0


def test_win_rate_excludes_breakevens() -> None:
    trades = [make_trade(50.0), make_trade(-20.0), make_trade(0.0), make_trade(0.0)]

    stats = compute_trade_stats(trades)

    assert stats.breakevens == 2
    assert stats.win_rate == pytest.approx(50.0)


@pytest.mark.parametrize(
    ("wins", "losses", "expected"),
    [(0, 0, 0.0), (3, 0, 100.0), (0, 4, 0.0), (1, 3, 25.0)],
)
def test_win_rate_bounds(wins: int, losses: int, expected: float) -> None:
    value = win_rate_pct(wins, losses)
    assert 0.0 <= value <= 100.0
    assert value == pytest.approx(expected)


def test_profit_factor_sentinels() -> None:
    only_winners = compute_trade_stats([make_trade(100.0), make_trade(25.0)])

    assert math.isinf(only_winners.profit_factor)
    assert format_profit_factor(only_winners.profit_factor) == PROFIT_FACTOR_DISPLAY_INFINITY
    assert stats_to_dict(only_winners)["profit_factor"] == PROFIT_FACTOR_DISPLAY_INFINITY
    assert profit_factor(0.0, 0.0) == 0.0
    assert profit_factor(300.0, 150.0) == 2.0
    assert format_profit_factor(2.0) == "2.00"


def test_expectancy_uses_loss_share_of_all_trades() -> None:
    trades = [make_trade(300.0), make_trade(-100.0), make_trade(200.0), make_trade(0.0)]

    stats = compute_trade_stats(trades)

    # win rate 2/3 over decisive trades, loss rate 1/4 over all trades
    assert stats.avg_win == 250.0
    assert stats.avg_loss == 100.0
    assert stats.expectancy == pytest.approx(2 / 3 * 250.0 - 0.25 * 100.0)
    assert stats.total_pnl == 400.0
    assert stats.avg_trade == 100.0
    assert stats.gross_profit == 500.0
    assert stats.gross_loss == 100.0


def test_largest_win_and_loss() -> None:
    trades = [make_trade(120.0), make_trade(40.0), make_trade(-10.0), make_trade(-95.0)]

    stats = compute_trade_stats(trades)

    assert stats.largest_win == 120.0
    assert stats.largest_loss == -95.0


def test_breakeven_resets_both_streaks() -> None:
    trades = [
        make_trade(10.0, date="2025-01-01"),
        make_trade(10.0, date="2025-01-02"),
        make_trade(0.0, date="2025-01-03"),
        make_trade(10.0, date="2025-01-04"),
        make_trade(-5.0, date="2025-01-05"),
        make_trade(-5.0, date="2025-01-06"),
        make_trade(0.0, date="2025-01-07"),
        make_trade(-5.0, date="2025-01-08"),
    ]

    assert max_streaks(trades) == (2, 2)


def test_streaks_follow_time_within_a_day() -> None:
    trades = [
        make_trade(-10.0, date="2025-01-01", time="14:00"),
        make_trade(10.0, date="2025-01-01", time="09:30"),
        make_trade(10.0, date="2025-01-01"),
    ]

    # untimed win sorts first, then 09:30 win, then the 14:00 loss
    assert max_streaks(trades) == (2, 1)


def test_optional_fields_are_averaged_only_when_present() -> None:
    trades = [
        make_trade(10.0, risk_reward=2.0, rating=5),
        make_trade(-5.0, risk_reward=1.0),
        make_trade(3.0, rating=3),
        make_trade(1.0),
    ]

    stats = compute_trade_stats(trades)

    assert stats.avg_risk_reward == pytest.approx(1.5)
    assert stats.avg_rating == pytest.approx(4.0)


def test_result_distribution_drops_empty_rows() -> None:
    stats = compute_trade_stats([make_trade(10.0), make_trade(20.0), make_trade(-1.0)])

    assert result_distribution(stats) == [
        {"name": "wins", "value": 2},
        {"name": "losses", "value": 1},
    ]


def test_result_field_is_trusted_over_pnl_sign() -> None:
    stats = compute_trade_stats([make_trade(2.5, "breakeven"), make_trade(-1.0, "loss")])

    assert stats.wins == 0
    assert stats.breakevens == 1
    assert stats.total_pnl == 1.5


def test_chronological_key_puts_missing_time_first() -> None:
    untimed = make_trade(1.0, date="2025-01-02")
    early = make_trade(1.0, date="2025-01-02", time="08:00")
    previous_day = make_trade(1.0, date="2025-01-01", time="23:59")

    assert chronological_key(untimed) < chronological_key(early)
    assert sort_chronologically([early, untimed, previous_day]) == [previous_day, untimed, early]
    assert sort_newest_first([early, untimed, previous_day]) == [early, untimed, previous_day]


def test_trade_list_counts_split_trade_once_per_active_account() -> None:
    trades = [
        make_trade(300.0, account=SplitAccounts()),
        make_trade(-100.0, account=DirectAccount("x")),
        make_trade(50.0, account=DirectAccount("y"), rating=4),
    ]

    stats = trade_list_stats(trades, active_accounts=2)

    assert stats.orders == 4
    assert (stats.wins, stats.losses) == (3, 1)
    assert stats.win_rate == 75
    assert stats.total_pnl == 250.0
    assert stats.avg_win == pytest.approx(350.0 / 3)
    assert stats.avg_loss == 100.0
    assert stats.profit_factor == pytest.approx(3.5)
    assert stats.avg_rating == 4.0


def test_trade_list_split_counts_at_least_one_order() -> None:
    stats = trade_list_stats([make_trade(120.0, account=SplitAccounts())], active_accounts=0)

    assert stats.orders == 1
    assert stats.profit_factor == math.inf
    assert trade_list_stats_to_dict(stats)["profit_factor"] == PROFIT_FACTOR_DISPLAY_INFINITY


def test_trade_list_win_rate_rounds_half_up() -> None:
    trades = [make_trade(10.0)] + [make_trade(-10.0) for _ in range(7)]

    assert trade_list_stats(trades, active_accounts=1).win_rate == 13
    assert trade_list_stats([], active_accounts=1) == trade_list_stats([], active_accounts=3)
