from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from prop_tracker.metrics.ordering import sort_chronologically
from prop_tracker.models import RESULT_BREAKEVEN, RESULT_LOSS, RESULT_WIN, Trade

PROFIT_FACTOR_DISPLAY_INFINITY = "∞"


@dataclass(frozen=True)
class TradeStats:
    total_trades: int
    wins: int
    losses: int
    breakevens: int
    win_rate: float
    profit_factor: float
    expectancy: float
    total_pnl: float
    gross_profit: float
    gross_loss: float
    avg_win: float
    avg_loss: float
    avg_trade: float
    largest_win: float
    largest_loss: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    avg_risk_reward: float
    avg_rating: float


def compute_trade_stats(trades: Iterable[Trade]) -> TradeStats:
    trade_list = list(trades)
    total_trades = len(trade_list)

    wins = [trade for trade in trade_list if trade.result == RESULT_WIN]
    losses = [trade for trade in trade_list if trade.result == RESULT_LOSS]
    breakevens = [trade for trade in trade_list if trade.result == RESULT_BREAKEVEN]
    win_count = len(wins)
    loss_count = len(losses)

    gross_profit = sum(trade.pnl for trade in wins)
    gross_loss = abs(sum(trade.pnl for trade in losses))
    total_pnl = sum(trade.pnl for trade in trade_list)

    win_rate = win_rate_pct(win_count, loss_count)
    avg_win = gross_profit / win_count if win_count else 0.0
    avg_loss = gross_loss / loss_count if loss_count else 0.0
    loss_rate = loss_count / total_trades if total_trades else 0.0
    expectancy = (win_rate / 100 * avg_win) - (loss_rate * avg_loss)

    max_wins, max_losses = max_streaks(trade_list)

    return TradeStats(
        total_trades=total_trades,
        wins=win_count,
        losses=loss_count,
        breakevens=len(breakevens),
        win_rate=win_rate,
        profit_factor=profit_factor(gross_profit, gross_loss),
        expectancy=expectancy,
        total_pnl=total_pnl,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        avg_win=avg_win,
        avg_loss=avg_loss,
        avg_trade=total_pnl / total_trades if total_trades else 0.0,
        largest_win=max((trade.pnl for trade in wins), default=0.0),
        largest_loss=min((trade.pnl for trade in losses), default=0.0),
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        avg_risk_reward=_mean([trade.risk_reward for trade in trade_list if trade.risk_reward is not None]),
        avg_rating=_mean([float(trade.rating) for trade in trade_list if trade.rating is not None]),
    )


def win_rate_pct(wins: int, losses: int) -> float:
    decisive = wins + losses
    if not decisive:
        return 0.0
    return wins / decisive * 100


def profit_factor(gross_profit: float, gross_loss: float) -> float:
    if gross_loss > 0:
        return gross_profit / gross_loss
    if gross_profit > 0:
        return math.inf
    return 0.0


def format_profit_factor(value: float, digits: int = 2) -> str:
    if math.isinf(value):
        return PROFIT_FACTOR_DISPLAY_INFINITY
    return f"{value:.{digits}f}"


def max_streaks(trades: Iterable[Trade]) -> tuple[int, int]:
    max_wins = 0
    max_losses = 0
    current_wins = 0
    current_losses = 0

    for trade in sort_chronologically(trades):
        if trade.result == RESULT_WIN:
            current_wins += 1
            current_losses = 0
        elif trade.result == RESULT_LOSS:
            current_losses += 1
            current_wins = 0
        else:
            current_wins = 0
            current_losses = 0
        max_wins = max(max_wins, current_wins)
        max_losses = max(max_losses, current_losses)

    return max_wins, max_losses


def result_distribution(stats: TradeStats) -> list[dict[str, int | str]]:
    rows = [
        {"name": "wins", "value": stats.wins},
        {"name": "losses", "value": stats.losses},
        {"name": "breakeven", "value": stats.breakevens},
    ]
    return [row for row in rows if row["value"] > 0]


@dataclass(frozen=True)
class TradeListStats:
    orders: int
    wins: int
    losses: int
    win_rate: int
    total_pnl: float
    avg_win: float
    avg_loss: float
    profit_factor: float
    avg_rating: float


def trade_list_stats(trades: Iterable[Trade], active_accounts: int) -> TradeListStats:
    """Order-weighted stats for the trade list.

    A split trade was placed once on every active account, so it counts as
    ``max(active_accounts, 1)`` orders. Averages are per order.
    """
    trade_list = list(trades)
    split_orders = max(active_accounts, 1)

    def orders(trade: Trade) -> int:
        return split_orders if trade.is_split else 1

    wins = sum(orders(trade) for trade in trade_list if trade.result == RESULT_WIN)
    losses = sum(orders(trade) for trade in trade_list if trade.result == RESULT_LOSS)
    gross_profit = sum(trade.pnl for trade in trade_list if trade.result == RESULT_WIN)
    gross_loss = abs(sum(trade.pnl for trade in trade_list if trade.result == RESULT_LOSS))

    avg_win = gross_profit / wins if wins else 0.0
    avg_loss = gross_loss / losses if losses else 0.0
    if avg_loss > 0:
        profit_factor = (avg_win * wins) / (avg_loss * losses)
    else:
        profit_factor = math.inf if wins else 0.0

    decided = wins + losses
    # Half-up rounding to a whole percent.
    win_rate = math.floor(wins / decided * 100 + 0.5) if decided else 0

    return TradeListStats(
        orders=sum(orders(trade) for trade in trade_list),
        wins=wins,
        losses=losses,
        win_rate=win_rate,
        total_pnl=sum(trade.pnl for trade in trade_list),
        avg_win=avg_win,
        avg_loss=avg_loss,
        profit_factor=profit_factor,
        avg_rating=_mean([float(trade.rating) for trade in trade_list if trade.rating]),
    )


def trade_list_stats_to_dict(stats: TradeListStats) -> dict[str, float | int | str]:
    return {
        "orders": stats.orders,
        "wins": stats.wins,
        "losses": stats.losses,
        "win_rate": stats.win_rate,
        "total_pnl": stats.total_pnl,
        "avg_win": stats.avg_win,
        "avg_loss": stats.avg_loss,
        "profit_factor": _json_float(stats.profit_factor),
        "avg_rating": stats.avg_rating,
    }


def stats_to_dict(stats: TradeStats) -> dict[str, float | int | str]:
    return {
        "total_trades": stats.total_trades,
        "wins": stats.wins,
        "losses": stats.losses,
        "breakevens": stats.breakevens,
        "win_rate": stats.win_rate,
        "profit_factor": _json_float(stats.profit_factor),
        "expectancy": stats.expectancy,
        "total_pnl": stats.total_pnl,
        "gross_profit": stats.gross_profit,
        "gross_loss": stats.gross_loss,
        "avg_win": stats.avg_win,
        "avg_loss": stats.avg_loss,
        "avg_trade": stats.avg_trade,
        "largest_win": stats.largest_win,
        "largest_loss": stats.largest_loss,
        "max_consecutive_wins": stats.max_consecutive_wins,
        "max_consecutive_losses": stats.max_consecutive_losses,
        "avg_risk_reward": stats.avg_risk_reward,
        "avg_rating": stats.avg_rating,
    }


def _json_float(value: float) -> float | str:
    if math.isinf(value):
        return PROFIT_FACTOR_DISPLAY_INFINITY
    return value


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
