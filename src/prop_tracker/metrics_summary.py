from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from prop_tracker.config.app_config import load_app_config
from prop_tracker.metrics.breakdowns import (
    breakdown_by_direction,
    breakdown_by_instrument,
    breakdown_by_setup,
    breakdown_by_weekday,
    performance_after_result,
    rows_to_dicts,
    trade_frequency_impact,
)
from prop_tracker.metrics.equity import compute_drawdown
from prop_tracker.metrics.filters import DATE_RANGES, filter_by_range
from prop_tracker.metrics.summary import TradeStats, compute_trade_stats, format_profit_factor, stats_to_dict
from prop_tracker.storage.sqlite_store import connect, init_db, load_journal


def main(argv: list[str] | None = None) -> int:
    app_config = load_app_config()
    parser = argparse.ArgumentParser(description="Compute aggregate trade metrics.")
    parser.add_argument("--db", type=Path, default=app_config.app.db_path, help="SQLite DB path.")
    parser.add_argument(
        "--range",
        dest="date_range",
        choices=DATE_RANGES,
        default=app_config.analytics.default_range if app_config.analytics.default_range in DATE_RANGES else "all",
        help="Date range preset.",
    )
    parser.add_argument(
        "--starting-capital",
        type=float,
        default=0.0,
        help="Capital the drawdown curve starts from.",
    )
    parser.add_argument("--json", action="store_true", help="Print JSON output.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    args = parser.parse_args(argv)

    if not args.db.exists():
        print(f"Database not found: {args.db}", file=sys.stderr)
        return 1

    conn = connect(args.db)
    try:
        init_db(conn)
        journal = load_journal(conn)
    finally:
        conn.close()

    trades = filter_by_range(journal.trades, args.date_range)
    stats = compute_trade_stats(trades)
    drawdown = compute_drawdown(trades, args.starting_capital)

    if args.json or (args.out is not None and args.out.suffix.lower() == ".json"):
        payload: dict[str, Any] = dict(stats_to_dict(stats))
        payload["range"] = args.date_range
        payload["max_drawdown_pct"] = drawdown.max_drawdown_pct
        payload["by_instrument"] = rows_to_dicts(breakdown_by_instrument(trades))
        payload["by_setup"] = rows_to_dicts(breakdown_by_setup(trades, journal.trading_setups))
        payload["by_weekday"] = rows_to_dicts(breakdown_by_weekday(trades))
        payload["by_direction"] = rows_to_dicts(breakdown_by_direction(trades))
        payload["after_result"] = rows_to_dicts(performance_after_result(trades).values())
        payload["trade_frequency"] = rows_to_dicts(
            trade_frequency_impact(trades, app_config.analytics.frequency_bins)
        )
        text = json.dumps(payload, indent=2, sort_keys=True)
    else:
        text = _format_stats(stats, drawdown.max_drawdown_pct)

    if args.out is None:
        print(text)
        return 0

    args.out.parent.mkdir(parents=True, exist_ok=True)
    args.out.write_text(text + "\n", encoding="utf-8")
    return 0


def _format_stats(stats: TradeStats, max_drawdown_pct: float) -> str:
    lines = [
        f"total_trades {stats.total_trades}",
        f"wins {stats.wins}",
        f"losses {stats.losses}",
        f"breakevens {stats.breakevens}",
        f"win_rate {_format_float(stats.win_rate)}",
        f"profit_factor {format_profit_factor(stats.profit_factor)}",
        f"expectancy {_format_float(stats.expectancy)}",
        f"total_pnl {_format_float(stats.total_pnl)}",
        f"avg_trade {_format_float(stats.avg_trade)}",
        f"avg_win {_format_float(stats.avg_win)}",
        f"avg_loss {_format_float(stats.avg_loss)}",
        f"largest_win {_format_float(stats.largest_win)}",
        f"largest_loss {_format_float(stats.largest_loss)}",
        f"max_consecutive_wins {stats.max_consecutive_wins}",
        f"max_consecutive_losses {stats.max_consecutive_losses}",
        f"avg_risk_reward {_format_float(stats.avg_risk_reward)}",
        f"avg_rating {_format_float(stats.avg_rating)}",
        f"max_drawdown_pct {_format_float(max_drawdown_pct)}",
    ]
    return "\n".join(lines)


def _format_float(value: float | None) -> str:
    return "na" if value is None else f"{value:.6g}"


if __name__ == "__main__":
    raise SystemExit(main())
