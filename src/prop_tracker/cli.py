from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path

from prop_tracker.config.app_config import load_app_config
from prop_tracker.ingest.trades_csv import load_trades, write_trades_csv
from prop_tracker.journal import Journal
from prop_tracker.metrics.accounts import account_overview, daily_snapshot, trading_account_labels
from prop_tracker.metrics.calendar import calendar_month, current_streak
from prop_tracker.metrics.filters import filter_trades
from prop_tracker.metrics.financials import financial_summary
from prop_tracker.metrics.ordering import sort_newest_first
from prop_tracker.storage import codec
from prop_tracker.storage.sqlite_store import connect, init_db, load_journal, reset, save_journal


def main(argv: list[str] | None = None) -> int:
    app_config = load_app_config()
    parser = argparse.ArgumentParser(description="Prop firm trading journal.")
    parser.add_argument("--db", type=Path, default=app_config.app.db_path, help="SQLite DB path.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import-trades", help="Import trades from a broker CSV/TSV export.")
    import_parser.add_argument("path", type=Path, help="CSV or TSV file.")
    import_parser.add_argument("--setup", required=True, help="Setup id assigned to every imported trade.")
    import_parser.add_argument("--account", default=None, help="Account id, or 'split' to share across accounts.")

    export_parser = subparsers.add_parser("export-trades", help="Write the trade list as CSV.")
    export_parser.add_argument("--out", type=Path, default=None, help="Write to a file instead of stdout.")
    export_parser.add_argument("--setup", default=None, help="Filter by setup id.")
    export_parser.add_argument("--result", default=None, help="Filter by result (win/loss/breakeven).")
    export_parser.add_argument("--instrument", default=None, help="Filter by instrument.")

    calendar_parser = subparsers.add_parser("calendar", help="Print a month of resolved daily P&L.")
    calendar_parser.add_argument("--month", default=None, help="Month as YYYY-MM (default: current month).")

    snapshot_parser = subparsers.add_parser("snapshot", help="Print the per-account snapshot for a day.")
    snapshot_parser.add_argument("--date", default=None, help="Day as YYYY-MM-DD (default: today).")

    subparsers.add_parser("overview", help="Print account and financial totals.")

    reset_parser = subparsers.add_parser("reset", help="Delete every stored collection and start empty.")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset.")

    args = parser.parse_args(argv)

    if args.command == "reset" and not args.yes:
        print("Refusing to reset without --yes.", file=sys.stderr)
        return 1

    conn = connect(args.db)
    try:
        init_db(conn)
        if args.command == "reset":
            reset(conn)
            print(f"Reset {args.db}.")
            return 0
        journal = load_journal(conn)
        if args.command == "import-trades":
            return _import_trades(conn, journal, args)
        if args.command == "export-trades":
            return _export_trades(journal, args)
        if args.command == "calendar":
            return _print_calendar(journal, args.month)
        if args.command == "snapshot":
            return _print_snapshot(journal, args.date or date.today().isoformat())
        return _print_overview(journal)
    finally:
        conn.close()


def _import_trades(conn, journal: Journal, args: argparse.Namespace) -> int:
    account = codec.account_ref_from_raw(args.account)
    try:
        result = load_trades(args.path, setup_id=args.setup, account=account)
    except ValueError as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        return 1
    if result.skipped:
        print(f"Skipped {result.skipped} rows during import.", file=sys.stderr)
    if not result.trades:
        print("No valid trades found in file.", file=sys.stderr)
        return 1

    added = journal.import_trades(result.trades)
    save_journal(conn, journal, keys=[codec.KEY_TRADES, codec.KEY_ACCOUNTS])
    print(f"Imported {len(added)} trades.")
    return 0


def _export_trades(journal: Journal, args: argparse.Namespace) -> int:
    trades = filter_trades(journal.trades, setup_id=args.setup, result=args.result, instrument=args.instrument)
    setup_names = {setup.setup_id: setup.name for setup in journal.trading_setups}
    labels = trading_account_labels(journal.accounts, journal.prop_firms)
    if args.out is None:
        write_trades_csv(sort_newest_first(trades), sys.stdout, setup_names=setup_names, account_labels=labels)
        return 0

    args.out.parent.mkdir(parents=True, exist_ok=True)
    with args.out.open("w", encoding="utf-8", newline="") as handle:
        count = write_trades_csv(sort_newest_first(trades), handle, setup_names=setup_names, account_labels=labels)
    print(f"Wrote {count} trades to {args.out}.")
    return 0


def _print_calendar(journal: Journal, month: str | None) -> int:
    grid = calendar_month(journal.trades, journal.daily_entries, month)
    summary = grid.summary
    print(grid.label)
    print("  Mon      Tue      Wed      Thu      Fri      Sat      Sun")
    for week in grid.weeks:
        cells = []
        for day in week:
            if not day.in_month:
                cells.append(" " * 8)
            elif day.pnl is None:
                cells.append(f"{day.day:>2}      ")
            else:
                cells.append(f"{day.day:>2}{day.pnl:>+6.0f}")
        print(" ".join(cells))
    print(
        f"Total {summary.total_pnl:.2f} | win days {summary.win_days} | loss days {summary.loss_days} "
        f"| win rate {summary.win_rate:.1f}%"
    )
    streak = current_streak(journal.daily_entries)
    if streak.kind is not None:
        print(f"Current streak: {streak.count} {streak.kind}")
    return 0


def _print_snapshot(journal: Journal, day: str) -> int:
    snapshot = daily_snapshot(journal.accounts, journal.trades, day, journal.prop_firms)
    print(f"{snapshot.date}: {snapshot.trade_count} trades, {snapshot.wins}W/{snapshot.losses}L, pnl {snapshot.total_pnl:.2f}")
    for row in snapshot.accounts:
        print(f"  {row.display_name}: day {row.day_pnl:.2f} total {row.total_pnl:.2f} balance {row.balance:.2f}")
    print(f"Total account value: {snapshot.total_account_value:.2f}")
    return 0


def _print_overview(journal: Journal) -> int:
    overview = account_overview(journal.accounts)
    financials = financial_summary(journal.payouts, journal.expenses)
    print(
        f"Evaluations: {overview.evaluations} "
        f"({overview.evaluations_in_progress} in progress, {overview.evaluations_passed} passed, "
        f"{overview.evaluations_failed} failed, success {overview.evaluation_success_rate:.1f}%)"
    )
    print(f"Funded: {overview.funded} ({overview.funded_active} active, pnl {overview.funded_profit_loss:.2f})")
    print(f"Total account P&L: {overview.total_profit_loss:.2f}")
    print(
        f"Payouts {financials.total_payouts:.2f} - expenses {financials.total_expenses:.2f} "
        f"= net {financials.net_profit:.2f}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
