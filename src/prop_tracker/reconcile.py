from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Iterable

from prop_tracker.models import (
    ACCOUNT_TYPE_EVALUATION,
    ACCOUNT_TYPE_FUNDED,
    STATUS_ACTIVE,
    STATUS_BREACHED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    STATUS_PASSED,
    Account,
    DirectAccount,
    SplitAccounts,
    Trade,
    is_active_trading_account,
)


@dataclass(frozen=True)
class AccountChange:
    account_id: str
    old_profit_loss: float
    new_profit_loss: float
    old_status: str
    new_status: str

    @property
    def status_changed(self) -> bool:
        return self.old_status != self.new_status


def active_account_ids(accounts: Iterable[Account]) -> list[str]:
    return [account.account_id for account in accounts if is_active_trading_account(account)]


def reconcile_accounts(
    accounts: Iterable[Account],
    trades: Iterable[Trade],
    *,
    today: str | None = None,
) -> list[Account]:
    """Recompute profit/loss and threshold status for every account with linked trades.

    Accounts without direct trades and without a split share keep their manually
    entered ``profit_loss`` and ``status``. Inputs are not mutated; changed
    accounts are returned as new instances in the original order.
    """
    account_list = list(accounts)
    trade_list = list(trades)
    end_date = today or date.today().isoformat()

    active_ids = set(active_account_ids(account_list))
    split_n = max(len(active_ids), 1)
    split_trades = [trade for trade in trade_list if isinstance(trade.account, SplitAccounts)]
    direct_by_account: dict[str, list[Trade]] = {}
    for trade in trade_list:
        if isinstance(trade.account, DirectAccount):
            direct_by_account.setdefault(trade.account.account_id, []).append(trade)

    output: list[Account] = []
    for account in account_list:
        direct = direct_by_account.get(account.account_id, [])
        split_eligible = account.account_id in active_ids and bool(split_trades)
        if not direct and not split_eligible:
            output.append(account)
            continue

        direct_pnl = sum(trade.pnl for trade in direct)
        split_pnl = 0.0
        if split_eligible:
            split_pnl = sum(trade.pnl / split_n for trade in split_trades)
        new_pnl = round(direct_pnl + split_pnl, 2)

        status, closed_on = next_status(account, new_pnl)
        output.append(
            replace(
                account,
                profit_loss=new_pnl,
                status=status,
                end_date=end_date if closed_on else account.end_date,
            )
        )
    return output


def next_status(account: Account, profit_loss: float) -> tuple[str, bool]:
    """Return ``(status, transitioned)`` for the account at the given realized P&L.

    Only open accounts move; drawdown failure is checked before the profit target.
    """
    if account.account_type == ACCOUNT_TYPE_EVALUATION and account.status == STATUS_IN_PROGRESS:
        if account.max_drawdown is not None and profit_loss <= -account.max_drawdown:
            return STATUS_FAILED, True
        if account.profit_target is not None and profit_loss >= account.profit_target:
            return STATUS_PASSED, True
    elif account.account_type == ACCOUNT_TYPE_FUNDED and account.status == STATUS_ACTIVE:
        if account.max_drawdown is not None and profit_loss <= -account.max_drawdown:
            return STATUS_BREACHED, True
    return account.status, False


def diff_accounts(before: Iterable[Account], after: Iterable[Account]) -> list[AccountChange]:
    previous = {account.account_id: account for account in before}
    changes: list[AccountChange] = []
    for account in after:
        old = previous.get(account.account_id)
        if old is None:
            continue
        if old.profit_loss == account.profit_loss and old.status == account.status:
            continue
        changes.append(
            AccountChange(
                account_id=account.account_id,
                old_profit_loss=old.profit_loss,
                new_profit_loss=account.profit_loss,
                old_status=old.status,
                new_status=account.status,
            )
        )
    return changes


def main(argv: list[str] | None = None) -> int:
    from prop_tracker.config.app_config import load_app_config
    from prop_tracker.storage.sqlite_store import connect, init_db, load_journal, save_accounts

    app_config = load_app_config()
    parser = argparse.ArgumentParser(description="Recompute account P&L and status from logged trades.")
    parser.add_argument("--db", type=Path, default=app_config.app.db_path, help="SQLite DB path.")
    parser.add_argument("--today", type=str, default=None, help="Override the end date stamped on closed accounts.")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without writing them.")
    args = parser.parse_args(argv)

    conn = connect(args.db)
    try:
        init_db(conn)
        journal = load_journal(conn)
        updated = reconcile_accounts(journal.accounts, journal.trades, today=args.today)
        changes = diff_accounts(journal.accounts, updated)
        if not changes:
            print("No account changes.")
            return 0

        print("account_id old_pnl new_pnl old_status new_status")
        for change in changes:
            print(
                f"{change.account_id} {change.old_profit_loss:.2f} {change.new_profit_loss:.2f} "
                f"{change.old_status} {change.new_status}"
            )
        if args.dry_run:
            print("Dry run: no changes written.", file=sys.stderr)
            return 0
        save_accounts(conn, updated)
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
