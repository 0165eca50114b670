from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from prop_tracker.models import (
    ACCOUNT_TYPE_EVALUATION,
    ACCOUNT_TYPE_FUNDED,
    RESULT_LOSS,
    RESULT_WIN,
    STATUS_ACTIVE,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    STATUS_PASSED,
    Account,
    DirectAccount,
    PropFirm,
    SplitAccounts,
    Trade,
    is_active_trading_account,
)


@dataclass(frozen=True)
class AccountOverview:
    evaluations: int
    evaluations_in_progress: int
    evaluations_passed: int
    evaluations_failed: int
    evaluation_success_rate: float
    funded: int
    funded_active: int
    funded_profit_loss: float
    total_profit_loss: float


@dataclass(frozen=True)
class AccountSnapshot:
    account_id: str
    display_name: str
    account_type: str
    account_size: float
    total_pnl: float
    day_pnl: float
    balance: float


@dataclass(frozen=True)
class DailySnapshot:
    date: str
    total_pnl: float
    trade_count: int
    wins: int
    losses: int
    accounts: list[AccountSnapshot]
    total_account_value: float


def account_overview(accounts: Iterable[Account]) -> AccountOverview:
    account_list = list(accounts)
    evaluations = [account for account in account_list if account.account_type == ACCOUNT_TYPE_EVALUATION]
    funded = [account for account in account_list if account.account_type == ACCOUNT_TYPE_FUNDED]

    passed = sum(1 for account in evaluations if account.status == STATUS_PASSED)
    failed = sum(1 for account in evaluations if account.status == STATUS_FAILED)
    decided = passed + failed
    return AccountOverview(
        evaluations=len(evaluations),
        evaluations_in_progress=sum(1 for account in evaluations if account.status == STATUS_IN_PROGRESS),
        evaluations_passed=passed,
        evaluations_failed=failed,
        evaluation_success_rate=passed / decided * 100 if decided else 0.0,
        funded=len(funded),
        funded_active=sum(1 for account in funded if account.status == STATUS_ACTIVE),
        funded_profit_loss=sum(account.profit_loss for account in funded),
        total_profit_loss=sum(account.profit_loss for account in account_list),
    )


def account_label(account: Account, firms: Iterable[PropFirm] = ()) -> str:
    names = {firm.firm_id: firm.name for firm in firms}
    firm_name = names.get(account.prop_firm, account.prop_firm)
    return f"{firm_name} ${account.account_size / 1000:.0f}K"


def trading_account_labels(accounts: Iterable[Account], firms: Iterable[PropFirm] = ()) -> dict[str, str]:
    """Labels for active accounts, numbered when two share the same firm and size."""
    firm_list = list(firms)
    active = [account for account in accounts if is_active_trading_account(account)]
    base = {account.account_id: account_label(account, firm_list) for account in active}
    totals: dict[str, int] = {}
    for label in base.values():
        totals[label] = totals.get(label, 0) + 1

    seen: dict[str, int] = {}
    labels: dict[str, str] = {}
    for account in active:
        label = base[account.account_id]
        seen[label] = seen.get(label, 0) + 1
        suffix = " (Eval)" if account.account_type == ACCOUNT_TYPE_EVALUATION else ""
        if totals[label] > 1:
            labels[account.account_id] = f"{label} #{seen[label]}{suffix}"
        else:
            labels[account.account_id] = f"{label}{suffix}"
    return labels


def daily_snapshot(
    accounts: Iterable[Account],
    trades: Iterable[Trade],
    day: str,
    firms: Iterable[PropFirm] = (),
) -> DailySnapshot:
    firm_list = list(firms)
    active = [account for account in accounts if is_active_trading_account(account)]
    split_n = len(active) or 1
    day_trades = [trade for trade in trades if trade.date == day]

    day_pnl = {account.account_id: 0.0 for account in active}
    for trade in day_trades:
        if isinstance(trade.account, SplitAccounts):
            share = trade.pnl / split_n
            for account_id in day_pnl:
                day_pnl[account_id] += share
        elif isinstance(trade.account, DirectAccount) and trade.account.account_id in day_pnl:
            day_pnl[trade.account.account_id] += trade.pnl

    rows = [
        AccountSnapshot(
            account_id=account.account_id,
            display_name=account_label(account, firm_list),
            account_type=account.account_type,
            account_size=account.account_size,
            total_pnl=account.profit_loss,
            day_pnl=day_pnl[account.account_id],
            balance=account.balance,
        )
        for account in active
    ]
    return DailySnapshot(
        date=day,
        total_pnl=sum(trade.pnl for trade in day_trades),
        trade_count=len(day_trades),
        wins=sum(1 for trade in day_trades if trade.result == RESULT_WIN),
        losses=sum(1 for trade in day_trades if trade.result == RESULT_LOSS),
        accounts=rows,
        total_account_value=sum(row.balance for row in rows),
    )
