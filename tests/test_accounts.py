from __future__ import annotations

import pytest
from factories import make_account, make_trade

from prop_tracker.metrics.accounts import account_label, account_overview, daily_snapshot, trading_account_labels
from prop_tracker.metrics.financials import filter_expenses, filter_payouts, financial_summary, recent_payouts
from prop_tracker.models import (
    ACCOUNT_TYPE_EVALUATION,
    STATUS_BREACHED,
    STATUS_FAILED,
    STATUS_PASSED,
    DirectAccount,
    Expense,
    Payout,
    PropFirm,
    SplitAccounts,
)


def test_account_overview_counts() -> None:
    accounts = [
        make_account("e1", ACCOUNT_TYPE_EVALUATION, profit_loss=500.0),
        make_account("e2", ACCOUNT_TYPE_EVALUATION, status=STATUS_PASSED, profit_loss=3000.0),
        make_account("e3", ACCOUNT_TYPE_EVALUATION, status=STATUS_FAILED, profit_loss=-2000.0),
        make_account("e4", ACCOUNT_TYPE_EVALUATION, status=STATUS_PASSED, profit_loss=3100.0),
        make_account("f1", profit_loss=800.0),
        make_account("f2", status=STATUS_BREACHED, profit_loss=-1500.0),
    ]

    overview = account_overview(accounts)

    assert overview.evaluations == 4
    assert overview.evaluations_in_progress == 1
    assert overview.evaluation_success_rate == pytest.approx(200 / 3)
    assert overview.funded == 2
    assert overview.funded_active == 1
    assert overview.funded_profit_loss == -700.0
    assert overview.total_profit_loss == 3900.0
    assert account_overview([]).evaluation_success_rate == 0.0


def test_account_labels_number_duplicates() -> None:
    firms = [PropFirm(firm_id="apex", name="Apex Trader")]
    accounts = [
        make_account("f1", prop_firm="apex", account_size=50000.0),
        make_account("f2", prop_firm="apex", account_size=50000.0),
        make_account("e1", ACCOUNT_TYPE_EVALUATION, prop_firm="Topstep", account_size=25000.0),
        make_account("old", status=STATUS_BREACHED, prop_firm="apex", account_size=50000.0),
    ]

    labels = trading_account_labels(accounts, firms)

    assert labels == {
        "f1": "Apex Trader $50K #1",
        "f2": "Apex Trader $50K #2",
        "e1": "Topstep $25K (Eval)",
    }
    assert account_label(accounts[2]) == "Topstep $25K"


def test_daily_snapshot_distributes_split_trades() -> None:
    accounts = [
        make_account("a", profit_loss=1000.0),
        make_account("b", profit_loss=-200.0, account_size=50000.0),
        make_account("gone", status=STATUS_BREACHED),
    ]
    trades = [
        make_trade(100.0, date="2025-01-06", account=DirectAccount("a")),
        make_trade(-50.0, date="2025-01-06", account=DirectAccount("gone")),
        make_trade(50.0, date="2025-01-06", account=SplitAccounts()),
        make_trade(999.0, date="2025-01-07", account=DirectAccount("a")),
    ]

    snapshot = daily_snapshot(accounts, trades, "2025-01-06")

    assert snapshot.total_pnl == 100.0
    assert snapshot.trade_count == 3
    assert (snapshot.wins, snapshot.losses) == (2, 1)
    rows = {row.account_id: row for row in snapshot.accounts}
    assert set(rows) == {"a", "b"}
    assert rows["a"].day_pnl == 125.0
    assert rows["b"].day_pnl == 25.0
    assert rows["b"].balance == 49800.0
    assert snapshot.total_account_value == 26000.0 + 49800.0


def test_financial_summary_groups_payouts_and_expenses() -> None:
    payouts = [
        Payout(payout_id="p1", date="2025-01-10", amount=1500.0, prop_firm="Apex", method="bank_transfer"),
        Payout(payout_id="p2", date="2025-02-11", amount=500.0, prop_firm="Topstep", method="crypto"),
        Payout(payout_id="p3", date="2025-01-25", amount=250.0, prop_firm="Apex", method="paypal"),
    ]
    expenses = [
        Expense(expense_id="x1", date="2025-01-01", amount=167.0, category="challenge_fee"),
        Expense(expense_id="x2", date="2025-01-15", amount=85.0, category="software"),
        Expense(expense_id="x3", date="2025-02-01", amount=167.0, category="challenge_fee"),
    ]

    summary = financial_summary(payouts, expenses)

    assert summary.total_payouts == 2250.0
    assert summary.total_expenses == 419.0
    assert summary.net_profit == 1831.0
    assert summary.payouts_by_firm == {"Apex": 1750.0, "Topstep": 500.0}
    assert summary.expenses_by_category == {"challenge_fee": 334.0, "software": 85.0}
    assert summary.payouts_by_month == {"2025-01": 1750.0, "2025-02": 500.0}

    assert [payout.payout_id for payout in recent_payouts(payouts, limit=2)] == ["p2", "p3"]
    assert [payout.payout_id for payout in filter_payouts(payouts, "Apex")] == ["p3", "p1"]
    assert [expense.expense_id for expense in filter_expenses(expenses, "all")] == ["x3", "x2", "x1"]
