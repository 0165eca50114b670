from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping
from uuid import uuid4

from prop_tracker.models import (
    Account,
    DailyEntry,
    Expense,
    Payout,
    PropFirm,
    Trade,
    TradingSetup,
)
from prop_tracker.reconcile import reconcile_accounts
from prop_tracker.storage import codec

ChangeListener = Callable[[str], None]


@dataclass
class Journal:
    """In-memory entity store for one trader.

    Every collection is replaced wholesale on mutation. Trade mutations rerun
    the account reconciler before listeners are notified, so anything reading
    the journal after a notification sees reconciled accounts.
    """

    accounts: list[Account] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    daily_entries: list[DailyEntry] = field(default_factory=list)
    payouts: list[Payout] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    prop_firms: list[PropFirm] = field(default_factory=list)
    trading_setups: list[TradingSetup] = field(default_factory=list)
    today: Callable[[], str] | None = None
    _listeners: list[ChangeListener] = field(default_factory=list, repr=False)

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    # Trades

    def add_trade(self, trade: Trade) -> Trade:
        trade = _with_id(trade, "trade_id")
        self.trades = [*self.trades, trade]
        self._trades_changed()
        return trade

    def update_trade(self, trade: Trade) -> Trade:
        self.trades = _replace_by_id(self.trades, trade, "trade_id")
        self._trades_changed()
        return trade

    def delete_trade(self, trade_id: str) -> None:
        self.trades = _remove_by_id(self.trades, trade_id, "trade_id")
        self._trades_changed()

    def import_trades(self, trades: list[Trade]) -> list[Trade]:
        added = [_with_id(trade, "trade_id") for trade in trades]
        self.trades = [*self.trades, *added]
        self._trades_changed()
        return added

    def reconcile(self) -> list[Account]:
        today = self.today() if self.today is not None else None
        self.accounts = reconcile_accounts(self.accounts, self.trades, today=today)
        return self.accounts

    # Accounts

    def add_account(self, account: Account) -> Account:
        account = _with_id(account, "account_id")
        self.accounts = [*self.accounts, account]
        self._notify(codec.KEY_ACCOUNTS)
        return account

    def update_account(self, account: Account) -> Account:
        self.accounts = _replace_by_id(self.accounts, account, "account_id")
        self._notify(codec.KEY_ACCOUNTS)
        return account

    def delete_account(self, account_id: str) -> None:
        self.accounts = _remove_by_id(self.accounts, account_id, "account_id")
        self._notify(codec.KEY_ACCOUNTS)

    # Daily entries

    def upsert_daily_entry(self, day: str, pnl: float | None = None, notes: str | None = None) -> DailyEntry:
        existing = next((entry for entry in self.daily_entries if entry.date == day), None)
        if existing is not None:
            entry = replace(existing, pnl=pnl, notes=notes)
            self.daily_entries = [entry if item.date == day else item for item in self.daily_entries]
        else:
            entry = DailyEntry(entry_id=uuid4().hex, date=day, pnl=pnl, notes=notes)
            self.daily_entries = [*self.daily_entries, entry]
        self._notify(codec.KEY_DAILY_ENTRIES)
        return entry

    def delete_daily_entry(self, entry_id: str) -> None:
        self.daily_entries = _remove_by_id(self.daily_entries, entry_id, "entry_id")
        self._notify(codec.KEY_DAILY_ENTRIES)

    # Payouts, expenses, firms, setups

    def add_payout(self, payout: Payout) -> Payout:
        payout = _with_id(payout, "payout_id")
        self.payouts = [*self.payouts, payout]
        self._notify(codec.KEY_PAYOUTS)
        return payout

    def update_payout(self, payout: Payout) -> Payout:
        self.payouts = _replace_by_id(self.payouts, payout, "payout_id")
        self._notify(codec.KEY_PAYOUTS)
        return payout

    def delete_payout(self, payout_id: str) -> None:
        self.payouts = _remove_by_id(self.payouts, payout_id, "payout_id")
        self._notify(codec.KEY_PAYOUTS)

    def add_expense(self, expense: Expense) -> Expense:
        expense = _with_id(expense, "expense_id")
        self.expenses = [*self.expenses, expense]
        self._notify(codec.KEY_EXPENSES)
        return expense

    def update_expense(self, expense: Expense) -> Expense:
        self.expenses = _replace_by_id(self.expenses, expense, "expense_id")
        self._notify(codec.KEY_EXPENSES)
        return expense

    def delete_expense(self, expense_id: str) -> None:
        self.expenses = _remove_by_id(self.expenses, expense_id, "expense_id")
        self._notify(codec.KEY_EXPENSES)

    def add_prop_firm(self, firm: PropFirm) -> PropFirm:
        firm = _with_id(firm, "firm_id")
        self.prop_firms = [*self.prop_firms, firm]
        self._notify(codec.KEY_PROP_FIRMS)
        return firm

    def update_prop_firm(self, firm: PropFirm) -> PropFirm:
        self.prop_firms = _replace_by_id(self.prop_firms, firm, "firm_id")
        self._notify(codec.KEY_PROP_FIRMS)
        return firm

    def delete_prop_firm(self, firm_id: str) -> None:
        self.prop_firms = _remove_by_id(self.prop_firms, firm_id, "firm_id")
        self._notify(codec.KEY_PROP_FIRMS)

    def add_setup(self, setup: TradingSetup) -> TradingSetup:
        setup = _with_id(setup, "setup_id")
        self.trading_setups = [*self.trading_setups, setup]
        self._notify(codec.KEY_TRADING_SETUPS)
        return setup

    def update_setup(self, setup: TradingSetup) -> TradingSetup:
        self.trading_setups = _replace_by_id(self.trading_setups, setup, "setup_id")
        self._notify(codec.KEY_TRADING_SETUPS)
        return setup

    def delete_setup(self, setup_id: str) -> None:
        self.trading_setups = _remove_by_id(self.trading_setups, setup_id, "setup_id")
        self._notify(codec.KEY_TRADING_SETUPS)

    # Bundle

    def collection(self, key: str) -> list[Any]:
        return list(getattr(self, _ATTRIBUTES[key]))

    def set_collection(self, key: str, items: list[Any]) -> None:
        setattr(self, _ATTRIBUTES[key], list(items))

    def to_bundle(self) -> dict[str, list[dict[str, Any]]]:
        return {key: codec.encode_collection(key, self.collection(key)) for key in codec.BUNDLE_KEYS}

    def load_bundle(self, payload: Mapping[str, Any]) -> list[str]:
        """Overwrite every collection present in ``payload``; absent keys are left alone."""
        loaded: list[str] = []
        for key in codec.BUNDLE_KEYS:
            if key not in payload or payload[key] is None:
                continue
            self.set_collection(key, codec.decode_collection(key, payload[key]))
            loaded.append(key)
        return loaded

    @classmethod
    def from_bundle(cls, payload: Mapping[str, Any], **kwargs: Any) -> "Journal":
        journal = cls(**kwargs)
        journal.load_bundle(payload)
        return journal

    def _trades_changed(self) -> None:
        self.reconcile()
        self._notify(codec.KEY_TRADES)
        self._notify(codec.KEY_ACCOUNTS)

    def _notify(self, key: str) -> None:
        for listener in self._listeners:
            listener(key)


_ATTRIBUTES = {
    codec.KEY_PAYOUTS: "payouts",
    codec.KEY_EXPENSES: "expenses",
    codec.KEY_ACCOUNTS: "accounts",
    codec.KEY_PROP_FIRMS: "prop_firms",
    codec.KEY_DAILY_ENTRIES: "daily_entries",
    codec.KEY_TRADING_SETUPS: "trading_setups",
    codec.KEY_TRADES: "trades",
}


def _with_id(item: Any, attr: str) -> Any:
    if getattr(item, attr):
        return item
    return replace(item, **{attr: uuid4().hex})


def _replace_by_id(items: list[Any], item: Any, attr: str) -> list[Any]:
    target = getattr(item, attr)
    if not any(getattr(existing, attr) == target for existing in items):
        raise KeyError(target)
    return [item if getattr(existing, attr) == target else existing for existing in items]


def _remove_by_id(items: list[Any], item_id: str, attr: str) -> list[Any]:
    remaining = [existing for existing in items if getattr(existing, attr) != item_id]
    if len(remaining) == len(items):
        raise KeyError(item_id)
    return remaining
