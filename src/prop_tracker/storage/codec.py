from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from prop_tracker.models import (
    ACCOUNT_TYPE_EVALUATION,
    ACCOUNT_TYPE_FUNDED,
    DIRECTION_LONG,
    DIRECTION_SHORT,
    EVALUATION_STATUSES,
    FUNDED_STATUSES,
    RESULT_BREAKEVEN,
    RESULT_LOSS,
    RESULT_WIN,
    Account,
    AccountRef,
    DailyEntry,
    DirectAccount,
    Expense,
    Payout,
    PropFirm,
    SplitAccounts,
    Trade,
    TradingSetup,
    initial_status,
)

SPLIT_ACCOUNT_ID = "split"

KEY_PAYOUTS = "payouts"
KEY_EXPENSES = "expenses"
KEY_ACCOUNTS = "accounts"
KEY_PROP_FIRMS = "propFirms"
KEY_DAILY_ENTRIES = "dailyEntries"
KEY_TRADING_SETUPS = "tradingSetups"
KEY_TRADES = "trades"

BUNDLE_KEYS = (
    KEY_PAYOUTS,
    KEY_EXPENSES,
    KEY_ACCOUNTS,
    KEY_PROP_FIRMS,
    KEY_DAILY_ENTRIES,
    KEY_TRADING_SETUPS,
    KEY_TRADES,
)


def account_ref_from_raw(value: Any) -> AccountRef | None:
    if value in (None, ""):
        return None
    text = str(value).strip()
    if text == SPLIT_ACCOUNT_ID:
        return SplitAccounts()
    return DirectAccount(account_id=text)


def account_ref_to_raw(ref: AccountRef | None) -> str | None:
    if ref is None:
        return None
    if isinstance(ref, SplitAccounts):
        return SPLIT_ACCOUNT_ID
    return ref.account_id


def trade_from_dict(raw: Mapping[str, Any]) -> Trade:
    direction = str(raw.get("direction") or "").strip().lower()
    if direction not in (DIRECTION_LONG, DIRECTION_SHORT):
        raise ValueError(f"Invalid trade direction: {raw.get('direction')!r}")
    result = str(raw.get("result") or "").strip().lower()
    if result not in (RESULT_WIN, RESULT_LOSS, RESULT_BREAKEVEN):
        raise ValueError(f"Invalid trade result: {raw.get('result')!r}")
    contracts = _to_int(raw.get("contracts"), default=1)
    if contracts < 1:
        raise ValueError(f"Trade contracts must be >= 1, got {contracts}.")
    return Trade(
        trade_id=_required_str(raw, "id"),
        date=_required_str(raw, "date"),
        time=_optional_str(raw.get("time")),
        instrument=str(raw.get("instrument") or ""),
        setup_id=str(raw.get("setupId") or ""),
        account=account_ref_from_raw(raw.get("accountId")),
        direction=direction,
        entry=_to_float(raw.get("entry")),
        exit=_optional_float(raw.get("exit")),
        stop_loss=_optional_float(raw.get("stopLoss")),
        take_profit=_optional_float(raw.get("takeProfit")),
        contracts=contracts,
        pnl=_to_float(raw.get("pnl")),
        result=result,
        risk_reward=_optional_float(raw.get("riskReward")),
        rating=_optional_int(raw.get("rating")),
        notes=_optional_str(raw.get("notes")),
    )


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    return _compact(
        {
            "id": trade.trade_id,
            "date": trade.date,
            "time": trade.time,
            "instrument": trade.instrument,
            "setupId": trade.setup_id,
            "accountId": account_ref_to_raw(trade.account),
            "direction": trade.direction,
            "entry": trade.entry,
            "exit": trade.exit,
            "stopLoss": trade.stop_loss,
            "takeProfit": trade.take_profit,
            "contracts": trade.contracts,
            "pnl": trade.pnl,
            "result": trade.result,
            "riskReward": trade.risk_reward,
            "rating": trade.rating,
            "notes": trade.notes,
        }
    )


def account_from_dict(raw: Mapping[str, Any]) -> Account:
    # Accounts stored before funded accounts existed carry no type.
    account_type = str(raw.get("type") or ACCOUNT_TYPE_EVALUATION).strip().lower()
    if account_type == ACCOUNT_TYPE_EVALUATION:
        allowed = EVALUATION_STATUSES
    elif account_type == ACCOUNT_TYPE_FUNDED:
        allowed = FUNDED_STATUSES
    else:
        raise ValueError(f"Invalid account type: {raw.get('type')!r}")
    status = str(raw.get("status") or initial_status(account_type)).strip().lower()
    if status not in allowed:
        raise ValueError(f"Invalid status {status!r} for {account_type} account.")
    return Account(
        account_id=_required_str(raw, "id"),
        account_type=account_type,
        prop_firm=str(raw.get("propFirm") or ""),
        account_size=_to_float(raw.get("accountSize")),
        start_date=str(raw.get("startDate") or ""),
        status=status,
        end_date=_optional_str(raw.get("endDate")),
        profit_loss=_to_float(raw.get("profitLoss")),
        max_drawdown=_optional_float(raw.get("maxDrawdown")),
        profit_target=_optional_float(raw.get("profitTarget")),
        notes=_optional_str(raw.get("notes")),
    )


def account_to_dict(account: Account) -> dict[str, Any]:
    return _compact(
        {
            "id": account.account_id,
            "type": account.account_type,
            "propFirm": account.prop_firm,
            "accountSize": account.account_size,
            "startDate": account.start_date,
            "status": account.status,
            "endDate": account.end_date,
            "profitLoss": account.profit_loss,
            "maxDrawdown": account.max_drawdown,
            "profitTarget": account.profit_target,
            "notes": account.notes,
        }
    )


def daily_entry_from_dict(raw: Mapping[str, Any]) -> DailyEntry:
    day = _required_str(raw, "date")
    return DailyEntry(
        entry_id=str(raw.get("id") or day),
        date=day,
        pnl=_optional_float(raw.get("pnl")),
        notes=_optional_str(raw.get("notes")),
    )


def daily_entry_to_dict(entry: DailyEntry) -> dict[str, Any]:
    return _compact({"id": entry.entry_id, "date": entry.date, "pnl": entry.pnl, "notes": entry.notes})


def payout_from_dict(raw: Mapping[str, Any]) -> Payout:
    return Payout(
        payout_id=_required_str(raw, "id"),
        date=_required_str(raw, "date"),
        amount=_to_float(raw.get("amount")),
        prop_firm=str(raw.get("propFirm") or ""),
        method=str(raw.get("method") or "other"),
        notes=_optional_str(raw.get("notes")),
    )


def payout_to_dict(payout: Payout) -> dict[str, Any]:
    return _compact(
        {
            "id": payout.payout_id,
            "date": payout.date,
            "amount": payout.amount,
            "propFirm": payout.prop_firm,
            "method": payout.method,
            "notes": payout.notes,
        }
    )


def expense_from_dict(raw: Mapping[str, Any]) -> Expense:
    return Expense(
        expense_id=_required_str(raw, "id"),
        date=_required_str(raw, "date"),
        amount=_to_float(raw.get("amount")),
        category=str(raw.get("category") or "other"),
        prop_firm=_optional_str(raw.get("propFirm")),
        notes=_optional_str(raw.get("notes")),
    )


def expense_to_dict(expense: Expense) -> dict[str, Any]:
    return _compact(
        {
            "id": expense.expense_id,
            "date": expense.date,
            "amount": expense.amount,
            "category": expense.category,
            "propFirm": expense.prop_firm,
            "notes": expense.notes,
        }
    )


def prop_firm_from_dict(raw: Mapping[str, Any]) -> PropFirm:
    return PropFirm(
        firm_id=_required_str(raw, "id"),
        name=str(raw.get("name") or ""),
        website=_optional_str(raw.get("website")),
        notes=_optional_str(raw.get("notes")),
        rating=_optional_int(raw.get("rating")),
        total_payouts=_to_float(raw.get("totalPayouts")),
    )


def prop_firm_to_dict(firm: PropFirm) -> dict[str, Any]:
    return _compact(
        {
            "id": firm.firm_id,
            "name": firm.name,
            "website": firm.website,
            "notes": firm.notes,
            "rating": firm.rating,
            "totalPayouts": firm.total_payouts,
        }
    )


def setup_from_dict(raw: Mapping[str, Any]) -> TradingSetup:
    return TradingSetup(
        setup_id=_required_str(raw, "id"),
        name=str(raw.get("name") or ""),
        description=_optional_str(raw.get("description")),
        rules=_optional_str(raw.get("rules")),
    )


def setup_to_dict(setup: TradingSetup) -> dict[str, Any]:
    return _compact(
        {"id": setup.setup_id, "name": setup.name, "description": setup.description, "rules": setup.rules}
    )


CODECS: dict[str, tuple[Callable[[Mapping[str, Any]], Any], Callable[[Any], dict[str, Any]]]] = {
    KEY_PAYOUTS: (payout_from_dict, payout_to_dict),
    KEY_EXPENSES: (expense_from_dict, expense_to_dict),
    KEY_ACCOUNTS: (account_from_dict, account_to_dict),
    KEY_PROP_FIRMS: (prop_firm_from_dict, prop_firm_to_dict),
    KEY_DAILY_ENTRIES: (daily_entry_from_dict, daily_entry_to_dict),
    KEY_TRADING_SETUPS: (setup_from_dict, setup_to_dict),
    KEY_TRADES: (trade_from_dict, trade_to_dict),
}


def decode_collection(key: str, payload: Any) -> list[Any]:
    decode, _ = CODECS[key]
    if not isinstance(payload, list):
        return []
    return [decode(item) for item in payload if isinstance(item, Mapping)]


def encode_collection(key: str, items: Iterable[Any]) -> list[dict[str, Any]]:
    _, encode = CODECS[key]
    return [encode(item) for item in items]


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _required_str(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value in (None, ""):
        raise ValueError(f"Missing required field {key!r}.")
    return str(value)


def _optional_str(value: Any) -> str | None:
    if value in (None, ""):
        return None
    return str(value)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
