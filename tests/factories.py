from __future__ import annotations

import itertools
from typing import Any

from prop_tracker.models import (
    ACCOUNT_TYPE_FUNDED,
    RESULT_BREAKEVEN,
    RESULT_LOSS,
    RESULT_WIN,
    Account,
    AccountRef,
    Trade,
    initial_status,
)

_IDS = itertools.count(1)


def make_trade(
    pnl: float,
    result: str | None = None,
    *,
    date: str = "2025-01-01",
    time: str | None = None,
    account: AccountRef | None = None,
    **kwargs: Any,
) -> Trade:
    if result is None:
        result = RESULT_WIN if pnl > 0 else RESULT_LOSS if pnl < 0 else RESULT_BREAKEVEN
    values: dict[str, Any] = {
        "trade_id": f"t{next(_IDS)}",
        "date": date,
        "time": time,
        "instrument": "NQ",
        "setup_id": "s1",
        "direction": "long",
        "entry": 20000.0,
        "contracts": 1,
        "pnl": pnl,
        "result": result,
        "account": account,
    }
    values.update(kwargs)
    return Trade(**values)


def make_account(
    account_id: str,
    account_type: str = ACCOUNT_TYPE_FUNDED,
    *,
    status: str | None = None,
    **kwargs: Any,
) -> Account:
    values: dict[str, Any] = {
        "account_id": account_id,
        "account_type": account_type,
        "prop_firm": "Apex",
        "account_size": 25000.0,
        "start_date": "2025-01-01",
        "status": status or initial_status(account_type),
    }
    values.update(kwargs)
    return Account(**values)
