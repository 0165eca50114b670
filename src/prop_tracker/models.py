from __future__ import annotations

from dataclasses import dataclass
from typing import Union

ACCOUNT_TYPE_EVALUATION = "evaluation"
ACCOUNT_TYPE_FUNDED = "funded"

STATUS_IN_PROGRESS = "in_progress"
STATUS_PASSED = "passed"
STATUS_FAILED = "failed"
STATUS_ACTIVE = "active"
STATUS_BREACHED = "breached"
STATUS_WITHDRAWN = "withdrawn"

EVALUATION_STATUSES = (STATUS_IN_PROGRESS, STATUS_PASSED, STATUS_FAILED)
FUNDED_STATUSES = (STATUS_ACTIVE, STATUS_BREACHED, STATUS_WITHDRAWN)

DIRECTION_LONG = "long"
DIRECTION_SHORT = "short"

RESULT_WIN = "win"
RESULT_LOSS = "loss"
RESULT_BREAKEVEN = "breakeven"

PAYOUT_METHODS = ("bank_transfer", "crypto", "paypal", "other")
EXPENSE_CATEGORIES = ("challenge_fee", "subscription", "software", "education", "other")


@dataclass(frozen=True)
class DirectAccount:
    account_id: str


@dataclass(frozen=True)
class SplitAccounts:
    """Trade P&L shared equally by every active trading account."""


AccountRef = Union[DirectAccount, SplitAccounts]


@dataclass
class Trade:
    trade_id: str
    date: str
    instrument: str
    setup_id: str
    direction: str
    entry: float
    contracts: int
    pnl: float
    result: str
    account: AccountRef | None = None
    time: str | None = None
    exit: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    risk_reward: float | None = None
    rating: int | None = None
    notes: str | None = None

    @property
    def is_split(self) -> bool:
        return isinstance(self.account, SplitAccounts)


@dataclass
class Account:
    account_id: str
    account_type: str
    prop_firm: str
    account_size: float
    start_date: str
    status: str
    profit_loss: float = 0.0
    end_date: str | None = None
    max_drawdown: float | None = None
    profit_target: float | None = None
    notes: str | None = None

    @property
    def balance(self) -> float:
        return self.account_size + self.profit_loss


@dataclass
class DailyEntry:
    entry_id: str
    date: str
    pnl: float | None = None
    notes: str | None = None


@dataclass
class Payout:
    payout_id: str
    date: str
    amount: float
    prop_firm: str
    method: str
    notes: str | None = None


@dataclass
class Expense:
    expense_id: str
    date: str
    amount: float
    category: str
    prop_firm: str | None = None
    notes: str | None = None


@dataclass
class PropFirm:
    firm_id: str
    name: str
    total_payouts: float = 0.0
    website: str | None = None
    rating: int | None = None
    notes: str | None = None


@dataclass
class TradingSetup:
    setup_id: str
    name: str
    description: str | None = None
    rules: str | None = None


def is_active_trading_account(account: Account) -> bool:
    if account.account_type == ACCOUNT_TYPE_EVALUATION:
        return account.status == STATUS_IN_PROGRESS
    if account.account_type == ACCOUNT_TYPE_FUNDED:
        return account.status == STATUS_ACTIVE
    return False


def initial_status(account_type: str) -> str:
    return STATUS_ACTIVE if account_type == ACCOUNT_TYPE_FUNDED else STATUS_IN_PROGRESS
