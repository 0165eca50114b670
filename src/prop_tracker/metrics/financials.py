from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from prop_tracker.models import Expense, Payout


@dataclass(frozen=True)
class FinancialSummary:
    total_payouts: float
    total_expenses: float
    net_profit: float
    payouts_by_firm: dict[str, float]
    expenses_by_category: dict[str, float]
    payouts_by_month: dict[str, float]


def financial_summary(payouts: Iterable[Payout], expenses: Iterable[Expense]) -> FinancialSummary:
    payout_list = list(payouts)
    expense_list = list(expenses)
    total_payouts = sum(payout.amount for payout in payout_list)
    total_expenses = sum(expense.amount for expense in expense_list)

    by_firm: dict[str, float] = {}
    by_month: dict[str, float] = {}
    for payout in payout_list:
        by_firm[payout.prop_firm] = by_firm.get(payout.prop_firm, 0.0) + payout.amount
        month = payout.date[:7]
        by_month[month] = by_month.get(month, 0.0) + payout.amount

    by_category: dict[str, float] = {}
    for expense in expense_list:
        by_category[expense.category] = by_category.get(expense.category, 0.0) + expense.amount

    return FinancialSummary(
        total_payouts=total_payouts,
        total_expenses=total_expenses,
        net_profit=total_payouts - total_expenses,
        payouts_by_firm=by_firm,
        expenses_by_category=by_category,
        payouts_by_month=dict(sorted(by_month.items())),
    )


def recent_payouts(payouts: Iterable[Payout], limit: int = 5) -> list[Payout]:
    return sorted(payouts, key=lambda payout: payout.date, reverse=True)[:limit]


def filter_payouts(payouts: Iterable[Payout], prop_firm: str | None = None) -> list[Payout]:
    output = [payout for payout in payouts if not prop_firm or prop_firm == "all" or payout.prop_firm == prop_firm]
    return sorted(output, key=lambda payout: payout.date, reverse=True)


def filter_expenses(expenses: Iterable[Expense], category: str | None = None) -> list[Expense]:
    output = [expense for expense in expenses if not category or category == "all" or expense.category == category]
    return sorted(output, key=lambda expense: expense.date, reverse=True)
