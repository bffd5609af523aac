from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from finance_tracker.core.models import Budget, SavingsGoal, Transaction, money, progress_percent
from finance_tracker.errors import ValidationError

logger = logging.getLogger(__name__)

REPORT_RANGES = ("week", "month", "quarter", "year")

# Amounts are summed as Decimal and only turned back into floats for output,
# so a breakdown always adds up to its total.
ZERO = Decimal(0)


def _amounts(values: Dict[str, Decimal]) -> Dict[str, float]:
    return {key: float(value) for key, value in values.items()}


def transaction_stats(transactions: Iterable[Transaction]) -> Dict[str, object]:
    """Income, expense and net totals plus a per-category breakdown."""
    income = expenses = ZERO
    count = 0
    breakdown: Dict[str, Dict[str, Decimal]] = {}
    for tx in transactions:
        count += 1
        amount = money(tx.amount)
        bucket = breakdown.setdefault(tx.category, {"income": ZERO, "expenses": ZERO})
        if tx.type == "income":
            income += amount
            bucket["income"] += amount
        else:
            expenses += amount
            bucket["expenses"] += amount
    return {
        "totalIncome": float(income),
        "totalExpenses": float(expenses),
        "netAmount": float(income - expenses),
        "transactionCount": count,
        "categoryBreakdown": {category: _amounts(bucket) for category, bucket in breakdown.items()},
    }


def budget_stats(budgets: Iterable[Budget]) -> Dict[str, object]:
    """Totals over active budgets; inactive ones are skipped."""
    total = ZERO
    count = 0
    breakdown: Dict[str, Decimal] = {}
    for budget in budgets:
        if not budget.is_active:
            continue
        count += 1
        amount = money(budget.amount)
        total += amount
        breakdown[budget.category] = breakdown.get(budget.category, ZERO) + amount
    return {
        "totalBudgets": count,
        "totalBudgetAmount": float(total),
        "activeBudgets": count,
        "categoryBreakdown": _amounts(breakdown),
    }


def savings_goal_stats(goals: Iterable[SavingsGoal]) -> Dict[str, object]:
    total_target = total_current = ZERO
    total = active = 0
    for goal in goals:
        total += 1
        total_target += money(goal.target_amount)
        total_current += money(goal.current_amount)
        if goal.is_active:
            active += 1
    return {
        "totalGoals": total,
        "activeGoals": active,
        "completedGoals": total - active,
        "totalTargetAmount": float(total_target),
        "totalCurrentAmount": float(total_current),
        "totalProgress": progress_percent(total_current, total_target),
    }


def mark_completed(goal: SavingsGoal) -> SavingsGoal:
    """Close the goal once the saved amount reaches the target.

    Completion is one-way: a completed goal is never reopened here.
    """
    if goal.is_active and money(goal.current_amount) >= money(goal.target_amount):
        return replace(goal, is_active=False)
    return goal


def deposit(goal: SavingsGoal, amount: float) -> SavingsGoal:
    """Return *goal* with *amount* added to ``current_amount``."""
    if amount < 0:
        raise ValidationError("amount must not be negative")
    current = float(money(goal.current_amount) + money(amount))
    return mark_completed(replace(goal, current_amount=current))


def report_window(range_name: str = "month", today: date | None = None) -> Tuple[date, date]:
    """Translate a report range keyword into inclusive ``(start, end)`` dates.

    Unknown keywords get the current month.
    """
    today = today or date.today()
    if range_name == "week":
        return today - timedelta(days=7), today
    if range_name == "quarter":
        return date(today.year, (today.month - 1) // 3 * 3 + 1, 1), today
    if range_name == "year":
        return date(today.year, 1, 1), today
    return today.replace(day=1), today


def monthly_trend(transactions: Iterable[Transaction], months: int = 6) -> List[Dict[str, object]]:
    """Income and expenses per ``YYYY-MM``, oldest first, last *months* only."""
    totals: Dict[str, Dict[str, Decimal]] = {}
    for tx in transactions:
        bucket = totals.setdefault(tx.date.strftime("%Y-%m"), {"income": ZERO, "expenses": ZERO})
        bucket["income" if tx.type == "income" else "expenses"] += money(tx.amount)
    trend = [{"month": month, **_amounts(totals[month])} for month in sorted(totals)]
    return trend[-months:] if months > 0 else trend


def top_transactions(transactions: Iterable[Transaction], tx_type: str, limit: int = 5) -> List[Transaction]:
    matching = [tx for tx in transactions if tx.type == tx_type]
    return sorted(matching, key=lambda tx: tx.amount, reverse=True)[:limit]


def build_report(
    transactions: List[Transaction],
    budgets: List[Budget],
    goals: List[SavingsGoal],
    range_name: str = "month",
    category: str | None = None,
    today: date | None = None,
) -> Dict[str, object]:
    """Assemble the reports page payload from a user's full record set."""
    if range_name not in REPORT_RANGES:
        logger.debug("Unknown report range %r, using month", range_name)
        range_name = "month"
    start, end = report_window(range_name, today)
    in_window = [tx for tx in transactions if start <= tx.date <= end]
    if category and category != "all":
        selected = [tx for tx in transactions if tx.category == category]
    else:
        selected = transactions
    return {
        "range": {"name": range_name, "startDate": start.isoformat(), "endDate": end.isoformat()},
        "transactionStats": transaction_stats(in_window),
        "categoryBreakdown": transaction_stats(selected)["categoryBreakdown"],
        "monthlyTrend": monthly_trend(transactions),
        "topExpenses": [tx.to_dict() for tx in top_transactions(transactions, "expense")],
        "topIncome": [tx.to_dict() for tx in top_transactions(transactions, "income")],
        "budgetStats": budget_stats(budgets),
        "savingsGoalStats": savings_goal_stats(goals),
    }
