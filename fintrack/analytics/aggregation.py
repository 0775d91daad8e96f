"""
Aggregation Layer

Pure folds over an already-fetched, bounded list of transactions.
No I/O happens here; the analytics service does the fetching.

Conventions:
- Expenses are counted by absolute value, whatever sign they were stored with
- Categories are grouped case-insensitively and reported lower-cased
- A percentage whose denominator is 0 is 0
- Sums use math.fsum, so results do not depend on input order
"""

import math
from collections import defaultdict
from typing import Iterable, Optional

from fintrack.models.analytics import (
    BudgetUtilization,
    CategoryBreakdown,
    CategoryBudgetBreakdown,
    CategoryOption,
    FinancialSummary,
    MonthlyAnalytics,
    MonthlyAnalyticsWithBudget,
    MonthSummary,
    TransactionSummary,
)
from fintrack.models.ledger import Budget, Transaction, TransactionType


HEALTHY_SAVINGS_RATE = 20.0


def normalize_category(category: str) -> str:
    return category.strip().lower()


def percentage(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


def _expenses_by_category(transactions: Iterable[Transaction]) -> dict[str, list[float]]:
    grouped: dict[str, list[float]] = defaultdict(list)
    for tx in transactions:
        if tx.type == TransactionType.EXPENSE:
            grouped[normalize_category(tx.category)].append(abs(tx.amount))
    return grouped


# =============================================================================
# TOTALS
# =============================================================================

def summarize(transactions: list[Transaction]) -> TransactionSummary:
    """Income, expense, balance and savings rate of a set of transactions."""
    income = math.fsum(
        abs(tx.amount) for tx in transactions if tx.type == TransactionType.INCOME
    )
    expense = math.fsum(
        abs(tx.amount) for tx in transactions if tx.type == TransactionType.EXPENSE
    )
    balance = income - expense

    return TransactionSummary(
        total_income=income,
        total_expense=expense,
        balance=balance,
        savings_rate=percentage(balance, income),
        transaction_count=len(transactions),
    )


def category_breakdown(transactions: list[Transaction]) -> list[CategoryBreakdown]:
    """
    Expense totals per category, sorted by category name.

    Percentages are shares of total expenses and sum to 100 when there
    are any expenses.
    """
    grouped = _expenses_by_category(transactions)
    total = math.fsum(amount for amounts in grouped.values() for amount in amounts)

    breakdown = []
    for category in sorted(grouped):
        amount = math.fsum(grouped[category])
        breakdown.append(CategoryBreakdown(
            category=category,
            amount=amount,
            percentage=percentage(amount, total),
            count=len(grouped[category]),
        ))
    return breakdown


def top_category(breakdown: list[CategoryBreakdown]) -> Optional[CategoryBreakdown]:
    """Largest expense category; ties go to the first name alphabetically."""
    top = None
    for entry in sorted(breakdown, key=lambda c: c.category):
        if entry.amount > 0 and (top is None or entry.amount > top.amount):
            top = entry
    return top


def insights(
    summary: TransactionSummary,
    breakdown: list[CategoryBreakdown],
    period: str = "this month",
) -> list[str]:
    """Short human-readable remarks about a summary."""
    if summary.transaction_count == 0:
        return [f"No transactions recorded {period}"]

    messages = []
    if summary.balance > 0:
        messages.append(f"Great! You saved ${summary.balance:.2f} {period}")
    elif summary.balance < 0:
        messages.append(
            f"You spent ${-summary.balance:.2f} more than you earned {period}"
        )
    else:
        messages.append(f"You broke even {period}")

    top = top_category(breakdown)
    if top is not None:
        messages.append(
            f"Your highest spending category was {top.category} with ${top.amount:.2f}"
        )

    if summary.total_income > 0:
        if summary.savings_rate >= HEALTHY_SAVINGS_RATE:
            messages.append(f"Your savings rate of {summary.savings_rate:.1f}% is healthy")
        else:
            messages.append(
                f"Your savings rate of {summary.savings_rate:.1f}% is below "
                f"{HEALTHY_SAVINGS_RATE:.0f}%"
            )
    return messages


# =============================================================================
# COMPOSITE RESULTS
# =============================================================================

def build_financial_summary(transactions: list[Transaction]) -> FinancialSummary:
    summary = summarize(transactions)
    breakdown = category_breakdown(transactions)
    return FinancialSummary(
        **summary.model_dump(),
        category_breakdown=breakdown,
        insights=insights(summary, breakdown, period="overall"),
    )


def build_monthly_analytics(month: str, transactions: list[Transaction]) -> MonthlyAnalytics:
    """Summary of the transactions dated in `month` (others are ignored)."""
    in_month = [tx for tx in transactions if tx.month == month]
    summary = summarize(in_month)
    breakdown = category_breakdown(in_month)
    return MonthlyAnalytics(
        **summary.model_dump(),
        month=month,
        category_breakdown=breakdown,
        insights=insights(summary, breakdown),
    )


def join_budgets(
    month: str,
    transactions: list[Transaction],
    budgets: list[Budget],
) -> MonthlyAnalyticsWithBudget:
    """
    Monthly totals with spending joined to budgets per category.

    Covers every category that has spending or a budget. A category
    without a budget has budget 0; `remaining` goes negative on overrun.
    """
    in_month = [tx for tx in transactions if tx.month == month]
    summary = summarize(in_month)
    spent = {
        category: math.fsum(amounts)
        for category, amounts in _expenses_by_category(in_month).items()
    }
    budgeted = {
        normalize_category(b.category): b.amount
        for b in budgets
        if b.month == month
    }

    breakdown = []
    for category in sorted(set(spent) | set(budgeted)):
        spent_amount = spent.get(category, 0.0)
        budget_amount = budgeted.get(category, 0.0)
        breakdown.append(CategoryBudgetBreakdown(
            category=category,
            spent=spent_amount,
            budget=budget_amount,
            remaining=budget_amount - spent_amount,
        ))

    return MonthlyAnalyticsWithBudget(
        **summary.model_dump(),
        month=month,
        category_breakdown=breakdown,
        insights=insights(summary, category_breakdown(in_month)),
    )


def budget_utilization(
    budgets: list[Budget],
    transactions: list[Transaction],
) -> list[BudgetUtilization]:
    """How much of each budget its month's spending used, sorted by category."""
    results = []
    for budget in sorted(budgets, key=lambda b: (b.month, normalize_category(b.category))):
        category = normalize_category(budget.category)
        spent = math.fsum(
            abs(tx.amount)
            for tx in transactions
            if tx.type == TransactionType.EXPENSE
            and tx.month == budget.month
            and normalize_category(tx.category) == category
        )
        results.append(BudgetUtilization(
            category=category,
            budget_amount=budget.amount,
            spent_amount=spent,
            remaining=budget.amount - spent,
            percentage=percentage(spent, budget.amount),
        ))
    return results


# =============================================================================
# LISTINGS
# =============================================================================

def months_with_transactions(transactions: list[Transaction]) -> list[str]:
    """Distinct YYYY-MM months, newest first."""
    return sorted({tx.month for tx in transactions}, reverse=True)


def unique_categories(transactions: list[Transaction]) -> list[str]:
    return sorted({normalize_category(tx.category) for tx in transactions})


def category_options(categories: list[str]) -> list[CategoryOption]:
    """Dropdown options; the label capitalizes the first letter."""
    return [
        CategoryOption(label=category[:1].upper() + category[1:], value=category)
        for category in categories
        if category
    ]


def monthly_summaries(transactions: list[Transaction]) -> list[MonthSummary]:
    """Per-month totals with the top expense category, newest month first."""
    by_month: dict[str, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        by_month[tx.month].append(tx)

    results = []
    for month in sorted(by_month, reverse=True):
        summary = summarize(by_month[month])
        top = top_category(category_breakdown(by_month[month]))
        results.append(MonthSummary(
            month=month,
            income=summary.total_income,
            expenses=summary.total_expense,
            balance=summary.balance,
            transaction_count=summary.transaction_count,
            top_category=top.category if top else None,
        ))
    return results
