"""
Analytics Models

Result shapes produced by the aggregation layer. All amounts are plain
floats; expenses are reported as positive numbers.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fintrack.models.ledger import utcnow


class TransactionSummary(BaseModel):
    """Totals over a set of transactions."""

    total_income: float = 0.0
    total_expense: float = Field(
        default=0.0,
        ge=0,
        description="Sum of expense amounts, as an absolute value"
    )
    balance: float = 0.0
    savings_rate: float = Field(
        default=0.0,
        description="Balance as a percentage of income (0 when there is no income)"
    )
    transaction_count: int = Field(default=0, ge=0)


class CategoryBreakdown(BaseModel):
    """Expense total for one category."""

    category: str
    amount: float = Field(ge=0)
    percentage: float = Field(
        ge=0,
        description="Share of total expenses, 0-100"
    )
    count: int = Field(ge=0)

    @property
    def average_amount(self) -> float:
        return self.amount / self.count if self.count else 0.0


class FinancialSummary(TransactionSummary):
    """Dashboard summary: totals, category breakdown and insights."""

    category_breakdown: list[CategoryBreakdown] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)


class MonthlyAnalytics(FinancialSummary):
    """FinancialSummary scoped to one calendar month."""

    month: str


class CategoryBudgetBreakdown(BaseModel):
    """Spending for one category joined with its budget."""

    category: str
    spent: float = Field(ge=0)
    budget: float = Field(ge=0)
    remaining: float = Field(
        description="budget - spent; negative means the budget is overrun"
    )

    @property
    def is_over_budget(self) -> bool:
        return self.remaining < 0


class MonthlyAnalyticsWithBudget(TransactionSummary):
    """Monthly totals with a budget-aware category breakdown."""

    month: str
    category_breakdown: list[CategoryBudgetBreakdown] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)


class BudgetUtilization(BaseModel):
    """How much of a budget has been used."""

    category: str
    budget_amount: float = Field(ge=0)
    spent_amount: float = Field(ge=0)
    remaining: float
    percentage: float = Field(
        ge=0,
        description="spent / budget * 100 (0 when the budget is 0)"
    )


class CategoryOption(BaseModel):
    """Category option for UI dropdowns."""

    label: str
    value: str


class MonthSummary(BaseModel):
    """Per-month totals."""

    month: str
    income: float = 0.0
    expenses: float = Field(default=0.0, ge=0)
    balance: float = 0.0
    transaction_count: int = 0
    top_category: Optional[str] = None
