"""
Analytics Package

Pure aggregation folds plus the service that feeds them from the
repository.
"""

from fintrack.analytics.aggregation import (
    budget_utilization,
    build_financial_summary,
    build_monthly_analytics,
    category_breakdown,
    category_options,
    insights,
    join_budgets,
    monthly_summaries,
    months_with_transactions,
    summarize,
    unique_categories,
)
from fintrack.analytics.service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "budget_utilization",
    "build_financial_summary",
    "build_monthly_analytics",
    "category_breakdown",
    "category_options",
    "insights",
    "join_budgets",
    "monthly_summaries",
    "months_with_transactions",
    "summarize",
    "unique_categories",
]
