"""
Data Models Package

This package contains all Pydantic models used in Fintrack.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.ledger import (
    Budget,
    Transaction,
    TransactionPage,
    TransactionType,
    User,
    is_valid_month,
    utcnow,
)
from fintrack.models.analytics import (
    BudgetUtilization,
    CategoryBreakdown,
    CategoryBudgetBreakdown,
    CategoryOption,
    FinancialSummary,
    MonthSummary,
    MonthlyAnalytics,
    MonthlyAnalyticsWithBudget,
    TransactionSummary,
)

__all__ = [
    # Ledger models
    "Budget",
    "Transaction",
    "TransactionPage",
    "TransactionType",
    "User",
    "is_valid_month",
    "utcnow",
    # Analytics models
    "BudgetUtilization",
    "CategoryBreakdown",
    "CategoryBudgetBreakdown",
    "CategoryOption",
    "FinancialSummary",
    "MonthSummary",
    "MonthlyAnalytics",
    "MonthlyAnalyticsWithBudget",
    "TransactionSummary",
]
