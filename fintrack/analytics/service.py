"""
Analytics Service

Fetches transactions (and budgets) through the repository, then hands
them to the pure folds in aggregation.py.

DESIGN DECISION: "Summary" means all history, "monthly" means one month.
get_financial_summary reads the by-user partition (bounded by
max_query_limit) and covers every month. The month-scoped operations
read the by-month index instead.
"""

from typing import Optional

import structlog

from fintrack.analytics import aggregation
from fintrack.models.analytics import (
    CategoryBreakdown,
    CategoryOption,
    FinancialSummary,
    MonthlyAnalytics,
    MonthlyAnalyticsWithBudget,
    MonthSummary,
)
from fintrack.models.ledger import utcnow
from fintrack.repository.ledger import LedgerRepository
from fintrack.validation import require_month, require_user


def current_month() -> str:
    return utcnow().strftime("%Y-%m")


class AnalyticsService:
    """
    Read-only analytics over a user's ledger.

    Usage:
        service = AnalyticsService(repository)
        summary = await service.get_financial_summary("u1")
    """

    def __init__(self, repository: LedgerRepository):
        self._repository = repository
        self._logger = structlog.get_logger(__name__)

    async def get_financial_summary(self, user_id: str) -> FinancialSummary:
        """Totals, category breakdown and insights over all of the user's history."""
        user_id = require_user(user_id)
        transactions = await self._repository.collect_by_user(user_id)
        summary = aggregation.build_financial_summary(transactions)

        self._logger.debug(
            "financial_summary_built",
            user_id=user_id,
            transaction_count=summary.transaction_count,
        )
        return summary

    async def get_monthly_analytics(self, user_id: str, month: str) -> MonthlyAnalytics:
        user_id, month = require_user(user_id), require_month(month)
        transactions = await self._repository.collect_by_month(user_id, month)
        return aggregation.build_monthly_analytics(month, transactions)

    async def get_financial_summary_with_budgets(
        self,
        user_id: str,
        month: str,
    ) -> MonthlyAnalyticsWithBudget:
        """Monthly totals with spending joined to that month's budgets."""
        user_id, month = require_user(user_id), require_month(month)
        transactions = await self._repository.collect_by_month(user_id, month)
        budgets = await self._repository.get_budgets_by_month(user_id, month)
        return aggregation.join_budgets(month, transactions, budgets)

    async def get_financial_insights(self, user_id: str, month: str) -> list[str]:
        analytics = await self.get_monthly_analytics(user_id, month)
        return analytics.insights

    async def get_category_breakdown(
        self,
        user_id: str,
        month: Optional[str] = None,
    ) -> list[CategoryBreakdown]:
        """Expense breakdown for one month, the current UTC month by default."""
        user_id = require_user(user_id)
        month = require_month(month) if month else current_month()
        transactions = await self._repository.collect_by_month(user_id, month)
        return aggregation.category_breakdown(transactions)

    async def get_unique_categories(self, user_id: str) -> list[str]:
        transactions = await self._repository.collect_by_user(require_user(user_id))
        return aggregation.unique_categories(transactions)

    async def get_category_options(self, user_id: str) -> list[CategoryOption]:
        categories = await self.get_unique_categories(user_id)
        return aggregation.category_options(categories)

    async def get_months_with_transactions(self, user_id: str) -> list[str]:
        transactions = await self._repository.collect_by_user(require_user(user_id))
        return aggregation.months_with_transactions(transactions)

    async def get_monthly_summaries(self, user_id: str) -> list[MonthSummary]:
        """Per-month totals across the user's history, newest month first."""
        transactions = await self._repository.collect_by_user(require_user(user_id))
        return aggregation.monthly_summaries(transactions)
