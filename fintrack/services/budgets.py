"""
Budget Service

Validates budget input (month format, non-negative amount) and joins
budgets with the month's spending for utilization reports.
"""

import math

import structlog

from fintrack.analytics import aggregation
from fintrack.errors import ValidationError
from fintrack.models.analytics import BudgetUtilization
from fintrack.models.ledger import Budget
from fintrack.repository.ledger import LedgerRepository
from fintrack.validation import require_category, require_month, require_user


class BudgetService:
    """
    Monthly budgets per category.

    One budget per (user, month, category); saving again overwrites it.
    """

    def __init__(self, repository: LedgerRepository):
        self._repository = repository
        self._logger = structlog.get_logger(__name__)

    async def create_or_update_budget(
        self,
        user_id: str,
        month: str,
        category: str,
        amount: float,
    ) -> Budget:
        """
        Save the budget for one category in one month.

        Raises:
            ValidationError: On a malformed month or a negative/non-finite amount
        """
        if amount < 0:
            raise ValidationError("Budget amount cannot be negative")
        if not math.isfinite(amount):
            raise ValidationError("Budget amount must be a finite number")

        budget = Budget(
            user_id=require_user(user_id),
            month=require_month(month),
            category=require_category(category),
            amount=amount,
        )
        return await self._repository.put_budget(budget)

    async def get_budgets_by_month(self, user_id: str, month: str) -> list[Budget]:
        return await self._repository.get_budgets_by_month(
            require_user(user_id), require_month(month)
        )

    async def get_budget(self, user_id: str, month: str, category: str) -> Budget:
        return await self._repository.get_budget(
            require_user(user_id), require_month(month), require_category(category)
        )

    async def delete_budget(self, user_id: str, month: str, category: str) -> None:
        await self._repository.delete_budget(
            require_user(user_id), require_month(month), require_category(category)
        )

    async def get_budget_utilization(self, user_id: str, month: str) -> list[BudgetUtilization]:
        """Spent vs. budgeted for every budget of the month."""
        user_id, month = require_user(user_id), require_month(month)
        budgets = await self._repository.get_budgets_by_month(user_id, month)
        if not budgets:
            return []

        transactions = await self._repository.collect_by_month(user_id, month)
        utilization = aggregation.budget_utilization(budgets, transactions)

        over = [u.category for u in utilization if u.remaining < 0]
        if over:
            self._logger.info("budgets_overrun", user_id=user_id, month=month, categories=over)
        return utilization
