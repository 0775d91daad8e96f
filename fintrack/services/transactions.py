"""
Transaction Service

Thin layer over the repository: checks required identifiers before
delegating. Page size defaults come from RepositorySettings.
Field-level validation lives in the Transaction model itself.
"""

from typing import Optional

from fintrack.models.ledger import Transaction, TransactionPage
from fintrack.repository.ledger import LedgerRepository
from fintrack.validation import require_month, require_user, require_value


class TransactionService:
    """Create, read, update, delete and list transactions."""

    def __init__(self, repository: LedgerRepository):
        self._repository = repository

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        return await self._repository.create_transaction(transaction)

    async def get_transaction(self, user_id: str, transaction_id: str) -> Transaction:
        return await self._repository.get_transaction(
            require_user(user_id), require_value(transaction_id, "transaction_id")
        )

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        return await self._repository.update_transaction(transaction)

    async def delete_transaction(self, user_id: str, transaction_id: str) -> None:
        await self._repository.delete_transaction(
            require_user(user_id), require_value(transaction_id, "transaction_id")
        )

    async def get_transactions_by_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> TransactionPage:
        return await self._repository.query_by_user(
            require_user(user_id), limit, cursor
        )

    async def get_transactions_by_month(
        self,
        user_id: str,
        month: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> TransactionPage:
        return await self._repository.query_by_month(
            require_user(user_id), require_month(month), limit, cursor
        )

    async def get_transactions_by_category(
        self,
        user_id: str,
        category: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> TransactionPage:
        return await self._repository.query_by_category(
            require_user(user_id), require_value(category, "category"), limit, cursor
        )

    async def import_transactions(self, transactions: list[Transaction]) -> int:
        """Bulk load; returns the number of items written."""
        if not transactions:
            return 0
        return await self._repository.batch_create_transactions(transactions)
