"""
Ledger Repository

Every read and write of transactions, budgets and users goes through
here. The repository derives keys (keys.py), marshals entities
(codec.py) and talks to whatever KeyValueStore it was given.

DESIGN DECISION: Optimistic concurrency instead of locks.
An update is a compare-and-swap on the stored `version`. The caller
submits the version it read; whoever writes first wins and everyone
else gets ConflictError and retries on their own. Nothing here retries
a single-item operation.

DESIGN DECISION: Batch loads are at-least-once.
Each chunk is a blind overwrite, so re-submitting a chunk is harmless.
Only the items the store reports as unprocessed are retried, with a
bounded number of attempts and linear backoff. Earlier chunks are never
rolled back.
"""

import base64
import json
from datetime import datetime
from typing import Any, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from fintrack.config import RepositorySettings, get_settings
from fintrack.errors import (
    AlreadyExistsError,
    BatchWriteFailedError,
    ConflictError,
    DecodeError,
    NotFoundError,
    ValidationError,
)
from fintrack.models.ledger import (
    Budget,
    Transaction,
    TransactionPage,
    User,
    is_valid_month,
    utcnow,
)
from fintrack.repository.codec import (
    budget_from_item,
    budget_to_item,
    parse_timestamp,
    transaction_from_item,
    transaction_to_item,
    user_from_item,
    user_to_item,
)
from fintrack.repository.keys import (
    BY_CATEGORY_INDEX,
    BY_ID_INDEX,
    BY_MONTH_INDEX,
    TRANSACTION_PREFIX,
    budget_keys,
    budget_month_prefix,
    category_partition,
    id_partition,
    month_partition,
    primary_key_of,
    user_keys,
    user_partition,
)
from fintrack.services.storage.interface import (
    Condition,
    ConditionFailedError,
    Item,
    Key,
    KeyValueStore,
    StorageError,
    TransientStorageError,
)


# =============================================================================
# CURSORS
# =============================================================================

def encode_cursor(last_key: Optional[Key]) -> Optional[str]:
    """Opaque, URL-safe continuation token for a store key."""
    if not last_key:
        return None
    payload = json.dumps(last_key, sort_keys=True, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Optional[str]) -> Optional[Key]:
    if not cursor:
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    except ValueError as e:
        raise ValidationError("Invalid pagination cursor") from e
    if not isinstance(payload, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in payload.items()
    ):
        raise ValidationError("Invalid pagination cursor")
    return payload


class UnprocessedItemsError(Exception):
    """Raised inside the batch retry loop while a chunk has leftovers."""

    def __init__(self, items: list[Item]):
        self.items = items
        super().__init__(f"{len(items)} items unprocessed")


# =============================================================================
# REPOSITORY
# =============================================================================

class LedgerRepository:
    """
    Single-table repository for transactions, budgets and users.

    Stateless apart from the injected store and settings; safe to share
    between concurrent requests.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[RepositorySettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().repository
        self._logger = structlog.get_logger(__name__)

    @property
    def settings(self) -> RepositorySettings:
        return self._settings

    # =========================================================================
    # TRANSACTIONS - SINGLE ITEM
    # =========================================================================

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """
        Store a new transaction.

        Raises:
            AlreadyExistsError: If the primary key is taken
        """
        item = transaction_to_item(transaction)
        try:
            await self._store.put(item, Condition.key_not_exists())
        except ConditionFailedError as e:
            raise AlreadyExistsError(
                f"Transaction already exists: {transaction.id}"
            ) from e
        except StorageError as e:
            raise StorageError(f"Failed to create transaction: {e}") from e

        self._logger.info(
            "transaction_created",
            user_id=transaction.user_id,
            transaction_id=transaction.id,
            month=transaction.month,
        )
        return transaction

    async def get_transaction(self, user_id: str, transaction_id: str) -> Transaction:
        """
        Fetch one transaction by its logical id.

        Raises:
            NotFoundError: If the user has no transaction with that id
        """
        item = await self._locate_transaction(user_id, transaction_id)
        if item is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction_from_item(item)

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace a transaction, bumping its version.

        `transaction.version` must be the version the caller read.
        created_at is kept from the stored record, updated_at is refreshed
        and all keys are re-derived from the new field values.

        Raises:
            NotFoundError: If the transaction does not exist
            ConflictError: If the stored version moved on
        """
        current_item = await self._locate_transaction(transaction.user_id, transaction.id)
        if current_item is None:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        current = transaction_from_item(current_item)

        if transaction.version != current.version:
            raise ConflictError(
                expected_version=transaction.version,
                actual_version=current.version,
            )

        updated = transaction.model_copy(update={
            "created_at": current.created_at,
            "updated_at": utcnow(),
            "version": current.version + 1,
        })
        new_item = transaction_to_item(updated)
        old_key = primary_key_of(current_item)
        version_check = Condition.attribute_equals("version", current.version)

        try:
            if primary_key_of(new_item) == old_key:
                await self._store.put(new_item, version_check)
            else:
                await self._move_transaction(new_item, old_key, version_check)
        except ConditionFailedError as e:
            raise ConflictError(expected_version=current.version) from e
        except StorageError as e:
            raise StorageError(f"Failed to update transaction: {e}") from e

        self._logger.info(
            "transaction_updated",
            user_id=updated.user_id,
            transaction_id=updated.id,
            version=updated.version,
        )
        return updated

    async def _move_transaction(
        self,
        new_item: Item,
        old_key: Key,
        version_check: Condition,
    ) -> None:
        """A date change moved the sort key: write the new record, then drop the old one."""
        await self._store.put(new_item, Condition.key_not_exists())
        try:
            await self._store.delete(old_key, version_check)
        except ConditionFailedError:
            await self._store.delete(primary_key_of(new_item))
            raise

    async def delete_transaction(self, user_id: str, transaction_id: str) -> None:
        """
        Delete a transaction by its logical id.

        Raises:
            NotFoundError: If it does not exist (or vanished concurrently)
        """
        item = await self._locate_transaction(user_id, transaction_id)
        if item is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        try:
            await self._store.delete(primary_key_of(item), Condition.key_exists())
        except ConditionFailedError as e:
            raise NotFoundError(f"Transaction not found: {transaction_id}") from e
        except StorageError as e:
            raise StorageError(f"Failed to delete transaction: {e}") from e

        self._logger.info(
            "transaction_deleted",
            user_id=user_id,
            transaction_id=transaction_id,
        )

    async def _locate_transaction(self, user_id: str, transaction_id: str) -> Optional[Item]:
        """
        Find the stored item of a transaction.

        The by-id index answers in one query. Records written before that
        index existed are found by scanning the newest `max_query_limit`
        transactions of the user.
        """
        try:
            if self._settings.id_index_enabled:
                page = await self._store.query(
                    id_partition(transaction_id),
                    index_name=BY_ID_INDEX,
                    sort_key_equals=user_partition(user_id),
                    limit=1,
                )
                if page.items:
                    # Index reads are eventually consistent; the base record read is not
                    item = await self._store.get(primary_key_of(page.items[0]))
                    if item is not None:
                        return item

            page = await self._store.query(
                user_partition(user_id),
                sort_key_prefix=TRANSACTION_PREFIX,
                limit=self._settings.max_query_limit,
                scan_forward=False,
                consistent_read=True,
            )
        except StorageError as e:
            raise StorageError(f"Failed to get transaction: {e}") from e

        for item in page.items:
            if item.get("id") == transaction_id:
                self._logger.debug(
                    "transaction_located_by_scan",
                    user_id=user_id,
                    transaction_id=transaction_id,
                )
                return item
        return None

    # =========================================================================
    # TRANSACTIONS - QUERIES
    # =========================================================================

    async def query_by_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> TransactionPage:
        """All transactions of a user, newest first."""
        return await self._query_page(user_partition(user_id), None, limit, cursor)

    async def query_by_month(
        self,
        user_id: str,
        month: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> TransactionPage:
        """Transactions of a user dated in one calendar month (YYYY-MM), newest first."""
        if not is_valid_month(month):
            raise ValidationError(f"Invalid month '{month}', expected YYYY-MM")
        return await self._query_page(
            month_partition(user_id, month), BY_MONTH_INDEX, limit, cursor
        )

    async def query_by_category(
        self,
        user_id: str,
        category: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> TransactionPage:
        """Transactions of a user in one category (case-insensitive), newest first."""
        if not category or not category.strip():
            raise ValidationError("Category is required")
        return await self._query_page(
            category_partition(user_id, category), BY_CATEGORY_INDEX, limit, cursor
        )

    async def collect_by_user(self, user_id: str) -> list[Transaction]:
        """Follow pages until exhausted or `max_query_limit` items were read."""
        return await self._collect(user_partition(user_id), None)

    async def collect_by_month(self, user_id: str, month: str) -> list[Transaction]:
        if not is_valid_month(month):
            raise ValidationError(f"Invalid month '{month}', expected YYYY-MM")
        return await self._collect(month_partition(user_id, month), BY_MONTH_INDEX)

    def _resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None or limit <= 0:
            limit = self._settings.default_page_size
        return min(limit, self._settings.max_query_limit)

    async def _query_page(
        self,
        partition_value: str,
        index_name: Optional[str],
        limit: Optional[int],
        cursor: Optional[str],
    ) -> TransactionPage:
        transactions, last_key = await self._query_transactions(
            partition_value,
            index_name,
            self._resolve_limit(limit),
            decode_cursor(cursor),
        )
        return TransactionPage(items=transactions, cursor=encode_cursor(last_key))

    async def _collect(self, partition_value: str, index_name: Optional[str]) -> list[Transaction]:
        cap = self._settings.max_query_limit
        collected: list[Transaction] = []
        start_key: Optional[Key] = None

        while len(collected) < cap:
            transactions, start_key = await self._query_transactions(
                partition_value, index_name, cap - len(collected), start_key
            )
            collected.extend(transactions)
            if start_key is None:
                break

        return collected[:cap]

    async def _query_transactions(
        self,
        partition_value: str,
        index_name: Optional[str],
        limit: int,
        start_key: Optional[Key],
    ) -> tuple[list[Transaction], Optional[Key]]:
        try:
            page = await self._store.query(
                partition_value,
                index_name=index_name,
                sort_key_prefix=TRANSACTION_PREFIX,
                limit=limit,
                exclusive_start_key=start_key,
                scan_forward=False,
            )
        except StorageError as e:
            raise StorageError(f"Failed to query transactions: {e}") from e

        return self._decode_all(page.items, transaction_from_item), page.last_key

    def _decode_all(self, items: list[Item], decode: Any) -> list[Any]:
        """Decode items, logging and skipping the ones that fail."""
        entities = []
        for item in items:
            try:
                entities.append(decode(item))
            except DecodeError as e:
                self._logger.warning(
                    "item_decode_failed",
                    pk=item.get("PK"),
                    sk=item.get("SK"),
                    field=e.field,
                    error=str(e),
                )
        return entities

    # =========================================================================
    # TRANSACTIONS - BATCH LOAD
    # =========================================================================

    async def batch_create_transactions(self, transactions: list[Transaction]) -> int:
        """
        Blind-write many transactions in chunks of `batch_size`.

        Returns:
            Number of distinct items written

        Raises:
            BatchWriteFailedError: If a chunk still has unprocessed items
                after `batch_max_attempts`; earlier chunks stay committed
        """
        items = [transaction_to_item(t) for t in transactions]
        size = self._settings.batch_size
        committed = 0

        for chunk_index, start in enumerate(range(0, len(items), size)):
            # The store rejects duplicate keys within one request; last one wins
            chunk = list({
                (item["PK"], item["SK"]): item for item in items[start:start + size]
            }.values())
            await self._write_chunk(chunk_index, chunk, committed)
            committed += len(chunk)
            self._logger.info(
                "batch_chunk_written",
                chunk_index=chunk_index,
                count=len(chunk),
                committed=committed,
            )

        return committed

    async def _write_chunk(self, chunk_index: int, chunk: list[Item], committed: int) -> None:
        backoff = self._settings.batch_backoff_seconds
        pending = chunk

        def log_retry(retry_state: RetryCallState) -> None:
            self._logger.warning(
                "batch_chunk_retry",
                chunk_index=chunk_index,
                attempt=retry_state.attempt_number,
                pending=len(pending),
                error=str(retry_state.outcome.exception()),
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.batch_max_attempts),
                wait=wait_incrementing(start=backoff, increment=backoff),
                retry=retry_if_exception_type((UnprocessedItemsError, TransientStorageError)),
                before_sleep=log_retry,
                reraise=True,
            ):
                with attempt:
                    unprocessed = await self._store.batch_write(pending)
                    if unprocessed:
                        pending = unprocessed
                        raise UnprocessedItemsError(unprocessed)
        except (UnprocessedItemsError, TransientStorageError) as e:
            self._logger.error(
                "batch_chunk_failed",
                chunk_index=chunk_index,
                unprocessed=len(pending),
                committed=committed,
                error=str(e),
            )
            raise BatchWriteFailedError(
                chunk_index=chunk_index,
                unprocessed=pending,
                committed_count=committed,
            ) from e

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def put_budget(self, budget: Budget) -> Budget:
        """
        Upsert the budget of (user, month, category).

        Last write wins. An existing record keeps its id and created_at.
        """
        key = budget_keys(budget.user_id, budget.month, budget.category)
        try:
            existing = await self._store.get(key)
            if existing is not None:
                budget = budget.model_copy(update={
                    "id": existing.get("id") or budget.id,
                    "created_at": self._stored_created_at(existing, budget),
                    "updated_at": utcnow(),
                })
            await self._store.put(budget_to_item(budget))
        except StorageError as e:
            raise StorageError(f"Failed to save budget: {e}") from e

        self._logger.info(
            "budget_saved",
            user_id=budget.user_id,
            month=budget.month,
            category=budget.category,
            amount=budget.amount,
        )
        return budget

    def _stored_created_at(self, existing: Item, budget: Budget) -> datetime:
        """created_at of the stored record; an unreadable one must not block the overwrite."""
        try:
            return parse_timestamp(existing.get("created_at"), "created_at")
        except DecodeError as e:
            self._logger.warning(
                "budget_created_at_unreadable",
                user_id=budget.user_id,
                month=budget.month,
                category=budget.category,
                error=str(e),
            )
            return budget.created_at

    async def get_budget(self, user_id: str, month: str, category: str) -> Budget:
        try:
            item = await self._store.get(budget_keys(user_id, month, category))
        except StorageError as e:
            raise StorageError(f"Failed to get budget: {e}") from e
        if item is None:
            raise NotFoundError(f"Budget not found: {month}/{category}")
        return budget_from_item(item)

    async def get_budgets_by_month(self, user_id: str, month: str) -> list[Budget]:
        """All budgets of a user for one month, ordered by category."""
        try:
            page = await self._store.query(
                user_partition(user_id),
                sort_key_prefix=budget_month_prefix(month),
                limit=self._settings.max_query_limit,
            )
        except StorageError as e:
            raise StorageError(f"Failed to query budgets: {e}") from e
        return self._decode_all(page.items, budget_from_item)

    async def delete_budget(self, user_id: str, month: str, category: str) -> None:
        try:
            await self._store.delete(
                budget_keys(user_id, month, category), Condition.key_exists()
            )
        except ConditionFailedError as e:
            raise NotFoundError(f"Budget not found: {month}/{category}") from e
        except StorageError as e:
            raise StorageError(f"Failed to delete budget: {e}") from e

        self._logger.info("budget_deleted", user_id=user_id, month=month, category=category)

    # =========================================================================
    # USERS
    # =========================================================================

    async def create_user(self, user: User) -> User:
        try:
            await self._store.put(user_to_item(user), Condition.key_not_exists())
        except ConditionFailedError as e:
            raise AlreadyExistsError(f"User already exists: {user.id}") from e
        except StorageError as e:
            raise StorageError(f"Failed to create user: {e}") from e

        self._logger.info("user_created", user_id=user.id)
        return user

    async def get_user(self, user_id: str) -> User:
        try:
            item = await self._store.get(user_keys(user_id))
        except StorageError as e:
            raise StorageError(f"Failed to get user: {e}") from e
        if item is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user_from_item(item)
