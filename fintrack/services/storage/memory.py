"""
In-Memory Store Implementation

DESIGN DECISION: A complete in-process implementation of the store
interface rather than a mock. It honors conditions, secondary indexes
(sparse: items without the index attributes are not indexed), sort
order and pagination the same way DynamoDB does, so repository logic is
tested against real semantics.

Items are deep-copied on the way in and out; callers never share state
with the store.

`batch_write_hook` lets tests simulate throttling: it receives the
batch and returns the items to report as unprocessed (or raises).
"""

import copy
from typing import Callable, Iterable, Optional

import structlog

from fintrack.services.storage.interface import (
    Condition,
    ConditionFailedError,
    IndexDefinition,
    Item,
    Key,
    KeyValueStore,
    QueryPage,
    StorageError,
)


logger = structlog.get_logger(__name__)


BatchWriteHook = Callable[[list[Item]], list[Item]]


class InMemoryStore(KeyValueStore):
    """
    Dict-backed implementation of KeyValueStore.

    Usage:
        store = InMemoryStore(PRIMARY_KEY, SECONDARY_INDEXES)
        await store.put({"PK": "USER#u1", "SK": "PROFILE", "name": "Ann"})
    """

    def __init__(
        self,
        primary_key: IndexDefinition,
        indexes: Iterable[IndexDefinition] = (),
    ):
        self._primary_key = primary_key
        self._indexes = {index.name: index for index in indexes}
        self._items: dict[tuple[str, str], Item] = {}
        self.batch_write_hook: Optional[BatchWriteHook] = None
        self.batch_write_calls: list[list[Item]] = []

    @property
    def primary_key(self) -> IndexDefinition:
        return self._primary_key

    def __len__(self) -> int:
        return len(self._items)

    def all_items(self) -> list[Item]:
        """Snapshot of every stored item, in primary key order."""
        return [copy.deepcopy(self._items[k]) for k in sorted(self._items)]

    def clear(self) -> None:
        self._items.clear()
        self.batch_write_calls.clear()

    # =========================================================================
    # KEY HELPERS
    # =========================================================================

    def _storage_key(self, key: Key) -> tuple[str, str]:
        pk, sk = self._primary_key.partition_key, self._primary_key.sort_key
        if pk not in key or sk not in key:
            raise StorageError(f"Key must contain '{pk}' and '{sk}'")
        return (key[pk], key[sk])

    def _resolve_index(self, index_name: Optional[str]) -> IndexDefinition:
        if index_name is None:
            return self._primary_key
        try:
            return self._indexes[index_name]
        except KeyError:
            raise StorageError(f"Unknown index: {index_name}")

    def _sort_tuple(self, item: Item, index: IndexDefinition) -> tuple[str, str, str]:
        """Order within an index partition; ties broken by primary key."""
        return (
            item[index.sort_key],
            item[self._primary_key.partition_key],
            item[self._primary_key.sort_key],
        )

    def _page_key(self, item: Item, index: IndexDefinition) -> Key:
        attributes = {
            self._primary_key.partition_key,
            self._primary_key.sort_key,
            index.partition_key,
            index.sort_key,
        }
        return {name: item[name] for name in attributes}

    def _check(self, condition: Optional[Condition], current: Optional[Item]) -> None:
        if condition is not None and not condition.is_satisfied_by(current):
            raise ConditionFailedError(f"Condition failed: {condition.kind.value}")

    # =========================================================================
    # INTERFACE
    # =========================================================================

    async def put(self, item: Item, condition: Optional[Condition] = None) -> None:
        storage_key = self._storage_key(item)
        self._check(condition, self._items.get(storage_key))
        self._items[storage_key] = copy.deepcopy(item)

    async def get(self, key: Key) -> Optional[Item]:
        item = self._items.get(self._storage_key(key))
        return copy.deepcopy(item) if item is not None else None

    async def delete(self, key: Key, condition: Optional[Condition] = None) -> None:
        storage_key = self._storage_key(key)
        self._check(condition, self._items.get(storage_key))
        self._items.pop(storage_key, None)

    async def query(
        self,
        partition_value: str,
        index_name: Optional[str] = None,
        sort_key_prefix: Optional[str] = None,
        sort_key_equals: Optional[str] = None,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Key] = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
    ) -> QueryPage:
        index = self._resolve_index(index_name)
        if consistent_read and index_name is not None:
            raise StorageError(f"Consistent reads are not supported on index {index_name}")

        matched = []
        for item in self._items.values():
            if item.get(index.partition_key) != partition_value:
                continue
            sort_value = item.get(index.sort_key)
            if not isinstance(sort_value, str):
                continue
            if sort_key_prefix is not None and not sort_value.startswith(sort_key_prefix):
                continue
            if sort_key_equals is not None and sort_value != sort_key_equals:
                continue
            matched.append(item)

        matched.sort(key=lambda i: self._sort_tuple(i, index), reverse=not scan_forward)

        if exclusive_start_key:
            try:
                start = self._sort_tuple(exclusive_start_key, index)
            except KeyError:
                raise StorageError("Exclusive start key does not match the queried index")
            if scan_forward:
                matched = [i for i in matched if self._sort_tuple(i, index) > start]
            else:
                matched = [i for i in matched if self._sort_tuple(i, index) < start]

        last_key = None
        if limit is not None and len(matched) > limit:
            matched = matched[:limit]
            last_key = self._page_key(matched[-1], index)

        return QueryPage(
            items=[copy.deepcopy(i) for i in matched],
            last_key=last_key,
        )

    async def batch_write(self, items: list[Item]) -> list[Item]:
        self.batch_write_calls.append(copy.deepcopy(items))

        unprocessed: list[Item] = []
        if self.batch_write_hook is not None:
            unprocessed = self.batch_write_hook(copy.deepcopy(items)) or []

        skipped = {self._storage_key(i) for i in unprocessed}
        for item in items:
            storage_key = self._storage_key(item)
            if storage_key not in skipped:
                self._items[storage_key] = copy.deepcopy(item)

        if unprocessed:
            logger.debug("batch_write_unprocessed", count=len(unprocessed))
        return unprocessed
