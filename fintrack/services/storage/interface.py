"""
Abstract Key/Value Store Interface

DESIGN DECISION: The repository talks to storage through a narrow,
generic interface. This allows us to:
1. Run against DynamoDB in production
2. Use in-memory storage for testing
3. Keep key modeling decoupled from any one storage client

The interface is intentionally small - put/get/delete/query/batch-write.
Items are flat dicts of str/float/int/bool/None values; key attributes
are plain strings.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


Item = dict[str, Any]
Key = dict[str, Any]


class IndexDefinition(BaseModel):
    """
    Attribute names of one key pair.

    `name` is None for the table's primary key.
    """
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    partition_key: str
    sort_key: str


class ConditionKind(str, Enum):
    """Conditions the store can enforce atomically on a single write."""
    KEY_NOT_EXISTS = "key_not_exists"
    KEY_EXISTS = "key_exists"
    ATTRIBUTE_EQUALS = "attribute_equals"


class Condition(BaseModel):
    """
    A write precondition evaluated by the store against the current item.

    Usage:
        Condition.key_not_exists()
        Condition.attribute_equals("version", 3)
    """
    model_config = ConfigDict(frozen=True)

    kind: ConditionKind
    attribute: Optional[str] = None
    value: Any = None

    @classmethod
    def key_not_exists(cls) -> "Condition":
        return cls(kind=ConditionKind.KEY_NOT_EXISTS)

    @classmethod
    def key_exists(cls) -> "Condition":
        return cls(kind=ConditionKind.KEY_EXISTS)

    @classmethod
    def attribute_equals(cls, attribute: str, value: Any) -> "Condition":
        return cls(kind=ConditionKind.ATTRIBUTE_EQUALS, attribute=attribute, value=value)

    def is_satisfied_by(self, current: Optional[Item]) -> bool:
        """Evaluate against the item currently stored under the key (None if absent)."""
        if self.kind == ConditionKind.KEY_NOT_EXISTS:
            return current is None
        if self.kind == ConditionKind.KEY_EXISTS:
            return current is not None
        return current is not None and current.get(self.attribute) == self.value


class QueryPage(BaseModel):
    """Raw result of one store query."""

    items: list[Item] = Field(default_factory=list)
    last_key: Optional[Key] = Field(
        default=None,
        description="Exclusive start key for the next page, None when exhausted"
    )


class KeyValueStore(ABC):
    """
    Abstract interface for a wide-column key/value store with secondary indexes.

    Any storage implementation (DynamoDB, in-memory, etc.)
    must implement these methods.
    """

    @property
    @abstractmethod
    def primary_key(self) -> IndexDefinition:
        """Attribute names of the table's primary key."""
        pass

    @abstractmethod
    async def put(self, item: Item, condition: Optional[Condition] = None) -> None:
        """
        Write an item, replacing whatever is stored under its primary key.

        Raises:
            ConditionFailedError: If `condition` does not hold
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, key: Key) -> Optional[Item]:
        """
        Read one item by primary key. Reads are strongly consistent.

        Returns:
            The item if found, None otherwise
        """
        pass

    @abstractmethod
    async def delete(self, key: Key, condition: Optional[Condition] = None) -> None:
        """
        Delete one item by primary key.

        Raises:
            ConditionFailedError: If `condition` does not hold
        """
        pass

    @abstractmethod
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
        """
        Query one partition of the table or of a secondary index.

        Args:
            partition_value: Partition key value to match exactly
            index_name: Secondary index to query, None for the table
            sort_key_prefix: Only items whose sort key starts with this
            sort_key_equals: Only items whose sort key equals this
            limit: Maximum number of items in the page
            exclusive_start_key: `last_key` of the previous page
            scan_forward: Ascending sort key order if True, descending otherwise
            consistent_read: Strongly consistent read; table queries only,
                secondary indexes are always eventually consistent

        Returns:
            One page of items plus the key to resume from
        """
        pass

    @abstractmethod
    async def batch_write(self, items: list[Item]) -> list[Item]:
        """
        Blind-write a batch of items (no conditions).

        Returns:
            Items the store did not process; the caller decides whether to retry
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConditionFailedError(StorageError):
    """A conditional write or delete found the precondition false."""
    pass


class TransientStorageError(StorageError):
    """Throttling, timeouts and other errors worth retrying."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
