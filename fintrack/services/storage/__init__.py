"""
Storage Services Package

Provides the abstract key/value store interface and its implementations.
DynamoDB is the production backend; the in-memory store backs tests and
local runs. Both are interchangeable behind KeyValueStore.
"""

from fintrack.services.storage.interface import (
    Condition,
    ConditionFailedError,
    ConnectionError,
    IndexDefinition,
    KeyValueStore,
    QueryPage,
    StorageError,
    TransientStorageError,
)
from fintrack.services.storage.memory import InMemoryStore
from fintrack.services.storage.dynamodb import (
    DynamoDBClient,
    DynamoDBStore,
)

__all__ = [
    # Interface
    "Condition",
    "IndexDefinition",
    "KeyValueStore",
    "QueryPage",
    # Exceptions
    "ConditionFailedError",
    "ConnectionError",
    "StorageError",
    "TransientStorageError",
    # Implementations
    "DynamoDBClient",
    "DynamoDBStore",
    "InMemoryStore",
]
